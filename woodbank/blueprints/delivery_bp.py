"""
Delivery calendar and worker credit blueprint.

Endpoints:
    GET  /api/v1/delivery-events     list (?start=&end=)
    POST /api/v1/delivery-events     create
    GET  /api/v1/me/credit           hours / deliveries / wood credit for the caller
"""

import logging

from flask import Blueprint, jsonify, request

from woodbank.blueprints import current_session, json_body, register_error_handlers
from woodbank.services import delivery_service as svc
from woodbank.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

delivery_bp = Blueprint("delivery", __name__, url_prefix="/api/v1")
register_error_handlers(delivery_bp)


@delivery_bp.route("/delivery-events", methods=["GET"])
def list_events():
    current_session()
    items = svc.list_delivery_events(request.args.get("start"), request.args.get("end"))
    return jsonify({"items": items, "total": len(items)})


@delivery_bp.route("/delivery-events", methods=["POST"])
def create_event():
    session = current_session()
    event = svc.create_delivery_event(session, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(event.to_dict()), 201


@delivery_bp.route("/me/credit", methods=["GET"])
def my_credit():
    session = current_session()
    credit = svc.worker_credit_for(session)
    return jsonify({"user_id": session.user_id, **credit.to_dict()})
