"""
Work order blueprint.

Endpoints:
    GET   /api/v1/work-orders                    masked list (?status=)
    POST  /api/v1/work-orders                    create
    GET   /api/v1/work-orders/pairable           half-load candidates (?client_id=)
    GET   /api/v1/work-orders/<id>               masked detail
    PATCH /api/v1/work-orders/<id>               edit / status change
    GET   /api/v1/work-orders/<id>/history       status history
"""

import logging

from flask import Blueprint, jsonify, request

from woodbank.blueprints import current_session, json_body, register_error_handlers
from woodbank.services import pii_policy
from woodbank.services import work_order_service as svc
from woodbank.utils.errors import E, api_error
from woodbank.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

work_order_bp = Blueprint("work_order", __name__, url_prefix="/api/v1/work-orders")
register_error_handlers(work_order_bp)


@work_order_bp.route("", methods=["GET"])
def list_work_orders():
    session = current_session()
    items = svc.list_work_orders(session, status=request.args.get("status"))
    return jsonify({"items": items, "total": len(items)})


@work_order_bp.route("", methods=["POST"])
def create_work_order():
    session = current_session()
    order = svc.create_work_order(session, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pii_policy.mask_work_order(order.to_dict(), session)), 201


@work_order_bp.route("/pairable", methods=["GET"])
def pairable():
    current_session()
    client_id = request.args.get("client_id")
    if not client_id:
        return api_error(E.VALIDATION_REQUIRED, "client_id is required")
    items = svc.pairable_orders(client_id)
    return jsonify({"items": items, "total": len(items)})


@work_order_bp.route("/<order_id>", methods=["GET"])
def get_work_order(order_id):
    session = current_session()
    order = svc.get_work_order(order_id)
    return jsonify(pii_policy.mask_work_order(order.to_dict(), session))


@work_order_bp.route("/<order_id>", methods=["PATCH"])
def update_work_order(order_id):
    session = current_session()
    order = svc.get_work_order(order_id)
    data = json_body()
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is empty")
    order = svc.update_work_order(session, order, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pii_policy.mask_work_order(order.to_dict(), session))


@work_order_bp.route("/<order_id>/history", methods=["GET"])
def status_history(order_id):
    current_session()
    items = svc.list_status_history(order_id)
    return jsonify({"items": items, "total": len(items)})
