"""
Worker directory blueprint.

Endpoints:
    GET   /api/v1/users                           masked worker list
    GET   /api/v1/users/available-drivers?date=   drivers scheduled as available
    PATCH /api/v1/users/<id>/flags                driver / HIPAA flags
"""

import logging

from flask import Blueprint, jsonify, request

from woodbank.blueprints import current_session, json_body, register_error_handlers
from woodbank.services import pii_policy
from woodbank.services import user_service as svc
from woodbank.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

user_bp = Blueprint("user", __name__, url_prefix="/api/v1/users")
register_error_handlers(user_bp)


@user_bp.route("", methods=["GET"])
def list_workers():
    session = current_session()
    items = svc.list_workers(session)
    return jsonify({"items": items, "total": len(items)})


@user_bp.route("/available-drivers", methods=["GET"])
def available_drivers():
    current_session()
    items = svc.available_drivers(request.args.get("date"))
    return jsonify({"items": items, "total": len(items)})


@user_bp.route("/<user_id>/flags", methods=["PATCH"])
def update_flags(user_id):
    session = current_session()
    user = svc.get_user(user_id)
    user = svc.update_user_flags(session, user, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pii_policy.mask_worker(user.to_dict(), session))
