"""
Client blueprint.

Endpoints:
    GET    /api/v1/clients                 masked list (?approval_status=)
    POST   /api/v1/clients                 create (``force`` skips duplicate check)
    PATCH  /api/v1/clients/<id>            update profile
    DELETE /api/v1/clients/<id>            soft delete
    POST   /api/v1/clients/<id>/approval   change approval status
    GET    /api/v1/clients/<id>/approval   approval history
"""

import logging

from flask import Blueprint, jsonify, request

from woodbank.blueprints import current_session, json_body, register_error_handlers
from woodbank.services import client_service as svc
from woodbank.utils.errors import E, api_error
from woodbank.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

client_bp = Blueprint("client", __name__, url_prefix="/api/v1/clients")
register_error_handlers(client_bp)


def _masked(client, session):
    return svc.mask_client_for(client, session)


@client_bp.route("", methods=["GET"])
def list_clients():
    session = current_session()
    items = svc.list_clients(session, approval_status=request.args.get("approval_status"))
    return jsonify({"items": items, "total": len(items)})


@client_bp.route("", methods=["POST"])
def create_client():
    session = current_session()
    data = json_body()
    client = svc.create_client(session, data, force=bool(data.pop("force", False)))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(_masked(client, session)), 201


@client_bp.route("/<client_id>", methods=["PATCH"])
def update_client(client_id):
    session = current_session()
    client = svc.get_client(client_id)
    data = json_body()
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is empty")
    if "approval_status" in data:
        return api_error(E.VALIDATION_INVALID, "Use /approval to change approval_status")
    client = svc.update_client(session, client, data, force=bool(data.pop("force", False)))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(_masked(client, session))


@client_bp.route("/<client_id>", methods=["DELETE"])
def delete_client(client_id):
    session = current_session()
    client = svc.get_client(client_id)
    svc.soft_delete_client(session, client)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Client deleted", "id": client_id}), 200


@client_bp.route("/<client_id>/approval", methods=["POST"])
def change_approval(client_id):
    session = current_session()
    client = svc.get_client(client_id)
    data = json_body()
    if not data.get("approval_status"):
        return api_error(E.VALIDATION_REQUIRED, "approval_status is required")
    client = svc.set_approval_status(
        session, client, data["approval_status"],
        reason=data.get("reason"), notes=data.get("notes"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(_masked(client, session))


@client_bp.route("/<client_id>/approval", methods=["GET"])
def approval_history(client_id):
    current_session()
    client = svc.get_client(client_id)
    items = [h.to_dict() for h in client.approval_history.all()]
    return jsonify({"items": items, "total": len(items)})
