"""
Inventory blueprint.

Endpoints:
    GET    /api/v1/inventory          list (?low_stock=true)
    POST   /api/v1/inventory          create
    GET    /api/v1/inventory/<id>     detail
    PATCH  /api/v1/inventory/<id>     update
    DELETE /api/v1/inventory/<id>     soft delete
"""

import logging

from flask import Blueprint, jsonify, request

from woodbank.blueprints import current_session, json_body, register_error_handlers
from woodbank.services import inventory_service as svc
from woodbank.utils.errors import E, api_error
from woodbank.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/v1/inventory")
register_error_handlers(inventory_bp)


@inventory_bp.route("", methods=["GET"])
def list_items():
    current_session()
    low_stock = request.args.get("low_stock", "").strip().lower() in ("1", "true", "yes")
    items = svc.list_inventory_items(low_stock=low_stock)
    return jsonify({"items": items, "total": len(items)})


@inventory_bp.route("", methods=["POST"])
def create_item():
    session = current_session()
    item = svc.create_inventory_item(session, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(item.to_dict()), 201


@inventory_bp.route("/<item_id>", methods=["GET"])
def get_item(item_id):
    current_session()
    return jsonify(svc.get_inventory_item(item_id).to_dict())


@inventory_bp.route("/<item_id>", methods=["PATCH"])
def update_item(item_id):
    session = current_session()
    item = svc.get_inventory_item(item_id)
    data = json_body()
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is empty")
    item = svc.update_inventory_item(session, item, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(item.to_dict())


@inventory_bp.route("/<item_id>", methods=["DELETE"])
def delete_item(item_id):
    session = current_session()
    item = svc.get_inventory_item(item_id)
    svc.delete_inventory_item(session, item)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Inventory item deleted", "id": item_id}), 200
