"""Wood and supply inventory service.

Transaction policy: flush only; the route handler commits.

Anyone signed in may read stock levels; creating, editing and deleting
items needs ``manage_inventory``.
"""
import logging
import math

from woodbank.core.exceptions import NotFoundError, ValidationError
from woodbank.models import db
from woodbank.models.audit import write_audit
from woodbank.models.inventory import InventoryItem
from woodbank.services.access import Capability, Session, require_capability

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("name", "category", "unit", "notes")
_QUANTITY_FIELDS = ("quantity_on_hand", "reorder_threshold", "reserved_quantity")


def _quantity(value, *, optional=False):
    """Return a finite float >= 0, None when *optional* and empty; ValueError otherwise."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if optional:
            return None
        raise ValueError(value)
    if isinstance(value, bool):
        raise ValueError(value)
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError(value)
    return number


def normalize_inventory_fields(data: dict, *, existing: dict | None = None) -> dict:
    """Return cleaned column values from *data*, validating the merged record.

    Raises:
        ValidationError: with ``details["fields"]`` naming each bad field.
    """
    fields = {}
    errors = {}
    for key in _TEXT_FIELDS:
        if key in data:
            fields[key] = (str(data[key]).strip() or None) if data[key] is not None else None
    for key in _QUANTITY_FIELDS:
        if key in data:
            try:
                fields[key] = _quantity(data[key])
            except (TypeError, ValueError):
                errors[key] = "must be a number, zero or more"
    if "reorder_amount" in data:
        try:
            fields["reorder_amount"] = _quantity(data["reorder_amount"], optional=True)
        except (TypeError, ValueError):
            errors["reorder_amount"] = "must be a number, zero or more"

    merged = {"quantity_on_hand": 0.0, "reserved_quantity": 0.0, **(existing or {}), **fields}
    for key in ("name", "unit"):
        if not merged.get(key):
            errors[key] = "required"
    if not errors and merged["reserved_quantity"] > merged["quantity_on_hand"]:
        errors["reserved_quantity"] = "cannot exceed quantity_on_hand"

    if errors:
        first = next(iter(errors))
        raise ValidationError(
            f"Inventory item is incomplete or invalid ({first}: {errors[first]}).",
            {"fields": errors},
        )
    return fields


def _audit(item: InventoryItem, action: str, session: Session, diff: dict):
    try:
        write_audit(
            entity_type="inventory_item",
            entity_id=item.id,
            action=action,
            actor=session.username or "system",
            actor_user_id=session.user_id,
            diff=diff,
        )
    except Exception:
        logger.warning("Audit log failed for %s on inventory item %s — main flow unaffected",
                       action, item.id, exc_info=True)


def list_inventory_items(*, low_stock: bool = False) -> list[dict]:
    items = InventoryItem.query_active().order_by(InventoryItem.name).all()
    if low_stock:
        items = [i for i in items if i.is_low_stock]
    return [i.to_dict() for i in items]


def get_inventory_item(item_id) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None or item.is_deleted:
        raise NotFoundError("InventoryItem", item_id)
    return item


def create_inventory_item(session: Session, data: dict) -> InventoryItem:
    require_capability(session, Capability.MANAGE_INVENTORY)
    fields = normalize_inventory_fields(data)
    item = InventoryItem(created_by_user_id=session.user_id or None, **fields)
    db.session.add(item)
    db.session.flush()
    _audit(item, "inventory.create", session, {k: v for k, v in fields.items() if v is not None})
    logger.info("Inventory item %s created: %s", item.id, item.name)
    return item


def update_inventory_item(session: Session, item: InventoryItem, data: dict) -> InventoryItem:
    """Edit an item; every changed field is recorded in the audit diff."""
    require_capability(session, Capability.MANAGE_INVENTORY)
    fields = normalize_inventory_fields(data, existing=item.to_dict())

    diff = {}
    for key, value in fields.items():
        if getattr(item, key) != value:
            diff[key] = {"old": getattr(item, key), "new": value}
            setattr(item, key, value)
    db.session.flush()
    if diff:
        _audit(item, "inventory.update", session, diff)
    return item


def delete_inventory_item(session: Session, item: InventoryItem) -> InventoryItem:
    require_capability(session, Capability.MANAGE_INVENTORY)
    item.soft_delete()
    db.session.flush()
    _audit(item, "inventory.delete", session, {})
    return item
