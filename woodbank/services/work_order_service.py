"""Work order service layer.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().

Every mutation is gated by the pure rules before anything is written:
  - capability check (``access.require_capability``)
  - sizing resolution (``quantity``)
  - half-load pairing (``pairing.validate_pairing``)
  - status transition + preconditions (``work_order_lifecycle.check_transition``)

Accepted status changes append a WorkOrderStatusHistory row; every
mutation appends an audit row.
"""
import logging

from woodbank.core.exceptions import NotFoundError, ValidationError
from woodbank.models import db
from woodbank.models.audit import write_audit
from woodbank.models.client import Client
from woodbank.models.user import User
from woodbank.models.work_order import WorkOrder, WorkOrderStatusHistory
from woodbank.services import pii_policy
from woodbank.services.access import Capability, Session, require_capability
from woodbank.services.assignment import clean_names
from woodbank.services.code_generator import generate_work_order_number
from woodbank.services.pairing import find_pairable_half_orders, validate_pairing
from woodbank.services.quantity import resolve_delivery_size, resolve_pickup_quantity
from woodbank.services.rule_result import raise_if_rejected
from woodbank.services.work_order_lifecycle import (
    INITIAL_STATUS,
    TERMINAL_STATUSES,
    check_transition,
)

logger = logging.getLogger(__name__)

# Payload keys that count as editing the order (not just moving its status)
_EDIT_KEYS = frozenset({
    "scheduled_date", "assignees", "helpers", "notes",
    "delivery_choice", "other_details", "other_cords", "paired_order_id",
    "pickup_mode", "pickup_cords", "pickup_length", "pickup_width",
    "pickup_height", "pickup_units",
})

_DELIVERY_KEYS = ("delivery_choice", "other_details", "other_cords")
_PICKUP_KEYS = ("pickup_mode", "pickup_cords", "pickup_length", "pickup_width",
                "pickup_height", "pickup_units")


# ── Lookups ──────────────────────────────────────────────────────────────


def get_work_order(order_id) -> WorkOrder:
    order = db.session.get(WorkOrder, order_id)
    if order is None or order.is_deleted:
        raise NotFoundError("WorkOrder", order_id)
    return order


def driver_pool() -> list[dict]:
    return [u.to_dict() for u in User.query.order_by(User.name).all()]


def active_order_rows() -> list[dict]:
    orders = WorkOrder.query_active().order_by(WorkOrder.created_at).all()
    return [o.to_dict() for o in orders]


def list_work_orders(session: Session, status: str | None = None) -> list[dict]:
    """Return active work orders as masked view models for *session*."""
    q = WorkOrder.query_active()
    if status:
        q = q.filter_by(status=status)
    orders = q.order_by(WorkOrder.scheduled_date.is_(None), WorkOrder.scheduled_date,
                        WorkOrder.created_at).all()
    return [pii_policy.mask_work_order(o.to_dict(), session) for o in orders]


def pairable_orders(client_id) -> list[dict]:
    return find_pairable_half_orders(active_order_rows(), client_id)


def list_status_history(order_id) -> list[dict]:
    order = get_work_order(order_id)
    return [h.to_dict() for h in order.status_history.all()]


# ── Helpers ──────────────────────────────────────────────────────────────


def _resolve_sizing(data: dict) -> dict:
    """Resolve delivery or pickup sizing from the payload into column values."""
    fields = {}
    if data.get("delivery_choice"):
        size = resolve_delivery_size(
            data["delivery_choice"], data.get("other_details"), data.get("other_cords"),
        )
        fields.update(
            delivery_choice=data["delivery_choice"].strip().lower(),
            delivery_size_label=size.label,
            delivery_size_cords=size.cords,
        )
    if data.get("pickup_mode"):
        mode = data["pickup_mode"].strip().lower()
        units = data.get("pickup_units") or "ft"
        cords = resolve_pickup_quantity(
            mode,
            data.get("pickup_cords"),
            length=data.get("pickup_length"),
            width=data.get("pickup_width"),
            height=data.get("pickup_height"),
            units=units,
        )
        fields.update(pickup_delivery_type=mode, pickup_quantity_cords=cords)
        if mode == "dimensions":
            fields.update(
                pickup_length=float(data["pickup_length"]),
                pickup_width=float(data["pickup_width"]),
                pickup_height=float(data["pickup_height"]),
                pickup_units=units.strip().lower(),
            )
        else:
            fields.update(pickup_length=None, pickup_width=None, pickup_height=None, pickup_units=None)
    return fields


def _optional_float(data: dict, key: str):
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number.", {"field": key}) from None


def _rule_changes(data: dict, sizing: dict) -> dict:
    """Candidate fields the lifecycle rules look at."""
    changes = {k: data[k] for k in ("status", "scheduled_date", "mileage", "work_hours") if k in data}
    for key in ("assignees", "helpers"):
        if key in data:
            changes[key] = clean_names(data[key])
    if "pickup_quantity_cords" in sizing:
        changes["pickup_quantity_cords"] = sizing["pickup_quantity_cords"]
    return changes


def _record_status_change(order: WorkOrder, old_status, session: Session, notes=None):
    history = WorkOrderStatusHistory(
        work_order_id=order.id,
        old_status=old_status,
        new_status=order.status,
        changed_by_user_id=session.user_id,
        changed_by_display=session.display_name,
        mileage_recorded=order.mileage,
        work_hours_recorded=order.work_hours,
        notes=notes,
    )
    db.session.add(history)
    db.session.flush()
    return history


def _audit(order: WorkOrder, action: str, session: Session, diff: dict):
    try:
        write_audit(
            entity_type="work_order",
            entity_id=order.id,
            action=action,
            actor=session.username or "system",
            actor_user_id=session.user_id,
            diff=diff,
        )
    except Exception:
        logger.warning("Audit log failed for %s on work order %s — main flow unaffected",
                       action, order.id, exc_info=True)


# ── Create ───────────────────────────────────────────────────────────────


def create_work_order(session: Session, data: dict) -> WorkOrder:
    """Create a work order in ``received`` (or a status reachable from it).

    Args:
        session: Acting worker; needs ``create_work_order``.
        data: Request payload (client_id, sizing fields, assignees, helpers,
            status, scheduled_date, mileage, work_hours, paired_order_id, notes).

    Returns:
        WorkOrder instance (already flushed).

    Raises:
        PolicyDenied: Role lacks the capability.
        ValidationError: Any rule rejected the order; nothing is written.
        NotFoundError: client_id does not reference an active client.
    """
    require_capability(session, Capability.CREATE_WORK_ORDER)
    if data.get("status") not in (None, "", INITIAL_STATUS):
        require_capability(session, Capability.UPDATE_WORK_ORDER_STATUS)

    client_id = data.get("client_id")
    if not client_id:
        raise ValidationError("client_id is required", {"field": "client_id"})
    client = db.session.get(Client, client_id)
    if client is None or client.is_deleted:
        raise NotFoundError("Client", client_id)

    sizing = _resolve_sizing(data)
    raise_if_rejected(validate_pairing(
        sizing.get("delivery_choice"), data.get("paired_order_id"),
        active_order_rows(), client.id,
    ))
    raise_if_rejected(check_transition(None, _rule_changes(data, sizing), session, driver_pool()))

    order = WorkOrder(
        client_id=client.id,
        client_name=client.name,
        status=data.get("status") or INITIAL_STATUS,
        scheduled_date=data.get("scheduled_date") or None,
        notes=data.get("notes"),
        telephone=client.telephone,
        physical_address_line1=client.physical_address_line1,
        physical_address_city=client.physical_address_city,
        physical_address_state=client.physical_address_state,
        physical_address_postal_code=client.physical_address_postal_code,
        gate_combo=client.gate_combo,
        directions=client.directions,
        paired_order_id=data.get("paired_order_id") or None,
        mileage=_optional_float(data, "mileage"),
        work_hours=_optional_float(data, "work_hours"),
        created_by_display=session.display_name or session.username,
        **sizing,
    )
    order.set_crew(clean_names(data.get("assignees")), clean_names(data.get("helpers")))
    order.work_order_number = generate_work_order_number()
    db.session.add(order)
    db.session.flush()

    _record_status_change(order, None, session)
    _audit(order, "work_order.create", session, {"status": order.status, "client_id": client.id})
    logger.info("Work order %s created for client %s [%s]", order.id, client.id, order.status,
                extra={"work_order_id": order.id, "client_id": client.id})
    return order


# ── Update / transition ──────────────────────────────────────────────────


def update_work_order(session: Session, order: WorkOrder, data: dict) -> WorkOrder:
    """Apply an edit and/or status change to *order*.

    Status-only payloads (``status``, ``mileage``, ``work_hours``) need
    ``update_work_order_status``; anything touching schedule, assignment or
    sizing also needs ``edit_work_order``.

    Returns the updated WorkOrder.

    Raises:
        PolicyDenied, ValidationError as for ``create_work_order``.
    """
    require_capability(session, Capability.UPDATE_WORK_ORDER_STATUS)
    if _EDIT_KEYS.intersection(data):
        require_capability(session, Capability.EDIT_WORK_ORDER)

    row = order.to_dict()
    if order.status in TERMINAL_STATUSES:
        raise_if_rejected(check_transition(row, {}, session))

    sizing = _resolve_sizing(data)
    if "paired_order_id" in data or "delivery_choice" in data:
        others = [o for o in active_order_rows() if o["id"] != order.id]
        raise_if_rejected(validate_pairing(
            sizing.get("delivery_choice", order.delivery_choice),
            data.get("paired_order_id", order.paired_order_id),
            others, order.client_id, order_id=order.id,
        ))
    raise_if_rejected(check_transition(row, _rule_changes(data, sizing), session, driver_pool()))

    old_status = order.status
    diff = {}
    for key in ("status", "scheduled_date", "notes", "paired_order_id"):
        if key in data:
            value = data[key] or None
            if key == "status" and not value:
                continue
            if getattr(order, key) != value:
                diff[key] = {"old": getattr(order, key), "new": value}
                setattr(order, key, value)
    for key in ("mileage", "work_hours"):
        if key in data:
            value = _optional_float(data, key)
            if getattr(order, key) != value:
                diff[key] = {"old": getattr(order, key), "new": value}
                setattr(order, key, value)
    for key, value in sizing.items():
        if getattr(order, key) != value:
            diff[key] = {"old": getattr(order, key), "new": value}
            setattr(order, key, value)
    if "assignees" in data or "helpers" in data:
        drivers = clean_names(data["assignees"]) if "assignees" in data else order.drivers
        helpers = clean_names(data["helpers"]) if "helpers" in data else order.helpers
        if drivers != order.drivers or helpers != order.helpers:
            diff["assignees"] = {"old": order.drivers, "new": drivers}
            diff["helpers"] = {"old": order.helpers, "new": helpers}
            order.set_crew(drivers, helpers)
    db.session.flush()

    if order.status != old_status:
        _record_status_change(order, old_status, session, notes=data.get("status_notes"))
        _audit(order, "work_order.transition", session, diff)
        logger.info("Work order %s: %s → %s by %s", order.id, old_status, order.status,
                    session.username, extra={"work_order_id": order.id})
    elif diff:
        _audit(order, "work_order.update", session, diff)
    return order


def transition_work_order(
    session: Session,
    order_id,
    new_status: str,
    *,
    mileage=None,
    work_hours=None,
    notes: str | None = None,
) -> WorkOrder:
    """Move a work order to *new_status*, recording close-out figures.

    Raises ValidationError on rejection before anything is written.
    """
    order = get_work_order(order_id)
    data = {"status": new_status}
    if mileage is not None:
        data["mileage"] = mileage
    if work_hours is not None:
        data["work_hours"] = work_hours
    if notes:
        data["status_notes"] = notes
    return update_work_order(session, order, data)
