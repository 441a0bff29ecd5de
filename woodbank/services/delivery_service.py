"""Delivery calendar events and the worker credit derived from them."""
import json
import logging

from woodbank.core.exceptions import ValidationError
from woodbank.models import db
from woodbank.models.audit import write_audit
from woodbank.models.delivery import EVENT_TYPES, DeliveryEvent
from woodbank.models.work_order import WorkOrder
from woodbank.services.access import Capability, Session, require_capability
from woodbank.services.assignment import clean_names, parse_scheduled_date
from woodbank.services.work_order_service import get_work_order
from woodbank.services.worker_metrics import WorkerCredit, compute_worker_credit

logger = logging.getLogger(__name__)


def list_delivery_events(start: str | None = None, end: str | None = None) -> list[dict]:
    q = DeliveryEvent.query
    if start:
        q = q.filter(DeliveryEvent.start_date >= start)
    if end:
        q = q.filter(DeliveryEvent.start_date <= end)
    return [e.to_dict() for e in q.order_by(DeliveryEvent.start_date).all()]


def create_delivery_event(session: Session, data: dict) -> DeliveryEvent:
    """Add a calendar event, optionally linked to a work order.

    When linked and no assignees are given, the work order's assignees are
    copied onto the event.
    """
    require_capability(session, Capability.EDIT_WORK_ORDER)

    event_type = (data.get("event_type") or "delivery").strip().lower()
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"Invalid event_type: '{event_type}'.", {"allowed": sorted(EVENT_TYPES)})
    start = data.get("start_date")
    if parse_scheduled_date(start) is None:
        raise ValidationError("start_date must be an ISO date or date-time.", {"field": "start_date"})
    if data.get("end_date") and parse_scheduled_date(data["end_date"]) is None:
        raise ValidationError("end_date must be an ISO date or date-time.", {"field": "end_date"})

    order = get_work_order(data["work_order_id"]) if data.get("work_order_id") else None
    assigned = clean_names(data.get("assigned_user_ids"))
    if not assigned and order is not None:
        assigned = order.assignees
    title = (data.get("title") or "").strip()
    if not title:
        title = f"{event_type.capitalize()}: {order.client_name}" if order else event_type.capitalize()

    event = DeliveryEvent(
        title=title,
        event_type=event_type,
        start_date=str(start),
        end_date=data.get("end_date") or None,
        work_order_id=order.id if order else None,
        color_code=data.get("color_code"),
        assigned_user_ids_json=json.dumps(assigned),
    )
    db.session.add(event)
    db.session.flush()
    try:
        write_audit(
            entity_type="delivery_event",
            entity_id=event.id,
            action="delivery_event.create",
            actor=session.username or "system",
            actor_user_id=session.user_id,
            diff={"work_order_id": event.work_order_id, "assigned": assigned},
        )
    except Exception:
        logger.warning("Audit log failed for delivery event %s — main flow unaffected",
                       event.id, exc_info=True)
    return event


def worker_credit_for(session: Session) -> WorkerCredit:
    """Recompute the session's credit from the current rows."""
    orders = [o.to_dict() for o in WorkOrder.query.all()]
    events = [e.to_dict() for e in DeliveryEvent.query.all()]
    return compute_worker_credit(session, orders, events)
