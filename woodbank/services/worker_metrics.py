"""
Worker credit derived from delivery events.

Recomputed from the loaded rows on every reload; nothing is stored.

For each delivery event assigned to the session (username or display name,
case-insensitive):
    deliveries += 1
    hours      += max(0.1, mileage * 0.75 / 60) when the linked order has
                  mileage >= 0, else 1.5
    wood cords += linked delivery_size_cords when > 0, else 0.33
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from woodbank.services.access import Session

logger = logging.getLogger(__name__)

HOURS_PER_MILE = 0.75 / 60
MIN_TRIP_HOURS = 0.1
DEFAULT_TRIP_HOURS = 1.5
DEFAULT_WOOD_CREDIT_CORDS = 0.33


@dataclass(frozen=True)
class WorkerCredit:
    hours: float = 0.0
    deliveries: int = 0
    wood_credit_cords: float = 0.0

    def to_dict(self) -> dict:
        return {
            "hours": self.hours,
            "deliveries": self.deliveries,
            "wood_credit_cords": self.wood_credit_cords,
        }


def _assigned_ids(event: dict) -> list[str]:
    ids = event.get("assigned_user_ids")
    if ids is None:
        raw = event.get("assigned_user_ids_json")
        if not raw:
            return []
        try:
            ids = json.loads(raw) if isinstance(raw, str) else raw
        except (json.JSONDecodeError, TypeError):
            logger.warning("Unreadable assigned_user_ids_json on event %s", event.get("id"))
            return []
    if not isinstance(ids, list):
        return []
    return [str(i).strip().lower() for i in ids if i is not None and str(i).strip()]


def _as_float(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def trip_hours(mileage) -> float:
    miles = _as_float(mileage)
    if miles is None or miles < 0:
        return DEFAULT_TRIP_HOURS
    return max(MIN_TRIP_HOURS, miles * HOURS_PER_MILE)


def wood_credit(delivery_size_cords) -> float:
    cords = _as_float(delivery_size_cords)
    if cords is None or cords <= 0:
        return DEFAULT_WOOD_CREDIT_CORDS
    return cords


def compute_worker_credit(session: Session, work_orders: list[dict], delivery_events: list[dict]) -> WorkerCredit:
    """Sum the hours, deliveries and wood credit earned by *session*."""
    me = session.identities
    if not me:
        return WorkerCredit()

    orders_by_id = {str(o.get("id")): o for o in work_orders if o.get("id") is not None}
    hours = 0.0
    deliveries = 0
    wood = 0.0
    for event in delivery_events:
        if not me.intersection(_assigned_ids(event)):
            continue
        order = orders_by_id.get(str(event.get("work_order_id"))) or {}
        deliveries += 1
        hours += trip_hours(order.get("mileage"))
        wood += wood_credit(order.get("delivery_size_cords"))
    return WorkerCredit(hours=hours, deliveries=deliveries, wood_credit_cords=wood)
