"""
Work Order Lifecycle — status transitions and their preconditions.

Manages work-order status changes with:
  - Transition validation (WORK_ORDER_TRANSITIONS)
  - Entry preconditions per target status (assignees, date, pickup
    quantity, mileage, work hours)
  - Assignment rules (see ``assignment.validate_assignment``)

Saving a non-terminal order without changing its status is an edit and
re-runs the preconditions of the status it stays in.  Terminal orders
(completed, cancelled) accept no mutation at all.

Usage:
    from woodbank.services.work_order_lifecycle import check_transition

    result = check_transition(order, {"status": "completed", "mileage": 12.5},
                              session, driver_pool)
    if not result.ok:
        flash(result.reason)
"""

from __future__ import annotations

import math

from woodbank.services.access import Capability, Session, has_capability
from woodbank.services.assignment import clean_names, drivers_of, helpers_of, validate_assignment
from woodbank.services.rule_result import ACCEPTED, Rejected, RuleResult

WORK_ORDER_STATUSES = (
    "received",
    "scheduled",
    "rescheduled",
    "in_progress",
    "picked_up",
    "completed",
    "cancelled",
)

INITIAL_STATUS = "received"

TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

WORK_ORDER_TRANSITIONS: dict[str, list[str]] = {
    "received": ["scheduled", "rescheduled", "picked_up", "completed", "cancelled"],
    "scheduled": ["rescheduled", "in_progress", "completed", "cancelled"],
    "rescheduled": ["scheduled", "in_progress", "completed", "cancelled"],
    "in_progress": ["completed", "cancelled"],
    "picked_up": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
}

MSG_MILEAGE_REQUIRED = "Mileage is required to close an order."
MSG_HOURS_REQUIRED = "Work hours are required to close an order."
MSG_PICKUP_REQUIRED = "Record the pickup quantity (dimensions or cords) before marking the order picked up."


def validate_work_order_transition(old_status: str, new_status: str) -> bool:
    """Return True if moving from *old_status* to *new_status* is allowed."""
    return new_status in WORK_ORDER_TRANSITIONS.get(old_status, [])


def allowed_next_statuses(status: str) -> list[str]:
    return list(WORK_ORDER_TRANSITIONS.get(status, []))


def _number_or_none(value):
    """Return a float, None for empty input, or the sentinel ``False`` for junk."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return number if math.isfinite(number) else False


def _check_close_out(candidate: dict, session: Session) -> RuleResult:
    mileage = _number_or_none(candidate.get("mileage"))
    if mileage is None:
        return Rejected(MSG_MILEAGE_REQUIRED, {"field": "mileage"})
    if mileage is False or mileage < 0:
        return Rejected("Mileage must be a number of miles, zero or more.", {"field": "mileage"})

    hours = _number_or_none(candidate.get("work_hours"))
    if hours is False or (hours is not None and hours < 0):
        return Rejected("Work hours must be a number, zero or more.", {"field": "work_hours"})
    if hours is None and has_capability(session, Capability.CLOSE_OUT_HOURS):
        return Rejected(MSG_HOURS_REQUIRED, {"field": "work_hours"})
    return ACCEPTED


def _check_pickup(candidate: dict) -> RuleResult:
    cords = _number_or_none(candidate.get("pickup_quantity_cords"))
    if cords is None or cords is False or cords <= 0:
        return Rejected(MSG_PICKUP_REQUIRED, {"field": "pickup_quantity_cords"})
    return ACCEPTED


def check_transition(
    order: dict | None,
    changes: dict,
    session: Session,
    driver_pool: list[dict] | None = None,
) -> RuleResult:
    """Gate a status change or edit of a work order.

    Args:
        order: Current work-order row, or None for an order being created
            (which starts in ``received``).
        changes: Candidate fields: ``status``, ``scheduled_date``,
            ``assignees`` (drivers), ``helpers``, ``mileage``, ``work_hours``,
            ``pickup_quantity_cords``.  Missing keys keep the current value.
        session: The acting worker; decides whether hours are required.
        driver_pool: Worker rows for the availability check.

    Returns:
        ``Accepted`` or ``Rejected(reason)``.  Pure; writes nothing.
    """
    changes = changes or {}
    current = (order or {}).get("status") or INITIAL_STATUS
    if current in TERMINAL_STATUSES:
        return Rejected(
            f"This work order is {current} and can no longer be changed.",
            {"status": current},
        )

    candidate = {**(order or {}), **changes}
    target = changes.get("status") or current
    if target not in WORK_ORDER_STATUSES:
        return Rejected(f"Unknown work order status: '{target}'.", {"status": target})
    if target != current and not validate_work_order_transition(current, target):
        return Rejected(
            f"Cannot move a work order from {current} to {target}.",
            {"from": current, "to": target, "allowed": allowed_next_statuses(current)},
        )

    if target == "cancelled":
        return ACCEPTED

    if target == "picked_up":
        result = _check_pickup(candidate)
        if not result.ok:
            return result

    if target == "completed":
        result = _check_close_out(candidate, session)
        if not result.ok:
            return result

    if "assignees" in changes:
        drivers = clean_names(changes["assignees"])
    else:
        drivers = drivers_of(order or {})
    if "helpers" in changes:
        helpers = clean_names(changes["helpers"])
    else:
        helpers = helpers_of(order or {})

    # rescheduled carries the same entry requirements as scheduled
    rule_status = "scheduled" if target == "rescheduled" else target
    return validate_assignment(
        rule_status,
        candidate.get("scheduled_date"),
        drivers,
        helpers,
        driver_pool or [],
    )
