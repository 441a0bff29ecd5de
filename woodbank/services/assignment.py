"""
Driver / helper assignment validation.

Rules run in order and the first failing rule wins:

1. A driver-requiring target status needs at least one assignee.
2. A driver-requiring target status needs a scheduled date.
3. No assigned driver may have availability notes that mark the scheduled
   weekday (or "any" day) as unavailable/off.
4. At most ``MAX_HELPERS`` helpers.

Rule 3 is a substring heuristic over free-text notes.  It approximates
availability and is kept exactly as operators rely on it; the structured
``availability_schedule`` map is the intended replacement.

Usage:
    from woodbank.services.assignment import validate_assignment

    result = validate_assignment("scheduled", "2024-03-05", ["Dana"], [], pool)
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime

from woodbank.services.rule_result import ACCEPTED, Rejected, RuleResult

logger = logging.getLogger(__name__)

DRIVER_REQUIRED_STATUSES = frozenset({"scheduled", "in_progress", "completed"})

MAX_HELPERS = 4

# Fixed English tokens so the check does not depend on the host locale
WEEKDAY_TOKENS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

MSG_NO_ASSIGNEE = "Assign at least one available driver for scheduled or in-progress work."
MSG_NO_DATE = "Pick a scheduled date/time when assigning a driver."


# ── Helpers ──────────────────────────────────────────────────────────────


def clean_names(names) -> list[str]:
    """Strip names and drop blanks, keeping order."""
    return [str(n).strip() for n in (names or []) if n is not None and str(n).strip()]


def assignees_of(order: dict) -> list[str]:
    """Return the assignee display names stored on a work-order row."""
    names = order.get("assignees")
    if names is None:
        raw = order.get("assignees_json")
        if not raw:
            return []
        try:
            names = json.loads(raw) if isinstance(raw, str) else raw
        except (json.JSONDecodeError, TypeError):
            logger.warning("Unreadable assignees_json on work order %s", order.get("id"))
            return []
    if not isinstance(names, list):
        return []
    return clean_names(names)


def helpers_of(order: dict) -> list[str]:
    """Return the helpers stored on a work-order row."""
    names = order.get("helpers")
    if names is None:
        raw = order.get("helpers_json")
        if not raw:
            return []
        try:
            names = json.loads(raw) if isinstance(raw, str) else raw
        except (json.JSONDecodeError, TypeError):
            logger.warning("Unreadable helpers_json on work order %s", order.get("id"))
            return []
    if not isinstance(names, list):
        return []
    return clean_names(names)


def drivers_of(order: dict) -> list[str]:
    """Return the drivers of a work-order row: the crew minus its helper tail."""
    names = order.get("drivers")
    if isinstance(names, list):
        return clean_names(names)
    crew, helpers = assignees_of(order), helpers_of(order)
    if helpers and crew[-len(helpers):] == helpers:
        return crew[:-len(helpers)]
    return crew


def parse_scheduled_date(value) -> date | None:
    """Parse a date, datetime or ISO-8601 string; None if it cannot be parsed."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None


def weekday_token(value) -> str | None:
    day = parse_scheduled_date(value)
    return WEEKDAY_TOKENS[day.weekday()] if day else None


def notes_mark_unavailable(notes: str | None, token: str) -> bool:
    """True when *notes* mention *token* (or "any") together with "unavailable"/"off"."""
    text = (notes or "").lower()
    mentions_day = token in text or "any" in text
    return mentions_day and ("unavailable" in text or "off" in text)


def _find_driver(name: str, driver_pool: list[dict]) -> dict | None:
    wanted = name.lower()
    for driver in driver_pool or []:
        for key in ("name", "username", "display_name"):
            candidate = driver.get(key)
            if candidate and str(candidate).strip().lower() == wanted:
                return driver
    return None


# ── Validator ────────────────────────────────────────────────────────────


def validate_assignment(
    target_status: str,
    scheduled_date,
    assignees,
    helpers,
    driver_pool: list[dict],
) -> RuleResult:
    """Validate the drivers and helpers chosen for a work order.

    Args:
        target_status: Status the order is moving to (or staying in).
        scheduled_date: ISO string, date or datetime; empty means unscheduled.
        assignees: Driver display names.
        helpers: Helper display names.
        driver_pool: User rows carrying ``name``/``username`` and
            ``availability_notes``.

    Returns:
        ``Accepted`` or ``Rejected(reason)``.
    """
    assignees = clean_names(assignees)
    helpers = clean_names(helpers)
    requires_driver = target_status in DRIVER_REQUIRED_STATUSES
    has_date = scheduled_date is not None and str(scheduled_date).strip() != ""

    if requires_driver and not assignees:
        return Rejected(MSG_NO_ASSIGNEE)

    if requires_driver and not has_date:
        return Rejected(MSG_NO_DATE)

    if has_date and assignees:
        token = weekday_token(scheduled_date)
        if token is None:
            return Rejected(
                f"Scheduled date '{scheduled_date}' is not a valid date.",
                {"scheduled_date": str(scheduled_date)},
            )
        flagged = []
        for name in assignees:
            driver = _find_driver(name, driver_pool)
            if driver and notes_mark_unavailable(driver.get("availability_notes"), token):
                flagged.append(name)
        if flagged:
            return Rejected(
                f"Unavailable on {token.capitalize()}: {', '.join(flagged)}. "
                "Check their availability notes or pick another driver.",
                {"unavailable_drivers": flagged, "weekday": token},
            )

    if len(helpers) > MAX_HELPERS:
        return Rejected(
            f"Select at most {MAX_HELPERS} helpers ({len(helpers)} selected).",
            {"helpers": len(helpers)},
        )

    return ACCEPTED
