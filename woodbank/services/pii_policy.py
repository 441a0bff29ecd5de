"""
PII visibility policy.

Full client PII (phone, email, addresses, gate combo, directions) is visible
to admins, HIPAA-certified leads and drivers.  Everyone else gets masked
placeholders.  Drivers whose access comes only from the driver flag see PII
on the orders they are assigned to and on those orders' clients.

Both predicates are evaluated fresh on every call; nothing is cached.

Usage:
    from woodbank.services.pii_policy import can_view_client_pii, mask_work_order

    rows = [mask_work_order(r, session) for r in work_orders]
"""

from __future__ import annotations

from woodbank.services.access import Role, Session
from woodbank.services.assignment import assignees_of

HIDDEN = "Hidden"
HIDDEN_NOTE = "—"

# Free-text access notes render as a dash rather than "Hidden"
_DASH_FIELDS = frozenset({"gate_combo", "directions"})

CLIENT_PII_FIELDS = (
    "telephone",
    "email",
    "physical_address_line1",
    "physical_address_line2",
    "physical_address_city",
    "physical_address_state",
    "physical_address_postal_code",
    "mailing_address_line1",
    "mailing_address_line2",
    "mailing_address_city",
    "mailing_address_state",
    "mailing_address_postal_code",
    "gate_combo",
    "directions",
)

WORK_ORDER_PII_FIELDS = (
    "telephone",
    "email",
    "physical_address_line1",
    "physical_address_city",
    "physical_address_state",
    "physical_address_postal_code",
    "town",
    "gate_combo",
    "directions",
)

WORKER_CONTACT_FIELDS = (
    "telephone",
    "email",
    "physical_address_line1",
    "physical_address_line2",
    "physical_address_city",
    "physical_address_state",
    "physical_address_postal_code",
    "mailing_address_line1",
    "mailing_address_line2",
    "mailing_address_city",
    "mailing_address_state",
    "mailing_address_postal_code",
    "driver_license_number",
)


# ── Predicates ───────────────────────────────────────────────────────────


def _has_hipaa_tier(session: Session) -> bool:
    if session.role is Role.ADMIN:
        return True
    return session.role is Role.LEAD and bool(session.hipaa_certified)


def can_view_client_pii(session: Session) -> bool:
    """Return True if *session* may see client contact and address fields.

    An unrecognised role is the most restrictive case, even for drivers.
    """
    if session.role is None:
        return False
    return _has_hipaa_tier(session) or bool(session.is_driver)


def can_view_driver_contact_details(session: Session) -> bool:
    """Return True if *session* may see other workers' contact details."""
    if session.role is None:
        return False
    return _has_hipaa_tier(session)


def is_driver_scoped(session: Session) -> bool:
    """True when PII access comes only from the driver flag."""
    return can_view_client_pii(session) and not _has_hipaa_tier(session)


def is_assigned_to(order: dict, session: Session) -> bool:
    names = {a.lower() for a in assignees_of(order)}
    return bool(names & session.identities)


def assigned_client_ids(orders: list[dict], session: Session) -> set[str]:
    """Client ids owning an order the session is assigned to."""
    return {
        str(o["client_id"]) for o in orders
        if o.get("client_id") and is_assigned_to(o, session)
    }


# ── Masking ──────────────────────────────────────────────────────────────


def _mask(row: dict, fields) -> dict:
    masked = dict(row)
    for f in fields:
        if f in masked:
            masked[f] = HIDDEN_NOTE if f in _DASH_FIELDS else HIDDEN
    masked["pii_masked"] = True
    return masked


def mask_client(row: dict, session: Session, *, assigned_client_ids: set[str] | None = None) -> dict:
    """Return a view of a client row with PII masked as the session requires.

    Args:
        row: Client row dict.
        session: Current session.
        assigned_client_ids: Clients owning an order assigned to the session.
            Only consulted for driver-scoped sessions; ``None`` means none.
    """
    if can_view_client_pii(session):
        if not is_driver_scoped(session) or str(row.get("id")) in (assigned_client_ids or set()):
            return {**row, "pii_masked": False}
    return _mask(row, CLIENT_PII_FIELDS)


def mask_work_order(row: dict, session: Session) -> dict:
    """Return a view of a work-order row with PII masked as the session requires."""
    if can_view_client_pii(session):
        if not is_driver_scoped(session) or is_assigned_to(row, session):
            return {**row, "pii_masked": False}
    return _mask(row, WORK_ORDER_PII_FIELDS)


def mask_worker(row: dict, session: Session) -> dict:
    """Hide another worker's contact details unless the session may see them."""
    if can_view_driver_contact_details(session) or str(row.get("id")) == session.user_id:
        return {**row, "pii_masked": False}
    return _mask(row, WORKER_CONTACT_FIELDS)
