"""Client intake and approval service.

Transaction policy: methods use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().

Operations:
- create_client with field normalisation and duplicate-household check
- update_client / soft_delete_client
- set_approval_status with approval history
- list_clients with PII masking for the session
"""
import logging

from sqlalchemy import func

from woodbank.core.exceptions import NotFoundError, ValidationError
from woodbank.models import db
from woodbank.models.audit import write_audit
from woodbank.models.client import APPROVAL_STATUSES, Client, ClientApprovalHistory
from woodbank.models.user import User
from woodbank.services import pii_policy
from woodbank.services.access import Capability, Session, require_capability
from woodbank.services.work_order_service import active_order_rows
from woodbank.utils.formatting import (
    init_cap_city,
    is_valid_email,
    is_valid_phone,
    is_valid_postal,
    is_valid_state,
    normalize_phone,
    normalize_postal,
    normalize_state,
)
from woodbank.utils.helpers import parse_date

logger = logging.getLogger(__name__)

MSG_CONFLICT = "Name already exists at a different address. Verify before creating."

_TEXT_FIELDS = (
    "name", "email", "telephone",
    "physical_address_line1", "physical_address_line2", "physical_address_city",
    "physical_address_state", "physical_address_postal_code",
    "mailing_address_line1", "mailing_address_line2", "mailing_address_city",
    "mailing_address_state", "mailing_address_postal_code",
    "how_did_they_hear_about_us", "referring_agency",
    "wood_size_label", "wood_size_other", "gate_combo", "directions", "notes",
    "preferred_driver_id",
)

_REQUIRED_FIELDS = (
    "name", "physical_address_line1", "physical_address_city",
    "physical_address_state", "physical_address_postal_code",
)


# ── Validation ───────────────────────────────────────────────────────────


def _clean(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_client_fields(data: dict, *, existing: dict | None = None) -> dict:
    """Return cleaned column values from *data*.

    With *existing*, only keys present in *data* are returned but the
    combined record is validated.

    Raises:
        ValidationError: with ``details["fields"]`` naming each bad field.
    """
    fields = {k: _clean(data[k]) for k in _TEXT_FIELDS if k in data}

    if fields.get("telephone"):
        fields["telephone"] = normalize_phone(fields["telephone"])
    for prefix in ("physical_address", "mailing_address"):
        if fields.get(f"{prefix}_state"):
            fields[f"{prefix}_state"] = normalize_state(fields[f"{prefix}_state"])
        if fields.get(f"{prefix}_postal_code"):
            fields[f"{prefix}_postal_code"] = normalize_postal(fields[f"{prefix}_postal_code"])
        if fields.get(f"{prefix}_city"):
            fields[f"{prefix}_city"] = init_cap_city(fields[f"{prefix}_city"])
    if "opt_out_email" in data:
        fields["opt_out_email"] = bool(data["opt_out_email"])
    if "default_mileage" in data:
        try:
            fields["default_mileage"] = float(data["default_mileage"]) if data["default_mileage"] not in (None, "") else None
        except (TypeError, ValueError):
            raise ValidationError("default_mileage must be a number.", {"fields": ["default_mileage"]}) from None
    if "date_of_onboarding" in data:
        fields["date_of_onboarding"] = parse_date(data["date_of_onboarding"])

    merged = {**(existing or {}), **fields}
    errors = {}
    for key in _REQUIRED_FIELDS:
        if not merged.get(key):
            errors[key] = "required"
    if not merged.get("telephone") and not merged.get("email"):
        errors["telephone"] = "telephone or email is required"
    if merged.get("telephone") and not is_valid_phone(merged["telephone"]):
        errors["telephone"] = "must be (###) ###-####"
    if merged.get("email") and not is_valid_email(merged["email"]):
        errors["email"] = "invalid email address"
    for prefix in ("physical_address", "mailing_address"):
        state = merged.get(f"{prefix}_state")
        if state and not is_valid_state(state):
            errors[f"{prefix}_state"] = "must be a 2-letter US state code"
        postal = merged.get(f"{prefix}_postal_code")
        if postal and not is_valid_postal(postal):
            errors[f"{prefix}_postal_code"] = "must be ##### or #####-####"
    if merged.get("preferred_driver_id") and db.session.get(User, merged["preferred_driver_id"]) is None:
        errors["preferred_driver_id"] = "unknown worker"

    if errors:
        first = next(iter(errors))
        raise ValidationError(
            f"Client details are incomplete or invalid ({first}: {errors[first]}).",
            {"fields": errors},
        )
    return fields


def check_client_conflict(name: str, physical_address_line1: str, *, exclude_id=None) -> list[dict]:
    """Return active clients with the same name at a different physical address."""
    if not name:
        return []
    q = Client.query_active().filter(func.lower(Client.name) == name.strip().lower())
    if exclude_id:
        q = q.filter(Client.id != exclude_id)
    address = (physical_address_line1 or "").strip().lower()
    return [
        {
            "id": c.id,
            "name": c.name,
            "physical_address_line1": c.physical_address_line1,
            "physical_address_city": c.physical_address_city,
            "physical_address_state": c.physical_address_state,
        }
        for c in q.all()
        if (c.physical_address_line1 or "").strip().lower() != address
    ]


def get_client(client_id) -> Client:
    client = db.session.get(Client, client_id)
    if client is None or client.is_deleted:
        raise NotFoundError("Client", client_id)
    return client


def _audit(client: Client, action: str, session: Session, diff: dict):
    try:
        write_audit(
            entity_type="client",
            entity_id=client.id,
            action=action,
            actor=session.username or "system",
            actor_user_id=session.user_id,
            diff=diff,
        )
    except Exception:
        logger.warning("Audit log failed for %s on client %s — main flow unaffected",
                       action, client.id, exc_info=True)


# ── Operations ───────────────────────────────────────────────────────────


def _assigned_ids(session: Session) -> set[str] | None:
    if pii_policy.is_driver_scoped(session):
        return pii_policy.assigned_client_ids(active_order_rows(), session)
    return None


def mask_client_for(client: Client, session: Session) -> dict:
    """Return *client* as a view model masked for *session*."""
    return pii_policy.mask_client(client.to_dict(), session, assigned_client_ids=_assigned_ids(session))


def list_clients(session: Session, approval_status: str | None = None) -> list[dict]:
    """Return active clients masked for *session*."""
    q = Client.query_active()
    if approval_status:
        q = q.filter_by(approval_status=approval_status)
    clients = q.order_by(Client.name).all()

    assigned = _assigned_ids(session)
    return [pii_policy.mask_client(c.to_dict(), session, assigned_client_ids=assigned) for c in clients]


def create_client(session: Session, data: dict, *, force: bool = False) -> Client:
    """Onboard a client.

    approval_status defaults to ``pending``, or ``approved`` when a
    referring agency is given.  A same-name client at a different address
    blocks creation unless *force*.

    Returns:
        Client instance (already flushed).
    """
    require_capability(session, Capability.MANAGE_CLIENTS)
    fields = normalize_client_fields(data)

    if not force:
        conflicts = check_client_conflict(fields["name"], fields["physical_address_line1"])
        if conflicts:
            raise ValidationError(MSG_CONFLICT, {"conflicts": conflicts})

    status = "approved" if fields.get("referring_agency") else "pending"
    client = Client(approval_status=status, **fields)
    db.session.add(client)
    db.session.flush()

    db.session.add(ClientApprovalHistory(
        client_id=client.id,
        old_status=None,
        new_status=status,
        changed_by_user_id=session.user_id,
        reason="Referred by agency" if status == "approved" else None,
    ))
    db.session.flush()
    _audit(client, "client.create", session, {"approval_status": status})
    logger.info("Client %s onboarded [%s]", client.id, status, extra={"client_id": client.id})
    return client


def update_client(session: Session, client: Client, data: dict, *, force: bool = False) -> Client:
    """Edit a client's profile. approval_status is changed via set_approval_status."""
    require_capability(session, Capability.MANAGE_CLIENTS)
    fields = normalize_client_fields(data, existing=client.to_dict())

    if not force and ("name" in fields or "physical_address_line1" in fields):
        conflicts = check_client_conflict(
            fields.get("name", client.name),
            fields.get("physical_address_line1", client.physical_address_line1),
            exclude_id=client.id,
        )
        if conflicts:
            raise ValidationError(MSG_CONFLICT, {"conflicts": conflicts})

    diff = {}
    for key, value in fields.items():
        if getattr(client, key) != value:
            diff[key] = {"old": getattr(client, key), "new": value}
            setattr(client, key, value)
    db.session.flush()
    if diff:
        _audit(client, "client.update", session, diff)
    return client


def set_approval_status(session: Session, client: Client, new_status: str,
                        reason: str | None = None, notes: str | None = None) -> Client:
    """Change a client's approval status and append approval history.

    Raises:
        PolicyDenied: Role lacks ``approve_clients``.
        ValidationError: Unknown status, or ``denied`` without a reason.
    """
    require_capability(session, Capability.APPROVE_CLIENTS)
    new_status = (new_status or "").strip().lower()
    if new_status not in APPROVAL_STATUSES:
        raise ValidationError(
            f"Invalid approval status: '{new_status}'.",
            {"allowed": sorted(APPROVAL_STATUSES)},
        )
    reason = _clean(reason)
    if new_status == "denied" and not reason:
        raise ValidationError("A reason is required when denying a client.", {"field": "reason"})

    old_status = client.approval_status
    client.approval_status = new_status
    client.denial_reason = reason if new_status == "denied" else None
    db.session.add(ClientApprovalHistory(
        client_id=client.id,
        old_status=old_status,
        new_status=new_status,
        changed_by_user_id=session.user_id,
        reason=reason,
        notes=_clean(notes),
    ))
    db.session.flush()
    _audit(client, "client.approval", session,
           {"approval_status": {"old": old_status, "new": new_status}, "reason": reason})
    logger.info("Client %s approval: %s → %s", client.id, old_status, new_status,
                extra={"client_id": client.id})
    return client


def soft_delete_client(session: Session, client: Client) -> Client:
    """Mark a client deleted; the row and its work orders are kept."""
    require_capability(session, Capability.MANAGE_CLIENTS)
    client.soft_delete()
    db.session.flush()
    _audit(client, "client.delete", session, {})
    return client
