"""Worker directory service.

Transaction policy: flush only; the route handler commits.
"""
import logging

from woodbank.core.exceptions import NotFoundError, ValidationError
from woodbank.models import db
from woodbank.models.audit import write_audit
from woodbank.models.user import WEEKDAYS, User
from woodbank.services import pii_policy
from woodbank.services.access import Capability, Session, require_capability
from woodbank.utils.helpers import parse_date

logger = logging.getLogger(__name__)

_LICENSE_FIELDS = ("driver_license_status", "driver_license_number", "driver_license_expires_on")


def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def list_workers(session: Session) -> list[dict]:
    """Return all workers, contact details masked for *session*."""
    users = User.query.order_by(User.name).all()
    return [pii_policy.mask_worker(u.to_dict(), session) for u in users]


def _flag(value, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise ValidationError(f"{field_name} must be true or false.", {"field": field_name})


def update_user_flags(session: Session, user: User, data: dict) -> User:
    """Set a worker's driver / HIPAA flags (and license fields in the same call).

    Turning ``is_driver`` on requires a license status and expiry, either
    already on the row or supplied in *data*.

    Raises:
        PolicyDenied: Role lacks ``manage_workers``.
        ValidationError: Driver flag without license details, or bad values.
    """
    require_capability(session, Capability.MANAGE_WORKERS)

    license_updates = {}
    for key in _LICENSE_FIELDS:
        if key in data:
            value = data[key]
            license_updates[key] = str(value).strip() if value not in (None, "") else None

    diff = {}
    if "is_driver" in data:
        is_driver = _flag(data["is_driver"], "is_driver")
        if is_driver:
            status = license_updates.get("driver_license_status", user.driver_license_status)
            expires = license_updates.get("driver_license_expires_on", user.driver_license_expires_on)
            if not (status or "").strip() or not (expires or "").strip():
                raise ValidationError(
                    "Driver license status and expiration date are required to mark a worker as a driver.",
                    {"fields": ["driver_license_status", "driver_license_expires_on"]},
                )
        if user.is_driver != is_driver:
            diff["is_driver"] = {"old": user.is_driver, "new": is_driver}
            user.is_driver = is_driver

    if "hipaa_certified" in data:
        hipaa = _flag(data["hipaa_certified"], "hipaa_certified")
        if user.hipaa_certified != hipaa:
            diff["hipaa_certified"] = {"old": user.hipaa_certified, "new": hipaa}
            user.hipaa_certified = hipaa

    for key, value in license_updates.items():
        if getattr(user, key) != value:
            diff[key] = {"old": getattr(user, key), "new": value}
            setattr(user, key, value)

    db.session.flush()
    if diff:
        try:
            write_audit(
                entity_type="user",
                entity_id=user.id,
                action="user.flags",
                actor=session.username or "system",
                actor_user_id=session.user_id,
                diff=diff,
            )
        except Exception:
            logger.warning("Audit log failed for user flags %s — main flow unaffected",
                           user.id, exc_info=True)
    return user


def available_drivers(on_date) -> list[dict]:
    """Drivers whose availability_schedule marks *on_date*'s weekday as available.

    Raises:
        ValidationError: *on_date* is missing or not a date.
    """
    day = parse_date(on_date)
    if day is None:
        raise ValidationError("A valid date (YYYY-MM-DD) is required.", {"field": "date"})
    weekday = WEEKDAYS[day.weekday()]
    drivers = User.query.filter_by(is_driver=True).order_by(User.name).all()
    return [
        {"id": u.id, "name": u.name, "username": u.username, "vehicle": u.vehicle}
        for u in drivers
        if u.schedule.get(weekday)
    ]
