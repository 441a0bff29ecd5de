"""
Roles, capabilities and the session the rules are evaluated for.

Role-gated behaviour goes through ``ROLE_CAPABILITIES``; no module compares
role strings directly.

Usage:
    from woodbank.services.access import Capability, Session, require_capability

    session = Session.from_row(user.to_dict())
    require_capability(session, Capability.APPROVE_CLIENTS)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from woodbank.core.exceptions import PolicyDenied


class Role(str, Enum):
    ADMIN = "admin"
    LEAD = "lead"
    STAFF = "staff"
    EMPLOYEE = "employee"
    VOLUNTEER = "volunteer"

    @classmethod
    def parse(cls, value) -> Role | None:
        """Return the Role for *value* (case-insensitive), or None if unknown."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None


class Capability(str, Enum):
    CREATE_WORK_ORDER = "create_work_order"
    EDIT_WORK_ORDER = "edit_work_order"
    UPDATE_WORK_ORDER_STATUS = "update_work_order_status"
    CLOSE_OUT_HOURS = "close_out_hours"
    MANAGE_CLIENTS = "manage_clients"
    APPROVE_CLIENTS = "approve_clients"
    MANAGE_WORKERS = "manage_workers"
    MANAGE_INVENTORY = "manage_inventory"


_OFFICE = frozenset({
    Capability.CREATE_WORK_ORDER,
    Capability.EDIT_WORK_ORDER,
    Capability.UPDATE_WORK_ORDER_STATUS,
    Capability.MANAGE_CLIENTS,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.LEAD: frozenset(Capability),
    Role.STAFF: _OFFICE,
    Role.EMPLOYEE: frozenset({Capability.UPDATE_WORK_ORDER_STATUS}),
    Role.VOLUNTEER: frozenset({Capability.UPDATE_WORK_ORDER_STATUS}),
}


@dataclass(frozen=True)
class Session:
    """The signed-in worker. Immutable for the lifetime of a login."""

    user_id: str
    username: str
    display_name: str
    role: Role | None
    hipaa_certified: bool = False
    is_driver: bool = False

    @classmethod
    def from_row(cls, row: dict) -> Session:
        """Build a session from a ``users`` row dict."""
        return cls(
            user_id=str(row.get("id") or ""),
            username=row.get("username") or "",
            display_name=row.get("name") or row.get("display_name") or "",
            role=Role.parse(row.get("role")),
            hipaa_certified=bool(row.get("hipaa_certified")),
            is_driver=bool(row.get("is_driver")),
        )

    @property
    def role_name(self) -> str | None:
        return self.role.value if self.role else None

    @property
    def identities(self) -> set[str]:
        """Lower-cased names this session is known by in assignee lists."""
        return {n.strip().lower() for n in (self.username, self.display_name) if n and n.strip()}


def has_capability(session: Session, capability: Capability) -> bool:
    if session.role is None:
        return False
    return capability in ROLE_CAPABILITIES.get(session.role, frozenset())


def require_capability(session: Session, capability: Capability) -> None:
    """Raise PolicyDenied unless the session's role holds *capability*."""
    if not has_capability(session, capability):
        raise PolicyDenied(
            actor=session.username or session.user_id or None,
            action=capability.value,
            reason=f"role '{session.role_name or 'unknown'}' lacks this capability",
        )
