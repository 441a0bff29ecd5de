"""
Tagged results returned by the pure rule functions.

Every rule returns either ``Accepted`` or ``Rejected(reason)``; callers that
need an exception (the backend services, the dispatch desk) use
``raise_if_rejected``.

Usage:
    from woodbank.services.rule_result import Accepted, Rejected, raise_if_rejected

    result = validate_assignment("scheduled", "2024-03-05", ["Dana"], [], pool)
    if not result.ok:
        print(result.reason)
    raise_if_rejected(result)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from woodbank.core.exceptions import ValidationError


@dataclass(frozen=True)
class Accepted:
    """The candidate mutation passed the rule."""

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {"ok": True}


@dataclass(frozen=True)
class Rejected:
    """The candidate mutation failed a rule; ``reason`` is user-facing."""

    reason: str
    details: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {"ok": False, "reason": self.reason, "details": dict(self.details)}


RuleResult = Accepted | Rejected

ACCEPTED = Accepted()


def raise_if_rejected(result: RuleResult) -> None:
    """Raise ValidationError carrying the rejection reason."""
    if not result.ok:
        raise ValidationError(result.reason, details=dict(result.details))
