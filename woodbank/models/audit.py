"""
Firewood Bank Work Order Engine
Audit domain model.

Models:
    - AuditLog: append-only trail of every mutation (client intake,
      approval changes, work-order transitions, worker flag changes).
"""

import json
import uuid
from datetime import datetime, timezone

from woodbank.models import db


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"client", "work_order", "user", "delivery_event"}

AUDIT_ACTIONS = {
    "client.create",
    "client.update",
    "client.delete",
    "client.approval",
    "work_order.create",
    "work_order.update",
    "work_order.transition",
    "user.flags",
    "delivery_event.create",
}


class AuditLog(db.Model):
    """
    Immutable audit row.

    ``diff_json`` carries ``{field: {old, new}}`` for edits and the
    transition payload for status changes.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_action", "action"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="client | work_order | user | delivery_event",
    )
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(
        db.String(60), nullable=False,
        comment="work_order.transition | client.approval | …",
    )
    actor = db.Column(db.String(150), nullable=False, default="system")
    actor_user_id = db.Column(db.String(36), nullable=True, index=True)
    diff_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "actor_user_id": self.actor_user_id,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor: str = "system",
    actor_user_id: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor,
        actor_user_id=actor_user_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
