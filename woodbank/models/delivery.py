"""
Firewood Bank Work Order Engine
Calendar events.

DeliveryEvent rows feed worker credit and the driver's day view.  They are
created and read; no rule mutates them afterwards.
"""

import json
import uuid
from datetime import datetime, timezone

from woodbank.models import db

EVENT_TYPES = {"delivery", "cutting", "splitting"}


class DeliveryEvent(db.Model):
    __tablename__ = "delivery_events"
    __table_args__ = (
        db.CheckConstraint(
            "event_type IN ('delivery','cutting','splitting')",
            name="ck_delivery_events_type",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(200), nullable=False)
    event_type = db.Column(db.String(20), nullable=False, default="delivery")
    start_date = db.Column(db.String(32), nullable=False)
    end_date = db.Column(db.String(32), nullable=True)
    work_order_id = db.Column(
        db.String(36), db.ForeignKey("work_orders.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    color_code = db.Column(db.String(20), nullable=True)
    assigned_user_ids_json = db.Column(
        db.Text, nullable=False, default="[]",
        comment="JSON list of usernames / display names",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def assigned_user_ids(self) -> list:
        try:
            ids = json.loads(self.assigned_user_ids_json or "[]")
        except (json.JSONDecodeError, TypeError):
            return []
        return ids if isinstance(ids, list) else []

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "event_type": self.event_type,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "work_order_id": self.work_order_id,
            "color_code": self.color_code,
            "assigned_user_ids": self.assigned_user_ids,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<DeliveryEvent {self.id}: {self.event_type} {self.start_date}>"
