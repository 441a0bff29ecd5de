"""
Firewood Bank Work Order Engine
Worker (user) model.

Workers are the people that schedule, drive and help on deliveries.
Authentication lives outside this service; a row here only carries the
role and the flags the rule engine reads.
"""

import json
import uuid
from datetime import datetime, timezone

from woodbank.models import db


ROLES = {"admin", "lead", "staff", "employee", "volunteer"}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class User(db.Model):
    """A worker. ``name`` is the display name used in assignee lists."""

    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin','lead','staff','employee','volunteer')",
            name="ck_users_role",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = db.Column(db.String(100), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False, comment="Display name")
    email = db.Column(db.String(200), nullable=True)
    telephone = db.Column(db.String(20), nullable=True)
    physical_address_line1 = db.Column(db.String(200), nullable=True)
    physical_address_line2 = db.Column(db.String(200), nullable=True)
    physical_address_city = db.Column(db.String(100), nullable=True)
    physical_address_state = db.Column(db.String(2), nullable=True)
    physical_address_postal_code = db.Column(db.String(10), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="volunteer")

    availability_notes = db.Column(db.Text, nullable=True, comment="Free-text day-of-week cues")
    availability_schedule = db.Column(
        db.Text, nullable=True,
        comment='JSON: {"monday": true, "tuesday": false, ...}',
    )
    driver_license_status = db.Column(db.String(50), nullable=True)
    driver_license_number = db.Column(db.String(50), nullable=True)
    driver_license_expires_on = db.Column(db.String(20), nullable=True)
    vehicle = db.Column(db.String(100), nullable=True)
    is_driver = db.Column(db.Boolean, nullable=False, default=False)
    hipaa_certified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def schedule(self) -> dict:
        """Deserialise *availability_schedule* to a day → bool dict."""
        try:
            raw = json.loads(self.availability_schedule or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}
        if not isinstance(raw, dict):
            return {}
        return {day: bool(raw.get(day)) for day in WEEKDAYS}

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "telephone": self.telephone,
            "physical_address_line1": self.physical_address_line1,
            "physical_address_line2": self.physical_address_line2,
            "physical_address_city": self.physical_address_city,
            "physical_address_state": self.physical_address_state,
            "physical_address_postal_code": self.physical_address_postal_code,
            "role": self.role,
            "availability_notes": self.availability_notes,
            "availability_schedule": self.schedule,
            "driver_license_status": self.driver_license_status,
            "driver_license_expires_on": self.driver_license_expires_on,
            "vehicle": self.vehicle,
            "is_driver": bool(self.is_driver),
            "hipaa_certified": bool(self.hipaa_certified),
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"
