"""
Firewood Bank Work Order Engine
Client domain models.

Models:
    - Client: a household receiving firewood (contact, addresses, approval)
    - ClientApprovalHistory: one row per approval_status change

Chain: Client → WorkOrder (by id, with a name snapshot)
"""

import uuid
from datetime import datetime, timezone

from woodbank.models import db
from woodbank.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

APPROVAL_STATUSES = {"approved", "exception", "pending", "volunteer", "denied"}


def _uuid():
    return str(uuid.uuid4())


class Client(SoftDeleteMixin, db.Model):
    """
    A client household.

    At least one of telephone/email is required (enforced in the service).
    approval_status starts as ``pending`` unless a referring agency is given.
    """

    __tablename__ = "clients"
    __table_args__ = (
        db.CheckConstraint(
            "approval_status IN ('approved','exception','pending','volunteer','denied')",
            name="ck_clients_approval_status",
        ),
        db.Index("idx_clients_name", "name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    telephone = db.Column(db.String(20), nullable=True, comment="Normalised (###) ###-####")
    email = db.Column(db.String(200), nullable=True)
    opt_out_email = db.Column(db.Boolean, default=False)
    approval_status = db.Column(db.String(20), nullable=False, default="pending")

    physical_address_line1 = db.Column(db.String(200), nullable=False)
    physical_address_line2 = db.Column(db.String(200), nullable=True)
    physical_address_city = db.Column(db.String(100), nullable=False)
    physical_address_state = db.Column(db.String(2), nullable=False)
    physical_address_postal_code = db.Column(db.String(10), nullable=False)

    mailing_address_line1 = db.Column(db.String(200), nullable=True)
    mailing_address_line2 = db.Column(db.String(200), nullable=True)
    mailing_address_city = db.Column(db.String(100), nullable=True)
    mailing_address_state = db.Column(db.String(2), nullable=True)
    mailing_address_postal_code = db.Column(db.String(10), nullable=True)

    how_did_they_hear_about_us = db.Column(db.String(200), nullable=True)
    referring_agency = db.Column(db.String(200), nullable=True)
    denial_reason = db.Column(db.Text, nullable=True)
    date_of_onboarding = db.Column(db.Date, nullable=True)
    preferred_driver_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    wood_size_label = db.Column(db.String(50), nullable=True, comment="Preferred delivery size")
    wood_size_other = db.Column(db.String(100), nullable=True)
    gate_combo = db.Column(db.String(50), nullable=True)
    directions = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    default_mileage = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    approval_history = db.relationship(
        "ClientApprovalHistory", backref="client", lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="ClientApprovalHistory.created_at",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "telephone": self.telephone,
            "email": self.email,
            "opt_out_email": bool(self.opt_out_email),
            "approval_status": self.approval_status,
            "physical_address_line1": self.physical_address_line1,
            "physical_address_line2": self.physical_address_line2,
            "physical_address_city": self.physical_address_city,
            "physical_address_state": self.physical_address_state,
            "physical_address_postal_code": self.physical_address_postal_code,
            "mailing_address_line1": self.mailing_address_line1,
            "mailing_address_line2": self.mailing_address_line2,
            "mailing_address_city": self.mailing_address_city,
            "mailing_address_state": self.mailing_address_state,
            "mailing_address_postal_code": self.mailing_address_postal_code,
            "how_did_they_hear_about_us": self.how_did_they_hear_about_us,
            "referring_agency": self.referring_agency,
            "denial_reason": self.denial_reason,
            "date_of_onboarding": self.date_of_onboarding.isoformat() if self.date_of_onboarding else None,
            "preferred_driver_id": self.preferred_driver_id,
            "wood_size_label": self.wood_size_label,
            "wood_size_other": self.wood_size_other,
            "gate_combo": self.gate_combo,
            "directions": self.directions,
            "notes": self.notes,
            "default_mileage": self.default_mileage,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Client {self.id}: {self.name} [{self.approval_status}]>"


class ClientApprovalHistory(db.Model):
    """Append-only record of approval_status changes."""

    __tablename__ = "client_approval_history"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    old_status = db.Column(db.String(20), nullable=True)
    new_status = db.Column(db.String(20), nullable=False)
    changed_by_user_id = db.Column(db.String(36), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "changed_by_user_id": self.changed_by_user_id,
            "reason": self.reason,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ClientApprovalHistory {self.client_id}: {self.old_status} → {self.new_status}>"
