"""
Firewood Bank Work Order Engine
Work order domain models.

Models:
    - WorkOrder: a delivery or pickup for one client
    - WorkOrderStatusHistory: one row per accepted status change

Sizing columns hold the values resolved at submission time
(``services.quantity``); they are never recomputed afterwards.
"""

import json
import uuid
from datetime import datetime, timezone

from woodbank.models import db
from woodbank.models.soft_delete import SoftDeleteMixin
from woodbank.services.work_order_lifecycle import INITIAL_STATUS, WORK_ORDER_STATUSES


def _status_check():
    allowed = ",".join(f"'{s}'" for s in WORK_ORDER_STATUSES)
    return f"status IN ({allowed})"


def _uuid():
    return str(uuid.uuid4())


class WorkOrder(SoftDeleteMixin, db.Model):
    """
    A schedulable delivery or pickup tied to one client.

    ``assignees_json`` is the whole crew as display names (drivers first,
    then helpers); ``helpers_json`` repeats the helper tail so the split
    survives a save.  ``client_name`` is a snapshot taken at creation.
    """

    __tablename__ = "work_orders"
    __table_args__ = (
        db.CheckConstraint(_status_check(), name="ck_work_orders_status"),
        db.Index("idx_work_orders_status_scheduled_date", "status", "scheduled_date"),
        db.Index("idx_work_orders_client_status", "client_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    work_order_number = db.Column(db.String(20), nullable=True, unique=True, index=True)
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    client_name = db.Column(db.String(200), nullable=False, comment="Snapshot at creation")
    status = db.Column(db.String(20), nullable=False, default=INITIAL_STATUS)
    scheduled_date = db.Column(db.String(32), nullable=True, comment="ISO-8601 date or date-time")
    notes = db.Column(db.Text, nullable=True)

    # Client snapshot used on the driver's route sheet
    telephone = db.Column(db.String(20), nullable=True)
    physical_address_line1 = db.Column(db.String(200), nullable=True)
    physical_address_city = db.Column(db.String(100), nullable=True)
    physical_address_state = db.Column(db.String(2), nullable=True)
    physical_address_postal_code = db.Column(db.String(10), nullable=True)
    gate_combo = db.Column(db.String(50), nullable=True)
    directions = db.Column(db.Text, nullable=True)

    # Delivery sizing
    delivery_choice = db.Column(db.String(20), nullable=True, comment="f250 | f250_half | toyota | other")
    delivery_size_label = db.Column(db.String(100), nullable=True)
    delivery_size_cords = db.Column(db.Float, nullable=True)
    paired_order_id = db.Column(
        db.String(36), db.ForeignKey("work_orders.id", ondelete="SET NULL"), nullable=True,
    )

    # Pickup sizing
    pickup_delivery_type = db.Column(db.String(20), nullable=True, comment="dimensions | cords")
    pickup_length = db.Column(db.Float, nullable=True)
    pickup_width = db.Column(db.Float, nullable=True)
    pickup_height = db.Column(db.Float, nullable=True)
    pickup_units = db.Column(db.String(4), nullable=True)
    pickup_quantity_cords = db.Column(db.Float, nullable=True)

    assignees_json = db.Column(db.Text, nullable=False, default="[]")
    helpers_json = db.Column(db.Text, nullable=False, default="[]")
    mileage = db.Column(db.Float, nullable=True)
    work_hours = db.Column(db.Float, nullable=True)
    created_by_display = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    client = db.relationship("Client", backref=db.backref("work_orders", lazy="dynamic"))
    status_history = db.relationship(
        "WorkOrderStatusHistory", backref="work_order", lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="WorkOrderStatusHistory.created_at",
    )

    @property
    def assignees(self) -> list:
        try:
            names = json.loads(self.assignees_json or "[]")
        except (json.JSONDecodeError, TypeError):
            return []
        return names if isinstance(names, list) else []

    @assignees.setter
    def assignees(self, names):
        self.assignees_json = json.dumps(list(names or []))

    @property
    def helpers(self) -> list:
        try:
            names = json.loads(self.helpers_json or "[]")
        except (json.JSONDecodeError, TypeError):
            return []
        return names if isinstance(names, list) else []

    @property
    def drivers(self) -> list:
        crew, helpers = self.assignees, self.helpers
        if helpers and crew[-len(helpers):] == helpers:
            return crew[:-len(helpers)]
        return crew

    def set_crew(self, drivers, helpers):
        """Store drivers and helpers; ``assignees`` becomes drivers + helpers."""
        drivers, helpers = list(drivers or []), list(helpers or [])
        self.assignees = drivers + helpers
        self.helpers_json = json.dumps(helpers)

    def to_dict(self):
        return {
            "id": self.id,
            "work_order_number": self.work_order_number,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "status": self.status,
            "scheduled_date": self.scheduled_date,
            "notes": self.notes,
            "telephone": self.telephone,
            "physical_address_line1": self.physical_address_line1,
            "physical_address_city": self.physical_address_city,
            "physical_address_state": self.physical_address_state,
            "physical_address_postal_code": self.physical_address_postal_code,
            "gate_combo": self.gate_combo,
            "directions": self.directions,
            "delivery_choice": self.delivery_choice,
            "delivery_size_label": self.delivery_size_label,
            "delivery_size_cords": self.delivery_size_cords,
            "paired_order_id": self.paired_order_id,
            "pickup_delivery_type": self.pickup_delivery_type,
            "pickup_length": self.pickup_length,
            "pickup_width": self.pickup_width,
            "pickup_height": self.pickup_height,
            "pickup_units": self.pickup_units,
            "pickup_quantity_cords": self.pickup_quantity_cords,
            "assignees": self.assignees,
            "assignees_json": self.assignees_json,
            "drivers": self.drivers,
            "helpers": self.helpers,
            "mileage": self.mileage,
            "work_hours": self.work_hours,
            "created_by_display": self.created_by_display,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }

    def __repr__(self):
        return f"<WorkOrder {self.id}: {self.client_name} [{self.status}]>"


class WorkOrderStatusHistory(db.Model):
    """Append-only record of accepted status changes."""

    __tablename__ = "work_order_status_history"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    work_order_id = db.Column(
        db.String(36), db.ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    old_status = db.Column(db.String(20), nullable=True)
    new_status = db.Column(db.String(20), nullable=False)
    changed_by_user_id = db.Column(db.String(36), nullable=True)
    changed_by_display = db.Column(db.String(200), nullable=True)
    mileage_recorded = db.Column(db.Float, nullable=True)
    work_hours_recorded = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "changed_by_user_id": self.changed_by_user_id,
            "changed_by_display": self.changed_by_display,
            "mileage_recorded": self.mileage_recorded,
            "work_hours_recorded": self.work_hours_recorded,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkOrderStatusHistory {self.work_order_id}: {self.old_status} → {self.new_status}>"
