"""
Firewood Bank Work Order Engine
Wood and supply stock.

``reserved_quantity`` is stock promised to open orders; what can still be
handed out is ``quantity_on_hand - reserved_quantity``.  An item is low on
stock once ``quantity_on_hand`` falls to ``reorder_threshold``.
"""

import uuid
from datetime import datetime, timezone

from woodbank.models import db
from woodbank.models.soft_delete import SoftDeleteMixin


class InventoryItem(SoftDeleteMixin, db.Model):
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_on_hand"),
        db.CheckConstraint("reserved_quantity >= 0", name="ck_inventory_reserved"),
        db.CheckConstraint("reorder_threshold >= 0", name="ck_inventory_threshold"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    quantity_on_hand = db.Column(db.Float, nullable=False, default=0.0)
    unit = db.Column(db.String(30), nullable=False)
    reorder_threshold = db.Column(db.Float, nullable=False, default=0.0)
    reorder_amount = db.Column(db.Float, nullable=True)
    reserved_quantity = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def available_quantity(self) -> float:
        return (self.quantity_on_hand or 0.0) - (self.reserved_quantity or 0.0)

    @property
    def is_low_stock(self) -> bool:
        return (self.quantity_on_hand or 0.0) <= (self.reorder_threshold or 0.0)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "quantity_on_hand": self.quantity_on_hand,
            "unit": self.unit,
            "reorder_threshold": self.reorder_threshold,
            "reorder_amount": self.reorder_amount,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
            "low_stock": self.is_low_stock,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<InventoryItem {self.id}: {self.name} {self.quantity_on_hand} {self.unit}>"
