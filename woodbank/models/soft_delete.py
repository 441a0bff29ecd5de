"""
Soft delete support for clients and work orders.

Rows are marked with a ``deleted_at`` timestamp instead of being purged,
so work-order history keeps pointing at the client it was created for.

Usage:
    class Client(SoftDeleteMixin, db.Model):
        ...

    client.soft_delete()
    db.session.commit()

    Client.query_active().all()     # excludes deleted rows
"""

from datetime import datetime, timezone

from woodbank.models import db


class SoftDeleteMixin:
    """Mixin that adds a ``deleted_at`` marker and active-row queries."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))
