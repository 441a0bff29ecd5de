"""
Work order number generator.

Format: WO-{YYYY}-{SEQ:04d}  (e.g. WO-2024-0001, WO-2024-0137)

The sequence restarts every calendar year and counts soft-deleted orders
too, so a number is never handed out twice.
"""

from datetime import datetime, timezone

from sqlalchemy import func

from woodbank.models import db
from woodbank.models.work_order import WorkOrder


def work_order_prefix(year: int) -> str:
    return f"WO-{year}-"


def generate_work_order_number(year: int | None = None) -> str:
    """Return the next free work order number for *year* (default: this year)."""
    prefix = work_order_prefix(year or datetime.now(timezone.utc).year)
    last = (
        db.session.query(func.max(WorkOrder.work_order_number))
        .filter(WorkOrder.work_order_number.like(f"{prefix}%"))
        .scalar()
    )
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:04d}"
