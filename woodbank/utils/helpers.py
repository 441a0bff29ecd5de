"""Shared helpers for blueprints and services.

parse_date:          returns None on bad input
db_commit_or_error:  commit with rollback + standard error response
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from woodbank.models import db
from woodbank.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse an ISO date or date-time string to a date object.

    Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        return None


def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure, ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    Other SQLAlchemyError → 500
    """
    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT, "Duplicate or constraint violation")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        return api_error(E.DATABASE, "Database error")
