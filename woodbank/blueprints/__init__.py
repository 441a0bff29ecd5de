"""
Firewood Bank Work Order Engine
Blueprint registry and shared request helpers.
"""

import logging

from flask import g, request
from sqlalchemy.exc import SQLAlchemyError

from woodbank.core.exceptions import NotFoundError, PolicyDenied, RemoteFailure, ValidationError
from woodbank.models import db
from woodbank.models.user import User
from woodbank.services.access import Session
from woodbank.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def current_session() -> Session:
    """Resolve the acting worker from the ``X-User-Id`` header.

    Raises:
        PolicyDenied: header missing or unknown user.
    """
    cached = getattr(g, "session", None)
    if cached is not None:
        return cached
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        raise PolicyDenied(None, request.endpoint or "request", "no signed-in user")
    user = db.session.get(User, user_id)
    if user is None:
        raise PolicyDenied(user_id, request.endpoint or "request", "unknown user")
    g.session = Session.from_row(user.to_dict())
    return g.session


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def register_error_handlers(bp):
    """Map engine exceptions to the standard JSON error envelope."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(PolicyDenied)
    def _handle_denied(error: PolicyDenied):
        db.session.rollback()
        logger.info("Denied: %s", error)
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(RemoteFailure)
    def _handle_remote(error: RemoteFailure):
        return api_error(E.REMOTE, str(error), details={"command": error.command} if error.command else None)

    @bp.errorhandler(SQLAlchemyError)
    def _handle_db(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.DATABASE, "Database error")

    return bp
