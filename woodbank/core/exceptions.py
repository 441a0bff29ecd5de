"""
Engine-wide exception hierarchy.

Services raise these types and blueprints map them to HTTP responses once,
so every rejected mutation reaches the user with a specific message.

Usage:
    from woodbank.core.exceptions import PolicyDenied, ValidationError

    raise ValidationError("Mileage is required to close an order.")
    raise PolicyDenied(actor="jdoe", action="approve_clients")
"""


class NotFoundError(Exception):
    """Raised when a requested row does not exist (or is soft-deleted).

    Args:
        resource: Human-readable entity name (e.g. "WorkOrder", "Client").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when a candidate mutation breaks a business rule.

    Always recoverable: the submission is blocked and nothing is written.
    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation shown to the user as-is.
        details: Optional field-level breakdown for structured responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PolicyDenied(Exception):
    """Raised when the session's role lacks the capability for an action.

    Maps to HTTP 403.
    """

    def __init__(self, actor: str | None, action: str, reason: str | None = None) -> None:
        who = actor or "anonymous"
        msg = f"User {who} does not have permission for '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.actor = actor
        self.action = action
        self.reason = reason


class RemoteFailure(Exception):
    """Raised when a call to the command service fails or returns malformed data.

    The message is surfaced verbatim; callers keep their pre-submission view
    and nothing is retried automatically.

    Args:
        message: What went wrong, suitable for display.
        command: Name of the command that was being executed.
        status_code: HTTP status from the service, None for network failures.
    """

    def __init__(self, message: str, command: str | None = None, status_code: int | None = None) -> None:
        self.command = command
        self.status_code = status_code
        super().__init__(message)
