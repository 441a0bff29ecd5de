"""
Logging setup for the work order service.

Every record is stamped with the acting worker (``user_id``, ``role``) when
it is emitted inside a request that has resolved a session, so service
modules can log plainly with ``logging.getLogger(__name__)``.

- JSON lines when neither DEBUG nor TESTING is set
- one-line readable format otherwise, with the domain ids as tags
- LOG_LEVEL env variable overrides the level
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Domain ids shown as short tags in the readable format
_TAGS = (
    ("work_order_id", "wo"),
    ("client_id", "client"),
    ("command", "cmd"),
)

_JSON_FIELDS = (
    "user_id", "role", "work_order_id", "client_id", "command",
    "method", "path", "status", "duration_ms", "request_id",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


class SessionContextFilter(logging.Filter):
    """Copy the request's signed-in worker onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        session = getattr(g, "session", None) if has_request_context() else None
        if session is not None:
            if getattr(record, "user_id", None) is None:
                record.user_id = session.user_id
            if getattr(record, "role", None) is None:
                record.role = session.role_name
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key)) for key in _JSON_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message [wo=…] (user/role)``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = " ".join(
            f"{short}={getattr(record, attr)}" for attr, short in _TAGS
            if getattr(record, attr, None) is not None
        )
        line = f"{ts} {record.levelname:<7} {record.name}: {record.getMessage()}"
        if tags:
            line += f" [{tags}]"
        if getattr(record, "user_id", None):
            line += f" ({record.user_id}/{getattr(record, 'role', None) or '?'})"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for *app*."""
    testing = app.config.get("TESTING", False)
    as_json = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if as_json else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if as_json else ReadableFormatter())
    handler.addFilter(SessionContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)
