"""
Command service gateway.

All outbound calls from the dispatch desk to the command backend go
through this class.  One request per command, awaited in sequence:
  - Timeout: COMMAND_TIMEOUT_SECONDS (default 15 s), owned by the transport
  - No retry: a failed call raises RemoteFailure and the caller keeps its
    pre-submission view
  - Backend error bodies ({"error": ...}) are surfaced verbatim

Testability: pass a mock `session` to CommandGateway() in tests instead of
letting it create a real requests.Session internally.

Usage:
    gateway = CommandGateway.from_config(app.config, user_id=session.user_id)
    rows = gateway.list_work_orders()
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from woodbank.core.exceptions import RemoteFailure

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 15
_API_PREFIX = "/api/v1"


class CommandGateway:
    """HTTP client for the command backend.

    Args:
        base_url: Backend root, e.g. ``http://localhost:5000``.
        user_id: Sent as ``X-User-Id`` so the backend resolves the session.
        timeout: Per-request timeout in seconds.
        session: Optional injected requests.Session.
    """

    def __init__(
        self,
        base_url: str,
        *,
        user_id: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session

    @classmethod
    def from_config(cls, config: dict, *, user_id: str | None = None,
                    session: requests.Session | None = None) -> CommandGateway:
        return cls(
            config.get("COMMAND_SERVICE_URL", "http://localhost:5000"),
            user_id=user_id,
            timeout=float(config.get("COMMAND_TIMEOUT_SECONDS", _DEFAULT_TIMEOUT)),
            session=session,
        )

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.user_id:
            headers["X-User-Id"] = str(self.user_id)
        return headers

    def _do_request(
        self,
        method: str,
        path: str,
        *,
        command: str,
        json_body: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        """Execute one request and return the parsed JSON body.

        Raises:
            RemoteFailure: network error, timeout, non-2xx status or a body
                that is not JSON.
        """
        url = f"{self.base_url}{_API_PREFIX}{path}"
        kwargs: dict[str, Any] = {"headers": self._headers(), "timeout": self.timeout}
        if json_body is not None:
            kwargs["json"] = json_body
        if params:
            kwargs["params"] = params

        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.Timeout:
            logger.warning("Command %s timed out after %ss", command, self.timeout,
                           extra={"command": command})
            raise RemoteFailure(
                f"The command service did not respond within {self.timeout:g} seconds.",
                command=command,
            ) from None
        except requests.RequestException as exc:
            logger.warning("Command %s failed: %s", command, exc, extra={"command": command})
            raise RemoteFailure(f"Could not reach the command service: {exc}", command=command) from exc
        duration_ms = (time.perf_counter() - t0) * 1000

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not 200 <= resp.status_code < 300:
            message = body.get("error") if isinstance(body, dict) else None
            logger.info("Command %s rejected: HTTP %s (%.0fms)", command, resp.status_code, duration_ms,
                        extra={"command": command, "status": resp.status_code})
            raise RemoteFailure(
                message or f"Command service returned HTTP {resp.status_code}.",
                command=command,
                status_code=resp.status_code,
            )
        if body is None:
            raise RemoteFailure(
                "Command service returned a response that is not valid JSON.",
                command=command,
                status_code=resp.status_code,
            )
        logger.debug("Command %s ok (%.0fms)", command, duration_ms, extra={"command": command})
        return body

    def _items(self, path: str, command: str, params: dict | None = None) -> list[dict]:
        body = self._do_request("GET", path, command=command, params=params)
        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise RemoteFailure(f"Malformed response for {command}: missing 'items' list.", command=command)
        return items

    def _entity(self, method: str, path: str, command: str, payload: dict) -> dict:
        body = self._do_request(method, path, command=command, json_body=payload)
        if not isinstance(body, dict) or "id" not in body:
            raise RemoteFailure(f"Malformed response for {command}: expected a row with an id.", command=command)
        return body

    # ── Queries ──────────────────────────────────────────────────────────────

    def list_work_orders(self) -> list[dict]:
        return self._items("/work-orders", "list_work_orders")

    def list_clients(self) -> list[dict]:
        return self._items("/clients", "list_clients")

    def list_workers(self) -> list[dict]:
        return self._items("/users", "list_workers")

    def list_delivery_events(self) -> list[dict]:
        return self._items("/delivery-events", "list_delivery_events")

    # ── Mutations ────────────────────────────────────────────────────────────

    def create_work_order(self, payload: dict) -> dict:
        return self._entity("POST", "/work-orders", "create_work_order", payload)

    def update_work_order(self, order_id: str, payload: dict) -> dict:
        return self._entity("PATCH", f"/work-orders/{order_id}", "update_work_order", payload)
