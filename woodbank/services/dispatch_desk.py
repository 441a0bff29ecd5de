"""
Dispatch desk — the submission flow the scheduling screen runs.

validate → resolve derived fields → submit → reload, one step after the
other.  Rules run locally first; a rejected rule raises ValidationError and
the command service is never called.  Gateway failures raise RemoteFailure
and the desk keeps the rows from the last successful reload.

Usage:
    desk = DispatchDesk(session, CommandGateway.from_config(cfg, user_id=session.user_id))
    view = desk.reload()
    desk.submit_work_order({"client_id": "...", "delivery_choice": "f250"})
    desk.change_status(order_id, "completed", mileage=42)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from woodbank.core.exceptions import NotFoundError
from woodbank.integrations.command_gateway import CommandGateway
from woodbank.services import pii_policy
from woodbank.services.access import Capability, Session, require_capability
from woodbank.services.assignment import clean_names
from woodbank.services.pairing import find_pairable_half_orders, validate_pairing
from woodbank.services.quantity import resolve_delivery_size, resolve_pickup_quantity
from woodbank.services.rule_result import raise_if_rejected
from woodbank.services.work_order_lifecycle import check_transition
from woodbank.services.worker_metrics import WorkerCredit, compute_worker_credit

logger = logging.getLogger(__name__)


@dataclass
class DeskView:
    """What the screen renders after a reload."""
    work_orders: list[dict] = field(default_factory=list)
    clients: list[dict] = field(default_factory=list)
    workers: list[dict] = field(default_factory=list)
    credit: WorkerCredit = field(default_factory=WorkerCredit)

    def to_dict(self) -> dict:
        return {
            "work_orders": self.work_orders,
            "clients": self.clients,
            "workers": self.workers,
            "credit": self.credit.to_dict(),
        }


class DispatchDesk:
    def __init__(self, session: Session, gateway: CommandGateway) -> None:
        self.session = session
        self.gateway = gateway
        self._orders: list[dict] | None = None
        self._workers: list[dict] = []

    # ── Reload ───────────────────────────────────────────────────────────

    def reload(self) -> DeskView:
        """Fetch rows and shape them for the session.

        Raises:
            RemoteFailure: any fetch failed; the previous rows are kept.
        """
        orders = self.gateway.list_work_orders()
        clients = self.gateway.list_clients()
        workers = self.gateway.list_workers()
        events = self.gateway.list_delivery_events()
        self._orders, self._workers = orders, workers

        assigned = pii_policy.assigned_client_ids(orders, self.session)
        return DeskView(
            work_orders=[pii_policy.mask_work_order(o, self.session) for o in orders],
            clients=[pii_policy.mask_client(c, self.session, assigned_client_ids=assigned) for c in clients],
            workers=[pii_policy.mask_worker(w, self.session) for w in workers],
            credit=compute_worker_credit(self.session, orders, events),
        )

    def _loaded_orders(self) -> list[dict]:
        if self._orders is None:
            self.reload()
        return self._orders or []

    def pairable_orders(self, client_id) -> list[dict]:
        return find_pairable_half_orders(self._loaded_orders(), client_id)

    # ── Submission ───────────────────────────────────────────────────────

    def submit_work_order(self, form: dict) -> dict:
        """Validate a new work order locally, then send it.

        Returns the row the command service created.

        Raises:
            PolicyDenied / ValidationError: before any remote call.
            RemoteFailure: the create call failed.
        """
        require_capability(self.session, Capability.CREATE_WORK_ORDER)
        orders = self._loaded_orders()
        payload = dict(form)

        if form.get("delivery_choice"):
            size = resolve_delivery_size(form["delivery_choice"], form.get("other_details"),
                                         form.get("other_cords"))
            payload.update(delivery_size_label=size.label, delivery_size_cords=size.cords)
        changes = {k: form[k] for k in ("status", "scheduled_date", "mileage", "work_hours") if k in form}
        if form.get("pickup_mode"):
            cords = resolve_pickup_quantity(
                form["pickup_mode"], form.get("pickup_cords"),
                length=form.get("pickup_length"), width=form.get("pickup_width"),
                height=form.get("pickup_height"), units=form.get("pickup_units") or "ft",
            )
            payload["pickup_quantity_cords"] = cords
            changes["pickup_quantity_cords"] = cords

        raise_if_rejected(validate_pairing(
            (form.get("delivery_choice") or "").strip().lower() or None,
            form.get("paired_order_id"), orders, form.get("client_id"),
        ))
        changes["assignees"] = clean_names(form.get("assignees"))
        changes["helpers"] = clean_names(form.get("helpers"))
        raise_if_rejected(check_transition(None, changes, self.session, self._workers))

        created = self.gateway.create_work_order(payload)
        logger.info("Submitted work order %s", created.get("id"), extra={"work_order_id": created.get("id")})
        self.reload()
        return created

    def change_status(self, order_id: str, new_status: str, *, mileage=None, work_hours=None) -> dict:
        """Run the state machine locally, then send the status change."""
        require_capability(self.session, Capability.UPDATE_WORK_ORDER_STATUS)
        order = next((o for o in self._loaded_orders() if str(o.get("id")) == str(order_id)), None)
        if order is None:
            raise NotFoundError("WorkOrder", order_id)

        changes = {"status": new_status}
        if mileage is not None:
            changes["mileage"] = mileage
        if work_hours is not None:
            changes["work_hours"] = work_hours
        raise_if_rejected(check_transition(order, changes, self.session, self._workers))

        updated = self.gateway.update_work_order(order_id, changes)
        self.reload()
        return updated
