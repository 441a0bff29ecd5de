"""
Half-load pairing.

Two half-load (Ford F-250 1/2) deliveries for different clients can share
one truck trip.  The link is one-directional: only the order being created
or edited gets ``paired_order_id``; the counterpart row is left untouched.
"""

from __future__ import annotations

from woodbank.services.quantity import HALF_LOAD_LABEL
from woodbank.services.rule_result import ACCEPTED, Rejected, RuleResult

# Orders in these statuses no longer go out on a truck
_UNPAIRABLE_STATUSES = frozenset({"completed", "cancelled", "picked_up"})


def is_pairing_candidate(order: dict, exclude_client_id) -> bool:
    if order.get("delivery_size_label") != HALF_LOAD_LABEL:
        return False
    if order.get("paired_order_id"):
        return False
    if order.get("status") in _UNPAIRABLE_STATUSES:
        return False
    if order.get("deleted_at"):
        return False
    return str(order.get("client_id")) != str(exclude_client_id)


def find_pairable_half_orders(all_orders: list[dict], exclude_client_id) -> list[dict]:
    """Return the unpaired, active half-load orders of other clients."""
    return [o for o in all_orders if is_pairing_candidate(o, exclude_client_id)]


def validate_pairing(
    delivery_choice: str | None,
    paired_order_id: str | None,
    all_orders: list[dict],
    client_id,
    *,
    order_id: str | None = None,
) -> RuleResult:
    """Check a requested pairing before it is written.

    Only half-load deliveries may carry a pairing, and the target must be a
    current pairing candidate for *client_id*.
    """
    if not paired_order_id:
        return ACCEPTED
    if delivery_choice != "f250_half":
        return Rejected(
            "Only Ford F-250 1/2 deliveries can be paired with another order.",
            {"field": "paired_order_id"},
        )
    if order_id is not None and str(paired_order_id) == str(order_id):
        return Rejected("A work order cannot be paired with itself.", {"field": "paired_order_id"})
    target = next((o for o in all_orders if str(o.get("id")) == str(paired_order_id)), None)
    if target is None:
        return Rejected(f"Work order {paired_order_id} was not found for pairing.", {"field": "paired_order_id"})
    if not is_pairing_candidate(target, client_id):
        return Rejected(
            "The selected order is not an unpaired, active half-load for another client.",
            {"field": "paired_order_id", "paired_order_id": str(paired_order_id)},
        )
    return ACCEPTED
