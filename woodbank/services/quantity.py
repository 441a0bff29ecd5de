"""
Delivery size and pickup quantity resolution.

Both resolvers run once, when a work order is submitted; the returned
numbers are what gets persisted and nothing recomputes them later.

Usage:
    from woodbank.services.quantity import resolve_delivery_size, resolve_pickup_quantity

    size = resolve_delivery_size("f250_half")          # DeliverySize(0.5, "Ford F-250 1/2")
    cords = resolve_pickup_quantity("dimensions", length=8, width=4, height=4, units="ft")
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from woodbank.core.exceptions import ValidationError

CUBIC_FEET_PER_CORD = 128
INCHES_PER_FOOT = 12

HALF_LOAD_LABEL = "Ford F-250 1/2"


@dataclass(frozen=True)
class DeliverySize:
    cords: float
    label: str

    def to_dict(self) -> dict:
        return {"cords": self.cords, "label": self.label}


DELIVERY_PRESETS: dict[str, DeliverySize] = {
    "f250": DeliverySize(1.0, "Ford F-250"),
    "f250_half": DeliverySize(0.5, HALF_LOAD_LABEL),
    "toyota": DeliverySize(0.33, "Toyota"),
}

PICKUP_MODES = ("dimensions", "cords")
PICKUP_UNITS = ("ft", "in")


def _positive_number(value, field_name: str) -> float:
    """Coerce *value* to a positive finite float or raise ValidationError."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number.", {"field": field_name})
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number.", {"field": field_name}) from None
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"{field_name} must be greater than zero.", {"field": field_name})
    return number


def resolve_delivery_size(choice: str, other_details: str | None = None, other_cords=None) -> DeliverySize:
    """Map a delivery vehicle choice to its cord amount and label.

    Args:
        choice: ``f250``, ``f250_half``, ``toyota`` or ``other``.
        other_details: Label for ``other``; must be non-empty.
        other_cords: Cord amount for ``other``; must be positive.

    Raises:
        ValidationError: Unknown choice, or an invalid ``other`` entry.
    """
    key = (choice or "").strip().lower()
    if key in DELIVERY_PRESETS:
        return DELIVERY_PRESETS[key]
    if key == "other":
        label = (other_details or "").strip()
        if not label:
            raise ValidationError(
                "Describe the delivery size when choosing 'other'.",
                {"field": "other_details"},
            )
        return DeliverySize(_positive_number(other_cords, "Cord amount"), label)
    raise ValidationError(f"Unknown delivery size choice: '{choice}'.", {"field": "delivery_choice"})


def resolve_pickup_quantity(
    mode: str,
    cords=None,
    *,
    length=None,
    width=None,
    height=None,
    units: str = "ft",
) -> float:
    """Return the cord amount for a pickup.

    ``dimensions`` mode converts inches to feet when ``units == "in"`` and
    divides the stack volume by 128 cubic feet.  ``cords`` mode takes the
    supplied amount as-is.  No rounding is applied.

    Raises:
        ValidationError: Unknown mode/units, or missing/non-positive inputs.
    """
    key = (mode or "").strip().lower()
    if key == "cords":
        return _positive_number(cords, "Pickup cords")
    if key != "dimensions":
        raise ValidationError(f"Unknown pickup mode: '{mode}'.", {"field": "pickup_mode"})

    unit = (units or "").strip().lower()
    if unit not in PICKUP_UNITS:
        raise ValidationError(f"Unknown pickup units: '{units}'.", {"field": "pickup_units"})

    dims = [
        _positive_number(length, "Length"),
        _positive_number(width, "Width"),
        _positive_number(height, "Height"),
    ]
    if unit == "in":
        dims = [d / INCHES_PER_FOOT for d in dims]
    return dims[0] * dims[1] * dims[2] / CUBIC_FEET_PER_CORD
