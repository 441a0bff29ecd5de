"""
Quantity resolver tests.

Covers:
    - delivery presets and the ``other`` entry
    - pickup volume in feet and inches
    - direct-cords pickups
    - rejection of empty, non-numeric and non-positive input
"""

import pytest

from woodbank.core.exceptions import ValidationError
from woodbank.services.quantity import (
    DeliverySize,
    resolve_delivery_size,
    resolve_pickup_quantity,
)


class TestDeliverySize:
    @pytest.mark.parametrize("choice,cords,label", [
        ("f250", 1.0, "Ford F-250"),
        ("f250_half", 0.5, "Ford F-250 1/2"),
        ("toyota", 0.33, "Toyota"),
    ])
    def test_presets(self, choice, cords, label):
        assert resolve_delivery_size(choice) == DeliverySize(cords, label)

    def test_other_with_label_and_cords(self):
        size = resolve_delivery_size("other", "Trailer", "2")
        assert size.cords == 2.0
        assert size.label == "Trailer"

    def test_other_empty_label_rejected(self):
        with pytest.raises(ValidationError):
            resolve_delivery_size("other", "", "2")

    @pytest.mark.parametrize("cords", ["0", -1, "abc", None, ""])
    def test_other_bad_cords_rejected(self, cords):
        with pytest.raises(ValidationError):
            resolve_delivery_size("other", "Trailer", cords)

    def test_unknown_choice_rejected(self):
        with pytest.raises(ValidationError, match="Unknown delivery size"):
            resolve_delivery_size("semi")

    def test_repeatable(self):
        assert resolve_delivery_size("toyota") == resolve_delivery_size("toyota")


class TestPickupQuantity:
    def test_full_cord_in_feet(self):
        assert resolve_pickup_quantity("dimensions", length=8, width=4, height=4, units="ft") == 1.0

    def test_full_cord_in_inches(self):
        assert resolve_pickup_quantity("dimensions", length=96, width=48, height=48, units="in") == 1.0

    def test_half_cord(self):
        assert resolve_pickup_quantity("dimensions", length=4, width=4, height=4) == pytest.approx(0.5)

    def test_string_dimensions_accepted(self):
        assert resolve_pickup_quantity("dimensions", length="8", width="4", height="4", units="ft") == 1.0

    def test_direct_cords(self):
        assert resolve_pickup_quantity("cords", 1.5) == 1.5

    @pytest.mark.parametrize("cords", [0, -2, "x", None])
    def test_direct_cords_must_be_positive(self, cords):
        with pytest.raises(ValidationError):
            resolve_pickup_quantity("cords", cords)

    def test_zero_dimension_rejected(self):
        with pytest.raises(ValidationError):
            resolve_pickup_quantity("dimensions", length=8, width=0, height=4)

    def test_unknown_units_rejected(self):
        with pytest.raises(ValidationError, match="units"):
            resolve_pickup_quantity("dimensions", length=8, width=4, height=4, units="m")

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError, match="mode"):
            resolve_pickup_quantity("weight", 3)
