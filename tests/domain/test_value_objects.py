"""Unit tests for domain value objects."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from confectionery.domain.exceptions import ValidationError
from confectionery.domain.model.value_objects import (
    DiscountKind,
    DiscountTier,
    FixedDiscount,
    Page,
    Quantity,
    TieredDiscount,
    to_percent,
)


# ── Quantity ─────────────────────────────────────────────────────────────────


class TestQuantity:

    def test_valid_quantity(self):
        assert Quantity(5).value == 5

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            Quantity(0)

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            Quantity(-1)

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            Quantity(True)


# ── Percent ──────────────────────────────────────────────────────────────────


class TestPercent:

    def test_integral_string_becomes_int(self):
        assert to_percent("10") == 10
        assert isinstance(to_percent("10.0"), int)

    def test_fractional_string_stays_decimal(self):
        assert to_percent("12.5") == Decimal("12.5")

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError):
            to_percent("ten")


# ── Discounts ────────────────────────────────────────────────────────────────


class TestFixedDiscount:

    @pytest.mark.parametrize("value", [0, 101, -5])
    def test_percent_out_of_range(self, value):
        with pytest.raises(ValidationError):
            FixedDiscount(DiscountKind.PERCENTAGE, value)

    def test_float_percent_rejected(self):
        with pytest.raises(ValidationError):
            FixedDiscount(DiscountKind.PERCENTAGE, 10.5)

    def test_amount_must_be_positive_int(self):
        with pytest.raises(ValidationError):
            FixedDiscount(DiscountKind.AMOUNT, 0)

    def test_window_must_be_ordered(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError, match="ends before"):
            FixedDiscount(DiscountKind.AMOUNT, 100, starts_at=now, ends_at=now - timedelta(1))

    def test_disabled_never_applies(self):
        discount = FixedDiscount(DiscountKind.AMOUNT, 100, enabled=False)
        assert not discount.applies_at(datetime.now(timezone.utc))


class TestTieredDiscount:

    def test_tiers_are_sorted(self):
        tiered = TieredDiscount.of((10, 10), (5, 5))
        assert [t.min_quantity for t in tiered.tiers] == [5, 10]

    def test_duplicate_minimums_rejected(self):
        with pytest.raises(ValidationError, match="duplicate"):
            TieredDiscount.of((5, 5), (5, 10))

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            TieredDiscount(tiers=())

    def test_tier_for_picks_largest_qualifying(self):
        tiered = TieredDiscount.of((3, 5), (6, 10), (12, 15))
        assert tiered.tier_for(2) is None
        assert tiered.tier_for(3).min_quantity == 3
        assert tiered.tier_for(11).min_quantity == 6
        assert tiered.tier_for(100).min_quantity == 12

    def test_max_quantity_bounds_a_tier(self):
        tiered = TieredDiscount(
            tiers=(DiscountTier(3, 5, max_quantity=5), DiscountTier(10, 10))
        )
        assert tiered.tier_for(5).min_quantity == 3
        assert tiered.tier_for(7) is None

    def test_max_below_min_rejected(self):
        with pytest.raises(ValidationError):
            DiscountTier(5, 10, max_quantity=4)


# ── Page ─────────────────────────────────────────────────────────────────────


class TestPage:

    def test_total_pages_rounds_up(self):
        assert Page(items=[], page=1, limit=10, total=21).total_pages == 3

    def test_empty(self):
        assert Page().total_pages == 0
