"""Value Objects shared across the domain.

Value Objects are immutable and compared by value, not identity.
They encapsulate validation so invalid values can never exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

from confectionery.domain.exceptions import ValidationError

Percent = int | Decimal


def to_percent(value: str | int | Decimal) -> Percent:
    """Coerce user input (CLI, JSON) to an exact percent value."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid percent: {value!r}")
    if isinstance(value, int):
        return value
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid percent: {value!r}") from exc
    return int(parsed) if parsed == parsed.to_integral_value() else parsed


def _check_percent(value: Percent, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise ValidationError(
            f"{what} must be an int or Decimal, got {type(value).__name__}"
        )
    if value <= 0 or value > 100:
        raise ValidationError(f"{what} must be in (0, 100], got {value}")


def _check_window(starts_at: datetime | None, ends_at: datetime | None) -> None:
    if starts_at is not None and ends_at is not None and ends_at < starts_at:
        raise ValidationError("Discount window ends before it starts")


def _in_window(
    now: datetime, starts_at: datetime | None, ends_at: datetime | None
) -> bool:
    if starts_at is not None and starts_at > now:
        return False
    if ends_at is not None and ends_at < now:
        return False
    return True


@dataclass(frozen=True)
class Quantity:
    """A positive integer quantity.

    Enforces the invariant that you cannot order zero or negative items.
    """

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)


class DiscountKind(Enum):
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


@dataclass(frozen=True)
class FixedDiscount:
    """Quantity-independent reduction attached directly to a variant.

    ``value`` is a percent for PERCENTAGE and minor currency units for AMOUNT.
    """

    kind: DiscountKind
    value: Percent
    enabled: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.kind is DiscountKind.PERCENTAGE:
            _check_percent(self.value, "Fixed discount percent")
        else:
            if isinstance(self.value, bool) or not isinstance(self.value, int):
                raise ValidationError("Fixed discount amount must be an integer")
            if self.value <= 0:
                raise ValidationError("Fixed discount amount must be positive")
        _check_window(self.starts_at, self.ends_at)

    def applies_at(self, now: datetime) -> bool:
        return self.enabled and _in_window(now, self.starts_at, self.ends_at)

    def describe(self) -> str:
        if self.kind is DiscountKind.PERCENTAGE:
            return f"fixed {self.value}%"
        return f"fixed -{self.value}"


@dataclass(frozen=True)
class DiscountTier:
    """One step of a quantity schedule: buy ``min_quantity`` or more, save N%."""

    min_quantity: int
    discount_percent: Percent
    max_quantity: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.min_quantity, bool) or not isinstance(self.min_quantity, int):
            raise ValidationError("Tier min_quantity must be an integer")
        if self.min_quantity < 1:
            raise ValidationError("Tier min_quantity must be at least 1")
        _check_percent(self.discount_percent, "Tier discount percent")
        if self.max_quantity is not None and self.max_quantity < self.min_quantity:
            raise ValidationError(
                f"Tier max_quantity {self.max_quantity} is below "
                f"min_quantity {self.min_quantity}"
            )

    def covers(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


@dataclass(frozen=True)
class TieredDiscount:
    """Quantity-threshold schedule; tiers are stored sorted by min_quantity."""

    tiers: tuple[DiscountTier, ...]
    active: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    badge: str | None = None

    def __post_init__(self) -> None:
        tiers = tuple(sorted(self.tiers, key=lambda t: t.min_quantity))
        if not tiers:
            raise ValidationError("Tiered discount needs at least one tier")
        minimums = [t.min_quantity for t in tiers]
        if len(set(minimums)) != len(minimums):
            raise ValidationError("Tiered discount has duplicate min_quantity values")
        _check_window(self.starts_at, self.ends_at)
        object.__setattr__(self, "tiers", tiers)

    @staticmethod
    def of(*pairs: tuple[int, Percent], badge: str | None = None) -> TieredDiscount:
        """Shorthand: ``TieredDiscount.of((5, 5), (10, 10))``."""
        return TieredDiscount(
            tiers=tuple(DiscountTier(q, p) for q, p in pairs), badge=badge
        )

    def applies_at(self, now: datetime) -> bool:
        return self.active and _in_window(now, self.starts_at, self.ends_at)

    def tier_for(self, quantity: int) -> DiscountTier | None:
        """The qualifying tier with the largest min_quantity, if any."""
        for tier in reversed(self.tiers):
            if tier.covers(quantity):
                return tier
        return None


@dataclass(frozen=True)
class Page:
    """One page of a paginated query."""

    items: list = field(default_factory=list)
    page: int = 1
    limit: int = 50
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)
