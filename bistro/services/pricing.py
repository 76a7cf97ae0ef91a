"""
Order arithmetic. Everything is computed in Decimal and rounded half-up to
two places, so ``total == subtotal + tax + tip`` holds exactly on the
stored values.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from bistro.schemas.order import Customization

CENT = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total: Decimal


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal

    @staticmethod
    def line_subtotal(unit_price: Decimal, customizations: Iterable[Customization], quantity: int) -> Decimal:
        extras = sum((c.additional_price for c in customizations), Decimal("0"))
        return to_money((Decimal(unit_price) + extras) * quantity)

    def totals(self, line_subtotals: Iterable[Decimal], tip: Decimal = Decimal("0")) -> Totals:
        subtotal = to_money(sum(line_subtotals, Decimal("0")))
        tax = to_money(subtotal * self.tax_rate)
        tip = to_money(tip)
        return Totals(subtotal=subtotal, tax=tax, tip=tip, total=subtotal + tax + tip)


@dataclass(frozen=True)
class FulfilmentPolicy:
    """Estimates when an order will be ready.

    With ``fixed_minutes`` set every order gets the same lead time; otherwise
    the slowest line's preparation time is used, floored at ``min_minutes``.
    """

    fixed_minutes: int | None = None
    min_minutes: int = 15

    def lead_minutes(self, preparation_times: Iterable[int]) -> int:
        if self.fixed_minutes is not None:
            return self.fixed_minutes
        return max([self.min_minutes, *preparation_times])

    def estimate(self, placed_at: datetime, preparation_times: Iterable[int]) -> datetime:
        return placed_at + timedelta(minutes=self.lead_minutes(preparation_times))
