"""Pricing engine: subtotal, discount and total for a list of sale lines.

All arithmetic uses :class:`~decimal.Decimal`. Tax is always zero here; the
configured store tax rate is informational only.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from . import log
from .constants import DiscountMode
from .data_manager import SaleItemRow


ZERO = Decimal("0")


@dataclass(frozen=True)
class FixedDiscount:
    """An absolute amount taken off the subtotal."""

    amount: Decimal = ZERO

    @property
    def mode(self) -> DiscountMode:
        return DiscountMode.FIXED


@dataclass(frozen=True)
class PercentDiscount:
    """A percentage of the subtotal; values above 100 are not capped."""

    percent: Decimal = ZERO

    @property
    def mode(self) -> DiscountMode:
        return DiscountMode.PERCENT


Discount = Union[FixedDiscount, PercentDiscount]


@dataclass(frozen=True)
class PriceBreakdown:
    """Priced view of a cart, before it becomes a sale."""

    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


def parse_discount(mode: Union[DiscountMode, str], raw: Optional[object]) -> Discount:
    """Turn user input into a discount of the requested ``mode``.

    Empty, unparseable, non-finite or negative input becomes a zero discount
    of the same mode rather than an error.

    Raises:
        ValueError: If ``mode`` is not a known discount mode.
    """

    mode = DiscountMode(mode)
    value = ZERO
    if raw is not None and str(raw).strip():
        try:
            candidate = Decimal(str(raw).strip())
        except InvalidOperation:
            log.warning("Ignoring unparseable discount value %r", raw)
        else:
            if candidate.is_finite() and candidate >= ZERO:
                value = candidate
            else:
                log.warning("Ignoring out-of-range discount value %r", raw)

    if mode is DiscountMode.PERCENT:
        return PercentDiscount(percent=value)
    return FixedDiscount(amount=value)


def calculate_subtotal(items: Iterable[SaleItemRow]) -> Decimal:
    """Sum ``price * quantity`` across ``items``."""

    return sum((item.price * item.quantity for item in items), ZERO)


def calculate_discount_amount(subtotal: Decimal, discount: Discount) -> Decimal:
    """Return the money value of ``discount`` against ``subtotal``.

    ``FixedDiscount`` yields its amount as-is and ``PercentDiscount`` yields
    ``subtotal * percent / 100``. Neither is capped at the subtotal; the total
    is floored at zero instead.
    """

    if isinstance(discount, PercentDiscount):
        return subtotal * discount.percent / Decimal("100")
    return discount.amount


def calculate_total(subtotal: Decimal, discount_amount: Decimal) -> Decimal:
    return max(ZERO, subtotal - discount_amount)


def price_cart(items: Iterable[SaleItemRow], discount: Discount) -> PriceBreakdown:
    """Price ``items`` with ``discount`` applied.

    Args:
        items (Iterable[SaleItemRow]): Cart lines to price.
        discount (Discount): Discount chosen at the till.

    Returns:
        PriceBreakdown: Subtotal, uncapped discount amount, zero tax and the
            floored total.
    """

    subtotal = calculate_subtotal(list(items))
    discount_amount = calculate_discount_amount(subtotal, discount)
    total = calculate_total(subtotal, discount_amount)
    return PriceBreakdown(subtotal=subtotal, discount=discount_amount, tax=ZERO, total=total)


__all__ = [
    "FixedDiscount",
    "PercentDiscount",
    "Discount",
    "PriceBreakdown",
    "parse_discount",
    "calculate_subtotal",
    "calculate_discount_amount",
    "calculate_total",
    "price_cart",
]
