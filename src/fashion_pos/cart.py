"""Cart builder for the point-of-sale screen.

A cart is an ordered list of :class:`~fashion_pos.data_manager.SaleItemRow`
lines held in memory until the sale is committed. Nothing in this module
touches the workbook; stock on the catalog is only read to decide whether an
item may be added.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional

from . import log
from .constants import TransactionType
from .data_manager import ProductRow, SaleItemRow
from .errors import MissingReferenceError, OutOfStockError


@dataclass
class Cart:
    """Mutable list of pending sale lines in the order they were added."""

    items: List[SaleItemRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


def _find_line(cart: Cart, product_id: str, variant_id: Optional[str]) -> Optional[int]:
    for index, item in enumerate(cart.items):
        if item.product_id == product_id and item.variant_id == variant_id:
            return index
    return None


def _available_stock(product: ProductRow, variant_id: Optional[str]) -> int:
    if variant_id is None:
        return product.stock
    for variant in product.variants:
        if variant.variant_id == variant_id:
            return variant.stock
    raise MissingReferenceError(
        f"Unknown variant '{variant_id}' for product '{product.product_id}'"
    )


def unit_price(product: ProductRow) -> Decimal:
    """Return the price charged for one unit of ``product``.

    Rentals are charged their per-day rate, everything else its selling
    price. A missing price counts as zero.
    """

    if product.transaction_type == TransactionType.RENTAL.value:
        price = product.rental_price_per_day
    else:
        price = product.selling_price
    return price if price is not None else Decimal("0")


def add_to_cart(
    cart: Cart,
    product: ProductRow,
    *,
    variant_id: Optional[str] = None,
    rental_days: Optional[int] = None,
) -> SaleItemRow:
    """Add one unit of ``product`` to ``cart`` and return the affected line.

    Stocked items (anything but ``SERVICE``) with no stock left are refused
    and the cart is left untouched. When ``variant_id`` is given, the variant's
    own stock is checked instead of the product total. A ``variant_id`` must
    belong to ``product`` whatever its type, so services take none.

    Adding a product already in the cart bumps that line's quantity by one
    and keeps the price captured when the line was first created. New lines
    copy the product name and price by value.

    Args:
        cart (Cart): Cart to modify in place.
        product (ProductRow): Catalog entry being scanned or picked.
        variant_id (str | None): Optional variant picked for the product.
        rental_days (int | None): Number of rental days recorded on ``RENTAL``
            lines. The price is not multiplied by it.

    Returns:
        SaleItemRow: The new or updated cart line.

    Raises:
        OutOfStockError: If a stocked item has no units on hand.
        MissingReferenceError: If ``variant_id`` does not belong to ``product``.
    """

    available = _available_stock(product, variant_id)
    if product.transaction_type != TransactionType.SERVICE.value:
        if available <= 0:
            log.warning("Rejected out-of-stock item '%s' for cart", product.product_id)
            raise OutOfStockError(f"'{product.product_name}' is out of stock")

    index = _find_line(cart, product.product_id, variant_id)
    if index is not None:
        line = replace(cart.items[index], quantity=cart.items[index].quantity + 1)
        cart.items[index] = line
        log.debug("Incremented cart line '%s' to %d", product.product_id, line.quantity)
        return line

    line = SaleItemRow(
        product_id=product.product_id,
        product_name=product.product_name,
        quantity=1,
        price=unit_price(product),
        transaction_type=product.transaction_type,
        rental_days=rental_days if product.transaction_type == TransactionType.RENTAL.value else None,
        variant_id=variant_id,
    )
    cart.items.append(line)
    log.debug("Added cart line '%s' at %s", product.product_id, line.price)
    return line


def remove_from_cart(cart: Cart, product_id: str, variant_id: Optional[str] = None) -> None:
    """Drop the line for ``product_id`` (and ``variant_id``) from the cart.

    Raises:
        MissingReferenceError: If the cart has no such line.
    """

    index = _find_line(cart, product_id, variant_id)
    if index is None:
        raise MissingReferenceError(f"Product '{product_id}' is not in the cart")
    del cart.items[index]


def set_quantity(cart: Cart, product_id: str, quantity: int, variant_id: Optional[str] = None) -> SaleItemRow:
    """Overwrite the quantity of an existing line; the price is unchanged."""

    if quantity < 1:
        raise ValueError("Quantity must be at least 1")
    index = _find_line(cart, product_id, variant_id)
    if index is None:
        raise MissingReferenceError(f"Product '{product_id}' is not in the cart")
    line = replace(cart.items[index], quantity=quantity)
    cart.items[index] = line
    return line


def clear_cart(cart: Cart) -> None:
    cart.items.clear()


__all__ = [
    "Cart",
    "unit_price",
    "add_to_cart",
    "remove_from_cart",
    "set_quantity",
    "clear_cart",
]
