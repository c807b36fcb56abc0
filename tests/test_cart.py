"""Unit tests for the in-memory cart builder."""

from __future__ import annotations

from decimal import Decimal

import pytest

from fashion_pos import cart as cart_module
from fashion_pos.cart import Cart, add_to_cart, clear_cart, remove_from_cart, set_quantity
from fashion_pos.constants import TransactionType
from fashion_pos.data_manager import VariantRow
from fashion_pos.errors import MissingReferenceError, OutOfStockError


def test_adding_same_product_twice_merges_lines(product_factory):
    cart = Cart()
    suit = product_factory("P1", price="250.00")

    add_to_cart(cart, suit)
    add_to_cart(cart, suit)

    assert len(cart) == 1
    assert cart.items[0].quantity == 2
    assert cart.items[0].price == Decimal("250.00")


def test_price_is_captured_when_line_is_created(product_factory):
    cart = Cart()
    add_to_cart(cart, product_factory("P1", price="250.00"))

    add_to_cart(cart, product_factory("P1", price="275.00"))

    assert cart.items[0].price == Decimal("250.00")
    assert cart.items[0].quantity == 2


def test_out_of_stock_item_is_rejected_and_cart_unchanged(product_factory):
    cart = Cart()
    add_to_cart(cart, product_factory("P1"))

    with pytest.raises(OutOfStockError):
        add_to_cart(cart, product_factory("P2", name="Sold Out", stock=0))

    assert [item.product_id for item in cart.items] == ["P1"]
    assert cart.items[0].quantity == 1


def test_service_items_ignore_stock(product_factory):
    cart = Cart()
    hemming = product_factory(
        "P-HEM",
        name="Trouser Hemming",
        price="15.00",
        transaction_type=TransactionType.SERVICE,
        stock=0,
    )

    line = add_to_cart(cart, hemming)

    assert line.price == Decimal("15.00")
    assert line.transaction_type == TransactionType.SERVICE.value


def test_service_item_with_unknown_variant_is_rejected(product_factory):
    cart = Cart()
    hemming = product_factory("P-HEM", price="15.00", transaction_type=TransactionType.SERVICE)

    with pytest.raises(MissingReferenceError):
        add_to_cart(cart, hemming, variant_id="P-HEM-V9")

    assert cart.is_empty


def test_rental_uses_daily_rate_and_records_days(product_factory):
    cart = Cart()
    tuxedo = product_factory(
        "P-TUX",
        name="Tuxedo Rental",
        price=None,
        rental="40.00",
        transaction_type=TransactionType.RENTAL,
    )

    line = add_to_cart(cart, tuxedo, rental_days=3)

    assert line.price == Decimal("40.00")
    assert line.rental_days == 3


def test_missing_price_counts_as_zero(product_factory):
    cart = Cart()

    line = add_to_cart(cart, product_factory("P1", price=None))

    assert line.price == Decimal("0")


def test_variant_stock_is_checked_per_variant(product_factory):
    variants = (
        VariantRow("V1", "P1", "Navy", "48", "Wool", 0),
        VariantRow("V2", "P1", "Navy", "50", "Wool", 2),
    )
    suit = product_factory("P1", stock=2, variants=variants)
    cart = Cart()

    with pytest.raises(OutOfStockError):
        add_to_cart(cart, suit, variant_id="V1")
    add_to_cart(cart, suit, variant_id="V2")
    add_to_cart(cart, suit, variant_id="V2")

    assert len(cart) == 1
    assert cart.items[0].variant_id == "V2"
    assert cart.items[0].quantity == 2


def test_unknown_variant_is_a_missing_reference(product_factory):
    with pytest.raises(MissingReferenceError):
        add_to_cart(Cart(), product_factory("P1"), variant_id="nope")


def test_different_variants_make_separate_lines(product_factory):
    variants = (
        VariantRow("V1", "P1", "Red", "S", "Silk", 3),
        VariantRow("V2", "P1", "Black", "M", "Silk", 3),
    )
    dress = product_factory("P1", name="Evening Dress", price="65.00", stock=6, variants=variants)
    cart = Cart()

    add_to_cart(cart, dress, variant_id="V1")
    add_to_cart(cart, dress, variant_id="V2")

    assert [item.variant_id for item in cart.items] == ["V1", "V2"]


def test_set_quantity_and_remove(product_factory):
    cart = Cart()
    add_to_cart(cart, product_factory("P1"))
    add_to_cart(cart, product_factory("P2", name="Chinos", price="45.00"))

    set_quantity(cart, "P2", 3)
    remove_from_cart(cart, "P1")

    assert [(item.product_id, item.quantity) for item in cart.items] == [("P2", 3)]


def test_set_quantity_rejects_values_below_one(product_factory):
    cart = Cart()
    add_to_cart(cart, product_factory("P1"))

    with pytest.raises(ValueError):
        set_quantity(cart, "P1", 0)


def test_remove_unknown_line_raises():
    with pytest.raises(MissingReferenceError):
        remove_from_cart(Cart(), "P404")


def test_clear_cart_empties_items(product_factory):
    cart = Cart()
    add_to_cart(cart, product_factory("P1"))

    clear_cart(cart)

    assert cart.is_empty


def test_unit_price_prefers_rental_rate_for_rentals(product_factory):
    rental = product_factory("P1", price="999.00", rental="40.00", transaction_type=TransactionType.RENTAL)

    assert cart_module.unit_price(rental) == Decimal("40.00")
