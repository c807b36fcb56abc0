"""Plain-text receipts for committed sales."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from . import i18n
from .data_manager import SaleRow, StoreSettings


RECEIPT_WIDTH = 32
SHORT_ID_LENGTH = 6


def short_sale_id(sale_id: str) -> str:
    return sale_id[-SHORT_ID_LENGTH:]


def _two_columns(left: str, right: str, width: int = RECEIPT_WIDTH) -> str:
    gap = max(1, width - len(left) - len(right))
    return f"{left}{' ' * gap}{right}"


def render_receipt(
    sale: SaleRow,
    store: StoreSettings,
    *,
    language: Optional[str] = None,
    currency: Optional[str] = None,
) -> str:
    """Render ``sale`` as a receipt for a narrow thermal printer.

    The header carries the store name and phone, the sale date and the last
    six characters of the sale id. Each item prints as ``qty x price`` with
    its line total. The discount line only appears when a discount was given.
    Owner and footer lines are printed when the store has them configured.

    Args:
        sale (SaleRow): Committed sale to print.
        store (StoreSettings): Shop identity, language and currency.
        language (str | None): Overrides ``store.language`` for the labels.
            Unknown languages fall back to English.
        currency (str | None): Overrides ``store.currency``.

    Returns:
        str: Receipt text with a trailing newline.
    """

    labels = i18n.receipt_labels(language or store.language)
    code = currency or store.currency

    def money(amount: Decimal) -> str:
        return i18n.format_currency(amount, code)

    separator = "-" * RECEIPT_WIDTH
    lines: List[str] = [store.name.center(RECEIPT_WIDTH).rstrip()]
    if store.phone:
        lines.append(f"{labels['phone']}: {store.phone}".center(RECEIPT_WIDTH).rstrip())
    if store.registration_number:
        lines.append(store.registration_number.center(RECEIPT_WIDTH).rstrip())
    lines.append(separator)

    stamp = datetime.fromisoformat(sale.timestamp_iso).strftime("%Y-%m-%d %H:%M")
    lines.append(_two_columns(stamp, f"#{short_sale_id(sale.sale_id)}"))
    lines.append(f"{labels['cashier']}: {sale.cashier}")
    if sale.customer_name:
        lines.append(f"{labels['customer']}: {sale.customer_name}")
    lines.append(separator)

    for item in sale.items:
        lines.append(item.product_name)
        lines.append(
            _two_columns(f"  {item.quantity} x {money(item.price)}", money(item.price * item.quantity))
        )
    lines.append(separator)

    lines.append(_two_columns(labels["subtotal"], money(sale.subtotal)))
    if sale.discount > 0:
        lines.append(_two_columns(labels["discount"], money(-sale.discount)))
    lines.append(_two_columns(labels["total"], money(sale.total)))
    lines.append(separator)

    lines.append(labels["thanks"].center(RECEIPT_WIDTH).rstrip())
    if store.owner_name:
        lines.append(f"{labels['managed_by']}: {store.owner_name}".center(RECEIPT_WIDTH).rstrip())
    if store.footer_text:
        lines.append(store.footer_text.center(RECEIPT_WIDTH).rstrip())
    return "\n".join(lines) + "\n"


__all__ = ["render_receipt", "short_sale_id"]
