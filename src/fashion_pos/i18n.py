"""Currency and language tables used for receipts and store settings."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Mapping


@dataclass(frozen=True)
class Currency:
    code: str
    symbol: str
    name: str


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    direction: str
    primary_currency: str


CURRENCIES: Mapping[str, Currency] = {
    currency.code: currency
    for currency in (
        Currency("EGP", "ج.م", "Egyptian Pound"),
        Currency("USD", "$", "US Dollar"),
        Currency("EUR", "€", "Euro"),
        Currency("SAR", "ر.س", "Saudi Riyal"),
        Currency("AED", "د.إ", "UAE Dirham"),
        Currency("GBP", "£", "British Pound"),
        Currency("JPY", "¥", "Japanese Yen"),
        Currency("CNY", "¥", "Chinese Yuan"),
        Currency("INR", "₹", "Indian Rupee"),
        Currency("RUB", "₽", "Russian Ruble"),
        Currency("BRL", "R$", "Brazilian Real"),
        Currency("CAD", "C$", "Canadian Dollar"),
        Currency("AUD", "A$", "Australian Dollar"),
        Currency("CHF", "CHF", "Swiss Franc"),
        Currency("MXN", "MX$", "Mexican Peso"),
        Currency("TRY", "₺", "Turkish Lira"),
        Currency("KRW", "₩", "South Korean Won"),
        Currency("VND", "₫", "Vietnamese Dong"),
    )
}

LANGUAGES: Mapping[str, Language] = {
    "ar": Language("ar", "العربية", "rtl", "EGP"),
    "en": Language("en", "English", "ltr", "USD"),
    "fr": Language("fr", "Français", "ltr", "EUR"),
    "es": Language("es", "Español", "ltr", "EUR"),
    "de": Language("de", "Deutsch", "ltr", "EUR"),
}

DEFAULT_LANGUAGE = "en"

RECEIPT_LABELS: Mapping[str, Dict[str, str]] = {
    "en": {
        "phone": "Phone",
        "subtotal": "Subtotal",
        "discount": "Discount",
        "total": "Total",
        "cashier": "Cashier",
        "customer": "Customer",
        "thanks": "Thank you for your visit",
        "managed_by": "Managed by",
    },
    "ar": {
        "phone": "هاتف",
        "subtotal": "المجموع",
        "discount": "الخصم",
        "total": "الإجمالي الصافي",
        "cashier": "البائع",
        "customer": "العميل",
        "thanks": "شكراً لزيارتكم",
        "managed_by": "بإدارة",
    },
    "fr": {
        "phone": "Tél",
        "subtotal": "Sous-total",
        "discount": "Remise",
        "total": "Total",
        "cashier": "Caissier",
        "customer": "Client",
        "thanks": "Merci de votre visite",
        "managed_by": "Géré par",
    },
    "es": {
        "phone": "Tel",
        "subtotal": "Subtotal",
        "discount": "Descuento",
        "total": "Total",
        "cashier": "Cajero",
        "customer": "Cliente",
        "thanks": "Gracias por su visita",
        "managed_by": "Gestionado por",
    },
    "de": {
        "phone": "Tel",
        "subtotal": "Zwischensumme",
        "discount": "Rabatt",
        "total": "Gesamt",
        "cashier": "Kassierer",
        "customer": "Kunde",
        "thanks": "Vielen Dank für Ihren Besuch",
        "managed_by": "Geführt von",
    },
}


def get_currency(code: str) -> Currency:
    """Return the currency for ``code`` or raise ``ValueError`` when unknown."""

    try:
        return CURRENCIES[code.upper()]
    except KeyError as exc:
        raise ValueError(f"Unsupported currency: {code}") from exc


def get_language(code: str) -> Language:
    """Return the language for ``code`` or raise ``ValueError`` when unknown."""

    try:
        return LANGUAGES[code.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported language: {code}") from exc


def receipt_labels(language: str) -> Mapping[str, str]:
    # Unknown languages fall back to English labels.
    return RECEIPT_LABELS.get(language.lower(), RECEIPT_LABELS[DEFAULT_LANGUAGE])


def format_currency(amount: Decimal, code: str) -> str:
    """Render ``amount`` with two decimals, thousands grouping and a symbol.

    Negative amounts keep their sign in front of the symbol so refunds or
    corrections stay readable on a receipt.
    """

    currency = get_currency(code)
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    return f"{sign}{currency.symbol}{abs(quantized):,.2f}"


__all__ = [
    "Currency",
    "Language",
    "CURRENCIES",
    "LANGUAGES",
    "DEFAULT_LANGUAGE",
    "RECEIPT_LABELS",
    "get_currency",
    "get_language",
    "receipt_labels",
    "format_currency",
]
