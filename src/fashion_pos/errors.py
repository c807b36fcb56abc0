"""Exception hierarchy shared by the cart, pricing and business layers."""

from __future__ import annotations


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product, customer, sale, or job is unknown."""


class OutOfStockError(BusinessRuleViolation):
    """Raised when a stocked item with nothing on hand is added to a cart."""


class EmptyCartError(BusinessRuleViolation):
    """Raised when a sale is committed without any line items."""


class NotAuthenticatedError(BusinessRuleViolation):
    """Raised when a sale is committed without a cashier identity."""


class InvalidStatusTransition(BusinessRuleViolation):
    """Raised when a tailoring job skips or reverses a status step."""


class DuplicateBarcodeError(BusinessRuleViolation):
    """Raised when a barcode is already assigned to another product."""


class PersistenceError(RuntimeError):
    """Raised when the workbook could not be written; nothing was kept."""


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "OutOfStockError",
    "EmptyCartError",
    "NotAuthenticatedError",
    "InvalidStatusTransition",
    "DuplicateBarcodeError",
    "PersistenceError",
]
