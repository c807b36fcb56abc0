"""Enumerations and fixed identifiers shared across the POS layers.

The data access layer (DAL), the business logic layer (BLL) and the CLI all
read their sheet names, transaction tags and status values from here so the
workbook never disagrees with the code about a spelling.
"""

from __future__ import annotations

from enum import Enum


# Schema version the workbook declared in config.ini must match.
EXPECTED_SCHEMA_VERSION = "2.0.0"

# Stock value stored for SERVICE products, which never run out.
UNLIMITED_STOCK = 999999


class TransactionType(str, Enum):
    """How a catalog item is charged at the till."""

    SALE = "SALE"
    RENTAL = "RENTAL"
    SERVICE = "SERVICE"


class PaymentMethod(str, Enum):
    """Enumerate the tenders accepted at checkout."""

    CASH = "CASH"
    CARD = "CARD"
    EWALLET = "EWALLET"


class RepairStatus(str, Enum):
    """Lifecycle of a tailoring job, in the only order it may move."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    COMPLETED = "COMPLETED"


class Role(str, Enum):
    """Staff roles kept on the roster; any role may ring up a sale."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    SALES = "SALES"
    DESIGNER = "DESIGNER"
    MAINTENANCE = "MAINTENANCE"


class DiscountMode(str, Enum):
    """Whether a discount value is an absolute amount or a percentage."""

    FIXED = "FIXED"
    PERCENT = "PERCENT"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    PRODUCTS = "Products"
    VARIANTS = "Variants"
    CUSTOMERS = "Customers"
    SALES = "Sales"
    SALE_ITEMS = "SaleItems"
    REPAIRS = "Repairs"
    SUPPLIERS = "Suppliers"
    PURCHASES = "Purchases"
    PURCHASE_ITEMS = "PurchaseItems"
    USERS = "Users"


REPAIR_STATUS_FLOW: tuple[RepairStatus, ...] = (
    RepairStatus.PENDING,
    RepairStatus.IN_PROGRESS,
    RepairStatus.READY,
    RepairStatus.COMPLETED,
)


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "UNLIMITED_STOCK",
    "TransactionType",
    "PaymentMethod",
    "RepairStatus",
    "DiscountMode",
    "Role",
    "SheetName",
    "REPAIR_STATUS_FLOW",
]
