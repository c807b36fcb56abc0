"""Data access layer for the fashion POS.

This module provides low-level helpers that read from and write to the
``master_workbook.xlsx`` workbook. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Sheet operations: loading structured records and prepending, appending,
   updating or deleting individual rows.

Every collection lives on its own worksheet. Records with child lines
(products and their variants, sales and their items, purchases and their
items) are split across a header sheet and a line sheet joined by id.
"""


from __future__ import annotations

import configparser
import os
import tempfile
from dataclasses import dataclass, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from openpyxl.workbook import Workbook
import openpyxl

from . import i18n, log
from .constants import SheetName


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
VARIANTS_SHEET = SheetName.VARIANTS.value
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
SALES_SHEET = SheetName.SALES.value
SALE_ITEMS_SHEET = SheetName.SALE_ITEMS.value
REPAIRS_SHEET = SheetName.REPAIRS.value
SUPPLIERS_SHEET = SheetName.SUPPLIERS.value
PURCHASES_SHEET = SheetName.PURCHASES.value
PURCHASE_ITEMS_SHEET = SheetName.PURCHASE_ITEMS.value
USERS_SHEET = SheetName.USERS.value

# Column layout of every sheet, in worksheet order.
SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    PRODUCTS_SHEET: [
        "ProductID",
        "ProductName",
        "Barcode",
        "Category",
        "Brand",
        "Stock",
        "ReorderPoint",
        "CostPrice",
        "SellingPrice",
        "RentalPricePerDay",
        "TransactionType",
    ],
    VARIANTS_SHEET: ["VariantID", "ProductID", "Color", "Size", "Material", "Stock"],
    CUSTOMERS_SHEET: ["CustomerID", "CustomerName", "Phone", "Email", "Notes", "CreatedAt"],
    SALES_SHEET: [
        "SaleID",
        "Timestamp",
        "CustomerID",
        "CustomerName",
        "Subtotal",
        "Discount",
        "Tax",
        "Total",
        "PaymentMethod",
        "Cashier",
        "StockApplied",
    ],
    SALE_ITEMS_SHEET: [
        "SaleID",
        "LineNumber",
        "ProductID",
        "ProductName",
        "Quantity",
        "Price",
        "TransactionType",
        "RentalDays",
        "VariantID",
    ],
    REPAIRS_SHEET: [
        "RepairID",
        "CustomerName",
        "Garment",
        "Tag",
        "IssueDescription",
        "Status",
        "ReceivedAt",
    ],
    SUPPLIERS_SHEET: ["SupplierID", "SupplierName", "ContactPerson", "Phone", "Email", "Address"],
    PURCHASES_SHEET: ["PurchaseID", "SupplierID", "SupplierName", "TotalCost", "Timestamp", "Notes"],
    PURCHASE_ITEMS_SHEET: ["PurchaseID", "ProductID", "ProductName", "Quantity", "CostPrice"],
    USERS_SHEET: ["UserID", "Username", "Role"],
}


@dataclass(frozen=True)
class StoreSettings:
    """Shop identity and money settings printed on receipts."""

    name: str
    owner_name: Optional[str] = None
    phone: str = ""
    registration_number: str = ""
    footer_text: str = ""
    tax_rate: Decimal = Decimal("0")
    currency: str = "USD"
    language: str = i18n.DEFAULT_LANGUAGE


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    store_name: str
    schema_version: str
    default_cashier: str
    store: StoreSettings


@dataclass(frozen=True)
class VariantRow:
    """In-memory view of a row from the ``Variants`` sheet."""

    variant_id: str
    product_id: str
    color: Optional[str]
    size: Optional[str]
    material: Optional[str]
    stock: int

    @property
    def label(self) -> str:
        return " / ".join(part for part in (self.color, self.size, self.material) if part)


@dataclass(frozen=True)
class ProductRow:
    """A catalog entry together with its variant rows."""

    product_id: str
    product_name: str
    barcode: str
    category: str
    brand: str
    stock: int
    reorder_point: int
    cost_price: Decimal
    selling_price: Optional[Decimal]
    rental_price_per_day: Optional[Decimal]
    transaction_type: str
    variants: tuple[VariantRow, ...] = ()


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    customer_name: str
    phone: str
    email: Optional[str]
    notes: Optional[str]
    created_at_iso: str


@dataclass(frozen=True)
class SaleItemRow:
    """One line of a cart or committed sale.

    ``product_name`` and ``price`` are copied from the catalog when the line
    is created and never follow later catalog edits.
    """

    product_id: str
    product_name: str
    quantity: int
    price: Decimal
    transaction_type: str
    rental_days: Optional[int] = None
    variant_id: Optional[str] = None


@dataclass(frozen=True)
class SaleRow:
    """A committed sale with its ordered line items.

    ``stock_applied`` flips to ``True`` once the sold quantities have been
    deducted from the catalog.
    """

    sale_id: str
    timestamp_iso: str
    customer_id: Optional[str]
    customer_name: Optional[str]
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    payment_method: str
    cashier: str
    items: tuple[SaleItemRow, ...] = ()
    stock_applied: bool = False


@dataclass(frozen=True)
class RepairRow:
    """In-memory view of a tailoring job from the ``Repairs`` sheet."""

    repair_id: str
    customer_name: str
    garment: str
    tag: Optional[str]
    issue_description: str
    status: str
    received_at_iso: str


@dataclass(frozen=True)
class SupplierRow:
    """In-memory view of a row from the ``Suppliers`` sheet."""

    supplier_id: str
    supplier_name: str
    contact_person: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]


@dataclass(frozen=True)
class PurchaseItemRow:
    product_id: str
    product_name: str
    quantity: int
    cost_price: Decimal


@dataclass(frozen=True)
class PurchaseRow:
    """A supplier purchase invoice with its item lines."""

    purchase_id: str
    supplier_id: str
    supplier_name: str
    total_cost: Decimal
    timestamp_iso: str
    notes: Optional[str]
    items: tuple[PurchaseItemRow, ...] = ()


@dataclass(frozen=True)
class UserRow:
    """A staff member on the ``Users`` roster. No credentials are stored."""

    user_id: str
    username: str
    role: str


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification, which allows the caller to deliberately target a
    non-standard location. When no explicit path is given the function walks up
    from the current working directory toward the filesystem root looking for a
    file named ``CONFIG_FILE_NAME``. The first match that exists on disk is
    considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search. May be relative to the current working directory.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_store_settings(parser: configparser.ConfigParser, *, store_name: str) -> StoreSettings:
    """Build :class:`StoreSettings` from the optional ``[Store]`` section.

    Missing options fall back to neutral defaults. The currency defaults to
    the primary currency of the configured language.

    Raises:
        ValueError: If the language, currency or tax rate cannot be understood.
    """

    section = parser["Store"] if parser.has_section("Store") else {}
    language = section.get("Language", i18n.DEFAULT_LANGUAGE).strip().lower()
    language_info = i18n.get_language(language)
    currency = section.get("Currency", language_info.primary_currency).strip().upper()
    i18n.get_currency(currency)

    tax_raw = section.get("TaxRate", "0").strip() or "0"
    try:
        tax_rate = Decimal(tax_raw)
    except ArithmeticError as exc:
        raise ValueError(f"Invalid TaxRate: {tax_raw!r}") from exc

    return StoreSettings(
        name=store_name,
        owner_name=section.get("OwnerName") or None,
        phone=section.get("Phone", ""),
        registration_number=section.get("RegistrationNumber", ""),
        footer_text=section.get("FooterText", ""),
        tax_rate=tax_rate,
        currency=currency,
        language=language,
    )


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    The function validates that all required options are present under the
    expected sections and normalizes the configured data file path. Relative
    paths are expanded against ``base_path`` when provided, or against the
    current working directory as a fallback.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory to use as the anchor for relative
            ``DataFile`` entries. Defaults to :func:`Path.cwd` when omitted.

    Returns:
        ConfigSettings: Immutable settings container with resolved data file
            path, store metadata, schema version, and default cashier.

    Raises:
        KeyError: If one of the required sections or options is missing from the
            configuration.
        ValueError: If the ``[Store]`` section holds unsupported values.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        store_name = parser.get("System", "StoreName")
        schema_version = parser.get("System", "SchemaVersion")
        default_cashier = parser.get("Defaults", "Cashier")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        store_name=store_name,
        schema_version=schema_version,
        default_cashier=default_cashier,
        store=parse_store_settings(parser, store_name=store_name),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the ``master_workbook.xlsx`` file.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk at an explicitly provided destination.

    The workbook is first written to a temporary file next to ``destination``
    and then moved over it, so a write that fails partway leaves the previous
    file intact. Parent directories are created on demand.

    Args:
        workbook (Workbook): Workbook instance to persist.
        destination (Path): Filesystem path that should receive the serialized
            workbook.

    Raises:
        OSError: If the temporary file could not be written or moved into
            place. The temporary file is removed and ``destination`` is left
            as it was.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        dir=dest.parent, prefix=f".{dest.stem}-", suffix=dest.suffix, delete=False
    ) as handle:
        temp_path = Path(handle.name)
    try:
        workbook.save(temp_path)
        os.replace(temp_path, dest)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def read_headers(workbook: Workbook, sheet_name: str) -> List[Optional[str]]:
    """Return the header titles of ``sheet_name`` in column order."""

    sheet = workbook[sheet_name]
    return [cell.value for cell in sheet[1]]


def validate_workbook_layout(workbook: Workbook) -> List[str]:
    """List every way ``workbook`` deviates from :data:`SHEET_COLUMNS`.

    An empty list means every expected sheet exists and its header row starts
    with the expected columns. Extra trailing columns are tolerated.
    """

    problems: List[str] = []
    for sheet_name, columns in SHEET_COLUMNS.items():
        if sheet_name not in workbook.sheetnames:
            problems.append(f"Missing sheet: {sheet_name}")
            continue
        headers = read_headers(workbook, sheet_name)[: len(columns)]
        if list(headers) != list(columns):
            problems.append(f"Unexpected headers on {sheet_name}: {headers}")
    return problems


def _iter_sheet(workbook: Workbook, sheet_name: str) -> Iterable[tuple]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_variants(workbook: Workbook) -> Iterable[VariantRow]:
    """Iterate over variant records stored on the ``Variants`` worksheet."""

    for raw in _iter_sheet(workbook, VARIANTS_SHEET):
        yield deserialize_variant(raw)


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over catalog products with their variants attached.

    Variants are grouped by ``ProductID`` in their sheet order before the
    ``Products`` sheet is scanned, so each yielded :class:`ProductRow` carries
    its complete variant tuple.

    Args:
        workbook (Workbook): Workbook containing the ``Products`` and
            ``Variants`` sheets.

    Yields:
        ProductRow: One structured row for each meaningful product record.
    """

    variants_by_product: Dict[str, List[VariantRow]] = {}
    for variant in iter_variants(workbook):
        variants_by_product.setdefault(variant.product_id, []).append(variant)

    for raw in _iter_sheet(workbook, PRODUCTS_SHEET):
        product = deserialize_product(raw)
        variants = variants_by_product.get(product.product_id)
        if variants:
            product = replace(product, variants=tuple(variants))
        yield product


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    """Iterate over the ``Customers`` worksheet, newest first."""

    for raw in _iter_sheet(workbook, CUSTOMERS_SHEET):
        yield deserialize_customer(raw)


def iter_sales(workbook: Workbook) -> Iterable[SaleRow]:
    """Stream committed sales, most recent first, with their line items.

    Line items are collected from ``SaleItems`` and ordered by their
    ``LineNumber`` before being attached to the header row read from
    ``Sales``.

    Args:
        workbook (Workbook): Workbook containing the sales sheets.

    Yields:
        SaleRow: Normalized sale record for each populated header row.
    """

    items_by_sale: Dict[str, List[tuple[int, SaleItemRow]]] = {}
    for raw in _iter_sheet(workbook, SALE_ITEMS_SHEET):
        sale_id, line_number, item = deserialize_sale_item(raw)
        items_by_sale.setdefault(sale_id, []).append((line_number, item))

    for raw in _iter_sheet(workbook, SALES_SHEET):
        header = deserialize_sale(raw)
        lines = sorted(items_by_sale.get(header.sale_id, []), key=lambda pair: pair[0])
        yield replace(header, items=tuple(item for _, item in lines))


def iter_repairs(workbook: Workbook) -> Iterable[RepairRow]:
    """Iterate over tailoring jobs, newest first."""

    for raw in _iter_sheet(workbook, REPAIRS_SHEET):
        yield deserialize_repair(raw)


def iter_suppliers(workbook: Workbook) -> Iterable[SupplierRow]:
    for raw in _iter_sheet(workbook, SUPPLIERS_SHEET):
        yield deserialize_supplier(raw)


def iter_purchases(workbook: Workbook) -> Iterable[PurchaseRow]:
    """Iterate over supplier purchases, newest first, with their items."""

    items_by_purchase: Dict[str, List[PurchaseItemRow]] = {}
    for raw in _iter_sheet(workbook, PURCHASE_ITEMS_SHEET):
        purchase_id, item = deserialize_purchase_item(raw)
        items_by_purchase.setdefault(purchase_id, []).append(item)

    for raw in _iter_sheet(workbook, PURCHASES_SHEET):
        header = deserialize_purchase(raw)
        items = tuple(items_by_purchase.get(header.purchase_id, []))
        yield replace(header, items=items)


def iter_users(workbook: Workbook) -> Iterable[UserRow]:
    """Iterate over the staff roster in sheet order."""

    for raw in _iter_sheet(workbook, USERS_SHEET):
        yield deserialize_user(raw)


def prepend_row(workbook: Workbook, sheet_name: str, values: Sequence[object]) -> None:
    """Insert ``values`` directly below the header row of ``sheet_name``.

    Collections shown newest first keep that order on disk, so readers never
    need to sort.
    """

    sheet = workbook[sheet_name]
    sheet.insert_rows(2)
    for column_index, value in enumerate(values, start=1):
        sheet.cell(row=2, column=column_index, value=value)


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product and its variants to the catalog sheets.

    Args:
        workbook (Workbook): Workbook whose catalog sheets should be modified.
        record (ProductRow): Structured product data ready for persistence.
    """

    workbook[PRODUCTS_SHEET].append(serialize_product(record))
    for variant in record.variants:
        append_variant(workbook, variant)


def append_variant(workbook: Workbook, record: VariantRow) -> None:
    workbook[VARIANTS_SHEET].append(serialize_variant(record))


def prepend_customer(workbook: Workbook, record: CustomerRow) -> None:
    prepend_row(workbook, CUSTOMERS_SHEET, serialize_customer(record))


def prepend_sale(workbook: Workbook, record: SaleRow) -> None:
    """Write a committed sale: header on top of ``Sales``, lines appended.

    Args:
        workbook (Workbook): Workbook containing the sales sheets.
        record (SaleRow): Sale to persist together with its items.
    """

    prepend_row(workbook, SALES_SHEET, serialize_sale(record))
    items_sheet = workbook[SALE_ITEMS_SHEET]
    for line_number, item in enumerate(record.items, start=1):
        items_sheet.append(serialize_sale_item(record.sale_id, line_number, item))


def remove_sale(workbook: Workbook, sale_id: str) -> int:
    """Delete a sale header and its lines; returns the number of rows removed.

    Only used to roll back a sale whose save failed; committed sales are
    otherwise never removed.
    """

    removed = delete_rows(workbook, SALES_SHEET, "SaleID", sale_id)
    removed += delete_rows(workbook, SALE_ITEMS_SHEET, "SaleID", sale_id)
    return removed


def prepend_repair(workbook: Workbook, record: RepairRow) -> None:
    prepend_row(workbook, REPAIRS_SHEET, serialize_repair(record))


def prepend_supplier(workbook: Workbook, record: SupplierRow) -> None:
    prepend_row(workbook, SUPPLIERS_SHEET, serialize_supplier(record))


def prepend_purchase(workbook: Workbook, record: PurchaseRow) -> None:
    prepend_row(workbook, PURCHASES_SHEET, serialize_purchase(record))
    items_sheet = workbook[PURCHASE_ITEMS_SHEET]
    for item in record.items:
        items_sheet.append(serialize_purchase_item(record.purchase_id, item))


def append_user(workbook: Workbook, record: UserRow) -> None:
    workbook[USERS_SHEET].append(serialize_user(record))


def update_row(
    workbook: Workbook,
    sheet_name: str,
    key_column: str,
    key_value: str,
    *,
    field_values: Mapping[str, Any],
) -> None:
    """Update selected columns for the row whose key matches ``key_value``.

    The function locates the row, validates that each requested field exists
    in the header row, and then writes the provided values into the
    corresponding cells. Only the specified fields are modified.

    Args:
        workbook (Workbook): Workbook containing ``sheet_name``.
        sheet_name (str): Worksheet to modify.
        key_column (str): Header title of the identifier column.
        key_value (str): Identifier used to locate the target row.
        field_values (Mapping[str, Any]): Mapping of column names to replacement
            values.

    Raises:
        KeyError: If the row or any referenced column cannot be found.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")

    sheet = workbook[sheet_name]
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}

    for field, value in field_values.items():
        if field not in header_map:
            raise KeyError(f"Unknown {sheet_name} field: {field}")
        sheet.cell(row=row_index, column=header_map[field], value=value)


def update_product(workbook: Workbook, product_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, PRODUCTS_SHEET, "ProductID", product_id, field_values=field_values)


def update_variant(workbook: Workbook, variant_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, VARIANTS_SHEET, "VariantID", variant_id, field_values=field_values)


def update_customer(workbook: Workbook, customer_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, CUSTOMERS_SHEET, "CustomerID", customer_id, field_values=field_values)


def update_repair(workbook: Workbook, repair_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, REPAIRS_SHEET, "RepairID", repair_id, field_values=field_values)


def update_supplier(workbook: Workbook, supplier_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, SUPPLIERS_SHEET, "SupplierID", supplier_id, field_values=field_values)


def update_user(workbook: Workbook, user_id: str, *, field_values: Mapping[str, Any]) -> None:
    update_row(workbook, USERS_SHEET, "UserID", user_id, field_values=field_values)


def mark_sale_stock_applied(workbook: Workbook, sale_id: str) -> None:
    """Flag a sale whose quantities have been taken off the catalog."""

    update_row(workbook, SALES_SHEET, "SaleID", sale_id, field_values={"StockApplied": True})


def delete_rows(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> int:
    """Remove every row whose ``key_column`` equals ``key_value``.

    Rows are deleted bottom-up so earlier indices stay valid while the sheet
    shrinks.

    Returns:
        int: Number of rows removed (zero when nothing matched).

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = {cell.value: idx for idx, cell in enumerate(sheet[1])}
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")
    key_index = header_map[key_column]

    matches = [
        row_idx
        for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2)
        if row[key_index] == key_value
    ]
    for row_idx in reversed(matches):
        sheet.delete_rows(row_idx)
    return len(matches)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the column that stores the
            lookup key.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        if row[key_col_index - 1] == key_value:
            return row_idx

    return None


def _to_decimal(raw: object, default: str = "0.00") -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal(default)


def _to_optional_decimal(raw: object) -> Optional[Decimal]:
    return Decimal(str(raw)) if raw is not None else None


def _to_int(raw: object, default: int = 0) -> int:
    return int(raw) if raw is not None else default


def _to_optional_int(raw: object) -> Optional[int]:
    return int(raw) if raw is not None else None


def _to_optional_str(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def _to_str(raw: object) -> str:
    return str(raw) if raw is not None else ""


def _to_code(raw: object) -> str:
    # Excel hands back typed-in codes such as 1001001 as floats
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    return _to_str(raw)


def serialize_product(record: ProductRow) -> list[object]:
    """Convert a product dataclass into the ``Products`` column ordering.

    Variants are not part of the row; they are written to their own sheet.
    """

    return [
        record.product_id,
        record.product_name,
        record.barcode,
        record.category,
        record.brand,
        record.stock,
        record.reorder_point,
        record.cost_price,
        record.selling_price,
        record.rental_price_per_day,
        record.transaction_type,
    ]


def serialize_variant(record: VariantRow) -> list[object]:
    return [record.variant_id, record.product_id, record.color, record.size, record.material, record.stock]


def serialize_customer(record: CustomerRow) -> list[object]:
    return [
        record.customer_id,
        record.customer_name,
        record.phone,
        record.email,
        record.notes,
        record.created_at_iso,
    ]


def serialize_sale(record: SaleRow) -> list[object]:
    """Convert a sale header into the ``Sales`` column ordering.

    Numeric fields remain :class:`~decimal.Decimal` instances so Excel keeps
    their precision.
    """

    return [
        record.sale_id,
        record.timestamp_iso,
        record.customer_id,
        record.customer_name,
        record.subtotal,
        record.discount,
        record.tax,
        record.total,
        record.payment_method,
        record.cashier,
        record.stock_applied,
    ]


def serialize_sale_item(sale_id: str, line_number: int, record: SaleItemRow) -> list[object]:
    return [
        sale_id,
        line_number,
        record.product_id,
        record.product_name,
        record.quantity,
        record.price,
        record.transaction_type,
        record.rental_days,
        record.variant_id,
    ]


def serialize_repair(record: RepairRow) -> list[object]:
    return [
        record.repair_id,
        record.customer_name,
        record.garment,
        record.tag,
        record.issue_description,
        record.status,
        record.received_at_iso,
    ]


def serialize_supplier(record: SupplierRow) -> list[object]:
    return [
        record.supplier_id,
        record.supplier_name,
        record.contact_person,
        record.phone,
        record.email,
        record.address,
    ]


def serialize_purchase(record: PurchaseRow) -> list[object]:
    return [
        record.purchase_id,
        record.supplier_id,
        record.supplier_name,
        record.total_cost,
        record.timestamp_iso,
        record.notes,
    ]


def serialize_purchase_item(purchase_id: str, record: PurchaseItemRow) -> list[object]:
    return [purchase_id, record.product_id, record.product_name, record.quantity, record.cost_price]


def serialize_user(record: UserRow) -> list[object]:
    return [record.user_id, record.username, record.role]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw ``Products`` row into a strongly typed product record.

    Identifier and text fields are coerced to ``str`` so barcodes Excel stored
    as numbers still compare equal to the scanned text. Prices become
    :class:`~decimal.Decimal`; the optional ones stay ``None`` when blank.
    """

    (
        product_id,
        product_name,
        barcode,
        category,
        brand,
        stock,
        reorder_point,
        cost_price,
        selling_price,
        rental_price,
        transaction_type,
    ) = tuple(raw_row)[:11]

    return ProductRow(
        product_id=str(product_id),
        product_name=_to_str(product_name),
        barcode=_to_code(barcode),
        category=_to_str(category),
        brand=_to_str(brand),
        stock=_to_int(stock),
        reorder_point=_to_int(reorder_point),
        cost_price=_to_decimal(cost_price),
        selling_price=_to_optional_decimal(selling_price),
        rental_price_per_day=_to_optional_decimal(rental_price),
        transaction_type=_to_str(transaction_type),
    )


def deserialize_variant(raw_row: Sequence[object]) -> VariantRow:
    variant_id, product_id, color, size, material, stock = tuple(raw_row)[:6]
    return VariantRow(
        variant_id=str(variant_id),
        product_id=str(product_id),
        color=_to_optional_str(color),
        size=_to_optional_str(size),
        material=_to_optional_str(material),
        stock=_to_int(stock),
    )


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    customer_id, name, phone, email, notes, created_at = tuple(raw_row)[:6]
    return CustomerRow(
        customer_id=str(customer_id),
        customer_name=_to_str(name),
        phone=_to_str(phone),
        email=_to_optional_str(email),
        notes=_to_optional_str(notes),
        created_at_iso=_to_str(created_at),
    )


def deserialize_sale(raw_row: Sequence[object]) -> SaleRow:
    """Convert a raw ``Sales`` row into a sale header without items.

    Monetary columns are normalized into :class:`~decimal.Decimal`, and the
    optional customer columns remain ``None`` when blank.
    """

    (
        sale_id,
        timestamp_iso,
        customer_id,
        customer_name,
        subtotal,
        discount,
        tax,
        total,
        payment_method,
        cashier,
        stock_applied,
    ) = (tuple(raw_row) + (None,))[:11]

    return SaleRow(
        sale_id=str(sale_id),
        timestamp_iso=_to_str(timestamp_iso),
        customer_id=_to_optional_str(customer_id),
        customer_name=_to_optional_str(customer_name),
        subtotal=_to_decimal(subtotal),
        discount=_to_decimal(discount),
        tax=_to_decimal(tax),
        total=_to_decimal(total),
        payment_method=_to_str(payment_method),
        cashier=_to_str(cashier),
        stock_applied=bool(stock_applied),
    )


def deserialize_sale_item(raw_row: Sequence[object]) -> tuple[str, int, SaleItemRow]:
    """Convert a ``SaleItems`` row into ``(sale_id, line_number, item)``."""

    (
        sale_id,
        line_number,
        product_id,
        product_name,
        quantity,
        price,
        transaction_type,
        rental_days,
        variant_id,
    ) = tuple(raw_row)[:9]

    item = SaleItemRow(
        product_id=str(product_id),
        product_name=_to_str(product_name),
        quantity=_to_int(quantity),
        price=_to_decimal(price),
        transaction_type=_to_str(transaction_type),
        rental_days=_to_optional_int(rental_days),
        variant_id=_to_optional_str(variant_id),
    )
    return str(sale_id), _to_int(line_number), item


def deserialize_repair(raw_row: Sequence[object]) -> RepairRow:
    repair_id, customer_name, garment, tag, issue, status, received_at = tuple(raw_row)[:7]
    return RepairRow(
        repair_id=str(repair_id),
        customer_name=_to_str(customer_name),
        garment=_to_str(garment),
        tag=_to_optional_str(tag),
        issue_description=_to_str(issue),
        status=_to_str(status),
        received_at_iso=_to_str(received_at),
    )


def deserialize_supplier(raw_row: Sequence[object]) -> SupplierRow:
    supplier_id, name, contact, phone, email, address = tuple(raw_row)[:6]
    return SupplierRow(
        supplier_id=str(supplier_id),
        supplier_name=_to_str(name),
        contact_person=_to_optional_str(contact),
        phone=_to_optional_str(phone),
        email=_to_optional_str(email),
        address=_to_optional_str(address),
    )


def deserialize_purchase(raw_row: Sequence[object]) -> PurchaseRow:
    purchase_id, supplier_id, supplier_name, total_cost, timestamp_iso, notes = tuple(raw_row)[:6]
    return PurchaseRow(
        purchase_id=str(purchase_id),
        supplier_id=_to_str(supplier_id),
        supplier_name=_to_str(supplier_name),
        total_cost=_to_decimal(total_cost),
        timestamp_iso=_to_str(timestamp_iso),
        notes=_to_optional_str(notes),
    )


def deserialize_purchase_item(raw_row: Sequence[object]) -> tuple[str, PurchaseItemRow]:
    purchase_id, product_id, product_name, quantity, cost_price = tuple(raw_row)[:5]
    item = PurchaseItemRow(
        product_id=str(product_id),
        product_name=_to_str(product_name),
        quantity=_to_int(quantity),
        cost_price=_to_decimal(cost_price),
    )
    return str(purchase_id), item


def deserialize_user(raw_row: Sequence[object]) -> UserRow:
    user_id, username, role = tuple(raw_row)[:3]
    return UserRow(user_id=str(user_id), username=_to_str(username), role=_to_str(role))


log.debug("Data layer ready with sheets: %s", ", ".join(SHEET_COLUMNS))
