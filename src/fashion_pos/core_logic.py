"""Business logic layer for the fashion POS.

This module holds the rules for the catalog, customers, tailoring jobs,
suppliers and committed sales. It consumes the Data Access Layer (DAL) for
all I/O while ensuring every mutation passes through the domain checks
described here. Pricing and cart handling live in :mod:`fashion_pos.pricing`
and :mod:`fashion_pos.cart`; this layer turns their output into records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import (
    EXPECTED_SCHEMA_VERSION,
    REPAIR_STATUS_FLOW,
    UNLIMITED_STOCK,
    PaymentMethod,
    RepairStatus,
    Role,
    TransactionType,
)
from .errors import (
    BusinessRuleViolation,
    DuplicateBarcodeError,
    EmptyCartError,
    InvalidStatusTransition,
    MissingReferenceError,
    NotAuthenticatedError,
    PersistenceError,
)
from .pricing import Discount, FixedDiscount, price_cart
from .repository import SalesRepository, WorkbookSalesRepository


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and workbook references used by the BLL."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class VariantDraft:
    color: Optional[str] = None
    size: Optional[str] = None
    material: Optional[str] = None
    stock: int = 0


@dataclass(frozen=True)
class ProductDraft:
    """User intent for creating a catalog entry."""

    product_name: str
    barcode: str
    category: str
    cost_price: Decimal
    selling_price: Optional[Decimal] = None
    rental_price_per_day: Optional[Decimal] = None
    transaction_type: TransactionType = TransactionType.SALE
    brand: str = ""
    stock: int = 0
    reorder_point: int = 0
    variants: tuple[VariantDraft, ...] = ()


@dataclass(frozen=True)
class SaleCommand:
    """User intent for committing the current cart as a sale."""

    cart_items: Sequence[data_manager.SaleItemRow]
    payment_method: Union[PaymentMethod, str]
    cashier: Optional[str]
    discount: Discount = field(default_factory=FixedDiscount)
    customer_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PurchaseLine:
    product_id: str
    quantity: int
    cost_price: Decimal


@dataclass(frozen=True)
class PurchaseCommand:
    """User intent for recording a supplier invoice."""

    supplier_id: str
    items: Sequence[PurchaseLine]
    notes: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class LowStockAlert:
    """A product whose stock fell to or below its reorder point."""

    product_id: str
    product_name: str
    stock: int
    reorder_point: int


PRODUCT_FIELD_COLUMNS: Mapping[str, str] = {
    "product_name": "ProductName",
    "barcode": "Barcode",
    "category": "Category",
    "brand": "Brand",
    "stock": "Stock",
    "reorder_point": "ReorderPoint",
    "cost_price": "CostPrice",
    "selling_price": "SellingPrice",
    "rental_price_per_day": "RentalPricePerDay",
    "transaction_type": "TransactionType",
}

CUSTOMER_FIELD_COLUMNS: Mapping[str, str] = {
    "customer_name": "CustomerName",
    "phone": "Phone",
    "email": "Email",
    "notes": "Notes",
}

SUPPLIER_FIELD_COLUMNS: Mapping[str, str] = {
    "supplier_name": "SupplierName",
    "contact_person": "ContactPerson",
    "phone": "Phone",
    "email": "Email",
    "address": "Address",
}

USER_FIELD_COLUMNS: Mapping[str, str] = {
    "username": "Username",
    "role": "Role",
}


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Resolve optional timestamps into consistent, timezone-aware values.

    Args:
        candidate (datetime | None): Caller-provided timestamp, usually sourced
            from a command object.

    Returns:
        datetime: ``candidate`` as-is when provided, otherwise the current UTC
            datetime generated via :func:`datetime.now`.
    """

    return candidate if candidate is not None else datetime.now(UTC)


def _get_cache_bucket(context: RuntimeContext, name: str) -> Dict[str, Any]:
    """Return a mutable cache bucket dedicated to the supplied name.

    The business logic layer keeps in-memory caches keyed by domain area
    (products, customers, sales and so on). Buckets are plain dictionaries
    that store precomputed query results so repeated lookups do not rescan
    the workbook.
    """

    bucket = context._cache.get(name)
    if bucket is None:
        log.debug("Initializing cache bucket '%s'", name)
        bucket = {}
        context._cache[name] = bucket
    return bucket


def _invalidate_cache(context: RuntimeContext, *names: str) -> None:
    """Evict one or more cache buckets after mutating workbook state.

    Missing buckets are ignored so callers can request targeted invalidation
    without checking first.
    """

    if not names:
        return

    log.debug("Invalidating cache buckets: %s", ", ".join(names))

    for name in names:
        context._cache.pop(name, None)


def _ensure_products_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the product cache bucket on demand.

    Returns:
        dict[str, Any]: Bucket containing ``all`` products plus ``by_id`` and
            ``by_barcode`` lookup dictionaries.
    """

    bucket = _get_cache_bucket(context, "products")
    if "all" not in bucket:
        all_products = list(data_manager.iter_products(context.workbook))
        bucket["all"] = all_products
        bucket["by_id"] = {product.product_id: product for product in all_products}
        bucket["by_barcode"] = {
            product.barcode: product for product in all_products if product.barcode
        }
        log.debug("Populated products cache with %d entries", len(all_products))
    return bucket


def _ensure_customers_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "customers")
    if "all" not in bucket:
        all_customers = list(data_manager.iter_customers(context.workbook))
        bucket["all"] = all_customers
        bucket["by_id"] = {customer.customer_id: customer for customer in all_customers}
        log.debug("Populated customers cache with %d entries", len(all_customers))
    return bucket


def _ensure_sales_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the sales cache bucket on demand.

    Sales are immutable after commit apart from their stock flag, so the
    bucket is only dropped after a commit or a stock update.
    """

    bucket = _get_cache_bucket(context, "sales")
    if "all" not in bucket:
        all_sales = list(data_manager.iter_sales(context.workbook))
        bucket["all"] = all_sales
        bucket["by_id"] = {sale.sale_id: sale for sale in all_sales}
        log.debug("Populated sales cache with %d entries", len(all_sales))
    return bucket


def _ensure_repairs_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "repairs")
    if "all" not in bucket:
        all_repairs = list(data_manager.iter_repairs(context.workbook))
        bucket["all"] = all_repairs
        bucket["by_id"] = {repair.repair_id: repair for repair in all_repairs}
        log.debug("Populated repairs cache with %d entries", len(all_repairs))
    return bucket


def _ensure_suppliers_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "suppliers")
    if "all" not in bucket:
        all_suppliers = list(data_manager.iter_suppliers(context.workbook))
        bucket["all"] = all_suppliers
        bucket["by_id"] = {supplier.supplier_id: supplier for supplier in all_suppliers}
        log.debug("Populated suppliers cache with %d entries", len(all_suppliers))
    return bucket


def _ensure_purchases_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "purchases")
    if "all" not in bucket:
        all_purchases = list(data_manager.iter_purchases(context.workbook))
        bucket["all"] = all_purchases
        log.debug("Populated purchases cache with %d entries", len(all_purchases))
    return bucket


def _ensure_users_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "users")
    if "all" not in bucket:
        all_users = list(data_manager.iter_users(context.workbook))
        bucket["all"] = all_users
        bucket["by_id"] = {user.user_id: user for user in all_users}
        bucket["by_username"] = {user.username.casefold(): user for user in all_users}
        log.debug("Populated users cache with %d entries", len(all_users))
    return bucket


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the BLL.

    The helper resolves ``config.ini``, parses settings, and opens the Excel
    workbook that stores the shop's data. The resulting
    :class:`RuntimeContext` bundles the immutable settings with a mutable
    workbook handle and an empty cache store.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Fully populated context ready for orchestration
            functions.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
        ValueError: When the store currency or language is unsupported.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def generate_record_id(*, prefix: str, when: Optional[datetime] = None, existing: Iterable[str] = ()) -> str:
    """Generate a sortable identifier from a UTC timestamp.

    Args:
        prefix (str): Designator for the record kind, for example ``"S"`` for
            sales or ``"C"`` for customers.
        when (datetime | None): Timestamp used to build the identifier. When
            ``None`` the current UTC time is used.
        existing (Iterable[str]): Identifiers already in use. A clash gets a
            ``-N`` suffix with the smallest free ``N``.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}`` with an
            optional numeric suffix.
    """
    when = when or _resolve_timestamp(None)
    candidate = f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}"
    taken = set(existing)
    if candidate not in taken:
        return candidate
    suffix = 1
    while f"{candidate}-{suffix}" in taken:
        suffix += 1
    return f"{candidate}-{suffix}"


def require_positive_quantity(quantity: Union[int, Decimal]) -> None:
    """Validate that a quantity is strictly positive.

    Raises:
        ValueError: If ``quantity`` is zero or negative.
    """
    if quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be greater than zero")


def require_nonnegative_stock(stock: int) -> None:
    if stock < 0:
        log.error("Stock validation failed: %s", stock)
        raise ValueError("Stock must be zero or positive")


def require_nonnegative_money(amount: Optional[Decimal]) -> None:
    """Validate that a monetary value is nonnegative.

    ``None`` is accepted for optional prices that are simply not set.

    Raises:
        ValueError: If ``amount`` is less than zero.
    """
    if amount is not None and amount < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        log.error("%s validation failed: empty value", label)
        raise ValueError(f"{label} must not be empty")
    return value.strip()


# --- Catalog -----------------------------------------------------------------


def list_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    """Return the cached catalog in sheet order."""
    return list(_ensure_products_cache(context)["all"])


def get_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Resolve a product record by its identifier.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        product_id (str): Identifier populated in the ``Products`` sheet.

    Returns:
        data_manager.ProductRow: Matching product, variants included.

    Raises:
        MissingReferenceError: If ``product_id`` is absent from the workbook.
    """
    cache = _ensure_products_cache(context)
    try:
        return cache["by_id"][product_id]
    except KeyError as exc:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise MissingReferenceError(f"Unknown product id: {product_id}") from exc


def find_product_by_barcode(context: RuntimeContext, barcode: str) -> data_manager.ProductRow:
    """Resolve the product carrying ``barcode`` exactly, as a scanner would.

    Raises:
        MissingReferenceError: If no product carries the barcode.
    """
    cache = _ensure_products_cache(context)
    try:
        return cache["by_barcode"][barcode.strip()]
    except KeyError as exc:
        log.warning("Barcode lookup failed for '%s'", barcode)
        raise MissingReferenceError(f"Unknown barcode: {barcode}") from exc


def search_products(context: RuntimeContext, term: str) -> List[data_manager.ProductRow]:
    """Match ``term`` case-insensitively on the name or as a barcode substring.

    An empty term returns the whole catalog.
    """
    needle = term.strip()
    if not needle:
        return list_products(context)
    lowered = needle.lower()
    return [
        product
        for product in _ensure_products_cache(context)["all"]
        if lowered in product.product_name.lower() or needle in product.barcode
    ]


def list_low_stock_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    """Return stocked products whose stock is at or below the reorder point."""
    return [
        product
        for product in _ensure_products_cache(context)["all"]
        if product.transaction_type != TransactionType.SERVICE.value
        and product.stock <= product.reorder_point
    ]


def _ensure_barcode_available(context: RuntimeContext, barcode: str, *, owner_id: Optional[str] = None) -> None:
    if not barcode:
        return
    holder = _ensure_products_cache(context)["by_barcode"].get(barcode)
    if holder is not None and holder.product_id != owner_id:
        log.warning("Barcode '%s' already assigned to '%s'", barcode, holder.product_id)
        raise DuplicateBarcodeError(f"Barcode '{barcode}' is already used by {holder.product_id}")


def _existing_variant_ids(context: RuntimeContext) -> List[str]:
    return [variant.variant_id for variant in data_manager.iter_variants(context.workbook)]


def add_product(context: RuntimeContext, draft: ProductDraft) -> data_manager.ProductRow:
    """Validate and append a new catalog entry.

    ``SERVICE`` products always get :data:`UNLIMITED_STOCK`. Products with
    variants get their stock recomputed as the sum of the variant stocks, so
    ``draft.stock`` is ignored for them.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        draft (ProductDraft): Structured intent for the new product.

    Returns:
        data_manager.ProductRow: The stored product with its variants.

    Raises:
        DuplicateBarcodeError: If another product already carries the barcode.
        ValueError: When the name is empty or a stock or price is negative.
    """
    name = _require_text(draft.product_name, "Product name")
    transaction_type = TransactionType(draft.transaction_type)
    barcode = draft.barcode.strip()
    require_nonnegative_stock(draft.stock)
    require_nonnegative_stock(draft.reorder_point)
    require_nonnegative_money(draft.cost_price)
    require_nonnegative_money(draft.selling_price)
    require_nonnegative_money(draft.rental_price_per_day)
    for variant in draft.variants:
        require_nonnegative_stock(variant.stock)
    _ensure_barcode_available(context, barcode)

    timestamp = _resolve_timestamp(None)
    product_id = generate_record_id(
        prefix="P",
        when=timestamp,
        existing=_ensure_products_cache(context)["by_id"],
    )
    taken_variant_ids = _existing_variant_ids(context)
    variants: List[data_manager.VariantRow] = []
    for variant in draft.variants:
        variant_id = generate_record_id(prefix="V", when=timestamp, existing=taken_variant_ids)
        taken_variant_ids.append(variant_id)
        variants.append(
            data_manager.VariantRow(
                variant_id=variant_id,
                product_id=product_id,
                color=variant.color,
                size=variant.size,
                material=variant.material,
                stock=variant.stock,
            )
        )

    if transaction_type is TransactionType.SERVICE:
        stock = UNLIMITED_STOCK
    elif variants:
        stock = sum(variant.stock for variant in variants)
    else:
        stock = draft.stock

    product = data_manager.ProductRow(
        product_id=product_id,
        product_name=name,
        barcode=barcode,
        category=draft.category.strip(),
        brand=draft.brand.strip(),
        stock=stock,
        reorder_point=draft.reorder_point,
        cost_price=draft.cost_price,
        selling_price=draft.selling_price,
        rental_price_per_day=draft.rental_price_per_day,
        transaction_type=transaction_type.value,
        variants=tuple(variants),
    )
    data_manager.append_product(context.workbook, product)
    _invalidate_cache(context, "products")
    log.info(
        "Added product '%s' (%s, stock=%d, variants=%d)",
        product.product_id,
        product.product_name,
        product.stock,
        len(product.variants),
    )
    return product


def update_product(context: RuntimeContext, product_id: str, **fields: Any) -> data_manager.ProductRow:
    """Apply field edits to an existing product.

    Keyword names follow :class:`~fashion_pos.data_manager.ProductRow`
    attributes. Switching a product to ``SERVICE`` also sets its stock to
    :data:`UNLIMITED_STOCK`; switching it back resets the stock to zero
    unless a ``stock`` value is passed along.

    Raises:
        MissingReferenceError: If the product does not exist.
        DuplicateBarcodeError: If the new barcode belongs to another product.
        BusinessRuleViolation: For unknown fields, a direct stock edit on a
            product that has variants, or turning a product with variants
            into a ``SERVICE``.
        ValueError: When a stock or price is negative or the name is empty.
    """
    product = get_product(context, product_id)
    unknown = sorted(set(fields) - set(PRODUCT_FIELD_COLUMNS))
    if unknown:
        raise BusinessRuleViolation(f"Unknown product field(s): {', '.join(unknown)}")

    if "product_name" in fields:
        fields["product_name"] = _require_text(fields["product_name"], "Product name")
    if "barcode" in fields:
        fields["barcode"] = (fields["barcode"] or "").strip()
        _ensure_barcode_available(context, fields["barcode"], owner_id=product_id)
    if "stock" in fields:
        if product.variants:
            log.warning("Rejected direct stock edit on variant product '%s'", product_id)
            raise BusinessRuleViolation("Stock of a product with variants follows its variants")
        require_nonnegative_stock(int(fields["stock"]))
    if "reorder_point" in fields:
        require_nonnegative_stock(int(fields["reorder_point"]))
    for money_field in ("cost_price", "selling_price", "rental_price_per_day"):
        if money_field in fields:
            require_nonnegative_money(fields[money_field])
    if "transaction_type" in fields:
        transaction_type = TransactionType(fields["transaction_type"])
        fields["transaction_type"] = transaction_type.value
        was_service = product.transaction_type == TransactionType.SERVICE.value
        if transaction_type is TransactionType.SERVICE:
            if product.variants:
                log.warning("Rejected switching variant product '%s' to SERVICE", product_id)
                raise BusinessRuleViolation("Remove the variants before turning a product into a service")
            fields["stock"] = UNLIMITED_STOCK
        elif was_service and "stock" not in fields:
            # services carry no variants, so the variant sum is zero
            fields["stock"] = 0

    data_manager.update_product(
        context.workbook,
        product_id,
        field_values={PRODUCT_FIELD_COLUMNS[name]: value for name, value in fields.items()},
    )
    _invalidate_cache(context, "products")
    log.info("Updated product '%s' fields: %s", product_id, ", ".join(sorted(fields)))
    return get_product(context, product_id)


def delete_product(context: RuntimeContext, product_id: str) -> None:
    """Remove a product and its variants. Committed sales keep their copies."""
    get_product(context, product_id)
    data_manager.delete_rows(context.workbook, data_manager.PRODUCTS_SHEET, "ProductID", product_id)
    removed = data_manager.delete_rows(context.workbook, data_manager.VARIANTS_SHEET, "ProductID", product_id)
    _invalidate_cache(context, "products")
    log.info("Deleted product '%s' and %d variant(s)", product_id, removed)


def _sync_product_stock(context: RuntimeContext, product_id: str) -> int:
    """Rewrite a variant product's stock as the sum of its variants."""
    total = sum(
        variant.stock
        for variant in data_manager.iter_variants(context.workbook)
        if variant.product_id == product_id
    )
    data_manager.update_product(context.workbook, product_id, field_values={"Stock": total})
    _invalidate_cache(context, "products")
    log.debug("Synchronized stock of '%s' to %d", product_id, total)
    return total


def add_variant(
    context: RuntimeContext,
    product_id: str,
    *,
    color: Optional[str] = None,
    size: Optional[str] = None,
    material: Optional[str] = None,
    stock: int = 0,
) -> data_manager.VariantRow:
    """Attach a color/size/material variant to a product and re-sync its stock.

    Raises:
        MissingReferenceError: If the product does not exist.
        BusinessRuleViolation: If the product is a ``SERVICE``.
        ValueError: If ``stock`` is negative.
    """
    product = get_product(context, product_id)
    if product.transaction_type == TransactionType.SERVICE.value:
        raise BusinessRuleViolation("Service products cannot carry variants")
    require_nonnegative_stock(stock)

    variant = data_manager.VariantRow(
        variant_id=generate_record_id(prefix="V", existing=_existing_variant_ids(context)),
        product_id=product_id,
        color=color,
        size=size,
        material=material,
        stock=stock,
    )
    data_manager.append_variant(context.workbook, variant)
    _sync_product_stock(context, product_id)
    log.info("Added variant '%s' (%s) to product '%s'", variant.variant_id, variant.label, product_id)
    return variant


def remove_variant(context: RuntimeContext, variant_id: str) -> None:
    """Delete a variant and re-sync the stock of the product that owned it.

    Raises:
        MissingReferenceError: If the variant does not exist.
    """
    owner = next(
        (variant.product_id for variant in data_manager.iter_variants(context.workbook) if variant.variant_id == variant_id),
        None,
    )
    if owner is None:
        log.warning("Variant lookup failed for id '%s'", variant_id)
        raise MissingReferenceError(f"Unknown variant id: {variant_id}")
    data_manager.delete_rows(context.workbook, data_manager.VARIANTS_SHEET, "VariantID", variant_id)
    _sync_product_stock(context, owner)
    log.info("Removed variant '%s' from product '%s'", variant_id, owner)


# --- Customers ---------------------------------------------------------------


def list_customers(context: RuntimeContext) -> List[data_manager.CustomerRow]:
    """Return customers newest first."""
    return list(_ensure_customers_cache(context)["all"])


def get_customer(context: RuntimeContext, customer_id: str) -> data_manager.CustomerRow:
    """Resolve a customer by identifier.

    Raises:
        MissingReferenceError: If ``customer_id`` cannot be located.
    """
    cache = _ensure_customers_cache(context)
    try:
        return cache["by_id"][customer_id]
    except KeyError as exc:
        log.warning("Customer lookup failed for id '%s'", customer_id)
        raise MissingReferenceError(f"Unknown customer id: {customer_id}") from exc


def search_customers(context: RuntimeContext, term: str) -> List[data_manager.CustomerRow]:
    needle = term.strip()
    lowered = needle.lower()
    return [
        customer
        for customer in _ensure_customers_cache(context)["all"]
        if lowered in customer.customer_name.lower() or needle in customer.phone
    ]


def add_customer(
    context: RuntimeContext,
    customer_name: str,
    phone: str,
    *,
    email: Optional[str] = None,
    notes: Optional[str] = None,
) -> data_manager.CustomerRow:
    """Register a customer and place them at the top of the list.

    ``notes`` is free text; shops keep measurements and preferred sizes there.

    Raises:
        ValueError: If the name is empty.
    """
    name = _require_text(customer_name, "Customer name")
    timestamp = _resolve_timestamp(None)
    customer = data_manager.CustomerRow(
        customer_id=generate_record_id(
            prefix="C",
            when=timestamp,
            existing=_ensure_customers_cache(context)["by_id"],
        ),
        customer_name=name,
        phone=(phone or "").strip(),
        email=email or None,
        notes=notes or None,
        created_at_iso=timestamp.isoformat(),
    )
    data_manager.prepend_customer(context.workbook, customer)
    _invalidate_cache(context, "customers")
    log.info("Added customer '%s' (%s)", customer.customer_id, customer.customer_name)
    return customer


def update_customer(context: RuntimeContext, customer_id: str, **fields: Any) -> data_manager.CustomerRow:
    """Edit a customer's contact details or notes.

    Past sales keep the name they were committed with.
    """
    get_customer(context, customer_id)
    unknown = sorted(set(fields) - set(CUSTOMER_FIELD_COLUMNS))
    if unknown:
        raise BusinessRuleViolation(f"Unknown customer field(s): {', '.join(unknown)}")
    if "customer_name" in fields:
        fields["customer_name"] = _require_text(fields["customer_name"], "Customer name")

    data_manager.update_customer(
        context.workbook,
        customer_id,
        field_values={CUSTOMER_FIELD_COLUMNS[name]: value for name, value in fields.items()},
    )
    _invalidate_cache(context, "customers")
    log.info("Updated customer '%s' fields: %s", customer_id, ", ".join(sorted(fields)))
    return get_customer(context, customer_id)


def delete_customer(context: RuntimeContext, customer_id: str) -> None:
    get_customer(context, customer_id)
    data_manager.delete_rows(context.workbook, data_manager.CUSTOMERS_SHEET, "CustomerID", customer_id)
    _invalidate_cache(context, "customers")
    log.info("Deleted customer '%s'", customer_id)


# --- Staff roster ------------------------------------------------------------


def list_users(context: RuntimeContext) -> List[data_manager.UserRow]:
    """Return the staff roster in sheet order."""
    return list(_ensure_users_cache(context)["all"])


def get_user(context: RuntimeContext, user_id: str) -> data_manager.UserRow:
    cache = _ensure_users_cache(context)
    try:
        return cache["by_id"][user_id]
    except KeyError as exc:
        log.warning("User lookup failed for id '%s'", user_id)
        raise MissingReferenceError(f"Unknown user id: {user_id}") from exc


def find_user_by_username(context: RuntimeContext, username: str) -> Optional[data_manager.UserRow]:
    """Return the roster entry for ``username`` ignoring case, or ``None``."""
    return _ensure_users_cache(context)["by_username"].get((username or "").strip().casefold())


def _ensure_username_available(context: RuntimeContext, username: str, *, owner_id: Optional[str] = None) -> None:
    holder = find_user_by_username(context, username)
    if holder is not None and holder.user_id != owner_id:
        log.warning("Rejected duplicate username '%s' (held by '%s')", username, holder.user_id)
        raise BusinessRuleViolation(f"Username '{username}' is already taken by {holder.user_id}")


def add_user(context: RuntimeContext, username: str, role: Union[Role, str] = Role.SALES) -> data_manager.UserRow:
    """Put a staff member on the roster so they can ring up sales.

    Raises:
        ValueError: If the username is empty or the role is unknown.
        BusinessRuleViolation: If another user already has the username.
    """
    name = _require_text(username, "Username")
    staff_role = Role(role)
    _ensure_username_available(context, name)
    user = data_manager.UserRow(
        user_id=generate_record_id(prefix="U", existing=_ensure_users_cache(context)["by_id"]),
        username=name,
        role=staff_role.value,
    )
    data_manager.append_user(context.workbook, user)
    _invalidate_cache(context, "users")
    log.info("Added user '%s' (%s, %s)", user.user_id, user.username, user.role)
    return user


def update_user(context: RuntimeContext, user_id: str, **fields: Any) -> data_manager.UserRow:
    """Rename a staff member or change their role.

    Committed sales keep the cashier name they were rung up under.
    """
    get_user(context, user_id)
    unknown = sorted(set(fields) - set(USER_FIELD_COLUMNS))
    if unknown:
        raise BusinessRuleViolation(f"Unknown user field(s): {', '.join(unknown)}")
    if "username" in fields:
        fields["username"] = _require_text(fields["username"], "Username")
        _ensure_username_available(context, fields["username"], owner_id=user_id)
    if "role" in fields:
        fields["role"] = Role(fields["role"]).value

    data_manager.update_user(
        context.workbook,
        user_id,
        field_values={USER_FIELD_COLUMNS[name]: value for name, value in fields.items()},
    )
    _invalidate_cache(context, "users")
    log.info("Updated user '%s' fields: %s", user_id, ", ".join(sorted(fields)))
    return get_user(context, user_id)


def delete_user(context: RuntimeContext, user_id: str) -> None:
    get_user(context, user_id)
    data_manager.delete_rows(context.workbook, data_manager.USERS_SHEET, "UserID", user_id)
    _invalidate_cache(context, "users")
    log.info("Deleted user '%s'", user_id)


# --- Sales -------------------------------------------------------------------


def list_sales(context: RuntimeContext) -> List[data_manager.SaleRow]:
    """Return committed sales, most recent first."""
    return list(_ensure_sales_cache(context)["all"])


def get_sale(context: RuntimeContext, sale_id: str) -> data_manager.SaleRow:
    """Retrieve a committed sale by identifier.

    Raises:
        MissingReferenceError: If the sale does not exist.
    """
    cache = _ensure_sales_cache(context)
    try:
        return cache["by_id"][sale_id]
    except KeyError as exc:
        log.warning("Sale lookup failed for id '%s'", sale_id)
        raise MissingReferenceError(f"Unknown sale id: {sale_id}") from exc


def sales_repository(context: RuntimeContext) -> WorkbookSalesRepository:
    return WorkbookSalesRepository(context.workbook, context.settings.data_file)


def commit_sale(
    context: RuntimeContext,
    command: SaleCommand,
    *,
    repository: Optional[SalesRepository] = None,
) -> data_manager.SaleRow:
    """Validate, price and persist the cart as an immutable sale.

    All checks run before anything is written: an empty cart, a cashier who
    is missing or not on the staff roster, an unknown customer or a bad
    quantity leaves storage untouched. The cashier is stored under the
    roster's spelling of the username.
    Totals come from :func:`fashion_pos.pricing.price_cart`. The stored
    discount is clamped to ``[0, subtotal]`` so that
    ``subtotal - discount == total`` holds on the record, and tax is zero.
    The customer name is copied onto the sale by value.

    Stock is not changed here; see :func:`apply_stock_delta`. The caller
    clears its cart only after this returns.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        command (SaleCommand): Cart lines, tender, cashier and discount.
        repository (SalesRepository | None): Storage for the sale. Defaults
            to the workbook, which is saved immediately.

    Returns:
        data_manager.SaleRow: The committed sale, items included.

    Raises:
        EmptyCartError: If the cart has no lines.
        NotAuthenticatedError: If no cashier is given or the cashier is not
            on the staff roster.
        MissingReferenceError: If ``customer_id`` is unknown.
        BusinessRuleViolation: If the payment method is unsupported.
        ValueError: If any line quantity is below one.
        PersistenceError: If storage fails; nothing is kept.
    """
    items = tuple(command.cart_items)
    if not items:
        log.warning("Rejected sale commit with an empty cart")
        raise EmptyCartError("Cannot commit a sale with an empty cart")
    if command.cashier is None or not command.cashier.strip():
        log.warning("Rejected sale commit without a cashier")
        raise NotAuthenticatedError("A cashier must be signed in to commit a sale")
    cashier = find_user_by_username(context, command.cashier)
    if cashier is None:
        log.warning("Rejected sale commit by unknown cashier '%s'", command.cashier)
        raise NotAuthenticatedError(f"'{command.cashier.strip()}' is not on the staff roster")
    try:
        payment_method = PaymentMethod(command.payment_method)
    except ValueError as exc:
        log.error("Unsupported payment method provided: %s", command.payment_method)
        raise BusinessRuleViolation(f"Unsupported payment method: {command.payment_method}") from exc
    for item in items:
        require_positive_quantity(item.quantity)

    customer_name: Optional[str] = None
    if command.customer_id:
        customer_name = get_customer(context, command.customer_id).customer_name

    breakdown = price_cart(items, command.discount)
    stored_discount = min(max(breakdown.discount, Decimal("0")), breakdown.subtotal)

    repository = repository if repository is not None else sales_repository(context)
    timestamp = _resolve_timestamp(command.timestamp)
    sale = data_manager.SaleRow(
        sale_id=generate_record_id(
            prefix="S",
            when=timestamp,
            existing=(existing.sale_id for existing in repository.list()),
        ),
        timestamp_iso=timestamp.isoformat(),
        customer_id=command.customer_id or None,
        customer_name=customer_name,
        subtotal=breakdown.subtotal,
        discount=stored_discount,
        tax=breakdown.tax,
        total=breakdown.total,
        payment_method=payment_method.value,
        cashier=cashier.username,
        items=items,
    )
    try:
        repository.append(sale)
    finally:
        _invalidate_cache(context, "sales")
    log.info(
        "Committed sale '%s' (%d line(s), subtotal=%s, discount=%s, total=%s)",
        sale.sale_id,
        len(sale.items),
        sale.subtotal,
        sale.discount,
        sale.total,
    )
    return sale


def apply_stock_delta(context: RuntimeContext, sale: data_manager.SaleRow) -> List[LowStockAlert]:
    """Deduct a committed sale's quantities from the catalog.

    This is a separate step from :func:`commit_sale` and is never run by it.
    Each sale can be applied once; the sale is flagged afterwards and a
    second attempt is refused before any stock moves.
    ``SERVICE`` lines are skipped and lines for products deleted since the
    sale are logged and ignored. Stock never drops below zero. Variant lines
    reduce the variant and then re-sync the product total.

    Returns:
        list[LowStockAlert]: Products touched by the sale that ended at or
            below their reorder point.

    Raises:
        MissingReferenceError: If the sale was never committed to the
            workbook.
        BusinessRuleViolation: If the sale's stock was already applied.
    """
    if get_sale(context, sale.sale_id).stock_applied:
        log.warning("Rejected repeated stock update for sale '%s'", sale.sale_id)
        raise BusinessRuleViolation(f"Stock for sale {sale.sale_id} was already applied")

    touched: List[str] = []
    for item in sale.items:
        if item.transaction_type == TransactionType.SERVICE.value:
            continue
        try:
            product = get_product(context, item.product_id)
        except MissingReferenceError:
            log.warning("Skipping stock update for deleted product '%s'", item.product_id)
            continue

        variant = next((v for v in product.variants if v.variant_id == item.variant_id), None)
        if variant is not None:
            data_manager.update_variant(
                context.workbook,
                variant.variant_id,
                field_values={"Stock": max(0, variant.stock - item.quantity)},
            )
            _sync_product_stock(context, product.product_id)
        elif product.variants:
            # no variant picked: take the units from the variants in order
            remaining = item.quantity
            for candidate in product.variants:
                taken = min(candidate.stock, remaining)
                if taken:
                    data_manager.update_variant(
                        context.workbook,
                        candidate.variant_id,
                        field_values={"Stock": candidate.stock - taken},
                    )
                    remaining -= taken
            _sync_product_stock(context, product.product_id)
        else:
            data_manager.update_product(
                context.workbook,
                product.product_id,
                field_values={"Stock": max(0, product.stock - item.quantity)},
            )
            _invalidate_cache(context, "products")
        if product.product_id not in touched:
            touched.append(product.product_id)

    alerts: List[LowStockAlert] = []
    for product_id in touched:
        product = get_product(context, product_id)
        if product.stock <= product.reorder_point:
            alerts.append(
                LowStockAlert(
                    product_id=product.product_id,
                    product_name=product.product_name,
                    stock=product.stock,
                    reorder_point=product.reorder_point,
                )
            )
            log.warning(
                "Low stock for '%s': %d left (reorder point %d)",
                product.product_id,
                product.stock,
                product.reorder_point,
            )
    data_manager.mark_sale_stock_applied(context.workbook, sale.sale_id)
    _invalidate_cache(context, "sales")
    log.info("Applied stock changes for sale '%s' to %d product(s)", sale.sale_id, len(touched))
    return alerts


# --- Tailoring jobs ----------------------------------------------------------


def list_repairs(context: RuntimeContext, status: Optional[Union[RepairStatus, str]] = None) -> List[data_manager.RepairRow]:
    """Return tailoring jobs newest first, optionally only those in ``status``."""
    repairs = _ensure_repairs_cache(context)["all"]
    if status is None:
        return list(repairs)
    wanted = RepairStatus(status).value
    return [repair for repair in repairs if repair.status == wanted]


def get_repair(context: RuntimeContext, repair_id: str) -> data_manager.RepairRow:
    cache = _ensure_repairs_cache(context)
    try:
        return cache["by_id"][repair_id]
    except KeyError as exc:
        log.warning("Repair lookup failed for id '%s'", repair_id)
        raise MissingReferenceError(f"Unknown repair id: {repair_id}") from exc


def count_open_repairs(context: RuntimeContext) -> int:
    return sum(
        1
        for repair in _ensure_repairs_cache(context)["all"]
        if repair.status != RepairStatus.COMPLETED.value
    )


def add_repair(
    context: RuntimeContext,
    customer_name: str,
    garment: str,
    issue_description: str,
    *,
    tag: Optional[str] = None,
) -> data_manager.RepairRow:
    """Book a garment in for alterations with status ``PENDING``.

    Raises:
        ValueError: If the customer name, garment or issue is empty.
    """
    customer_name = _require_text(customer_name, "Customer name")
    garment = _require_text(garment, "Garment")
    issue_description = _require_text(issue_description, "Issue description")

    timestamp = _resolve_timestamp(None)
    repair = data_manager.RepairRow(
        repair_id=generate_record_id(
            prefix="R",
            when=timestamp,
            existing=_ensure_repairs_cache(context)["by_id"],
        ),
        customer_name=customer_name,
        garment=garment,
        tag=tag or None,
        issue_description=issue_description,
        status=RepairStatus.PENDING.value,
        received_at_iso=timestamp.isoformat(),
    )
    data_manager.prepend_repair(context.workbook, repair)
    _invalidate_cache(context, "repairs")
    log.info("Booked repair '%s' for %s (%s)", repair.repair_id, repair.customer_name, repair.garment)
    return repair


def advance_repair_status(
    context: RuntimeContext,
    repair_id: str,
    new_status: Optional[Union[RepairStatus, str]] = None,
) -> data_manager.RepairRow:
    """Move a tailoring job one step along its lifecycle.

    Only the immediate next status is accepted. Passing ``new_status`` makes
    the caller's expectation explicit; it must equal that next step.

    Raises:
        MissingReferenceError: If the job does not exist.
        InvalidStatusTransition: If the job is completed or ``new_status``
            is not the next step.
    """
    repair = get_repair(context, repair_id)
    current = RepairStatus(repair.status)
    position = REPAIR_STATUS_FLOW.index(current)
    if position == len(REPAIR_STATUS_FLOW) - 1:
        log.warning("Repair '%s' is already %s", repair_id, current.value)
        raise InvalidStatusTransition(f"Repair {repair_id} is already {current.value}")
    following = REPAIR_STATUS_FLOW[position + 1]
    if new_status is not None and RepairStatus(new_status) is not following:
        log.warning(
            "Rejected repair '%s' move from %s to %s",
            repair_id,
            current.value,
            RepairStatus(new_status).value,
        )
        raise InvalidStatusTransition(
            f"Repair {repair_id} can only move from {current.value} to {following.value}"
        )

    data_manager.update_repair(context.workbook, repair_id, field_values={"Status": following.value})
    _invalidate_cache(context, "repairs")
    log.info("Repair '%s' moved from %s to %s", repair_id, current.value, following.value)
    return get_repair(context, repair_id)


# --- Suppliers and purchases -------------------------------------------------


def list_suppliers(context: RuntimeContext) -> List[data_manager.SupplierRow]:
    return list(_ensure_suppliers_cache(context)["all"])


def get_supplier(context: RuntimeContext, supplier_id: str) -> data_manager.SupplierRow:
    cache = _ensure_suppliers_cache(context)
    try:
        return cache["by_id"][supplier_id]
    except KeyError as exc:
        log.warning("Supplier lookup failed for id '%s'", supplier_id)
        raise MissingReferenceError(f"Unknown supplier id: {supplier_id}") from exc


def add_supplier(
    context: RuntimeContext,
    supplier_name: str,
    *,
    contact_person: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
) -> data_manager.SupplierRow:
    name = _require_text(supplier_name, "Supplier name")
    supplier = data_manager.SupplierRow(
        supplier_id=generate_record_id(
            prefix="SUP",
            existing=_ensure_suppliers_cache(context)["by_id"],
        ),
        supplier_name=name,
        contact_person=contact_person or None,
        phone=phone or None,
        email=email or None,
        address=address or None,
    )
    data_manager.prepend_supplier(context.workbook, supplier)
    _invalidate_cache(context, "suppliers")
    log.info("Added supplier '%s' (%s)", supplier.supplier_id, supplier.supplier_name)
    return supplier


def update_supplier(context: RuntimeContext, supplier_id: str, **fields: Any) -> data_manager.SupplierRow:
    get_supplier(context, supplier_id)
    unknown = sorted(set(fields) - set(SUPPLIER_FIELD_COLUMNS))
    if unknown:
        raise BusinessRuleViolation(f"Unknown supplier field(s): {', '.join(unknown)}")
    if "supplier_name" in fields:
        fields["supplier_name"] = _require_text(fields["supplier_name"], "Supplier name")

    data_manager.update_supplier(
        context.workbook,
        supplier_id,
        field_values={SUPPLIER_FIELD_COLUMNS[name]: value for name, value in fields.items()},
    )
    _invalidate_cache(context, "suppliers")
    log.info("Updated supplier '%s' fields: %s", supplier_id, ", ".join(sorted(fields)))
    return get_supplier(context, supplier_id)


def delete_supplier(context: RuntimeContext, supplier_id: str) -> None:
    """Remove a supplier. Recorded purchases keep the supplier name."""
    get_supplier(context, supplier_id)
    data_manager.delete_rows(context.workbook, data_manager.SUPPLIERS_SHEET, "SupplierID", supplier_id)
    _invalidate_cache(context, "suppliers")
    log.info("Deleted supplier '%s'", supplier_id)


def list_purchases(context: RuntimeContext) -> List[data_manager.PurchaseRow]:
    return list(_ensure_purchases_cache(context)["all"])


def record_purchase(context: RuntimeContext, command: PurchaseCommand) -> data_manager.PurchaseRow:
    """Validate and store a supplier invoice.

    ``total_cost`` is the sum of ``cost_price * quantity`` over the lines.
    Product names are copied from the catalog at the time of recording.
    Catalog stock is not changed.

    Raises:
        MissingReferenceError: If the supplier or a product is unknown.
        BusinessRuleViolation: If the invoice has no lines.
        ValueError: If a quantity is not positive or a cost is negative.
    """
    supplier = get_supplier(context, command.supplier_id)
    if not command.items:
        log.warning("Rejected purchase from '%s' without items", command.supplier_id)
        raise BusinessRuleViolation("A purchase needs at least one item")

    lines: List[data_manager.PurchaseItemRow] = []
    for line in command.items:
        require_positive_quantity(line.quantity)
        require_nonnegative_money(line.cost_price)
        product = get_product(context, line.product_id)
        lines.append(
            data_manager.PurchaseItemRow(
                product_id=product.product_id,
                product_name=product.product_name,
                quantity=line.quantity,
                cost_price=line.cost_price,
            )
        )

    timestamp = _resolve_timestamp(command.timestamp)
    purchase = data_manager.PurchaseRow(
        purchase_id=generate_record_id(
            prefix="PUR",
            when=timestamp,
            existing=(existing.purchase_id for existing in list_purchases(context)),
        ),
        supplier_id=supplier.supplier_id,
        supplier_name=supplier.supplier_name,
        total_cost=sum((line.cost_price * line.quantity for line in lines), Decimal("0")),
        timestamp_iso=timestamp.isoformat(),
        notes=command.notes or None,
        items=tuple(lines),
    )
    data_manager.prepend_purchase(context.workbook, purchase)
    _invalidate_cache(context, "purchases")
    log.info(
        "Recorded purchase '%s' from '%s' (%d line(s), total=%s)",
        purchase.purchase_id,
        supplier.supplier_name,
        len(lines),
        purchase.total_cost,
    )
    return purchase


# --- Workbook lifecycle ------------------------------------------------------


def export_backup(context: RuntimeContext, destination: Path) -> Path:
    """Save a copy of the current workbook to ``destination``."""
    destination = Path(destination).expanduser().resolve()
    data_manager.save_workbook(context.workbook, destination)
    log.info("Exported backup of '%s' to '%s'", context.settings.data_file, destination)
    return destination


def import_backup(context: RuntimeContext, source: Path) -> RuntimeContext:
    """Replace the configured workbook with a validated backup.

    The backup must contain every sheet with the expected header row. The
    configured workbook is overwritten only after validation passes.

    Returns:
        RuntimeContext: Fresh context bound to the restored workbook.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        BusinessRuleViolation: If the backup layout is not recognised.
    """
    workbook = data_manager.open_workbook(source)
    problems = data_manager.validate_workbook_layout(workbook)
    if problems:
        for problem in problems:
            log.error("Backup '%s' rejected: %s", source, problem)
        raise BusinessRuleViolation(f"Invalid backup file: {problems[0]}")

    data_manager.save_workbook(workbook, context.settings.data_file)
    log.info("Restored '%s' from backup '%s'", context.settings.data_file, source)
    return RuntimeContext(settings=context.settings, workbook=workbook)


def persist_context(context: RuntimeContext) -> None:
    """Persist any in-memory workbook changes to the configured data file.

    Raises:
        PersistenceError: If the workbook cannot be written.
    """
    try:
        data_manager.save_workbook(
            context.workbook,
            destination=context.settings.data_file,
        )
    except OSError as exc:
        log.error("Failed to persist workbook '%s': %s", context.settings.data_file, exc)
        raise PersistenceError(f"Could not save {context.settings.data_file}") from exc
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    Returns:
        RuntimeContext: Fresh context containing a newly opened workbook and
            an empty cache.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook)
