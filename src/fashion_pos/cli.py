"""Command-line entry points for the fashion POS.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing results. Keeping the CLI thin ensures the same parser
configuration can be reused by tests, scripts, or any alternative front-end.
"""

from __future__ import annotations

import argparse
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, i18n, log, receipts, reports
from .cart import Cart, add_to_cart
from .constants import DiscountMode, PaymentMethod, RepairStatus, Role, TransactionType
from .pricing import parse_discount


ITEM_PATTERN = re.compile(r"^(?P<product>[^:]+?)(?::(?P<variant>[^:]+?))?(?:x(?P<quantity>\d+))?$")


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


@dataclass(frozen=True)
class ItemRequest:
    product_id: str
    variant_id: Optional[str]
    quantity: int


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="fashion-pos",
        description="Point-of-sale tools for the clothing store workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and catalog edits."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "delete-product": register_delete_product_command(subparsers),
        "add-variant": register_add_variant_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "update-customer": register_update_customer_command(subparsers),
        "delete-customer": register_delete_customer_command(subparsers),
        "add-user": register_add_user_command(subparsers),
        "update-user": register_update_user_command(subparsers),
        "delete-user": register_delete_user_command(subparsers),
        "sell": register_sell_command(subparsers),
        "apply-stock": register_apply_stock_command(subparsers),
        "add-repair": register_add_repair_command(subparsers),
        "advance-repair": register_advance_repair_command(subparsers),
        "add-supplier": register_add_supplier_command(subparsers),
        "purchase": register_purchase_command(subparsers),
        "export-customers": register_export_customers_command(subparsers),
        "export-sales": register_export_sales_command(subparsers),
        "backup": register_backup_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "products": register_products_command(subparsers),
        "low-stock": register_low_stock_command(subparsers),
        "customers": register_customers_command(subparsers),
        "sales": register_sales_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
        "customer-report": register_customer_report_command(subparsers),
        "repairs": register_repairs_command(subparsers),
        "suppliers": register_suppliers_command(subparsers),
        "users": register_users_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_product_field_arguments(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", dest="product_name", required=required)
    parser.add_argument("--barcode", default=None)
    parser.add_argument("--category", required=required)
    parser.add_argument("--brand", default=None)
    parser.add_argument("--cost-price", required=required)
    parser.add_argument("--selling-price", default=None)
    parser.add_argument("--rental-price", dest="rental_price_per_day", default=None)
    parser.add_argument(
        "--type",
        dest="transaction_type",
        choices=[member.value for member in TransactionType],
        default=TransactionType.SALE.value if required else None,
    )
    parser.add_argument("--stock", type=int, default=0 if required else None)
    parser.add_argument("--reorder-point", type=int, default=0 if required else None)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a product to the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_product_field_arguments(parser, required=True)
        parser.add_argument(
            "--variant",
            action="append",
            default=[],
            metavar="COLOR:SIZE:MATERIAL:STOCK",
            help="Repeatable. Stock of the product becomes the sum of its variants.",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Edit fields of an existing product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_product_field_arguments(parser, required=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product)


def register_delete_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-product``."""
    name = "delete-product"
    help_text = "Remove a product and its variants from the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_product)


def register_add_variant_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-variant``."""
    name = "add-variant"
    help_text = "Attach a color/size/material variant to a product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--color", default=None)
        parser.add_argument("--size", default=None)
        parser.add_argument("--material", default=None)
        parser.add_argument("--stock", type=int, default=0)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_variant)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a customer."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", dest="customer_name", required=True)
        parser.add_argument("--phone", required=True)
        parser.add_argument("--email", default=None)
        parser.add_argument("--notes", default=None, help="Measurements, sizes or preferences.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer)


def register_update_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-customer``."""
    name = "update-customer"
    help_text = "Edit a customer's details."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--name", dest="customer_name", default=None)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--email", default=None)
        parser.add_argument("--notes", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_customer)


def register_delete_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-customer``."""
    name = "delete-customer"
    help_text = "Remove a customer. Past sales keep the customer name."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_customer)


def register_add_user_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-user``."""
    name = "add-user"
    help_text = "Put a staff member on the roster."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--username", required=True)
        parser.add_argument("--role", choices=[member.value for member in Role], default=Role.SALES.value)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_user)


def register_update_user_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-user``."""
    name = "update-user"
    help_text = "Rename a staff member or change their role."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--user-id", required=True)
        parser.add_argument("--username", default=None)
        parser.add_argument("--role", choices=[member.value for member in Role], default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_user)


def register_delete_user_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-user``."""
    name = "delete-user"
    help_text = "Take a staff member off the roster. Past sales keep the name."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--user-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_user)


def register_sell_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sell``."""
    name = "sell"
    help_text = "Ring up a cart, commit the sale and print the receipt."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--item",
            action="append",
            default=[],
            metavar="PRODUCT_ID[:VARIANT_ID][xQTY]",
            help="Repeatable cart line.",
        )
        parser.add_argument("--barcode", action="append", default=[], help="Repeatable scanned barcode.")
        parser.add_argument("--discount", default=None)
        parser.add_argument(
            "--discount-type",
            choices=[member.value for member in DiscountMode],
            default=DiscountMode.FIXED.value,
        )
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            default=PaymentMethod.CASH.value,
        )
        parser.add_argument("--cashier", default=None, help="Defaults to [Defaults] Cashier.")
        parser.add_argument("--customer-id", default=None)
        parser.add_argument("--rental-days", type=int, default=None)
        parser.add_argument(
            "--apply-stock",
            action="store_true",
            help="Deduct the sold quantities from the catalog after committing.",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sell)


def register_apply_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``apply-stock``."""
    name = "apply-stock"
    help_text = "Deduct a committed sale's quantities from the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_apply_stock)


def register_add_repair_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-repair``."""
    name = "add-repair"
    help_text = "Book a garment in for alterations."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-name", required=True)
        parser.add_argument("--garment", required=True)
        parser.add_argument("--issue", dest="issue_description", required=True)
        parser.add_argument("--tag", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_repair)


def register_advance_repair_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``advance-repair``."""
    name = "advance-repair"
    help_text = "Move a tailoring job to its next status."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--repair-id", required=True)
        parser.add_argument(
            "--status",
            choices=[member.value for member in RepairStatus],
            default=None,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_advance_repair)


def register_add_supplier_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-supplier``."""
    name = "add-supplier"
    help_text = "Register a supplier."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", dest="supplier_name", required=True)
        parser.add_argument("--contact", dest="contact_person", default=None)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--email", default=None)
        parser.add_argument("--address", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_supplier)


def register_purchase_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``purchase``."""
    name = "purchase"
    help_text = "Record a supplier invoice."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--supplier-id", required=True)
        parser.add_argument(
            "--line",
            action="append",
            required=True,
            metavar="PRODUCT_ID:QTY:COST",
            help="Repeatable invoice line.",
        )
        parser.add_argument("--notes", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_purchase)


def register_export_customers_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export-customers``."""
    name = "export-customers"
    help_text = "Export the customer analysis to CSV."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export_customers)


def register_export_sales_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export-sales``."""
    name = "export-sales"
    help_text = "Export committed sales to an Excel report."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export_sales)


def register_backup_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``backup``."""
    name = "backup"
    help_text = "Save a copy of the workbook."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_backup)


def _register_listing(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
    *,
    with_search: bool = False,
) -> CommandSpec:
    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        if with_search:
            parser.add_argument("--search", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    return _register_listing("products", "List the catalog.", run_products_report, with_search=True)


def register_low_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``low-stock``."""
    return _register_listing("low-stock", "List products at or below their reorder point.", run_low_stock_report)


def register_customers_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``customers``."""
    return _register_listing("customers", "List customers.", run_customers_report, with_search=True)


def register_sales_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sales``."""
    return _register_listing("sales", "List committed sales.", run_sales_report, with_search=True)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    return _register_listing("dashboard", "Show today's sales and open work.", run_dashboard_report)


def register_customer_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``customer-report``."""
    return _register_listing("customer-report", "Rank customers by spend.", run_customer_report)


def register_repairs_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``repairs``."""
    name = "repairs"
    help_text = "List tailoring jobs."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--status", choices=[member.value for member in RepairStatus], default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_repairs_report)


def register_suppliers_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``suppliers``."""
    return _register_listing("suppliers", "List suppliers.", run_suppliers_report)


def register_users_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``users``."""
    return _register_listing("users", "List the staff roster.", run_users_report)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def _optional_decimal(raw: Optional[str]) -> Optional[Decimal]:
    return Decimal(raw) if raw not in (None, "") else None


def parse_variant_argument(raw: str) -> core_logic.VariantDraft:
    """Parse ``COLOR:SIZE:MATERIAL:STOCK``; empty parts are left unset."""
    parts = raw.split(":")
    if len(parts) != 4:
        raise ValueError(f"Variant must look like COLOR:SIZE:MATERIAL:STOCK, got {raw!r}")
    color, size, material, stock = parts
    return core_logic.VariantDraft(
        color=color or None,
        size=size or None,
        material=material or None,
        stock=int(stock or 0),
    )


def parse_item_argument(raw: str) -> ItemRequest:
    """Parse ``PRODUCT_ID[:VARIANT_ID][xQTY]`` into an :class:`ItemRequest`."""
    match = ITEM_PATTERN.match(raw.strip())
    if match is None:
        raise ValueError(f"Cannot read cart item {raw!r}")
    quantity = int(match.group("quantity") or 1)
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")
    return ItemRequest(
        product_id=match.group("product"),
        variant_id=match.group("variant"),
        quantity=quantity,
    )


def parse_purchase_line(raw: str) -> core_logic.PurchaseLine:
    parts = raw.split(":")
    if len(parts) != 3:
        raise ValueError(f"Purchase line must look like PRODUCT_ID:QTY:COST, got {raw!r}")
    product_id, quantity, cost = parts
    return core_logic.PurchaseLine(product_id=product_id, quantity=int(quantity), cost_price=Decimal(cost))


def translate_add_product(args: argparse.Namespace) -> core_logic.ProductDraft:
    """Translate CLI args into a product draft."""
    return core_logic.ProductDraft(
        product_name=args.product_name,
        barcode=args.barcode or "",
        category=args.category,
        brand=args.brand or "",
        cost_price=Decimal(args.cost_price),
        selling_price=_optional_decimal(args.selling_price),
        rental_price_per_day=_optional_decimal(args.rental_price_per_day),
        transaction_type=TransactionType(args.transaction_type),
        stock=args.stock,
        reorder_point=args.reorder_point,
        variants=tuple(parse_variant_argument(raw) for raw in args.variant),
    )


def translate_update_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into the fields to change; unset options are skipped."""
    fields: Dict[str, Any] = {}
    for name in ("product_name", "barcode", "category", "brand", "transaction_type", "stock", "reorder_point"):
        value = getattr(args, name, None)
        if value is not None:
            fields[name] = value
    for name in ("cost_price", "selling_price", "rental_price_per_day"):
        value = getattr(args, name, None)
        if value is not None:
            fields[name] = Decimal(value)
    return fields


def translate_update_customer(args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        name: getattr(args, name)
        for name in ("customer_name", "phone", "email", "notes")
        if getattr(args, name, None) is not None
    }


def translate_update_user(args: argparse.Namespace) -> Mapping[str, Any]:
    return {name: getattr(args, name) for name in ("username", "role") if getattr(args, name, None) is not None}


def build_cart(context: core_logic.RuntimeContext, args: argparse.Namespace) -> Cart:
    """Fill a cart from ``--item`` and ``--barcode`` options, in that order."""
    cart = Cart()
    for raw in args.item:
        request = parse_item_argument(raw)
        product = core_logic.get_product(context, request.product_id)
        for _ in range(request.quantity):
            add_to_cart(cart, product, variant_id=request.variant_id, rental_days=args.rental_days)
    for barcode in args.barcode:
        product = core_logic.find_product_by_barcode(context, barcode)
        add_to_cart(cart, product, rental_days=args.rental_days)
    return cart


def translate_sell(context: core_logic.RuntimeContext, args: argparse.Namespace) -> core_logic.SaleCommand:
    """Translate CLI args into a sale command for the current cart."""
    cart = build_cart(context, args)
    return core_logic.SaleCommand(
        cart_items=list(cart.items),
        payment_method=PaymentMethod(args.payment_method),
        cashier=args.cashier if args.cashier is not None else context.settings.default_cashier,
        discount=parse_discount(args.discount_type, args.discount),
        customer_id=args.customer_id,
    )


def translate_purchase(args: argparse.Namespace) -> core_logic.PurchaseCommand:
    return core_logic.PurchaseCommand(
        supplier_id=args.supplier_id,
        items=tuple(parse_purchase_line(raw) for raw in args.line),
        notes=args.notes,
    )


def _money(context: core_logic.RuntimeContext, amount: Decimal) -> str:
    return i18n.format_currency(amount, context.settings.store.currency)


def _print_alerts(alerts: List[core_logic.LowStockAlert]) -> None:
    for alert in alerts:
        print(f"LOW STOCK: {alert.product_name} ({alert.product_id}) {alert.stock} left")


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the BLL."""
    product = core_logic.add_product(context, translate_add_product(args))
    print(f"Added {product.product_id}: {product.product_name}")
    return 0


def run_update_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow in the BLL."""
    fields = translate_update_product(args)
    if not fields:
        log.warning("Nothing to update for product '%s'", args.product_id)
        return 1
    core_logic.update_product(context, args.product_id, **fields)
    return 0


def run_delete_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_product(context, args.product_id)
    return 0


def run_add_variant(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    variant = core_logic.add_variant(
        context,
        args.product_id,
        color=args.color,
        size=args.size,
        material=args.material,
        stock=args.stock,
    )
    print(f"Added {variant.variant_id}: {variant.label}")
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-customer workflow in the BLL."""
    customer = core_logic.add_customer(
        context,
        args.customer_name,
        args.phone,
        email=args.email,
        notes=args.notes,
    )
    print(f"Added {customer.customer_id}: {customer.customer_name}")
    return 0


def run_update_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    fields = translate_update_customer(args)
    if not fields:
        log.warning("Nothing to update for customer '%s'", args.customer_id)
        return 1
    core_logic.update_customer(context, args.customer_id, **fields)
    return 0


def run_delete_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_customer(context, args.customer_id)
    return 0


def run_add_user(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    user = core_logic.add_user(context, args.username, args.role)
    print(f"Added {user.user_id}: {user.username} ({user.role})")
    return 0


def run_update_user(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    fields = translate_update_user(args)
    if not fields:
        log.warning("Nothing to update for user '%s'", args.user_id)
        return 1
    core_logic.update_user(context, args.user_id, **fields)
    return 0


def run_delete_user(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_user(context, args.user_id)
    return 0


def run_sell(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL and print the receipt."""
    command = translate_sell(context, args)
    sale = core_logic.commit_sale(context, command)
    print(receipts.render_receipt(sale, context.settings.store), end="")
    if args.apply_stock:
        _print_alerts(core_logic.apply_stock_delta(context, sale))
    return 0


def run_apply_stock(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the stock deduction for an already committed sale."""
    sale = core_logic.get_sale(context, args.sale_id)
    _print_alerts(core_logic.apply_stock_delta(context, sale))
    return 0


def run_add_repair(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    repair = core_logic.add_repair(
        context,
        args.customer_name,
        args.garment,
        args.issue_description,
        tag=args.tag,
    )
    print(f"Booked {repair.repair_id}: {repair.garment} for {repair.customer_name}")
    return 0


def run_advance_repair(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    repair = core_logic.advance_repair_status(context, args.repair_id, args.status)
    print(f"{repair.repair_id} is now {repair.status}")
    return 0


def run_add_supplier(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    supplier = core_logic.add_supplier(
        context,
        args.supplier_name,
        contact_person=args.contact_person,
        phone=args.phone,
        email=args.email,
        address=args.address,
    )
    print(f"Added {supplier.supplier_id}: {supplier.supplier_name}")
    return 0


def run_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the purchase workflow via the BLL."""
    purchase = core_logic.record_purchase(context, translate_purchase(args))
    print(f"Recorded {purchase.purchase_id}: {_money(context, purchase.total_cost)}")
    return 0


def run_export_customers(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    print(reports.export_customers_csv(context, args.output))
    return 0


def run_export_sales(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    print(reports.export_sales_report_xlsx(context, args.output))
    return 0


def run_backup(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    print(core_logic.export_backup(context, args.output))
    return 0


def run_products_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the catalog, optionally filtered by ``--search``."""
    if args.search:
        products = core_logic.search_products(context, args.search)
    else:
        products = core_logic.list_products(context)
    for product in products:
        price = product.rental_price_per_day if product.transaction_type == TransactionType.RENTAL.value else product.selling_price
        print(
            f"{product.product_id}\t{product.barcode}\t{product.product_name}\t"
            f"{product.transaction_type}\t{product.stock}\t{_money(context, price or Decimal('0'))}"
        )
        for variant in product.variants:
            print(f"  {variant.variant_id}\t{variant.label}\t{variant.stock}")
    return 0


def run_low_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for product in core_logic.list_low_stock_products(context):
        print(f"{product.product_id}\t{product.product_name}\t{product.stock}/{product.reorder_point}")
    return 0


def run_customers_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    if args.search:
        customers = core_logic.search_customers(context, args.search)
    else:
        customers = core_logic.list_customers(context)
    for customer in customers:
        print(f"{customer.customer_id}\t{customer.customer_name}\t{customer.phone}\t{customer.email or ''}")
    return 0


def run_sales_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print committed sales and their running total."""
    if args.search:
        sales = reports.search_sales(context, args.search)
    else:
        sales = core_logic.list_sales(context)
    for sale in sales:
        print(
            f"{sale.sale_id}\t{sale.timestamp_iso}\t{sale.customer_name or '-'}\t"
            f"{sale.cashier}\t{_money(context, sale.total)}"
        )
    stats = reports.sales_stats(sales)
    print(f"{stats['count']} sale(s), {_money(context, stats['total'])}")
    return 0


def run_dashboard_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print today's figures, best sellers and the weekly trend."""
    summary = reports.dashboard_summary(context)
    print(f"Sales today: {_money(context, summary.daily_sales)}")
    print(f"Items sold today: {summary.items_sold_today}")
    print(f"Open repairs: {summary.pending_repairs}")
    print("Top sellers:")
    for top in summary.top_selling:
        print(f"  {top.product_name}\t{top.quantity}\t{_money(context, top.revenue)}")
    print("Last 7 days:")
    for day in summary.sales_by_day:
        print(f"  {day.day.isoformat()}\t{_money(context, day.total)}")
    return 0


def run_customer_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for summary in reports.customer_analysis(context):
        print(
            f"{summary.customer.customer_name}\t{summary.visit_count}\t"
            f"{_money(context, summary.total_spent)}\t{summary.last_visit or '-'}"
        )
    return 0


def run_repairs_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for repair in core_logic.list_repairs(context, args.status):
        print(f"{repair.repair_id}\t{repair.status}\t{repair.customer_name}\t{repair.garment}\t{repair.issue_description}")
    return 0


def run_suppliers_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for supplier in core_logic.list_suppliers(context):
        print(f"{supplier.supplier_id}\t{supplier.supplier_name}\t{supplier.contact_person or ''}\t{supplier.phone or ''}")
    return 0


def run_users_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for user in core_logic.list_users(context):
        print(f"{user.user_id}\t{user.username}\t{user.role}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    core_logic.persist_context(context)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        core_logic.ensure_schema_version(context)
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
