"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Mapping

import pytest

from fashion_pos import cli, constants, core_logic, data_manager
from fashion_pos.pricing import FixedDiscount, PercentDiscount


WRITE_COMMANDS = {
    "add-product",
    "update-product",
    "delete-product",
    "add-variant",
    "add-customer",
    "update-customer",
    "delete-customer",
    "add-user",
    "update-user",
    "delete-user",
    "sell",
    "apply-stock",
    "add-repair",
    "advance-repair",
    "add-supplier",
    "purchase",
    "export-customers",
    "export-sales",
    "backup",
}

READ_COMMANDS = {
    "products",
    "low-stock",
    "customers",
    "sales",
    "dashboard",
    "customer-report",
    "repairs",
    "suppliers",
    "users",
}

# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    """build_parser should set user-facing program metadata."""

    parser = cli.build_parser()
    assert isinstance(parser, argparse.ArgumentParser)
    assert parser.prog == "fashion-pos"
    assert "clothing store" in (parser.description or "")


def test_configure_subcommands_registers_every_command(cli_parser):
    """configure_subcommands should wire mutating and reporting sub-commands."""

    command_table = cli.configure_subcommands(cli_parser)
    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert _registered_choices(cli_parser) == WRITE_COMMANDS | READ_COMMANDS


def test_register_write_commands_returns_command_specs(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)
    assert set(specs) == WRITE_COMMANDS
    for spec in specs.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text
    for name in WRITE_COMMANDS:
        assert name in subparsers_action.choices


def test_register_read_commands_returns_command_specs(subparsers_action):
    specs = cli.register_read_commands(subparsers_action)
    assert set(specs) == READ_COMMANDS
    for name in READ_COMMANDS:
        assert name in subparsers_action.choices


# ---------------------------------------------------------------------------
# Command registrations
# ---------------------------------------------------------------------------


def test_register_add_product_command_configures_arguments():
    """register_add_product_command should accept repeatable variants."""

    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    spec = cli.register_add_product_command(subparsers)
    spec.register(subparsers)
    namespace = parser.parse_args(
        [
            "add-product",
            "--name",
            "Linen Blazer",
            "--category",
            "Jackets",
            "--cost-price",
            "60",
            "--selling-price",
            "129.90",
            "--variant",
            "Beige:M:Linen:3",
            "--variant",
            "Beige:L::2",
        ]
    )
    assert namespace.command == "add-product"
    assert namespace.product_name == "Linen Blazer"
    assert namespace.transaction_type == constants.TransactionType.SALE.value
    assert namespace.variant == ["Beige:M:Linen:3", "Beige:L::2"]
    assert namespace.stock == 0


def test_register_update_product_command_leaves_unset_fields_empty():
    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    cli.register_update_product_command(subparsers).register(subparsers)

    namespace = parser.parse_args(["update-product", "--product-id", "P1", "--selling-price", "99"])

    assert namespace.selling_price == "99"
    assert namespace.transaction_type is None
    assert namespace.stock is None


def test_register_sell_command_configures_arguments():
    """register_sell_command should collect items, barcodes and the tender."""

    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    cli.register_sell_command(subparsers).register(subparsers)
    namespace = parser.parse_args(
        [
            "sell",
            "--item",
            "P1x2",
            "--barcode",
            "1001004",
            "--discount",
            "10",
            "--discount-type",
            "PERCENT",
            "--payment-method",
            "CARD",
        ]
    )
    assert namespace.item == ["P1x2"]
    assert namespace.barcode == ["1001004"]
    assert namespace.discount_type == "PERCENT"
    assert namespace.payment_method == "CARD"
    assert namespace.cashier is None
    assert namespace.apply_stock is False


def test_register_sell_command_rejects_unknown_payment_method():
    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    cli.register_sell_command(subparsers).register(subparsers)

    with pytest.raises(SystemExit):
        parser.parse_args(["sell", "--payment-method", "CHEQUE"])


def test_register_repairs_command_filters_by_status():
    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    cli.register_repairs_command(subparsers).register(subparsers)

    namespace = parser.parse_args(["repairs", "--status", "READY"])

    assert namespace.status == "READY"


# ---------------------------------------------------------------------------
# Runtime context helpers
# ---------------------------------------------------------------------------


def test_load_runtime_context_uses_provided_path(config_file, monkeypatch):
    """load_runtime_context should load settings from the specified config path."""

    sentinel_context = object()

    def fake_loader(path: Path | None) -> object:
        assert path == config_file
        return sentinel_context

    monkeypatch.setattr(core_logic, "load_runtime_context", fake_loader)
    assert cli.load_runtime_context(config_file) is sentinel_context


def test_load_runtime_context_supports_defaults(monkeypatch, tmp_path):
    """load_runtime_context should resolve config.ini from the working directory."""

    config_path = tmp_path / "config.ini"
    sentinel_context = object()

    def fake_loader(path: Path | None) -> object:
        assert path == config_path
        return sentinel_context

    monkeypatch.setattr(core_logic, "load_runtime_context", fake_loader)
    monkeypatch.chdir(tmp_path)
    assert cli.load_runtime_context() is sentinel_context


# ---------------------------------------------------------------------------
# Dispatch helpers
# ---------------------------------------------------------------------------


def test_dispatch_command_invokes_executor(context):
    called = {}

    def execute(ctx: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
        called["context"] = ctx
        return 0

    table = {"alpha": cli.CommandSpec("alpha", "A", lambda s: s.add_parser("alpha"), execute)}
    assert cli.dispatch_command(context, argparse.Namespace(command="alpha"), table) == 0
    assert called["context"] is context


def test_dispatch_command_handles_unknown_commands(context):
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command="unknown"), {})
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(), {})


def test_build_command_table_indexes_specs(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    assert set(table) == {spec.name for spec in command_spec_iterable}


def test_build_command_table_detects_duplicate_commands():
    specs = [
        cli.CommandSpec("alpha", "A", lambda s: s.add_parser("alpha"), lambda c, a: 0),
        cli.CommandSpec("alpha", "Duplicate", lambda s: s.add_parser("alpha"), lambda c, a: 0),
    ]
    with pytest.raises(ValueError):
        cli.build_command_table(specs)


# ---------------------------------------------------------------------------
# Argument parsing helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("P-CHINO-001", cli.ItemRequest("P-CHINO-001", None, 1)),
        ("P-CHINO-001x3", cli.ItemRequest("P-CHINO-001", None, 3)),
        ("P-SUIT-001:P-SUIT-001-V2", cli.ItemRequest("P-SUIT-001", "P-SUIT-001-V2", 1)),
        ("P-SUIT-001:P-SUIT-001-V2x2", cli.ItemRequest("P-SUIT-001", "P-SUIT-001-V2", 2)),
    ],
)
def test_parse_item_argument(raw: str, expected: cli.ItemRequest):
    assert cli.parse_item_argument(raw) == expected


@pytest.mark.parametrize("raw", ["", "P1x0", "P1:V1:V2"])
def test_parse_item_argument_rejects_bad_input(raw: str):
    with pytest.raises(ValueError):
        cli.parse_item_argument(raw)


def test_parse_variant_argument_leaves_blank_parts_unset():
    draft = cli.parse_variant_argument("Navy::Wool:4")
    assert draft == core_logic.VariantDraft(color="Navy", size=None, material="Wool", stock=4)

    with pytest.raises(ValueError):
        cli.parse_variant_argument("Navy:48")


def test_parse_purchase_line():
    line = cli.parse_purchase_line("P1:5:12.50")
    assert line == core_logic.PurchaseLine(product_id="P1", quantity=5, cost_price=Decimal("12.50"))

    with pytest.raises(ValueError):
        cli.parse_purchase_line("P1:5")


# ---------------------------------------------------------------------------
# Translation helpers
# ---------------------------------------------------------------------------


def test_translate_add_product_returns_draft():
    args = argparse.Namespace(
        product_name="Tuxedo",
        barcode=None,
        category="Formal Wear",
        brand=None,
        cost_price="300",
        selling_price=None,
        rental_price_per_day="40",
        transaction_type="RENTAL",
        stock=4,
        reorder_point=1,
        variant=[],
    )

    draft = cli.translate_add_product(args)

    assert draft.transaction_type is constants.TransactionType.RENTAL
    assert draft.rental_price_per_day == Decimal("40")
    assert draft.selling_price is None
    assert draft.barcode == ""
    assert draft.variants == ()


def test_translate_update_product_skips_unset_fields():
    args = argparse.Namespace(
        product_id="P1",
        product_name=None,
        barcode=None,
        category=None,
        brand="Sartoria",
        cost_price=None,
        selling_price="99.50",
        rental_price_per_day=None,
        transaction_type=None,
        stock=None,
        reorder_point=2,
    )

    assert cli.translate_update_product(args) == {
        "brand": "Sartoria",
        "reorder_point": 2,
        "selling_price": Decimal("99.50"),
    }


def test_translate_update_user_skips_unset_fields():
    assert cli.translate_update_user(argparse.Namespace(user_id="U1", username=None, role="OWNER")) == {"role": "OWNER"}


def test_register_add_user_command_defaults_to_sales_role():
    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    cli.register_add_user_command(subparsers).register(subparsers)

    namespace = parser.parse_args(["add-user", "--username", "Samir"])

    assert namespace.role == constants.Role.SALES.value
    with pytest.raises(SystemExit):
        parser.parse_args(["add-user", "--username", "Samir", "--role", "JANITOR"])


def _sell_args(**overrides) -> argparse.Namespace:
    values = {
        "item": [],
        "barcode": [],
        "discount": None,
        "discount_type": "FIXED",
        "payment_method": "CASH",
        "cashier": None,
        "customer_id": None,
        "rental_days": None,
        "apply_stock": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def test_translate_sell_builds_cart_and_defaults_cashier(seeded_context):
    args = _sell_args(item=["P-SUIT-001:P-SUIT-001-V1", "P-CHINO-001x2"], barcode=["1001004"])

    command = cli.translate_sell(seeded_context, args)

    assert command.cashier == "Mona"
    assert command.payment_method is constants.PaymentMethod.CASH
    assert command.discount == FixedDiscount(Decimal("0"))
    lines = {(item.product_id, item.variant_id): item.quantity for item in command.cart_items}
    assert lines == {("P-SUIT-001", "P-SUIT-001-V1"): 1, ("P-CHINO-001", None): 3}


def test_translate_sell_parses_percent_discount(seeded_context):
    args = _sell_args(item=["P-SHIRT-001"], discount="10", discount_type="PERCENT", cashier="Karim")

    command = cli.translate_sell(seeded_context, args)

    assert command.discount == PercentDiscount(Decimal("10"))
    assert command.cashier == "Karim"


def test_translate_sell_unknown_product_raises(seeded_context):
    with pytest.raises(core_logic.MissingReferenceError):
        cli.translate_sell(seeded_context, _sell_args(item=["NOPE"]))


# ---------------------------------------------------------------------------
# Command execution helpers
# ---------------------------------------------------------------------------


def test_run_sell_commits_and_prints_receipt(seeded_context, capsys):
    exit_code = cli.run_sell(seeded_context, _sell_args(item=["P-CHINO-001x2"]))

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Slim Chinos" in out
    assert "2 x $45.00" in out
    [sale] = core_logic.list_sales(seeded_context)
    assert sale.total == Decimal("90.00")
    assert core_logic.get_product(seeded_context, "P-CHINO-001").stock == 20


def test_run_sell_with_apply_stock_reports_low_stock(seeded_context, capsys):
    args = _sell_args(item=["P-SHIRT-001x9"], apply_stock=True)

    assert cli.run_sell(seeded_context, args) == 0

    assert "LOW STOCK: Oxford Dress Shirt (P-SHIRT-001) 3 left" in capsys.readouterr().out
    assert core_logic.get_product(seeded_context, "P-SHIRT-001").stock == 3


def test_run_add_product_invokes_bll(context, monkeypatch, product_factory, capsys):
    """run_add_product should delegate to the business logic layer."""

    draft = object()
    monkeypatch.setattr(cli, "translate_add_product", lambda value: draft)
    called = {}

    def fake_add_product(ctx: core_logic.RuntimeContext, payload: object) -> data_manager.ProductRow:
        called["context"] = ctx
        called["payload"] = payload
        return product_factory("P9", name="Linen Blazer")

    monkeypatch.setattr(cli.core_logic, "add_product", fake_add_product)
    assert cli.run_add_product(context, argparse.Namespace()) == 0
    assert called == {"context": context, "payload": draft}
    assert "P9: Linen Blazer" in capsys.readouterr().out


def test_run_update_product_without_fields_returns_one(context, monkeypatch):
    monkeypatch.setattr(cli, "translate_update_product", lambda value: {})
    monkeypatch.setattr(
        cli.core_logic,
        "update_product",
        lambda *_, **__: pytest.fail("update_product should not be called"),
    )
    assert cli.run_update_product(context, argparse.Namespace(product_id="P1")) == 1


def test_run_sales_report_prints_running_total(seeded_context, capsys):
    cli.run_sell(seeded_context, _sell_args(item=["P-CHINO-001"]))
    cli.run_sell(seeded_context, _sell_args(item=["P-SHIRT-001"], cashier="Karim"))
    capsys.readouterr()

    assert cli.run_sales_report(seeded_context, argparse.Namespace(search="karim")) == 0

    out = capsys.readouterr().out
    assert "1 sale(s), $85.00" in out


def test_run_products_report_lists_variants(seeded_context, capsys):
    assert cli.run_products_report(seeded_context, argparse.Namespace(search="suit")) == 0

    out = capsys.readouterr().out
    assert "P-SUIT-001" in out
    assert "Navy / 48 / Wool" in out
    assert "P-CHINO-001" not in out


# ---------------------------------------------------------------------------
# Error handling and persistence
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error, expected",
    [
        (core_logic.BusinessRuleViolation("invalid"), 2),
        (core_logic.EmptyCartError("empty"), 2),
        (FileNotFoundError("missing"), 3),
        (ValueError("bad value"), 1),
    ],
)
def test_handle_cli_error_returns_exit_code(error: Exception, expected: int, caplog: pytest.LogCaptureFixture):
    """handle_cli_error should convert exceptions into exit codes."""

    caplog.set_level("ERROR")
    assert cli.handle_cli_error(error) == expected
    assert any(str(error) in record.getMessage() for record in caplog.records)


def test_persist_workbook_saves_changes(context, monkeypatch):
    called = {}
    monkeypatch.setattr(cli.core_logic, "persist_context", lambda ctx: called.setdefault("context", ctx))
    cli.persist_workbook(context)
    assert called["context"] is context


def test_persist_workbook_surfaces_write_failures(runtime_context, monkeypatch):
    def fake_save(*_: object, **__: object) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr(core_logic.data_manager, "save_workbook", fake_save)
    with pytest.raises(RuntimeError, match="Could not save"):
        cli.persist_workbook(runtime_context)


# ---------------------------------------------------------------------------
# Program entry point
# ---------------------------------------------------------------------------


def test_main_executes_specified_command(monkeypatch, context):
    """main should execute the command parsed from argv and persist."""

    parser = _stub_parser(command="sell")
    command_table = {"sell": cli.CommandSpec("sell", "help", lambda _: parser, lambda *_: 0)}

    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: context)
    monkeypatch.setattr(cli.core_logic, "ensure_schema_version", lambda ctx: None)

    called = {}

    def fake_dispatch(ctx: core_logic.RuntimeContext, args: argparse.Namespace, table: Mapping[str, cli.CommandSpec]) -> int:
        called["args"] = args
        return 0

    monkeypatch.setattr(cli, "dispatch_command", fake_dispatch)
    monkeypatch.setattr(cli, "persist_workbook", lambda ctx: called.setdefault("persisted", ctx))

    assert cli.main(["sell"]) == 0
    assert called["persisted"] is context
    assert called["args"].command == "sell"


def test_main_handles_bll_errors_without_persisting(monkeypatch, context):
    parser = _stub_parser(command="sell")
    command_table = {"sell": cli.CommandSpec("sell", "help", lambda _: parser, lambda *_: 0)}

    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: context)
    monkeypatch.setattr(cli.core_logic, "ensure_schema_version", lambda ctx: None)

    def fake_dispatch(*_: object) -> int:
        raise core_logic.EmptyCartError("empty")

    monkeypatch.setattr(cli, "dispatch_command", fake_dispatch)
    monkeypatch.setattr(cli, "persist_workbook", lambda _: pytest.fail("should not persist"))

    assert cli.main(["sell"]) == 2


def test_main_sell_end_to_end(seeded_config, capsys):
    exit_code = cli.main(
        ["--config", str(seeded_config.config_path), "sell", "--item", "P-DRESS-001:P-DRESS-001-V2", "--discount", "5"]
    )

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Evening Dress" in out
    assert "-$5.00" in out
    assert "$60.00" in out

    reloaded = core_logic.load_runtime_context(seeded_config.config_path)
    [sale] = core_logic.list_sales(reloaded)
    assert sale.items[0].variant_id == "P-DRESS-001-V2"
    assert sale.cashier == "Mona"


def test_main_shop_day_walkthrough(seeded_config, tmp_path, capsys):
    """Drive a day of shop work through the CLI, one process per command."""

    config = str(seeded_config.config_path)

    def run(*argv: str) -> str:
        assert cli.main(["--config", config, *argv]) == 0
        return capsys.readouterr().out

    def fresh() -> core_logic.RuntimeContext:
        return core_logic.load_runtime_context(seeded_config.config_path)

    run("add-customer", "--name", "Amira Saleh", "--phone", "555-0101", "--notes", "Waist 30")
    [customer] = core_logic.list_customers(fresh())
    run("update-customer", "--customer-id", customer.customer_id, "--email", "amira@example.com")

    run("sell", "--item", "P-CHINO-001x2", "--customer-id", customer.customer_id, "--apply-stock")
    [sale] = core_logic.list_sales(fresh())
    assert sale.customer_name == "Amira Saleh"
    assert core_logic.get_product(fresh(), "P-CHINO-001").stock == 18
    assert cli.main(["--config", config, "apply-stock", "--sale-id", sale.sale_id]) == 2
    assert core_logic.get_product(fresh(), "P-CHINO-001").stock == 18

    run("add-repair", "--customer-name", "Amira Saleh", "--garment", "Chinos", "--issue", "Hem 3cm")
    [repair] = core_logic.list_repairs(fresh())
    assert "is now IN_PROGRESS" in run("advance-repair", "--repair-id", repair.repair_id)
    assert "IN_PROGRESS" in run("repairs", "--status", "IN_PROGRESS")

    run("add-supplier", "--name", "Milano Textiles", "--contact", "Gianni")
    [supplier] = core_logic.list_suppliers(fresh())
    assert "Milano Textiles" in run("suppliers")
    assert "$180.00" in run("purchase", "--supplier-id", supplier.supplier_id, "--line", "P-CHINO-001:10:18.00")

    run("add-variant", "--product-id", "P-SHIRT-001", "--color", "White", "--size", "M", "--stock", "2")
    run("update-product", "--product-id", "P-CHINO-001", "--selling-price", "49")
    run("delete-product", "--product-id", "P-HEM-001")
    context = fresh()
    assert core_logic.get_product(context, "P-SHIRT-001").stock == 2
    assert core_logic.get_product(context, "P-CHINO-001").selling_price == Decimal("49")
    assert "P-SHIRT-001" in run("low-stock")

    dashboard = run("dashboard")
    assert "Items sold today: 2" in dashboard
    assert "Open repairs: 1" in dashboard
    assert "Amira Saleh\t1\t$90.00" in run("customer-report")
    assert customer.customer_id in run("customers", "--search", "amira")
    assert "1 sale(s), $90.00" in run("sales")

    assert run("export-customers", "--output", str(tmp_path / "customers.csv")).strip()
    assert run("export-sales", "--output", str(tmp_path / "sales.xlsx")).strip()
    assert run("backup", "--output", str(tmp_path / "backup.xlsx")).strip()
    assert (tmp_path / "customers.csv").exists()
    assert data_manager.validate_workbook_layout(data_manager.open_workbook(tmp_path / "backup.xlsx")) == []

    run("delete-customer", "--customer-id", customer.customer_id)
    assert core_logic.list_customers(fresh()) == []

    assert "Added" in run("add-user", "--username", "Samir", "--role", "DESIGNER")
    samir = core_logic.find_user_by_username(fresh(), "samir")
    run("update-user", "--user-id", samir.user_id, "--role", "ADMIN")
    assert f"{samir.user_id}\tSamir\tADMIN" in run("users")
    run("delete-user", "--user-id", samir.user_id)
    assert "Samir" not in run("users")
    assert cli.main(["--config", config, "sell", "--item", "P-SHIRT-001", "--cashier", "Samir"]) == 2
    assert len(core_logic.list_sales(fresh())) == 1


def test_main_empty_cart_exits_with_business_error(seeded_config):
    assert cli.main(["--config", str(seeded_config.config_path), "sell"]) == 2


def test_main_missing_config_exits_three(tmp_path):
    assert cli.main(["--config", str(tmp_path / "absent.ini"), "products"]) == 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stub_parser(command: str) -> argparse.ArgumentParser:
    """Create a stub parser that always returns the supplied command."""

    class _Stub(argparse.ArgumentParser):
        def parse_args(self, args: Iterable[str] | None = None, namespace: argparse.Namespace | None = None):  # type: ignore[override]
            return argparse.Namespace(command=command)

    return _Stub(prog="test")


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    """Return the set of registered sub-command names for assertion helpers."""

    actions = getattr(parser, "_subparsers", None)
    if not actions:
        return set()
    group_actions = actions._group_actions  # type: ignore[attr-defined]
    if not group_actions:
        return set()
    return set(group_actions[0].choices)  # type: ignore[index]
