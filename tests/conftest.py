"""Shared pytest fixtures and utilities for the fashion POS tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fashion_pos import cli, constants, core_logic, data_manager  # noqa: E402
from fashion_pos.setup_workbook import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
DEFAULT_CASHIER = "Mona"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "StoreName = {store_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Defaults]\n"
    "Cashier = {cashier}\n\n"
    "[Store]\n"
    "OwnerName = Layla Haddad\n"
    "Phone = 555-0100\n"
    "FooterText = Exchanges within 14 days\n"
    "Currency = {currency}\n"
    "Language = en\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    cashier: str
    schema_version: str
    store_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        filename: str = "master_workbook.xlsx",
        seed_samples: bool = False,
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(workbook_path, overwrite=True, seed_samples=seed_samples)
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh, empty master workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        store_name: str = "Atelier Test",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        cashier: str = DEFAULT_CASHIER,
        currency: str = "USD",
        seed_samples: bool = False,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        workbook_path = workbook_factory(subdir=bundle_dir_name, seed_samples=seed_samples)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                store_name=store_name,
                schema_version=schema_version,
                cashier=cashier,
                currency=currency,
            ),
            encoding="utf-8",
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            cashier=cashier,
            schema_version=schema_version,
            store_name=store_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def seeded_config(config_factory: Callable[..., ConfigBundle]) -> ConfigBundle:
    """Config bundle whose workbook holds the sample catalog."""

    return config_factory(seed_samples=True)


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


@pytest.fixture
def seeded_context(seeded_config: ConfigBundle) -> core_logic.RuntimeContext:
    """Runtime context over a workbook seeded with the sample catalog."""

    context = core_logic.load_runtime_context(seeded_config.config_path)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="fashion-pos", description="Fashion POS")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store_settings() -> data_manager.StoreSettings:
    return data_manager.StoreSettings(
        name="Atelier Test",
        owner_name="Layla Haddad",
        phone="555-0100",
        footer_text="Exchanges within 14 days",
        currency="USD",
        language="en",
    )


@pytest.fixture
def settings(tmp_path: Path, store_settings: data_manager.StoreSettings) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "master_workbook.xlsx",
        store_name="Atelier Test",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        default_cashier=DEFAULT_CASHIER,
        store=store_settings,
    )


@pytest.fixture
def workbook() -> Mock:
    """Return a mock workbook object for business logic tests."""

    return Mock(name="workbook")


@pytest.fixture
def context(settings: data_manager.ConfigSettings, workbook: Mock) -> core_logic.RuntimeContext:
    """Assemble a runtime context from injected settings and workbook mocks."""

    return core_logic.RuntimeContext(settings=settings, workbook=workbook)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


# ---------------------------------------------------------------------------
# Domain row builders
# ---------------------------------------------------------------------------


def make_product(
    product_id: str = "P1",
    *,
    name: str = "Classic Suit",
    price: str | None = "250.00",
    rental: str | None = None,
    transaction_type: constants.TransactionType = constants.TransactionType.SALE,
    stock: int = 5,
    reorder_point: int = 1,
    barcode: str = "",
    variants: tuple[data_manager.VariantRow, ...] = (),
) -> data_manager.ProductRow:
    return data_manager.ProductRow(
        product_id=product_id,
        product_name=name,
        barcode=barcode or f"BC-{product_id}",
        category="Suits",
        brand="Sartoria",
        stock=stock,
        reorder_point=reorder_point,
        cost_price=Decimal("100.00"),
        selling_price=Decimal(price) if price is not None else None,
        rental_price_per_day=Decimal(rental) if rental is not None else None,
        transaction_type=transaction_type.value,
        variants=variants,
    )


def make_item(
    product_id: str = "P1",
    *,
    name: str = "Classic Suit",
    price: str = "250.00",
    quantity: int = 1,
    transaction_type: constants.TransactionType = constants.TransactionType.SALE,
    variant_id: str | None = None,
) -> data_manager.SaleItemRow:
    return data_manager.SaleItemRow(
        product_id=product_id,
        product_name=name,
        quantity=quantity,
        price=Decimal(price),
        transaction_type=transaction_type.value,
        variant_id=variant_id,
    )


@pytest.fixture
def product_factory() -> Callable[..., data_manager.ProductRow]:
    return make_product


@pytest.fixture
def item_factory() -> Callable[..., data_manager.SaleItemRow]:
    return make_item
