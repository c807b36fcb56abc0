"""Utility for initializing the fashion POS master workbook.

The module doubles as a script (``python -m fashion_pos.setup_workbook``) and
as a library used by tests or other tooling. The sheet layout comes from
:data:`fashion_pos.data_manager.SHEET_COLUMNS` so the bootstrap and the data
layer never disagree.
"""

from __future__ import annotations

import argparse
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Sequence
import sys

import openpyxl
from openpyxl.styles import Font

from . import data_manager, log
from .constants import UNLIMITED_STOCK, Role, TransactionType
from .data_manager import ProductRow, UserRow, VariantRow


CONFIG_FILE = "config.ini"


def _sample_variants(product_id: str, specs: Sequence[tuple[str, str, str, int]]) -> tuple[VariantRow, ...]:
    return tuple(
        VariantRow(
            variant_id=f"{product_id}-V{index}",
            product_id=product_id,
            color=color,
            size=size,
            material=material,
            stock=stock,
        )
        for index, (color, size, material, stock) in enumerate(specs, start=1)
    )


def sample_products() -> list[ProductRow]:
    """Starter catalog for a menswear and womenswear shop."""

    suit_variants = _sample_variants(
        "P-SUIT-001",
        [("Navy", "48", "Wool", 3), ("Navy", "50", "Wool", 4), ("Charcoal", "52", "Wool", 3)],
    )
    dress_variants = _sample_variants(
        "P-DRESS-001",
        [("Red", "S", "Silk", 5), ("Black", "M", "Silk", 7)],
    )
    return [
        ProductRow(
            product_id="P-SUIT-001",
            product_name="Classic Two-Piece Suit",
            barcode="1001001",
            category="Suits",
            brand="Sartoria",
            stock=sum(variant.stock for variant in suit_variants),
            reorder_point=3,
            cost_price=Decimal("140.00"),
            selling_price=Decimal("250.00"),
            rental_price_per_day=None,
            transaction_type=TransactionType.SALE.value,
            variants=suit_variants,
        ),
        ProductRow(
            product_id="P-DRESS-001",
            product_name="Evening Dress",
            barcode="1001002",
            category="Dresses",
            brand="Maison Lune",
            stock=sum(variant.stock for variant in dress_variants),
            reorder_point=2,
            cost_price=Decimal("30.00"),
            selling_price=Decimal("65.00"),
            rental_price_per_day=None,
            transaction_type=TransactionType.SALE.value,
            variants=dress_variants,
        ),
        ProductRow(
            product_id="P-TUX-001",
            product_name="Tuxedo Rental",
            barcode="1001003",
            category="Formal Wear",
            brand="Sartoria",
            stock=6,
            reorder_point=1,
            cost_price=Decimal("300.00"),
            selling_price=None,
            rental_price_per_day=Decimal("40.00"),
            transaction_type=TransactionType.RENTAL.value,
        ),
        ProductRow(
            product_id="P-CHINO-001",
            product_name="Slim Chinos",
            barcode="1001004",
            category="Trousers",
            brand="Everyday",
            stock=20,
            reorder_point=5,
            cost_price=Decimal("18.00"),
            selling_price=Decimal("45.00"),
            rental_price_per_day=None,
            transaction_type=TransactionType.SALE.value,
        ),
        ProductRow(
            product_id="P-SHIRT-001",
            product_name="Oxford Dress Shirt",
            barcode="1001005",
            category="Shirts",
            brand="Everyday",
            stock=12,
            reorder_point=4,
            cost_price=Decimal("35.00"),
            selling_price=Decimal("85.00"),
            rental_price_per_day=None,
            transaction_type=TransactionType.SALE.value,
        ),
        ProductRow(
            product_id="P-HEM-001",
            product_name="Trouser Hemming",
            barcode="1001006",
            category="Alterations",
            brand="",
            stock=UNLIMITED_STOCK,
            reorder_point=0,
            cost_price=Decimal("0.00"),
            selling_price=Decimal("15.00"),
            rental_price_per_day=None,
            transaction_type=TransactionType.SERVICE.value,
        ),
    ]


def sample_staff() -> list[UserRow]:
    """Starter roster matching the sample catalog."""

    return [
        UserRow(user_id="U-LAYLA", username="Layla", role=Role.OWNER.value),
        UserRow(user_id="U-MONA", username="Mona", role=Role.SALES.value),
        UserRow(user_id="U-KARIM", username="Karim", role=Role.SALES.value),
    ]


def _default_cashier_roster(cashier: str) -> list[UserRow]:
    if not cashier:
        return []
    return [UserRow(user_id="U-DEFAULT", username=cashier, role=Role.OWNER.value)]


def create_master_workbook(
    destination: Path,
    *,
    sheet_columns: Mapping[str, Sequence[str]] = data_manager.SHEET_COLUMNS,
    overwrite: bool = False,
    seed_samples: bool = False,
    staff: Sequence[UserRow] = (),
) -> Path:
    """Create the master workbook at ``destination``.

    Every sheet gets a bold header row and ``staff`` goes on the ``Users``
    roster. When ``seed_samples`` is set the catalog is filled with
    :func:`sample_products` and the roster with :func:`sample_staff`, skipping
    names already in ``staff``. When ``overwrite`` is ``False`` (the default)
    this function raises ``FileExistsError`` if the target already exists.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing master workbook: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()

    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)

    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font

    roster = list(staff)
    if seed_samples:
        for product in sample_products():
            data_manager.append_product(workbook, product)
        known = {user.username.casefold() for user in roster}
        roster.extend(user for user in sample_staff() if user.username.casefold() not in known)
    for user in roster:
        data_manager.append_user(workbook, user)

    data_manager.save_workbook(workbook, destination)
    log.info("Created master workbook '%s' (samples=%s)", destination, seed_samples)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False, seed_samples: bool = False) -> Path:
    """Create the workbook named by ``[System] DataFile`` in ``config_path``.

    The ``[Defaults] Cashier`` is put on the roster as the shop owner so the
    till can be used straight away.
    """

    parser = data_manager.read_config(config_path)
    settings = data_manager.parse_settings(parser, base_path=config_path.parent)
    return create_master_workbook(
        settings.data_file,
        overwrite=overwrite,
        seed_samples=seed_samples,
        staff=_default_cashier_roster(settings.default_cashier),
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the fashion POS data file")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    parser.add_argument(
        "--seed-samples",
        action="store_true",
        help="Fill the catalog with a starter set of suits, dresses and services.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Fashion POS Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force, seed_samples=args.seed_samples)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except (KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except OSError as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created master workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
