"""Tests for the master workbook bootstrap script."""

from __future__ import annotations

import pytest

from fashion_pos import constants, data_manager, setup_workbook


def test_create_master_workbook_refuses_to_overwrite(master_workbook_path):
    with pytest.raises(FileExistsError):
        setup_workbook.create_master_workbook(master_workbook_path)


def test_create_master_workbook_writes_bold_headers(tmp_path):
    destination = setup_workbook.create_master_workbook(tmp_path / "nested" / "wb.xlsx")

    workbook = data_manager.open_workbook(destination)
    products = workbook[data_manager.PRODUCTS_SHEET]
    assert products.cell(row=1, column=1).font.bold
    assert data_manager.validate_workbook_layout(workbook) == []
    assert list(data_manager.iter_products(workbook)) == []


def test_seeded_workbook_holds_sample_catalog(tmp_path):
    destination = setup_workbook.create_master_workbook(tmp_path / "wb.xlsx", seed_samples=True)

    products = {product.product_id: product for product in data_manager.iter_products(data_manager.open_workbook(destination))}

    assert len(products) == len(setup_workbook.sample_products())
    suit = products["P-SUIT-001"]
    assert suit.stock == sum(variant.stock for variant in suit.variants) == 10
    assert products["P-HEM-001"].stock == constants.UNLIMITED_STOCK
    assert products["P-TUX-001"].transaction_type == constants.TransactionType.RENTAL.value
    assert len({product.barcode for product in products.values()}) == len(products)


def test_main_reports_existing_workbook(config_file, capsys):
    exit_code = setup_workbook.main(["--config", str(config_file)])

    assert exit_code == 1
    assert "--force" in capsys.readouterr().out


def test_main_force_with_samples(config_file, capsys):
    exit_code = setup_workbook.main(["--config", str(config_file), "--force", "--seed-samples"])

    assert exit_code == 0
    assert "[SUCCESS]" in capsys.readouterr().out


def test_main_missing_config(tmp_path, capsys):
    assert setup_workbook.main(["--config", str(tmp_path / "absent.ini")]) == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_seeded_workbook_holds_sample_staff(tmp_path):
    manager = data_manager.UserRow("U-1", "mona", constants.Role.OWNER.value)
    destination = setup_workbook.create_master_workbook(tmp_path / "wb.xlsx", seed_samples=True, staff=[manager])

    users = list(data_manager.iter_users(data_manager.open_workbook(destination)))

    assert [user.username for user in users] == ["mona", "Layla", "Karim"]
    assert users[0].role == constants.Role.OWNER.value


def test_main_puts_default_cashier_on_roster(config_factory):
    bundle = config_factory(cashier="Samir")

    assert setup_workbook.main(["--config", str(bundle.config_path), "--force"]) == 0

    [user] = list(data_manager.iter_users(data_manager.open_workbook(bundle.workbook_path)))
    assert (user.username, user.role) == ("Samir", constants.Role.OWNER.value)
