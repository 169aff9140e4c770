from decimal import Decimal
from pathlib import Path

import pytest
from conftest import ACTOR, add_item
from openpyxl import Workbook

from bsm.domain.errors import ValidationError


def _sheet(path: Path, rows) -> str:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return str(path)


def test_import_builds_one_purchase_bill(app, tmp_path: Path):
    x = add_item(app)
    y = app.catalog.add_item(ACTOR, "SKU-Y", "Gadget", "pcs", "1.00", None)
    path = _sheet(
        tmp_path / "restock.xlsx",
        [
            ["SKU", "Quantity", "Cost_Price", "Batch_Number", "Expiry_Date"],
            ["SKU-X", 4, 2.5, "B-9", "2025-06-30"],
            ["SKU-Y", "3", "1.10", None, None],
            ["NOPE", 1, 1],
            ["SKU-X", "abc", 1],
            ["SKU-X", 2, -1],
            ["SKU-X", "1e30", 1],
            [None, None, None],
        ],
    )

    detail, skipped = app.excel.import_purchase_bill(ACTOR, path, tax_rate=0)

    assert skipped == 4
    assert [(i.item_id, i.quantity, i.cost_price) for i in detail.items] == [
        (x.id, Decimal("4"), Decimal("2.50")),
        (y.id, Decimal("3"), Decimal("1.10")),
    ]
    assert detail.bill.subtotal == Decimal("13.30")
    assert detail.lots[0].batch_number == "B-9"
    assert detail.lots[0].expiry_date == "2025-06-30"
    assert detail.expense.amount == Decimal("13.30")


def test_import_requires_headers(app, tmp_path: Path):
    path = _sheet(tmp_path / "bad.xlsx", [["sku", "qty"], ["SKU-X", 1]])

    with pytest.raises(ValidationError, match="quantity"):
        app.excel.import_purchase_bill(ACTOR, path)


def test_import_with_no_usable_rows_writes_nothing(app, tmp_path: Path):
    add_item(app)
    path = _sheet(tmp_path / "empty.xlsx", [["sku", "quantity", "cost_price"], ["NOPE", 1, 1]])

    with pytest.raises(ValidationError):
        app.excel.import_purchase_bill(ACTOR, path)

    assert app.purchases.list_purchase_bills(ACTOR).total == 0


def test_import_skips_rows_with_out_of_range_amounts(app, tmp_path: Path):
    add_item(app)
    path = _sheet(
        tmp_path / "huge.xlsx",
        [
            ["sku", "quantity", "cost_price"],
            ["SKU-X", "100000000000000", "100000000000000"],
            ["SKU-X", 2, "1.50"],
        ],
    )

    detail, skipped = app.excel.import_purchase_bill(ACTOR, path)

    assert skipped == 1
    assert [i.quantity for i in detail.items] == [Decimal("2")]
