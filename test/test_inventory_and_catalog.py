import sqlite3
from decimal import Decimal

import pytest
from conftest import ACTOR, OTHER_ACTOR, add_client, add_item, receive_lot

from bsm.domain.errors import NotFoundError, ValidationError
from bsm.repositories.sqlite_repo import SqliteRepository
from bsm.services.catalog_service import CatalogService


def test_manual_lot_uses_item_default_selling_price(app):
    item = add_item(app, selling="6.50")

    lot = app.inventory.add_lot(ACTOR, item.id, "4", "2.00", batch_number="M-1", location="Back room")

    assert lot.available == Decimal("4")
    assert lot.selling_price == Decimal("6.50")
    assert lot.source_purchase_bill_id is None
    assert lot.purchase_date == "2024-03-15"
    assert lot.location == "Back room"
    assert app.purchases.list_purchase_bills(ACTOR).total == 0
    assert app.expenses.list_expenses(ACTOR) == []


def test_manual_lot_validation(app):
    item = add_item(app)

    with pytest.raises(ValidationError):
        app.inventory.add_lot(ACTOR, item.id, "0", "2.00")
    with pytest.raises(NotFoundError):
        app.inventory.add_lot(OTHER_ACTOR, item.id, "1", "2.00")

    assert app.inventory.list_lots(ACTOR) == []


def test_list_lots_filters(app):
    x = add_item(app)
    y = app.catalog.add_item(ACTOR, "SKU-Y", "Gadget", "pcs", "1.00", None)
    lot_x = receive_lot(app, item=x, quantity="2")
    lot_y = receive_lot(app, item=y, quantity="3")
    client = add_client(app)
    app.sales.create_sales_bill(ACTOR, client.id, [{"lot_id": lot_x.id, "quantity": 2, "selling_price": 5}])

    assert {lot.id for lot in app.inventory.list_lots(ACTOR)} == {lot_x.id, lot_y.id}
    assert [lot.id for lot in app.inventory.list_lots(ACTOR, only_available=True)] == [lot_y.id]
    assert [lot.id for lot in app.inventory.list_lots(ACTOR, item_id=x.id)] == [lot_x.id]
    assert app.inventory.list_lots(OTHER_ACTOR) == []


def test_get_lot_is_actor_scoped(app):
    lot = receive_lot(app)

    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("10")
    with pytest.raises(NotFoundError):
        app.inventory.get_lot(OTHER_ACTOR, lot.id)


def test_catalog_items(app):
    item = app.catalog.add_item(ACTOR, " SKU-1 ", "Screw", "box", "0.40", None)

    assert item.sku == "SKU-1"
    assert item.unit == "box"
    assert item.default_selling_price is None
    assert app.catalog.get_item_by_sku(ACTOR, "SKU-1").id == item.id
    assert app.catalog.add_item(OTHER_ACTOR, "SKU-1", "Screw", "box", "0.40", None).id != item.id

    with pytest.raises(ValidationError):
        app.catalog.add_item(ACTOR, "SKU-1", "Duplicate", "box", "0.40", None)
    with pytest.raises(ValidationError):
        app.catalog.add_item(ACTOR, "", "No sku")
    with pytest.raises(NotFoundError):
        app.catalog.get_item(OTHER_ACTOR, item.id)


def test_clients_and_suppliers_require_name(app):
    with pytest.raises(ValidationError):
        app.catalog.add_client(ACTOR, " ")
    with pytest.raises(ValidationError):
        app.catalog.add_supplier(ACTOR, "")

    assert app.catalog.add_supplier(ACTOR, "Parts Co", contact_person="Dana").contact_person == "Dana"


def test_manual_expenses(app):
    expense_id = app.expenses.add_expense(ACTOR, "Shipping", "Courier", "12.30", "2024-03-10", notes="March")
    receive_lot(app)

    expenses = app.expenses.list_expenses(ACTOR)
    assert [e.category for e in expenses] == ["purchase", "shipping"]
    manual = expenses[1]
    assert manual.id == expense_id
    assert manual.amount == Decimal("12.30")
    assert manual.purchase_bill_id is None
    assert app.expenses.list_expenses(OTHER_ACTOR) == []

    with pytest.raises(ValidationError):
        app.expenses.add_expense(ACTOR, "rent", "Office", "100")
    with pytest.raises(ValidationError):
        app.expenses.add_expense(ACTOR, "other", "", "100")
    with pytest.raises(ValidationError):
        app.expenses.add_expense(ACTOR, "other", "Refund", "-5")


def test_only_duplicate_sku_is_reported_as_such(tmp_path):
    class BrokenItemsRepo(SqliteRepository):
        def add_item(self, *args, **kwargs):
            raise sqlite3.IntegrityError("NOT NULL constraint failed: items.name")

    repo = BrokenItemsRepo(tmp_path / "broken.db")
    repo.init_db()

    with pytest.raises(sqlite3.IntegrityError, match="NOT NULL"):
        CatalogService(repo).add_item(ACTOR, "SKU-1", "Screw")
