import sqlite3
from decimal import Decimal

import pytest
from conftest import ACTOR, OTHER_ACTOR, add_item

from bsm.domain.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from bsm.repositories.lot_ledger import LotLedger
from bsm.repositories.unit_of_work import SqliteUnitOfWork


def _new_lot(app, quantity="10"):
    item = add_item(app)
    with SqliteUnitOfWork(app.repo, ACTOR) as uow:
        lot = uow.lots.create_lot(item.id, Decimal(quantity), Decimal("2.00"), Decimal("5.00"), "2024-03-15")
    return lot


class RacingLedger(LotLedger):
    """Changes the stored counter right after each read, as a concurrent writer would."""

    def __init__(self, cur, actor_id, race_to, cas_retries=3, times=1):
        super().__init__(cur, actor_id, cas_retries=cas_retries)
        self.race_to = list(race_to)
        self.times = times

    def get_lot(self, lot_id):
        lot = super().get_lot(lot_id)
        if self.times > 0:
            self.times -= 1
            self.cur.execute("UPDATE lots SET available=? WHERE id=?", (self.race_to.pop(0), lot_id))
        return lot


def test_create_lot_starts_fully_available(app):
    lot = _new_lot(app, "12.5")

    assert lot.quantity == Decimal("12.50")
    assert lot.available == Decimal("12.50")
    assert lot.source_purchase_bill_id is None


def test_create_lot_rejects_non_positive_quantity(app):
    item = add_item(app)
    with pytest.raises(InvalidQuantityError) as exc:
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots.create_lot(item.id, Decimal("0"), Decimal("2.00"), Decimal("5.00"), "2024-03-15")

    assert isinstance(exc.value, ValidationError)
    assert app.inventory.list_lots(ACTOR) == []


def test_decrement_and_restore(app):
    lot = _new_lot(app)

    with SqliteUnitOfWork(app.repo, ACTOR) as uow:
        assert uow.lots.decrement_available(lot.id, Decimal("4")) == Decimal("6.00")
        assert uow.lots.restore_available(lot.id, Decimal("1.5")) == Decimal("7.50")

    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("7.50")


def test_decrement_beyond_available_fails_and_keeps_counter(app):
    lot = _new_lot(app, "5")

    with pytest.raises(InsufficientStockError) as exc:
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots.decrement_available(lot.id, Decimal("6"))

    assert exc.value.lot_id == lot.id
    assert exc.value.available == Decimal("5")
    assert exc.value.requested == Decimal("6")
    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("5")


def test_restore_cannot_exceed_received_quantity(app):
    lot = _new_lot(app, "5")

    with pytest.raises(LedgerError):
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots.restore_available(lot.id, Decimal("1"))

    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("5")


@pytest.mark.parametrize("amount", ["0", "-1"])
def test_amount_must_be_positive(app, amount):
    lot = _new_lot(app)
    with pytest.raises(ValidationError):
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots.decrement_available(lot.id, Decimal(amount))


def test_lots_are_invisible_to_other_actors(app):
    lot = _new_lot(app)

    with pytest.raises(NotFoundError):
        with SqliteUnitOfWork(app.repo, OTHER_ACTOR) as uow:
            uow.lots.get_available(lot.id)

    with pytest.raises(NotFoundError):
        with SqliteUnitOfWork(app.repo, OTHER_ACTOR) as uow:
            uow.lots.decrement_available(lot.id, Decimal("1"))

    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("10")


def test_lost_race_rechecks_bounds(app):
    lot = _new_lot(app)

    with pytest.raises(InsufficientStockError) as exc:
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots = RacingLedger(uow.cur, ACTOR, race_to=["3.00"])
            uow.lots.decrement_available(lot.id, Decimal("5"))

    assert exc.value.available == Decimal("3")
    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("10")


def test_lost_race_retries_against_fresh_value(app):
    lot = _new_lot(app)

    with SqliteUnitOfWork(app.repo, ACTOR) as uow:
        uow.lots = RacingLedger(uow.cur, ACTOR, race_to=["3.00"])
        assert uow.lots.decrement_available(lot.id, Decimal("2")) == Decimal("1.00")

    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("1")


def test_gives_up_after_bounded_retries(app):
    lot = _new_lot(app)

    with pytest.raises(PersistenceError):
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots = RacingLedger(uow.cur, ACTOR, race_to=["9.00", "8.00"], cas_retries=2, times=2)
            uow.lots.decrement_available(lot.id, Decimal("1"))

    assert app.inventory.get_available(ACTOR, lot.id) == Decimal("10")


def test_unit_of_work_rolls_back_on_error(app):
    item = add_item(app)

    with pytest.raises(RuntimeError):
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.lots.create_lot(item.id, Decimal("3"), Decimal("1.00"), Decimal("2.00"), "2024-03-15")
            raise RuntimeError("boom")

    assert app.inventory.list_lots(ACTOR) == []


def test_unit_of_work_wraps_driver_errors(app):
    with pytest.raises(PersistenceError) as exc:
        with SqliteUnitOfWork(app.repo, ACTOR) as uow:
            uow.cur.execute("SELECT * FROM no_such_table")

    assert isinstance(exc.value.__cause__, sqlite3.Error)


def test_schema_rejects_available_above_quantity(app):
    lot = _new_lot(app, "5")

    conn = app.repo._conn()
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE lots SET available='6.00' WHERE id=?", (lot.id,))
    finally:
        conn.close()
