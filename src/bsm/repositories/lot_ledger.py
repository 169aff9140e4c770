"""Lot Ledger: sole writer of a lot's ``available`` counter.

Every mutation runs on the cursor of an open unit of work and is guarded by the
same bounds check, ``0 <= available <= quantity``. The write itself is a
compare-and-swap on the value that was read, so a concurrent change makes the
update miss and the bounds are re-checked against the fresh value.
"""

from __future__ import annotations

import logging
import sqlite3
from decimal import Decimal
from typing import Optional

from bsm.domain.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from bsm.domain.models import Lot
from bsm.repositories import rows
from bsm.repositories.rows import money

log = logging.getLogger("bsm.lots")


class LotLedger:
    def __init__(self, cur: sqlite3.Cursor, actor_id: str, cas_retries: int = 3):
        self.cur = cur
        self.actor_id = actor_id
        self.cas_retries = max(1, int(cas_retries))

    def create_lot(
        self,
        item_id: int,
        quantity: Decimal,
        cost_price: Decimal,
        selling_price: Decimal,
        purchase_date: str,
        supplier_id: Optional[int] = None,
        source_purchase_bill_id: Optional[int] = None,
        batch_number: Optional[str] = None,
        expiry_date: Optional[str] = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Lot:
        quantity = Decimal(quantity)
        if quantity <= 0:
            raise InvalidQuantityError("Lot quantity must be > 0.")
        if Decimal(cost_price) < 0 or Decimal(selling_price) < 0:
            raise ValidationError("Lot prices must be >= 0.")

        self.cur.execute(
            """
            INSERT INTO lots (
                actor_id, item_id, supplier_id, purchase_bill_id, batch_number, quantity, available,
                cost_price, selling_price, purchase_date, expiry_date, location, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                self.actor_id,
                int(item_id),
                supplier_id,
                source_purchase_bill_id,
                batch_number,
                money(quantity),
                money(quantity),
                money(cost_price),
                money(selling_price),
                purchase_date,
                expiry_date,
                location,
                notes,
            ),
        )
        lot_id = int(self.cur.lastrowid)
        log.info("lot_created lot_id=%s item_id=%s qty=%s actor=%s", lot_id, item_id, money(quantity), self.actor_id)
        return self.get_lot(lot_id)

    def get_lot(self, lot_id: int) -> Lot:
        lot = rows.fetch_lot(self.cur, self.actor_id, lot_id)
        if not lot:
            raise NotFoundError(f"Lot {lot_id} not found.")
        return lot

    def get_available(self, lot_id: int) -> Decimal:
        return self.get_lot(lot_id).available

    def decrement_available(self, lot_id: int, amount: Decimal) -> Decimal:
        amount = self._positive(amount)

        def apply(lot: Lot) -> Decimal:
            if amount > lot.available:
                raise InsufficientStockError(lot.id, lot.available, amount)
            return lot.available - amount

        return self._swap(lot_id, apply, "decrement")

    def restore_available(self, lot_id: int, amount: Decimal) -> Decimal:
        amount = self._positive(amount)

        def apply(lot: Lot) -> Decimal:
            restored = lot.available + amount
            if restored > lot.quantity:
                raise LedgerError(
                    f"Restoring {amount} to lot {lot.id} would exceed its received quantity {lot.quantity}."
                )
            return restored

        return self._swap(lot_id, apply, "restore")

    @staticmethod
    def _positive(amount: Decimal) -> Decimal:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidQuantityError("Quantity must be > 0.")
        return amount

    def _swap(self, lot_id: int, apply, op: str) -> Decimal:
        for _attempt in range(self.cas_retries):
            lot = self.get_lot(lot_id)
            new_available = apply(lot)
            self.cur.execute(
                """
                UPDATE lots
                SET available = ?, updated_at = datetime('now')
                WHERE id = ? AND actor_id = ? AND available = ?
                """,
                (money(new_available), int(lot_id), self.actor_id, money(lot.available)),
            )
            if self.cur.rowcount == 1:
                log.debug("lot_%s lot_id=%s available=%s->%s", op, lot_id, lot.available, new_available)
                return new_available
            log.warning("lot_cas_miss op=%s lot_id=%s", op, lot_id)
        raise PersistenceError(f"Lot {lot_id} kept changing during {op}; giving up.")
