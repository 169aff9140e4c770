from __future__ import annotations

import logging
import sqlite3
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from bsm.domain.errors import AppError, DuplicateDocumentNumberError, PersistenceError
from bsm.domain.models import BillItem, Client, Expense, ExtraCharge, Item, PurchaseBill, SalesBill, Supplier
from bsm.domain.totals import BillTotals
from bsm.repositories import rows
from bsm.repositories.lot_ledger import LotLedger
from bsm.repositories.rows import money

log = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    actor_id: str
    lots: LotLedger

    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...


class SqliteUnitOfWork:
    """One all-or-nothing SQLite transaction scoped to an actor.

    ``BEGIN IMMEDIATE`` takes the write lock on entry, so reads of lot
    availability inside the block cannot interleave with another writer.
    Leaving the block commits; any exception rolls back. The connection is
    closed on every exit path and driver errors surface as ``PersistenceError``.
    """

    def __init__(self, repo, actor_id: str, cas_retries: int = 3):
        self.repo = repo
        self.actor_id = actor_id
        self.cas_retries = cas_retries
        self.conn: Optional[sqlite3.Connection] = None
        self.cur: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> "SqliteUnitOfWork":
        try:
            self.conn = self.repo.transaction_connection()
            self.conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._close()
            raise PersistenceError(f"Could not start transaction: {e}") from e
        self.cur = self.conn.cursor()
        self.lots = LotLedger(self.cur, self.actor_id, cas_retries=self.cas_retries)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                try:
                    self.conn.execute("COMMIT")
                except sqlite3.Error as e:
                    self._rollback()
                    raise PersistenceError(f"Commit failed: {e}") from e
                return None

            self._rollback()
            kind = exc_type.__name__
            log.warning("transaction_rolled_back actor=%s error=%s", self.actor_id, kind)
            if issubclass(exc_type, sqlite3.Error) and not issubclass(exc_type, AppError):
                raise PersistenceError(str(exc)) from exc
            return None
        finally:
            self._close()

    def _rollback(self) -> None:
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            log.error("rollback_failed actor=%s error=%s", self.actor_id, e)

    def _close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            self.cur = None

    # ---------- Reads inside the transaction ----------
    def get_item(self, item_id: int) -> Optional[Item]:
        return rows.fetch_item(self.cur, self.actor_id, item_id)

    def get_client(self, client_id: int) -> Optional[Client]:
        return rows.fetch_client(self.cur, self.actor_id, client_id)

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        return rows.fetch_supplier(self.cur, self.actor_id, supplier_id)

    def get_purchase_bill(self, bill_id: int) -> Optional[PurchaseBill]:
        return rows.fetch_purchase_bill(self.cur, self.actor_id, bill_id)

    def get_sales_bill(self, bill_id: int) -> Optional[SalesBill]:
        return rows.fetch_sales_bill(self.cur, self.actor_id, bill_id)

    def bill_items(self, bill_id: int) -> list[BillItem]:
        return rows.fetch_bill_items(self.cur, bill_id)

    def bill_extra_charges(self, bill_id: int) -> list[ExtraCharge]:
        return rows.fetch_extra_charges(self.cur, "bill_extra_charges", "bill_id", bill_id)

    def latest_document_number(self, table: str, column: str, prefix: str) -> Optional[str]:
        """Most recently issued ``prefix`` number on the actor's documents in ``table``."""
        self.cur.execute(
            f"SELECT {column} FROM {table} WHERE actor_id=? AND {column} LIKE ? ORDER BY id DESC LIMIT 1",
            (self.actor_id, f"{prefix}-%"),
        )
        r = self.cur.fetchone()
        return str(r[0]) if r else None

    # ---------- Purchase writes ----------
    def insert_purchase_bill(
        self,
        supplier_id: Optional[int],
        bill_number: str,
        bill_date: str,
        totals: BillTotals,
        status: str,
        notes: Optional[str],
        location: Optional[str],
    ) -> int:
        self.cur.execute(
            """
            INSERT INTO purchase_bills (
                actor_id, supplier_id, bill_number, bill_date, subtotal, tax_rate, tax,
                extra_charges_total, total, status, notes, location
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                self.actor_id,
                supplier_id,
                bill_number,
                bill_date,
                money(totals.subtotal),
                money(totals.tax_rate),
                money(totals.tax),
                money(totals.extra_charges_total),
                money(totals.total),
                status,
                notes,
                location,
            ),
        )
        return int(self.cur.lastrowid)

    def insert_purchase_bill_item(
        self,
        purchase_bill_id: int,
        item_id: int,
        quantity: Decimal,
        cost_price: Decimal,
        total: Decimal,
        batch_number: Optional[str],
        expiry_date: Optional[str],
    ) -> int:
        self.cur.execute(
            """
            INSERT INTO purchase_bill_items (
                purchase_bill_id, item_id, quantity, cost_price, total, batch_number, expiry_date
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (int(purchase_bill_id), int(item_id), money(quantity), money(cost_price), money(total), batch_number, expiry_date),
        )
        return int(self.cur.lastrowid)

    def insert_extra_charges(self, table: str, parent_column: str, parent_id: int, charges: Iterable[dict]) -> None:
        for charge in charges:
            self.cur.execute(
                f"INSERT INTO {table} ({parent_column}, name, amount) VALUES (?, ?, ?)",
                (int(parent_id), charge["name"], money(charge["amount"])),
            )

    def insert_expense(
        self,
        category: str,
        description: str,
        amount: Decimal,
        expense_date: str,
        notes: Optional[str],
        purchase_bill_id: Optional[int] = None,
    ) -> Expense:
        self.cur.execute(
            """
            INSERT INTO expenses (actor_id, purchase_bill_id, category, description, amount, expense_date, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (self.actor_id, purchase_bill_id, category, description, money(amount), expense_date, notes),
        )
        expense_id = int(self.cur.lastrowid)
        self.cur.execute(f"SELECT {rows.EXPENSE_COLUMNS} FROM expenses WHERE id=?", (expense_id,))
        return rows.expense_from_row(self.cur.fetchone())

    # ---------- Sales writes ----------
    def insert_sales_bill(
        self,
        client_id: int,
        invoice_number: str,
        bill_date: str,
        totals: BillTotals,
        status: str,
        notes: Optional[str],
    ) -> int:
        try:
            self.cur.execute(
                """
                INSERT INTO sales_bills (
                    actor_id, client_id, bill_number, invoice_number, bill_date, subtotal, tax_rate, tax,
                    extra_charges_total, total, status, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    self.actor_id,
                    int(client_id),
                    invoice_number,
                    invoice_number,
                    bill_date,
                    money(totals.subtotal),
                    money(totals.tax_rate),
                    money(totals.tax),
                    money(totals.extra_charges_total),
                    money(totals.total),
                    status,
                    notes,
                ),
            )
        except sqlite3.IntegrityError as e:
            if "invoice_number" in str(e):
                raise DuplicateDocumentNumberError(invoice_number) from e
            raise
        return int(self.cur.lastrowid)

    def insert_bill_item(self, bill_id: int, lot_id: int, quantity: Decimal, selling_price: Decimal, total: Decimal) -> int:
        self.cur.execute(
            "INSERT INTO bill_items (bill_id, lot_id, quantity, selling_price, total) VALUES (?, ?, ?, ?, ?)",
            (int(bill_id), int(lot_id), money(quantity), money(selling_price), money(total)),
        )
        return int(self.cur.lastrowid)

    def update_sales_bill_header(
        self,
        bill_id: int,
        client_id: int,
        bill_date: str,
        totals: BillTotals,
        status: str,
        notes: Optional[str],
    ) -> None:
        self.cur.execute(
            """
            UPDATE sales_bills
            SET client_id=?, bill_date=?, subtotal=?, tax_rate=?, tax=?, extra_charges_total=?, total=?,
                status=?, notes=?, updated_at=datetime('now')
            WHERE id=? AND actor_id=?
            """,
            (
                int(client_id),
                bill_date,
                money(totals.subtotal),
                money(totals.tax_rate),
                money(totals.tax),
                money(totals.extra_charges_total),
                money(totals.total),
                status,
                notes,
                int(bill_id),
                self.actor_id,
            ),
        )

    def update_sales_bill_status(self, bill_id: int, status: str) -> None:
        self.cur.execute(
            "UPDATE sales_bills SET status=?, updated_at=datetime('now') WHERE id=? AND actor_id=?",
            (status, int(bill_id), self.actor_id),
        )

    def delete_bill_lines(self, bill_id: int) -> None:
        self.cur.execute("DELETE FROM bill_items WHERE bill_id=?", (int(bill_id),))
        self.cur.execute("DELETE FROM bill_extra_charges WHERE bill_id=?", (int(bill_id),))

    def delete_sales_bill(self, bill_id: int) -> None:
        self.cur.execute("DELETE FROM sales_bills WHERE id=? AND actor_id=?", (int(bill_id), self.actor_id))
