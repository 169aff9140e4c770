from __future__ import annotations

import shutil
import sqlite3
from contextlib import closing
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from bsm.domain.models import Client, Expense, Item, Lot, PurchaseBill, SalesBill, Supplier
from bsm.repositories import rows
from bsm.repositories.rows import money


class SqliteRepository:
    def __init__(self, db_path: Path | str, busy_timeout: float = 5.0):
        self.db_path = str(db_path)
        self.busy_timeout = float(busy_timeout)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def transaction_connection(self) -> sqlite3.Connection:
        """Connection in manual mode: the caller issues BEGIN/COMMIT/ROLLBACK."""
        conn = self._conn()
        conn.isolation_level = None
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_catalog_and_lots),
                (2, self._migration_v2_bills_and_expenses),
                (3, self._migration_v3_actor_indexes),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def schema_version(self) -> int:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            return int(cur.fetchone()[0])

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_catalog_and_lots(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                sku TEXT NOT NULL,
                name TEXT NOT NULL,
                unit TEXT NOT NULL DEFAULT 'pcs',
                default_cost_price TEXT NOT NULL CHECK(CAST(default_cost_price AS REAL) >= 0),
                default_selling_price TEXT CHECK(default_selling_price IS NULL OR CAST(default_selling_price AS REAL) >= 0),
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                UNIQUE(actor_id, sku)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS clients (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                name TEXT NOT NULL,
                email TEXT,
                phone TEXT,
                address TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS suppliers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                name TEXT NOT NULL,
                contact_person TEXT,
                email TEXT,
                phone TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS lots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                supplier_id INTEGER,
                purchase_bill_id INTEGER,
                batch_number TEXT,
                quantity TEXT NOT NULL CHECK(CAST(quantity AS REAL) > 0),
                available TEXT NOT NULL CHECK(
                    CAST(available AS REAL) >= 0 AND CAST(available AS REAL) <= CAST(quantity AS REAL)
                ),
                cost_price TEXT NOT NULL CHECK(CAST(cost_price AS REAL) >= 0),
                selling_price TEXT NOT NULL CHECK(CAST(selling_price AS REAL) >= 0),
                purchase_date TEXT NOT NULL,
                expiry_date TEXT,
                location TEXT,
                notes TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY(item_id) REFERENCES items(id),
                FOREIGN KEY(supplier_id) REFERENCES suppliers(id) ON DELETE SET NULL
            )
            """
        )

    def _migration_v2_bills_and_expenses(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchase_bills (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                supplier_id INTEGER,
                bill_number TEXT NOT NULL,
                bill_date TEXT NOT NULL,
                subtotal TEXT NOT NULL,
                tax_rate TEXT NOT NULL DEFAULT '0.00',
                tax TEXT NOT NULL DEFAULT '0.00',
                extra_charges_total TEXT NOT NULL DEFAULT '0.00',
                total TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN ('pending','received','cancelled')),
                notes TEXT,
                location TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY(supplier_id) REFERENCES suppliers(id) ON DELETE SET NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchase_bill_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                purchase_bill_id INTEGER NOT NULL,
                item_id INTEGER NOT NULL,
                quantity TEXT NOT NULL CHECK(CAST(quantity AS REAL) > 0),
                cost_price TEXT NOT NULL CHECK(CAST(cost_price AS REAL) >= 0),
                total TEXT NOT NULL,
                batch_number TEXT,
                expiry_date TEXT,
                FOREIGN KEY(purchase_bill_id) REFERENCES purchase_bills(id) ON DELETE CASCADE,
                FOREIGN KEY(item_id) REFERENCES items(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchase_bill_extra_charges (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                purchase_bill_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                amount TEXT NOT NULL CHECK(CAST(amount AS REAL) >= 0),
                FOREIGN KEY(purchase_bill_id) REFERENCES purchase_bills(id) ON DELETE CASCADE
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sales_bills (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                client_id INTEGER NOT NULL,
                bill_number TEXT NOT NULL,
                invoice_number TEXT NOT NULL,
                bill_date TEXT NOT NULL,
                subtotal TEXT NOT NULL,
                tax_rate TEXT NOT NULL DEFAULT '10.00',
                tax TEXT NOT NULL DEFAULT '0.00',
                extra_charges_total TEXT NOT NULL DEFAULT '0.00',
                total TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'due' CHECK(status IN ('due','paid')),
                notes TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY(client_id) REFERENCES clients(id),
                UNIQUE(actor_id, invoice_number)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS bill_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                bill_id INTEGER NOT NULL,
                lot_id INTEGER NOT NULL,
                quantity TEXT NOT NULL CHECK(CAST(quantity AS REAL) > 0),
                selling_price TEXT NOT NULL CHECK(CAST(selling_price AS REAL) >= 0),
                total TEXT NOT NULL,
                FOREIGN KEY(bill_id) REFERENCES sales_bills(id) ON DELETE CASCADE,
                FOREIGN KEY(lot_id) REFERENCES lots(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS bill_extra_charges (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                bill_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                amount TEXT NOT NULL CHECK(CAST(amount AS REAL) >= 0),
                FOREIGN KEY(bill_id) REFERENCES sales_bills(id) ON DELETE CASCADE
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                actor_id TEXT NOT NULL,
                purchase_bill_id INTEGER,
                category TEXT NOT NULL CHECK(category IN ('purchase','shipping','tax','other')),
                description TEXT NOT NULL,
                amount TEXT NOT NULL CHECK(CAST(amount AS REAL) >= 0),
                expense_date TEXT NOT NULL,
                notes TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY(purchase_bill_id) REFERENCES purchase_bills(id) ON DELETE SET NULL
            )
            """
        )

    def _migration_v3_actor_indexes(self, cur: sqlite3.Cursor) -> None:
        for table in ("items", "clients", "suppliers", "lots", "purchase_bills", "sales_bills", "expenses"):
            cur.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_actor ON {table}(actor_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_lots_item ON lots(item_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_lots_purchase_bill ON lots(purchase_bill_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_bill_items_bill ON bill_items(bill_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_bill_items_lot ON bill_items(lot_id)")

    # ---------- Catalog ----------
    def add_item(
        self,
        actor_id: str,
        sku: str,
        name: str,
        unit: str,
        default_cost_price: Decimal,
        default_selling_price: Optional[Decimal],
    ) -> int:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO items (actor_id, sku, name, unit, default_cost_price, default_selling_price)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    actor_id,
                    sku,
                    name,
                    unit,
                    money(default_cost_price),
                    money(default_selling_price) if default_selling_price is not None else None,
                ),
            )
            item_id = int(cur.lastrowid)
            conn.commit()
            return item_id

    def get_item(self, actor_id: str, item_id: int) -> Optional[Item]:
        with closing(self._conn()) as conn:
            return rows.fetch_item(conn.cursor(), actor_id, item_id)

    def get_item_by_sku(self, actor_id: str, sku: str) -> Optional[Item]:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {rows.ITEM_COLUMNS} FROM items WHERE actor_id=? AND sku=?", (actor_id, sku))
            r = cur.fetchone()
            return rows.item_from_row(r) if r else None

    def list_items(self, actor_id: str) -> list[Item]:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {rows.ITEM_COLUMNS} FROM items WHERE actor_id=? ORDER BY name", (actor_id,))
            return [rows.item_from_row(r) for r in cur.fetchall()]

    def add_client(self, actor_id: str, name: str, email: Optional[str], phone: Optional[str], address: Optional[str]) -> int:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO clients (actor_id, name, email, phone, address) VALUES (?, ?, ?, ?, ?)",
                (actor_id, name, email, phone, address),
            )
            client_id = int(cur.lastrowid)
            conn.commit()
            return client_id

    def get_client(self, actor_id: str, client_id: int) -> Optional[Client]:
        with closing(self._conn()) as conn:
            return rows.fetch_client(conn.cursor(), actor_id, client_id)

    def add_supplier(self, actor_id: str, name: str, contact_person: Optional[str], email: Optional[str], phone: Optional[str]) -> int:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO suppliers (actor_id, name, contact_person, email, phone) VALUES (?, ?, ?, ?, ?)",
                (actor_id, name, contact_person, email, phone),
            )
            supplier_id = int(cur.lastrowid)
            conn.commit()
            return supplier_id

    def get_supplier(self, actor_id: str, supplier_id: int) -> Optional[Supplier]:
        with closing(self._conn()) as conn:
            return rows.fetch_supplier(conn.cursor(), actor_id, supplier_id)

    # ---------- Lots ----------
    def get_lot(self, actor_id: str, lot_id: int) -> Optional[Lot]:
        with closing(self._conn()) as conn:
            return rows.fetch_lot(conn.cursor(), actor_id, lot_id)

    def list_lots(self, actor_id: str, item_id: Optional[int] = None, only_available: bool = False) -> list[Lot]:
        sql = f"SELECT {rows.LOT_COLUMNS} FROM lots WHERE actor_id=?"
        params: list = [actor_id]
        if item_id is not None:
            sql += " AND item_id=?"
            params.append(int(item_id))
        if only_available:
            sql += " AND CAST(available AS REAL) > 0"
        sql += " ORDER BY purchase_date DESC, id DESC"
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(sql, params)
            return [rows.lot_from_row(r) for r in cur.fetchall()]

    # ---------- Purchase bills ----------
    def get_purchase_bill(self, actor_id: str, bill_id: int):
        """Header, items, charges, lots and expense, or None when not visible to the actor."""
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            bill = rows.fetch_purchase_bill(cur, actor_id, bill_id)
            if not bill:
                return None
            return (
                bill,
                rows.fetch_purchase_bill_items(cur, bill.id),
                rows.fetch_extra_charges(cur, "purchase_bill_extra_charges", "purchase_bill_id", bill.id),
                rows.fetch_lots_for_purchase_bill(cur, actor_id, bill.id),
                rows.fetch_expense_for_purchase_bill(cur, actor_id, bill.id),
            )

    def list_purchase_bills(self, actor_id: str, limit: int, offset: int) -> tuple[list[PurchaseBill], int]:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM purchase_bills WHERE actor_id=?", (actor_id,))
            total = int(cur.fetchone()[0])
            cur.execute(
                f"""
                SELECT {rows.PURCHASE_BILL_COLUMNS}
                FROM purchase_bills
                WHERE actor_id=?
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (actor_id, int(limit), int(offset)),
            )
            return [rows.purchase_bill_from_row(r) for r in cur.fetchall()], total

    # ---------- Sales bills ----------
    def get_sales_bill(self, actor_id: str, bill_id: int):
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            bill = rows.fetch_sales_bill(cur, actor_id, bill_id)
            if not bill:
                return None
            return (
                bill,
                rows.fetch_bill_items(cur, bill.id),
                rows.fetch_extra_charges(cur, "bill_extra_charges", "bill_id", bill.id),
            )

    def list_sales_bills(self, actor_id: str) -> list[SalesBill]:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {rows.SALES_BILL_COLUMNS} FROM sales_bills WHERE actor_id=? ORDER BY created_at DESC, id DESC",
                (actor_id,),
            )
            return [rows.sales_bill_from_row(r) for r in cur.fetchall()]

    # ---------- Expenses ----------
    def add_expense(
        self,
        actor_id: str,
        category: str,
        description: str,
        amount: Decimal,
        expense_date: str,
        notes: Optional[str],
    ) -> int:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO expenses (actor_id, category, description, amount, expense_date, notes)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (actor_id, category, description, money(amount), expense_date, notes),
            )
            expense_id = int(cur.lastrowid)
            conn.commit()
            return expense_id

    def list_expenses(self, actor_id: str) -> list[Expense]:
        with closing(self._conn()) as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {rows.EXPENSE_COLUMNS} FROM expenses WHERE actor_id=? ORDER BY expense_date DESC, id DESC",
                (actor_id,),
            )
            return [rows.expense_from_row(r) for r in cur.fetchall()]
