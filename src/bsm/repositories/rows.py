"""Row mapping and cursor-level SELECTs shared by reads and transactions."""

from __future__ import annotations

import sqlite3
from decimal import Decimal
from typing import Optional

from bsm.domain.models import (
    BillItem,
    Client,
    Expense,
    ExtraCharge,
    Item,
    Lot,
    PurchaseBill,
    PurchaseBillItem,
    SalesBill,
    Supplier,
)
from bsm.domain.totals import round_money


def money(value: Decimal) -> str:
    return str(round_money(value))


def dec(value) -> Decimal:
    return Decimal(str(value))


def opt_dec(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


ITEM_COLUMNS = "id, actor_id, sku, name, unit, default_cost_price, default_selling_price"
LOT_COLUMNS = (
    "id, actor_id, item_id, supplier_id, purchase_bill_id, batch_number, quantity, available, "
    "cost_price, selling_price, purchase_date, expiry_date, location, notes"
)
PURCHASE_BILL_COLUMNS = (
    "id, actor_id, supplier_id, bill_number, bill_date, subtotal, tax_rate, tax, "
    "extra_charges_total, total, status, notes, location, created_at"
)
SALES_BILL_COLUMNS = (
    "id, actor_id, client_id, bill_number, invoice_number, bill_date, subtotal, tax_rate, tax, "
    "extra_charges_total, total, status, notes, created_at, updated_at"
)
EXPENSE_COLUMNS = "id, actor_id, category, description, amount, expense_date, notes, purchase_bill_id"


def item_from_row(r) -> Item:
    return Item(
        id=int(r[0]),
        actor_id=str(r[1]),
        sku=str(r[2]),
        name=str(r[3]),
        unit=str(r[4]),
        default_cost_price=dec(r[5]),
        default_selling_price=opt_dec(r[6]),
    )


def lot_from_row(r) -> Lot:
    return Lot(
        id=int(r[0]),
        actor_id=str(r[1]),
        item_id=int(r[2]),
        supplier_id=(int(r[3]) if r[3] is not None else None),
        source_purchase_bill_id=(int(r[4]) if r[4] is not None else None),
        batch_number=r[5],
        quantity=dec(r[6]),
        available=dec(r[7]),
        cost_price=dec(r[8]),
        selling_price=dec(r[9]),
        purchase_date=str(r[10]),
        expiry_date=r[11],
        location=r[12],
        notes=r[13],
    )


def purchase_bill_from_row(r) -> PurchaseBill:
    return PurchaseBill(
        id=int(r[0]),
        actor_id=str(r[1]),
        supplier_id=(int(r[2]) if r[2] is not None else None),
        bill_number=str(r[3]),
        bill_date=str(r[4]),
        subtotal=dec(r[5]),
        tax_rate=dec(r[6]),
        tax=dec(r[7]),
        extra_charges_total=dec(r[8]),
        total=dec(r[9]),
        status=str(r[10]),
        notes=r[11],
        location=r[12],
        created_at=str(r[13]),
    )


def sales_bill_from_row(r) -> SalesBill:
    return SalesBill(
        id=int(r[0]),
        actor_id=str(r[1]),
        client_id=int(r[2]),
        bill_number=str(r[3]),
        invoice_number=str(r[4]),
        bill_date=str(r[5]),
        subtotal=dec(r[6]),
        tax_rate=dec(r[7]),
        tax=dec(r[8]),
        extra_charges_total=dec(r[9]),
        total=dec(r[10]),
        status=str(r[11]),
        notes=r[12],
        created_at=str(r[13]),
        updated_at=str(r[14]),
    )


def expense_from_row(r) -> Expense:
    return Expense(
        id=int(r[0]),
        actor_id=str(r[1]),
        category=str(r[2]),
        description=str(r[3]),
        amount=dec(r[4]),
        expense_date=str(r[5]),
        notes=r[6],
        purchase_bill_id=(int(r[7]) if r[7] is not None else None),
    )


# ---------- Cursor-level reads ----------
def fetch_item(cur: sqlite3.Cursor, actor_id: str, item_id: int) -> Optional[Item]:
    cur.execute(f"SELECT {ITEM_COLUMNS} FROM items WHERE id=? AND actor_id=?", (int(item_id), actor_id))
    r = cur.fetchone()
    return item_from_row(r) if r else None


def fetch_client(cur: sqlite3.Cursor, actor_id: str, client_id: int) -> Optional[Client]:
    cur.execute("SELECT id, actor_id, name, email FROM clients WHERE id=? AND actor_id=?", (int(client_id), actor_id))
    r = cur.fetchone()
    if not r:
        return None
    return Client(id=int(r[0]), actor_id=str(r[1]), name=str(r[2]), email=r[3])


def fetch_supplier(cur: sqlite3.Cursor, actor_id: str, supplier_id: int) -> Optional[Supplier]:
    cur.execute(
        "SELECT id, actor_id, name, contact_person FROM suppliers WHERE id=? AND actor_id=?",
        (int(supplier_id), actor_id),
    )
    r = cur.fetchone()
    if not r:
        return None
    return Supplier(id=int(r[0]), actor_id=str(r[1]), name=str(r[2]), contact_person=r[3])


def fetch_lot(cur: sqlite3.Cursor, actor_id: str, lot_id: int) -> Optional[Lot]:
    cur.execute(f"SELECT {LOT_COLUMNS} FROM lots WHERE id=? AND actor_id=?", (int(lot_id), actor_id))
    r = cur.fetchone()
    return lot_from_row(r) if r else None


def fetch_lots_for_purchase_bill(cur: sqlite3.Cursor, actor_id: str, purchase_bill_id: int) -> list[Lot]:
    cur.execute(
        f"SELECT {LOT_COLUMNS} FROM lots WHERE purchase_bill_id=? AND actor_id=? ORDER BY id",
        (int(purchase_bill_id), actor_id),
    )
    return [lot_from_row(r) for r in cur.fetchall()]


def fetch_purchase_bill(cur: sqlite3.Cursor, actor_id: str, bill_id: int) -> Optional[PurchaseBill]:
    cur.execute(
        f"SELECT {PURCHASE_BILL_COLUMNS} FROM purchase_bills WHERE id=? AND actor_id=?",
        (int(bill_id), actor_id),
    )
    r = cur.fetchone()
    return purchase_bill_from_row(r) if r else None


def fetch_purchase_bill_items(cur: sqlite3.Cursor, bill_id: int) -> list[PurchaseBillItem]:
    cur.execute(
        """
        SELECT id, purchase_bill_id, item_id, quantity, cost_price, total, batch_number, expiry_date
        FROM purchase_bill_items
        WHERE purchase_bill_id = ?
        ORDER BY id
        """,
        (int(bill_id),),
    )
    return [
        PurchaseBillItem(
            id=int(r[0]),
            purchase_bill_id=int(r[1]),
            item_id=int(r[2]),
            quantity=dec(r[3]),
            cost_price=dec(r[4]),
            total=dec(r[5]),
            batch_number=r[6],
            expiry_date=r[7],
        )
        for r in cur.fetchall()
    ]


def fetch_extra_charges(cur: sqlite3.Cursor, table: str, parent_column: str, parent_id: int) -> list[ExtraCharge]:
    cur.execute(f"SELECT id, name, amount FROM {table} WHERE {parent_column} = ? ORDER BY id", (int(parent_id),))
    return [ExtraCharge(id=int(r[0]), name=str(r[1]), amount=dec(r[2])) for r in cur.fetchall()]


def fetch_expense_for_purchase_bill(cur: sqlite3.Cursor, actor_id: str, bill_id: int) -> Optional[Expense]:
    cur.execute(
        f"SELECT {EXPENSE_COLUMNS} FROM expenses WHERE purchase_bill_id=? AND actor_id=? ORDER BY id LIMIT 1",
        (int(bill_id), actor_id),
    )
    r = cur.fetchone()
    return expense_from_row(r) if r else None


def fetch_sales_bill(cur: sqlite3.Cursor, actor_id: str, bill_id: int) -> Optional[SalesBill]:
    cur.execute(
        f"SELECT {SALES_BILL_COLUMNS} FROM sales_bills WHERE id=? AND actor_id=?",
        (int(bill_id), actor_id),
    )
    r = cur.fetchone()
    return sales_bill_from_row(r) if r else None


def fetch_bill_items(cur: sqlite3.Cursor, bill_id: int) -> list[BillItem]:
    cur.execute(
        """
        SELECT bi.id, bi.bill_id, bi.lot_id, l.item_id, i.name, bi.quantity, bi.selling_price, bi.total
        FROM bill_items bi
        JOIN lots l ON l.id = bi.lot_id
        JOIN items i ON i.id = l.item_id
        WHERE bi.bill_id = ?
        ORDER BY bi.id
        """,
        (int(bill_id),),
    )
    return [
        BillItem(
            id=int(r[0]),
            bill_id=int(r[1]),
            lot_id=int(r[2]),
            item_id=int(r[3]),
            item_name=str(r[4]),
            quantity=dec(r[5]),
            selling_price=dec(r[6]),
            total=dec(r[7]),
        )
        for r in cur.fetchall()
    ]
