from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

SALES_STATUSES = ("due", "paid")
PURCHASE_STATUSES = ("pending", "received", "cancelled")
EXPENSE_CATEGORIES = ("purchase", "shipping", "tax", "other")


@dataclass(frozen=True)
class Item:
    id: int
    actor_id: str
    sku: str
    name: str
    unit: str
    default_cost_price: Decimal
    default_selling_price: Optional[Decimal]


@dataclass(frozen=True)
class Client:
    id: int
    actor_id: str
    name: str
    email: Optional[str]


@dataclass(frozen=True)
class Supplier:
    id: int
    actor_id: str
    name: str
    contact_person: Optional[str]


@dataclass(frozen=True)
class Lot:
    id: int
    actor_id: str
    item_id: int
    supplier_id: Optional[int]
    source_purchase_bill_id: Optional[int]
    batch_number: Optional[str]
    quantity: Decimal
    available: Decimal
    cost_price: Decimal
    selling_price: Decimal
    purchase_date: str
    expiry_date: Optional[str]
    location: Optional[str]
    notes: Optional[str] = None


@dataclass(frozen=True)
class ExtraCharge:
    id: int
    name: str
    amount: Decimal


@dataclass(frozen=True)
class PurchaseBill:
    id: int
    actor_id: str
    supplier_id: Optional[int]
    bill_number: str
    bill_date: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    extra_charges_total: Decimal
    total: Decimal
    status: str
    notes: Optional[str]
    location: Optional[str]
    created_at: str


@dataclass(frozen=True)
class PurchaseBillItem:
    id: int
    purchase_bill_id: int
    item_id: int
    quantity: Decimal
    cost_price: Decimal
    total: Decimal
    batch_number: Optional[str]
    expiry_date: Optional[str]


@dataclass(frozen=True)
class SalesBill:
    id: int
    actor_id: str
    client_id: int
    bill_number: str
    invoice_number: str
    bill_date: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    extra_charges_total: Decimal
    total: Decimal
    status: str
    notes: Optional[str]
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class BillItem:
    id: int
    bill_id: int
    lot_id: int
    item_id: int
    item_name: str
    quantity: Decimal
    selling_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class Expense:
    id: int
    actor_id: str
    category: str
    description: str
    amount: Decimal
    expense_date: str
    notes: Optional[str]
    purchase_bill_id: Optional[int]


@dataclass(frozen=True)
class PurchaseBillDetail:
    bill: PurchaseBill
    items: list[PurchaseBillItem]
    extra_charges: list[ExtraCharge]
    lots: list[Lot]
    expense: Optional[Expense]


@dataclass(frozen=True)
class SalesBillDetail:
    bill: SalesBill
    items: list[BillItem]
    extra_charges: list[ExtraCharge]


@dataclass(frozen=True)
class Page:
    rows: list = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)
