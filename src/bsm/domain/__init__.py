from .models import (
    Item,
    Client,
    Supplier,
    Lot,
    ExtraCharge,
    PurchaseBill,
    PurchaseBillItem,
    SalesBill,
    BillItem,
    Expense,
    PurchaseBillDetail,
    SalesBillDetail,
    Page,
)
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    PersistenceError,
    DuplicateDocumentNumberError,
    LedgerError,
)

__all__ = [
    "Item",
    "Client",
    "Supplier",
    "Lot",
    "ExtraCharge",
    "PurchaseBill",
    "PurchaseBillItem",
    "SalesBill",
    "BillItem",
    "Expense",
    "PurchaseBillDetail",
    "SalesBillDetail",
    "Page",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "PersistenceError",
    "DuplicateDocumentNumberError",
    "LedgerError",
]
