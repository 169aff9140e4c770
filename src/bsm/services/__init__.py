from .catalog_service import CatalogService
from .excel_service import ExcelService
from .expense_service import ExpenseService
from .inventory_service import InventoryService
from .numbering_service import NumberingService
from .purchase_service import PurchaseService
from .sales_service import SalesService

__all__ = [
    "CatalogService",
    "ExcelService",
    "ExpenseService",
    "InventoryService",
    "NumberingService",
    "PurchaseService",
    "SalesService",
]
