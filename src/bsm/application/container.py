from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable

from bsm.config import BillingPolicy, get_busy_timeout
from bsm.repositories.sqlite_repo import SqliteRepository
from bsm.services.catalog_service import CatalogService
from bsm.services.excel_service import ExcelService
from bsm.services.expense_service import ExpenseService
from bsm.services.inventory_service import InventoryService
from bsm.services.numbering_service import NumberingService
from bsm.services.purchase_service import PurchaseService
from bsm.services.sales_service import SalesService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    policy: BillingPolicy
    numbering: NumberingService
    catalog: CatalogService
    inventory: InventoryService
    purchases: PurchaseService
    sales: SalesService
    expenses: ExpenseService
    excel: ExcelService


def build_container(
    db_path: Path | str,
    policy: BillingPolicy | None = None,
    today: Callable[[], date] | None = None,
    busy_timeout: float | None = None,
) -> AppContainer:
    repo = SqliteRepository(db_path, busy_timeout=busy_timeout if busy_timeout is not None else get_busy_timeout())
    repo.init_db()

    policy = policy or BillingPolicy()
    numbering = NumberingService(today=today)
    catalog = CatalogService(repo)
    inventory = InventoryService(repo, policy, today=numbering.today)
    purchases = PurchaseService(repo, numbering, policy)
    sales = SalesService(repo, numbering, policy)
    expenses = ExpenseService(repo, today=numbering.today)
    excel = ExcelService(repo, purchases)

    return AppContainer(
        repo=repo,
        policy=policy,
        numbering=numbering,
        catalog=catalog,
        inventory=inventory,
        purchases=purchases,
        sales=sales,
        expenses=expenses,
        excel=excel,
    )
