from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from bsm.config import BillingPolicy
from bsm.domain.errors import NotFoundError
from bsm.domain.models import Lot
from bsm.repositories.unit_of_work import SqliteUnitOfWork, UnitOfWork
from bsm.services import payloads

log = logging.getLogger(__name__)


class InventoryService:
    def __init__(
        self,
        repo,
        policy: BillingPolicy | None = None,
        uow_factory: Callable[[str], UnitOfWork] | None = None,
        today: Callable[[], date] | None = None,
    ):
        self.repo = repo
        self.policy = policy or BillingPolicy()
        self.today = today or date.today
        self.uow_factory = uow_factory or (
            lambda actor_id: SqliteUnitOfWork(repo, actor_id, cas_retries=self.policy.ledger_cas_retries)
        )

    def get_lot(self, actor_id: str, lot_id: int) -> Lot:
        lot = self.repo.get_lot(actor_id, int(lot_id))
        if not lot:
            raise NotFoundError("Lot not found.")
        return lot

    def get_available(self, actor_id: str, lot_id: int) -> Decimal:
        return self.get_lot(actor_id, lot_id).available

    def list_lots(self, actor_id: str, item_id: Optional[int] = None, only_available: bool = False) -> list[Lot]:
        return self.repo.list_lots(actor_id, item_id=item_id, only_available=only_available)

    def add_lot(
        self,
        actor_id: str,
        item_id: int,
        quantity,
        cost_price,
        selling_price=None,
        supplier_id: Optional[int] = None,
        purchase_date=None,
        batch_number: Optional[str] = None,
        expiry_date=None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Lot:
        """Manual stock entry: a lot with no source purchase bill."""
        item_ref = payloads.required_id(item_id, "item_id")
        qty = payloads.positive_quantity(quantity)
        cost = payloads.non_negative_price(cost_price, "Cost price")
        selling = None if selling_price is None else payloads.non_negative_price(selling_price, "Selling price")
        supplier = payloads.optional_id(supplier_id, "supplier_id")
        purchased = payloads.iso_date(purchase_date, "purchase_date", default=self.today())
        expiry = payloads.iso_date(expiry_date, "expiry_date") if expiry_date else None

        with self.uow_factory(actor_id) as uow:
            item = uow.get_item(item_ref)
            if not item:
                raise NotFoundError("Item not found.")
            if supplier is not None and not uow.get_supplier(supplier):
                raise NotFoundError("Supplier not found.")
            if selling is None:
                selling = item.default_selling_price if item.default_selling_price is not None else cost
            lot = uow.lots.create_lot(
                item_id=item.id,
                quantity=qty,
                cost_price=cost,
                selling_price=selling,
                purchase_date=purchased,
                supplier_id=supplier,
                batch_number=payloads.optional_text(batch_number),
                expiry_date=expiry,
                location=payloads.optional_text(location),
                notes=payloads.optional_text(notes),
            )
        log.info("manual_lot_added lot_id=%s item=%s qty=%s actor=%s", lot.id, item.sku, qty, actor_id)
        return lot
