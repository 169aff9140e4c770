from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from bsm.config import BillingPolicy
from bsm.domain.errors import NotFoundError, ValidationError
from bsm.domain.models import PURCHASE_STATUSES, Page, PurchaseBillDetail
from bsm.domain.totals import compute_bill_totals, compute_line_total
from bsm.repositories.unit_of_work import SqliteUnitOfWork, UnitOfWork
from bsm.services import payloads
from bsm.services.numbering_service import NumberingService

log = logging.getLogger("bsm.purchases")


class PurchaseService:
    def __init__(
        self,
        repo,
        numbering: NumberingService | None = None,
        policy: BillingPolicy | None = None,
        uow_factory: Callable[[str], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.policy = policy or BillingPolicy()
        self.numbering = numbering or NumberingService()
        self.uow_factory = uow_factory or (
            lambda actor_id: SqliteUnitOfWork(repo, actor_id, cas_retries=self.policy.ledger_cas_retries)
        )

    def create_purchase_bill(
        self,
        actor_id: str,
        items: Iterable[dict],
        extra_charges: Optional[Iterable[dict]] = None,
        supplier_id: Optional[int] = None,
        bill_number: Optional[str] = None,
        bill_date=None,
        tax_rate=None,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        status: Optional[str] = None,
    ) -> PurchaseBillDetail:
        """
        items: [{item_id, quantity, cost_price, batch_number?, expiry_date?}]

        Writes the bill, its lines and charges, one lot per line and the
        purchase expense in a single transaction.
        """
        lines = self._normalize_lines(items)
        charges = payloads.extra_charges(extra_charges)
        rate = payloads.tax_rate(tax_rate, self.policy.purchase_default_tax_rate)
        bill_date_iso = payloads.iso_date(bill_date, "bill_date", default=self.numbering.today())
        status_value = payloads.status(status, PURCHASE_STATUSES, "pending")
        supplier = payloads.optional_id(supplier_id, "supplier_id")
        number = payloads.optional_text(bill_number)
        notes = payloads.optional_text(notes)
        location = payloads.optional_text(location)

        totals = compute_bill_totals(
            [(ln["quantity"], ln["cost_price"]) for ln in lines],
            [c["amount"] for c in charges],
            rate,
        )

        with self.uow_factory(actor_id) as uow:
            if supplier is not None and not uow.get_supplier(supplier):
                raise NotFoundError("Supplier not found.")
            catalog = {}
            for ln in lines:
                item = uow.get_item(ln["item_id"])
                if not item:
                    raise NotFoundError(f"Item {ln['item_id']} not found.")
                catalog[item.id] = item

            if number is None:
                number = self.numbering.next_purchase_number(uow, self.policy.purchase_prefix)

            bill_id = uow.insert_purchase_bill(supplier, number, bill_date_iso, totals, status_value, notes, location)
            for ln in lines:
                uow.insert_purchase_bill_item(
                    bill_id,
                    ln["item_id"],
                    ln["quantity"],
                    ln["cost_price"],
                    compute_line_total(ln["quantity"], ln["cost_price"]),
                    ln["batch_number"],
                    ln["expiry_date"],
                )
            uow.insert_extra_charges("purchase_bill_extra_charges", "purchase_bill_id", bill_id, charges)

            for ln in lines:
                item = catalog[ln["item_id"]]
                # Selling price is frozen on the lot at receipt.
                selling = item.default_selling_price
                if selling is None:
                    selling = ln["cost_price"]
                uow.lots.create_lot(
                    item_id=item.id,
                    quantity=ln["quantity"],
                    cost_price=ln["cost_price"],
                    selling_price=selling,
                    purchase_date=bill_date_iso,
                    supplier_id=supplier,
                    source_purchase_bill_id=bill_id,
                    batch_number=ln["batch_number"],
                    expiry_date=ln["expiry_date"],
                    location=location,
                )

            if totals.total > 0:
                description = f"Purchase bill {number}"
                if charges:
                    description += f" (includes {len(charges)} extra charges)"
                uow.insert_expense("purchase", description, totals.total, bill_date_iso, notes, purchase_bill_id=bill_id)

        log.info(
            "purchase_bill_created bill_id=%s number=%s lines=%s total=%s actor=%s",
            bill_id,
            number,
            len(lines),
            totals.total,
            actor_id,
        )
        return self.get_purchase_bill(actor_id, bill_id)

    def get_purchase_bill(self, actor_id: str, bill_id: int) -> PurchaseBillDetail:
        found = self.repo.get_purchase_bill(actor_id, int(bill_id))
        if not found:
            raise NotFoundError("Purchase bill not found.")
        bill, items, charges, lots, expense = found
        return PurchaseBillDetail(bill=bill, items=items, extra_charges=charges, lots=lots, expense=expense)

    def list_purchase_bills(self, actor_id: str, page: int = 1, limit: int = 10) -> Page:
        page = int(page)
        limit = int(limit)
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be >= 1.")
        rows, total = self.repo.list_purchase_bills(actor_id, limit=limit, offset=(page - 1) * limit)
        return Page(rows=rows, page=page, limit=limit, total=total)

    @staticmethod
    def _normalize_lines(items: Iterable[dict]) -> list[dict]:
        items = list(items or [])
        if not items:
            raise ValidationError("Purchase bill needs at least one item.")
        lines = []
        for it in items:
            lines.append(
                {
                    "item_id": payloads.required_id(it.get("item_id"), "item_id"),
                    "quantity": payloads.positive_quantity(it.get("quantity")),
                    "cost_price": payloads.non_negative_price(it.get("cost_price"), "Cost price"),
                    "batch_number": payloads.optional_text(it.get("batch_number")),
                    "expiry_date": (
                        payloads.iso_date(it["expiry_date"], "expiry_date") if it.get("expiry_date") else None
                    ),
                }
            )
        return lines
