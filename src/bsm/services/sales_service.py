from __future__ import annotations

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Callable, Iterable, Optional

from bsm.config import BillingPolicy
from bsm.domain.errors import (
    DuplicateDocumentNumberError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from bsm.domain.models import SALES_STATUSES, SalesBill, SalesBillDetail
from bsm.domain.totals import BillTotals, compute_bill_totals, compute_line_total
from bsm.repositories.unit_of_work import SqliteUnitOfWork, UnitOfWork
from bsm.services import payloads
from bsm.services.numbering_service import NumberingService

log = logging.getLogger("bsm.sales")


class SalesService:
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

    def create_sales_bill(
        self,
        actor_id: str,
        client_id: int,
        items: Iterable[dict],
        extra_charges: Optional[Iterable[dict]] = None,
        bill_date=None,
        tax_rate=None,
        notes: Optional[str] = None,
        status: Optional[str] = None,
    ) -> SalesBillDetail:
        """
        items: [{lot_id, quantity, selling_price}]

        The selling price is taken from the request, never from the lot.
        """
        client = payloads.required_id(client_id, "client_id")
        lines = self._normalize_lines(items)
        charges = payloads.extra_charges(extra_charges)
        rate = payloads.tax_rate(tax_rate, self.policy.sales_default_tax_rate)
        bill_date_iso = payloads.iso_date(bill_date, "bill_date", default=self.numbering.today())
        status_value = payloads.status(status, SALES_STATUSES, "due")
        notes = payloads.optional_text(notes)
        totals = self._totals(lines, charges, rate)

        retries = max(1, int(self.policy.numbering_retries))
        for attempt in range(1, retries + 1):
            try:
                with self.uow_factory(actor_id) as uow:
                    self._require_client(uow, client)
                    self._check_availability(uow, lines)
                    invoice = self.numbering.next_sales_number(uow, self.policy.sales_prefix)
                    bill_id = uow.insert_sales_bill(client, invoice, bill_date_iso, totals, status_value, notes)
                    self._write_lines(uow, bill_id, lines, charges)
                break
            except DuplicateDocumentNumberError as e:
                if attempt >= retries:
                    raise
                log.warning("invoice_number_conflict number=%s attempt=%s actor=%s", e.number, attempt, actor_id)

        log.info(
            "sales_bill_created bill_id=%s invoice=%s lines=%s total=%s actor=%s",
            bill_id,
            invoice,
            len(lines),
            totals.total,
            actor_id,
        )
        return self.get_sales_bill(actor_id, bill_id)

    def update_sales_bill(
        self,
        actor_id: str,
        bill_id: int,
        items: Iterable[dict],
        extra_charges: Optional[Iterable[dict]] = None,
        client_id: Optional[int] = None,
        bill_date=None,
        tax_rate=None,
        notes: Optional[str] = None,
        status: Optional[str] = None,
    ) -> SalesBillDetail:
        """Replace the bill's lines and charges.

        Old quantities go back to their lots before the new lines are checked,
        so resizing a line against the same lot only needs the difference.
        """
        lines = self._normalize_lines(items)
        charges = payloads.extra_charges(extra_charges)
        new_client = payloads.optional_id(client_id, "client_id")

        with self.uow_factory(actor_id) as uow:
            existing = self._require_bill(uow, bill_id)
            client = new_client or existing.client_id
            self._require_client(uow, client)
            rate = payloads.tax_rate(tax_rate, existing.tax_rate)
            bill_date_iso = payloads.iso_date(bill_date, "bill_date", default=None) if bill_date else existing.bill_date
            status_value = payloads.status(status, SALES_STATUSES, existing.status)
            notes_value = payloads.optional_text(notes) if notes is not None else existing.notes

            for old in uow.bill_items(existing.id):
                uow.lots.restore_available(old.lot_id, old.quantity)
            uow.delete_bill_lines(existing.id)

            self._check_availability(uow, lines)
            totals = self._totals(lines, charges, rate)
            self._write_lines(uow, existing.id, lines, charges)
            uow.update_sales_bill_header(existing.id, client, bill_date_iso, totals, status_value, notes_value)

        log.info(
            "sales_bill_updated bill_id=%s invoice=%s lines=%s total=%s actor=%s",
            existing.id,
            existing.invoice_number,
            len(lines),
            totals.total,
            actor_id,
        )
        return self.get_sales_bill(actor_id, existing.id)

    def delete_sales_bill(self, actor_id: str, bill_id: int) -> None:
        with self.uow_factory(actor_id) as uow:
            existing = self._require_bill(uow, bill_id)
            for old in uow.bill_items(existing.id):
                uow.lots.restore_available(old.lot_id, old.quantity)
            uow.delete_bill_lines(existing.id)
            uow.delete_sales_bill(existing.id)
        log.info("sales_bill_deleted bill_id=%s invoice=%s actor=%s", existing.id, existing.invoice_number, actor_id)

    def update_status(self, actor_id: str, bill_id: int, status: str) -> SalesBill:
        if not status or not str(status).strip():
            raise ValidationError("Status is required.")
        new_status = payloads.status(status, SALES_STATUSES, "due")
        with self.uow_factory(actor_id) as uow:
            existing = self._require_bill(uow, bill_id)
            uow.update_sales_bill_status(existing.id, new_status)
            updated = uow.get_sales_bill(existing.id)
        log.info("sales_bill_status bill_id=%s %s->%s actor=%s", existing.id, existing.status, new_status, actor_id)
        return updated

    def get_sales_bill(self, actor_id: str, bill_id: int) -> SalesBillDetail:
        found = self.repo.get_sales_bill(actor_id, int(bill_id))
        if not found:
            raise NotFoundError("Bill not found.")
        bill, items, charges = found
        return SalesBillDetail(bill=bill, items=items, extra_charges=charges)

    def list_sales_bills(self, actor_id: str) -> list[SalesBill]:
        return self.repo.list_sales_bills(actor_id)

    # ---------- helpers ----------
    @staticmethod
    def _normalize_lines(items: Iterable[dict]) -> list[dict]:
        items = list(items or [])
        if not items:
            raise ValidationError("Bill needs at least one item.")
        return [
            {
                "lot_id": payloads.required_id(it.get("lot_id"), "lot_id"),
                "quantity": payloads.positive_quantity(it.get("quantity")),
                "selling_price": payloads.non_negative_price(it.get("selling_price"), "Selling price"),
            }
            for it in items
        ]

    @staticmethod
    def _totals(lines: list[dict], charges: list[dict], rate: Decimal) -> BillTotals:
        return compute_bill_totals(
            [(ln["quantity"], ln["selling_price"]) for ln in lines],
            [c["amount"] for c in charges],
            rate,
        )

    @staticmethod
    def _require_bill(uow, bill_id) -> SalesBill:
        bill = uow.get_sales_bill(int(bill_id))
        if not bill:
            raise NotFoundError("Bill not found.")
        return bill

    @staticmethod
    def _require_client(uow, client_id: int) -> None:
        if not uow.get_client(client_id):
            raise NotFoundError("Client not found.")

    @staticmethod
    def _check_availability(uow, lines: list[dict]) -> None:
        # Lines naming the same lot are checked on their combined quantity.
        requested: OrderedDict[int, Decimal] = OrderedDict()
        for ln in lines:
            requested[ln["lot_id"]] = requested.get(ln["lot_id"], Decimal("0")) + ln["quantity"]

        for lot_id, qty in requested.items():
            lot = uow.lots.get_lot(lot_id)
            if qty > lot.available:
                item = uow.get_item(lot.item_id)
                raise InsufficientStockError(lot.id, lot.available, qty, label=item.name if item else None)

    @staticmethod
    def _write_lines(uow, bill_id: int, lines: list[dict], charges: list[dict]) -> None:
        for ln in lines:
            uow.insert_bill_item(
                bill_id,
                ln["lot_id"],
                ln["quantity"],
                ln["selling_price"],
                compute_line_total(ln["quantity"], ln["selling_price"]),
            )
        uow.insert_extra_charges("bill_extra_charges", "bill_id", bill_id, charges)
        for ln in lines:
            uow.lots.decrement_available(ln["lot_id"], ln["quantity"])
