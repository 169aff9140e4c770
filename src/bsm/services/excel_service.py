from __future__ import annotations

import logging
from typing import Optional

from openpyxl import load_workbook

from bsm.domain.errors import AppError, ValidationError
from bsm.domain.models import PurchaseBillDetail
from bsm.services import payloads

log = logging.getLogger(__name__)


class ExcelService:
    def __init__(self, repo, purchase_service):
        self.repo = repo
        self.purchases = purchase_service

    def import_purchase_bill(
        self,
        actor_id: str,
        path: str,
        supplier_id: Optional[int] = None,
        bill_number: Optional[str] = None,
        bill_date=None,
        tax_rate=None,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        status: Optional[str] = None,
    ) -> tuple[PurchaseBillDetail, int]:
        """
        Every valid row becomes one line of a single purchase bill.
        Headers:
          sku | quantity | cost_price [| batch_number | expiry_date]

        Returns (bill, skipped_rows).
        """
        wb = load_workbook(path, read_only=True, data_only=True)
        try:
            ws = wb.active
            rows = ws.iter_rows(values_only=True)
            header_row = next(rows, None) or ()

            headers = {}
            for idx, v in enumerate(header_row):
                if isinstance(v, str):
                    headers[v.strip().lower()] = idx

            for r in ("sku", "quantity", "cost_price"):
                if r not in headers:
                    raise ValidationError(f"Missing column header: {r}")

            items = []
            skipped = 0
            for row_no, row in enumerate(rows, start=2):
                if row is None or all(v is None for v in row):
                    continue
                try:
                    items.append(self._row_to_line(actor_id, headers, row))
                except (AppError, IndexError, TypeError, ValueError) as e:
                    log.warning("Excel import skipped row %s: %s", row_no, e)
                    skipped += 1
        finally:
            wb.close()

        if not items:
            raise ValidationError("No valid rows found in spreadsheet.")

        bill = self.purchases.create_purchase_bill(
            actor_id,
            items,
            supplier_id=supplier_id,
            bill_number=bill_number,
            bill_date=bill_date,
            tax_rate=tax_rate,
            notes=notes or f"Imported from {path}",
            location=location,
            status=status,
        )
        log.info(
            "purchase_bill_imported bill_id=%s lines=%s skipped=%s actor=%s",
            bill.bill.id,
            len(items),
            skipped,
            actor_id,
        )
        return bill, skipped

    def _row_to_line(self, actor_id: str, headers: dict, row: tuple) -> dict:
        def cell(name):
            idx = headers.get(name)
            if idx is None or idx >= len(row):
                return None
            return row[idx]

        sku = cell("sku")
        if sku is None or not str(sku).strip():
            raise ValidationError("SKU is empty.")
        sku = str(sku).strip()

        item = self.repo.get_item_by_sku(actor_id, sku)
        if not item:
            raise ValidationError(f"Unknown SKU: {sku}")

        expiry = cell("expiry_date")
        return {
            "item_id": item.id,
            "quantity": payloads.positive_quantity(cell("quantity")),
            "cost_price": payloads.non_negative_price(cell("cost_price"), "Cost price"),
            "batch_number": payloads.optional_text(cell("batch_number")),
            "expiry_date": payloads.iso_date(expiry, "expiry_date") if expiry else None,
        }
