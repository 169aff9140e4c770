from __future__ import annotations

import re
from datetime import date
from typing import Callable, Optional

_SEQUENCE = re.compile(r"-(\d{3,})$")


class NumberingService:
    """Issues ``<PREFIX>-<YYYYMMDD>-<seq3>`` document numbers.

    The sequence restarts at 001 on the first document of a day and otherwise
    follows the actor's most recently issued number. Uniqueness is enforced by
    the store; callers retry on conflict.
    """

    def __init__(self, today: Callable[[], date] | None = None):
        self.today = today or date.today

    def next_number(self, previous: Optional[str], prefix: str, on: Optional[date] = None) -> str:
        day = on or self.today()
        day_prefix = f"{prefix}-{day.strftime('%Y%m%d')}"
        seq = 1
        if previous and previous.startswith(day_prefix + "-"):
            m = _SEQUENCE.search(previous)
            if m:
                seq = int(m.group(1)) + 1
        return f"{day_prefix}-{seq:03d}"

    def next_document_number(self, uow, table: str, column: str, prefix: str) -> str:
        previous = uow.latest_document_number(table, column, prefix)
        return self.next_number(previous, prefix)

    def next_sales_number(self, uow, prefix: str = "INV") -> str:
        return self.next_document_number(uow, "sales_bills", "invoice_number", prefix)

    def next_purchase_number(self, uow, prefix: str = "PUR") -> str:
        return self.next_document_number(uow, "purchase_bills", "bill_number", prefix)
