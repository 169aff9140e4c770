from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from bsm.domain.errors import ValidationError
from bsm.domain.models import EXPENSE_CATEGORIES, Expense
from bsm.services import payloads

log = logging.getLogger(__name__)


class ExpenseService:
    def __init__(self, repo, today: Callable[[], date] | None = None):
        self.repo = repo
        self.today = today or date.today

    def add_expense(
        self,
        actor_id: str,
        category: str,
        description: str,
        amount,
        expense_date=None,
        notes: Optional[str] = None,
    ) -> int:
        category = (category or "").strip().lower()
        if category not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Category must be one of: {', '.join(EXPENSE_CATEGORIES)}.")
        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required.")
        value = payloads.non_negative_price(amount, "Amount")
        day = payloads.iso_date(expense_date, "expense_date", default=self.today())

        expense_id = self.repo.add_expense(actor_id, category, description, value, day, payloads.optional_text(notes))
        log.info("expense_added expense_id=%s category=%s amount=%s actor=%s", expense_id, category, value, actor_id)
        return expense_id

    def list_expenses(self, actor_id: str) -> list[Expense]:
        return self.repo.list_expenses(actor_id)
