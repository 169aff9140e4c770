from __future__ import annotations

from decimal import Decimal


class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InvalidQuantityError(ValidationError):
    """Quantity is zero or negative."""


class InsufficientStockError(AppError):
    def __init__(self, lot_id: int, available: Decimal, requested: Decimal, label: str | None = None):
        self.lot_id = int(lot_id)
        self.available = Decimal(available)
        self.requested = Decimal(requested)
        self.label = label
        what = label or f"lot {self.lot_id}"
        super().__init__(f"Insufficient stock for {what}. Available: {self.available}, Requested: {self.requested}")


class PersistenceError(AppError):
    """Store failure; the enclosing transaction was rolled back."""


class DuplicateDocumentNumberError(PersistenceError):
    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Document number already in use: {number}")


class LedgerError(AppError):
    """A lot counter update would break 0 <= available <= quantity."""
