from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.api.app.models.sales_order import DraftOrder
    from services.api.app.services.line_items import LineItemStore


class SalesOrderError(Exception):
    """Base class for sales order engine errors."""


class DraftValidationError(SalesOrderError):
    """One or more draft fields failed local validation.

    `field_errors` maps a field name to a message suitable for display next to that field.
    """

    def __init__(self, field_errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in field_errors.items()))
        self.field_errors = dict(field_errors)


class StockExceededError(DraftValidationError):
    def __init__(
        self,
        *,
        requested: int,
        available: int,
        line_id: str | None = None,
        store: LineItemStore | None = None,
    ) -> None:
        super().__init__({"quantity": f"Only {available} units available at this center"})
        self.requested = requested
        self.available = available
        self.line_id = line_id
        # Set by update_item: the store with the line clamped to its ceiling.
        self.store = store
        self.draft: DraftOrder | None = None


class LineNotFoundError(SalesOrderError):
    def __init__(self, line_id: str) -> None:
        super().__init__(f"Line item not found: {line_id}")
        self.line_id = line_id


class AllocationError(SalesOrderError):
    """The order number source could not provide a preview."""


class SubmissionError(SalesOrderError):
    def __init__(self, message: str, *, field_errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.field_errors = dict(field_errors or {})


class SubmissionInProgressError(SalesOrderError):
    def __init__(self) -> None:
        super().__init__("A submission for this draft is already in progress")
