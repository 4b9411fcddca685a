from __future__ import annotations

from typing import Any, Protocol

from services.api.app.models.reference import Center, Customer, DiscountLevel, ProductStock


class BackendError(Exception):
    """Base class for order backend errors."""


class BackendUnavailableError(BackendError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Order backend unreachable: {detail}")
        self.detail = detail


class BackendRejectedError(BackendError):
    def __init__(self, message: str, field_errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.field_errors = dict(field_errors or {})


class OrderBackend(Protocol):
    """The REST backend that owns master data and persists orders."""

    name: str

    def get_next_order_number(self) -> str: ...

    def list_centers(self) -> list[Center]: ...

    def list_customers(self) -> list[Customer]: ...

    def list_discount_levels(self) -> list[DiscountLevel]: ...

    def get_catalog_for_center(self, center_id: str) -> list[ProductStock]: ...

    def list_orders(self) -> list[dict[str, Any]]: ...

    def submit_order(self, payload: dict[str, Any]) -> dict[str, Any]: ...
