from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from packages.shared.schemas.receipt_v1 import OrderSnapshotV1
from services.api.app.models.reference import DiscountLevel
from services.api.app.models.sales_order import DraftOrder
from services.api.app.services.backend_base import (
    BackendError,
    BackendRejectedError,
    OrderBackend,
)
from services.api.app.services.errors import (
    DraftValidationError,
    SubmissionError,
    SubmissionInProgressError,
)
from services.api.app.services.order_numbers import OrderNumberAllocator
from services.api.app.services.pricing import OrderPricing, price_order
from services.api.app.services.receipts import ReceiptSnapshotBuilder

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    SUBMITTING = "SUBMITTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    snapshot: OrderSnapshotV1
    confirmed: dict[str, Any]
    next_draft: DraftOrder


def validate_draft(draft: DraftOrder) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not draft.order_number:
        errors["order_number"] = "SO number not generated"
    if not (draft.center_id or "").strip():
        errors["center"] = "Center is required"
    if not (draft.customer_id or "").strip():
        errors["customer"] = "Customer is required"
    if draft.order_date is None:
        errors["order_date"] = "Date is required"
    if not draft.items:
        errors["items"] = "Add at least one item"
    return errors


def build_payload(draft: DraftOrder, pricing: OrderPricing) -> dict[str, Any]:
    """The pre-priced order as sent to the backend. Decimals travel as strings."""

    items = []
    for line in draft.items:
        priced = pricing.line(line.id)
        items.append(
            {
                "product_id": line.product_id,
                "inventory_stock_id": line.inventory_stock_id,
                "product_name": line.name,
                "line_kind": line.kind.value,
                "quantity": line.quantity,
                "unit_price": str(line.unit_price),
                "mrp": str(line.mrp),
                "min_price": str(line.min_price or line.unit_price),
                "batch_number": line.batch_number,
                "current_stock": line.current_stock,
                "discount_enabled": line.discount_enabled,
                "line_gross": str(priced.gross),
                "line_discount_input": line.discount_input or "",
                "line_discount_amount": str(priced.discount_amount),
                "line_net": str(priced.net),
            }
        )

    return {
        "order_number": draft.order_number,
        "center_id": draft.center_id,
        "center": draft.center_name,
        "customer_id": draft.customer_id,
        "customer": draft.customer.name,
        "customer_address": draft.customer.address,
        "customer_telephone": draft.customer.telephone,
        "date": draft.order_date.isoformat() if draft.order_date else None,
        "ref_number": draft.reference_number,
        "status": draft.status or "pending",
        "created_by_id": draft.created_by_id,
        "discount_level_id": draft.discount_level_id,
        "items": items,
        "subtotal": str(pricing.subtotal),
        "discount_total": str(pricing.discount_total),
        "total_amount": str(pricing.total_amount),
    }


class OrderSubmitter:
    """Validates and submits one draft at a time.

    IDLE -> VALIDATING -> SUBMITTING -> SUCCEEDED | FAILED -> IDLE. Nothing is cleared
    before the backend confirms; on failure the caller's draft is left as it was.
    """

    def __init__(
        self,
        backend: OrderBackend,
        allocator: OrderNumberAllocator,
        *,
        snapshot_builder: ReceiptSnapshotBuilder | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._backend = backend
        self._allocator = allocator
        self._snapshots = snapshot_builder or ReceiptSnapshotBuilder()
        self._today = today
        self._lock = threading.Lock()
        self.state = SubmissionState.IDLE

    def submit(
        self,
        draft: DraftOrder,
        *,
        discount_level: DiscountLevel | None = None,
    ) -> SubmissionResult:
        if not self._lock.acquire(blocking=False):
            raise SubmissionInProgressError()

        try:
            return self._submit(draft, discount_level)
        finally:
            self.state = SubmissionState.IDLE
            self._lock.release()

    def _submit(self, draft: DraftOrder, level: DiscountLevel | None) -> SubmissionResult:
        self.state = SubmissionState.VALIDATING
        errors = validate_draft(draft)
        if errors:
            raise DraftValidationError(errors)

        pricing = price_order(draft.items)
        payload = build_payload(draft, pricing)

        self.state = SubmissionState.SUBMITTING
        try:
            confirmed = self._backend.submit_order(payload)
        except BackendRejectedError as e:
            self.state = SubmissionState.FAILED
            logger.error("Order %s rejected by backend: %s", draft.order_number, e)
            raise SubmissionError(str(e), field_errors=e.field_errors) from e
        except BackendError as e:
            self.state = SubmissionState.FAILED
            logger.error("Order %s not submitted: %s", draft.order_number, e)
            raise SubmissionError(str(e)) from e

        self.state = SubmissionState.SUCCEEDED
        confirmed = dict(confirmed or {})
        snapshot = self._snapshots.build(confirmed, draft, pricing, level)
        logger.info(
            "Order %s submitted: %d line(s), total %s",
            snapshot.order_number,
            len(snapshot.items),
            snapshot.total_amount,
        )

        preview = self._allocator.on_submitted(snapshot.order_number)
        next_draft = DraftOrder.empty(
            preview.value if preview else "",
            order_date=self._today(),
            created_by_id=draft.created_by_id,
        )
        return SubmissionResult(snapshot=snapshot, confirmed=confirmed, next_draft=next_draft)
