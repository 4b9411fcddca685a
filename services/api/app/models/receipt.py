from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from packages.shared.schemas.receipt_v1 import OrderSnapshotV1
from services.api.app.models.draft import DraftOut


class ReceiptOut(BaseModel):
    receipt_id: str
    draft_id: str
    snapshot: OrderSnapshotV1
    created_at: str


class ReceiptListItem(BaseModel):
    receipt_id: str
    draft_id: str
    order_number: str
    total_amount: Decimal
    created_at: str


class SubmitResponse(BaseModel):
    receipt: ReceiptOut
    # The reset draft, ready for the next order.
    draft: DraftOut


class OrderNumberOut(BaseModel):
    value: str | None
    source: str | None
