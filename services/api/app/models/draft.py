from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from services.api.app.models.sales_order import DraftOrder


class DraftCreateRequest(BaseModel):
    created_by_id: str | None = None


class DraftHeaderUpdateRequest(BaseModel):
    """Only fields present in the request body are applied."""

    center_id: str | None = None
    customer_id: str | None = None
    order_date: date | None = None
    reference_number: str | None = None


class LineUpdateRequest(BaseModel):
    field: str = Field(..., min_length=1)
    value: Any = None


class DiscountLevelSelectRequest(BaseModel):
    discount_level_id: str | None = None


class PricedLineOut(BaseModel):
    line_id: str
    name: str
    quantity: int
    unit_price: Decimal
    gross: Decimal
    discount_amount: Decimal
    net: Decimal


class PricingOut(BaseModel):
    lines: list[PricedLineOut]
    subtotal: Decimal
    discount_total: Decimal
    total_amount: Decimal
    warnings: list[str] = Field(default_factory=list)


class DraftOut(BaseModel):
    draft_id: str
    order_number_source: str | None = None
    draft: DraftOrder
    pricing: PricingOut
