"""Shared receipt snapshot schema (v1).

A receipt is frozen at submission time. Clients render and print it as-is; it is never
recomputed from the draft it came from.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ReceiptLineV1(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_id: str
    product_id: str | None = None
    inventory_stock_id: str | None = None
    name: str
    batch_number: str | None = None

    quantity: int
    unit_price: Decimal
    mrp: Decimal = Decimal("0")

    discount_input: str = ""
    gross: Decimal
    discount_amount: Decimal
    net: Decimal


class OrderSnapshotV1(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str = "1"
    document_label: str = "Sales Order"

    order_number: str
    order_date: date | None = None
    reference_number: str = ""
    status: str = "pending"

    center_id: str | None = None
    center_name: str = ""

    customer_id: str | None = None
    customer_name: str = ""
    customer_address: str = ""
    customer_telephone: str = ""

    discount_level_id: str | None = None
    discount_level_label: str = "No discount"

    items: tuple[ReceiptLineV1, ...] = Field(default_factory=tuple)

    subtotal: Decimal
    discount_total: Decimal
    total_amount: Decimal

    created_at: str
