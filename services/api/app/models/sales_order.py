from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LineKind(str, Enum):
    CATALOG = "CATALOG"
    # Free-text product not found in the center's catalog; no stock ceiling.
    MANUAL = "MANUAL"


class CustomerSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    address: str = ""
    telephone: str = ""


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: LineKind
    product_id: str | None = None
    inventory_stock_id: str | None = None
    name: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)

    # Available quantity captured when the line was added. Never refreshed.
    current_stock: int = 0
    mrp: Decimal = Decimal("0")
    min_price: Decimal = Decimal("0")
    batch_number: str | None = None

    discount_enabled: bool = False
    discount_input: str = ""


class LineCandidate(BaseModel):
    """What the user typed or picked in the item entry row."""

    product_id: str | None = None
    product_name: str = ""
    quantity: int | str | None = 1
    unit_price: Decimal | str | None = None


class DraftOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_number: str = ""
    center_id: str | None = None
    center_name: str = ""
    customer_id: str | None = None
    customer: CustomerSnapshot = Field(default_factory=CustomerSnapshot)
    order_date: date | None = None
    reference_number: str = ""
    discount_level_id: str | None = None
    status: str = "pending"
    created_by_id: str | None = None

    items: tuple[LineItem, ...] = ()

    @classmethod
    def empty(
        cls,
        order_number: str,
        *,
        order_date: date,
        created_by_id: str | None = None,
    ) -> DraftOrder:
        return cls(order_number=order_number, order_date=order_date, created_by_id=created_by_id)
