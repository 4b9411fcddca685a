from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class Center(BaseModel):
    id: str
    name: str


class Customer(BaseModel):
    id: str
    name: str
    email: str = ""
    address: str = ""
    telephone: str = ""


class DiscountLevel(BaseModel):
    # Backends disagree on the value field (percent, rate, value, discount...);
    # unknown fields are kept so the resolver can look for them.
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    name: str = ""
    percentage: Decimal | str | None = None
    amount: Decimal | str | None = None


class ProductStock(BaseModel):
    """One sellable stock entry of a product at a center."""

    model_config = ConfigDict(frozen=True)

    inventory_stock_id: str
    product_id: str
    center_id: str
    name: str
    sku: str = ""
    unit_price: Decimal = Decimal("0")
    mrp: Decimal = Decimal("0")
    min_price: Decimal = Decimal("0")
    available_qty: int = 0
    batch_number: str | None = None
