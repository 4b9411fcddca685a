from __future__ import annotations

import re
from decimal import Decimal
from typing import Any
from uuid import uuid4

from services.api.app.models.reference import Center, Customer, DiscountLevel, ProductStock
from services.api.app.services.backend_base import BackendRejectedError

_SUFFIX = re.compile(r"(\d+)\D*$")


def _default_stock() -> list[ProductStock]:
    rows = [
        # product_id, name, sku, unit_price, mrp, min_price, {center_id: (qty, batch)}
        (
            "p-rice", "Basmati Rice 5kg", "RICE-5", "2450", "2600", "2300",
            {"c-1": (40, "B-2401"), "c-2": (12, "B-2402")},
        ),
        ("p-dhal", "Red Dhal 1kg", "DHAL-1", "390", "420", "360", {"c-1": (5, "B-2311")}),
        (
            "p-tea", "Ceylon Tea 400g", "TEA-400", "1180", "1250", "1100",
            {"c-1": (25, None), "c-2": (8, None)},
        ),
        ("p-oil", "Coconut Oil 1L", "OIL-1", "950", "1020", "900", {"c-2": (30, "B-2409")}),
    ]

    stocks: list[ProductStock] = []
    for product_id, name, sku, price, mrp, min_price, by_center in rows:
        for center_id, (qty, batch) in by_center.items():
            stocks.append(
                ProductStock(
                    inventory_stock_id=f"{product_id}-{center_id}",
                    product_id=product_id,
                    center_id=center_id,
                    name=name,
                    sku=sku,
                    unit_price=Decimal(price),
                    mrp=Decimal(mrp),
                    min_price=Decimal(min_price),
                    available_qty=qty,
                    batch_number=batch,
                )
            )
    return stocks


class MockOrderBackend:
    """Deterministic in-memory backend for local development and tests."""

    name = "MOCK"

    def __init__(self, *, prefix: str = "SO-", width: int = 4) -> None:
        self._prefix = prefix
        self._width = width
        self._orders: list[dict[str, Any]] = []
        self._centers = [Center(id="c-1", name="Colombo"), Center(id="c-2", name="Kandy")]
        self._customers = [
            Customer(
                id="cu-1",
                name="Perera Stores",
                address="12 Galle Road, Colombo 03",
                telephone="0112 345 678",
            ),
            Customer(id="cu-2", name="Silva Traders", address="4 Temple Street, Kandy"),
        ]
        self._levels = [
            DiscountLevel(id="d-1", name="Retail", percentage=Decimal("5")),
            DiscountLevel(id="d-2", name="Wholesale", percentage=Decimal("10")),
            DiscountLevel(id="d-3", name="Festival flat", amount="150"),
        ]
        self._stock = _default_stock()

    def get_next_order_number(self) -> str:
        return f"{self._prefix}{str(self._last_sequence() + 1).zfill(self._width)}"

    def list_centers(self) -> list[Center]:
        return list(self._centers)

    def list_customers(self) -> list[Customer]:
        return list(self._customers)

    def list_discount_levels(self) -> list[DiscountLevel]:
        return list(self._levels)

    def get_catalog_for_center(self, center_id: str) -> list[ProductStock]:
        return [s for s in self._stock if s.center_id == str(center_id)]

    def list_orders(self) -> list[dict[str, Any]]:
        return [dict(o) for o in self._orders]

    def submit_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        errors: dict[str, str] = {}
        if not payload.get("center_id"):
            errors["center_id"] = "The center id field is required."
        if not payload.get("customer_id"):
            errors["customer_id"] = "The customer id field is required."
        if not payload.get("items"):
            errors["items"] = "The items field is required."
        if errors:
            raise BackendRejectedError("The given data was invalid.", field_errors=errors)

        # The preview is only a suggestion; a number already taken gets the next free one.
        order_number = str(payload.get("order_number") or "")
        taken = {o["order_number"] for o in self._orders}
        if not order_number or order_number in taken:
            order_number = self.get_next_order_number()

        order = {**payload, "id": uuid4().hex, "order_number": order_number}
        self._orders.append(order)
        return dict(order)

    def _last_sequence(self) -> int:
        nums = [int(m.group(1)) for o in self._orders if (m := _SUFFIX.search(o["order_number"]))]
        return max(nums) if nums else 0
