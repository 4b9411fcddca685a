from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from services.api.app.models.sales_order import LineCandidate, LineItem, LineKind
from services.api.app.services.catalog import StockCatalogView
from services.api.app.services.discounts import DiscountSelection
from services.api.app.services.errors import (
    DraftValidationError,
    LineNotFoundError,
    StockExceededError,
)

# Upper bounds keep line arithmetic well inside Decimal's exponent range.
_MAX_QUANTITY = Decimal("1e9")
_MAX_UNIT_PRICE = Decimal("1e12")

_FIELD_ALIASES = {
    "quantity": "quantity",
    "qty": "quantity",
    "unit_price": "unit_price",
    "unitPrice": "unit_price",
    "discount_input": "discount_input",
    "discountInput": "discount_input",
    "discount_enabled": "discount_enabled",
    "discountEnabled": "discount_enabled",
}


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _to_quantity(value: Any) -> int:
    """Whole units, at least 1. Anything unreadable counts as 1."""

    number = _to_decimal(value)
    if number is None:
        return 1
    if number >= _MAX_QUANTITY:
        raise DraftValidationError({"quantity": "Quantity is too large"})
    return max(1, int(number.to_integral_value(rounding=ROUND_FLOOR)))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(value)


def _new_line_id() -> str:
    return uuid4().hex[:12]


@dataclass(frozen=True, slots=True)
class LineItemStore:
    """The ordered line items of a draft.

    Every command returns a new store. For catalog lines the quantity never exceeds the
    stock captured when the line was added.
    """

    items: tuple[LineItem, ...] = ()

    def get(self, line_id: str) -> LineItem:
        for line in self.items:
            if line.id == line_id:
                return line
        raise LineNotFoundError(line_id)

    def add_item(
        self,
        candidate: LineCandidate,
        *,
        center_id: str | None,
        catalog: StockCatalogView | None,
        default_discount: DiscountSelection | None = None,
    ) -> LineItemStore:
        name = (candidate.product_name or "").strip()
        selected = None
        if catalog is not None:
            selected = catalog.find(product_id=candidate.product_id, name=name)
        if selected is not None and not name:
            name = selected.name

        quantity = _to_quantity(candidate.quantity)
        errors: dict[str, str] = {}

        if not center_id:
            errors["center"] = "Select a center first"
        if not name:
            errors["product_name"] = "Product name is required"
        if candidate.product_id and selected is None:
            errors["product_id"] = "Product is not stocked at this center"

        if selected is not None:
            unit_price = selected.unit_price
        elif candidate.unit_price is None or str(candidate.unit_price).strip() == "":
            unit_price = Decimal("0")
        else:
            parsed = _to_decimal(candidate.unit_price)
            if parsed is None:
                errors["unit_price"] = "Unit price must be a number"
                unit_price = Decimal("0")
            else:
                unit_price = parsed

        if unit_price < 0:
            errors["unit_price"] = "Unit price cannot be negative"
        elif unit_price >= _MAX_UNIT_PRICE:
            errors["unit_price"] = "Unit price is too large"

        if errors:
            raise DraftValidationError(errors)

        if selected is not None and quantity > selected.available_qty:
            raise StockExceededError(requested=quantity, available=selected.available_qty)

        discount = default_discount or DiscountSelection(
            level=None, discount_input="", discount_enabled=False, apply_to_existing=False
        )

        if selected is not None:
            line = LineItem(
                id=_new_line_id(),
                kind=LineKind.CATALOG,
                product_id=selected.product_id,
                inventory_stock_id=selected.inventory_stock_id,
                name=name,
                quantity=quantity,
                unit_price=unit_price,
                current_stock=selected.available_qty,
                mrp=selected.mrp,
                min_price=selected.min_price,
                batch_number=(selected.batch_number or "").strip() or None,
                discount_enabled=discount.discount_enabled,
                discount_input=discount.discount_input,
            )
        else:
            line = LineItem(
                id=_new_line_id(),
                kind=LineKind.MANUAL,
                name=name,
                quantity=quantity,
                unit_price=unit_price,
                discount_enabled=discount.discount_enabled,
                discount_input=discount.discount_input,
            )

        return LineItemStore(items=(*self.items, line))

    def update_item(self, line_id: str, field: str, value: Any) -> LineItemStore:
        """Edit one field of a line.

        A quantity above a catalog line's ceiling raises StockExceededError; the error
        carries the store with that line clamped to the ceiling.
        """

        line = self.get(line_id)
        key = _FIELD_ALIASES.get(field)

        if key == "discount_input":
            # Stored as typed; pricing decides what it means.
            text = "" if value is None else str(value)
            return self._replace(line.model_copy(update={"discount_input": text}))

        if key == "discount_enabled":
            return self._replace(line.model_copy(update={"discount_enabled": _to_bool(value)}))

        if key == "quantity":
            requested = _to_quantity(value)
            if line.kind is LineKind.CATALOG and requested > line.current_stock:
                clamped = self._replace(line.model_copy(update={"quantity": line.current_stock}))
                raise StockExceededError(
                    requested=requested,
                    available=line.current_stock,
                    line_id=line_id,
                    store=clamped,
                )
            return self._replace(line.model_copy(update={"quantity": requested}))

        if key == "unit_price":
            price = _to_decimal(value)
            if price is None:
                raise DraftValidationError({"unit_price": "Unit price must be a number"})
            if price >= _MAX_UNIT_PRICE:
                raise DraftValidationError({"unit_price": "Unit price is too large"})
            return self._replace(line.model_copy(update={"unit_price": max(Decimal("0"), price)}))

        raise DraftValidationError({"field": f"Unsupported line field: {field}"})

    def remove_item(self, line_id: str) -> LineItemStore:
        self.get(line_id)
        return LineItemStore(items=tuple(line for line in self.items if line.id != line_id))

    def _replace(self, updated: LineItem) -> LineItemStore:
        return LineItemStore(
            items=tuple(updated if line.id == updated.id else line for line in self.items)
        )
