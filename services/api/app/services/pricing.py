"""Line and order pricing.

Everything here is a pure function of its arguments. Amounts are Decimals and are never
rounded; rounding to currency precision is a rendering concern.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from services.api.app.models.sales_order import LineItem

_ZERO = Decimal("0")
# Larger discounts are capped at gross anyway; clamping keeps the arithmetic finite.
_MAX_DISCOUNT_VALUE = Decimal("1e15")

# Leading numeric portion, the way a lenient number parser reads "10% off" or "15.5 LKR".
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True, slots=True)
class PercentageDiscount:
    rate: Decimal


@dataclass(frozen=True, slots=True)
class FlatDiscount:
    """Flat amount taken off each unit."""

    amount: Decimal


@dataclass(frozen=True, slots=True)
class NoDiscount:
    # Set when non-empty input could not be understood.
    reason: str | None = None


Discount = PercentageDiscount | FlatDiscount | NoDiscount


@dataclass(frozen=True, slots=True)
class PricedLine:
    line_id: str
    name: str
    quantity: int
    unit_price: Decimal
    discount: Discount
    gross: Decimal
    discount_amount: Decimal
    net: Decimal


@dataclass(frozen=True, slots=True)
class OrderPricing:
    lines: tuple[PricedLine, ...]
    subtotal: Decimal
    discount_total: Decimal
    total_amount: Decimal
    warnings: tuple[str, ...] = ()

    def line(self, line_id: str) -> PricedLine:
        for priced in self.lines:
            if priced.line_id == line_id:
                return priced
        raise KeyError(line_id)


def _leading_number(text: str) -> Decimal | None:
    match = _LEADING_NUMBER.match(text.strip())
    if match is None:
        return None
    try:
        value = Decimal(match.group(0))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return min(value, _MAX_DISCOUNT_VALUE)


def parse_discount(text: str | None) -> Discount:
    """Parse free-text discount notation: "10%" is a percentage, "15" a flat per-unit amount."""

    s = "" if text is None else str(text).strip()
    if not s:
        return NoDiscount()

    if s.endswith("%"):
        pct = _leading_number(s[:-1])
        if pct is None or pct <= 0:
            return NoDiscount(reason=f"discount {s!r} is not a positive percentage")
        return PercentageDiscount(rate=pct)

    amount = _leading_number(s)
    if amount is None or amount <= 0:
        return NoDiscount(reason=f"discount {s!r} is not a positive amount")
    return FlatDiscount(amount=amount)


def discount_amount(discount: Discount, unit_price: Decimal, quantity: int) -> Decimal:
    gross = unit_price * quantity
    if isinstance(discount, PercentageDiscount):
        per_unit = unit_price * discount.rate / 100
    elif isinstance(discount, FlatDiscount):
        per_unit = discount.amount
    else:
        return _ZERO

    # A discount never exceeds the gross amount of the line.
    return min(gross, per_unit * quantity)


def parse_discount_input(text: str | None, unit_price: Decimal, quantity: int) -> Decimal:
    return discount_amount(parse_discount(text), Decimal(unit_price), quantity)


def price_line(line: LineItem) -> PricedLine:
    unit_price = Decimal(line.unit_price)
    gross = unit_price * line.quantity

    discount: Discount = NoDiscount()
    if line.discount_enabled:
        discount = parse_discount(line.discount_input)
    amount = discount_amount(discount, unit_price, line.quantity)

    return PricedLine(
        line_id=line.id,
        name=line.name,
        quantity=line.quantity,
        unit_price=unit_price,
        discount=discount,
        gross=gross,
        discount_amount=amount,
        net=max(_ZERO, gross - amount),
    )


def price_order(items: Iterable[LineItem]) -> OrderPricing:
    lines = tuple(price_line(item) for item in items)

    # "subtotal" already nets out line discounts; there is no separate post-discount figure.
    subtotal = sum((priced.net for priced in lines), _ZERO)
    discount_total = sum((priced.discount_amount for priced in lines), _ZERO)

    warnings = tuple(
        f"{priced.name}: {priced.discount.reason}; no discount applied"
        for priced in lines
        if isinstance(priced.discount, NoDiscount) and priced.discount.reason
    )

    return OrderPricing(
        lines=lines,
        subtotal=subtotal,
        discount_total=discount_total,
        total_amount=max(_ZERO, subtotal),
        warnings=warnings,
    )
