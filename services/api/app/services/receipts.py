from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from packages.shared.schemas.receipt_v1 import OrderSnapshotV1, ReceiptLineV1
from services.api.app.models.reference import DiscountLevel
from services.api.app.models.sales_order import DraftOrder
from services.api.app.services.discounts import discount_level_label
from services.api.app.services.pricing import OrderPricing

_CENTS = Decimal("0.01")


def confirmed_order_number(confirmed: Mapping[str, Any], fallback: str) -> str:
    value = confirmed.get("order_number") or confirmed.get("orderNumber")
    return str(value) if value else fallback


class ReceiptSnapshotBuilder:
    def __init__(self, *, document_label: str = "Sales Order") -> None:
        self._document_label = document_label

    def build(
        self,
        confirmed: Mapping[str, Any],
        draft: DraftOrder,
        pricing: OrderPricing,
        level: DiscountLevel | None = None,
    ) -> OrderSnapshotV1:
        """Freeze a submitted draft.

        The number the backend confirmed replaces the draft's preview number. All values
        are copied, so later edits to a new draft cannot reach the receipt.
        """

        items = []
        for line in draft.items:
            priced = pricing.line(line.id)
            items.append(
                ReceiptLineV1(
                    line_id=line.id,
                    product_id=line.product_id,
                    inventory_stock_id=line.inventory_stock_id,
                    name=line.name,
                    batch_number=line.batch_number,
                    quantity=priced.quantity,
                    unit_price=priced.unit_price,
                    mrp=line.mrp,
                    discount_input=line.discount_input if line.discount_enabled else "",
                    gross=priced.gross,
                    discount_amount=priced.discount_amount,
                    net=priced.net,
                )
            )

        return OrderSnapshotV1(
            document_label=self._document_label,
            order_number=confirmed_order_number(confirmed, draft.order_number),
            order_date=draft.order_date,
            reference_number=draft.reference_number,
            status=str(confirmed.get("status") or draft.status),
            center_id=draft.center_id,
            center_name=draft.center_name,
            customer_id=draft.customer_id,
            customer_name=draft.customer.name,
            customer_address=draft.customer.address,
            customer_telephone=draft.customer.telephone,
            discount_level_id=draft.discount_level_id,
            discount_level_label=discount_level_label(level),
            items=tuple(items),
            subtotal=pricing.subtotal,
            discount_total=pricing.discount_total,
            total_amount=pricing.total_amount,
            created_at=datetime.utcnow().isoformat() + "Z",
        )


def format_money(value: Decimal, currency: str = "LKR") -> str:
    amount = Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return f"{currency} {amount:,.2f}"


def render_receipt_text(
    snapshot: OrderSnapshotV1,
    *,
    currency: str = "LKR",
    width: int = 72,
) -> str:
    """Plain-text rendering for printing or pasting into a message."""

    def money(value: Decimal) -> str:
        return format_money(value, currency)

    rule = "-" * width
    out = [
        snapshot.document_label.upper().center(width).rstrip(),
        rule,
        f"Order No : {snapshot.order_number}",
        f"Date     : {snapshot.order_date.isoformat() if snapshot.order_date else '-'}",
        f"Ref No   : {snapshot.reference_number or '-'}",
        f"Center   : {snapshot.center_name or snapshot.center_id or '-'}",
        "",
        f"Customer : {snapshot.customer_name or '-'}",
        f"Address  : {' '.join(snapshot.customer_address.split()) or '-'}",
        f"Phone    : {snapshot.customer_telephone or '-'}",
        rule,
    ]

    for i, item in enumerate(snapshot.items, start=1):
        name = item.name
        if item.batch_number:
            name = f"{name} [{item.batch_number}]"
        out.append(f"{i:>2}. {name}")
        out.append(
            f"    {item.quantity} x {money(item.unit_price)}"
            f"  less {money(item.discount_amount)}"
            f"  = {money(item.net)}"
        )

    out.extend(
        [
            rule,
            f"Discount level : {snapshot.discount_level_label}",
            f"Discount       : {money(snapshot.discount_total)}",
            f"Total          : {money(snapshot.total_amount)}",
        ]
    )
    return "\n".join(out) + "\n"
