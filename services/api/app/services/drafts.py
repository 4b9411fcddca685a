"""Named commands over a DraftOrder.

Each command takes the current draft and returns the next one, or raises a typed error and
leaves the caller's draft untouched.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from services.api.app.models.reference import Center, Customer
from services.api.app.models.sales_order import CustomerSnapshot, DraftOrder, LineCandidate
from services.api.app.services.catalog import StockCatalogView
from services.api.app.services.discounts import DiscountPolicyResolver
from services.api.app.services.errors import DraftValidationError, StockExceededError
from services.api.app.services.line_items import LineItemStore


def set_center(draft: DraftOrder, center_id: str | None, centers: Iterable[Center]) -> DraftOrder:
    center_id = (center_id or "").strip() or None
    if center_id == draft.center_id:
        return draft

    name = ""
    if center_id is not None:
        center = next((c for c in centers if str(c.id) == center_id), None)
        if center is None:
            raise DraftValidationError({"center": f"Unknown center: {center_id}"})
        name = center.name

    # Lines carry stock captured at the old center.
    return draft.model_copy(update={"center_id": center_id, "center_name": name, "items": ()})


def set_customer(
    draft: DraftOrder,
    customer_id: str | None,
    customers: Iterable[Customer],
) -> DraftOrder:
    customer_id = (customer_id or "").strip() or None
    if customer_id is None:
        return draft.model_copy(update={"customer_id": None, "customer": CustomerSnapshot()})

    customer = next((c for c in customers if str(c.id) == customer_id), None)
    if customer is None:
        raise DraftValidationError({"customer": f"Unknown customer: {customer_id}"})

    return draft.model_copy(
        update={
            "customer_id": customer_id,
            "customer": CustomerSnapshot(
                name=customer.name,
                address=customer.address,
                telephone=customer.telephone,
            ),
        }
    )


def set_header(
    draft: DraftOrder,
    *,
    order_date: date | None = None,
    reference_number: str | None = None,
) -> DraftOrder:
    update: dict[str, Any] = {}
    if order_date is not None:
        update["order_date"] = order_date
    if reference_number is not None:
        update["reference_number"] = reference_number.strip()
    return draft.model_copy(update=update) if update else draft


def add_item(
    draft: DraftOrder,
    candidate: LineCandidate,
    *,
    catalog: StockCatalogView | None,
    resolver: DiscountPolicyResolver,
) -> DraftOrder:
    store = LineItemStore(items=draft.items).add_item(
        candidate,
        center_id=draft.center_id,
        catalog=catalog,
        default_discount=resolver.default_for_new_line(draft),
    )
    return draft.model_copy(update={"items": store.items})


def update_item(draft: DraftOrder, line_id: str, field: str, value: Any) -> DraftOrder:
    """Edit one line field.

    On StockExceededError the error's `draft` holds this draft with the line clamped to
    its stock ceiling.
    """

    try:
        store = LineItemStore(items=draft.items).update_item(line_id, field, value)
    except StockExceededError as e:
        if e.store is not None:
            e.draft = draft.model_copy(update={"items": e.store.items})
        raise
    return draft.model_copy(update={"items": store.items})


def remove_item(draft: DraftOrder, line_id: str) -> DraftOrder:
    store = LineItemStore(items=draft.items).remove_item(line_id)
    return draft.model_copy(update={"items": store.items})


def select_discount_level(
    draft: DraftOrder,
    level_id: str | None,
    resolver: DiscountPolicyResolver,
) -> DraftOrder:
    return resolver.apply(draft, resolver.select_level(level_id))
