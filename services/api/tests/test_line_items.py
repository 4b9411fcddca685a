from __future__ import annotations

from decimal import Decimal

import pytest
from services.api.app.models.reference import ProductStock
from services.api.app.models.sales_order import LineCandidate, LineKind
from services.api.app.services.catalog import StockCatalogView
from services.api.app.services.discounts import DiscountSelection
from services.api.app.services.errors import (
    DraftValidationError,
    LineNotFoundError,
    StockExceededError,
)
from services.api.app.services.line_items import LineItemStore
from services.api.app.services.pricing import price_order


def _catalog() -> StockCatalogView:
    return StockCatalogView.for_center(
        "c-1",
        [
            ProductStock(
                inventory_stock_id="s-1",
                product_id="p-1",
                center_id="c-1",
                name="Red Dhal 1kg",
                sku="DHAL-1",
                unit_price=Decimal("390"),
                mrp=Decimal("420"),
                min_price=Decimal("360"),
                available_qty=5,
                batch_number=" B-1 ",
            ),
            ProductStock(
                inventory_stock_id="s-2",
                product_id="p-2",
                center_id="c-2",
                name="Elsewhere",
                available_qty=100,
            ),
        ],
    )


def _store_with_catalog_line(quantity: int = 2) -> LineItemStore:
    return LineItemStore().add_item(
        LineCandidate(product_id="p-1", quantity=quantity),
        center_id="c-1",
        catalog=_catalog(),
    )


def test_catalog_view_only_keeps_its_center() -> None:
    catalog = _catalog()
    assert [s.product_id for s in catalog.products] == ["p-1"]
    assert catalog.find(product_id="p-2") is None
    assert catalog.find(name="red dhal 1KG") is not None
    assert catalog.search("dhal")[0].inventory_stock_id == "s-1"
    assert catalog.search("")[0].inventory_stock_id == "s-1"


def test_add_catalog_line_captures_stock_and_price() -> None:
    store = _store_with_catalog_line()

    (line,) = store.items
    assert line.kind is LineKind.CATALOG
    assert line.name == "Red Dhal 1kg"
    assert line.unit_price == Decimal("390")
    assert line.current_stock == 5
    assert line.inventory_stock_id == "s-1"
    assert line.batch_number == "B-1"
    assert line.discount_enabled is False


def test_add_catalog_line_over_stock_is_rejected() -> None:
    with pytest.raises(StockExceededError) as exc:
        _store_with_catalog_line(quantity=6)
    assert exc.value.requested == 6
    assert exc.value.available == 5


def test_update_quantity_over_stock_is_clamped_and_rejected() -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id

    with pytest.raises(StockExceededError) as exc:
        store.update_item(line_id, "quantity", 20)

    assert exc.value.available == 5
    assert exc.value.line_id == line_id
    assert "quantity" in exc.value.field_errors
    assert exc.value.store is not None
    assert exc.value.store.get(line_id).quantity == 5
    # The store the command was called on is unchanged.
    assert store.get(line_id).quantity == 2


def test_update_quantity_within_stock() -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id

    updated = store.update_item(line_id, "qty", "4.9")
    assert updated.get(line_id).quantity == 4


@pytest.mark.parametrize("value", [0, -3, "", "abc", None])
def test_quantity_below_one_becomes_one(value: object) -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id
    assert store.update_item(line_id, "quantity", value).get(line_id).quantity == 1


def test_manual_line_has_no_stock_ceiling() -> None:
    store = LineItemStore().add_item(
        LineCandidate(product_name="Delivery charge", quantity=50, unit_price="250"),
        center_id="c-1",
        catalog=_catalog(),
    )

    (line,) = store.items
    assert line.kind is LineKind.MANUAL
    assert line.product_id is None
    assert line.unit_price == Decimal("250")

    updated = store.update_item(line.id, "quantity", 500)
    assert updated.get(line.id).quantity == 500


def test_manual_line_without_price_is_free() -> None:
    store = LineItemStore().add_item(
        LineCandidate(product_name="Sample"), center_id="c-1", catalog=None
    )
    assert store.items[0].unit_price == Decimal("0")


@pytest.mark.parametrize(
    ("candidate", "center_id", "field"),
    [
        (LineCandidate(product_name="Rice"), None, "center"),
        (LineCandidate(product_name="  "), "c-1", "product_name"),
        (LineCandidate(product_id="p-404", product_name="Ghost"), "c-1", "product_id"),
        (LineCandidate(product_name="Rice", unit_price="cheap"), "c-1", "unit_price"),
        (LineCandidate(product_name="Rice", unit_price="-1"), "c-1", "unit_price"),
    ],
)
def test_add_item_validation(
    candidate: LineCandidate,
    center_id: str | None,
    field: str,
) -> None:
    with pytest.raises(DraftValidationError) as exc:
        LineItemStore().add_item(candidate, center_id=center_id, catalog=_catalog())
    assert field in exc.value.field_errors


def test_new_line_takes_default_discount() -> None:
    store = LineItemStore().add_item(
        LineCandidate(product_id="p-1"),
        center_id="c-1",
        catalog=_catalog(),
        default_discount=DiscountSelection(
            level=None, discount_input="10%", discount_enabled=True, apply_to_existing=False
        ),
    )
    assert store.items[0].discount_enabled is True
    assert store.items[0].discount_input == "10%"


def test_update_discount_fields() -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id

    store = store.update_item(line_id, "discountEnabled", "true")
    store = store.update_item(line_id, "discount_input", "5%")

    line = store.get(line_id)
    assert line.discount_enabled is True
    assert line.discount_input == "5%"


def test_update_unit_price() -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id

    assert store.update_item(line_id, "unitPrice", "400.50").get(line_id).unit_price == Decimal(
        "400.50"
    )
    with pytest.raises(DraftValidationError):
        store.update_item(line_id, "unit_price", "n/a")


def test_unsupported_field_is_rejected() -> None:
    store = _store_with_catalog_line()
    with pytest.raises(DraftValidationError) as exc:
        store.update_item(store.items[0].id, "name", "Renamed")
    assert "field" in exc.value.field_errors


def test_remove_item() -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id

    assert store.remove_item(line_id).items == ()
    with pytest.raises(LineNotFoundError):
        store.remove_item("missing")


@pytest.mark.parametrize("value", ["1e1000000", "1000000000000", 10**30])
def test_update_unit_price_out_of_range_is_rejected(value: object) -> None:
    store = _store_with_catalog_line()
    line_id = store.items[0].id

    with pytest.raises(DraftValidationError) as exc:
        store.update_item(line_id, "unit_price", value)

    assert exc.value.field_errors == {"unit_price": "Unit price is too large"}


def test_add_manual_line_with_out_of_range_price_is_rejected() -> None:
    with pytest.raises(DraftValidationError) as exc:
        LineItemStore().add_item(
            LineCandidate(product_name="Gold bar", unit_price="1e1000000"),
            center_id="c-1",
            catalog=_catalog(),
        )
    assert exc.value.field_errors["unit_price"] == "Unit price is too large"


@pytest.mark.parametrize("value", ["1e100000000", "1000000000", 10**12])
def test_quantity_out_of_range_is_rejected(value: object) -> None:
    store = _store_with_catalog_line()

    with pytest.raises(DraftValidationError) as exc:
        store.update_item(store.items[0].id, "quantity", value)
    assert exc.value.field_errors == {"quantity": "Quantity is too large"}

    with pytest.raises(DraftValidationError) as exc:
        LineItemStore().add_item(
            LineCandidate(product_name="Bulk", quantity=value, unit_price="1"),
            center_id="c-1",
            catalog=_catalog(),
        )
    assert exc.value.field_errors == {"quantity": "Quantity is too large"}


def test_largest_accepted_values_still_price() -> None:
    store = LineItemStore().add_item(
        LineCandidate(product_name="Bulk", quantity="999999999", unit_price="999999999999.99"),
        center_id="c-1",
        catalog=None,
    )
    line_id = store.items[0].id
    store = store.update_item(line_id, "discount_enabled", True)
    store = store.update_item(line_id, "discount_input", "1e1000000")

    pricing = price_order(store.items)

    assert pricing.discount_total == pricing.line(line_id).gross
    assert pricing.total_amount == 0
