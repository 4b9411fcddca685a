from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from services.api.app.services.backend_base import BackendUnavailableError
from services.api.app.services.desk import get_desk, reset_desk


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    db_path = tmp_path / "salesdesk_api.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("SALESDESK_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("SALESDESK_BACKEND", "mock")
    monkeypatch.delenv("SALESDESK_ORDER_PREFIX", raising=False)
    monkeypatch.delenv("SALESDESK_CURRENCY", raising=False)
    reset_desk()

    from services.api.app.main import app

    with TestClient(app) as c:
        yield c

    reset_desk()


def _new_draft(client: TestClient) -> dict:
    resp = client.post("/v1/drafts", json={"created_by_id": "u-1"})
    assert resp.status_code == 200
    return resp.json()


def _ready_draft(client: TestClient) -> str:
    draft_id = _new_draft(client)["draft_id"]
    resp = client.patch(
        f"/v1/drafts/{draft_id}",
        json={"center_id": "c-1", "customer_id": "cu-1", "reference_number": "PO-9"},
    )
    assert resp.status_code == 200
    return draft_id


def _event_types(client: TestClient, draft_id: str) -> set[str]:
    resp = client.get(f"/v1/drafts/{draft_id}/events")
    assert resp.status_code == 200
    return {e["event_type"] for e in resp.json()}


def test_reference_data(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}

    number = client.get("/v1/order-number").json()
    assert number == {"value": "SO-0001", "source": "server"}

    centers = client.get("/v1/centers").json()
    assert [c["name"] for c in centers] == ["Colombo", "Kandy"]

    levels = client.get("/v1/discount-levels").json()
    assert {lvl["id"] for lvl in levels} == {"d-1", "d-2", "d-3"}

    catalog = client.get("/v1/centers/c-1/catalog").json()
    assert {p["product_id"] for p in catalog} == {"p-rice", "p-dhal", "p-tea"}

    hits = client.get("/v1/centers/c-2/catalog", params={"q": "oil"}).json()
    assert [p["sku"] for p in hits] == ["OIL-1"]


def test_create_draft_uses_server_order_number(client: TestClient) -> None:
    out = _new_draft(client)

    assert out["order_number_source"] == "server"
    assert out["draft"]["order_number"] == "SO-0001"
    assert out["draft"]["created_by_id"] == "u-1"
    assert out["draft"]["items"] == []
    assert Decimal(out["pricing"]["total_amount"]) == 0

    fetched = client.get(f"/v1/drafts/{out['draft_id']}").json()
    assert fetched["draft"] == out["draft"]


def test_compose_price_and_submit_order(client: TestClient) -> None:
    draft_id = _ready_draft(client)

    resp = client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-rice", "quantity": 3})
    assert resp.status_code == 200
    assert Decimal(resp.json()["pricing"]["subtotal"]) == Decimal("7350")

    resp = client.put(f"/v1/drafts/{draft_id}/discount-level", json={"discount_level_id": "d-2"})
    assert resp.status_code == 200
    out = resp.json()
    assert out["draft"]["items"][0]["discount_input"] == "10%"
    assert Decimal(out["pricing"]["discount_total"]) == Decimal("735")
    assert Decimal(out["pricing"]["total_amount"]) == Decimal("6615")

    resp = client.post(
        f"/v1/drafts/{draft_id}/items",
        json={"product_name": "Delivery", "unit_price": "500"},
    )
    assert resp.status_code == 200
    manual = resp.json()["draft"]["items"][1]
    assert manual["kind"] == "MANUAL"
    assert manual["discount_enabled"] is True
    assert Decimal(resp.json()["pricing"]["total_amount"]) == Decimal("7065")

    resp = client.post(f"/v1/drafts/{draft_id}/submit")
    assert resp.status_code == 200
    body = resp.json()

    snapshot = body["receipt"]["snapshot"]
    assert snapshot["order_number"] == "SO-0001"
    assert snapshot["customer_name"] == "Perera Stores"
    assert snapshot["discount_level_label"] == "Wholesale"
    assert Decimal(snapshot["total_amount"]) == Decimal("7065")
    assert len(snapshot["items"]) == 2

    next_draft = body["draft"]["draft"]
    assert next_draft["order_number"] == "SO-0002"
    assert next_draft["items"] == []
    assert next_draft["customer_id"] is None
    assert next_draft["discount_level_id"] is None

    assert client.get(f"/v1/drafts/{draft_id}").json()["draft"] == next_draft
    assert client.get("/v1/order-number").json()["value"] == "SO-0002"

    receipt_id = body["receipt"]["receipt_id"]
    listed = client.get("/v1/receipts").json()
    assert [r["receipt_id"] for r in listed] == [receipt_id]
    assert listed[0]["order_number"] == "SO-0001"

    detail = client.get(f"/v1/receipts/{receipt_id}").json()
    assert detail["snapshot"] == snapshot

    text = client.get(f"/v1/receipts/{receipt_id}/text")
    assert text.status_code == 200
    assert text.headers["content-type"].startswith("text/plain")
    assert "Order No : SO-0001" in text.text
    assert "Total          : LKR 7,065.00" in text.text

    assert {
        "DRAFT_CREATED",
        "DRAFT_UPDATED",
        "LINE_ADDED",
        "DISCOUNT_LEVEL_SELECTED",
        "ORDER_SUBMITTED",
        "DRAFT_RESET",
    } <= _event_types(client, draft_id)


def test_quantity_over_stock_is_clamped(client: TestClient) -> None:
    draft_id = _ready_draft(client)
    out = client.post(
        f"/v1/drafts/{draft_id}/items", json={"product_id": "p-dhal", "quantity": 2}
    ).json()
    line_id = out["draft"]["items"][0]["id"]

    resp = client.patch(
        f"/v1/drafts/{draft_id}/items/{line_id}", json={"field": "quantity", "value": 20}
    )
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["requested"] == 20
    assert detail["available"] == 5
    assert "quantity" in detail["field_errors"]

    stored = client.get(f"/v1/drafts/{draft_id}").json()
    assert stored["draft"]["items"][0]["quantity"] == 5
    assert "STOCK_EXCEEDED" in _event_types(client, draft_id)


def test_adding_over_stock_is_rejected(client: TestClient) -> None:
    draft_id = _ready_draft(client)

    resp = client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-dhal", "quantity": 6})

    assert resp.status_code == 409
    assert client.get(f"/v1/drafts/{draft_id}").json()["draft"]["items"] == []


def test_changing_center_clears_items(client: TestClient) -> None:
    draft_id = _ready_draft(client)
    client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-tea"})

    out = client.patch(f"/v1/drafts/{draft_id}", json={"center_id": "c-2"}).json()

    assert out["draft"]["center_name"] == "Kandy"
    assert out["draft"]["items"] == []
    # Untouched header fields survive.
    assert out["draft"]["customer_id"] == "cu-1"


def test_line_edits_and_removal(client: TestClient) -> None:
    draft_id = _ready_draft(client)
    out = client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-tea"}).json()
    line_id = out["draft"]["items"][0]["id"]

    client.patch(
        f"/v1/drafts/{draft_id}/items/{line_id}", json={"field": "discountEnabled", "value": True}
    )
    resp = client.patch(
        f"/v1/drafts/{draft_id}/items/{line_id}", json={"field": "discountInput", "value": "80"}
    )
    assert resp.status_code == 200
    assert Decimal(resp.json()["pricing"]["total_amount"]) == Decimal("1100")

    resp = client.patch(
        f"/v1/drafts/{draft_id}/items/{line_id}", json={"field": "name", "value": "x"}
    )
    assert resp.status_code == 422

    resp = client.delete(f"/v1/drafts/{draft_id}/items/{line_id}")
    assert resp.status_code == 200
    assert resp.json()["draft"]["items"] == []

    resp = client.delete(f"/v1/drafts/{draft_id}/items/{line_id}")
    assert resp.status_code == 404


def test_submit_incomplete_draft_is_rejected(client: TestClient) -> None:
    draft_id = _new_draft(client)["draft_id"]

    resp = client.post(f"/v1/drafts/{draft_id}/submit")

    assert resp.status_code == 422
    field_errors = resp.json()["detail"]["field_errors"]
    assert {"center", "customer", "items"} <= set(field_errors)
    assert client.get("/v1/receipts").json() == []


def test_backend_failure_keeps_draft(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    draft_id = _ready_draft(client)
    client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-rice"})
    before = client.get(f"/v1/drafts/{draft_id}").json()

    def _down(payload: dict) -> dict:
        raise BackendUnavailableError("connection refused")

    monkeypatch.setattr(get_desk().backend, "submit_order", _down)

    resp = client.post(f"/v1/drafts/{draft_id}/submit")

    assert resp.status_code == 502
    assert client.get(f"/v1/drafts/{draft_id}").json() == before
    assert client.get("/v1/receipts").json() == []
    assert "SUBMISSION_FAILED" in _event_types(client, draft_id)


def test_unknown_ids(client: TestClient) -> None:
    assert client.get("/v1/drafts/nope").status_code == 404
    assert client.get("/v1/drafts/nope/events").status_code == 404
    assert client.get("/v1/receipts/nope").status_code == 404

    draft_id = _new_draft(client)["draft_id"]
    resp = client.patch(f"/v1/drafts/{draft_id}", json={"customer_id": "cu-404"})
    assert resp.status_code == 422
    assert "customer" in resp.json()["detail"]["field_errors"]

    resp = client.put(f"/v1/drafts/{draft_id}/discount-level", json={"discount_level_id": "d-9"})
    assert resp.status_code == 422


def test_events_are_listed_in_the_order_they_were_written(client: TestClient) -> None:
    draft_id = _ready_draft(client)
    client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-tea"})
    assert client.post(f"/v1/drafts/{draft_id}/submit").status_code == 200

    events = client.get(f"/v1/drafts/{draft_id}/events").json()

    assert [e["event_type"] for e in events] == [
        "DRAFT_CREATED",
        "DRAFT_UPDATED",
        "LINE_ADDED",
        "ORDER_SUBMITTED",
        "DRAFT_RESET",
    ]
    ids = [int(e["id"]) for e in events]
    assert ids == sorted(ids)


def test_huge_unit_price_is_rejected_and_draft_stays_usable(client: TestClient) -> None:
    draft_id = _ready_draft(client)
    out = client.post(f"/v1/drafts/{draft_id}/items", json={"product_id": "p-tea"}).json()
    line_id = out["draft"]["items"][0]["id"]

    resp = client.patch(
        f"/v1/drafts/{draft_id}/items/{line_id}",
        json={"field": "unit_price", "value": "1e1000000"},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["field_errors"] == {"unit_price": "Unit price is too large"}

    resp = client.patch(
        f"/v1/drafts/{draft_id}/items/{line_id}",
        json={"field": "quantity", "value": "1e100000000"},
    )
    assert resp.status_code == 422

    assert client.get(f"/v1/drafts/{draft_id}").status_code == 200
    assert client.post(f"/v1/drafts/{draft_id}/submit").status_code == 200
