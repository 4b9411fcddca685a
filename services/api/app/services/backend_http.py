from __future__ import annotations

import json
import logging
import os
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from services.api.app.models.reference import Center, Customer, DiscountLevel, ProductStock
from services.api.app.services.backend_base import (
    BackendError,
    BackendRejectedError,
    BackendUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _HttpConfig:
    base_url: str
    token: str | None
    timeout_s: float


def _first(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _unwrap(payload: Any) -> Any:
    # Responses arrive either bare or wrapped as {"data": ...}.
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _as_list(payload: Any) -> list[dict[str, Any]]:
    data = _unwrap(payload)
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    return []


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def _json_default(value: Any) -> str:
    if isinstance(value, (Decimal, date)):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _field_errors(body: Any) -> dict[str, str]:
    errors = body.get("errors") if isinstance(body, dict) else None
    if not isinstance(errors, dict):
        return {}
    out: dict[str, str] = {}
    for field, messages in errors.items():
        if isinstance(messages, list):
            out[str(field)] = "; ".join(str(m) for m in messages)
        else:
            out[str(field)] = str(messages)
    return out


class HttpOrderBackend:
    """Order backend over its JSON REST API.

    Env vars:
    - SALESDESK_BACKEND=http
    - SALESDESK_BACKEND_URL (required)
    - SALESDESK_BACKEND_TOKEN (optional bearer token)
    - SALESDESK_BACKEND_TIMEOUT_S (default: 30)
    """

    name = "HTTP"

    def __init__(self, cfg: _HttpConfig) -> None:
        self._cfg = cfg

    @classmethod
    def from_env(cls) -> HttpOrderBackend:
        base_url = os.getenv("SALESDESK_BACKEND_URL", "").strip().rstrip("/")
        if not base_url:
            raise ValueError("SALESDESK_BACKEND_URL is required when SALESDESK_BACKEND=http")

        token = os.getenv("SALESDESK_BACKEND_TOKEN", "").strip() or None
        timeout_s = float(os.getenv("SALESDESK_BACKEND_TIMEOUT_S", "30"))
        return cls(_HttpConfig(base_url=base_url, token=token, timeout_s=timeout_s))

    def get_next_order_number(self) -> str:
        payload = self._request("GET", "/salesOrder/next")
        data = _unwrap(payload)
        if isinstance(data, dict):
            return str(data.get("next") or "")
        return ""

    def list_centers(self) -> list[Center]:
        out: list[Center] = []
        for row in _as_list(self._request("GET", "/centers")):
            center_id = _first(row, "id", "center_id", "value", "name")
            name = _first(row, "name", "center_name", "title", "value")
            if center_id is not None and name:
                out.append(Center(id=str(center_id), name=str(name)))
        return out

    def list_customers(self) -> list[Customer]:
        out: list[Customer] = []
        for row in _as_list(self._request("GET", "/customers")):
            name = _first(row, "name", "customer_name")
            if name is None:
                name = f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()
            customer_id = _first(row, "id", "customer_id", "email", "name")
            if customer_id is None or not name:
                continue
            out.append(
                Customer(
                    id=str(customer_id),
                    name=str(name),
                    email=str(_first(row, "email", "contact_email", default="")),
                    address=str(
                        _first(row, "address", "customer_address", "location", "city", default="")
                    ),
                    telephone=str(
                        _first(
                            row,
                            "phone",
                            "telephone",
                            "phone_number",
                            "contact_number",
                            "mobile",
                            default="",
                        )
                    ),
                )
            )
        return out

    def list_discount_levels(self) -> list[DiscountLevel]:
        out: list[DiscountLevel] = []
        for row in _as_list(self._request("GET", "/discount-levels")):
            if row.get("id") is None:
                continue
            try:
                out.append(DiscountLevel.model_validate({**row, "id": str(row["id"])}))
            except ValidationError as e:
                logger.warning("Skipping discount level %s: %s", row["id"], e)
        return out

    def get_catalog_for_center(self, center_id: str) -> list[ProductStock]:
        """Flatten /inventory-details (products with per-center stock) for one center."""

        center_id = str(center_id)
        out: list[ProductStock] = []
        for product in _as_list(self._request("GET", "/inventory-details")):
            stocks = product.get("inventory")
            if not isinstance(stocks, list):
                continue
            for stock in stocks:
                center = stock.get("center") or {}
                if str(center.get("id")) != center_id:
                    continue

                product_id = str(
                    _first(product, "id", "product_id", default=stock.get("product_id"))
                )
                available = _first(
                    stock,
                    "available_quantity",
                    "availableQuantity",
                    "available_qty",
                    "availableQty",
                    "qty",
                    default=0,
                )
                batch = _first(stock, "batch_number", "batchNumber")
                out.append(
                    ProductStock(
                        inventory_stock_id=str(
                            _first(stock, "inventory_stock_id", default=f"{product_id}-{center_id}")
                        ),
                        product_id=product_id,
                        center_id=center_id,
                        name=str(_first(product, "name", "product_name", default="Unnamed")),
                        sku=str(_first(product, "code", "sku", "barcode", default="")),
                        unit_price=_decimal(_first(product, "cost", "min_price", "price")),
                        mrp=_decimal(_first(product, "mrp", "price", "min_price")),
                        min_price=_decimal(_first(product, "min_price", "minPrice", "cost")),
                        available_qty=int(_decimal(available)),
                        batch_number=str(batch) if batch is not None else None,
                    )
                )
        return out

    def list_orders(self) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/salesOrder"))

    def submit_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        created = _unwrap(self._request("POST", "/salesOrder", payload))
        if not isinstance(created, dict):
            return dict(payload)
        return created

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        url = f"{self._cfg.base_url}{path}"
        req = urllib.request.Request(url, method=method)
        req.add_header("Accept", "application/json")
        if self._cfg.token:
            req.add_header("Authorization", f"Bearer {self._cfg.token}")

        data = None
        if body is not None:
            req.add_header("Content-Type", "application/json")
            data = json.dumps(body, default=_json_default).encode("utf-8")

        logger.debug("%s %s", method, url)
        try:
            with urllib.request.urlopen(req, data=data, timeout=self._cfg.timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace")
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None

            if e.code in (400, 422):
                message = parsed.get("message") if isinstance(parsed, dict) else None
                raise BackendRejectedError(
                    str(message or f"HTTP {e.code}"), field_errors=_field_errors(parsed)
                ) from e
            if e.code >= 500:
                raise BackendUnavailableError(f"HTTP {e.code} from {path}") from e
            raise BackendError(f"HTTP {e.code} from {path}: {raw[:200]}") from e
        except (urllib.error.URLError, socket.timeout, TimeoutError) as e:
            raise BackendUnavailableError(str(e)) from e

        if not raw.strip():
            return None
        try:
            return json.loads(raw, parse_float=Decimal)
        except ValueError as e:
            raise BackendError(f"Unexpected non-JSON response from {path}") from e
