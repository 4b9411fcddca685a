from __future__ import annotations

import os

from services.api.app.services.backend_base import OrderBackend
from services.api.app.services.backend_mock import MockOrderBackend


def get_order_backend() -> OrderBackend:
    """Select a backend based on env vars.

    Defaults to the mock backend so tests and local dev are deterministic unless explicitly
    configured otherwise.
    """

    mode = os.getenv("SALESDESK_BACKEND", "mock").strip().lower()

    if mode == "mock":
        return MockOrderBackend(
            prefix=os.getenv("SALESDESK_ORDER_PREFIX", "SO-"),
            width=int(os.getenv("SALESDESK_ORDER_WIDTH", "4")),
        )

    if mode == "http":
        from services.api.app.services.backend_http import HttpOrderBackend

        return HttpOrderBackend.from_env()

    raise ValueError(f"Unknown SALESDESK_BACKEND={mode!r}. Expected mock or http.")
