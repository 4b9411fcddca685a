from __future__ import annotations

import threading

import pytest
from services.api.app.services.backend_base import BackendUnavailableError
from services.api.app.services.backend_mock import MockOrderBackend
from services.api.app.services.order_numbers import (
    OrderNumberAllocator,
    TokenSource,
    derive_order_number,
    increment_order_number,
)


class _Backend:
    """Serves queued next-number responses; an exception in the queue is raised."""

    name = "FAKE"

    def __init__(self, *responses: object) -> None:
        self._responses = list(responses)
        self.calls = 0

    def get_next_order_number(self) -> str:
        self.calls += 1
        value = self._responses.pop(0) if self._responses else ""
        if isinstance(value, Exception):
            raise value
        return str(value)


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("SO-0001", "SO-0002"),
        ("SO-0099", "SO-0100"),
        ("SO-9999", "SO-10000"),
        ("INV-7/A", "INV-8/A"),
        ("NODIGITS", "NODIGITS"),
        ("", ""),
    ],
)
def test_increment_order_number(code: str, expected: str) -> None:
    assert increment_order_number(code) == expected


def test_derive_order_number() -> None:
    assert derive_order_number([]) == "SO-0001"
    assert derive_order_number(["SO-0003", None, "SO-0012", "junk"]) == "SO-0013"
    assert derive_order_number(["7"], prefix="INV", width=6) == "INV000008"


def test_server_token_wins_over_higher_local_guess() -> None:
    allocator = OrderNumberAllocator(_Backend("SO-0009"))

    allocator.observe_orders(["SO-0004"])
    assert allocator.get_preview().value == "SO-0005"

    allocator.refresh()
    preview = allocator.get_preview()
    assert preview.value == "SO-0009"
    assert preview.source is TokenSource.SERVER

    # Later local data does not displace the server token, even if it is higher.
    allocator.observe_orders(["SO-0050"])
    assert allocator.get_preview().value == "SO-0009"


def test_initialize_falls_back_to_known_orders() -> None:
    allocator = OrderNumberAllocator(_Backend(BackendUnavailableError("down")))

    preview = allocator.initialize(lambda: ["SO-0004", "SO-0002"])

    assert preview.value == "SO-0005"
    assert preview.source is TokenSource.LOCAL


def test_initialize_does_not_load_orders_when_server_answers() -> None:
    def _boom() -> list[str]:
        raise AssertionError("known orders should not be consulted")

    allocator = OrderNumberAllocator(_Backend("SO-0042"))
    assert allocator.initialize(_boom).value == "SO-0042"


def test_empty_server_value_is_treated_as_unavailable() -> None:
    allocator = OrderNumberAllocator(_Backend("  "))
    assert allocator.refresh() is None
    assert allocator.get_preview() is None


def test_on_submitted_refreshes_from_server() -> None:
    backend = _Backend("SO-0009", "SO-0010")
    allocator = OrderNumberAllocator(backend)
    allocator.refresh()

    preview = allocator.on_submitted("SO-0009")

    assert preview.value == "SO-0010"
    assert preview.source is TokenSource.SERVER
    assert backend.calls == 2


def test_on_submitted_increments_locally_when_refresh_fails() -> None:
    allocator = OrderNumberAllocator(_Backend("SO-0009", BackendUnavailableError("down")))
    allocator.refresh()

    preview = allocator.on_submitted("SO-0009")

    # The used server token is never offered again.
    assert preview.value == "SO-0010"
    assert preview.source is TokenSource.LOCAL


def test_mock_backend_numbers_follow_submitted_orders() -> None:
    backend = MockOrderBackend()
    allocator = OrderNumberAllocator(backend)
    assert allocator.initialize().value == "SO-0001"

    backend.submit_order(
        {"order_number": "SO-0001", "center_id": "c-1", "customer_id": "cu-1", "items": [{}]}
    )
    assert allocator.on_submitted("SO-0001").value == "SO-0002"


class _SlowBackend:
    """First fetch blocks until released; later fetches answer immediately."""

    name = "SLOW"

    def __init__(self) -> None:
        self.release = threading.Event()
        self.entered = threading.Event()
        self._calls = 0

    def get_next_order_number(self) -> str:
        self._calls += 1
        if self._calls == 1:
            self.entered.set()
            self.release.wait(timeout=5)
            return "SO-0009"
        return "SO-0010"


def test_on_submitted_waits_for_refresh_in_flight() -> None:
    backend = _SlowBackend()
    allocator = OrderNumberAllocator(backend)

    refreshing = threading.Thread(target=allocator.refresh)
    refreshing.start()
    assert backend.entered.wait(timeout=5)

    submitted = threading.Thread(target=allocator.on_submitted, args=("SO-0009",))
    submitted.start()
    submitted.join(timeout=0.2)
    assert submitted.is_alive()

    backend.release.set()
    refreshing.join(timeout=5)
    submitted.join(timeout=5)

    preview = allocator.get_preview()
    assert preview.value == "SO-0010"
    assert preview.source is TokenSource.SERVER
