"""Order number previews.

The backend is the authority on order numbers. A token it hands out always wins over one
derived locally, even when the local guess is higher: the backend sees orders this client
cannot. Local derivation only fills the gap while no server token is current.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from services.api.app.services.backend_base import BackendError, OrderBackend
from services.api.app.services.errors import AllocationError

logger = logging.getLogger(__name__)

_TRAILING_DIGITS = re.compile(r"^(.*?)(\d+)([^0-9]*)$")
_NON_DIGITS = re.compile(r"[^0-9]")


class TokenSource(str, Enum):
    SERVER = "server"
    LOCAL = "local"


@dataclass(frozen=True, slots=True)
class OrderNumberToken:
    value: str
    source: TokenSource


def increment_order_number(code: str) -> str:
    """Increment the trailing digit run, keeping its zero padding: SO-0099 -> SO-0100."""

    if not code:
        return ""
    match = _TRAILING_DIGITS.match(str(code))
    if match is None:
        return str(code)
    prefix, digits, suffix = match.groups()
    return f"{prefix}{str(int(digits) + 1).zfill(len(digits))}{suffix}"


def derive_order_number(
    order_numbers: Iterable[str | None],
    *,
    prefix: str = "SO-",
    width: int = 4,
) -> str:
    nums: list[int] = []
    for value in order_numbers:
        digits = _NON_DIGITS.sub("", str(value or ""))
        if digits:
            nums.append(int(digits))

    next_num = max(nums) + 1 if nums else 1
    return f"{prefix}{str(next_num).zfill(width)}"


class OrderNumberAllocator:
    def __init__(self, backend: OrderBackend, *, prefix: str = "SO-", width: int = 4) -> None:
        self._backend = backend
        self._prefix = prefix
        self._width = width
        self._server: OrderNumberToken | None = None
        self._local: OrderNumberToken | None = None
        # Serializes token updates across request threads.
        self._lock = threading.RLock()

    def get_preview(self) -> OrderNumberToken | None:
        return self._server or self._local

    def initialize(
        self, known_order_numbers: Callable[[], Iterable[str | None]] | None = None
    ) -> OrderNumberToken | None:
        """Fetch a server token; derive one from known orders only if that fails."""

        with self._lock:
            if self.refresh() is None:
                known = known_order_numbers() if known_order_numbers is not None else ()
                self.observe_orders(known)
            return self.get_preview()

    def refresh(self) -> OrderNumberToken | None:
        with self._lock:
            try:
                value = self._fetch()
            except AllocationError as e:
                logger.warning("Next order number unavailable, using local fallback: %s", e)
                return None

            self._server = OrderNumberToken(value=value, source=TokenSource.SERVER)
            logger.debug("Order number preview from server: %s", value)
            return self._server

    def observe_orders(self, order_numbers: Iterable[str | None]) -> OrderNumberToken | None:
        """Recompute the local fallback from previously loaded orders.

        Has no visible effect while a server token is current.
        """

        value = derive_order_number(order_numbers, prefix=self._prefix, width=self._width)
        with self._lock:
            self._local = OrderNumberToken(value=value, source=TokenSource.LOCAL)
            return self.get_preview()

    def on_submitted(self, confirmed: str) -> OrderNumberToken | None:
        with self._lock:
            # The current server token has been used up by this order.
            self._server = None

            if self.refresh() is None:
                next_value = increment_order_number(confirmed) or derive_order_number(
                    (), prefix=self._prefix, width=self._width
                )
                self._local = OrderNumberToken(value=next_value, source=TokenSource.LOCAL)

            preview = self.get_preview()
        logger.info(
            "Order %s confirmed; next preview %s",
            confirmed,
            preview.value if preview else None,
        )
        return preview

    def _fetch(self) -> str:
        try:
            value = self._backend.get_next_order_number()
        except BackendError as e:
            raise AllocationError(str(e)) from e

        value = (value or "").strip()
        if not value:
            raise AllocationError("backend returned an empty order number")
        return value
