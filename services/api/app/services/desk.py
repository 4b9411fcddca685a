from __future__ import annotations

import logging
import threading
from datetime import date

from services.api.app.config import Settings
from services.api.app.models.reference import Center, Customer, DiscountLevel
from services.api.app.models.sales_order import DraftOrder
from services.api.app.services.backend_base import BackendError, OrderBackend
from services.api.app.services.backend_factory import get_order_backend
from services.api.app.services.catalog import StockCatalogView
from services.api.app.services.discounts import DiscountPolicyResolver
from services.api.app.services.order_numbers import OrderNumberAllocator, OrderNumberToken
from services.api.app.services.receipts import ReceiptSnapshotBuilder
from services.api.app.services.submitter import OrderSubmitter

logger = logging.getLogger(__name__)


class SalesDesk:
    """Process-wide collaborators shared by all drafts.

    Reference data is fetched once and cached; the catalog is fetched on every use since it
    carries live stock.
    """

    def __init__(self, backend: OrderBackend, settings: Settings) -> None:
        self.backend = backend
        self.settings = settings
        self.allocator = OrderNumberAllocator(
            backend, prefix=settings.order_prefix, width=settings.order_width
        )
        self.receipts = ReceiptSnapshotBuilder(document_label=settings.document_label)

        self._allocator_ready = False
        self._centers: list[Center] | None = None
        self._customers: list[Customer] | None = None
        self._levels: list[DiscountLevel] | None = None
        self._submitters: dict[str, OrderSubmitter] = {}
        self._lock = threading.Lock()

    def order_number_preview(self) -> OrderNumberToken | None:
        with self._lock:
            if not self._allocator_ready:
                self.allocator.initialize(self._known_order_numbers)
                self._allocator_ready = True
        return self.allocator.get_preview()

    def new_draft(self, *, created_by_id: str | None = None) -> DraftOrder:
        preview = self.order_number_preview()
        return DraftOrder.empty(
            preview.value if preview else "",
            order_date=date.today(),
            created_by_id=created_by_id,
        )

    def centers(self) -> list[Center]:
        if self._centers is None:
            self._centers = self.backend.list_centers()
        return self._centers

    def customers(self) -> list[Customer]:
        if self._customers is None:
            self._customers = self.backend.list_customers()
        return self._customers

    def discount_levels(self) -> list[DiscountLevel]:
        if self._levels is None:
            self._levels = self.backend.list_discount_levels()
        return self._levels

    def resolver(self) -> DiscountPolicyResolver:
        return DiscountPolicyResolver(self.discount_levels())

    def catalog(self, center_id: str) -> StockCatalogView:
        stocks = self.backend.get_catalog_for_center(center_id)
        return StockCatalogView.for_center(center_id, stocks)

    def submitter_for(self, draft_id: str) -> OrderSubmitter:
        # One submitter per draft: a draft cannot be submitted twice concurrently.
        with self._lock:
            submitter = self._submitters.get(draft_id)
            if submitter is None:
                submitter = OrderSubmitter(
                    self.backend, self.allocator, snapshot_builder=self.receipts
                )
                self._submitters[draft_id] = submitter
            return submitter

    def _known_order_numbers(self) -> list[str | None]:
        try:
            orders = self.backend.list_orders()
        except BackendError as e:
            logger.warning("Could not load prior orders for numbering: %s", e)
            return []
        return [o.get("order_number") or o.get("orderNumber") for o in orders]


_DESK: SalesDesk | None = None
_DESK_LOCK = threading.Lock()


def get_desk() -> SalesDesk:
    """Return the cached desk, creating it from env vars on first use."""

    global _DESK
    with _DESK_LOCK:
        if _DESK is None:
            _DESK = SalesDesk(get_order_backend(), Settings.from_env())
        return _DESK


def reset_desk() -> None:
    global _DESK
    with _DESK_LOCK:
        _DESK = None
