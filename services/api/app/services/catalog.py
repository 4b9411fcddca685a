from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from services.api.app.models.reference import ProductStock


@dataclass(frozen=True, slots=True)
class StockCatalogView:
    """Read-only view of what can be sold from one center."""

    center_id: str
    products: tuple[ProductStock, ...] = ()

    @classmethod
    def for_center(cls, center_id: str, stocks: Iterable[ProductStock]) -> StockCatalogView:
        return cls(
            center_id=center_id,
            products=tuple(s for s in stocks if str(s.center_id) == str(center_id)),
        )

    def find(self, *, product_id: str | None = None, name: str = "") -> ProductStock | None:
        """Resolve a user selection.

        An explicit id is matched against the stock entry id first, then the product id.
        Without an id the product name must match exactly, ignoring case.
        """

        if product_id:
            key = str(product_id)
            for stock in self.products:
                if stock.inventory_stock_id == key:
                    return stock
            for stock in self.products:
                if stock.product_id == key:
                    return stock
            return None

        wanted = name.strip().lower()
        if not wanted:
            return None
        for stock in self.products:
            if stock.name.lower() == wanted:
                return stock
        return None

    def search(self, query: str, *, limit: int = 8) -> list[ProductStock]:
        q = query.strip().lower()
        if not q:
            return list(self.products[:limit])

        hits = [s for s in self.products if q in s.name.lower() or q in s.sku.lower()]
        return hits[:limit]
