from __future__ import annotations

import argparse
import sys

from services.api.app.config import Settings, configure_logging
from services.api.app.models.sales_order import LineCandidate
from services.api.app.services import drafts
from services.api.app.services.backend_base import BackendError
from services.api.app.services.desk import get_desk
from services.api.app.services.errors import SalesOrderError
from services.api.app.services.pricing import price_order
from services.api.app.services.receipts import render_receipt_text


def _parse_item(text: str) -> LineCandidate:
    # product[:quantity[:unit_price]]
    parts = text.split(":")
    product = parts[0].strip()
    quantity = parts[1] if len(parts) > 1 else 1
    unit_price = parts[2] if len(parts) > 2 else None
    if product.startswith("p-"):
        return LineCandidate(product_id=product, quantity=quantity, unit_price=unit_price)
    return LineCandidate(product_name=product, quantity=quantity, unit_price=unit_price)


def main() -> int:
    parser = argparse.ArgumentParser(description="Compose and submit one sales order")
    parser.add_argument("--center-id", default="c-1")
    parser.add_argument("--customer-id", default="cu-1")
    parser.add_argument("--discount-level-id", default=None)
    parser.add_argument("--ref", default="")
    parser.add_argument(
        "--item",
        action="append",
        default=[],
        help="product id or name, optionally with :quantity[:unit_price]",
    )
    parser.add_argument("--dry-run", action="store_true", help="price the order without submitting")
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings)
    desk = get_desk()

    try:
        draft = desk.new_draft()
        draft = drafts.set_center(draft, args.center_id, desk.centers())
        draft = drafts.set_customer(draft, args.customer_id, desk.customers())
        draft = drafts.set_header(draft, reference_number=args.ref)

        resolver = desk.resolver()
        if args.discount_level_id:
            draft = drafts.select_discount_level(draft, args.discount_level_id, resolver)

        catalog = desk.catalog(args.center_id)
        for text in args.item or ["p-rice:1"]:
            draft = drafts.add_item(draft, _parse_item(text), catalog=catalog, resolver=resolver)

        if args.dry_run:
            pricing = price_order(draft.items)
            for warning in pricing.warnings:
                print(f"warning: {warning}", file=sys.stderr)
            print(f"{draft.order_number}: total {pricing.total_amount} ({len(draft.items)} lines)")
            return 0

        result = desk.submitter_for("demo").submit(
            draft, discount_level=resolver.get(draft.discount_level_id)
        )
    except (SalesOrderError, BackendError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(render_receipt_text(result.snapshot, currency=settings.currency), end="")
    print(f"Next order number: {result.next_draft.order_number}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
