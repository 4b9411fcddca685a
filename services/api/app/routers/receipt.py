from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from packages.shared.schemas.receipt_v1 import OrderSnapshotV1
from services.api.app.db.deps import get_db
from services.api.app.db.models import Receipt
from services.api.app.models.receipt import ReceiptListItem, ReceiptOut
from services.api.app.services.desk import SalesDesk, get_desk
from services.api.app.services.receipts import render_receipt_text
from sqlalchemy.orm import Session

router = APIRouter()


@router.get("/v1/receipts", response_model=list[ReceiptListItem])
def list_receipts(
    draft_id: str | None = None,
    db: Session = Depends(get_db),
) -> list[ReceiptListItem]:
    query = db.query(Receipt)
    if draft_id:
        query = query.filter(Receipt.draft_id == draft_id)
    rows = query.order_by(Receipt.created_at.desc()).limit(200).all()

    return [
        ReceiptListItem(
            receipt_id=r.id,
            draft_id=r.draft_id,
            order_number=r.order_number,
            total_amount=Decimal(r.total_amount),
            created_at=r.created_at.isoformat(),
        )
        for r in rows
    ]


@router.get("/v1/receipts/{receipt_id}", response_model=ReceiptOut)
def get_receipt(receipt_id: str, db: Session = Depends(get_db)) -> ReceiptOut:
    row = _get_or_404(db, receipt_id)
    return ReceiptOut(
        receipt_id=row.id,
        draft_id=row.draft_id,
        snapshot=OrderSnapshotV1.model_validate(row.snapshot_json),
        created_at=row.created_at.isoformat(),
    )


@router.get("/v1/receipts/{receipt_id}/text", response_class=PlainTextResponse)
def get_receipt_text(
    receipt_id: str,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> str:
    row = _get_or_404(db, receipt_id)
    snapshot = OrderSnapshotV1.model_validate(row.snapshot_json)
    return render_receipt_text(snapshot, currency=desk.settings.currency)


def _get_or_404(db: Session, receipt_id: str) -> Receipt:
    row = db.get(Receipt, receipt_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return row
