from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1, EventV1
from services.api.app.db.deps import get_db
from services.api.app.db.models import Draft, EventLog, Receipt
from services.api.app.models.draft import (
    DiscountLevelSelectRequest,
    DraftCreateRequest,
    DraftHeaderUpdateRequest,
    DraftOut,
    LineUpdateRequest,
    PricedLineOut,
    PricingOut,
)
from services.api.app.models.receipt import ReceiptOut, SubmitResponse
from services.api.app.models.sales_order import DraftOrder, LineCandidate
from services.api.app.routers.errors import raise_http_error
from services.api.app.services import drafts as commands
from services.api.app.services.backend_base import BackendError
from services.api.app.services.desk import SalesDesk, get_desk
from services.api.app.services.errors import SalesOrderError, StockExceededError, SubmissionError
from services.api.app.services.pricing import price_order
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/v1/drafts", response_model=DraftOut)
def create_draft(
    payload: DraftCreateRequest,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    draft = desk.new_draft(created_by_id=payload.created_by_id)

    row = Draft(
        id=uuid4().hex,
        order_number=draft.order_number,
        created_by_id=draft.created_by_id,
        draft_payload_json=draft.model_dump(mode="json"),
    )
    db.add(row)
    _log_event(
        db,
        draft_id=row.id,
        entity_type=EntityTypeV1.DRAFT,
        entity_id=row.id,
        event_type=EventTypeV1.DRAFT_CREATED,
        event_payload={"order_number": draft.order_number},
    )
    db.commit()

    return _draft_out(row.id, draft, desk)


@router.get("/v1/drafts/{draft_id}", response_model=DraftOut)
def get_draft(
    draft_id: str,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    _row, draft = _load(db, draft_id)
    return _draft_out(draft_id, draft, desk)


@router.patch("/v1/drafts/{draft_id}", response_model=DraftOut)
def update_draft_header(
    draft_id: str,
    payload: DraftHeaderUpdateRequest,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    row, draft = _load(db, draft_id)
    fields = payload.model_fields_set

    try:
        if "center_id" in fields:
            draft = commands.set_center(draft, payload.center_id, desk.centers())
        if "customer_id" in fields:
            draft = commands.set_customer(draft, payload.customer_id, desk.customers())
        draft = commands.set_header(
            draft,
            order_date=payload.order_date,
            reference_number=payload.reference_number,
        )
    except (SalesOrderError, BackendError) as e:
        raise_http_error(e)

    _save(row, draft)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.DRAFT,
        entity_id=draft_id,
        event_type=EventTypeV1.DRAFT_UPDATED,
        event_payload=payload.model_dump(mode="json", exclude_unset=True),
    )
    db.commit()

    return _draft_out(draft_id, draft, desk)


@router.post("/v1/drafts/{draft_id}/items", response_model=DraftOut)
def add_line_item(
    draft_id: str,
    payload: LineCandidate,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    row, draft = _load(db, draft_id)

    try:
        catalog = desk.catalog(draft.center_id) if draft.center_id else None
        draft = commands.add_item(draft, payload, catalog=catalog, resolver=desk.resolver())
    except StockExceededError as e:
        _log_event(
            db,
            draft_id=draft_id,
            entity_type=EntityTypeV1.DRAFT,
            entity_id=draft_id,
            event_type=EventTypeV1.STOCK_EXCEEDED,
            event_payload={"requested": e.requested, "available": e.available},
        )
        db.commit()
        raise_http_error(e)
    except (SalesOrderError, BackendError) as e:
        raise_http_error(e)

    line = draft.items[-1]
    _save(row, draft)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.LINE_ITEM,
        entity_id=line.id,
        event_type=EventTypeV1.LINE_ADDED,
        event_payload=line.model_dump(mode="json"),
    )
    db.commit()

    return _draft_out(draft_id, draft, desk)


@router.patch("/v1/drafts/{draft_id}/items/{line_id}", response_model=DraftOut)
def update_line_item(
    draft_id: str,
    line_id: str,
    payload: LineUpdateRequest,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    row, draft = _load(db, draft_id)

    try:
        draft = commands.update_item(draft, line_id, payload.field, payload.value)
    except StockExceededError as e:
        # The line is kept at its ceiling.
        if e.draft is not None:
            _save(row, e.draft)
        _log_event(
            db,
            draft_id=draft_id,
            entity_type=EntityTypeV1.LINE_ITEM,
            entity_id=line_id,
            event_type=EventTypeV1.STOCK_EXCEEDED,
            event_payload={"requested": e.requested, "available": e.available},
        )
        db.commit()
        raise_http_error(e)
    except SalesOrderError as e:
        raise_http_error(e)

    _save(row, draft)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.LINE_ITEM,
        entity_id=line_id,
        event_type=EventTypeV1.LINE_UPDATED,
        event_payload=jsonable_encoder({"field": payload.field, "value": payload.value}),
    )
    db.commit()

    return _draft_out(draft_id, draft, desk)


@router.delete("/v1/drafts/{draft_id}/items/{line_id}", response_model=DraftOut)
def remove_line_item(
    draft_id: str,
    line_id: str,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    row, draft = _load(db, draft_id)

    try:
        draft = commands.remove_item(draft, line_id)
    except SalesOrderError as e:
        raise_http_error(e)

    _save(row, draft)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.LINE_ITEM,
        entity_id=line_id,
        event_type=EventTypeV1.LINE_REMOVED,
        event_payload={},
    )
    db.commit()

    return _draft_out(draft_id, draft, desk)


@router.put("/v1/drafts/{draft_id}/discount-level", response_model=DraftOut)
def select_discount_level(
    draft_id: str,
    payload: DiscountLevelSelectRequest,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> DraftOut:
    row, draft = _load(db, draft_id)

    try:
        draft = commands.select_discount_level(draft, payload.discount_level_id, desk.resolver())
    except (SalesOrderError, BackendError) as e:
        raise_http_error(e)

    _save(row, draft)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.DRAFT,
        entity_id=draft_id,
        event_type=EventTypeV1.DISCOUNT_LEVEL_SELECTED,
        event_payload={"discount_level_id": draft.discount_level_id},
    )
    db.commit()

    return _draft_out(draft_id, draft, desk)


@router.post("/v1/drafts/{draft_id}/submit", response_model=SubmitResponse)
def submit_draft(
    draft_id: str,
    db: Session = Depends(get_db),
    desk: SalesDesk = Depends(get_desk),
) -> SubmitResponse:
    row, draft = _load(db, draft_id)

    try:
        level = desk.resolver().get(draft.discount_level_id)
        result = desk.submitter_for(draft_id).submit(draft, discount_level=level)
    except SubmissionError as e:
        _log_event(
            db,
            draft_id=draft_id,
            entity_type=EntityTypeV1.DRAFT,
            entity_id=draft_id,
            event_type=EventTypeV1.SUBMISSION_FAILED,
            event_payload={"error": str(e), "field_errors": e.field_errors},
        )
        db.commit()
        raise_http_error(e)
    except (SalesOrderError, BackendError) as e:
        raise_http_error(e)

    snapshot = result.snapshot
    receipt = Receipt(
        id=uuid4().hex,
        draft_id=draft_id,
        order_number=snapshot.order_number,
        total_amount=str(snapshot.total_amount),
        snapshot_json=snapshot.model_dump(mode="json"),
        confirmed_order_json=jsonable_encoder(result.confirmed),
    )
    db.add(receipt)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.RECEIPT,
        entity_id=receipt.id,
        event_type=EventTypeV1.ORDER_SUBMITTED,
        event_payload={
            "order_number": snapshot.order_number,
            "total_amount": str(snapshot.total_amount),
        },
    )

    # Only now, with the order confirmed, does the draft start over.
    _save(row, result.next_draft)
    _log_event(
        db,
        draft_id=draft_id,
        entity_type=EntityTypeV1.DRAFT,
        entity_id=draft_id,
        event_type=EventTypeV1.DRAFT_RESET,
        event_payload={"order_number": result.next_draft.order_number},
    )
    db.commit()

    return SubmitResponse(
        receipt=ReceiptOut(
            receipt_id=receipt.id,
            draft_id=draft_id,
            snapshot=snapshot,
            created_at=(receipt.created_at or datetime.utcnow()).isoformat(),
        ),
        draft=_draft_out(draft_id, result.next_draft, desk),
    )


@router.get("/v1/drafts/{draft_id}/events", response_model=list[EventV1])
def list_draft_events(draft_id: str, db: Session = Depends(get_db)) -> list[EventV1]:
    if db.get(Draft, draft_id) is None:
        raise HTTPException(status_code=404, detail="Draft not found")

    rows = (
        db.query(EventLog)
        .filter(EventLog.draft_id == draft_id)
        .order_by(EventLog.created_at.asc(), EventLog.id.asc())
        .limit(500)
        .all()
    )
    return [
        EventV1(
            id=str(ev.id),
            draft_id=ev.draft_id,
            entity_type=EntityTypeV1(ev.entity_type),
            entity_id=ev.entity_id,
            event_type=EventTypeV1(ev.event_type),
            payload=ev.event_payload_json or {},
            created_at=ev.created_at.isoformat(),
        )
        for ev in rows
    ]


def _load(db: Session, draft_id: str) -> tuple[Draft, DraftOrder]:
    row = db.get(Draft, draft_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return row, DraftOrder.model_validate(row.draft_payload_json or {})


def _save(row: Draft, draft: DraftOrder) -> None:
    row.order_number = draft.order_number
    row.draft_payload_json = draft.model_dump(mode="json")
    row.updated_at = datetime.utcnow()


def _draft_out(draft_id: str, draft: DraftOrder, desk: SalesDesk) -> DraftOut:
    pricing = price_order(draft.items)

    source = None
    preview = desk.allocator.get_preview()
    if preview is not None and preview.value == draft.order_number:
        source = preview.source.value

    return DraftOut(
        draft_id=draft_id,
        order_number_source=source,
        draft=draft,
        pricing=PricingOut(
            lines=[
                PricedLineOut(
                    line_id=p.line_id,
                    name=p.name,
                    quantity=p.quantity,
                    unit_price=p.unit_price,
                    gross=p.gross,
                    discount_amount=p.discount_amount,
                    net=p.net,
                )
                for p in pricing.lines
            ],
            subtotal=pricing.subtotal,
            discount_total=pricing.discount_total,
            total_amount=pricing.total_amount,
            warnings=list(pricing.warnings),
        ),
    )


def _log_event(
    db: Session,
    *,
    draft_id: str,
    entity_type: EntityTypeV1,
    entity_id: str,
    event_type: EventTypeV1,
    event_payload: dict,
) -> None:
    logger.debug("draft %s: %s %s", draft_id, event_type.value, entity_id)
    db.add(
        EventLog(
            draft_id=draft_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            event_type=event_type.value,
            event_payload_json=event_payload,
        )
    )
