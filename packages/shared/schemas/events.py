"""Shared event schema (v1).

The service stores an append-only log of draft commands. Clients can consume these events
to render an audit trail for a draft.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    DRAFT = "Draft"
    LINE_ITEM = "LineItem"
    RECEIPT = "Receipt"


class EventTypeV1(str, Enum):
    DRAFT_CREATED = "DRAFT_CREATED"
    DRAFT_UPDATED = "DRAFT_UPDATED"
    LINE_ADDED = "LINE_ADDED"
    LINE_UPDATED = "LINE_UPDATED"
    LINE_REMOVED = "LINE_REMOVED"
    STOCK_EXCEEDED = "STOCK_EXCEEDED"
    DISCOUNT_LEVEL_SELECTED = "DISCOUNT_LEVEL_SELECTED"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    ORDER_SUBMITTED = "ORDER_SUBMITTED"
    DRAFT_RESET = "DRAFT_RESET"


class EventV1(BaseModel):
    id: str
    draft_id: str

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
