from __future__ import annotations

import logging
import os
from dataclasses import dataclass


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True, slots=True)
class Settings:
    order_prefix: str
    order_width: int
    currency: str
    document_label: str
    log_level: str
    db_auto_create: bool

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            order_prefix=os.getenv("SALESDESK_ORDER_PREFIX", "SO-"),
            order_width=int(os.getenv("SALESDESK_ORDER_WIDTH", "4")),
            currency=os.getenv("SALESDESK_CURRENCY", "LKR").strip() or "LKR",
            document_label=os.getenv("SALESDESK_DOCUMENT_LABEL", "Sales Order").strip()
            or "Sales Order",
            log_level=os.getenv("SALESDESK_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            db_auto_create=_parse_bool(os.getenv("SALESDESK_DB_AUTO_CREATE", "true")),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
