from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException
from services.api.app.services.backend_base import BackendError
from services.api.app.services.errors import (
    DraftValidationError,
    LineNotFoundError,
    StockExceededError,
    SubmissionError,
    SubmissionInProgressError,
)


def raise_http_error(e: Exception) -> NoReturn:
    if isinstance(e, StockExceededError):
        raise HTTPException(
            status_code=409,
            detail={
                "message": str(e),
                "field_errors": e.field_errors,
                "requested": e.requested,
                "available": e.available,
            },
        ) from e

    if isinstance(e, DraftValidationError):
        raise HTTPException(status_code=422, detail={"field_errors": e.field_errors}) from e

    if isinstance(e, LineNotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, SubmissionInProgressError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, SubmissionError):
        if e.field_errors:
            raise HTTPException(
                status_code=422,
                detail={"message": str(e), "field_errors": e.field_errors},
            ) from e
        raise HTTPException(status_code=502, detail=str(e)) from e

    if isinstance(e, BackendError):
        raise HTTPException(status_code=502, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e
