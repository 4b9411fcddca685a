"""SalesDesk API service entrypoint."""

from fastapi import FastAPI

from services.api.app.config import Settings, configure_logging
from services.api.app.db.init_db import init_db
from services.api.app.routers.draft import router as draft_router
from services.api.app.routers.receipt import router as receipt_router
from services.api.app.routers.reference import router as reference_router

app = FastAPI(title="SalesDesk API")

app.include_router(reference_router)
app.include_router(draft_router)
app.include_router(receipt_router)


@app.on_event("startup")
def _startup() -> None:
    configure_logging(Settings.from_env())
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
