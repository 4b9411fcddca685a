from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.models.receipt import OrderNumberOut
from services.api.app.models.reference import Center, Customer, DiscountLevel, ProductStock
from services.api.app.routers.errors import raise_http_error
from services.api.app.services.backend_base import BackendError
from services.api.app.services.desk import SalesDesk, get_desk

router = APIRouter()


@router.get("/v1/order-number", response_model=OrderNumberOut)
def get_order_number(desk: SalesDesk = Depends(get_desk)) -> OrderNumberOut:
    preview = desk.order_number_preview()
    if preview is None:
        return OrderNumberOut(value=None, source=None)
    return OrderNumberOut(value=preview.value, source=preview.source.value)


@router.get("/v1/centers", response_model=list[Center])
def list_centers(desk: SalesDesk = Depends(get_desk)) -> list[Center]:
    try:
        return desk.centers()
    except BackendError as e:
        raise_http_error(e)


@router.get("/v1/customers", response_model=list[Customer])
def list_customers(desk: SalesDesk = Depends(get_desk)) -> list[Customer]:
    try:
        return desk.customers()
    except BackendError as e:
        raise_http_error(e)


@router.get("/v1/discount-levels", response_model=list[DiscountLevel])
def list_discount_levels(desk: SalesDesk = Depends(get_desk)) -> list[DiscountLevel]:
    try:
        return desk.discount_levels()
    except BackendError as e:
        raise_http_error(e)


@router.get("/v1/centers/{center_id}/catalog", response_model=list[ProductStock])
def get_catalog(
    center_id: str,
    q: str | None = None,
    desk: SalesDesk = Depends(get_desk),
) -> list[ProductStock]:
    try:
        catalog = desk.catalog(center_id)
    except BackendError as e:
        raise_http_error(e)

    if q is None:
        return list(catalog.products)
    return catalog.search(q)
