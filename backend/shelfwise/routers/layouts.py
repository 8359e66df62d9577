"""Store layout, product search and department reference routes."""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from shelfwise.db.dependencies import get_db
from shelfwise.routers.common import get_contributor_id, http_error
from shelfwise.schemas.common import ApiResponse
from shelfwise.schemas.layouts import (
    DepartmentReferenceRead,
    EntranceCreate,
    EntranceResult,
    ProductSearchRead,
    StoreLayoutRead,
)
from shelfwise.services.departments import list_departments
from shelfwise.services.entrances import add_store_entrance
from shelfwise.services.errors import CrowdDataError
from shelfwise.services.layouts import find_product_locations, get_store_layout

router = APIRouter()


@router.get("/stores/{store_id}/layout", response_model=ApiResponse[StoreLayoutRead])
def read_store_layout(
    store_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[StoreLayoutRead]:
    try:
        layout = get_store_layout(db, store_id)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=layout)


@router.post(
    "/stores/{store_id}/entrances",
    response_model=ApiResponse[EntranceResult],
    status_code=201,
)
def create_store_entrance(
    payload: EntranceCreate,
    store_id: int = Path(..., ge=1),
    contributor_id: str = Depends(get_contributor_id),
    db: Session = Depends(get_db),
) -> ApiResponse[EntranceResult]:
    try:
        result = add_store_entrance(
            db,
            store_id,
            contributor_id,
            payload.entrance_type,
            position_description=payload.position_description,
            coordinates=payload.coordinates,
        )
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=result)


@router.get("/stores/{store_id}/find-product", response_model=ApiResponse[ProductSearchRead])
def find_product(
    store_id: int = Path(..., ge=1),
    product: str = Query(default=""),
    db: Session = Depends(get_db),
) -> ApiResponse[ProductSearchRead]:
    """Which aisles likely hold a product."""

    try:
        result = find_product_locations(db, store_id, product)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=result)


@router.get("/departments/reference", response_model=ApiResponse[list[DepartmentReferenceRead]])
def read_department_reference() -> ApiResponse[list[DepartmentReferenceRead]]:
    return ApiResponse(
        data=[
            DepartmentReferenceRead(
                department_name=item.department_name,
                display_name=item.display_name,
                icon=item.icon,
                color=item.color,
                aliases=list(item.aliases),
                sort_order=item.sort_order,
            )
            for item in list_departments()
        ]
    )
