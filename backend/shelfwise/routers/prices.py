"""Price resolution routes."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from shelfwise.db.dependencies import get_db
from shelfwise.routers.common import http_error
from shelfwise.schemas.common import ApiResponse
from shelfwise.schemas.pricing import PriceLookupResponse
from shelfwise.services.errors import CrowdDataError, NotFoundError
from shelfwise.services.fact_store import ensure_store_exists
from shelfwise.services.pricing import resolve_price

router = APIRouter()


@router.get("/stores/{store_id}/prices/{barcode}", response_model=ApiResponse[PriceLookupResponse])
def read_price(
    store_id: int = Path(..., ge=1),
    barcode: str = Path(..., pattern=r"^\d{6,14}$"),
    db: Session = Depends(get_db),
) -> ApiResponse[PriceLookupResponse]:
    """Price for a barcode at a store, propagated from sibling stores when needed."""

    try:
        ensure_store_exists(db, store_id)
    except CrowdDataError as exc:
        raise http_error(exc) from exc

    try:
        result = resolve_price(db, store_id, barcode)
    except NotFoundError:
        return ApiResponse(data=PriceLookupResponse(found=False, message="No price data available"))
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=PriceLookupResponse(found=True, result=result))
