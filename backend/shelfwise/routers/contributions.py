"""Contribution submission routes."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from shelfwise.db.dependencies import get_db
from shelfwise.routers.common import get_contributor_id, http_error
from shelfwise.schemas.common import ApiResponse
from shelfwise.schemas.contributions import (
    AisleScanCreate,
    AisleScanResult,
    ContributionCreate,
    ContributionResult,
)
from shelfwise.services.contributions import submit_aisle_scan, submit_contribution
from shelfwise.services.errors import CrowdDataError

router = APIRouter()


@router.post("/contributions", response_model=ApiResponse[ContributionResult])
def create_contribution(
    payload: ContributionCreate,
    contributor_id: str = Depends(get_contributor_id),
    db: Session = Depends(get_db),
) -> ApiResponse[ContributionResult]:
    """Scan, enter, confirm or report one fact."""

    try:
        result = submit_contribution(
            db,
            payload.subject,
            contributor_id,
            payload.kind,
            payload.value,
            payload.coordinates,
        )
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=result)


@router.post("/stores/{store_id}/aisles/scan", response_model=ApiResponse[AisleScanResult])
def scan_aisle(
    payload: AisleScanCreate,
    store_id: int = Path(..., ge=1),
    contributor_id: str = Depends(get_contributor_id),
    db: Session = Depends(get_db),
) -> ApiResponse[AisleScanResult]:
    """Record an aisle-sign scan and return departments recognised on the sign."""

    try:
        result = submit_aisle_scan(
            db,
            store_id,
            payload.aisle_number,
            contributor_id,
            sign_text=payload.sign_text,
            coordinates=payload.coordinates,
        )
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=result)
