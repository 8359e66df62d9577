"""Points, leaderboard and ledger activity routes."""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from shelfwise.db.dependencies import get_db
from shelfwise.routers.common import http_error
from shelfwise.schemas.common import ApiResponse
from shelfwise.schemas.contributions import ContributionRead
from shelfwise.schemas.rewards import ContributorSummary, LeaderboardEntry
from shelfwise.services.errors import CrowdDataError
from shelfwise.services.rewards import get_contributor_summary, get_leaderboard, list_store_contributions

router = APIRouter()


@router.get("/contributors/{contributor_id}/points", response_model=ApiResponse[ContributorSummary])
def read_contributor_points(
    contributor_id: str = Path(..., min_length=1, max_length=128),
    db: Session = Depends(get_db),
) -> ApiResponse[ContributorSummary]:
    """Total points, level progress and badges for one contributor."""

    try:
        summary = get_contributor_summary(db, contributor_id)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=summary)


@router.get("/leaderboard", response_model=ApiResponse[list[LeaderboardEntry]])
def read_global_leaderboard(
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> ApiResponse[list[LeaderboardEntry]]:
    try:
        entries = get_leaderboard(db, limit=limit)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=entries)


@router.get("/stores/{store_id}/leaderboard", response_model=ApiResponse[list[LeaderboardEntry]])
def read_store_leaderboard(
    store_id: int = Path(..., ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> ApiResponse[list[LeaderboardEntry]]:
    try:
        entries = get_leaderboard(db, store_id=store_id, limit=limit)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=entries)


@router.get("/stores/{store_id}/contributions", response_model=ApiResponse[list[ContributionRead]])
def read_store_contributions(
    store_id: int = Path(..., ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    include_system: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ContributionRead]]:
    """Recent ledger entries for a store, newest first."""

    try:
        rows = list_store_contributions(db, store_id, limit=limit, include_system=include_system)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=rows)
