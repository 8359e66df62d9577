"""Fact lookup and store listing routes."""

from itertools import islice

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from shelfwise.db.dependencies import get_db
from shelfwise.routers.common import http_error
from shelfwise.schemas.common import ApiResponse
from shelfwise.schemas.facts import FactLookupRequest, FactRead
from shelfwise.services.errors import CrowdDataError
from shelfwise.services.fact_store import get_fact, list_facts_for_store

router = APIRouter()


@router.post("/facts/lookup", response_model=ApiResponse[FactRead])
def lookup_fact(
    payload: FactLookupRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[FactRead]:
    """Return one subject's fact regardless of its confidence."""

    try:
        fact = get_fact(db, payload.subject)
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=fact)


@router.get("/stores/{store_id}/facts", response_model=ApiResponse[list[FactRead]])
def read_store_facts(
    store_id: int = Path(..., ge=1),
    min_confidence: float | None = Query(default=None, ge=0, le=100),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> ApiResponse[list[FactRead]]:
    """Store facts at or above the threshold, most confident first."""

    try:
        facts = list(islice(list_facts_for_store(db, store_id, min_confidence), limit))
    except CrowdDataError as exc:
        raise http_error(exc) from exc
    return ApiResponse(data=facts)
