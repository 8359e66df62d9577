"""Shared router dependencies and service-error mapping."""

from fastapi import Header, HTTPException

from shelfwise.services.errors import (
    CrowdDataError,
    NotFoundError,
    RateLimitedError,
    StorageError,
    ValidationError,
)


def get_contributor_id(
    contributor_id: str = Header(..., alias="X-Contributor-Id", min_length=1, max_length=128),
) -> str:
    """Contributor identity supplied by the authenticating proxy."""

    return contributor_id.strip()


def http_error(exc: CrowdDataError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RateLimitedError):
        return HTTPException(
            status_code=429,
            detail=str(exc),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )
    if isinstance(exc, StorageError):
        return HTTPException(status_code=503, detail="Temporarily unavailable, please retry later.")
    return HTTPException(status_code=409, detail=str(exc))
