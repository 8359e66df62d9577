"""Error taxonomy for crowdsourced fact operations."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

_RETRYABLE_SQLSTATES = {"40001", "40P01"}


class CrowdDataError(RuntimeError):
    """Base class for errors surfaced to the HTTP layer."""


class ValidationError(CrowdDataError):
    """Malformed input; rejected before any write."""


class NotFoundError(CrowdDataError):
    """Referenced store, subject or item does not exist, or nothing resolves."""


class RateLimitedError(CrowdDataError):
    """Confirmation cooldown violated."""

    def __init__(self, message: str, *, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class ConflictError(CrowdDataError):
    """Atomic merge could not apply; safe to recompute and retry."""


class StorageError(CrowdDataError):
    """Durable-store failure this layer cannot remediate."""


def translate_db_error(exc: SQLAlchemyError) -> CrowdDataError:
    """Classify a SQLAlchemy failure as retryable conflict or terminal storage error."""

    if isinstance(exc, IntegrityError):
        return ConflictError(f"Concurrent write conflict: {exc.orig}")
    if isinstance(exc, OperationalError):
        sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES or "database is locked" in str(exc.orig):
            return ConflictError(f"Concurrent write conflict: {exc.orig}")
    return StorageError(f"Durable store failure: {exc.__class__.__name__}")
