"""Contribution submission: validate, merge the fact atomically, then record ledger effects."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from time import perf_counter

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shelfwise.config import Settings, get_settings
from shelfwise.db.dialect import upsert_insert
from shelfwise.models.confirmation_receipt import ConfirmationReceipt
from shelfwise.schemas.contributions import (
    AisleScanResult,
    ContributionResult,
    SuggestedDepartment,
)
from shelfwise.schemas.facts import (
    VALUE_TYPE_BY_SUBJECT,
    AisleSubject,
    AisleValue,
    Coordinates,
    FactRead,
    SubjectKey,
)
from shelfwise.scoring.confidence import ContributionKind, ScoringPolicy, ensure_utc, utcnow
from shelfwise.scoring.rewards import points_for
from shelfwise.services import fact_store
from shelfwise.services.departments import match_departments
from shelfwise.services.errors import (
    ConflictError,
    CrowdDataError,
    NotFoundError,
    RateLimitedError,
    StorageError,
    ValidationError,
    translate_db_error,
)
from shelfwise.services.ledger import ContributionReceipt, record_contribution_effects

logger = logging.getLogger(__name__)

_receipts = ConfirmationReceipt.__table__


def submit_contribution(
    db: Session,
    subject: SubjectKey,
    contributor_id: str,
    kind: ContributionKind,
    value: BaseModel | None = None,
    coordinates: Coordinates | None = None,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> ContributionResult:
    """Apply one contribution and award its points.

    The fact merge commits in its own transaction and is retried on conflicts. Points,
    bonuses and badges are written afterwards; if that second step fails the merged fact
    stands and the result reports ``ledger_recorded=False``.
    """

    active_settings = settings or get_settings()
    current_time = now or utcnow()
    contributor = _validate_submission(subject, contributor_id, kind, value)
    policy = ScoringPolicy.from_settings(active_settings)

    total_started = perf_counter()
    fact_read, confidence_delta, attempt = _merge_with_retries(
        db,
        subject,
        contributor,
        kind,
        value,
        policy=policy,
        settings=active_settings,
        now=current_time,
    )
    merge_ms = (perf_counter() - total_started) * 1000.0

    receipt = ContributionReceipt(
        contribution_uid=uuid.uuid4().hex,
        subject=subject,
        contributor_id=contributor,
        kind=kind,
        fact_id=fact_read.id,
        confidence_delta=confidence_delta,
        points=points_for(kind),
        created_at=current_time,
        coordinates=coordinates,
    )
    result = ContributionResult(
        contribution_uid=receipt.contribution_uid,
        fact=fact_read,
        points_awarded=receipt.points,
    )

    started = perf_counter()
    try:
        outcome = record_contribution_effects(db, receipt, settings=active_settings)
    except CrowdDataError:
        logger.exception(
            "crowd.ledger_failed subject=%s contributor_id=%s contribution_uid=%s",
            subject.describe(),
            contributor,
            receipt.contribution_uid,
        )
        result.ledger_recorded = False
    else:
        result.bonuses = outcome.bonuses
        result.badges = outcome.badges
    ledger_ms = (perf_counter() - started) * 1000.0

    logger.info(
        (
            "crowd.contribution_applied subject=%s kind=%s attempt=%d confidence=%.2f "
            "delta=%.2f merge_ms=%.2f ledger_ms=%.2f total_ms=%.2f ledger_recorded=%s"
        ),
        subject.describe(),
        kind.value,
        attempt,
        fact_read.confidence,
        confidence_delta,
        merge_ms,
        ledger_ms,
        (perf_counter() - total_started) * 1000.0,
        result.ledger_recorded,
    )
    return result


def submit_aisle_scan(
    db: Session,
    store_id: int,
    aisle_number: str,
    contributor_id: str,
    *,
    sign_text: str | None = None,
    coordinates: Coordinates | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> AisleScanResult:
    """Record an aisle-sign scan and suggest departments read from the sign text."""

    try:
        subject = AisleSubject(store_id=store_id, aisle_number=aisle_number)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid aisle: {exc.errors()[0]['msg']}") from exc
    label = " ".join(sign_text.split())[:255] if sign_text and sign_text.strip() else None
    contribution = submit_contribution(
        db,
        subject,
        contributor_id,
        ContributionKind.SCAN,
        AisleValue(label=label),
        coordinates,
        settings=settings,
        now=now,
    )
    suggestions = [
        SuggestedDepartment(key=item.department_name, display_name=item.display_name)
        for item in match_departments(sign_text)
    ]
    return AisleScanResult(contribution=contribution, suggested_departments=suggestions)


def _validate_submission(
    subject: SubjectKey,
    contributor_id: str,
    kind: ContributionKind,
    value: BaseModel | None,
) -> str:
    contributor = (contributor_id or "").strip()
    if not contributor:
        raise ValidationError("A contributor id is required.")
    if kind is ContributionKind.PROPAGATION:
        raise ValidationError("Propagation events cannot be submitted by contributors.")
    if kind is ContributionKind.ENTRANCE:
        raise ValidationError("Entrances are submitted through the store entrance endpoint.")
    if value is not None:
        if kind is ContributionKind.CONFIRM:
            raise ValidationError("A confirmation cannot carry a value; report a correction instead.")
        expected = VALUE_TYPE_BY_SUBJECT[subject.subject_type]
        if not isinstance(value, expected):
            raise ValidationError(
                f"A {subject.subject_type} subject needs a {expected.__name__} value."
            )
    elif subject.subject_type == "price" and kind in (ContributionKind.SCAN, ContributionKind.MANUAL):
        raise ValidationError("A price submission must include the observed price.")
    return contributor


def _merge_with_retries(
    db: Session,
    subject: SubjectKey,
    contributor_id: str,
    kind: ContributionKind,
    value: BaseModel | None,
    *,
    policy: ScoringPolicy,
    settings: Settings,
    now: datetime,
) -> tuple[FactRead, float, int]:
    max_attempts = max(1, settings.max_merge_attempts)
    attempt = 1
    while True:
        try:
            fact_read, delta = _merge_once(
                db,
                subject,
                contributor_id,
                kind,
                value,
                policy=policy,
                settings=settings,
                now=now,
            )
            return fact_read, delta, attempt
        except ConflictError as exc:
            db.rollback()
            if attempt >= max_attempts:
                raise StorageError(
                    f"Could not apply contribution to {subject.describe()} after {attempt} attempts"
                ) from exc
            logger.warning(
                "crowd.merge_conflict subject=%s kind=%s attempt=%d error=%s",
                subject.describe(),
                kind.value,
                attempt,
                exc,
            )
            attempt += 1
        except CrowdDataError:
            db.rollback()
            raise


def _merge_once(
    db: Session,
    subject: SubjectKey,
    contributor_id: str,
    kind: ContributionKind,
    value: BaseModel | None,
    *,
    policy: ScoringPolicy,
    settings: Settings,
    now: datetime,
) -> tuple[FactRead, float]:
    """One transaction: existence checks, cooldown claim and the atomic fact merge."""

    fact_store.ensure_store_exists(db, subject.store_id)
    parent = subject.parent()
    if parent is not None and fact_store.find_fact(db, parent) is None:
        raise NotFoundError(f"Parent {parent.describe()} must be mapped before {subject.describe()}")
    if kind is ContributionKind.CONFIRM:
        _claim_confirmation_window(
            db,
            subject,
            contributor_id,
            cooldown=timedelta(hours=settings.confirm_cooldown_hours),
            now=now,
        )
    fact = fact_store.apply_contribution(db, subject, kind, value, policy=policy, now=now)
    fact_read = fact_store.fact_to_read(fact, policy=policy, now=now)
    delta = fact.last_confidence_delta
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc
    return fact_read, delta


def _claim_confirmation_window(
    db: Session,
    subject: SubjectKey,
    contributor_id: str,
    *,
    cooldown: timedelta,
    now: datetime,
) -> None:
    """Claim the contributor's confirmation slot for a subject in one conditional upsert."""

    stmt = upsert_insert(db, _receipts).values(
        contributor_id=contributor_id,
        subject_type=subject.subject_type,
        store_id=subject.store_id,
        subject_id=subject.subject_id,
        confirmed_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[
            _receipts.c.contributor_id,
            _receipts.c.subject_type,
            _receipts.c.store_id,
            _receipts.c.subject_id,
        ],
        set_={"confirmed_at": stmt.excluded.confirmed_at},
        where=_receipts.c.confirmed_at <= now - cooldown,
    ).returning(_receipts.c.id)
    try:
        claimed = db.execute(stmt).scalar_one_or_none()
        if claimed is not None:
            return
        last_confirmed_at = db.scalar(
            select(ConfirmationReceipt.confirmed_at).where(
                ConfirmationReceipt.contributor_id == contributor_id,
                ConfirmationReceipt.subject_type == subject.subject_type,
                ConfirmationReceipt.store_id == subject.store_id,
                ConfirmationReceipt.subject_id == subject.subject_id,
            )
        )
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc

    retry_after = cooldown
    if last_confirmed_at is not None:
        retry_after = ensure_utc(last_confirmed_at) + cooldown - ensure_utc(now)
    raise RateLimitedError(
        f"{subject.describe()} was already confirmed by this contributor; try again later.",
        retry_after_seconds=max(1, math.ceil(retry_after.total_seconds())),
    )
