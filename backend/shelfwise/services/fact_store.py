"""Fact store: atomic merge-upserts and lookups over crowdsourced facts.

Every write here is a single conditional SQL statement whose arithmetic reads the
existing row (``ON CONFLICT DO UPDATE`` / ``UPDATE ... RETURNING``), so concurrent
contributions for the same subject never lose a confidence or verification delta.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from shelfwise.config import Settings, get_settings
from shelfwise.db.dialect import upsert_insert
from shelfwise.models.fact import Fact
from shelfwise.models.store import Store
from shelfwise.propagation.planner import PropagationLink
from shelfwise.schemas.facts import (
    FACT_VALUE_ADAPTER,
    VALUE_TYPE_BY_SUBJECT,
    FactRead,
    SubjectKey,
)
from shelfwise.scoring.confidence import (
    CONFIDENCE_MAX,
    CONFIDENCE_MIN,
    ContributionKind,
    FactOrigin,
    ScoringPolicy,
    confidence_delta,
    decayed_confidence,
    increments_verified_count,
    utcnow,
)
from shelfwise.services.errors import NotFoundError, ValidationError, translate_db_error

_facts = Fact.__table__
_SUBJECT_COLUMNS = [_facts.c.subject_type, _facts.c.store_id, _facts.c.subject_id]
_CLEARED_PROVENANCE = {
    "source_fact_id": None,
    "source_store_id": None,
    "distance_km": None,
    "confidence_multiplier": None,
}


def fact_to_read(fact: Fact, *, policy: ScoringPolicy, now: datetime | None = None) -> FactRead:
    """Serialize one ORM fact, attaching its read-time decayed confidence."""

    current_time = now or utcnow()
    return FactRead(
        id=fact.id,
        subject_type=fact.subject_type,
        store_id=fact.store_id,
        subject_id=fact.subject_id,
        value=FACT_VALUE_ADAPTER.validate_python(fact.value_json),
        confidence=fact.confidence,
        effective_confidence=decayed_confidence(
            fact.confidence,
            fact.last_verified_at or fact.updated_at,
            current_time,
            policy,
        ),
        verified_count=fact.verified_count,
        origin=FactOrigin(fact.origin),
        source_fact_id=fact.source_fact_id,
        source_store_id=fact.source_store_id,
        distance_km=fact.distance_km,
        confidence_multiplier=fact.confidence_multiplier,
        last_verified_at=fact.last_verified_at,
        updated_at=fact.updated_at,
        created_at=fact.created_at,
    )


def ensure_store_exists(db: Session, store_id: int) -> Store:
    """Return the store or raise NotFoundError."""

    try:
        store = db.scalar(select(Store).where(Store.id == store_id))
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def find_fact(db: Session, subject: SubjectKey) -> Fact | None:
    """Return the fact row for a subject, any origin, without confidence filtering."""

    try:
        return db.scalar(
            select(Fact)
            .where(*_subject_filter(subject))
            .execution_options(populate_existing=True)
        )
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc


def get_fact(
    db: Session,
    subject: SubjectKey,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> FactRead:
    """Single-subject lookup; low-confidence facts are still returned."""

    fact = find_fact(db, subject)
    if fact is None:
        raise NotFoundError(f"No fact recorded for {subject.describe()}")
    policy = ScoringPolicy.from_settings(settings or get_settings())
    return fact_to_read(fact, policy=policy, now=now)


def apply_contribution(
    db: Session,
    subject: SubjectKey,
    kind: ContributionKind,
    value: BaseModel | None,
    *,
    policy: ScoringPolicy,
    now: datetime,
) -> Fact:
    """Merge one contribution into the subject's fact with a single atomic statement.

    Scans and manual submissions upsert (creating the fact at the initial confidence);
    confirmations and reports require an existing fact. A report carrying a replacement
    value is treated as a new claim and resets confidence to the initial value.
    """

    _check_value_matches(subject, value)
    try:
        if kind in (ContributionKind.SCAN, ContributionKind.MANUAL):
            fact_id = _merge_observation(db, subject, kind, value, policy=policy, now=now)
        elif kind is ContributionKind.CONFIRM:
            fact_id = _apply_confirmation(db, subject, policy=policy, now=now)
        elif kind is ContributionKind.REPORT:
            fact_id = _apply_report(db, subject, value, policy=policy, now=now)
        else:
            raise ValidationError(f"{kind.value} contributions do not merge into facts.")
        if fact_id is None:
            raise NotFoundError(f"No fact recorded for {subject.describe()}")
        return _load_fact(db, fact_id)
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc


def insert_propagated_fact(
    db: Session,
    subject: SubjectKey,
    link: PropagationLink,
    *,
    value_json: dict[str, object],
    source_last_verified_at: datetime | None,
    now: datetime,
) -> Fact | None:
    """Cache a propagated fact only if the subject has no fact at all.

    Returns None when a row already exists (for example a direct fact that committed
    while the propagation was being computed); that row is never touched.
    """

    stmt = (
        upsert_insert(db, _facts)
        .values(
            subject_type=subject.subject_type,
            store_id=subject.store_id,
            subject_id=subject.subject_id,
            value_json=value_json,
            confidence=_clamp_python(link.confidence),
            verified_count=_verification_step(ContributionKind.PROPAGATION),
            origin=FactOrigin.PROPAGATED.value,
            source_fact_id=link.source_fact_id,
            source_store_id=link.source_store_id,
            distance_km=link.distance_km,
            confidence_multiplier=link.confidence_multiplier,
            revision=1,
            last_confidence_delta=_clamp_python(link.confidence),
            last_verified_at=source_last_verified_at,
            updated_at=now,
            created_at=now,
        )
        .on_conflict_do_nothing(index_elements=_SUBJECT_COLUMNS)
        .returning(_facts.c.id)
    )
    try:
        fact_id = db.execute(stmt).scalar_one_or_none()
        if fact_id is None:
            return None
        return _load_fact(db, fact_id)
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc


def refresh_propagated_fact(
    db: Session,
    fact_id: int,
    expected_revision: int,
    link: PropagationLink,
    *,
    value_json: dict[str, object],
    source_last_verified_at: datetime | None,
    now: datetime,
) -> Fact | None:
    """Compare-and-set refresh of a stale propagated cache row.

    Applies only while the row is still propagated and unchanged since it was read;
    returns None otherwise.
    """

    stmt = (
        update(_facts)
        .where(
            _facts.c.id == fact_id,
            _facts.c.origin == FactOrigin.PROPAGATED.value,
            _facts.c.revision == expected_revision,
        )
        .values(
            value_json=value_json,
            confidence=_clamp_python(link.confidence),
            last_confidence_delta=_clamp_python(link.confidence) - _facts.c.confidence,
            source_fact_id=link.source_fact_id,
            source_store_id=link.source_store_id,
            distance_km=link.distance_km,
            confidence_multiplier=link.confidence_multiplier,
            revision=_facts.c.revision + 1,
            last_verified_at=source_last_verified_at,
            updated_at=now,
        )
        .returning(_facts.c.id)
    )
    try:
        updated_id = db.execute(stmt).scalar_one_or_none()
        if updated_id is None:
            return None
        return _load_fact(db, updated_id)
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc


def list_facts_for_store(
    db: Session,
    store_id: int,
    min_confidence: float | None = None,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> Iterator[FactRead]:
    """Lazily stream a store's facts at or above a confidence threshold.

    Ordered by confidence descending, then subject type and identifier. The store and
    threshold are validated eagerly; rows are fetched in batches as the iterator advances.
    """

    active_settings = settings or get_settings()
    threshold = active_settings.display_min_confidence if min_confidence is None else min_confidence
    if not CONFIDENCE_MIN <= threshold <= CONFIDENCE_MAX:
        raise ValidationError("min_confidence must be between 0 and 100")
    ensure_store_exists(db, store_id)
    policy = ScoringPolicy.from_settings(active_settings)
    return _iter_store_facts(db, store_id, threshold, policy=policy, now=now or utcnow())


def _iter_store_facts(
    db: Session,
    store_id: int,
    threshold: float,
    *,
    policy: ScoringPolicy,
    now: datetime,
) -> Iterator[FactRead]:
    stmt = (
        select(Fact)
        .where(Fact.store_id == store_id, Fact.confidence >= threshold)
        .order_by(
            Fact.confidence.desc(),
            Fact.subject_type.asc(),
            Fact.subject_id.asc(),
            Fact.id.asc(),
        )
        .execution_options(yield_per=200)
    )
    try:
        for fact in db.scalars(stmt):
            yield fact_to_read(fact, policy=policy, now=now)
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc


def _merge_observation(
    db: Session,
    subject: SubjectKey,
    kind: ContributionKind,
    value: BaseModel | None,
    *,
    policy: ScoringPolicy,
    now: datetime,
) -> int:
    if value is None and subject.subject_type == "price":
        raise ValidationError("A price submission must include the observed price.")
    initial_value = value if value is not None else VALUE_TYPE_BY_SUBJECT[subject.subject_type]()
    initial = _clamp_python(policy.initial)

    stmt = upsert_insert(db, _facts).values(
        subject_type=subject.subject_type,
        store_id=subject.store_id,
        subject_id=subject.subject_id,
        value_json=initial_value.model_dump(mode="json"),
        confidence=initial,
        verified_count=_verification_step(kind),
        origin=FactOrigin.DIRECT.value,
        revision=1,
        last_confidence_delta=initial,
        last_verified_at=now,
        updated_at=now,
        created_at=now,
    )
    # A direct observation supersedes a propagated cache row as a brand-new claim.
    was_propagated = _facts.c.origin == FactOrigin.PROPAGATED.value
    merged = case(
        (was_propagated, initial),
        else_=_clamped(_facts.c.confidence + confidence_delta(kind, policy)),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=_SUBJECT_COLUMNS,
        set_={
            "confidence": merged,
            "last_confidence_delta": merged - _facts.c.confidence,
            "verified_count": _facts.c.verified_count + _verification_step(kind),
            "value_json": stmt.excluded.value_json if value is not None else _facts.c.value_json,
            "origin": FactOrigin.DIRECT.value,
            **_CLEARED_PROVENANCE,
            "revision": _facts.c.revision + 1,
            "last_verified_at": now,
            "updated_at": now,
        },
    ).returning(_facts.c.id)
    return db.execute(stmt).scalar_one()


def _apply_confirmation(
    db: Session,
    subject: SubjectKey,
    *,
    policy: ScoringPolicy,
    now: datetime,
) -> int | None:
    merged = _clamped(_facts.c.confidence + confidence_delta(ContributionKind.CONFIRM, policy))
    stmt = (
        update(_facts)
        .where(*_subject_columns_filter(subject))
        .values(
            confidence=merged,
            last_confidence_delta=merged - _facts.c.confidence,
            verified_count=_facts.c.verified_count + _verification_step(ContributionKind.CONFIRM),
            origin=FactOrigin.DIRECT.value,
            **_CLEARED_PROVENANCE,
            revision=_facts.c.revision + 1,
            last_verified_at=now,
            updated_at=now,
        )
        .returning(_facts.c.id)
    )
    return db.execute(stmt).scalar_one_or_none()


def _apply_report(
    db: Session,
    subject: SubjectKey,
    replacement: BaseModel | None,
    *,
    policy: ScoringPolicy,
    now: datetime,
) -> int | None:
    if replacement is None:
        merged = _clamped(_facts.c.confidence + confidence_delta(ContributionKind.REPORT, policy))
        values: dict[str, object] = {
            "confidence": merged,
            "last_confidence_delta": merged - _facts.c.confidence,
        }
    else:
        initial = _clamp_python(policy.initial)
        values = {
            "value_json": replacement.model_dump(mode="json"),
            "confidence": initial,
            "last_confidence_delta": initial - _facts.c.confidence,
            "origin": FactOrigin.DIRECT.value,
            **_CLEARED_PROVENANCE,
            "last_verified_at": now,
        }
    stmt = (
        update(_facts)
        .where(*_subject_columns_filter(subject))
        .values(
            **values,
            verified_count=_facts.c.verified_count + _verification_step(ContributionKind.REPORT),
            revision=_facts.c.revision + 1,
            updated_at=now,
        )
        .returning(_facts.c.id)
    )
    return db.execute(stmt).scalar_one_or_none()


def _load_fact(db: Session, fact_id: int) -> Fact:
    return db.scalars(
        select(Fact).where(Fact.id == fact_id).execution_options(populate_existing=True)
    ).one()


def _check_value_matches(subject: SubjectKey, value: BaseModel | None) -> None:
    if value is None:
        return
    expected = VALUE_TYPE_BY_SUBJECT[subject.subject_type]
    if not isinstance(value, expected):
        raise ValidationError(
            f"A {subject.subject_type} subject needs a {expected.__name__}, got {type(value).__name__}."
        )


def _subject_filter(subject: SubjectKey) -> list[ColumnElement[bool]]:
    return [
        Fact.subject_type == subject.subject_type,
        Fact.store_id == subject.store_id,
        Fact.subject_id == subject.subject_id,
    ]


def _subject_columns_filter(subject: SubjectKey) -> list[ColumnElement[bool]]:
    return [
        _facts.c.subject_type == subject.subject_type,
        _facts.c.store_id == subject.store_id,
        _facts.c.subject_id == subject.subject_id,
    ]


def _clamped(expr: ColumnElement[float]) -> ColumnElement[float]:
    return case(
        (expr > CONFIDENCE_MAX, CONFIDENCE_MAX),
        (expr < CONFIDENCE_MIN, CONFIDENCE_MIN),
        else_=expr,
    )


def _clamp_python(value: float) -> float:
    return max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, float(value)))


def _verification_step(kind: ContributionKind) -> int:
    return 1 if increments_verified_count(kind) else 0
