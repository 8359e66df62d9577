"""Price resolution: exact fact, then same-chain propagation, then cross-chain fallback."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime, timedelta
from time import perf_counter

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shelfwise.config import Settings, get_settings
from shelfwise.db.dialect import dialect_name
from shelfwise.models.fact import Fact
from shelfwise.models.store import Store
from shelfwise.propagation.geo import chain_token, haversine_km, haversine_km_expr
from shelfwise.propagation.planner import (
    MAX_PROPAGATION_DISTANCE_KM,
    PropagationLink,
    PropagationStrategy,
    SiblingCandidate,
    plan_chain_link,
    plan_fallback_link,
)
from shelfwise.schemas.facts import FACT_VALUE_ADAPTER, PriceSubject, PriceValue
from shelfwise.schemas.pricing import PriceResult
from shelfwise.scoring.confidence import FactOrigin, ScoringPolicy, decayed_confidence, ensure_utc, utcnow
from shelfwise.services import fact_store
from shelfwise.services.errors import CrowdDataError, NotFoundError, ValidationError, translate_db_error
from shelfwise.services.ledger import record_propagation_event

logger = logging.getLogger(__name__)


def resolve_price(
    db: Session,
    target_store_id: int,
    barcode: str,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> PriceResult:
    """Resolve a store's price for a barcode.

    A fact recorded for the store wins (a cached propagated fact is reused while it is
    younger than the freshness window). Otherwise the nearest same-chain store with a
    fresh direct price is used, scaled by its distance band, and failing that the most
    recently updated direct price anywhere. Derived prices are cached on the target store
    without ever overwriting a direct fact.
    """

    active_settings = settings or get_settings()
    current_time = now or utcnow()
    policy = ScoringPolicy.from_settings(active_settings)
    try:
        subject = PriceSubject(store_id=target_store_id, barcode=barcode)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid barcode: {barcode!r}") from exc

    total_started = perf_counter()
    target = fact_store.ensure_store_exists(db, target_store_id)
    existing = fact_store.find_fact(db, subject)
    freshness = timedelta(days=active_settings.price_freshness_days)
    if existing is not None and (
        existing.origin == FactOrigin.DIRECT.value
        or ensure_utc(existing.updated_at) >= current_time - freshness
    ):
        result = _price_result(existing, policy=policy, now=current_time)
        _log_resolution(subject, result.strategy, cached=True, started=total_started)
        return result

    started = perf_counter()
    planned = _plan_propagation(db, target, barcode, now=current_time, freshness=freshness)
    plan_ms = (perf_counter() - started) * 1000.0
    if planned is None:
        if existing is not None:
            # Source facts are gone; the stale cached value is still the best answer.
            return _price_result(existing, policy=policy, now=current_time)
        logger.info(
            "crowd.price_not_found store_id=%s barcode=%s plan_ms=%.2f",
            target_store_id,
            barcode,
            plan_ms,
        )
        raise NotFoundError("No price data available")

    link, source = planned
    fact = _persist_propagated(db, subject, link, source, existing=existing, now=current_time)
    result = _price_result(fact, policy=policy, now=current_time)
    _log_resolution(subject, result.strategy, cached=False, started=total_started)
    return result


def _plan_propagation(
    db: Session,
    target: Store,
    barcode: str,
    *,
    now: datetime,
    freshness: timedelta,
) -> tuple[PropagationLink, Fact] | None:
    try:
        chain = _plan_chain(db, target, barcode, cutoff=now - freshness)
        if chain is not None:
            return chain
        source = db.scalar(
            select(Fact)
            .where(
                Fact.subject_type == "price",
                Fact.subject_id == barcode,
                Fact.origin == FactOrigin.DIRECT.value,
                Fact.store_id != target.id,
            )
            .order_by(Fact.updated_at.desc(), Fact.id.asc())
            .limit(1)
        )
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc
    if source is None:
        return None
    link = plan_fallback_link(
        target.id,
        source_store_id=source.store_id,
        source_fact_id=source.id,
        source_confidence=source.confidence,
    )
    return link, source


def _plan_chain(
    db: Session,
    target: Store,
    barcode: str,
    *,
    cutoff: datetime,
) -> tuple[PropagationLink, Fact] | None:
    token = chain_token(target.name)
    if token is None or target.latitude is None or target.longitude is None:
        return None

    stmt = (
        select(Fact, Store)
        .join(Store, Store.id == Fact.store_id)
        .where(
            Fact.subject_type == "price",
            Fact.subject_id == barcode,
            Fact.origin == FactOrigin.DIRECT.value,
            Fact.store_id != target.id,
            Fact.updated_at >= cutoff,
            Store.latitude.is_not(None),
            Store.longitude.is_not(None),
            Store.chain_key == token,
        )
    )
    in_database = dialect_name(db) == "postgresql"
    if in_database:
        distance = haversine_km_expr(target.latitude, target.longitude, Store.latitude, Store.longitude)
        stmt = stmt.add_columns(distance.label("distance_km")).where(distance <= MAX_PROPAGATION_DISTANCE_KM)

    facts_by_id: dict[int, Fact] = {}
    candidates: list[SiblingCandidate] = []
    for row in db.execute(stmt):
        fact, store = row[0], row[1]
        if in_database:
            distance_km = float(row[2])
        else:
            distance_km = haversine_km(target.latitude, target.longitude, store.latitude, store.longitude)
        facts_by_id[fact.id] = fact
        candidates.append(
            SiblingCandidate(
                fact_id=fact.id,
                store_id=store.id,
                distance_km=distance_km,
                confidence=fact.confidence,
                updated_at=fact.updated_at,
            )
        )

    link = plan_chain_link(target.id, candidates)
    if link is None:
        return None
    return link, facts_by_id[link.source_fact_id]


def _persist_propagated(
    db: Session,
    subject: PriceSubject,
    link: PropagationLink,
    source: Fact,
    *,
    existing: Fact | None,
    now: datetime,
) -> Fact:
    """Cache the derived price; a direct fact that wins the race is returned instead."""

    if link.distance_km is not None:
        link = dataclasses.replace(link, distance_km=round(link.distance_km, 2))
    try:
        if existing is None:
            fact = fact_store.insert_propagated_fact(
                db,
                subject,
                link,
                value_json=dict(source.value_json),
                source_last_verified_at=source.last_verified_at,
                now=now,
            )
        else:
            fact = fact_store.refresh_propagated_fact(
                db,
                existing.id,
                existing.revision,
                link,
                value_json=dict(source.value_json),
                source_last_verified_at=source.last_verified_at,
                now=now,
            )
        if fact is None:
            db.rollback()
            current = fact_store.find_fact(db, subject)
            if current is None:
                raise NotFoundError("No price data available")
            return current
        record_propagation_event(
            db,
            contribution_uid=uuid.uuid4().hex,
            subject=subject,
            fact=fact,
            link=link,
            now=now,
        )
        db.commit()
        return fact
    except SQLAlchemyError as exc:
        db.rollback()
        raise translate_db_error(exc) from exc
    except CrowdDataError:
        db.rollback()
        raise


def _price_result(fact: Fact, *, policy: ScoringPolicy, now: datetime) -> PriceResult:
    value = FACT_VALUE_ADAPTER.validate_python(fact.value_json)
    if not isinstance(value, PriceValue):
        raise ValidationError(f"Fact {fact.id} does not hold a price")
    return PriceResult(
        store_id=fact.store_id,
        barcode=fact.subject_id,
        price=value.amount,
        currency=value.currency,
        confidence=fact.confidence,
        effective_confidence=decayed_confidence(
            fact.confidence,
            fact.last_verified_at or fact.updated_at,
            now,
            policy,
        ),
        origin=FactOrigin(fact.origin),
        strategy=_strategy_for(fact),
        fact_id=fact.id,
        source_store_id=fact.source_store_id,
        source_fact_id=fact.source_fact_id,
        distance_km=fact.distance_km,
        confidence_multiplier=fact.confidence_multiplier,
        updated_at=fact.updated_at,
    )


def _strategy_for(fact: Fact) -> PropagationStrategy:
    if fact.origin == FactOrigin.DIRECT.value:
        return PropagationStrategy.EXACT
    if fact.distance_km is not None:
        return PropagationStrategy.CHAIN
    return PropagationStrategy.FALLBACK


def _log_resolution(
    subject: PriceSubject,
    strategy: PropagationStrategy,
    *,
    cached: bool,
    started: float,
) -> None:
    logger.info(
        "crowd.price_resolved subject=%s strategy=%s cached=%s total_ms=%.2f",
        subject.describe(),
        strategy.value,
        cached,
        (perf_counter() - started) * 1000.0,
    )
