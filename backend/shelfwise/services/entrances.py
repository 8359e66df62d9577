"""Store entrance and in-store landmark mapping."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from time import perf_counter

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shelfwise.models.store_entrance import ENTRANCE_TYPES, StoreEntrance
from shelfwise.schemas.facts import Coordinates
from shelfwise.schemas.layouts import EntranceRead, EntranceResult
from shelfwise.scoring.confidence import ContributionKind, utcnow
from shelfwise.scoring.rewards import points_for
from shelfwise.services import fact_store
from shelfwise.services.errors import ValidationError, translate_db_error
from shelfwise.services.ledger import record_entrance_effects

logger = logging.getLogger(__name__)


def normalize_entrance_type(raw: str | None) -> str:
    """Map "Main Entrance", "self-checkout" and similar spellings to a stored type key."""

    key = "_".join((raw or "").strip().lower().replace("-", " ").split())
    if not key:
        raise ValidationError("Entrance type is required")
    if key not in ENTRANCE_TYPES:
        raise ValidationError(f"Unknown entrance type {raw!r}; expected one of {', '.join(ENTRANCE_TYPES)}")
    return key


def add_store_entrance(
    db: Session,
    store_id: int,
    contributor_id: str,
    entrance_type: str,
    *,
    position_description: str | None = None,
    coordinates: Coordinates | None = None,
    now: datetime | None = None,
) -> EntranceResult:
    """Record one entrance and its ledger entry, points and badges in a single transaction."""

    started = perf_counter()
    contributor = (contributor_id or "").strip()
    if not contributor:
        raise ValidationError("A contributor id is required.")
    key = normalize_entrance_type(entrance_type)
    description = " ".join(position_description.split()) if position_description else None
    fact_store.ensure_store_exists(db, store_id)

    points = points_for(ContributionKind.ENTRANCE)
    contribution_uid = uuid.uuid4().hex
    entrance = StoreEntrance(
        store_id=store_id,
        entrance_type=key,
        position_description=description or None,
        latitude=coordinates.latitude if coordinates else None,
        longitude=coordinates.longitude if coordinates else None,
        contributor_id=contributor,
        contribution_uid=contribution_uid,
        verified_count=1,
        created_at=now or utcnow(),
    )
    try:
        db.add(entrance)
        db.flush()
        outcome = record_entrance_effects(db, entrance, points=points)
        entrance_read = _entrance_read(entrance)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise translate_db_error(exc) from exc

    logger.info(
        "crowd.entrance_mapped store_id=%s entrance_type=%s contributor_id=%s points=%d total_ms=%.2f",
        store_id,
        key,
        contributor,
        points,
        (perf_counter() - started) * 1000.0,
    )
    return EntranceResult(
        contribution_uid=contribution_uid,
        entrance=entrance_read,
        points_awarded=points,
        badges=outcome.badges,
    )


def list_store_entrances(db: Session, store_id: int) -> list[EntranceRead]:
    try:
        entrances = db.scalars(
            select(StoreEntrance)
            .where(StoreEntrance.store_id == store_id)
            .order_by(StoreEntrance.entrance_type.asc(), StoreEntrance.id.asc())
        ).all()
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc
    return [_entrance_read(entrance) for entrance in entrances]


def _entrance_read(entrance: StoreEntrance) -> EntranceRead:
    return EntranceRead(
        id=entrance.id,
        store_id=entrance.store_id,
        entrance_type=entrance.entrance_type,
        position_description=entrance.position_description,
        latitude=entrance.latitude,
        longitude=entrance.longitude,
        verified_count=entrance.verified_count,
        created_at=entrance.created_at,
    )
