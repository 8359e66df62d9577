"""Contribution ledger: append-only log, point awards, first-explorer bonus and badges."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shelfwise.config import Settings, get_settings
from shelfwise.db.dialect import upsert_insert
from shelfwise.models.contribution import Contribution
from shelfwise.models.contributor_badge import ContributorBadge
from shelfwise.models.fact import Fact
from shelfwise.models.point_award import PointAward
from shelfwise.models.store_entrance import StoreEntrance
from shelfwise.models.store_pioneer import StorePioneer
from shelfwise.propagation.planner import PropagationLink
from shelfwise.schemas.contributions import BadgeRead, BonusRead
from shelfwise.schemas.facts import Coordinates, SubjectKey
from shelfwise.scoring.confidence import ContributionKind
from shelfwise.scoring.rewards import (
    FIRST_STORE_BONUS_POINTS,
    FIRST_STORE_BONUS_REASON,
    MAPPED_AISLE_MIN_CONFIDENCE,
    STORE_EXPERT_BADGE,
    BadgeRule,
    earned_contribution_badges,
    store_is_expertly_mapped,
)
from shelfwise.services.errors import translate_db_error

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ContributionReceipt:
    """Everything needed to (re)play a committed contribution's ledger side effects."""

    contribution_uid: str
    subject: SubjectKey
    contributor_id: str
    kind: ContributionKind
    fact_id: int
    confidence_delta: float
    points: int
    created_at: datetime
    coordinates: Coordinates | None = None


@dataclass(slots=True)
class LedgerOutcome:
    bonuses: list[BonusRead] = field(default_factory=list)
    badges: list[BadgeRead] = field(default_factory=list)


def record_contribution_effects(
    db: Session,
    receipt: ContributionReceipt,
    *,
    settings: Settings | None = None,
) -> LedgerOutcome:
    """Write the ledger entry, points, first-explorer bonus and badges, then commit.

    Every insert is keyed by the receipt's ``contribution_uid`` (or by store / badge
    scope) and skips existing rows, so replaying a receipt after a partial failure
    never double-awards.
    """

    active_settings = settings or get_settings()
    try:
        _append_contribution(db, receipt)
        _award_points(
            db,
            contribution_uid=receipt.contribution_uid,
            contributor_id=receipt.contributor_id,
            store_id=receipt.subject.store_id,
            reason=receipt.kind.value,
            points=receipt.points,
            created_at=receipt.created_at,
        )
        _claim_store_pioneer(db, receipt)
        bonuses = _bonuses_for(db, receipt.contribution_uid)
        badges = _award_badges(db, receipt, min_aisles=active_settings.store_expert_min_aisles)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise translate_db_error(exc) from exc
    return LedgerOutcome(bonuses=bonuses, badges=badges)


def record_propagation_event(
    db: Session,
    *,
    contribution_uid: str,
    subject: SubjectKey,
    fact: Fact,
    link: PropagationLink,
    now: datetime,
) -> None:
    """Append a zero-point system entry for a propagated cache write; caller commits."""

    _insert_ledger_row(
        db,
        contribution_uid=contribution_uid,
        store_id=subject.store_id,
        subject_type=subject.subject_type,
        subject_id=subject.subject_id,
        fact_id=fact.id,
        contributor_id=None,
        kind=ContributionKind.PROPAGATION.value,
        confidence_delta=fact.last_confidence_delta,
        points_awarded=0,
        created_at=now,
    )
    logger.info(
        "crowd.propagation_recorded subject=%s source_store_id=%s strategy=%s confidence=%.2f",
        subject.describe(),
        link.source_store_id,
        link.strategy.value,
        fact.confidence,
    )


def record_entrance_effects(db: Session, entrance: StoreEntrance, *, points: int) -> LedgerOutcome:
    """Ledger entry, points and contribution badges for a mapped entrance; caller commits.

    Entrances earn no first-store bonus; that is reserved for the first fact.
    """

    _insert_ledger_row(
        db,
        contribution_uid=entrance.contribution_uid,
        store_id=entrance.store_id,
        subject_type="entrance",
        subject_id=str(entrance.id),
        fact_id=None,
        contributor_id=entrance.contributor_id,
        kind=ContributionKind.ENTRANCE.value,
        confidence_delta=0.0,
        points_awarded=points,
        latitude=entrance.latitude,
        longitude=entrance.longitude,
        created_at=entrance.created_at,
    )
    _award_points(
        db,
        contribution_uid=entrance.contribution_uid,
        contributor_id=entrance.contributor_id,
        store_id=entrance.store_id,
        reason=ContributionKind.ENTRANCE.value,
        points=points,
        created_at=entrance.created_at,
    )
    badges = _award_contribution_badges(db, entrance.contributor_id, earned_at=entrance.created_at)
    return LedgerOutcome(badges=badges)


def _append_contribution(db: Session, receipt: ContributionReceipt) -> None:
    coordinates = receipt.coordinates
    _insert_ledger_row(
        db,
        contribution_uid=receipt.contribution_uid,
        store_id=receipt.subject.store_id,
        subject_type=receipt.subject.subject_type,
        subject_id=receipt.subject.subject_id,
        fact_id=receipt.fact_id,
        contributor_id=receipt.contributor_id,
        kind=receipt.kind.value,
        confidence_delta=receipt.confidence_delta,
        points_awarded=receipt.points,
        latitude=coordinates.latitude if coordinates else None,
        longitude=coordinates.longitude if coordinates else None,
        created_at=receipt.created_at,
    )


def _insert_ledger_row(db: Session, **values: object) -> None:
    stmt = (
        upsert_insert(db, Contribution.__table__)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["contribution_uid"])
    )
    db.execute(stmt)


def _award_points(
    db: Session,
    *,
    contribution_uid: str,
    contributor_id: str,
    store_id: int,
    reason: str,
    points: int,
    created_at: datetime,
) -> bool:
    stmt = (
        upsert_insert(db, PointAward.__table__)
        .values(
            contribution_uid=contribution_uid,
            contributor_id=contributor_id,
            store_id=store_id,
            reason=reason,
            points=points,
            created_at=created_at,
        )
        .on_conflict_do_nothing(index_elements=["contribution_uid", "reason"])
        .returning(PointAward.__table__.c.id)
    )
    return db.execute(stmt).scalar_one_or_none() is not None


def _claim_store_pioneer(db: Session, receipt: ContributionReceipt) -> None:
    """Insert-if-absent on the store's pioneer row; the winner earns the bonus."""

    stmt = (
        upsert_insert(db, StorePioneer.__table__)
        .values(
            store_id=receipt.subject.store_id,
            contributor_id=receipt.contributor_id,
            contribution_uid=receipt.contribution_uid,
            created_at=receipt.created_at,
        )
        .on_conflict_do_nothing(index_elements=["store_id"])
        .returning(StorePioneer.__table__.c.store_id)
    )
    claimed = db.execute(stmt).scalar_one_or_none() is not None
    if not claimed:
        # A replayed receipt finds its own pioneer row; re-award is a no-op on the unique key.
        pioneer_uid = db.scalar(
            select(StorePioneer.contribution_uid).where(
                StorePioneer.store_id == receipt.subject.store_id
            )
        )
        claimed = pioneer_uid == receipt.contribution_uid
    if claimed:
        _award_points(
            db,
            contribution_uid=receipt.contribution_uid,
            contributor_id=receipt.contributor_id,
            store_id=receipt.subject.store_id,
            reason=FIRST_STORE_BONUS_REASON,
            points=FIRST_STORE_BONUS_POINTS,
            created_at=receipt.created_at,
        )
        logger.info(
            "crowd.first_store_bonus store_id=%s contributor_id=%s contribution_uid=%s",
            receipt.subject.store_id,
            receipt.contributor_id,
            receipt.contribution_uid,
        )


def _bonuses_for(db: Session, contribution_uid: str) -> list[BonusRead]:
    rows = db.execute(
        select(PointAward.reason, PointAward.points)
        .where(
            PointAward.contribution_uid == contribution_uid,
            PointAward.reason == FIRST_STORE_BONUS_REASON,
        )
        .order_by(PointAward.id.asc())
    ).all()
    return [BonusRead(type=reason, points=points) for reason, points in rows]


def _award_badges(db: Session, receipt: ContributionReceipt, *, min_aisles: int) -> list[BadgeRead]:
    awarded = _award_contribution_badges(db, receipt.contributor_id, earned_at=receipt.created_at)

    store_id = receipt.subject.store_id
    total_aisles, mapped_aisles = db.execute(
        select(
            func.count(Fact.id),
            func.coalesce(func.sum(case((Fact.confidence >= MAPPED_AISLE_MIN_CONFIDENCE, 1), else_=0)), 0),
        ).where(Fact.store_id == store_id, Fact.subject_type == "aisle")
    ).one()
    if store_is_expertly_mapped(int(total_aisles), int(mapped_aisles), min_aisles=min_aisles):
        badge = _insert_badge(
            db,
            receipt.contributor_id,
            STORE_EXPERT_BADGE,
            store_id=store_id,
            earned_at=receipt.created_at,
        )
        if badge is not None:
            awarded.append(badge)
    return awarded


def _award_contribution_badges(db: Session, contributor_id: str, *, earned_at: datetime) -> list[BadgeRead]:
    contribution_count = db.scalar(
        select(func.count(Contribution.id)).where(
            Contribution.contributor_id == contributor_id,
            Contribution.kind != ContributionKind.PROPAGATION.value,
        )
    ) or 0
    awarded: list[BadgeRead] = []
    for rule in earned_contribution_badges(contribution_count):
        badge = _insert_badge(db, contributor_id, rule, store_id=None, earned_at=earned_at)
        if badge is not None:
            awarded.append(badge)
    return awarded


def _insert_badge(
    db: Session,
    contributor_id: str,
    rule: BadgeRule,
    *,
    store_id: int | None,
    earned_at: datetime,
) -> BadgeRead | None:
    stmt = (
        upsert_insert(db, ContributorBadge.__table__)
        .values(
            contributor_id=contributor_id,
            badge_type=rule.badge_type,
            badge_name=rule.name,
            badge_description=rule.description,
            scope_key="" if store_id is None else str(store_id),
            store_id=store_id,
            earned_at=earned_at,
        )
        .on_conflict_do_nothing(index_elements=["contributor_id", "badge_type", "scope_key"])
        .returning(ContributorBadge.__table__.c.id)
    )
    if db.execute(stmt).scalar_one_or_none() is None:
        return None
    logger.info(
        "crowd.badge_awarded contributor_id=%s badge_type=%s store_id=%s",
        contributor_id,
        rule.badge_type,
        store_id,
    )
    return BadgeRead(
        badge_type=rule.badge_type,
        badge_name=rule.name,
        badge_description=rule.description,
        store_id=store_id,
        earned_at=earned_at,
    )
