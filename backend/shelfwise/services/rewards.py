"""Contributor points summary, leaderboards and recent ledger activity."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shelfwise.models.contribution import Contribution
from shelfwise.models.contributor_badge import ContributorBadge
from shelfwise.models.point_award import PointAward
from shelfwise.schemas.contributions import BadgeRead, ContributionRead
from shelfwise.schemas.rewards import ContributorSummary, LeaderboardEntry, PointActivity
from shelfwise.scoring.confidence import ContributionKind
from shelfwise.scoring.rewards import level_for, next_level
from shelfwise.services import fact_store
from shelfwise.services.errors import ValidationError, translate_db_error

_MAX_PAGE_SIZE = 100


def get_contributor_summary(db: Session, contributor_id: str, *, recent_limit: int = 10) -> ContributorSummary:
    """Points, level progress, badges and recent awards for one contributor."""

    contributor = (contributor_id or "").strip()
    if not contributor:
        raise ValidationError("A contributor id is required.")
    try:
        total_points = db.scalar(
            select(func.coalesce(func.sum(PointAward.points), 0)).where(
                PointAward.contributor_id == contributor
            )
        )
        contributions_count, stores_mapped = db.execute(
            select(
                func.count(Contribution.id),
                func.count(func.distinct(Contribution.store_id)),
            ).where(Contribution.contributor_id == contributor)
        ).one()
        badges = list(
            db.scalars(
                select(ContributorBadge)
                .where(ContributorBadge.contributor_id == contributor)
                .order_by(ContributorBadge.earned_at.asc(), ContributorBadge.id.asc())
            )
        )
        awards = list(
            db.scalars(
                select(PointAward)
                .where(PointAward.contributor_id == contributor)
                .order_by(PointAward.created_at.desc(), PointAward.id.desc())
                .limit(recent_limit)
            )
        )
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc

    total = int(total_points or 0)
    current = level_for(total)
    upcoming = next_level(current.level)
    return ContributorSummary(
        contributor_id=contributor,
        total_points=total,
        level=current.level,
        title=current.title,
        next_level=upcoming.level if upcoming else None,
        next_level_title=upcoming.title if upcoming else None,
        points_to_next_level=upcoming.min_points - total if upcoming else None,
        contributions_count=int(contributions_count or 0),
        stores_mapped=int(stores_mapped or 0),
        badges=[
            BadgeRead(
                badge_type=badge.badge_type,
                badge_name=badge.badge_name,
                badge_description=badge.badge_description,
                store_id=badge.store_id,
                earned_at=badge.earned_at,
            )
            for badge in badges
        ],
        recent_activity=[
            PointActivity(
                contribution_uid=award.contribution_uid,
                reason=award.reason,
                points=award.points,
                store_id=award.store_id,
                created_at=award.created_at,
            )
            for award in awards
        ],
    )


def get_leaderboard(db: Session, *, store_id: int | None = None, limit: int = 20) -> list[LeaderboardEntry]:
    """Contributors ranked by points, globally or within one store."""

    limit = _check_limit(limit)
    if store_id is not None:
        fact_store.ensure_store_exists(db, store_id)
    total_points = func.sum(PointAward.points)
    points_stmt = select(PointAward.contributor_id, total_points.label("total_points")).group_by(
        PointAward.contributor_id
    )
    counts_stmt = (
        select(Contribution.contributor_id, func.count(Contribution.id))
        .where(Contribution.contributor_id.is_not(None))
        .group_by(Contribution.contributor_id)
    )
    if store_id is not None:
        points_stmt = points_stmt.where(PointAward.store_id == store_id)
        counts_stmt = counts_stmt.where(Contribution.store_id == store_id)
    points_stmt = points_stmt.order_by(total_points.desc(), PointAward.contributor_id.asc()).limit(limit)

    try:
        rows = db.execute(points_stmt).all()
        contributors = [row[0] for row in rows]
        counts = dict(
            db.execute(counts_stmt.where(Contribution.contributor_id.in_(contributors))).all()
        ) if contributors else {}
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc

    entries: list[LeaderboardEntry] = []
    for rank, (contributor, points) in enumerate(rows, start=1):
        level = level_for(int(points or 0))
        entries.append(
            LeaderboardEntry(
                rank=rank,
                contributor_id=contributor,
                total_points=int(points or 0),
                level=level.level,
                title=level.title,
                contributions=int(counts.get(contributor, 0)),
            )
        )
    return entries


def list_store_contributions(
    db: Session,
    store_id: int,
    *,
    limit: int = 20,
    include_system: bool = False,
) -> list[ContributionRead]:
    """Most recent ledger entries for a store, newest first."""

    limit = _check_limit(limit)
    fact_store.ensure_store_exists(db, store_id)
    stmt = select(Contribution).where(Contribution.store_id == store_id)
    if not include_system:
        stmt = stmt.where(Contribution.kind != ContributionKind.PROPAGATION.value)
    stmt = stmt.order_by(Contribution.created_at.desc(), Contribution.id.desc()).limit(limit)
    try:
        rows = list(db.scalars(stmt))
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc
    return [
        ContributionRead(
            contribution_uid=row.contribution_uid,
            store_id=row.store_id,
            subject_type=row.subject_type,
            subject_id=row.subject_id,
            fact_id=row.fact_id,
            contributor_id=row.contributor_id,
            kind=ContributionKind(row.kind),
            confidence_delta=row.confidence_delta,
            points_awarded=row.points_awarded,
            created_at=row.created_at,
        )
        for row in rows
    ]


def _check_limit(limit: int) -> int:
    if limit < 1 or limit > _MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {_MAX_PAGE_SIZE}")
    return limit
