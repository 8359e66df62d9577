"""Points, levels, badges and leaderboard schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from shelfwise.schemas.contributions import BadgeRead


class PointActivity(BaseModel):
    contribution_uid: str
    reason: str
    points: int
    store_id: int | None = None
    created_at: datetime


class ContributorSummary(BaseModel):
    contributor_id: str
    total_points: int
    level: int
    title: str
    next_level: int | None = None
    next_level_title: str | None = None
    points_to_next_level: int | None = None
    contributions_count: int
    stores_mapped: int
    badges: list[BadgeRead] = Field(default_factory=list)
    recent_activity: list[PointActivity] = Field(default_factory=list)


class LeaderboardEntry(BaseModel):
    rank: int
    contributor_id: str
    total_points: int
    level: int
    title: str
    contributions: int
