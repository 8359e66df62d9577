"""Contribution request and result schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from shelfwise.schemas.facts import Coordinates, FactRead, FactValue, SubjectKey
from shelfwise.scoring.confidence import ContributionKind


class ContributionCreate(BaseModel):
    subject: SubjectKey
    kind: ContributionKind
    value: FactValue | None = None
    coordinates: Coordinates | None = None


class BonusRead(BaseModel):
    type: str
    points: int


class BadgeRead(BaseModel):
    badge_type: str
    badge_name: str
    badge_description: str | None = None
    store_id: int | None = None
    earned_at: datetime | None = None


class ContributionResult(BaseModel):
    """Outcome of one submission: the merged fact plus its ledger side effects."""

    contribution_uid: str
    fact: FactRead
    points_awarded: int
    bonuses: list[BonusRead] = Field(default_factory=list)
    badges: list[BadgeRead] = Field(default_factory=list)
    ledger_recorded: bool = True


class AisleScanCreate(BaseModel):
    aisle_number: str = Field(min_length=1, max_length=10)
    sign_text: str | None = Field(default=None, max_length=2000)
    coordinates: Coordinates | None = None


class SuggestedDepartment(BaseModel):
    key: str
    display_name: str


class AisleScanResult(BaseModel):
    contribution: ContributionResult
    suggested_departments: list[SuggestedDepartment] = Field(default_factory=list)


class ContributionRead(BaseModel):
    """One ledger entry."""

    contribution_uid: str
    store_id: int
    subject_type: str
    subject_id: str
    fact_id: int | None
    contributor_id: str | None
    kind: ContributionKind
    confidence_delta: float
    points_awarded: int
    created_at: datetime
