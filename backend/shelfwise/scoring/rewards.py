"""Point values, contributor levels and badge rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import assert_never

from shelfwise.scoring.confidence import ContributionKind

FIRST_STORE_BONUS_REASON = "first_store_bonus"
FIRST_STORE_BONUS_POINTS = 200
MAPPED_AISLE_MIN_CONFIDENCE = 50.0
STORE_EXPERT_COMPLETION = 0.8


def points_for(kind: ContributionKind) -> int:
    """Base points earned by one contribution of the given kind."""

    match kind:
        case ContributionKind.SCAN:
            return 50
        case ContributionKind.MANUAL:
            return 30
        case ContributionKind.CONFIRM:
            return 10
        case ContributionKind.REPORT:
            return 15
        case ContributionKind.PROPAGATION:
            return 0
        case ContributionKind.ENTRANCE:
            return 25
        case _:
            assert_never(kind)


@dataclass(slots=True, frozen=True)
class LevelThreshold:
    level: int
    min_points: int
    title: str


LEVEL_THRESHOLDS: tuple[LevelThreshold, ...] = (
    LevelThreshold(1, 0, "Shopper"),
    LevelThreshold(2, 100, "Explorer"),
    LevelThreshold(3, 300, "Navigator"),
    LevelThreshold(4, 600, "Pathfinder"),
    LevelThreshold(5, 1000, "Store Guide"),
    LevelThreshold(6, 1500, "Layout Expert"),
    LevelThreshold(7, 2500, "Master Mapper"),
    LevelThreshold(8, 4000, "Store Architect"),
    LevelThreshold(9, 6000, "Community Leader"),
    LevelThreshold(10, 10000, "Legend"),
)


def level_for(total_points: int) -> LevelThreshold:
    """Return the highest level whose threshold the points reach."""

    current = LEVEL_THRESHOLDS[0]
    for threshold in LEVEL_THRESHOLDS:
        if total_points >= threshold.min_points:
            current = threshold
    return current


def next_level(level: int) -> LevelThreshold | None:
    for threshold in LEVEL_THRESHOLDS:
        if threshold.level == level + 1:
            return threshold
    return None


@dataclass(slots=True, frozen=True)
class BadgeRule:
    badge_type: str
    name: str
    description: str
    min_contributions: int = 0


CONTRIBUTION_BADGES: tuple[BadgeRule, ...] = (
    BadgeRule("first_contribution", "First Explorer", "Made your first store layout contribution", 1),
    BadgeRule("contributor_10", "Dedicated Mapper", "Made 10 store layout contributions", 10),
    BadgeRule("contributor_50", "Master Cartographer", "Made 50 store layout contributions", 50),
)

STORE_EXPERT_BADGE = BadgeRule(
    "store_expert",
    "Store Expert",
    "Mapped 80% or more of a store layout",
)


def earned_contribution_badges(contribution_count: int) -> list[BadgeRule]:
    return [rule for rule in CONTRIBUTION_BADGES if contribution_count >= rule.min_contributions]


def store_is_expertly_mapped(total_aisles: int, mapped_aisles: int, *, min_aisles: int) -> bool:
    """80% of a store's aisles mapped, once the store has enough aisles to count."""

    if total_aisles <= 0 or total_aisles < min_aisles:
        return False
    return mapped_aisles / total_aisles >= STORE_EXPERT_COMPLETION
