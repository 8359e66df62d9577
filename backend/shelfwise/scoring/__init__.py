"""Confidence scoring and reward policy."""

from shelfwise.scoring.confidence import (
    CONFIDENCE_MAX,
    CONFIDENCE_MIN,
    ContributionKind,
    FactOrigin,
    ScoringPolicy,
    clamp_confidence,
    confidence_delta,
    decayed_confidence,
    increments_verified_count,
    prefer_highest_confidence,
    propagated_confidence,
)
from shelfwise.scoring.rewards import (
    FIRST_STORE_BONUS_POINTS,
    FIRST_STORE_BONUS_REASON,
    LEVEL_THRESHOLDS,
    level_for,
    next_level,
    points_for,
)

__all__ = [
    "CONFIDENCE_MAX",
    "CONFIDENCE_MIN",
    "ContributionKind",
    "FactOrigin",
    "ScoringPolicy",
    "clamp_confidence",
    "confidence_delta",
    "decayed_confidence",
    "increments_verified_count",
    "prefer_highest_confidence",
    "propagated_confidence",
    "FIRST_STORE_BONUS_POINTS",
    "FIRST_STORE_BONUS_REASON",
    "LEVEL_THRESHOLDS",
    "level_for",
    "next_level",
    "points_for",
]
