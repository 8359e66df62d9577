"""Deterministic confidence policy for crowdsourced facts."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, TypeVar, assert_never

if TYPE_CHECKING:
    from shelfwise.config import Settings


CONFIDENCE_MIN = 0.0
CONFIDENCE_MAX = 100.0

T = TypeVar("T")


class ContributionKind(str, Enum):
    """Every kind of event recorded in the contribution ledger."""

    SCAN = "scan"
    MANUAL = "manual"
    CONFIRM = "confirm"
    REPORT = "report"
    PROPAGATION = "propagation"
    ENTRANCE = "entrance"


class FactOrigin(str, Enum):
    """Whether a fact was observed for its subject or inferred from another one."""

    DIRECT = "direct"
    PROPAGATED = "propagated"


@dataclass(slots=True, frozen=True)
class ScoringPolicy:
    """Confidence tuning knobs; see ``Settings`` for defaults."""

    initial: float = 50.0
    scan_delta: float = 10.0
    manual_delta: float = 5.0
    confirm_delta: float = 5.0
    report_delta: float = -10.0
    stale_after_days: int = 90
    stale_penalty: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> ScoringPolicy:
        return cls(
            initial=settings.confidence_initial,
            scan_delta=settings.confidence_scan_delta,
            manual_delta=settings.confidence_manual_delta,
            confirm_delta=settings.confidence_confirm_delta,
            report_delta=settings.confidence_report_delta,
            stale_after_days=settings.stale_after_days,
            stale_penalty=settings.stale_penalty,
        )


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into [0, 100]."""

    if math.isnan(value):
        return CONFIDENCE_MIN
    return max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, float(value)))


def confidence_delta(kind: ContributionKind, policy: ScoringPolicy) -> float:
    """Return the additive confidence delta applied to an existing fact."""

    match kind:
        case ContributionKind.SCAN:
            return policy.scan_delta
        case ContributionKind.MANUAL:
            return policy.manual_delta
        case ContributionKind.CONFIRM:
            return policy.confirm_delta
        case ContributionKind.REPORT:
            return policy.report_delta
        case ContributionKind.PROPAGATION:
            raise ValueError("Propagated confidence is multiplicative, not an additive delta.")
        case ContributionKind.ENTRANCE:
            raise ValueError("Entrances are stored beside the fact table and carry no confidence.")
        case _:
            assert_never(kind)


def increments_verified_count(kind: ContributionKind) -> bool:
    """Only observations and confirmations count as corroboration."""

    match kind:
        case ContributionKind.SCAN | ContributionKind.MANUAL | ContributionKind.CONFIRM:
            return True
        case ContributionKind.REPORT | ContributionKind.PROPAGATION | ContributionKind.ENTRANCE:
            return False
        case _:
            assert_never(kind)


def propagated_confidence(source_confidence: float, multiplier: float) -> float:
    """Scale a source fact's confidence for a propagated copy."""

    return clamp_confidence(source_confidence * multiplier)


def decayed_confidence(
    confidence: float,
    last_verified_at: datetime | None,
    now: datetime,
    policy: ScoringPolicy,
) -> float:
    """Read-time confidence after staleness decay; never persisted."""

    if last_verified_at is None or policy.stale_after_days <= 0:
        return clamp_confidence(confidence)
    age_days = (ensure_utc(now) - ensure_utc(last_verified_at)).total_seconds() / 86400.0
    stale_periods = int(age_days // policy.stale_after_days) if age_days > 0 else 0
    return clamp_confidence(confidence - stale_periods * policy.stale_penalty)


def prefer_highest_confidence(
    candidates: Iterable[T],
    *,
    confidence: Callable[[T], float],
    tiebreak: Callable[[T], tuple],
) -> T | None:
    """Pick the highest-confidence candidate; ties resolved by the smallest tiebreak key."""

    best: T | None = None
    best_key: tuple | None = None
    for candidate in candidates:
        key = (-confidence(candidate), tiebreak(candidate))
        if best_key is None or key < best_key:
            best = candidate
            best_key = key
    return best


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
