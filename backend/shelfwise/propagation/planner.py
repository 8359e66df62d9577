"""Sibling selection and distance banding for price propagation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from shelfwise.scoring.confidence import ensure_utc, propagated_confidence


class PropagationStrategy(str, Enum):
    EXACT = "exact"
    CHAIN = "chain"
    FALLBACK = "fallback"


@dataclass(slots=True, frozen=True)
class DistanceBand:
    max_distance_km: float
    multiplier: float


# Upper bounds are inclusive; anything beyond the last band is refused.
DISTANCE_BANDS: tuple[DistanceBand, ...] = (
    DistanceBand(16.0, 0.95),
    DistanceBand(48.0, 0.85),
    DistanceBand(160.0, 0.70),
)
MAX_PROPAGATION_DISTANCE_KM = DISTANCE_BANDS[-1].max_distance_km


def band_multiplier(distance_km: float) -> float | None:
    """Confidence multiplier for a sibling distance, or None when too far."""

    for band in DISTANCE_BANDS:
        if distance_km <= band.max_distance_km:
            return band.multiplier
    return None


@dataclass(slots=True, frozen=True)
class SiblingCandidate:
    """A same-chain store holding a fresh direct price fact for the item."""

    fact_id: int
    store_id: int
    distance_km: float
    confidence: float
    updated_at: datetime


@dataclass(slots=True, frozen=True)
class PropagationLink:
    """Derived relationship from a source fact to the target store."""

    target_store_id: int
    source_store_id: int
    source_fact_id: int
    strategy: PropagationStrategy
    confidence: float
    distance_km: float | None = None
    confidence_multiplier: float | None = None


def select_nearest_sibling(candidates: list[SiblingCandidate]) -> SiblingCandidate | None:
    """Nearest sibling; ties by most recently updated, then lowest store id."""

    if not candidates:
        return None
    return min(
        candidates,
        key=lambda item: (
            item.distance_km,
            -ensure_utc(item.updated_at).timestamp(),
            item.store_id,
        ),
    )


def plan_chain_link(target_store_id: int, candidates: list[SiblingCandidate]) -> PropagationLink | None:
    """Link to the nearest sibling, or None when it falls outside every band."""

    nearest = select_nearest_sibling(candidates)
    if nearest is None:
        return None
    multiplier = band_multiplier(nearest.distance_km)
    if multiplier is None:
        return None
    return PropagationLink(
        target_store_id=target_store_id,
        source_store_id=nearest.store_id,
        source_fact_id=nearest.fact_id,
        strategy=PropagationStrategy.CHAIN,
        confidence=propagated_confidence(nearest.confidence, multiplier),
        distance_km=nearest.distance_km,
        confidence_multiplier=multiplier,
    )


def plan_fallback_link(
    target_store_id: int,
    *,
    source_store_id: int,
    source_fact_id: int,
    source_confidence: float,
) -> PropagationLink:
    """Cross-chain fallback keeps the source's own confidence."""

    return PropagationLink(
        target_store_id=target_store_id,
        source_store_id=source_store_id,
        source_fact_id=source_fact_id,
        strategy=PropagationStrategy.FALLBACK,
        confidence=propagated_confidence(source_confidence, 1.0),
    )
