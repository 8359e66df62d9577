"""Price propagation package."""

from shelfwise.propagation.geo import EARTH_RADIUS_KM, chain_token, haversine_km, haversine_km_expr
from shelfwise.propagation.planner import (
    DISTANCE_BANDS,
    MAX_PROPAGATION_DISTANCE_KM,
    PropagationLink,
    PropagationStrategy,
    SiblingCandidate,
    band_multiplier,
    plan_chain_link,
    plan_fallback_link,
    select_nearest_sibling,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "chain_token",
    "haversine_km",
    "haversine_km_expr",
    "DISTANCE_BANDS",
    "MAX_PROPAGATION_DISTANCE_KM",
    "PropagationLink",
    "PropagationStrategy",
    "SiblingCandidate",
    "band_multiplier",
    "plan_chain_link",
    "plan_fallback_link",
    "select_nearest_sibling",
]
