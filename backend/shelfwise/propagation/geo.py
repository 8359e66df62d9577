"""Great-circle distance and retail-chain heuristics."""

from __future__ import annotations

import math
import re

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement

EARTH_RADIUS_KM = 6371.0

_WHITESPACE_RE = re.compile(r"\s+")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km_expr(
    lat: float,
    lon: float,
    lat_column: ColumnElement[float],
    lon_column: ColumnElement[float],
) -> ColumnElement[float]:
    """SQL expression for the same distance, usable in WHERE/ORDER BY on PostgreSQL."""

    d_phi = func.radians(lat_column - lat)
    d_lambda = func.radians(lon_column - lon)
    a = func.power(func.sin(d_phi / 2), 2) + math.cos(math.radians(lat)) * func.cos(
        func.radians(lat_column)
    ) * func.power(func.sin(d_lambda / 2), 2)
    return 2 * EARTH_RADIUS_KM * func.asin(func.sqrt(func.least(1.0, a)))


def chain_token(store_name: str | None) -> str | None:
    """First whitespace-delimited token of a store name, case-folded."""

    if not store_name:
        return None
    tokens = _WHITESPACE_RE.split(store_name.strip())
    if not tokens or not tokens[0]:
        return None
    return tokens[0].casefold()
