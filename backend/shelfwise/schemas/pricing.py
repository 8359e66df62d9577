"""Price resolution response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from shelfwise.propagation.planner import PropagationStrategy
from shelfwise.scoring.confidence import FactOrigin


class PriceResult(BaseModel):
    """Resolved price for a store, with its provenance."""

    store_id: int
    barcode: str
    price: Decimal
    currency: str
    confidence: float
    effective_confidence: float
    origin: FactOrigin
    strategy: PropagationStrategy
    fact_id: int
    source_store_id: int | None = None
    source_fact_id: int | None = None
    distance_km: float | None = None
    confidence_multiplier: float | None = None
    updated_at: datetime


class PriceLookupResponse(BaseModel):
    found: bool
    message: str | None = None
    result: PriceResult | None = None
