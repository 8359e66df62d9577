"""Store layout and product search schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from shelfwise.schemas.contributions import BadgeRead
from shelfwise.schemas.facts import Coordinates


class CategoryLayout(BaseModel):
    category: str
    subcategory: str | None = None
    confidence: float
    effective_confidence: float
    verified_count: int


class DepartmentLayout(BaseModel):
    department: str
    display_name: str
    confidence: float
    effective_confidence: float
    verified_count: int
    categories: list[CategoryLayout] = Field(default_factory=list)


class AisleLayout(BaseModel):
    aisle_number: str
    label: str | None = None
    confidence: float
    effective_confidence: float
    verified_count: int
    last_verified_at: datetime | None = None
    departments: list[DepartmentLayout] = Field(default_factory=list)


class StoreStats(BaseModel):
    total_aisles: int
    mapped_aisles: int
    total_departments: int
    total_categories: int
    total_contributions: int
    unique_contributors: int
    avg_aisle_confidence: float
    completion_percentage: float


class EntranceCreate(BaseModel):
    entrance_type: str = Field(min_length=1, max_length=30)
    position_description: str | None = Field(default=None, max_length=255)
    coordinates: Coordinates | None = None


class EntranceRead(BaseModel):
    id: int
    store_id: int
    entrance_type: str
    position_description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    verified_count: int
    created_at: datetime


class EntranceResult(BaseModel):
    """A newly mapped entrance with the points it earned."""

    contribution_uid: str
    entrance: EntranceRead
    points_awarded: int
    badges: list[BadgeRead] = Field(default_factory=list)


class StoreLayoutRead(BaseModel):
    store_id: int
    store_name: str
    entrances: list[EntranceRead] = Field(default_factory=list)
    aisles: list[AisleLayout]
    stats: StoreStats


class ProductLocation(BaseModel):
    aisle_number: str
    aisle_label: str | None = None
    department: str
    confidence: float
    product_category: str | None = None


class ProductSearchRead(BaseModel):
    product: str
    found: bool
    locations: list[ProductLocation]


class DepartmentReferenceRead(BaseModel):
    department_name: str
    display_name: str
    icon: str
    color: str
    aliases: list[str]
    sort_order: int
