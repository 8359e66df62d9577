"""SQLAlchemy metadata registry import for Alembic."""

from shelfwise.models import (
    ConfirmationReceipt,
    Contribution,
    ContributorBadge,
    Fact,
    PointAward,
    Store,
    StoreEntrance,
    StorePioneer,
)
from shelfwise.models.base import Base

__all__ = [
    "Base",
    "Store",
    "StoreEntrance",
    "Fact",
    "Contribution",
    "PointAward",
    "StorePioneer",
    "ConfirmationReceipt",
    "ContributorBadge",
]
