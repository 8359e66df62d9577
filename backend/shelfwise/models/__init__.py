"""ORM models package exports."""

from shelfwise.models.confirmation_receipt import ConfirmationReceipt
from shelfwise.models.contribution import Contribution
from shelfwise.models.contributor_badge import ContributorBadge
from shelfwise.models.fact import Fact
from shelfwise.models.point_award import PointAward
from shelfwise.models.store import Store
from shelfwise.models.store_entrance import StoreEntrance
from shelfwise.models.store_pioneer import StorePioneer

__all__ = [
    "Store",
    "StoreEntrance",
    "Fact",
    "Contribution",
    "PointAward",
    "StorePioneer",
    "ConfirmationReceipt",
    "ContributorBadge",
]
