"""Seed a demo grocery chain with layout and price contributions.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal
from pathlib import Path

from sqlalchemy import delete, select

# Make `shelfwise` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from shelfwise.db.session import SessionLocal
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
from shelfwise.schemas.facts import (
    DepartmentSubject,
    DepartmentValue,
    PriceSubject,
    PriceValue,
    ProductCategorySubject,
    ProductCategoryValue,
)
from shelfwise.scoring.confidence import ContributionKind
from shelfwise.services.contributions import submit_aisle_scan, submit_contribution
from shelfwise.services.entrances import add_store_entrance
from shelfwise.services.pricing import resolve_price

DEFAULT_CONTRIBUTOR_ID = "demo-mapper"
DEMO_BARCODE = "0001111041700"

# name, latitude, longitude
DEMO_STORES = (
    ("Kroger Downtown", 39.1031, -84.5120),
    ("Kroger Northside", 39.1480, -84.5120),
    ("Kroger Mason", 39.3600, -84.3100),
    ("Aldi Downtown", 39.1050, -84.5100),
)

DEMO_AISLES = (
    ("1", "Produce Fruits Vegetables", ("produce",)),
    ("2", "Bread Bakery Cereal", ("bakery", "pantry")),
    ("3", "Milk Cheese Yogurt", ("dairy",)),
    ("4", "Frozen Meals Ice Cream", ("frozen",)),
    ("5", "Soda Juice Coffee", ("beverages",)),
)

# entrance type, position description
DEMO_ENTRANCES = (
    ("main_entrance", "Front of store, facing the parking lot"),
    ("pharmacy", "Back left corner"),
)

DEMO_CATEGORIES = (
    ("2", "pantry", "cereal", "breakfast"),
    ("3", "dairy", "yogurt", "greek"),
    ("5", "beverages", "coffee", "ground"),
)


def reset_demo_stores(db) -> None:
    """Remove existing demo stores and everything recorded against them."""

    names = [name for name, _, _ in DEMO_STORES]
    store_ids = list(db.scalars(select(Store.id).where(Store.name.in_(names))))
    if store_ids:
        db.execute(delete(ContributorBadge).where(ContributorBadge.store_id.in_(store_ids)))
        db.execute(delete(PointAward).where(PointAward.store_id.in_(store_ids)))
        db.execute(delete(StorePioneer).where(StorePioneer.store_id.in_(store_ids)))
        db.execute(delete(ConfirmationReceipt).where(ConfirmationReceipt.store_id.in_(store_ids)))
        db.execute(delete(Contribution).where(Contribution.store_id.in_(store_ids)))
        db.execute(delete(StoreEntrance).where(StoreEntrance.store_id.in_(store_ids)))
        db.execute(delete(Fact).where(Fact.source_store_id.in_(store_ids)))
        db.execute(delete(Fact).where(Fact.store_id.in_(store_ids)))
        db.execute(delete(Store).where(Store.id.in_(store_ids)))
    db.commit()


def create_demo_stores(db) -> dict[str, Store]:
    stores = {name: Store(name=name, latitude=lat, longitude=lon) for name, lat, lon in DEMO_STORES}
    db.add_all(stores.values())
    db.commit()
    return stores


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo grocery chain with crowdsourced facts.")
    parser.add_argument(
        "--contributor-id",
        default=DEFAULT_CONTRIBUTOR_ID,
        help=f"Contributor ID used for the seeded contributions (default: {DEFAULT_CONTRIBUTOR_ID})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete existing demo stores before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    contributor_id: str = args.contributor_id

    with SessionLocal() as db:
        if not args.no_reset:
            reset_demo_stores(db)
        stores = create_demo_stores(db)
        downtown = stores["Kroger Downtown"].id
        northside = stores["Kroger Northside"].id

        points = 0
        for aisle_number, sign_text, departments in DEMO_AISLES:
            scan = submit_aisle_scan(db, downtown, aisle_number, contributor_id, sign_text=sign_text)
            points += scan.contribution.points_awarded + sum(bonus.points for bonus in scan.contribution.bonuses)
            for department in departments:
                result = submit_contribution(
                    db,
                    DepartmentSubject(store_id=downtown, aisle_number=aisle_number, department=department),
                    contributor_id,
                    ContributionKind.MANUAL,
                    DepartmentValue(),
                )
                points += result.points_awarded
        for entrance_type, description in DEMO_ENTRANCES:
            entrance = add_store_entrance(
                db,
                downtown,
                contributor_id,
                entrance_type,
                position_description=description,
            )
            points += entrance.points_awarded
        for aisle_number, department, category, subcategory in DEMO_CATEGORIES:
            result = submit_contribution(
                db,
                ProductCategorySubject(
                    store_id=downtown,
                    aisle_number=aisle_number,
                    department=department,
                    category=category,
                ),
                contributor_id,
                ContributionKind.MANUAL,
                ProductCategoryValue(subcategory=subcategory),
            )
            points += result.points_awarded

        price = submit_contribution(
            db,
            PriceSubject(store_id=northside, barcode=DEMO_BARCODE),
            contributor_id,
            ContributionKind.SCAN,
            PriceValue(amount=Decimal("3.49")),
        )
        points += price.points_awarded + sum(bonus.points for bonus in price.bonuses)
        propagated = resolve_price(db, downtown, DEMO_BARCODE)

    print("Seed complete")
    print(f"contributor_id={contributor_id}")
    print(f"stores_created={len(stores)}")
    print(f"points_awarded={points}")
    print(
        f"propagated_price={propagated.price} strategy={propagated.strategy.value} "
        f"confidence={propagated.confidence:.2f} distance_km={propagated.distance_km}"
    )
    print()
    print("Inspect:")
    print(f"  GET /stores/{downtown}/layout")
    print(f"  GET /stores/{downtown}/find-product?product=coffee")
    print(f"  GET /stores/{downtown}/prices/{DEMO_BARCODE}")
    print(f"  GET /contributors/{contributor_id}/points")


if __name__ == "__main__":
    main()
