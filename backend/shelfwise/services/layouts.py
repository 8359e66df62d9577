"""Store layout view, layout statistics and product location search."""

from __future__ import annotations

import re
from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shelfwise.config import Settings, get_settings
from shelfwise.models.contribution import Contribution
from shelfwise.models.fact import Fact
from shelfwise.schemas.facts import AisleValue, DepartmentValue, FactRead, ProductCategoryValue
from shelfwise.schemas.layouts import (
    AisleLayout,
    CategoryLayout,
    DepartmentLayout,
    ProductLocation,
    ProductSearchRead,
    StoreLayoutRead,
    StoreStats,
)
from shelfwise.scoring.confidence import ContributionKind, prefer_highest_confidence, utcnow
from shelfwise.scoring.rewards import MAPPED_AISLE_MIN_CONFIDENCE
from shelfwise.services import fact_store
from shelfwise.services.departments import departments_for_search_term, get_department
from shelfwise.services.entrances import list_store_entrances
from shelfwise.services.errors import ValidationError, translate_db_error

_CHUNK_RE = re.compile(r"\d+|\D+")
_MIN_SEARCH_LENGTH = 2


def natural_aisle_key(aisle_number: str) -> tuple[tuple[int, int, str], ...]:
    """Sort key placing aisle "2" before "10" and "10A" after "10"."""

    return tuple(
        (0, int(chunk), "") if chunk.isdigit() else (1, 0, chunk)
        for chunk in _CHUNK_RE.findall(aisle_number)
    )


def get_store_layout(
    db: Session,
    store_id: int,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> StoreLayoutRead:
    """Entrances plus nested aisles -> departments -> categories at or above the display threshold."""

    active_settings = settings or get_settings()
    store = fact_store.ensure_store_exists(db, store_id)
    facts = fact_store.list_facts_for_store(
        db,
        store_id,
        active_settings.display_min_confidence,
        settings=active_settings,
        now=now or utcnow(),
    )

    aisles: dict[str, AisleLayout] = {}
    departments: dict[tuple[str, str], DepartmentLayout] = {}
    categories: list[tuple[str, str, CategoryLayout]] = []
    for fact in facts:
        parts = fact.subject_id.split("/")
        if fact.subject_type == "aisle":
            aisles[fact.subject_id] = _aisle_layout(fact)
        elif fact.subject_type == "department":
            departments[(parts[0], parts[1])] = _department_layout(fact, parts[1])
        elif fact.subject_type == "product_category":
            categories.append((parts[0], parts[1], _category_layout(fact, parts[2])))

    # Children of a hidden parent stay hidden.
    for aisle_number, department, category in categories:
        parent = departments.get((aisle_number, department))
        if parent is not None:
            parent.categories.append(category)
    for (aisle_number, _), department in departments.items():
        parent_aisle = aisles.get(aisle_number)
        if parent_aisle is not None:
            parent_aisle.departments.append(department)
    for aisle in aisles.values():
        aisle.departments.sort(key=lambda item: (-item.confidence, item.department))
        for department in aisle.departments:
            department.categories.sort(key=lambda item: (-item.confidence, item.category))

    return StoreLayoutRead(
        store_id=store.id,
        store_name=store.name,
        entrances=list_store_entrances(db, store_id),
        aisles=[aisles[key] for key in sorted(aisles, key=natural_aisle_key)],
        stats=get_store_stats(db, store_id),
    )


def get_store_stats(db: Session, store_id: int) -> StoreStats:
    try:
        aisle_row = db.execute(
            select(
                func.count(Fact.id),
                func.coalesce(func.sum(case((Fact.confidence >= MAPPED_AISLE_MIN_CONFIDENCE, 1), else_=0)), 0),
                func.avg(Fact.confidence),
            ).where(Fact.store_id == store_id, Fact.subject_type == "aisle")
        ).one()
        total_departments = db.scalar(
            select(func.count(Fact.id)).where(Fact.store_id == store_id, Fact.subject_type == "department")
        )
        total_categories = db.scalar(
            select(func.count(Fact.id)).where(
                Fact.store_id == store_id,
                Fact.subject_type == "product_category",
            )
        )
        contribution_row = db.execute(
            select(
                func.count(Contribution.id),
                func.count(func.distinct(Contribution.contributor_id)),
            ).where(
                Contribution.store_id == store_id,
                Contribution.kind != ContributionKind.PROPAGATION.value,
            )
        ).one()
    except SQLAlchemyError as exc:
        raise translate_db_error(exc) from exc

    total_aisles, mapped_aisles, avg_confidence = aisle_row
    total_aisles = int(total_aisles or 0)
    mapped_aisles = int(mapped_aisles or 0)
    return StoreStats(
        total_aisles=total_aisles,
        mapped_aisles=mapped_aisles,
        total_departments=int(total_departments or 0),
        total_categories=int(total_categories or 0),
        total_contributions=int(contribution_row[0] or 0),
        unique_contributors=int(contribution_row[1] or 0),
        avg_aisle_confidence=round(float(avg_confidence or 0.0), 1),
        completion_percentage=round(mapped_aisles / total_aisles * 100, 1) if total_aisles else 0.0,
    )


def find_product_locations(
    db: Session,
    store_id: int,
    term: str,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> ProductSearchRead:
    """Aisles likely to hold a product, by category, department name or department alias."""

    active_settings = settings or get_settings()
    needle = " ".join((term or "").split()).lower()
    if len(needle) < _MIN_SEARCH_LENGTH:
        raise ValidationError(f"Product name is required (min {_MIN_SEARCH_LENGTH} characters)")

    aisles: dict[str, FactRead] = {}
    departments: dict[tuple[str, str], FactRead] = {}
    categories: list[FactRead] = []
    facts = fact_store.list_facts_for_store(db, store_id, 0.0, settings=active_settings, now=now)
    for fact in facts:
        if fact.subject_type == "aisle":
            if fact.confidence >= active_settings.find_product_min_confidence:
                aisles[fact.subject_id] = fact
        elif fact.subject_type == "department":
            aisle_number, department = fact.subject_id.split("/")
            departments[(aisle_number, department)] = fact
        elif fact.subject_type == "product_category":
            categories.append(fact)

    alias_departments = departments_for_search_term(needle)
    matches: dict[tuple[str, str], list[tuple[float, str | None]]] = {}

    def add_match(aisle_number: str, department: str, confidence: float, category: str | None) -> None:
        if aisle_number not in aisles or (aisle_number, department) not in departments:
            return
        matches.setdefault((aisle_number, department), []).append((confidence, category))

    for fact in categories:
        aisle_number, department, category = fact.subject_id.split("/")
        subcategory = fact.value.subcategory if isinstance(fact.value, ProductCategoryValue) else None
        if needle in category or (subcategory and needle in subcategory.lower()):
            add_match(aisle_number, department, fact.confidence, category)
    for (aisle_number, department), fact in departments.items():
        if needle in department or department in alias_departments:
            add_match(aisle_number, department, fact.confidence, None)

    locations: list[ProductLocation] = []
    for (aisle_number, department), candidates in matches.items():
        best = prefer_highest_confidence(
            candidates,
            confidence=lambda item: item[0],
            tiebreak=lambda item: (item[1] is None, item[1] or ""),
        )
        aisle = aisles[aisle_number]
        locations.append(
            ProductLocation(
                aisle_number=aisle_number,
                aisle_label=aisle.value.label if isinstance(aisle.value, AisleValue) else None,
                department=department,
                confidence=aisle.confidence,
                product_category=best[1] if best else None,
            )
        )
    locations.sort(
        key=lambda item: (-item.confidence, natural_aisle_key(item.aisle_number), item.department)
    )
    return ProductSearchRead(product=needle, found=bool(locations), locations=locations)


def _aisle_layout(fact: FactRead) -> AisleLayout:
    return AisleLayout(
        aisle_number=fact.subject_id,
        label=fact.value.label if isinstance(fact.value, AisleValue) else None,
        confidence=fact.confidence,
        effective_confidence=fact.effective_confidence,
        verified_count=fact.verified_count,
        last_verified_at=fact.last_verified_at,
    )


def _department_layout(fact: FactRead, department: str) -> DepartmentLayout:
    display_name = fact.value.display_name if isinstance(fact.value, DepartmentValue) else None
    if not display_name:
        reference = get_department(department)
        display_name = reference.display_name if reference else department.title()
    return DepartmentLayout(
        department=department,
        display_name=display_name,
        confidence=fact.confidence,
        effective_confidence=fact.effective_confidence,
        verified_count=fact.verified_count,
    )


def _category_layout(fact: FactRead, category: str) -> CategoryLayout:
    return CategoryLayout(
        category=category,
        subcategory=fact.value.subcategory if isinstance(fact.value, ProductCategoryValue) else None,
        confidence=fact.confidence,
        effective_confidence=fact.effective_confidence,
        verified_count=fact.verified_count,
    )
