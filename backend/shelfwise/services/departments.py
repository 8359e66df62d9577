"""Standard grocery departments used to normalize sign text and product searches."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class DepartmentReference:
    department_name: str
    display_name: str
    icon: str
    color: str
    aliases: tuple[str, ...]
    sort_order: int


DEPARTMENT_REFERENCE: tuple[DepartmentReference, ...] = (
    DepartmentReference("produce", "Produce", "leaf-outline", "#22C55E", ("fruits", "vegetables", "fresh produce", "organic"), 1),
    DepartmentReference("dairy", "Dairy", "water-outline", "#3B82F6", ("milk", "cheese", "yogurt", "eggs", "butter"), 2),
    DepartmentReference(
        "meat",
        "Meat & Seafood",
        "flame-outline",
        "#EF4444",
        ("poultry", "beef", "pork", "fish", "seafood", "deli meat"),
        3,
    ),
    DepartmentReference("bakery", "Bakery", "cafe-outline", "#F59E0B", ("bread", "pastry", "cakes", "rolls", "baked goods"), 4),
    DepartmentReference("deli", "Deli", "restaurant-outline", "#F97316", ("prepared foods", "salads", "sandwiches", "hot food"), 5),
    DepartmentReference(
        "frozen",
        "Frozen Foods",
        "snow-outline",
        "#06B6D4",
        ("frozen", "ice cream", "frozen meals", "frozen vegetables"),
        6,
    ),
    DepartmentReference(
        "pantry",
        "Pantry & Dry Goods",
        "cube-outline",
        "#8B5CF6",
        ("canned goods", "pasta", "rice", "cereals", "snacks", "chips"),
        7,
    ),
    DepartmentReference(
        "beverages",
        "Beverages",
        "beer-outline",
        "#EC4899",
        ("drinks", "soda", "juice", "water", "coffee", "tea"),
        8,
    ),
    DepartmentReference(
        "condiments",
        "Condiments & Sauces",
        "flask-outline",
        "#14B8A6",
        ("sauces", "dressings", "spices", "seasonings", "oils"),
        9,
    ),
    DepartmentReference("household", "Household", "home-outline", "#64748B", ("cleaning", "paper goods", "trash bags", "laundry"), 10),
    DepartmentReference(
        "personal_care",
        "Personal Care",
        "body-outline",
        "#A855F7",
        ("health", "beauty", "hygiene", "pharmacy", "vitamins"),
        11,
    ),
    DepartmentReference("baby", "Baby & Kids", "happy-outline", "#FB923C", ("diapers", "formula", "baby food", "kids"), 12),
    DepartmentReference("pet", "Pet Supplies", "paw-outline", "#84CC16", ("dog food", "cat food", "pet care"), 13),
    DepartmentReference("alcohol", "Beer, Wine & Spirits", "wine-outline", "#7C3AED", ("beer", "wine", "liquor", "spirits"), 14),
    DepartmentReference(
        "international",
        "International Foods",
        "globe-outline",
        "#0EA5E9",
        ("ethnic", "asian", "hispanic", "italian", "indian"),
        15,
    ),
    DepartmentReference("other", "Other", "ellipsis-horizontal", "#9CA3AF", (), 99),
)

_BY_NAME = {item.department_name: item for item in DEPARTMENT_REFERENCE}


def list_departments() -> list[DepartmentReference]:
    return sorted(DEPARTMENT_REFERENCE, key=lambda item: (item.sort_order, item.department_name))


def get_department(department_name: str) -> DepartmentReference | None:
    return _BY_NAME.get(department_name)


def normalize_department(name: str) -> str:
    """Canonical department key for free-form input.

    Known display names and aliases map to their standard key; anything else is
    lower-cased and whitespace-collapsed so it can still be stored as a custom department.
    """

    clean = " ".join(name.split()).lower()
    if clean in _BY_NAME:
        return clean
    for item in DEPARTMENT_REFERENCE:
        if clean == item.display_name.lower() or clean in item.aliases:
            return item.department_name
    return clean


def match_departments(text: str | None) -> list[DepartmentReference]:
    """Departments mentioned in sign text, in reference order, each at most once."""

    if not text or not text.strip():
        return []
    haystack = text.lower()
    matched: list[DepartmentReference] = []
    for item in list_departments():
        candidates = (item.department_name, item.display_name.lower(), *item.aliases)
        if any(candidate and candidate in haystack for candidate in candidates):
            matched.append(item)
    return matched


def departments_for_search_term(term: str) -> set[str]:
    """Department keys whose name, display name or an exact alias match a product search."""

    needle = term.lower().strip()
    if not needle:
        return set()
    return {
        item.department_name
        for item in DEPARTMENT_REFERENCE
        if needle in item.aliases or needle in item.department_name or needle in item.display_name.lower()
    }
