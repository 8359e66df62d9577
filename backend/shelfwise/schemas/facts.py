"""Subject keys, typed fact values and fact response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from shelfwise.scoring.confidence import FactOrigin
from shelfwise.services.departments import normalize_department

SubjectType = Literal["aisle", "department", "product_category", "price"]

_SEPARATOR = "/"


def _clean_component(value: str, *, lower: bool = False) -> str:
    clean = " ".join(value.split())
    if lower:
        clean = clean.lower()
    if not clean:
        raise ValueError("must not be blank")
    if _SEPARATOR in clean:
        raise ValueError(f"must not contain '{_SEPARATOR}'")
    return clean


class _SubjectBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    store_id: int = Field(ge=1)

    @property
    def subject_id(self) -> str:
        raise NotImplementedError

    def parent(self) -> SubjectKey | None:
        return None

    def describe(self) -> str:
        return f"{self.subject_type}:{self.store_id}:{self.subject_id}"  # type: ignore[attr-defined]


class AisleSubject(_SubjectBase):
    """An aisle of a store, identified by its posted number."""

    subject_type: Literal["aisle"] = "aisle"
    aisle_number: str = Field(min_length=1, max_length=10)

    @field_validator("aisle_number")
    @classmethod
    def _clean_aisle(cls, value: str) -> str:
        return _clean_component(value).upper()

    @property
    def subject_id(self) -> str:
        return self.aisle_number


class DepartmentSubject(_SubjectBase):
    """A department mapped to an aisle."""

    subject_type: Literal["department"] = "department"
    aisle_number: str = Field(min_length=1, max_length=10)
    department: str = Field(min_length=1, max_length=50)

    @field_validator("aisle_number")
    @classmethod
    def _clean_aisle(cls, value: str) -> str:
        return _clean_component(value).upper()

    @field_validator("department")
    @classmethod
    def _clean_department(cls, value: str) -> str:
        return normalize_department(_clean_component(value, lower=True))

    @property
    def subject_id(self) -> str:
        return f"{self.aisle_number}{_SEPARATOR}{self.department}"

    def parent(self) -> SubjectKey | None:
        return AisleSubject(store_id=self.store_id, aisle_number=self.aisle_number)


class ProductCategorySubject(_SubjectBase):
    """A product category shelved within a department-aisle mapping."""

    subject_type: Literal["product_category"] = "product_category"
    aisle_number: str = Field(min_length=1, max_length=10)
    department: str = Field(min_length=1, max_length=50)
    category: str = Field(min_length=1, max_length=100)

    @field_validator("aisle_number")
    @classmethod
    def _clean_aisle(cls, value: str) -> str:
        return _clean_component(value).upper()

    @field_validator("department")
    @classmethod
    def _clean_department(cls, value: str) -> str:
        return normalize_department(_clean_component(value, lower=True))

    @field_validator("category")
    @classmethod
    def _clean_category(cls, value: str) -> str:
        return _clean_component(value, lower=True)

    @property
    def subject_id(self) -> str:
        return _SEPARATOR.join((self.aisle_number, self.department, self.category))

    def parent(self) -> SubjectKey | None:
        return DepartmentSubject(
            store_id=self.store_id,
            aisle_number=self.aisle_number,
            department=self.department,
        )


class PriceSubject(_SubjectBase):
    """A store's shelf price for one barcode."""

    subject_type: Literal["price"] = "price"
    barcode: str = Field(pattern=r"^\d{6,14}$")

    @property
    def subject_id(self) -> str:
        return self.barcode


SubjectKey = Annotated[
    Union[AisleSubject, DepartmentSubject, ProductCategorySubject, PriceSubject],
    Field(discriminator="subject_type"),
]


class AisleValue(BaseModel):
    value_type: Literal["aisle"] = "aisle"
    label: str | None = Field(default=None, max_length=255)


class DepartmentValue(BaseModel):
    value_type: Literal["department"] = "department"
    display_name: str | None = Field(default=None, max_length=50)


class ProductCategoryValue(BaseModel):
    value_type: Literal["product_category"] = "product_category"
    subcategory: str | None = Field(default=None, max_length=100)


class PriceValue(BaseModel):
    value_type: Literal["price"] = "price"
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")


FactValue = Annotated[
    Union[AisleValue, DepartmentValue, ProductCategoryValue, PriceValue],
    Field(discriminator="value_type"),
]


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class FactRead(BaseModel):
    """Serialized fact with its stored and read-time confidence."""

    id: int
    subject_type: SubjectType
    store_id: int
    subject_id: str
    value: FactValue
    confidence: float
    effective_confidence: float
    verified_count: int
    origin: FactOrigin
    source_fact_id: int | None
    source_store_id: int | None
    distance_km: float | None
    confidence_multiplier: float | None
    last_verified_at: datetime | None
    updated_at: datetime
    created_at: datetime | None


FACT_VALUE_ADAPTER: TypeAdapter[FactValue] = TypeAdapter(FactValue)

VALUE_TYPE_BY_SUBJECT: dict[str, type[BaseModel]] = {
    "aisle": AisleValue,
    "department": DepartmentValue,
    "product_category": ProductCategoryValue,
    "price": PriceValue,
}


class FactLookupRequest(BaseModel):
    subject: SubjectKey
