"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class PropertyCategory(str, Enum):
    DETACHED = "detached"
    SEMI_DETACHED = "semi-detached"
    TERRACED = "terraced"
    FLAT = "flat"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: str) -> "PropertyCategory":
        return _CATEGORY_BY_CODE[code.strip().upper()]

    @property
    def is_house(self) -> bool:
        return self in HOUSE_CATEGORIES

    @property
    def is_flat(self) -> bool:
        return self is PropertyCategory.FLAT


_CATEGORY_BY_CODE = {
    "D": PropertyCategory.DETACHED,
    "S": PropertyCategory.SEMI_DETACHED,
    "T": PropertyCategory.TERRACED,
    "F": PropertyCategory.FLAT,
    "O": PropertyCategory.OTHER,
}
HOUSE_CATEGORIES = frozenset(
    {PropertyCategory.DETACHED, PropertyCategory.SEMI_DETACHED, PropertyCategory.TERRACED}
)


@dataclass(frozen=True)
class TransactionRecord:
    price: int
    transaction_date: str
    postcode: str
    property_category: PropertyCategory
    primary_address_object: str
    secondary_address_object: str | None
    street: str
    normalized_address: str
    transaction_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["property_category"] = self.property_category.value
        return out

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TransactionRecord":
        fields = dict(payload)
        fields["property_category"] = PropertyCategory(fields["property_category"])
        return cls(**fields)


@dataclass(frozen=True)
class BuildingRecord:
    postcode: str
    normalized_address: str
    floor_area_sqm: float
    property_category: str
    certificate_date: str | None
    external_id: str | None = None
    built_form: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "BuildingRecord":
        return cls(**payload)


@dataclass(frozen=True)
class MatchedObservation:
    price: int
    floor_area_sqm: float
    price_per_sqft: float
    district: str
    transaction_property_category: PropertyCategory
    building_property_category: str
    postcode: str
    match_score: float
    match_pass: str
    certificate_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["transaction_property_category"] = self.transaction_property_category.value
        return out

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "MatchedObservation":
        fields = dict(payload)
        fields["transaction_property_category"] = PropertyCategory(fields["transaction_property_category"])
        return cls(**fields)


@dataclass(frozen=True)
class DistrictStatistic:
    district: str
    median_price_per_sqft: int
    median_houses_price_per_sqft: int | None
    median_flats_price_per_sqft: int | None
    sample_size: int
    houses_sample_size: int
    flats_sample_size: int
    median_floor_area_sqm: int
    percent_diff: float
    percent_diff_houses: float | None
    percent_diff_flats: float | None
    transaction_count: int = 0
    match_rate: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "DistrictStatistic":
        return cls(**payload)
