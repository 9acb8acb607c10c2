from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar
from sqlmodel import SQLModel, Field as SQLField
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc(value: datetime) -> datetime:
    # Records written by older builds carry naive timestamps; treat them as UTC
    # so "newest" ordering never compares naive against aware values.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StoreEntry(SQLModel, table=True):
    __tablename__ = "store_entries"
    key: str | None = SQLField(default=None, primary_key=True)
    value: str | None = None

    # Known keys
    INVENTORY: ClassVar[str] = "car-sales-inventory"
    REVIEWS: ClassVar[str] = "car-sales-reviews"
    BRAND_LOGO: ClassVar[str] = "car-sales-brand-logo"
    GOOGLE_REVIEW: ClassVar[str] = "car-sales-google-review"


class VehicleListing(BaseModel):
    # "model" is a real column here, not a pydantic namespace clash
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    id: str
    title: str = ""
    make: str = ""
    model: str = ""
    year: int
    price: float = 0
    mileage: int = 0
    body: str = ""
    fuel: str = ""
    transmission: str = ""
    location: str = ""
    color: str = ""
    vin: str = ""
    description: str = ""
    images: list[str] = Field(default_factory=list)
    created_at: datetime = Field(alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _utc(value)


class Review(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    rating: int = Field(default=5, ge=1, le=5)
    comment: str
    created_at: datetime = Field(alias="createdAt")
    response: str = ""
    approved: bool = False
    source: str = "onsite"

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _utc(value)


class SortKey(str, Enum):
    NEWEST = "newest"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    MILEAGE_ASC = "mileage-asc"
    MILEAGE_DESC = "mileage-desc"
    YEAR_DESC = "year-desc"
    YEAR_ASC = "year-asc"

    @classmethod
    def parse(cls, value: str | None) -> "SortKey":
        try:
            return cls(value)
        except ValueError:
            return cls.NEWEST


class FilterSet(BaseModel):
    """Transient filter panel state.

    Numeric bounds are kept as the raw text the visitor typed; they are only
    interpreted as numbers when the inventory list is derived.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    make: str = ""
    body: str = ""
    fuel: str = ""
    transmission: str = ""
    location: str = ""
    max_price: str = Field(default="", alias="maxPrice")
    max_mileage: str = Field(default="", alias="maxMileage")
    year_min: str = Field(default="", alias="yearMin")
    year_max: str = Field(default="", alias="yearMax")

    CATEGORICAL: ClassVar[tuple[str, ...]] = ("make", "body", "fuel", "transmission", "location")

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class VehicleDraft(BaseModel):
    """Add-vehicle form contents before they become a listing."""

    model_config = ConfigDict(protected_namespaces=(), coerce_numbers_to_str=True)

    title: str = ""
    make: str = ""
    model: str = ""
    year: str = Field(default_factory=lambda: str(datetime.now().year))
    price: str = ""
    mileage: str = ""
    body: str = ""
    fuel: str = ""
    transmission: str = ""
    location: str = ""
    color: str = ""
    vin: str = ""
    description: str = ""
    images: list[str] = Field(default_factory=list)
