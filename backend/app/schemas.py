from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .intervals import parse_wall_time
from .models import Booking, BookingStatus, Venue, VenueStatus, check_end_after_start, normalize_wall_time

CATEGORY_MAX = 60


def _clean_text(value: str | None, *, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    cleaned = " ".join(str(value).split())
    if not cleaned:
        return None
    if len(cleaned) > max_length:
        raise ValueError(f"{field} must be at most {max_length} characters")
    return cleaned


def _known_timezone(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone: {value}") from exc
    return value


# --- Venues ---
class VenueCreate(BaseModel):
    title: str = Field(min_length=2, max_length=120)
    description: str | None = None
    category: str = Field(min_length=2, max_length=CATEGORY_MAX)
    address: str = Field(min_length=3)
    city: str = Field(min_length=2, max_length=80)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    capacity: int = Field(ge=1)
    base_hourly_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    min_booking_minutes: int | None = Field(default=None, gt=0)
    max_booking_minutes: int | None = Field(default=None, gt=0)
    buffer_minutes: int | None = Field(default=None, ge=0, le=24 * 60)
    timezone: str | None = None
    amenities: list[str] = Field(default_factory=list)
    host_id: str | None = None  # admins may create on behalf of a host

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return _clean_text(value, field="description", max_length=4000)

    @field_validator("timezone")
    @classmethod
    def _timezone(cls, value: str | None) -> str | None:
        return _known_timezone(value)

    @field_validator("amenities")
    @classmethod
    def _amenities(cls, value: list[str]) -> list[str]:
        seen: dict[str, str] = {}
        for item in value:
            cleaned = _clean_text(item, field="amenity", max_length=60)
            if cleaned:
                seen.setdefault(cleaned.lower(), cleaned)
        return list(seen.values())

    @model_validator(mode="after")
    def _bounds(self) -> VenueCreate:
        lo = self.min_booking_minutes
        hi = self.max_booking_minutes
        if lo is not None and hi is not None and hi < lo:
            raise ValueError("max_booking_minutes must be >= min_booking_minutes")
        return self


class VenueUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=120)
    description: str | None = None
    category: str | None = Field(default=None, min_length=2, max_length=CATEGORY_MAX)
    address: str | None = Field(default=None, min_length=3)
    city: str | None = Field(default=None, min_length=2, max_length=80)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    capacity: int | None = Field(default=None, ge=1)
    base_hourly_price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    min_booking_minutes: int | None = Field(default=None, gt=0)
    max_booking_minutes: int | None = Field(default=None, gt=0)
    buffer_minutes: int | None = Field(default=None, ge=0, le=24 * 60)
    timezone: str | None = None
    amenities: list[str] | None = None

    @field_validator("timezone")
    @classmethod
    def _timezone(cls, value: str | None) -> str | None:
        return _known_timezone(value)


class VenueSearchFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    q: str | None = Field(default=None, max_length=80)
    city: str | None = Field(default=None, max_length=80)
    category: str | None = Field(default=None, max_length=CATEGORY_MAX)
    capacity_min: int | None = Field(default=None, ge=1)
    price_min: Decimal | None = Field(default=None, ge=0)
    price_max: Decimal | None = Field(default=None, ge=0)
    amenities: list[str] = Field(default_factory=list)
    available_at: datetime | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def _price_range(self) -> VenueSearchFilters:
        if self.price_min is not None and self.price_max is not None and self.price_max < self.price_min:
            raise ValueError("price_max must be >= price_min")
        return self


class VenueSearchResponse(BaseModel):
    venues: list[Venue]
    total: int
    page: int
    limit: int


class WeeklyWindow(BaseModel):
    day_of_week: int
    open_time: str
    close_time: str


class VenueDetail(Venue):
    weekly_hours: list[WeeklyWindow] = Field(default_factory=list)


# --- Availability rules & blackouts ---
class AvailabilityRuleCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    open_time: str
    close_time: str

    @field_validator("open_time", "close_time")
    @classmethod
    def _wall_time(cls, value: str) -> str:
        return normalize_wall_time(value)

    @model_validator(mode="after")
    def _open_before_close(self) -> AvailabilityRuleCreate:
        if parse_wall_time(self.open_time) >= parse_wall_time(self.close_time):
            raise ValueError("open_time must be before close_time")
        return self


class BlackoutCreate(BaseModel):
    start_datetime: datetime
    end_datetime: datetime
    reason: str | None = None

    @field_validator("end_datetime")
    @classmethod
    def _end_after_start(cls, v: datetime, info):
        return check_end_after_start(info.data.get("start_datetime"), v)

    @field_validator("reason")
    @classmethod
    def _reason(cls, value: str | None) -> str | None:
        return _clean_text(value, field="reason", max_length=200)


# --- Availability check ---
class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available: bool
    reason: str | None = None
    reasons: list[str] = Field(default_factory=list)
    conflicts: list[str] | None = None
    suggested_times: list[datetime] | None = Field(default=None, alias="suggestedTimes")


# --- Bookings ---
class BookingCreate(BaseModel):
    venue_id: str
    start_datetime: datetime
    end_datetime: datetime
    guest_count: int
    special_requests: str | None = None

    @field_validator("guest_count")
    @classmethod
    def _guests_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("guest_count must be >= 1")
        return v

    @field_validator("end_datetime")
    @classmethod
    def _end_after_start(cls, v: datetime, info):
        return check_end_after_start(info.data.get("start_datetime"), v)

    @field_validator("special_requests")
    @classmethod
    def _special_requests(cls, value: str | None) -> str | None:
        return _clean_text(value, field="special_requests", max_length=500)


class BookingWithVenue(Booking):
    venue: Venue | None = None


# --- Admin ---
class AdminStats(BaseModel):
    venues_by_status: dict[VenueStatus, int]
    bookings_by_status: dict[BookingStatus, int]
    revenue: Decimal
    currency: str

