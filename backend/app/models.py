from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from .intervals import InvalidInterval, format_wall_time, parse_wall_time
from .settings import settings

VenueStatus = Literal["draft", "pending_approval", "approved", "rejected"]
BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]

OCCUPYING_STATUSES: frozenset[str] = frozenset({"pending", "confirmed", "completed"})


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_end_after_start(start: datetime | None, end: datetime) -> datetime:
    if not isinstance(start, datetime):
        return end
    if (start.tzinfo is None) != (end.tzinfo is None):
        raise ValueError("start_datetime and end_datetime must both carry a UTC offset or both omit it")
    if end <= start:
        raise ValueError("end_datetime must be after start_datetime")
    return end


def normalize_wall_time(value: str) -> str:
    try:
        minutes = parse_wall_time(value)
    except InvalidInterval as exc:
        raise ValueError(str(exc)) from exc
    return format_wall_time(minutes)


class Venue(BaseModel):
    id: str = Field(default_factory=_new_id)
    host_id: str
    title: str
    description: str | None = None
    category: str
    address: str
    city: str
    lat: float | None = None
    lng: float | None = None
    capacity: int = Field(ge=1)
    base_hourly_price: Decimal = Field(ge=0)
    min_booking_minutes: int = Field(default_factory=lambda: settings.DEFAULT_MIN_BOOKING_MINUTES, gt=0)
    max_booking_minutes: int | None = Field(default=None, gt=0)
    buffer_minutes: int = Field(default_factory=lambda: settings.DEFAULT_BUFFER_MINUTES, ge=0)
    timezone: str = Field(default_factory=lambda: settings.VENUE_TIMEZONE)
    amenities: list[str] = Field(default_factory=list)
    status: VenueStatus = "draft"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _booking_bounds(self) -> Venue:
        if self.max_booking_minutes is not None and self.max_booking_minutes < self.min_booking_minutes:
            raise ValueError("max_booking_minutes must be >= min_booking_minutes")
        return self

    @property
    def is_public(self) -> bool:
        return self.status == "approved"


class AvailabilityRule(BaseModel):
    """Recurring weekly open window, wall-clock in the venue timezone. 0 = Sunday."""

    id: str = Field(default_factory=_new_id)
    venue_id: str
    day_of_week: int = Field(ge=0, le=6)
    open_time: str
    close_time: str
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("open_time", "close_time")
    @classmethod
    def _wall_time(cls, value: str) -> str:
        return normalize_wall_time(value)

    @model_validator(mode="after")
    def _open_before_close(self) -> AvailabilityRule:
        if parse_wall_time(self.open_time) >= parse_wall_time(self.close_time):
            raise ValueError("open_time must be before close_time")
        return self

    @property
    def window(self) -> tuple[int, int]:
        return parse_wall_time(self.open_time), parse_wall_time(self.close_time)


class Blackout(BaseModel):
    id: str = Field(default_factory=_new_id)
    venue_id: str
    start_datetime: datetime
    end_datetime: datetime
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("end_datetime")
    @classmethod
    def _end_after_start(cls, v: datetime, info):
        return check_end_after_start(info.data.get("start_datetime"), v)


class Booking(BaseModel):
    id: str = Field(default_factory=_new_id)
    venue_id: str
    guest_id: str
    start_datetime: datetime
    end_datetime: datetime
    status: BookingStatus = "confirmed"
    guest_count: int = Field(ge=1)
    total_price: Decimal = Decimal("0")
    special_requests: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("end_datetime")
    @classmethod
    def _end_after_start(cls, v: datetime, info):
        return check_end_after_start(info.data.get("start_datetime"), v)

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES
