from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import settings

MINUTES_PER_DAY = 24 * 60


class InvalidInterval(ValueError):
    """Raised for an interval whose end is not after its start, or malformed time input."""


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # half-open: touching endpoints do not overlap
    return a_start < b_end and b_start < a_end


def expand_with_buffer(start: datetime, end: datetime, buffer_minutes: int) -> tuple[datetime, datetime]:
    if buffer_minutes < 0:
        raise InvalidInterval("buffer_minutes must be >= 0")
    pad = timedelta(minutes=buffer_minutes)
    return start - pad, end + pad


def resolve_timezone(tz_name: str | None) -> ZoneInfo:
    name = tz_name or settings.VENUE_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(settings.VENUE_TIMEZONE)


def to_utc(dt: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Normalise to an aware UTC instant; naive values are wall-clock time in ``tz``."""
    if not isinstance(dt, datetime):
        raise InvalidInterval(f"expected a datetime, got {type(dt).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz or resolve_timezone(None))
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidInterval("interval bounds must be timezone-aware")
        if self.end <= self.start:
            raise InvalidInterval("end must be after start")

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int, tz: ZoneInfo | None = None) -> Interval:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
            raise InvalidInterval("duration_minutes must be an integer")
        if duration_minutes <= 0:
            raise InvalidInterval("duration_minutes must be positive")
        begin = to_utc(start, tz)
        return cls(begin, begin + timedelta(minutes=duration_minutes))

    @classmethod
    def of(cls, start: datetime, end: datetime, tz: ZoneInfo | None = None) -> Interval:
        return cls(to_utc(start, tz), to_utc(end, tz))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: Interval) -> bool:
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def expanded(self, buffer_minutes: int) -> Interval:
        start, end = expand_with_buffer(self.start, self.end, buffer_minutes)
        return Interval(start, end)

    def shifted(self, delta: timedelta) -> Interval:
        return Interval(self.start + delta, self.end + delta)


def parse_wall_time(value: str | time) -> int:
    """Minutes since local midnight for ``HH:MM`` (``24:00`` is end of day)."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    text = str(value).strip()
    parts = text.split(":")
    if len(parts) not in (2, 3):
        raise InvalidInterval(f"invalid wall-clock time: {value!r}")
    try:
        hours, minutes = int(parts[0]), int(parts[1])
        seconds = int(parts[2]) if len(parts) == 3 else 0
    except ValueError as exc:
        raise InvalidInterval(f"invalid wall-clock time: {value!r}") from exc
    if hours == 24 and minutes == 0 and seconds == 0:
        return MINUTES_PER_DAY
    if not (0 <= hours < 24 and 0 <= minutes < 60 and 0 <= seconds < 60):
        raise InvalidInterval(f"invalid wall-clock time: {value!r}")
    return hours * 60 + minutes


def format_wall_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(day: date) -> int:
    # 0 = Sunday, matching how hosts configure weekly rules
    return (day.weekday() + 1) % 7


def _minute_of_day(dt: datetime) -> float:
    return dt.hour * 60 + dt.minute + (dt.second + dt.microsecond / 1_000_000) / 60


def split_by_local_day(interval: Interval, tz: ZoneInfo) -> Iterator[tuple[date, float, float]]:
    """Yield ``(local_date, start_minute, end_minute)`` for each local day the interval touches.

    Minutes are wall-clock offsets from local midnight; a portion running to the
    next midnight ends at ``MINUTES_PER_DAY``.
    """
    local_start = interval.start.astimezone(tz)
    local_end = interval.end.astimezone(tz)
    day = local_start.date()
    last_day = local_end.date()
    if local_end.time() == time(0, 0):
        last_day -= timedelta(days=1)

    while day <= last_day:
        start_minute = _minute_of_day(local_start) if day == local_start.date() else 0.0
        end_minute = _minute_of_day(local_end) if day == local_end.date() else float(MINUTES_PER_DAY)
        yield day, start_minute, end_minute
        day += timedelta(days=1)
