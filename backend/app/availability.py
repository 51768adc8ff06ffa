from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo

from .errors import VenueNotFound
from .intervals import Interval, InvalidInterval, resolve_timezone, to_utc
from .logging_config import get_logger
from .models import AvailabilityRule, Blackout, Booking, Venue
from .repositories import (
    AvailabilityRuleRepository,
    BlackoutRepository,
    BookingRepository,
    VenueRepository,
)
from .rules import is_within_rules
from .settings import settings

logger = get_logger(__name__)


class AvailabilityReason(str, Enum):
    INVALID_INTERVAL = "InvalidInterval"
    DURATION_OUT_OF_RANGE = "DurationOutOfRange"
    OUTSIDE_OPERATING_HOURS = "OutsideOperatingHours"
    BLACKED_OUT = "BlackedOut"
    BOOKING_CONFLICT = "BookingConflict"


# reasons a later start time can fix; a bad duration needs a different request
SEARCHABLE_REASONS = frozenset(
    {
        AvailabilityReason.OUTSIDE_OPERATING_HOURS,
        AvailabilityReason.BLACKED_OUT,
        AvailabilityReason.BOOKING_CONFLICT,
    }
)


@dataclass(slots=True)
class AvailabilityResult:
    available: bool
    reasons: list[AvailabilityReason] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    suggested_times: list[datetime] = field(default_factory=list)

    @property
    def reason(self) -> AvailabilityReason | None:
        return self.reasons[0] if self.reasons else None


@dataclass(frozen=True, slots=True)
class VenueSnapshot:
    """Everything needed to judge one venue over a bounded window."""

    venue: Venue
    rules: tuple[AvailabilityRule, ...]
    blackouts: tuple[Blackout, ...]
    bookings: tuple[Booking, ...]

    @property
    def tz(self) -> ZoneInfo:
        return resolve_timezone(self.venue.timezone)


# ---------- blackouts ----------
def _blackout_span(b: Blackout, tz: ZoneInfo | None) -> Interval:
    # naive stored values are venue-local wall-clock time
    return Interval.of(b.start_datetime, b.end_datetime, tz)


def blackouts_hit(candidate: Interval, blackouts: Iterable[Blackout], tz: ZoneInfo | None = None) -> list[Blackout]:
    return [b for b in blackouts if _blackout_span(b, tz).overlaps(candidate)]


def is_blacked_out(candidate: Interval, blackouts: Iterable[Blackout], tz: ZoneInfo | None = None) -> bool:
    for b in blackouts:
        if _blackout_span(b, tz).overlaps(candidate):
            return True
    return False


# ---------- existing bookings ----------
def _buffered(booking: Booking, buffer_minutes: int, tz: ZoneInfo | None = None) -> Interval:
    return Interval.of(booking.start_datetime, booking.end_datetime, tz).expanded(buffer_minutes)


def conflicting_bookings(
    candidate: Interval, buffer_minutes: int, bookings: Iterable[Booking], tz: ZoneInfo | None = None
) -> list[Booking]:
    return [b for b in bookings if b.is_occupying and _buffered(b, buffer_minutes, tz).overlaps(candidate)]


def has_conflict(
    candidate: Interval, buffer_minutes: int, bookings: Iterable[Booking], tz: ZoneInfo | None = None
) -> bool:
    # the buffer pads existing bookings only, never the candidate
    for b in bookings:
        if not b.is_occupying:
            continue
        if _buffered(b, buffer_minutes, tz).overlaps(candidate):
            return True
    return False


# ---------- resolver ----------
def duration_in_range(venue: Venue, length: timedelta) -> bool:
    if length < timedelta(minutes=venue.min_booking_minutes):
        return False
    if venue.max_booking_minutes is not None and length > timedelta(minutes=venue.max_booking_minutes):
        return False
    return True


def _span(start: datetime, end: datetime, tz: ZoneInfo) -> str:
    local_start = to_utc(start, tz).astimezone(tz)
    local_end = to_utc(end, tz).astimezone(tz)
    return f"{local_start.isoformat(timespec='minutes')} to {local_end.isoformat(timespec='minutes')}"


def _describe_blackout(b: Blackout, tz: ZoneInfo) -> str:
    span = _span(b.start_datetime, b.end_datetime, tz)
    return f"Blacked out {span}" + (f": {b.reason}" if b.reason else "")


def _describe_booking(b: Booking, buffer_minutes: int, tz: ZoneInfo) -> str:
    span = _span(b.start_datetime, b.end_datetime, tz)
    return f"Booked {span} (+{buffer_minutes} min buffer)"


def evaluate(snapshot: VenueSnapshot, candidate: Interval) -> AvailabilityResult:
    """Judge ``candidate`` against a loaded snapshot. Pure; no I/O."""
    venue = snapshot.venue
    tz = snapshot.tz

    if not duration_in_range(venue, candidate.end - candidate.start):
        bounds = f"{venue.min_booking_minutes}"
        bounds += f"-{venue.max_booking_minutes}" if venue.max_booking_minutes else "+"
        return AvailabilityResult(
            available=False,
            reasons=[AvailabilityReason.DURATION_OUT_OF_RANGE],
            conflicts=[f"Duration must be {bounds} minutes"],
        )

    reasons: list[AvailabilityReason] = []
    conflicts: list[str] = []

    if not is_within_rules(candidate, snapshot.rules, tz):
        reasons.append(AvailabilityReason.OUTSIDE_OPERATING_HOURS)
        conflicts.append("Outside operating hours")

    # blackouts are reported even when the rules already rejected the slot
    hit = blackouts_hit(candidate, snapshot.blackouts, tz)
    if hit:
        reasons.append(AvailabilityReason.BLACKED_OUT)
        conflicts.extend(_describe_blackout(b, tz) for b in hit)

    clashes = conflicting_bookings(candidate, venue.buffer_minutes, snapshot.bookings, tz)
    if clashes:
        reasons.append(AvailabilityReason.BOOKING_CONFLICT)
        conflicts.extend(_describe_booking(b, venue.buffer_minutes, tz) for b in clashes)

    return AvailabilityResult(available=not reasons, reasons=reasons, conflicts=conflicts)


def is_bookable(snapshot: VenueSnapshot, candidate: Interval) -> bool:
    venue = snapshot.venue
    return (
        is_within_rules(candidate, snapshot.rules, snapshot.tz)
        and not is_blacked_out(candidate, snapshot.blackouts, snapshot.tz)
        and not has_conflict(candidate, venue.buffer_minutes, snapshot.bookings, snapshot.tz)
    )


def _grid_after(instant: datetime, step: timedelta) -> datetime:
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    steps = (instant - epoch) // step + 1
    return epoch + steps * step


def suggest_alternatives(
    snapshot: VenueSnapshot,
    candidate: Interval,
    *,
    step_minutes: int,
    horizon_days: int,
    limit: int,
) -> list[datetime]:
    """Next start times after ``candidate.start`` that pass every check.

    Walks a fixed grid forward and stops at the horizon or once ``limit``
    slots are found.
    """
    if limit <= 0 or step_minutes <= 0 or horizon_days <= 0:
        return []
    step = timedelta(minutes=step_minutes)
    length = candidate.end - candidate.start
    horizon = candidate.start + timedelta(days=horizon_days)

    found: list[datetime] = []
    start = _grid_after(candidate.start, step)
    while start <= horizon and len(found) < limit:
        slot = Interval(start, start + length)
        if is_bookable(snapshot, slot):
            found.append(start.astimezone(snapshot.tz))
        start += step
    return found


class AvailabilityResolver:
    """Answers "is [start, start+duration) bookable for venue V?".

    Stateless between calls: every check reloads rules, blackouts and bookings
    for the window it needs through the injected repositories.
    """

    def __init__(
        self,
        venues: VenueRepository,
        rules: AvailabilityRuleRepository,
        blackouts: BlackoutRepository,
        bookings: BookingRepository,
        *,
        step_minutes: int | None = None,
        horizon_days: int | None = None,
        suggestion_limit: int | None = None,
    ) -> None:
        self.venues = venues
        self.rules = rules
        self.blackouts = blackouts
        self.bookings = bookings
        self.step_minutes = step_minutes or settings.AVAILABILITY_SUGGESTION_STEP_MINUTES
        self.horizon_days = horizon_days or settings.AVAILABILITY_SUGGESTION_HORIZON_DAYS
        self.suggestion_limit = (
            suggestion_limit if suggestion_limit is not None else settings.AVAILABILITY_SUGGESTION_LIMIT
        )

    def _require_venue(self, venue_id: str) -> Venue:
        venue = self.venues.get_venue(venue_id)
        if venue is None:
            raise VenueNotFound(venue_id)
        return venue

    def load_snapshot(self, venue: Venue, window: Interval) -> VenueSnapshot:
        # bookings matter if their buffered span reaches the window
        padded = window.expanded(venue.buffer_minutes)
        return VenueSnapshot(
            venue=venue,
            rules=tuple(self.rules.list_rules(venue.id)),
            blackouts=tuple(self.blackouts.list_blackouts(venue.id, window)),
            bookings=tuple(self.bookings.list_occupying_bookings(venue.id, padded)),
        )

    def candidate_for(self, venue: Venue, start: datetime, duration_minutes: int) -> Interval:
        return Interval.from_duration(start, duration_minutes, resolve_timezone(venue.timezone))

    def check_interval(self, venue: Venue, candidate: Interval, *, suggest: bool = False) -> AvailabilityResult:
        window = candidate
        if suggest:
            window = Interval(candidate.start, candidate.end + timedelta(days=self.horizon_days))
        snapshot = self.load_snapshot(venue, window)
        result = evaluate(snapshot, candidate)
        if suggest and not result.available and SEARCHABLE_REASONS.intersection(result.reasons):
            result.suggested_times = suggest_alternatives(
                snapshot,
                candidate,
                step_minutes=self.step_minutes,
                horizon_days=self.horizon_days,
                limit=self.suggestion_limit,
            )
        logger.debug(
            "availability_checked",
            venue_id=venue.id,
            start=candidate.start.isoformat(),
            end=candidate.end.isoformat(),
            available=result.available,
            reasons=[r.value for r in result.reasons],
            suggestions=len(result.suggested_times),
        )
        return result

    def check_availability(
        self,
        venue_id: str,
        start: datetime,
        duration_minutes: int,
        *,
        suggest: bool = False,
    ) -> AvailabilityResult:
        if not isinstance(start, datetime):
            raise InvalidInterval("start must be a datetime")
        venue = self._require_venue(venue_id)
        candidate = self.candidate_for(venue, start, duration_minutes)
        return self.check_interval(venue, candidate, suggest=suggest)
