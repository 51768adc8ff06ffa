from __future__ import annotations

import math
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from .auth import Principal
from .availability import AvailabilityReason, AvailabilityResolver
from .errors import (
    BookingNotFound,
    BookingRejected,
    BookingUnavailable,
    InvalidTransition,
    PermissionDenied,
    VenueNotFound,
)
from .intervals import Interval, resolve_timezone
from .logging_config import get_logger
from .models import Booking, Venue
from .schemas import BookingCreate
from .storage import Database

logger = get_logger(__name__)

CANCELLABLE = frozenset({"pending", "confirmed"})
COMPLETABLE = frozenset({"confirmed"})


def calculate_price(venue: Venue, length: timedelta) -> Decimal:
    """Bill in half-hour increments, rounded up, at the venue's hourly rate."""
    half_hours = math.ceil(length.total_seconds() / 1800)
    hours = Decimal(half_hours) / Decimal(2)
    return (hours * Decimal(venue.base_hourly_price)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class BookingService:
    """Booking write path. The availability check is repeated inside the store
    transaction so a slot taken between the pre-check and the insert is caught."""

    def __init__(self, db: Database, resolver: AvailabilityResolver) -> None:
        self.db = db
        self.resolver = resolver

    def create_booking(self, payload: BookingCreate, guest_id: str) -> Booking:
        venue = self.db.get_venue(payload.venue_id)
        if venue is None:
            raise VenueNotFound(payload.venue_id)
        if not venue.is_public:
            raise BookingRejected("Venue is not available for booking")
        if payload.guest_count > venue.capacity:
            raise BookingRejected(f"Venue capacity is {venue.capacity} people")

        candidate = Interval.of(payload.start_datetime, payload.end_datetime, resolve_timezone(venue.timezone))

        precheck = self.resolver.check_interval(venue, candidate)
        if not precheck.available:
            raise BookingUnavailable(precheck)

        with self.db.transaction():
            result = self.resolver.check_interval(venue, candidate)
            if not result.available:
                lost_race = AvailabilityReason.BOOKING_CONFLICT in result.reasons
                logger.warning(
                    "booking_slot_lost",
                    venue_id=venue.id,
                    guest_id=guest_id,
                    reasons=[r.value for r in result.reasons],
                )
                raise BookingUnavailable(result, lost_race=lost_race)

            booking = Booking(
                venue_id=venue.id,
                guest_id=guest_id,
                start_datetime=candidate.start,
                end_datetime=candidate.end,
                status="confirmed",
                guest_count=payload.guest_count,
                total_price=calculate_price(venue, candidate.end - candidate.start),
                special_requests=payload.special_requests,
            )
            self.db.add_booking(booking)

        logger.info(
            "booking_created",
            booking_id=booking.id,
            venue_id=venue.id,
            guest_id=guest_id,
            start=booking.start_datetime.isoformat(),
            total_price=str(booking.total_price),
        )
        return booking

    def get_visible_booking(self, booking_id: str, principal: Principal) -> Booking:
        booking = self.db.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        if principal.is_admin or booking.guest_id == principal.sub:
            return booking
        venue = self.db.get_venue(booking.venue_id)
        if venue is not None and venue.host_id == principal.sub:
            return booking
        # hide existence from unrelated callers
        raise BookingNotFound(booking_id)

    def cancel_booking(self, booking_id: str, principal: Principal) -> Booking:
        # status read, transition check and write share one critical section
        with self.db.transaction():
            booking = self.get_visible_booking(booking_id, principal)
            if booking.status not in CANCELLABLE:
                raise InvalidTransition(f"Cannot cancel a {booking.status} booking")
            updated = self.db.set_booking_status(booking.id, "cancelled")
            if updated is None:
                raise BookingNotFound(booking_id)
        logger.info("booking_cancelled", booking_id=booking.id, by=principal.sub)
        return updated

    def complete_booking(self, booking_id: str, principal: Principal) -> Booking:
        with self.db.transaction():
            booking = self.get_visible_booking(booking_id, principal)
            venue = self.db.get_venue(booking.venue_id)
            is_host = venue is not None and venue.host_id == principal.sub
            if not (principal.is_admin or is_host):
                raise PermissionDenied("Only the venue host can complete a booking")
            if booking.status not in COMPLETABLE:
                raise InvalidTransition(f"Cannot complete a {booking.status} booking")
            updated = self.db.set_booking_status(booking.id, "completed")
            if updated is None:
                raise BookingNotFound(booking_id)
        logger.info("booking_completed", booking_id=booking.id, by=principal.sub)
        return updated
