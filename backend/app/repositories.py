"""Read contracts the availability resolver depends on.

The resolver never touches storage directly; anything that implements these
interfaces (the JSON store, a SQL adapter, a test double) can be injected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from .intervals import Interval
from .models import AvailabilityRule, Blackout, Booking, Venue


class VenueRepository(ABC):
    @abstractmethod
    def get_venue(self, venue_id: str) -> Venue | None:
        """Return a venue by ID, or None if not found."""
        ...


class AvailabilityRuleRepository(ABC):
    @abstractmethod
    def list_rules(self, venue_id: str) -> list[AvailabilityRule]:
        """Return every weekly rule for the venue."""
        ...


class BlackoutRepository(ABC):
    @abstractmethod
    def list_blackouts(self, venue_id: str, window: Interval | None = None) -> list[Blackout]:
        """Return blackouts for the venue, limited to those overlapping ``window`` when given."""
        ...


class BookingRepository(ABC):
    @abstractmethod
    def list_occupying_bookings(self, venue_id: str, window: Interval | None = None) -> list[Booking]:
        """Return non-cancelled bookings for the venue overlapping ``window`` when given."""
        ...

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Critical section in which a re-check and an insert happen atomically."""
        ...

    @abstractmethod
    def add_booking(self, booking: Booking) -> Booking:
        ...
