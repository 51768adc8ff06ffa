"""
Process-wide services wired onto the JSON store.
"""
from __future__ import annotations

from ..availability import AvailabilityResolver
from ..booking_service import BookingService
from ..storage import DB

# the store satisfies every repository contract the resolver needs
RESOLVER = AvailabilityResolver(DB, DB, DB, DB)
BOOKINGS = BookingService(DB, RESOLVER)
