from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Annotated, get_args

from fastapi import APIRouter, Depends, HTTPException

from ...auth import Principal, require_role
from ...logging_config import get_logger
from ...models import Booking, BookingStatus, Venue, VenueStatus
from ...schemas import AdminStats
from ...settings import settings
from ...storage import DB
from ..types import ResourceId, VenueStatusQuery

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)

Admin = Annotated[Principal, Depends(require_role("admin"))]

REVENUE_STATUSES = frozenset({"confirmed", "completed"})


def _moderate(venue_id: str, status: VenueStatus, principal: Principal) -> Venue:
    venue = DB.get_venue(venue_id)
    if not venue:
        raise HTTPException(404, "Venue not found")
    if venue.status == status:
        return venue
    updated = DB.update_venue(venue.id, status=status)
    logger.info("venue_moderated", venue_id=venue.id, status=status, by=principal.sub)
    return updated


@router.get("/venues", response_model=list[Venue])
def admin_list_venues(principal: Admin, status: VenueStatusQuery = None):
    return DB.list_venues(status=status)


@router.patch("/venues/{venue_id}/approve", response_model=Venue)
def approve_venue(venue_id: ResourceId, principal: Admin):
    return _moderate(venue_id, "approved", principal)


@router.patch("/venues/{venue_id}/reject", response_model=Venue)
def reject_venue(venue_id: ResourceId, principal: Admin):
    return _moderate(venue_id, "rejected", principal)


@router.get("/bookings", response_model=list[Booking])
def admin_list_bookings(principal: Admin):
    return DB.list_bookings()


@router.get("/stats", response_model=AdminStats)
def admin_stats(principal: Admin):
    venues = DB.list_venues()
    bookings = DB.list_bookings()
    venue_counts = Counter(v.status for v in venues)
    booking_counts = Counter(b.status for b in bookings)
    revenue = sum((b.total_price for b in bookings if b.status in REVENUE_STATUSES), Decimal("0"))
    return AdminStats(
        venues_by_status={s: venue_counts.get(s, 0) for s in get_args(VenueStatus)},
        bookings_by_status={s: booking_counts.get(s, 0) for s in get_args(BookingStatus)},
        revenue=revenue,
        currency=settings.CURRENCY,
    )
