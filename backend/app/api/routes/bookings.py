from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ...auth import Principal, current_principal, require_role
from ...errors import DomainError, domain_error_to_http
from ...models import Booking
from ...schemas import BookingCreate, BookingWithVenue
from ...storage import DB
from ..deps import BOOKINGS
from ..types import ResourceId

router = APIRouter(tags=["bookings"])

Caller = Annotated[Principal, Depends(current_principal)]


def _with_venue(booking: Booking) -> BookingWithVenue:
    return BookingWithVenue(**booking.model_dump(), venue=DB.get_venue(booking.venue_id))


@router.post("/bookings", response_model=Booking, status_code=201)
def create_booking(
    payload: BookingCreate,
    principal: Annotated[Principal, Depends(require_role("guest", "admin"))],
):
    try:
        return BOOKINGS.create_booking(payload, guest_id=principal.sub)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc


@router.get("/bookings/me", response_model=list[BookingWithVenue])
def my_bookings(principal: Caller):
    return [_with_venue(b) for b in DB.list_bookings(guest_id=principal.sub)]


@router.get("/host/bookings", response_model=list[BookingWithVenue])
def host_bookings(principal: Annotated[Principal, Depends(require_role("host", "admin"))]):
    venue_ids = {v.id for v in DB.list_venues(host_id=principal.sub)}
    return [_with_venue(b) for b in DB.list_bookings(venue_ids=venue_ids)]


@router.get("/bookings/{booking_id}", response_model=BookingWithVenue)
def get_booking(booking_id: ResourceId, principal: Caller):
    try:
        return _with_venue(BOOKINGS.get_visible_booking(booking_id, principal))
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc


@router.post("/bookings/{booking_id}/cancel", response_model=Booking)
def cancel_booking(booking_id: ResourceId, principal: Caller):
    try:
        return BOOKINGS.cancel_booking(booking_id, principal)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc


@router.post("/bookings/{booking_id}/complete", response_model=Booking)
def complete_booking(booking_id: ResourceId, principal: Caller):
    try:
        return BOOKINGS.complete_booking(booking_id, principal)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
