from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from ...auth import Principal, require_role
from ...availability import AvailabilityReason
from ...errors import DomainError, domain_error_to_http
from ...intervals import InvalidInterval, format_wall_time, resolve_timezone, to_utc
from ...logging_config import get_logger
from ...models import AvailabilityRule, Blackout, Venue
from ...rules import weekly_schedule
from ...schemas import (
    AvailabilityResponse,
    AvailabilityRuleCreate,
    BlackoutCreate,
    VenueCreate,
    VenueDetail,
    VenueSearchFilters,
    VenueSearchResponse,
    VenueUpdate,
    WeeklyWindow,
)
from ...storage import DB
from ..deps import RESOLVER
from ..types import DurationQuery, ResourceId, StartQuery, SuggestQuery

router = APIRouter(tags=["venues"])
logger = get_logger(__name__)

HostOrAdmin = Annotated[Principal, Depends(require_role("host", "admin"))]


def _require_public_venue(venue_id: str) -> Venue:
    venue = DB.get_venue(venue_id)
    if not venue or not venue.is_public:
        raise HTTPException(404, "Venue not found")
    return venue


def _require_manageable_venue(venue_id: str, principal: Principal) -> Venue:
    venue = DB.get_venue(venue_id)
    if not venue:
        raise HTTPException(404, "Venue not found")
    if not principal.is_admin and venue.host_id != principal.sub:
        raise HTTPException(403, "Not authorized")
    return venue


def _validation_detail(exc: ValidationError) -> list[dict]:
    return exc.errors(include_url=False, include_context=False)


def _matches(venue: Venue, filters: VenueSearchFilters) -> bool:
    if filters.q:
        needle = filters.q.strip().lower()
        haystack = " ".join(
            [venue.title, venue.description or "", venue.city, venue.category, " ".join(venue.amenities)]
        ).lower()
        if needle not in haystack:
            return False
    if filters.city and venue.city.lower() != filters.city.strip().lower():
        return False
    if filters.category and venue.category.lower() != filters.category.strip().lower():
        return False
    if filters.capacity_min is not None and venue.capacity < filters.capacity_min:
        return False
    if filters.price_min is not None and venue.base_hourly_price < filters.price_min:
        return False
    if filters.price_max is not None and venue.base_hourly_price > filters.price_max:
        return False
    if filters.amenities:
        offered = {a.lower() for a in venue.amenities}
        if not all(a.strip().lower() in offered for a in filters.amenities):
            return False
    return True


def _free_at(venue: Venue, filters: VenueSearchFilters) -> bool:
    if filters.available_at is None:
        return True
    duration = filters.duration_minutes or venue.min_booking_minutes
    return RESOLVER.check_availability(venue.id, filters.available_at, duration).available


def _detail(venue: Venue) -> VenueDetail:
    hours = [
        WeeklyWindow(day_of_week=day, open_time=format_wall_time(start), close_time=format_wall_time(end))
        for day, windows in weekly_schedule(DB.list_rules(venue.id)).items()
        for start, end in windows
    ]
    return VenueDetail(**venue.model_dump(), weekly_hours=hours)


# ---------- catalogue ----------
@router.get("/venues", response_model=VenueSearchResponse)
def search_venues(filters: Annotated[VenueSearchFilters, Query()]):
    candidates = [v for v in DB.list_venues(status="approved") if _matches(v, filters)]
    matches = [v for v in candidates if _free_at(v, filters)]
    offset = (filters.page - 1) * filters.limit
    return VenueSearchResponse(
        venues=matches[offset : offset + filters.limit],
        total=len(matches),
        page=filters.page,
        limit=filters.limit,
    )


@router.get("/venues/{venue_id}", response_model=VenueDetail)
def get_venue(venue_id: ResourceId):
    return _detail(_require_public_venue(venue_id))


@router.get(
    "/venues/{venue_id}/availability",
    response_model=AvailabilityResponse,
    response_model_exclude_none=True,
)
def venue_availability(
    venue_id: ResourceId,
    start: StartQuery,
    duration_minutes: DurationQuery,
    suggest: SuggestQuery = False,
):
    venue = _require_public_venue(venue_id)
    try:
        result = RESOLVER.check_availability(venue.id, start, duration_minutes, suggest=suggest)
    except InvalidInterval as exc:
        raise HTTPException(
            422, {"reason": AvailabilityReason.INVALID_INTERVAL.value, "message": str(exc)}
        ) from exc
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return AvailabilityResponse(
        available=result.available,
        reason=result.reason.value if result.reason else None,
        reasons=[r.value for r in result.reasons],
        conflicts=result.conflicts or None,
        suggested_times=result.suggested_times or None,
    )


# ---------- host management ----------
@router.post("/venues", response_model=Venue, status_code=201)
def create_venue(payload: VenueCreate, principal: HostOrAdmin):
    data = payload.model_dump(exclude_none=True, exclude={"host_id"})
    host_id = payload.host_id if principal.is_admin and payload.host_id else principal.sub
    # admin-created venues skip moderation
    status = "approved" if principal.is_admin else "pending_approval"
    try:
        venue = Venue(host_id=host_id, status=status, **data)
    except ValidationError as exc:
        raise HTTPException(422, _validation_detail(exc)) from exc
    DB.add_venue(venue)
    logger.info("venue_created", venue_id=venue.id, host_id=host_id, status=status)
    return venue


@router.get("/host/venues", response_model=list[Venue])
def list_host_venues(principal: HostOrAdmin):
    return DB.list_venues(host_id=principal.sub)


@router.patch("/venues/{venue_id}", response_model=Venue)
def update_venue(venue_id: ResourceId, payload: VenueUpdate, principal: HostOrAdmin):
    _require_manageable_venue(venue_id, principal)
    changes = payload.model_dump(exclude_unset=True)
    try:
        updated = DB.update_venue(venue_id, **changes)
    except ValidationError as exc:
        raise HTTPException(422, _validation_detail(exc)) from exc
    if not updated:
        raise HTTPException(404, "Venue not found")
    return updated


@router.delete("/venues/{venue_id}", response_model=Venue)
def delete_venue(venue_id: ResourceId, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    now = datetime.now(timezone.utc)
    upcoming = [b for b in DB.list_occupying_bookings(venue.id) if to_utc(b.end_datetime) > now]
    if upcoming:
        raise HTTPException(409, f"Venue has {len(upcoming)} upcoming booking(s)")
    DB.delete_venue(venue.id)
    logger.info("venue_deleted", venue_id=venue.id, by=principal.sub)
    return venue


# ---------- weekly rules ----------
@router.get("/venues/{venue_id}/availability/rules", response_model=list[AvailabilityRule])
def list_rules(venue_id: ResourceId, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    return DB.list_rules(venue.id)


@router.post("/venues/{venue_id}/availability/rules", response_model=AvailabilityRule, status_code=201)
def add_rule(venue_id: ResourceId, payload: AvailabilityRuleCreate, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    rule = AvailabilityRule(venue_id=venue.id, **payload.model_dump())
    return DB.add_rule(rule)


@router.delete("/venues/{venue_id}/availability/rules/{rule_id}", response_model=AvailabilityRule)
def delete_rule(venue_id: ResourceId, rule_id: ResourceId, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    removed = DB.delete_rule(venue.id, rule_id)
    if not removed:
        raise HTTPException(404, "Availability rule not found")
    return removed


# ---------- blackouts ----------
@router.get("/venues/{venue_id}/blackouts", response_model=list[Blackout])
def list_blackouts(venue_id: ResourceId, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    return DB.list_blackouts(venue.id)


@router.post("/venues/{venue_id}/blackouts", response_model=Blackout, status_code=201)
def add_blackout(venue_id: ResourceId, payload: BlackoutCreate, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    tz = resolve_timezone(venue.timezone)
    start = to_utc(payload.start_datetime, tz)
    end = to_utc(payload.end_datetime, tz)
    if end <= start:
        raise HTTPException(422, "end_datetime must be after start_datetime")
    blackout = Blackout(venue_id=venue.id, start_datetime=start, end_datetime=end, reason=payload.reason)
    return DB.add_blackout(blackout)


@router.delete("/venues/{venue_id}/blackouts/{blackout_id}", response_model=Blackout)
def delete_blackout(venue_id: ResourceId, blackout_id: ResourceId, principal: HostOrAdmin):
    venue = _require_manageable_venue(venue_id, principal)
    removed = DB.delete_blackout(venue.id, blackout_id)
    if not removed:
        raise HTTPException(404, "Blackout not found")
    return removed
