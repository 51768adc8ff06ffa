"""
Domain errors and their single mapping onto HTTP responses.
Services raise these; routes stay thin and call ``domain_error_to_http``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import HTTPException

if TYPE_CHECKING:
    from .availability import AvailabilityResult

# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

MSG_SLOT_TAKEN = "This slot just became unavailable, please pick another time."
MSG_SLOT_UNAVAILABLE = "Venue is not available for the selected time."

STATUS_NOT_FOUND = 404
STATUS_FORBIDDEN = 403
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422


class DomainError(Exception):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def detail(self) -> Any:
        return self.message


class VenueNotFound(DomainError):
    status_code = STATUS_NOT_FOUND

    def __init__(self, venue_id: str) -> None:
        super().__init__("Venue not found")
        self.venue_id = venue_id


class BookingNotFound(DomainError):
    status_code = STATUS_NOT_FOUND

    def __init__(self, booking_id: str) -> None:
        super().__init__("Booking not found")
        self.booking_id = booking_id


class PermissionDenied(DomainError):
    status_code = STATUS_FORBIDDEN


class BookingRejected(DomainError):
    """Request is well-formed but the venue cannot take it (capacity, not approved)."""

    status_code = STATUS_UNPROCESSABLE


class InvalidTransition(DomainError):
    status_code = STATUS_CONFLICT


class BookingUnavailable(DomainError):
    status_code = STATUS_CONFLICT

    def __init__(self, result: AvailabilityResult, *, lost_race: bool = False) -> None:
        super().__init__(MSG_SLOT_TAKEN if lost_race else MSG_SLOT_UNAVAILABLE)
        self.result = result
        self.lost_race = lost_race

    def detail(self) -> Any:
        return {
            "message": self.message,
            "reason": self.result.reason.value if self.result.reason else None,
            "reasons": [r.value for r in self.result.reasons],
            "conflicts": list(self.result.conflicts),
        }


def domain_error_to_http(exc: DomainError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail())
