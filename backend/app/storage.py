from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from .intervals import Interval, intervals_overlap, resolve_timezone, to_utc
from .logging_config import get_logger
from .models import AvailabilityRule, Blackout, Booking, BookingStatus, Venue, VenueStatus
from .repositories import (
    AvailabilityRuleRepository,
    BlackoutRepository,
    BookingRepository,
    VenueRepository,
)
from .settings import settings

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

COLLECTIONS: dict[str, type[BaseModel]] = {
    "venues": Venue,
    "availability_rules": AvailabilityRule,
    "blackouts": Blackout,
    "bookings": Booking,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Database(VenueRepository, AvailabilityRuleRepository, BlackoutRepository, BookingRepository):
    """
    JSON-file store:
      - one file per collection under the configured data directory
      - every read and write goes through a re-entrant lock, so a booking
        re-check and its insert can share one critical section
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = Path(data_dir) if data_dir else settings.data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()
        self.venues: dict[str, Venue] = {}
        self.rules: dict[str, AvailabilityRule] = {}
        self.blackouts: dict[str, Blackout] = {}
        self.bookings: dict[str, Booking] = {}
        self._load()

    # -------- helpers --------
    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _store_for(self, collection: str) -> dict[str, Any]:
        return {
            "venues": self.venues,
            "availability_rules": self.rules,
            "blackouts": self.blackouts,
            "bookings": self.bookings,
        }[collection]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            yield

    def reset(self) -> None:
        with self._lock:
            for collection in COLLECTIONS:
                self._store_for(collection).clear()
                path = self._path(collection)
                if path.exists():
                    path.unlink()

    # -------- venues --------
    def list_venues(self, status: VenueStatus | None = None, host_id: str | None = None) -> list[Venue]:
        with self._lock:
            items = list(self.venues.values())
        if status is not None:
            items = [v for v in items if v.status == status]
        if host_id is not None:
            items = [v for v in items if v.host_id == host_id]
        return sorted(items, key=lambda v: v.created_at)

    def get_venue(self, venue_id: str) -> Venue | None:
        with self._lock:
            return self.venues.get(str(venue_id))

    def add_venue(self, venue: Venue) -> Venue:
        with self._lock:
            self.venues[venue.id] = venue
            self._save("venues")
        return venue

    def update_venue(self, venue_id: str, **fields: Any) -> Venue | None:
        with self._lock:
            current = self.venues.get(str(venue_id))
            if current is None:
                return None
            payload = current.model_dump()
            payload.update(fields)
            payload["updated_at"] = _utcnow()
            updated = Venue.model_validate(payload)
            self.venues[updated.id] = updated
            self._save("venues")
            return updated

    def delete_venue(self, venue_id: str) -> Venue | None:
        with self._lock:
            removed = self.venues.pop(str(venue_id), None)
            if removed is None:
                return None
            self.rules = {k: r for k, r in self.rules.items() if r.venue_id != removed.id}
            self.blackouts = {k: b for k, b in self.blackouts.items() if b.venue_id != removed.id}
            for collection in ("venues", "availability_rules", "blackouts"):
                self._save(collection)
            return removed

    # -------- availability rules --------
    def list_rules(self, venue_id: str) -> list[AvailabilityRule]:
        with self._lock:
            rules = [r for r in self.rules.values() if r.venue_id == str(venue_id)]
        return sorted(rules, key=lambda r: (r.day_of_week, r.open_time))

    def add_rule(self, rule: AvailabilityRule) -> AvailabilityRule:
        with self._lock:
            self.rules[rule.id] = rule
            self._save("availability_rules")
        return rule

    def delete_rule(self, venue_id: str, rule_id: str) -> AvailabilityRule | None:
        with self._lock:
            rule = self.rules.get(str(rule_id))
            if rule is None or rule.venue_id != str(venue_id):
                return None
            del self.rules[rule.id]
            self._save("availability_rules")
            return rule

    def _venue_tz(self, venue_id: str) -> ZoneInfo:
        venue = self.get_venue(venue_id)
        return resolve_timezone(venue.timezone if venue else None)

    # -------- blackouts --------
    def list_blackouts(self, venue_id: str, window: Interval | None = None) -> list[Blackout]:
        with self._lock:
            items = [b for b in self.blackouts.values() if b.venue_id == str(venue_id)]
        tz = self._venue_tz(venue_id)
        if window is not None:
            items = [
                b
                for b in items
                if intervals_overlap(
                    window.start, window.end, to_utc(b.start_datetime, tz), to_utc(b.end_datetime, tz)
                )
            ]
        return sorted(items, key=lambda b: to_utc(b.start_datetime, tz))

    def add_blackout(self, blackout: Blackout) -> Blackout:
        with self._lock:
            self.blackouts[blackout.id] = blackout
            self._save("blackouts")
        return blackout

    def delete_blackout(self, venue_id: str, blackout_id: str) -> Blackout | None:
        with self._lock:
            blackout = self.blackouts.get(str(blackout_id))
            if blackout is None or blackout.venue_id != str(venue_id):
                return None
            del self.blackouts[blackout.id]
            self._save("blackouts")
            return blackout

    # -------- bookings --------
    def list_bookings(
        self,
        guest_id: str | None = None,
        venue_ids: set[str] | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        with self._lock:
            items = list(self.bookings.values())
        if guest_id is not None:
            items = [b for b in items if b.guest_id == guest_id]
        if venue_ids is not None:
            items = [b for b in items if b.venue_id in venue_ids]
        if status is not None:
            items = [b for b in items if b.status == status]
        return sorted(items, key=lambda b: to_utc(b.start_datetime))

    def list_occupying_bookings(self, venue_id: str, window: Interval | None = None) -> list[Booking]:
        with self._lock:
            items = [b for b in self.bookings.values() if b.venue_id == str(venue_id) and b.is_occupying]
        tz = self._venue_tz(venue_id)
        if window is not None:
            items = [
                b
                for b in items
                if intervals_overlap(
                    window.start, window.end, to_utc(b.start_datetime, tz), to_utc(b.end_datetime, tz)
                )
            ]
        return items

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._lock:
            return self.bookings.get(str(booking_id))

    def add_booking(self, booking: Booking) -> Booking:
        with self._lock:
            self.bookings[booking.id] = booking
            self._save("bookings")
        return booking

    def set_booking_status(self, booking_id: str, status: BookingStatus) -> Booking | None:
        with self._lock:
            current = self.bookings.get(str(booking_id))
            if current is None:
                return None
            updated = current.model_copy(update={"status": status, "updated_at": _utcnow()})
            self.bookings[updated.id] = updated
            self._save("bookings")
            return updated

    # -------- persistence --------
    def _save(self, collection: str) -> None:
        """Write one collection atomically (temp file + rename) under the store lock."""
        records = [item.model_dump(mode="json") for item in self._store_for(collection).values()]
        payload = json.dumps({collection: records}, ensure_ascii=False, indent=2)
        path = self._path(collection)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{collection}.", dir=str(self.data_dir))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _load_collection(self, collection: str, model: type[ModelT]) -> dict[str, ModelT]:
        path = self._path(collection)
        if not path.exists():
            return {}
        raw_text = path.read_text(encoding="utf-8").strip()
        if not raw_text:
            return {}
        try:
            raw = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Invalid {collection} data: {path}") from exc

        cleaned: dict[str, ModelT] = {}
        skipped = 0
        for record in raw.get(collection, []):
            try:
                item = model.model_validate(record)
            except ValidationError:
                skipped += 1
                continue
            cleaned[item.id] = item  # type: ignore[attr-defined]
        if skipped:
            logger.warning("storage_records_skipped", collection=collection, skipped=skipped)
        return cleaned

    def _load(self) -> None:
        with self._lock:
            self.venues = self._load_collection("venues", Venue)
            self.rules = self._load_collection("availability_rules", AvailabilityRule)
            self.blackouts = self._load_collection("blackouts", Blackout)
            self.bookings = self._load_collection("bookings", Booking)

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {collection: len(self._store_for(collection)) for collection in COLLECTIONS}


# Single instance
DB = Database()
