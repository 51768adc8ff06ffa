from __future__ import annotations

import datetime as dt

from fastapi.testclient import TestClient

from backend.app.errors import MSG_SLOT_UNAVAILABLE
from backend.app.storage import DB

MONDAY = "2030-01-07"  # a Monday
HOST_ID = "host-1"


def _book(client: TestClient, venue_id: str, start: str, end: str, guests: int = 4):
    return client.post(
        "/bookings",
        json={
            "venue_id": venue_id,
            "start_datetime": f"{MONDAY}T{start}",
            "end_datetime": f"{MONDAY}T{end}",
            "guest_count": guests,
        },
    )


def test_create_booking_flow(client: TestClient, make_venue, login) -> None:
    venue = make_venue(buffer_minutes=30)
    login("guest-1", "guest")
    resp = _book(client, venue.id, "10:00:00", "11:30:00")
    assert resp.status_code == 201
    booking = resp.json()
    assert booking["status"] == "confirmed"
    assert booking["guest_id"] == "guest-1"
    assert booking["total_price"] == "150.00"
    assert dt.datetime.fromisoformat(booking["start_datetime"]) == dt.datetime(
        2030, 1, 7, 8, 0, tzinfo=dt.timezone.utc
    )

    mine = client.get("/bookings/me").json()
    assert [b["id"] for b in mine] == [booking["id"]]
    assert mine[0]["venue"]["id"] == venue.id


def test_conflicting_booking_returns_409(client: TestClient, make_venue, login) -> None:
    venue = make_venue(buffer_minutes=30)
    login("guest-1", "guest")
    assert _book(client, venue.id, "10:00:00", "11:00:00").status_code == 201

    login("guest-2", "guest")
    clash = _book(client, venue.id, "11:15:00", "12:00:00")
    assert clash.status_code == 409
    detail = clash.json()["detail"]
    assert detail["message"] == MSG_SLOT_UNAVAILABLE
    assert detail["reason"] == "BookingConflict"
    assert detail["conflicts"]

    assert _book(client, venue.id, "11:30:00", "12:00:00").status_code == 201


def test_booking_outside_hours_or_blacked_out(client: TestClient, make_venue) -> None:
    venue = make_venue()
    closed = _book(client, venue.id, "17:00:00", "18:00:00")
    assert closed.status_code == 409
    assert closed.json()["detail"]["reason"] == "OutsideOperatingHours"

    client.post(
        f"/venues/{venue.id}/blackouts",
        json={"start_datetime": f"{MONDAY}T12:00:00", "end_datetime": f"{MONDAY}T13:00:00"},
    )
    blacked = _book(client, venue.id, "12:30:00", "13:00:00")
    assert blacked.status_code == 409
    assert blacked.json()["detail"]["reason"] == "BlackedOut"


def test_booking_validation(client: TestClient, make_venue) -> None:
    venue = make_venue(capacity=10)
    assert _book(client, venue.id, "11:00:00", "10:00:00").status_code == 422
    assert _book(client, venue.id, "10:00:00", "11:00:00", guests=0).status_code == 422
    over = _book(client, venue.id, "10:00:00", "11:00:00", guests=11)
    assert over.status_code == 422
    assert "capacity" in over.json()["detail"]
    assert _book(client, "missing", "10:00:00", "11:00:00").status_code == 404


def test_booking_rejects_mixed_offsets(client: TestClient, make_venue) -> None:
    venue = make_venue()
    resp = _book(client, venue.id, "10:00:00", "11:00:00+02:00")
    assert resp.status_code == 422
    assert _book(client, venue.id, "10:00:00+02:00", "11:00:00").status_code == 422
    assert DB.list_bookings() == []


def test_booking_pending_venue_rejected(client: TestClient, make_venue) -> None:
    venue = make_venue(status="pending_approval")
    assert _book(client, venue.id, "10:00:00", "11:00:00").status_code == 422


def test_host_cannot_book(client: TestClient, make_venue, login) -> None:
    venue = make_venue()
    login(HOST_ID, "host")
    assert _book(client, venue.id, "10:00:00", "11:00:00").status_code == 403


def test_cancel_frees_slot(client: TestClient, make_venue, login) -> None:
    venue = make_venue()
    login("guest-1", "guest")
    booking = _book(client, venue.id, "10:00:00", "11:00:00").json()

    login("guest-2", "guest")
    assert _book(client, venue.id, "10:00:00", "11:00:00").status_code == 409
    assert client.post(f"/bookings/{booking['id']}/cancel").status_code == 404

    login("guest-1", "guest")
    cancelled = client.post(f"/bookings/{booking['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"/bookings/{booking['id']}/cancel").status_code == 409

    login("guest-2", "guest")
    assert _book(client, venue.id, "10:00:00", "11:00:00").status_code == 201


def test_host_sees_and_completes_venue_bookings(client: TestClient, make_venue, login) -> None:
    venue = make_venue()
    login("guest-1", "guest")
    booking = _book(client, venue.id, "10:00:00", "11:00:00").json()
    assert client.post(f"/bookings/{booking['id']}/complete").status_code == 403

    login(HOST_ID, "host")
    listed = client.get("/host/bookings").json()
    assert [b["id"] for b in listed] == [booking["id"]]
    assert client.get(f"/bookings/{booking['id']}").status_code == 200
    completed = client.post(f"/bookings/{booking['id']}/complete")
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    login("other-host", "host")
    assert client.get("/host/bookings").json() == []
    assert client.get(f"/bookings/{booking['id']}").status_code == 404


def test_v1_booking_routes(client: TestClient, make_venue) -> None:
    venue = make_venue()
    resp = client.post(
        "/v1/bookings",
        json={
            "venue_id": venue.id,
            "start_datetime": f"{MONDAY}T09:00:00",
            "end_datetime": f"{MONDAY}T10:00:00",
            "guest_count": 2,
        },
    )
    assert resp.status_code == 201
    assert DB.get_booking(resp.json()["id"]) is not None


# ---------- admin ----------
def test_admin_moderation_flow(client: TestClient, make_venue, login) -> None:
    login("host-9", "host")
    created = client.post(
        "/venues",
        json={
            "title": "Warehouse",
            "category": "Industrial",
            "address": "3 Port Said",
            "city": "Alexandria",
            "capacity": 80,
            "base_hourly_price": "300",
        },
    ).json()
    assert client.get("/admin/venues").status_code == 403

    login("admin-1", "admin")
    pending = client.get("/admin/venues", params={"status": "pending_approval"}).json()
    assert [v["id"] for v in pending] == [created["id"]]
    approved = client.patch(f"/admin/venues/{created['id']}/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert client.get(f"/venues/{created['id']}").status_code == 200

    rejected = client.patch(f"/admin/venues/{created['id']}/reject")
    assert rejected.json()["status"] == "rejected"
    assert client.get(f"/venues/{created['id']}").status_code == 404
    assert client.patch("/admin/venues/missing/approve").status_code == 404


def test_admin_stats(client: TestClient, make_venue, login) -> None:
    venue = make_venue()
    make_venue(status="pending_approval")
    login("guest-1", "guest")
    first = _book(client, venue.id, "09:00:00", "10:00:00").json()
    _book(client, venue.id, "12:00:00", "13:30:00")
    client.post(f"/bookings/{first['id']}/cancel")

    login("admin-1", "admin")
    stats = client.get("/admin/stats").json()
    assert stats["venues_by_status"]["approved"] == 1
    assert stats["venues_by_status"]["pending_approval"] == 1
    assert stats["bookings_by_status"] == {"pending": 0, "confirmed": 1, "cancelled": 1, "completed": 0}
    assert stats["revenue"] == "150.00"
    assert stats["currency"] == "EGP"
    assert len(client.get("/admin/bookings").json()) == 2
