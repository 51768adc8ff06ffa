from __future__ import annotations

import json

from fastapi.testclient import TestClient

from backend.app.main import app
from backend.app.models import Venue
from backend.app.settings import settings
from backend.app.storage import DB, Database


def test_health_endpoint_reports_service_status(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["status"] == "healthy"
    assert payload["service"] == "venue-reserve"
    assert payload["store"] == {"venues": 0, "availability_rules": 0, "blackouts": 0, "bookings": 0}
    assert client.get("/v1/health").status_code == 200


def test_docs_and_root_redirect(client: TestClient) -> None:
    for path in ("/docs", "/openapi.json"):
        assert client.get(path).status_code == 200
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"] == "/docs"


def test_feature_flags(client: TestClient) -> None:
    flags = client.get("/config/features").json()
    assert flags["venue_timezone"] == "Africa/Cairo"
    assert flags["suggestion_step_minutes"] == 15
    assert flags["suggestion_horizon_days"] == 14


def test_security_and_request_id_headers(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert len(resp.headers["X-Request-ID"]) == 32

    echoed = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert echoed.headers["X-Request-ID"] == "trace-123"


def test_rate_limit_returns_429(client: TestClient) -> None:
    settings.RATE_LIMIT_ENABLED = True
    original = settings.RATE_LIMIT_REQUESTS
    settings.RATE_LIMIT_REQUESTS = 3
    try:
        codes = [client.get("/health").status_code for _ in range(4)]
        assert codes == [200, 200, 200, 429]
    finally:
        settings.RATE_LIMIT_REQUESTS = original
        settings.RATE_LIMIT_ENABLED = False
        app.state.rate_limiter.reset()


def test_store_survives_reload(tmp_path) -> None:
    store = Database(tmp_path)
    venue = store.add_venue(
        Venue(
            host_id="h1",
            title="Persisted",
            category="Hall",
            address="9 Giza Rd",
            city="Giza",
            capacity=5,
            base_hourly_price="10",
        )
    )
    reopened = Database(tmp_path)
    assert reopened.get_venue(venue.id) == venue
    raw = json.loads((tmp_path / "venues.json").read_text(encoding="utf-8"))
    assert [item["id"] for item in raw["venues"]] == [venue.id]


def test_store_skips_invalid_records(tmp_path) -> None:
    (tmp_path / "bookings.json").write_text(
        json.dumps({"bookings": [{"id": "broken", "venue_id": "v1"}]}), encoding="utf-8"
    )
    store = Database(tmp_path)
    assert store.list_bookings() == []


def test_shared_store_is_reset_between_tests() -> None:
    assert DB.counts() == {"venues": 0, "availability_rules": 0, "blackouts": 0, "bookings": 0}
