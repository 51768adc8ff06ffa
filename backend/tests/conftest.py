import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ["VENUE_TIMEZONE"] = "Africa/Cairo"
test_data_dir = ROOT / "artifacts" / "test-data"
test_data_dir.mkdir(parents=True, exist_ok=True)
os.environ["DATA_DIR"] = str(test_data_dir)

from backend.app.auth import require_auth  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.models import AvailabilityRule, Venue  # noqa: E402
from backend.app.settings import settings  # noqa: E402
from backend.app.storage import DB  # noqa: E402

HOST_ID = "host-1"


@pytest.fixture(scope="session")
def client() -> TestClient:
    return TestClient(app, base_url="http://api.testserver")


@pytest.fixture(autouse=True)
def clean_store():
    settings.AUTH0_BYPASS = True
    settings.AUTH0_BYPASS_ROLE = "admin"
    settings.RATE_LIMIT_ENABLED = False
    settings.SENTRY_DSN = None
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter:
        limiter.reset()
    DB.reset()
    yield
    app.dependency_overrides.clear()
    DB.reset()


@pytest.fixture
def login():
    """Act as a specific user for the rest of the test."""

    def _login(sub: str, role: str = "guest") -> None:
        app.dependency_overrides[require_auth] = lambda: {"sub": sub, "role": role}

    return _login


@pytest.fixture
def make_venue():
    """Approved venue open Monday 09:00-17:00 unless told otherwise."""

    def _make(*, hours=((1, "09:00", "17:00"),), **overrides) -> Venue:
        fields = dict(
            host_id=HOST_ID,
            title="Nile View Loft",
            category="Studio",
            address="12 Corniche St",
            city="Cairo",
            capacity=20,
            base_hourly_price=Decimal("100"),
            min_booking_minutes=30,
            buffer_minutes=0,
            status="approved",
        )
        fields.update(overrides)
        venue = DB.add_venue(Venue(**fields))
        for day, open_time, close_time in hours:
            DB.add_rule(
                AvailabilityRule(venue_id=venue.id, day_of_week=day, open_time=open_time, close_time=close_time)
            )
        return venue

    return _make
