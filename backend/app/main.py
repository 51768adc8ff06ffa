from typing import Any

import sentry_sdk
from fastapi import APIRouter, Depends, FastAPI
from fastapi.responses import JSONResponse, RedirectResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import admin as admin_routes
from .api.routes import bookings as bookings_routes
from .api.routes import venues as venues_routes
from .auth import require_auth, role_from_claims
from .logging_config import configure_structlog, get_logger
from .settings import settings
from .storage import DB
from .utils import add_cors, add_rate_limiting, add_request_id_tracing, add_security_headers

SERVICE_NAME = "venue-reserve"
VERSION = "0.1.0"

# Configure structured logging (must be done before any logging calls)
configure_structlog(json_logs=not settings.DEBUG, level=settings.LOG_LEVEL)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.SENTRY_RELEASE or f"{SERVICE_NAME}@dev",
        integrations=[FastApiIntegration()],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

app = FastAPI(
    title="Venue Reserve API",
    version=VERSION,
    description="Venue booking marketplace: search, availability and reservations",
)
add_cors(app)
add_security_headers(app)
add_request_id_tracing(app)
add_rate_limiting(app)

v1_router = APIRouter(prefix="/v1")


# Serve every router on the legacy root and under /v1
def include_router_on_both(router: APIRouter):
    app.include_router(router)
    v1_router.include_router(router)


include_router_on_both(venues_routes.router)
include_router_on_both(bookings_routes.router)
include_router_on_both(admin_routes.router)

logger = get_logger(__name__)


def register_on_both(method: str, path: str, **kwargs):
    """Register endpoint on legacy and versioned routers."""

    def decorator(func):
        getattr(app, method)(path, **kwargs)(func)
        getattr(v1_router, method)(path, **kwargs)(func)
        return func

    return decorator


@register_on_both("get", "/health")
def health():
    """Return service health including store status."""
    try:
        counts = DB.counts()
        writable = DB.data_dir.exists()
    except Exception as exc:
        logger.exception("health_check_failed")
        return JSONResponse(
            content={"ok": False, "status": "unhealthy", "service": SERVICE_NAME, "error": str(exc)},
            status_code=503,
        )
    healthy = writable
    return JSONResponse(
        content={
            "ok": healthy,
            "status": "healthy" if healthy else "unhealthy",
            "service": SERVICE_NAME,
            "version": VERSION,
            "store": counts,
        },
        status_code=200 if healthy else 503,
    )


@app.get("/config/features")
def feature_flags():
    return {
        "currency": settings.CURRENCY,
        "venue_timezone": settings.VENUE_TIMEZONE,
        "suggestion_step_minutes": settings.AVAILABILITY_SUGGESTION_STEP_MINUTES,
        "suggestion_horizon_days": settings.AVAILABILITY_SUGGESTION_HORIZON_DAYS,
        "auth_bypass": settings.AUTH0_BYPASS,
    }


# ---------- root redirect to docs ----------
@app.get("/", include_in_schema=False)
def root_redirect():
    return RedirectResponse(url="/docs", status_code=307)


@register_on_both("get", "/auth/session", response_model=dict)
def session_info(claims: dict[str, Any] = Depends(require_auth)):
    return {
        "user": {
            "sub": claims.get("sub"),
            "email": claims.get("email"),
            "name": claims.get("name"),
            "role": role_from_claims(claims),
        }
    }


app.include_router(v1_router)
