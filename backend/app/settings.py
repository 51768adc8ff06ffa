from __future__ import annotations

import ipaddress
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    # whether to expose the debug config endpoint
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # persistence directory (defaults to ~/.venue-reserve-data)
    DATA_DIR: Path | None = None

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # Venue defaults. Wall-clock rules are evaluated in the venue timezone.
    VENUE_TIMEZONE: str = "Africa/Cairo"
    CURRENCY: str = "EGP"
    DEFAULT_MIN_BOOKING_MINUTES: int = 30
    DEFAULT_BUFFER_MINUTES: int = 30

    # Alternative slot search when a requested time is unavailable
    AVAILABILITY_SUGGESTION_STEP_MINUTES: int = 15
    AVAILABILITY_SUGGESTION_HORIZON_DAYS: int = 14
    AVAILABILITY_SUGGESTION_LIMIT: int = 3

    # Auth0 integration
    AUTH0_DOMAIN: str | None = None
    AUTH0_AUDIENCE: str | None = None
    AUTH0_BYPASS: bool = False  # require explicit opt-in for bypass
    AUTH0_BYPASS_ROLE: Literal["guest", "host", "admin"] = "admin"
    AUTH0_ROLE_CLAIM: str = "https://venue-reserve.app/role"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 300  # per window per client
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Trusted proxy configuration for X-Forwarded-For validation
    # Only trust X-Forwarded-For headers from these proxies (comma-separated IPs/CIDRs)
    # Set to "*" to trust all (only for development behind a trusted reverse proxy)
    # Leave empty to never trust X-Forwarded-For (use direct client.host only)
    TRUSTED_PROXIES: str = ""

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def data_dir(self) -> Path:
        if self.DATA_DIR:
            return Path(self.DATA_DIR).expanduser().resolve()
        return (Path.home() / ".venue-reserve-data").resolve()

    @property
    def auth0_issuer(self) -> str | None:
        if not self.AUTH0_DOMAIN:
            return None
        domain = self.AUTH0_DOMAIN.removeprefix("https://").removeprefix("http://")
        return f"https://{domain}/"

    @property
    def trust_all_proxies(self) -> bool:
        return (self.TRUSTED_PROXIES or "").strip() == "*"

    @property
    def trusted_proxy_networks(self) -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
        payload = (self.TRUSTED_PROXIES or "").strip()
        if not payload or payload == "*":
            return []
        networks = []
        for part in payload.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                networks.append(ipaddress.ip_network(part, strict=False))
            except ValueError:
                continue
        return networks


settings = Settings()
# make sure directory exists when imported
settings.data_dir.mkdir(parents=True, exist_ok=True)
