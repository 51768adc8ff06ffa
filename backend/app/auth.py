from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Annotated, Any, Literal

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt

from .settings import settings

security = HTTPBearer(auto_error=False)
AuthCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]

Role = Literal["guest", "host", "admin"]
ROLES: tuple[Role, ...] = ("guest", "host", "admin")


class Auth0Verifier:
    def __init__(self) -> None:
        self._jwks: dict[str, Any] | None = None
        self._jwks_expiry: float = 0.0

    def _fetch_jwks(self) -> dict[str, Any]:
        issuer = settings.auth0_issuer
        if not issuer:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="AUTH0_DOMAIN is not configured",
            )
        url = issuer.rstrip("/") + "/.well-known/jwks.json"
        try:
            resp = httpx.get(url, timeout=5)
            resp.raise_for_status()
            return resp.json()
        except Exception as exc:  # pragma: no cover - network failures
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to fetch Auth0 JWKS",
            ) from exc

    def _get_jwks(self) -> dict[str, Any]:
        now = time.time()
        if self._jwks and now < self._jwks_expiry:
            return self._jwks
        jwks = self._fetch_jwks()
        self._jwks = jwks
        self._jwks_expiry = now + 60 * 15  # cache for 15 minutes
        return jwks

    def verify(self, token: str) -> dict[str, Any]:
        audience = settings.AUTH0_AUDIENCE
        issuer = settings.auth0_issuer
        if not audience or not issuer:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Auth0 audience/domain not configured",
            )

        jwks = self._get_jwks()
        try:
            unverified_header = jwt.get_unverified_header(token)
        except Exception as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token header") from exc
        kid = unverified_header.get("kid")
        if not kid:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token header")
        key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
        if not key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown token signature")
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=audience,
                issuer=issuer.rstrip("/") + "/",
            )
        except Exception as exc:  # pragma: no cover - jose already well-tested
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
        return payload


auth0_verifier = Auth0Verifier()


async def require_auth(credentials: AuthCredentials) -> dict[str, Any]:
    """FastAPI dependency enforcing Auth0 authentication."""

    if settings.AUTH0_BYPASS:
        # Use deterministic local claims for development/tests
        return {
            "sub": "local-dev-user",
            "role": settings.AUTH0_BYPASS_ROLE,
            "email": "dev@venuereserve.local",
            "name": "Local Dev",
        }

    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")

    token = credentials.credentials
    return auth0_verifier.verify(token)


@dataclass(frozen=True, slots=True)
class Principal:
    sub: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def role_from_claims(claims: dict[str, Any]) -> Role:
    raw = claims.get(settings.AUTH0_ROLE_CLAIM) or claims.get("role")
    if isinstance(raw, list | tuple):
        # the most privileged role wins when a token carries several
        ranked = [r for r in ROLES if r in {str(item).strip().lower() for item in raw}]
        return ranked[-1] if ranked else "guest"
    if isinstance(raw, str) and raw.strip().lower() in ROLES:
        return raw.strip().lower()  # type: ignore[return-value]
    return "guest"


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing subject claim")
    return Principal(sub=sub.strip(), role=role_from_claims(claims))


async def current_principal(claims: dict[str, Any] = Depends(require_auth)) -> Principal:
    return principal_from_claims(claims)


def require_role(*roles: Role):
    async def _dependency(principal: Principal = Depends(current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status.HTTP_403_FORBIDDEN, f"Requires role: {', '.join(roles)}")
        return principal

    return _dependency
