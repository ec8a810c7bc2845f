from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
from cachetools import TTLCache
from jose import JWTError, jwt

from ..modules.identity.roles import normalize_role
from ..settings import settings


class AuthError(Exception):
    def __init__(self, message: str, *, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Actor:
    """The authenticated caller, as asserted by the identity provider."""

    sub: str
    role: str
    email: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


_JWKS_CACHE: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=4, ttl=60 * 60)


def _get_jwks(url: str) -> dict[str, Any]:
    cached = _JWKS_CACHE.get(url)
    if cached:
        return cached

    with httpx.Client(timeout=10.0) as client:
        resp = client.get(url)
        resp.raise_for_status()
        jwks = resp.json()

    _JWKS_CACHE[url] = jwks
    return jwks


def _decode(token: str) -> dict[str, Any]:
    options = {
        "verify_aud": bool(settings.auth_audience),
        "verify_iss": bool(settings.auth_issuer),
    }
    kwargs: dict[str, Any] = {"options": options}
    if settings.auth_audience:
        kwargs["audience"] = settings.auth_audience
    if settings.auth_issuer:
        kwargs["issuer"] = settings.auth_issuer

    if settings.auth_jwks_url:
        return jwt.decode(token, _get_jwks(settings.auth_jwks_url), algorithms=["RS256"], **kwargs)
    if settings.auth_jwt_secret:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm or "HS256"],
            **kwargs,
        )
    raise AuthError("Token verification is not configured", status_code=500)


def verify_bearer_token(token: str) -> Actor:
    if not token:
        raise AuthError("Missing token")

    try:
        claims = _decode(token)
    except JWTError as e:
        raise AuthError("Invalid token") from e

    sub = str(claims.get("sub") or "").strip()
    if not sub:
        raise AuthError("Token is missing sub")

    role = normalize_role(claims.get("role") or claims.get("custom:role"))
    if not role:
        raise AuthError("Token carries no marketplace role", status_code=403)

    email = claims.get("email")
    return Actor(sub=sub, role=role, email=str(email) if email is not None else None, claims=claims)
