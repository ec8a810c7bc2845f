from __future__ import annotations

from typing import Any

# Volunteer and charity portals run on Vite / CRA dev servers locally.
_DEV_ORIGINS = ("http://localhost:3000", "http://localhost:5173")
_DEV_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def cors_options(*, frontend_url: str | None, frontend_urls: str | None) -> dict[str, Any]:
    """Keyword arguments for Starlette's CORSMiddleware.

    Deployed origins come from FRONTEND_URL / FRONTEND_URLS (comma separated).
    """
    origins = set(_DEV_ORIGINS)
    for raw in (frontend_url, frontend_urls):
        origins.update(o.strip() for o in str(raw or "").split(",") if o.strip())

    return {
        "allow_origins": sorted(origins),
        "allow_origin_regex": _DEV_ORIGIN_REGEX,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization", "X-Request-Id"],
        "expose_headers": ["X-Request-Id"],
        "max_age": 3000,
    }
