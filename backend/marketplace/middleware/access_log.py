from __future__ import annotations

import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.logging import get_logger


def _request_fields(request: Request, started: float) -> dict[str, Any]:
    actor = getattr(request.state, "user", None)
    client = request.client
    return {
        "http_method": request.method.upper(),
        "path": request.url.path,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client_ip": client.host if client else None,
        "actor_sub": getattr(actor, "sub", None),
        "actor_role": getattr(actor, "role", None),
    }


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One structured log line per API request."""

    def __init__(self, app, *, exclude_paths: set[str] | None = None):
        super().__init__(app)
        self._exclude = frozenset(exclude_paths or ())
        self._log = get_logger("access")

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self._exclude:
            return await call_next(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._log.exception("request_failed", **_request_fields(request, started))
            raise

        self._log.info("request", status_code=response.status_code, **_request_fields(request, started))
        return response
