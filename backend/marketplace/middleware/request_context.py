from __future__ import annotations

import re
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import request_id_var

REQUEST_ID_HEADER = "X-Request-Id"

_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _inbound_request_id(request: Request) -> str | None:
    raw = str(request.headers.get("x-request-id") or "").strip()
    # Client ids end up in logs; anything odd gets replaced.
    return raw if _SAFE_REQUEST_ID.match(raw) else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns each request an id, exposes it to logging and echoes it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = _inbound_request_id(request) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
