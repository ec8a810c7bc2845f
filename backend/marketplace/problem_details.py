"""RFC7807 problem+json responses.

Every error leaving the API, from routing, validation, auth, domain rules or
storage, is rendered here so clients see one shape:

    {"type", "title", "status", "detail", "instance", "requestId",
     "errors": [...], "extensions": {"code": ..., ...}}
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .settings import get_settings

PROBLEM_JSON = "application/problem+json"


def default_title(status_code: int) -> str:
    try:
        return HTTPStatus(int(status_code)).phrase
    except ValueError:
        return "Internal Server Error" if status_code >= 500 else "Error"


def problem_response(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> ORJSONResponse:
    status_code = int(status_code)
    # 5xx detail can carry internals; production clients only get the title.
    if status_code >= 500 and get_settings().is_production:
        detail = None

    state = getattr(request, "state", None)
    request_id = getattr(state, "request_id", None) or request.headers.get("x-request-id")

    body: dict[str, Any] = {
        "type": "about:blank",
        "title": title or default_title(status_code),
        "status": status_code,
        "detail": str(detail) if detail else None,
        "instance": str(request.url.path or "") or None,
        "requestId": str(request_id) if request_id else None,
        "errors": errors or None,
        # Extension members stay namespaced so they never shadow RFC7807 keys.
        "extensions": extensions or None,
    }
    return ORJSONResponse(
        status_code=status_code,
        content={k: v for k, v in body.items() if v is not None},
        media_type=PROBLEM_JSON,
    )
