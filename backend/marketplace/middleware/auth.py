from __future__ import annotations

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.identity import AuthError, verify_bearer_token
from ..observability.logging import get_logger
from ..problem_details import problem_response


def is_public_path(path: str, method: str = "GET") -> bool:
    if path in ("/", "/api/health"):
        return True

    # Anonymous browsing of published opportunities.
    if method.upper() == "GET" and path.startswith("/api/opportunities"):
        rest = path[len("/api/opportunities"):].strip("/")
        # "/api/opportunities" and "/api/opportunities/{id}" only; "mine",
        # applications and matches stay private.
        if not rest:
            return True
        if "/" not in rest and rest != "mine":
            return True

    return False


async def require_auth(request: Request):
    path = request.url.path

    # CORS preflight is handled by CORSMiddleware.
    if request.method.upper() == "OPTIONS":
        return

    # Only enforce auth for API routes. Non-API paths fall through to 404s.
    if not path.startswith("/api/"):
        return

    auth = request.headers.get("authorization")
    public = is_public_path(path, request.method)
    if not auth:
        if public:
            return
        raise HTTPException(status_code=401, detail="Unauthorized")

    parts = str(auth).split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        user = verify_bearer_token(parts[1].strip())
    except AuthError as e:
        raise HTTPException(status_code=int(getattr(e, "status_code", 401)), detail=str(e))

    request.state.user = user


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Auth enforcement as ASGI middleware.

    Added before CORSMiddleware so CORS wraps auth failures too.
    Public GET routes still resolve the caller when a token is sent.
    """

    async def dispatch(self, request: Request, call_next):
        log = get_logger("auth_middleware")
        try:
            await require_auth(request)
        except HTTPException as exc:
            status_code = int(exc.status_code or 500)
            if status_code >= 500:
                log.error("auth_middleware_error", status_code=status_code, path=request.url.path)
            else:
                log.info("auth_middleware_denied", status_code=status_code, path=request.url.path)
            return problem_response(
                request=request,
                status_code=status_code,
                title="Unauthorized" if status_code == 401 else None,
                detail=str(exc.detail) if isinstance(exc.detail, str) else None,
            )
        return await call_next(request)
