from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .db.errors import StoreError
from .errors import MarketplaceError
from .middleware.access_log import AccessLogMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.cors import cors_options
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .problem_details import problem_response
from .routers.applications import router as applications_router
from .routers.attendance import router as attendance_router
from .routers.health import router as health_router
from .routers.moderator import router as moderator_router
from .routers.notifications import router as notifications_router
from .routers.opportunities import router as opportunities_router
from .routers.profiles import router as profiles_router
from .routers.reports import router as reports_router
from .settings import settings

log = get_logger("app")


def create_app() -> FastAPI:
    configure_logging(level=settings.log_level)
    settings.require_in_production()

    app = FastAPI(
        title="Volunteer Marketplace Backend",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )
    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Last added is outermost: request id -> CORS -> access log -> auth.
    # Auth sits inside CORS so 401s still carry CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/", "/api/health"})
    app.add_middleware(
        CORSMiddleware,
        **cors_options(frontend_url=settings.frontend_url, frontend_urls=settings.frontend_urls),
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(MarketplaceError, _domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StoreError, _store_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(profiles_router, prefix="/api")
    app.include_router(opportunities_router, prefix="/api/opportunities")
    app.include_router(applications_router, prefix="/api")
    app.include_router(attendance_router, prefix="/api")
    app.include_router(reports_router, prefix="/api/reports")
    app.include_router(moderator_router, prefix="/api/moderator")
    app.include_router(notifications_router, prefix="/api/notifications")
    return app


def _domain_error_handler(request: Request, exc: MarketplaceError) -> Response:
    log.info(
        "domain_error",
        error_code=exc.code,
        status_code=exc.status_code,
        path=request.url.path,
        detail=exc.message,
    )
    return problem_response(
        request=request,
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.message,
        extensions=exc.problem_extensions(),
    )


def _store_error_handler(request: Request, exc: StoreError) -> Response:
    extensions = exc.problem_extensions()
    if exc.http_status >= 500:
        log.error("store_error", status_code=exc.http_status, detail=exc.message, **extensions)
    return problem_response(
        request=request,
        status_code=exc.http_status,
        title=exc.title,
        detail=str(exc),
        extensions=extensions,
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    detail = exc.detail
    if exc.status_code == 404 and (not detail or detail == "Not Found"):
        detail = "Route not found"
    return problem_response(
        request=request,
        status_code=exc.status_code,
        detail=str(detail) if detail else None,
    )


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors = []
    for e in exc.errors():
        loc = list(e.get("loc") or ())
        errors.append(
            {
                "location": loc,
                "path": ".".join(str(x) for x in loc if x != "body"),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    actor = getattr(request.state, "user", None)
    log.exception(
        "unhandled_exception",
        http_method=request.method.upper(),
        path=request.url.path,
        actor_sub=getattr(actor, "sub", None),
    )
    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) or None,
    )


app = create_app()
