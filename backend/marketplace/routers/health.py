from __future__ import annotations

from fastapi import APIRouter

from ..settings import settings

router = APIRouter()


@router.get("/", tags=["health"])
def root():
    return {
        "message": "Volunteer Marketplace API",
        "version": "1.0.0",
        "status": "running",
        "environment": settings.normalized_environment,
        "endpoints": [
            "GET /api/opportunities",
            "POST /api/opportunities",
            "GET /api/applications",
            "POST /api/applications",
            "GET /api/attendance/my-history",
            "POST /api/reports",
            "GET /api/moderator/dashboard",
            "GET /api/notifications",
        ],
    }


@router.get("/api/health", tags=["health"])
def health():
    return {
        "ok": True,
        "status": "running",
        "environment": settings.normalized_environment,
        "store": settings.normalized_store_backend,
        "dynamodb": "configured" if settings.ddb_table_name else "missing",
    }
