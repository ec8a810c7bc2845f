from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..modules.moderation import report_service
from ._actor import current_actor

router = APIRouter(tags=["reports"])


class CreateReportRequest(BaseModel):
    reportedEntityType: str
    reportedEntityId: str
    reason: str
    description: str | None = Field(default=None, max_length=2000)


class UpdateReportStatusRequest(BaseModel):
    status: str | None = None
    resolution: str | None = Field(default=None, max_length=5000)
    actionTaken: str | None = Field(default=None, max_length=2000)


@router.post("", status_code=201)
@router.post("/", status_code=201)
def create(request: Request, body: CreateReportRequest):
    report = report_service.create_report(
        actor=current_actor(request),
        entity_type=body.reportedEntityType,
        entity_id=body.reportedEntityId,
        reason=body.reason,
        description=body.description,
    )
    return {"ok": True, "report": report}


@router.get("/mine")
def mine(request: Request, page: int = 1, limit: int = 20):
    return {"ok": True, **report_service.list_my_reports(actor=current_actor(request), page=page, limit=limit)}


@router.get("/stats")
def stats(request: Request):
    return {"ok": True, **report_service.report_stats(actor=current_actor(request))}


@router.get("/entity/{entityType}/{entityId}")
def for_entity(request: Request, entityType: str, entityId: str):
    rows = report_service.reports_for_entity(actor=current_actor(request), entity_type=entityType, entity_id=entityId)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.get("")
@router.get("/")
def list_all(
    request: Request,
    status: str | None = None,
    entityType: str | None = None,
    reason: str | None = None,
    page: int = 1,
    limit: int = 20,
):
    result = report_service.list_reports(
        actor=current_actor(request),
        status=status,
        entity_type=entityType,
        reason=reason,
        page=page,
        limit=limit,
    )
    return {"ok": True, **result}


@router.get("/{id}")
def get_one(request: Request, id: str):
    return {"ok": True, "report": report_service.get_report(actor=current_actor(request), report_id=id)}


@router.put("/{id}/status")
def update_status(request: Request, id: str, body: UpdateReportStatusRequest):
    report = report_service.update_report_status(
        actor=current_actor(request),
        report_id=id,
        status=body.status,
        resolution=body.resolution,
        action_taken=body.actionTaken,
    )
    return {"ok": True, "report": report}


@router.delete("/{id}")
def delete(request: Request, id: str):
    report_service.delete_report(actor=current_actor(request), report_id=id)
    return {"ok": True}
