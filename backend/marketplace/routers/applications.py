from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..modules.applications import application_service as svc
from ..modules.matching import matching_service
from ._actor import current_actor

router = APIRouter(tags=["applications"])


class SubmitApplicationRequest(BaseModel):
    opportunityId: str
    applicationMessage: str | None = Field(default=None, max_length=5000)


class RequestInfoRequest(BaseModel):
    fields: list[str] = Field(default_factory=list)
    message: str = Field(min_length=1, max_length=5000)


class ProvideInfoRequest(BaseModel):
    data: dict[str, Any]


class ReviewNotesRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=5000)


class ConfirmRequest(BaseModel):
    committedHours: float


class WithdrawRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class VettingRequest(BaseModel):
    vettingScore: int | None = None
    vettingNotes: str | None = Field(default=None, max_length=5000)
    requireBackgroundCheck: bool = False
    flagForModeration: bool = False
    flagReason: str | None = None


class FlagRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class DecisionRequest(BaseModel):
    decision: str
    notes: str | None = Field(default=None, max_length=5000)


@router.get("/applications")
@router.get("/applications/")
def list_mine(request: Request, status: str | None = None):
    rows = svc.list_my_applications(actor=current_actor(request), status=status)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.post("/applications", status_code=201)
@router.post("/applications/", status_code=201)
def submit(request: Request, body: SubmitApplicationRequest):
    app = svc.submit_application(
        actor=current_actor(request), opportunity_id=body.opportunityId, message=body.applicationMessage
    )
    return {"ok": True, "application": app}


@router.get("/applications/moderator/queue")
def moderator_queue(request: Request):
    rows = svc.moderator_queue(actor=current_actor(request))
    return {"ok": True, "data": rows, "count": len(rows)}


@router.get("/applications/{id}")
def get_one(request: Request, id: str):
    return {"ok": True, "application": svc.get_application_for(actor=current_actor(request), application_id=id)}


@router.post("/applications/{id}/request-info")
def request_info(request: Request, id: str, body: RequestInfoRequest):
    app = svc.request_additional_info(
        actor=current_actor(request), application_id=id, fields=body.fields, message=body.message
    )
    return {"ok": True, "application": app}


@router.post("/applications/{id}/provide-info")
def provide_info(request: Request, id: str, body: ProvideInfoRequest):
    app = svc.provide_additional_info(actor=current_actor(request), application_id=id, data=body.data)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/approve")
def approve(request: Request, id: str, body: ReviewNotesRequest | None = None):
    app = svc.approve_application(actor=current_actor(request), application_id=id, notes=body.notes if body else None)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/reject")
def reject(request: Request, id: str, body: ReviewNotesRequest | None = None):
    app = svc.reject_application(actor=current_actor(request), application_id=id, notes=body.notes if body else None)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/confirm")
def confirm(request: Request, id: str, body: ConfirmRequest):
    app = svc.confirm_application(actor=current_actor(request), application_id=id, committed_hours=body.committedHours)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/withdraw")
def withdraw(request: Request, id: str, body: WithdrawRequest | None = None):
    app = svc.withdraw_application(actor=current_actor(request), application_id=id, reason=body.reason if body else None)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/vetting")
def vetting(request: Request, id: str, body: VettingRequest):
    app = svc.complete_vetting(
        actor=current_actor(request),
        application_id=id,
        vetting_score=body.vettingScore,
        vetting_notes=body.vettingNotes,
        require_background_check=body.requireBackgroundCheck,
        flag_for_moderation=body.flagForModeration,
        flag_reason=body.flagReason,
    )
    return {"ok": True, "application": app}


@router.post("/applications/{id}/flag")
def flag(request: Request, id: str, body: FlagRequest):
    app = svc.flag_for_moderation(actor=current_actor(request), application_id=id, reason=body.reason)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/moderator-review")
def moderator_review(request: Request, id: str, body: DecisionRequest):
    app = svc.moderator_review(actor=current_actor(request), application_id=id, decision=body.decision, notes=body.notes)
    return {"ok": True, "application": app}


@router.post("/applications/{id}/suggested-review")
def suggested_review(request: Request, id: str, body: DecisionRequest):
    app = svc.review_suggested_match(
        actor=current_actor(request), application_id=id, decision=body.decision, notes=body.notes
    )
    return {"ok": True, "application": app}


@router.get("/volunteers/me/recommendations")
def recommendations(request: Request, limit: int = 10):
    rows = matching_service.recommend_opportunities(actor=current_actor(request), limit=limit)
    return {"ok": True, "data": rows, "count": len(rows)}
