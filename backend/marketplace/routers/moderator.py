from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ..modules.moderation import verification_service as verification
from ..modules.opportunities import opportunity_service
from ._actor import current_actor

router = APIRouter(tags=["moderator"])

_ACCOUNT_KINDS = {"charities": verification.CHARITY, "volunteers": verification.VOLUNTEER}


class AccountReviewRequest(BaseModel):
    status: str
    notes: str | None = Field(default=None, max_length=5000)
    backgroundCheckStatus: str | None = None


class ReasonRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ResumeRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=5000)


class ModerateRequest(BaseModel):
    moderationStatus: str
    notes: str | None = Field(default=None, max_length=5000)


def _account_kind(kind: str) -> str:
    k = _ACCOUNT_KINDS.get(kind)
    if not k:
        raise HTTPException(status_code=404, detail="Route not found")
    return k


@router.get("/dashboard")
def dashboard(request: Request):
    return {"ok": True, "stats": verification.dashboard(actor=current_actor(request))}


@router.get("/opportunities")
def opportunities(
    request: Request,
    status: str | None = None,
    moderationStatus: str | None = None,
    page: int = 1,
    limit: int = 20,
):
    result = opportunity_service.list_for_moderator(
        actor=current_actor(request),
        status=status,
        moderation_status=moderationStatus,
        page=page,
        limit=limit,
    )
    return {"ok": True, **result}


@router.post("/opportunities/{id}/suspend")
def suspend(request: Request, id: str, body: ReasonRequest):
    opp = opportunity_service.suspend_opportunity(actor=current_actor(request), opportunity_id=id, reason=body.reason or "")
    return {"ok": True, "opportunity": opp}


@router.post("/opportunities/{id}/resume")
def resume(request: Request, id: str, body: ResumeRequest | None = None):
    opp = opportunity_service.resume_opportunity(
        actor=current_actor(request), opportunity_id=id, notes=body.notes if body else None
    )
    return {"ok": True, "opportunity": opp}


@router.post("/opportunities/{id}/moderate")
def moderate(request: Request, id: str, body: ModerateRequest):
    opp = opportunity_service.moderate_opportunity(
        actor=current_actor(request), opportunity_id=id, moderation_status=body.moderationStatus, notes=body.notes
    )
    return {"ok": True, "opportunity": opp}


@router.delete("/opportunities/{id}")
def delete_opportunity(request: Request, id: str, reason: str | None = None, body: ReasonRequest | None = None):
    # Some clients drop DELETE bodies; the reason may also come as a query parameter.
    result = opportunity_service.delete_opportunity(
        actor=current_actor(request), opportunity_id=id, reason=(body.reason if body else None) or reason or ""
    )
    return {"ok": True, **result}


@router.get("/{kind}")
def list_accounts(request: Request, kind: str, status: str | None = None, page: int = 1, limit: int = 20):
    result = verification.list_accounts(
        actor=current_actor(request), kind=_account_kind(kind), status=status, page=page, limit=limit
    )
    return {"ok": True, **result}


@router.post("/{kind}/{id}/review")
def review(request: Request, kind: str, id: str, body: AccountReviewRequest):
    actor = current_actor(request)
    if _account_kind(kind) == verification.CHARITY:
        out = verification.review_charity(actor=actor, charity_id=id, status=body.status, notes=body.notes)
    else:
        out = verification.review_volunteer(
            actor=actor,
            volunteer_id=id,
            status=body.status,
            notes=body.notes,
            background_check_status=body.backgroundCheckStatus,
        )
    return {"ok": True, "profile": out}


@router.post("/{kind}/{id}/deactivate")
def deactivate(request: Request, kind: str, id: str, body: ReasonRequest):
    out = verification.set_account_active(
        actor=current_actor(request), kind=_account_kind(kind), entity_id=id, active=False, reason=body.reason
    )
    return {"ok": True, "profile": out}


@router.post("/{kind}/{id}/activate")
def activate(request: Request, kind: str, id: str):
    out = verification.set_account_active(
        actor=current_actor(request), kind=_account_kind(kind), entity_id=id, active=True
    )
    return {"ok": True, "profile": out}
