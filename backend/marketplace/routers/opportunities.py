from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..modules.applications import application_service
from ..modules.matching import matching_service
from ..modules.opportunities import opportunity_service
from ._actor import current_actor, optional_actor

router = APIRouter(tags=["opportunities"])


class OpportunityFields(BaseModel):
    title: str | None = Field(default=None, max_length=300)
    description: str | None = Field(default=None, max_length=20000)
    category: str | None = None
    requiredSkills: list[str] | None = None
    numberOfVolunteers: int | None = None
    locationType: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    startDate: str | None = None
    endDate: str | None = None
    applicationDeadline: str | None = None
    visibility: str | None = None
    backgroundCheckRequired: bool | None = None


class CreateOpportunityRequest(OpportunityFields):
    publish: bool = False


class CloseOpportunityRequest(BaseModel):
    status: str
    notes: str | None = None


class SuggestedMatchesRequest(BaseModel):
    maxMatches: int = 10


@router.get("")
@router.get("/")
def search(
    category: str | None = None,
    locationType: str | None = None,
    city: str | None = None,
    skill: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
):
    result = opportunity_service.search_opportunities(
        category=category,
        location_type=locationType,
        city=city,
        skill=skill,
        search=search,
        page=page,
        limit=limit,
    )
    return {"ok": True, **result}


@router.get("/mine")
def mine(request: Request, status: str | None = None):
    rows = opportunity_service.list_my_opportunities(actor=current_actor(request), status=status)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.post("", status_code=201)
@router.post("/", status_code=201)
def create(request: Request, body: CreateOpportunityRequest):
    fields = body.model_dump(exclude_unset=True, exclude={"publish"})
    opp = opportunity_service.create_opportunity(actor=current_actor(request), fields=fields, publish=body.publish)
    return {"ok": True, "opportunity": opp}


@router.get("/{id}")
def get_one(request: Request, id: str):
    opp = opportunity_service.get_opportunity_for(actor=optional_actor(request), opportunity_id=id)
    return {"ok": True, "opportunity": opp}


@router.put("/{id}")
def update(request: Request, id: str, body: OpportunityFields):
    opp = opportunity_service.update_opportunity(
        actor=current_actor(request), opportunity_id=id, fields=body.model_dump(exclude_unset=True)
    )
    return {"ok": True, "opportunity": opp}


@router.post("/{id}/publish")
def publish(request: Request, id: str):
    opp = opportunity_service.publish_opportunity(actor=current_actor(request), opportunity_id=id)
    return {"ok": True, "opportunity": opp}


@router.post("/{id}/close")
def close(request: Request, id: str, body: CloseOpportunityRequest):
    opp = opportunity_service.close_opportunity(
        actor=current_actor(request), opportunity_id=id, status=body.status, notes=body.notes
    )
    return {"ok": True, "opportunity": opp}


@router.get("/{id}/applications")
def applications(request: Request, id: str, status: str | None = None):
    rows = application_service.list_for_opportunity(actor=current_actor(request), opportunity_id=id, status=status)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.get("/{id}/matches")
def matches(request: Request, id: str, minScore: float = 0, limit: int = 20):
    result = matching_service.find_matches_for_charity(
        actor=current_actor(request), opportunity_id=id, min_score=minScore, limit=limit
    )
    return {"ok": True, **result}


@router.get("/{id}/suggested-matches")
def list_suggested(request: Request, id: str):
    rows = matching_service.list_suggested_matches(actor=current_actor(request), opportunity_id=id)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.post("/{id}/suggested-matches", status_code=201)
def create_suggested(request: Request, id: str, body: SuggestedMatchesRequest | None = None):
    created = matching_service.create_suggested_matches(
        actor=current_actor(request),
        opportunity_id=id,
        max_matches=(body.maxMatches if body else matching_service.DEFAULT_MAX_SUGGESTIONS),
    )
    return {"ok": True, "data": created, "count": len(created)}
