from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..modules.profiles import profile_service
from ..repositories import charities_repo, volunteers_repo
from ..errors import NotFound
from ._actor import current_actor

router = APIRouter(tags=["profiles"])


class Availability(BaseModel):
    days: list[str] = Field(default_factory=list)
    times: list[str] | str | None = None
    frequency: str | None = None


class VolunteerProfileRequest(BaseModel):
    firstName: str | None = None
    lastName: str | None = None
    bio: str | None = Field(default=None, max_length=5000)
    skills: list[str] | None = None
    interests: list[str] | None = None
    experience: list[dict[str, Any]] | None = None
    dateOfBirth: str | None = None
    availability: Availability | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None


class CharityProfileRequest(BaseModel):
    organizationName: str | None = Field(default=None, max_length=300)
    registrationNumber: str | None = None
    description: str | None = Field(default=None, max_length=10000)
    areasOfFocus: list[str] | None = None
    website: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None


@router.get("/me")
def me(request: Request):
    return {"ok": True, **profile_service.get_my_profile(actor=current_actor(request))}


@router.get("/volunteers/me")
def get_volunteer_profile(request: Request):
    user = profile_service.current_user(current_actor(request))
    vol = volunteers_repo.get_volunteer_by_user(str(user["id"]))
    if not vol:
        raise NotFound(message="Volunteer profile not found")
    return {"ok": True, "volunteer": vol}


@router.put("/volunteers/me")
def put_volunteer_profile(request: Request, body: VolunteerProfileRequest):
    fields = body.model_dump(exclude_unset=True)
    vol = profile_service.upsert_volunteer_profile(actor=current_actor(request), fields=fields)
    return {"ok": True, "volunteer": vol}


@router.get("/charities/me")
def get_charity_profile(request: Request):
    user = profile_service.current_user(current_actor(request))
    ch = charities_repo.get_charity_by_user(str(user["id"]))
    if not ch:
        raise NotFound(message="Charity profile not found")
    return {"ok": True, "charity": ch}


@router.put("/charities/me")
def put_charity_profile(request: Request, body: CharityProfileRequest):
    fields = body.model_dump(exclude_unset=True)
    ch = profile_service.upsert_charity_profile(actor=current_actor(request), fields=fields)
    return {"ok": True, "charity": ch}
