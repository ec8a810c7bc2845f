from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..modules.attendance import attendance_service, ratings
from ._actor import current_actor

router = APIRouter(tags=["attendance"])


class RecordAttendanceRequest(BaseModel):
    opportunityId: str
    volunteerId: str
    status: str
    hoursWorked: float = 0
    checkInTime: str | None = None
    checkOutTime: str | None = None
    notes: str | None = Field(default=None, max_length=5000)
    charityFeedback: str | None = Field(default=None, max_length=5000)
    charityRating: int | None = None


class VolunteerFeedbackRequest(BaseModel):
    volunteerFeedback: str | None = Field(default=None, max_length=5000)
    volunteerRating: int | None = None


@router.get("/attendance/opportunity/{id}/volunteers")
def confirmed_volunteers(request: Request, id: str):
    rows = attendance_service.list_confirmed_volunteers(actor=current_actor(request), opportunity_id=id)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.get("/attendance/opportunity/{id}")
def for_opportunity(request: Request, id: str):
    rows = attendance_service.list_for_opportunity(actor=current_actor(request), opportunity_id=id)
    return {"ok": True, "data": rows, "count": len(rows)}


@router.post("/attendance")
def record(request: Request, body: RecordAttendanceRequest):
    rec = attendance_service.record_attendance(
        actor=current_actor(request),
        opportunity_id=body.opportunityId,
        volunteer_id=body.volunteerId,
        status=body.status,
        hours_worked=body.hoursWorked,
        charity_rating=body.charityRating,
        fields=body.model_dump(include={"checkInTime", "checkOutTime", "notes", "charityFeedback"}, exclude_unset=True),
    )
    return {"ok": True, "attendance": rec}


@router.get("/attendance/my-history")
def my_history(request: Request, status: str | None = None, page: int = 1, limit: int = 20):
    result = attendance_service.my_history(actor=current_actor(request), status=status, page=page, limit=limit)
    return {"ok": True, **result}


@router.put("/attendance/{id}/volunteer-feedback")
def volunteer_feedback(request: Request, id: str, body: VolunteerFeedbackRequest):
    rec = attendance_service.submit_volunteer_feedback(
        actor=current_actor(request),
        attendance_id=id,
        feedback=body.volunteerFeedback,
        rating=body.volunteerRating,
    )
    return {"ok": True, "attendance": rec}


@router.delete("/attendance/{id}")
def delete(request: Request, id: str):
    return {"ok": True, **attendance_service.delete_attendance(actor=current_actor(request), attendance_id=id)}


@router.get("/ratings/volunteers/{id}")
def volunteer_ratings(request: Request, id: str):
    current_actor(request)
    return {"ok": True, **ratings.volunteer_rating_stats(id)}


@router.get("/ratings/charities/{id}")
def charity_ratings(request: Request, id: str):
    current_actor(request)
    return {"ok": True, **ratings.charity_rating_stats(id)}
