"""
Attendance records: one per (opportunity, volunteer), written by the
owning charity once the volunteer holds a confirmed application.

Recording keeps three cached values in step with the record:
the application's `hoursWorked`, the volunteer's `totalHoursVolunteered`
(adjusted by the delta) and the volunteer's average `rating`.
"""

from __future__ import annotations

from typing import Any

from ...db.errors import StoreConflict
from ...db.store import now_iso
from ...domain.enums import (
    ApplicationStatus,
    AttendanceStatus,
    NotificationType,
    OpportunityStatus,
)
from ...errors import Forbidden, InvalidTransition, NotFound, ValidationFailed
from ...observability.logging import get_logger
from ...pagination import paginate
from ...repositories import applications_repo, attendance_repo, opportunities_repo, volunteers_repo
from ..identity.roles import ROLE_MODERATOR, has_role
from ..notifications.notifier import notify
from ..profiles.profile_service import require_charity, require_volunteer
from .ratings import MAX_RATING, MIN_RATING, recompute_volunteer_rating

log = get_logger("attendance")

MAX_HOURS_PER_RECORD = 24

# Statuses that count toward totalOpportunitiesCompleted.
_COMPLETED_STATUSES = frozenset({AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value})

RECORD_FIELDS = ("checkInTime", "checkOutTime", "notes", "charityFeedback")


def _load_opportunity(opportunity_id: str) -> dict[str, Any]:
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise NotFound(message="Opportunity not found", extensions={"opportunityId": opportunity_id})
    return opp


def _owned_opportunity(
    actor: Any, opportunity_id: str, *, approved: bool = True
) -> tuple[dict[str, Any], dict[str, Any]]:
    ch = require_charity(actor, approved=approved)
    opp = _load_opportunity(opportunity_id)
    if opp.get("charityId") != ch.get("id"):
        raise Forbidden(message="You can only manage attendance for your own opportunities")
    return ch, opp


def _rating(value: Any, *, field: str) -> int | None:
    if value is None:
        return None
    try:
        r = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationFailed(message=f"{field} must be an integer", extensions={"field": field}) from e
    if not MIN_RATING <= r <= MAX_RATING:
        raise ValidationFailed(
            message=f"{field} must be between {MIN_RATING} and {MAX_RATING}", extensions={"field": field}
        )
    return r


def _hours(value: Any) -> float:
    try:
        h = float(value if value is not None else 0)
    except (TypeError, ValueError) as e:
        raise ValidationFailed(message="hoursWorked must be a number") from e
    if not 0 <= h <= MAX_HOURS_PER_RECORD:
        raise ValidationFailed(
            message=f"hoursWorked must be between 0 and {MAX_HOURS_PER_RECORD}", extensions={"hoursWorked": h}
        )
    return h


def list_confirmed_volunteers(*, actor: Any, opportunity_id: str) -> list[dict[str, Any]]:
    """Confirmed volunteers for the opportunity, each with their attendance record (if any)."""
    if has_role(actor, ROLE_MODERATOR):
        opp = _load_opportunity(opportunity_id)
    else:
        _, opp = _owned_opportunity(actor, opportunity_id, approved=False)
    apps = applications_repo.list_applications(
        {"opportunityId": opp["id"], "status": ApplicationStatus.CONFIRMED.value}
    )
    records = {str(r.get("volunteerId")): r for r in attendance_repo.list_attendance({"opportunityId": opp["id"]})}
    out = []
    for a in apps:
        vid = str(a.get("volunteerId"))
        vol = volunteers_repo.get_volunteer(vid) or {}
        out.append(
            {
                "application": a,
                "volunteer": {k: vol.get(k) for k in ("id", "firstName", "lastName", "city", "rating")},
                "attendance": records.get(vid),
            }
        )
    return out


def list_for_opportunity(*, actor: Any, opportunity_id: str) -> list[dict[str, Any]]:
    if has_role(actor, ROLE_MODERATOR):
        opp = _load_opportunity(opportunity_id)
    else:
        _, opp = _owned_opportunity(actor, opportunity_id, approved=False)
    return attendance_repo.list_attendance({"opportunityId": opp["id"]})


def record_attendance(
    *,
    actor: Any,
    opportunity_id: str,
    volunteer_id: str,
    status: str,
    hours_worked: Any = 0,
    charity_rating: Any = None,
    fields: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create or update the attendance record for (opportunity, volunteer)."""
    _, opp = _owned_opportunity(actor, opportunity_id)
    if opp.get("status") == OpportunityStatus.CANCELLED.value:
        raise InvalidTransition(
            message="Cannot record attendance for a cancelled opportunity",
            code="opportunity_cancelled",
            extensions={"entity": "opportunity", "event": "record_attendance", "currentStatus": opp.get("status")},
        )

    app = applications_repo.find_for_pair(opportunity_id=str(opp["id"]), volunteer_id=volunteer_id)
    if not app or app.get("status") != ApplicationStatus.CONFIRMED.value:
        raise ValidationFailed(
            message="Volunteer does not hold a confirmed application for this opportunity",
            code="not_confirmed",
            extensions={"volunteerId": volunteer_id, "applicationStatus": (app or {}).get("status")},
        )

    st = AttendanceStatus.parse(status, field="status")
    hours = _hours(hours_worked)
    rating = _rating(charity_rating, field="charityRating")
    changes: dict[str, Any] = {
        **{k: v for k, v in (fields or {}).items() if k in RECORD_FIELDS},
        "status": st.value,
        "hoursWorked": hours,
        "applicationId": app.get("id"),
        "recordedBy": actor.sub,
    }
    if rating is not None:
        changes["charityRating"] = rating

    existing = attendance_repo.find_for_pair(opportunity_id=str(opp["id"]), volunteer_id=volunteer_id)
    if existing:
        record = attendance_repo.update_attendance(str(existing["id"]), changes)
    else:
        try:
            record = attendance_repo.create_attendance(
                opportunity_id=str(opp["id"]), volunteer_id=volunteer_id, fields=changes
            )
        except StoreConflict:
            existing = attendance_repo.find_for_pair(opportunity_id=str(opp["id"]), volunteer_id=volunteer_id)
            if not existing:
                raise
            record = attendance_repo.update_attendance(str(existing["id"]), changes)

    prev_hours = float((existing or {}).get("hoursWorked") or 0)
    was_completed = (existing or {}).get("status") in _COMPLETED_STATUSES
    is_completed = st.value in _COMPLETED_STATUSES
    increments: dict[str, int | float] = {}
    if hours != prev_hours:
        increments["totalHoursVolunteered"] = hours - prev_hours
    if is_completed != was_completed:
        increments["totalOpportunitiesCompleted"] = 1 if is_completed else -1
    if increments:
        volunteers_repo.update_volunteer(volunteer_id, {}, increments=increments)
    applications_repo.update_application(str(app["id"]), {"hoursWorked": hours})
    recompute_volunteer_rating(volunteer_id)

    log.info(
        "attendance_recorded",
        attendance_id=record.get("id"),
        opportunity_id=opp.get("id"),
        volunteer_id=volunteer_id,
        status=st.value,
        hours=hours,
        hours_delta=hours - prev_hours,
    )
    vol = volunteers_repo.get_volunteer(volunteer_id) or {}
    notify(
        user_id=vol.get("userId"),
        type=NotificationType.ATTENDANCE_RECORDED,
        title="Attendance recorded",
        message=f"Your attendance for \"{opp.get('title')}\" was recorded as {st.value} ({hours:g} hours)",
        data={"attendanceId": record.get("id"), "opportunityId": opp.get("id"), "hoursWorked": hours},
        action_url="/attendance/my-history",
    )
    return record


def submit_volunteer_feedback(
    *,
    actor: Any,
    attendance_id: str,
    feedback: str | None,
    rating: Any = None,
) -> dict[str, Any]:
    vol = require_volunteer(actor, approved=False)
    record = attendance_repo.get_attendance(attendance_id)
    if not record:
        raise NotFound(message="Attendance record not found", extensions={"attendanceId": attendance_id})
    if record.get("volunteerId") != vol.get("id"):
        raise Forbidden(message="You can only leave feedback on your own attendance")
    changes = {"volunteerFeedback": feedback, "volunteerRating": _rating(rating, field="volunteerRating")}
    updated = attendance_repo.update_attendance(str(record["id"]), changes)
    log.info("attendance_feedback_submitted", attendance_id=record.get("id"), volunteer_id=vol.get("id"))
    return updated


def delete_attendance(*, actor: Any, attendance_id: str) -> dict[str, Any]:
    record = attendance_repo.get_attendance(attendance_id)
    if not record:
        raise NotFound(message="Attendance record not found", extensions={"attendanceId": attendance_id})
    _owned_opportunity(actor, str(record.get("opportunityId")))

    vid = str(record.get("volunteerId"))
    hours = float(record.get("hoursWorked") or 0)
    attendance_repo.delete_attendance(record)

    increments: dict[str, int | float] = {}
    if hours:
        increments["totalHoursVolunteered"] = -hours
    if record.get("status") in _COMPLETED_STATUSES:
        increments["totalOpportunitiesCompleted"] = -1
    if volunteers_repo.get_volunteer(vid):
        if increments:
            volunteers_repo.update_volunteer(vid, {}, increments=increments)
        recompute_volunteer_rating(vid)
    if record.get("applicationId") and applications_repo.get_application(str(record["applicationId"])):
        applications_repo.update_application(str(record["applicationId"]), {"hoursWorked": 0})

    log.info("attendance_deleted", attendance_id=record.get("id"), volunteer_id=vid, hours_reverted=hours)
    return {"id": record.get("id"), "hoursReverted": hours, "deletedAt": now_iso()}


def my_history(*, actor: Any, status: str | None = None, page: int = 1, limit: int = 20) -> dict[str, Any]:
    vol = require_volunteer(actor, approved=False)
    filters: dict[str, Any] = {"volunteerId": vol["id"]}
    if status:
        filters["status"] = AttendanceStatus.parse(status, field="status").value
    rows = attendance_repo.list_attendance(filters)
    rows.sort(key=lambda r: str(r.get("createdAt") or ""), reverse=True)
    result = paginate(rows, page=page, limit=limit)
    for r in result["data"]:
        opp = opportunities_repo.get_opportunity(str(r.get("opportunityId"))) or {}
        r["opportunity"] = {k: opp.get(k) for k in ("id", "title", "startDate", "city")} if opp else None
    result["summary"] = {
        "totalHoursVolunteered": vol.get("totalHoursVolunteered") or 0,
        "totalOpportunitiesCompleted": vol.get("totalOpportunitiesCompleted") or 0,
        "rating": vol.get("rating"),
    }
    return result
