from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso

KIND = "Attendance"


def pair_token(opportunity_id: str, volunteer_id: str) -> str:
    return f"attendance:{opportunity_id}:{volunteer_id}"


def get_attendance(attendance_id: str) -> dict[str, Any] | None:
    aid = str(attendance_id or "").strip()
    return get_store().get(KIND, aid) if aid else None


def find_for_pair(*, opportunity_id: str, volunteer_id: str) -> dict[str, Any] | None:
    rows = get_store().list(KIND, {"opportunityId": opportunity_id, "volunteerId": volunteer_id})
    return rows[0] if rows else None


def list_attendance(filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    return get_store().list(KIND, filters)


def create_attendance(*, opportunity_id: str, volunteer_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    now = now_iso()
    item: dict[str, Any] = {
        "charityRating": None,
        "volunteerRating": None,
        **fields,
        "id": new_id("att"),
        "opportunityId": opportunity_id,
        "volunteerId": volunteer_id,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item, unique=[pair_token(opportunity_id, volunteer_id)])


def update_attendance(attendance_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    return get_store().update(
        UpdateOp(kind=KIND, entity_id=str(attendance_id), changes={**changes, "updatedAt": now_iso()})
    )


def delete_attendance(attendance: dict[str, Any]) -> None:
    get_store().delete(
        KIND,
        str(attendance.get("id")),
        unique=[pair_token(str(attendance.get("opportunityId")), str(attendance.get("volunteerId")))],
    )
