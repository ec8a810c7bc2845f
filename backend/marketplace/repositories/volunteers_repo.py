from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso

KIND = "Volunteer"


def owner_token(user_id: str) -> str:
    return f"volunteer-owner:{user_id}"


def get_volunteer(volunteer_id: str) -> dict[str, Any] | None:
    vid = str(volunteer_id or "").strip()
    return get_store().get(KIND, vid) if vid else None


def get_volunteer_by_user(user_id: str) -> dict[str, Any] | None:
    uid = str(user_id or "").strip()
    if not uid:
        return None
    rows = get_store().list(KIND, {"userId": uid})
    return rows[0] if rows else None


def list_volunteers(filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    return get_store().list(KIND, filters)


def create_volunteer(*, user_id: str, profile: dict[str, Any]) -> dict[str, Any]:
    now = now_iso()
    item: dict[str, Any] = {
        **profile,
        "id": new_id("vol"),
        "userId": user_id,
        "approvalStatus": "pending",
        "backgroundCheckStatus": "not_required",
        "totalHoursVolunteered": 0,
        "totalOpportunitiesCompleted": 0,
        "rating": None,
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item, unique=[owner_token(user_id)])


def update_volunteer(
    volunteer_id: str,
    changes: dict[str, Any],
    *,
    increments: dict[str, int | float] | None = None,
) -> dict[str, Any]:
    return get_store().update(
        UpdateOp(
            kind=KIND,
            entity_id=str(volunteer_id),
            changes={**changes, "updatedAt": now_iso()},
            increments=dict(increments or {}),
        )
    )
