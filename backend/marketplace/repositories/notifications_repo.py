from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso

KIND = "Notification"


def get_notification(notification_id: str) -> dict[str, Any] | None:
    nid = str(notification_id or "").strip()
    return get_store().get(KIND, nid) if nid else None


def list_for_user(user_id: str, *, unread_only: bool = False) -> list[dict[str, Any]]:
    filters: dict[str, Any] = {"userId": user_id}
    if unread_only:
        filters["isRead"] = False
    rows = get_store().list(KIND, filters)
    return sorted(rows, key=lambda x: str(x.get("createdAt") or ""), reverse=True)


def create_notification(*, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    now = now_iso()
    item: dict[str, Any] = {
        "data": {},
        "actionUrl": None,
        "priority": "medium",
        **fields,
        "id": new_id("ntf"),
        "userId": user_id,
        "isRead": False,
        "readAt": None,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item)


def mark_read(notification_id: str) -> dict[str, Any]:
    now = now_iso()
    return get_store().update(
        UpdateOp(kind=KIND, entity_id=str(notification_id), changes={"isRead": True, "readAt": now, "updatedAt": now})
    )
