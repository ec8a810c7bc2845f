from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso

KIND = "Charity"


def owner_token(user_id: str) -> str:
    return f"charity-owner:{user_id}"


def get_charity(charity_id: str) -> dict[str, Any] | None:
    cid = str(charity_id or "").strip()
    return get_store().get(KIND, cid) if cid else None


def get_charity_by_user(user_id: str) -> dict[str, Any] | None:
    uid = str(user_id or "").strip()
    if not uid:
        return None
    rows = get_store().list(KIND, {"userId": uid})
    return rows[0] if rows else None


def list_charities(filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    return get_store().list(KIND, filters)


def create_charity(*, user_id: str, profile: dict[str, Any]) -> dict[str, Any]:
    now = now_iso()
    item: dict[str, Any] = {
        **profile,
        "id": new_id("ch"),
        "userId": user_id,
        "verificationStatus": "pending",
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item, unique=[owner_token(user_id)])


def update_charity(charity_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    return get_store().update(
        UpdateOp(kind=KIND, entity_id=str(charity_id), changes={**changes, "updatedAt": now_iso()})
    )
