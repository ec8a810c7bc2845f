from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, now_iso

KIND = "User"


def get_user(user_id: str) -> dict[str, Any] | None:
    uid = str(user_id or "").strip()
    if not uid:
        return None
    return get_store().get(KIND, uid)


def ensure_user(*, user_id: str, email: str | None, role: str) -> dict[str, Any]:
    """
    Materialize the authenticated identity as a User record on first use.
    The identity provider is authoritative for email/role; they are refreshed
    when they drift.
    """
    uid = str(user_id or "").strip()
    if not uid:
        raise ValueError("user_id is required")

    existing = get_user(uid)
    if existing:
        drift = {}
        if email and existing.get("email") != email:
            drift["email"] = email
        if role and existing.get("role") != role:
            drift["role"] = role
        if drift:
            return update_user(uid, drift)
        return existing

    now = now_iso()
    item: dict[str, Any] = {
        "id": uid,
        "email": email,
        "role": role,
        "isActive": True,
        "isVerified": False,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item)


def update_user(user_id: str, changes: dict[str, Any], *, removes: tuple[str, ...] = ()) -> dict[str, Any]:
    return get_store().update(
        UpdateOp(
            kind=KIND,
            entity_id=str(user_id),
            changes={**changes, "updatedAt": now_iso()},
            removes=tuple(removes),
        )
    )
