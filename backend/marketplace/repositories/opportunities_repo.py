from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso

KIND = "Opportunity"


def get_opportunity(opportunity_id: str) -> dict[str, Any] | None:
    oid = str(opportunity_id or "").strip()
    return get_store().get(KIND, oid) if oid else None


def list_opportunities(filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    return get_store().list(KIND, filters)


def create_opportunity(*, charity_id: str, fields: dict[str, Any], status: str) -> dict[str, Any]:
    now = now_iso()
    item: dict[str, Any] = {
        "visibility": "public",
        "backgroundCheckRequired": False,
        **fields,
        "id": new_id("opp"),
        "charityId": charity_id,
        "status": status,
        "moderationStatus": "pending",
        "volunteersConfirmed": 0,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item)


def update_opportunity(
    opportunity_id: str,
    changes: dict[str, Any],
    *,
    expect: dict[str, Any] | None = None,
    removes: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Conditional update; `expect` guards against concurrent status changes."""
    return get_store().update(
        UpdateOp(
            kind=KIND,
            entity_id=str(opportunity_id),
            changes={**changes, "updatedAt": now_iso()},
            expect=dict(expect or {}),
            removes=tuple(removes),
        )
    )


def delete_opportunity(opportunity_id: str) -> None:
    get_store().delete(KIND, str(opportunity_id))
