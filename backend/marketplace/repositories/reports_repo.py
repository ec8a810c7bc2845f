from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso

KIND = "Report"


def get_report(report_id: str) -> dict[str, Any] | None:
    rid = str(report_id or "").strip()
    return get_store().get(KIND, rid) if rid else None


def list_reports(filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    return get_store().list(KIND, filters)


def create_report(*, reporter_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    now = now_iso()
    item: dict[str, Any] = {
        **fields,
        "id": new_id("rep"),
        "reporterId": reporter_id,
        "status": "pending",
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item)


def update_report(report_id: str, changes: dict[str, Any], *, expect: dict[str, Any] | None = None) -> dict[str, Any]:
    return get_store().update(
        UpdateOp(
            kind=KIND,
            entity_id=str(report_id),
            changes={**changes, "updatedAt": now_iso()},
            expect=dict(expect or {}),
        )
    )


def delete_report(report_id: str) -> None:
    get_store().delete(KIND, str(report_id))
