from __future__ import annotations

from typing import Any

from ..db.store import UpdateOp, get_store, new_id, now_iso
from . import opportunities_repo

KIND = "Application"


def pair_token(opportunity_id: str, volunteer_id: str) -> str:
    return f"application:{opportunity_id}:{volunteer_id}"


def get_application(application_id: str) -> dict[str, Any] | None:
    aid = str(application_id or "").strip()
    return get_store().get(KIND, aid) if aid else None


def find_for_pair(*, opportunity_id: str, volunteer_id: str) -> dict[str, Any] | None:
    rows = get_store().list(KIND, {"opportunityId": opportunity_id, "volunteerId": volunteer_id})
    return rows[0] if rows else None


def list_applications(filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
    return get_store().list(KIND, filters)


def create_application(
    *,
    opportunity_id: str,
    volunteer_id: str,
    fields: dict[str, Any],
) -> dict[str, Any]:
    """Insert a new application; the pair token makes a second one for the same pair fail."""
    now = now_iso()
    item: dict[str, Any] = {
        "applicationMessage": None,
        "matchScore": None,
        "isSystemMatched": False,
        "hoursCommitted": None,
        "hoursWorked": 0,
        "flaggedForModeration": False,
        "moderatorReviewStatus": None,
        **fields,
        "id": new_id("app"),
        "opportunityId": opportunity_id,
        "volunteerId": volunteer_id,
        "createdAt": now,
        "updatedAt": now,
    }
    return get_store().create(KIND, item, unique=[pair_token(opportunity_id, volunteer_id)])


def transition_application(
    application_id: str,
    *,
    expected_status: str | list[str],
    changes: dict[str, Any],
    removes: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Compare-and-set on `status`: the write only lands if the row is still in `expected_status`."""
    return get_store().update(
        UpdateOp(
            kind=KIND,
            entity_id=str(application_id),
            changes={**changes, "updatedAt": now_iso()},
            expect={"status": expected_status},
            removes=tuple(removes),
        )
    )


def update_application(application_id: str, changes: dict[str, Any]) -> dict[str, Any]:
    return get_store().update(
        UpdateOp(kind=KIND, entity_id=str(application_id), changes={**changes, "updatedAt": now_iso()})
    )


def confirm_application(
    *,
    application_id: str,
    opportunity_id: str,
    expected_status: str | list[str],
    opportunity_status: str,
    changes: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Atomically move the application to confirmed and take one slot on the
    opportunity. Fails with StoreConflict if the application left
    `expected_status`, the opportunity left `opportunity_status`, or the
    opportunity has no free slot.
    """
    now = now_iso()
    app_op = UpdateOp(
        kind=KIND,
        entity_id=str(application_id),
        changes={**changes, "updatedAt": now},
        expect={"status": expected_status},
    )
    opp_op = UpdateOp(
        kind=opportunities_repo.KIND,
        entity_id=str(opportunity_id),
        changes={"updatedAt": now},
        expect={"status": opportunity_status},
        increments={"volunteersConfirmed": 1},
        ceilings={"volunteersConfirmed": "numberOfVolunteers"},
    )
    app, opp = get_store().transact([app_op, opp_op])
    return app, opp


def delete_application(application: dict[str, Any]) -> None:
    get_store().delete(
        KIND,
        str(application.get("id")),
        unique=[pair_token(str(application.get("opportunityId")), str(application.get("volunteerId")))],
    )


def release_confirmed_slot(
    *,
    application_id: str,
    opportunity_id: str,
    expected_status: str | list[str],
    changes: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Move a previously confirmed application out of the slot count, atomically."""
    now = now_iso()
    app_op = UpdateOp(
        kind=KIND,
        entity_id=str(application_id),
        changes={**changes, "updatedAt": now},
        expect={"status": expected_status},
    )
    opp_op = UpdateOp(
        kind=opportunities_repo.KIND,
        entity_id=str(opportunity_id),
        changes={"updatedAt": now},
        increments={"volunteersConfirmed": -1},
    )
    app, opp = get_store().transact([app_op, opp_op])
    return app, opp
