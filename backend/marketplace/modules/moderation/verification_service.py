from __future__ import annotations

from typing import Any, Callable

from ...db.store import now_iso
from ...domain.enums import (
    ApplicationStatus,
    BackgroundCheckStatus,
    NotificationPriority,
    NotificationType,
    OpportunityStatus,
    ReportStatus,
    ReviewStatus,
)
from ...errors import NotFound, ValidationFailed
from ...observability.logging import get_logger
from ...pagination import paginate
from ...repositories import (
    applications_repo,
    charities_repo,
    opportunities_repo,
    reports_repo,
    users_repo,
    volunteers_repo,
)
from ..identity.roles import ROLE_MODERATOR, require_role
from ..notifications.notifier import notify

log = get_logger("moderation")

CHARITY = "charity"
VOLUNTEER = "volunteer"


def _kind(kind: str) -> tuple[Callable[[str], dict[str, Any] | None], Callable[..., dict[str, Any]], str]:
    if kind == CHARITY:
        return charities_repo.get_charity, charities_repo.update_charity, "verificationStatus"
    if kind == VOLUNTEER:
        return volunteers_repo.get_volunteer, volunteers_repo.update_volunteer, "approvalStatus"
    raise ValidationFailed(message=f"Unknown account kind: {kind}")


def _load(kind: str, entity_id: str) -> dict[str, Any]:
    get, _, _ = _kind(kind)
    e = get(entity_id)
    if not e:
        raise NotFound(message=f"{kind.capitalize()} not found", extensions={"id": entity_id})
    return e


def _decision(status: str) -> ReviewStatus:
    decision = ReviewStatus.parse(status, field="status")
    if decision == ReviewStatus.PENDING:
        raise ValidationFailed(message="status must be approved or rejected")
    return decision


def list_accounts(
    *,
    actor: Any,
    kind: str,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    _, _, status_field = _kind(kind)
    filters: dict[str, Any] = {}
    if status:
        filters[status_field] = ReviewStatus.parse(status, field="status").value
    rows = charities_repo.list_charities(filters) if kind == CHARITY else volunteers_repo.list_volunteers(filters)
    rows.sort(key=lambda r: str(r.get("createdAt") or ""))
    return paginate(rows, page=page, limit=limit)


def review_charity(*, actor: Any, charity_id: str, status: str, notes: str | None = None) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    decision = _decision(status)
    ch = _load(CHARITY, charity_id)
    updated = charities_repo.update_charity(
        str(ch["id"]),
        {
            "verificationStatus": decision.value,
            "verificationNotes": notes,
            "reviewedBy": actor.sub,
            "reviewedAt": now_iso(),
        },
    )
    log.info("charity_reviewed", charity_id=ch.get("id"), decision=decision.value, actor_id=actor.sub)
    notify(
        user_id=ch.get("userId"),
        type=NotificationType.VERIFICATION_UPDATE,
        title=f"Charity verification {decision.value}",
        message=notes or f"Your organization was {decision.value} by a moderator",
        data={"charityId": ch.get("id"), "status": decision.value},
        action_url="/profile",
        priority=NotificationPriority.HIGH,
    )
    return updated


def review_volunteer(
    *,
    actor: Any,
    volunteer_id: str,
    status: str,
    notes: str | None = None,
    background_check_status: str | None = None,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    decision = _decision(status)
    vol = _load(VOLUNTEER, volunteer_id)
    changes: dict[str, Any] = {
        "approvalStatus": decision.value,
        "approvalNotes": notes,
        "approvedBy": actor.sub,
        "approvalDate": now_iso(),
    }
    if background_check_status:
        changes["backgroundCheckStatus"] = BackgroundCheckStatus.parse(
            background_check_status, field="backgroundCheckStatus"
        ).value
    updated = volunteers_repo.update_volunteer(str(vol["id"]), changes)
    log.info(
        "volunteer_reviewed",
        volunteer_id=vol.get("id"),
        decision=decision.value,
        background_check=changes.get("backgroundCheckStatus"),
        actor_id=actor.sub,
    )
    notify(
        user_id=vol.get("userId"),
        type=NotificationType.VERIFICATION_UPDATE,
        title=f"Volunteer profile {decision.value}",
        message=notes or f"Your volunteer profile was {decision.value} by a moderator",
        data={
            "volunteerId": vol.get("id"),
            "status": decision.value,
            "backgroundCheckStatus": updated.get("backgroundCheckStatus"),
        },
        action_url="/profile",
        priority=NotificationPriority.HIGH,
    )
    return updated


def set_account_active(
    *,
    actor: Any,
    kind: str,
    entity_id: str,
    active: bool,
    reason: str | None = None,
) -> dict[str, Any]:
    """Deactivate or reactivate a charity/volunteer profile and its owning user."""
    require_role(actor, ROLE_MODERATOR)
    _, update, _ = _kind(kind)
    profile = _load(kind, entity_id)
    if not active and not str(reason or "").strip():
        raise ValidationFailed(message="A deactivation reason is required", extensions={"field": "reason"})

    if active:
        changes: dict[str, Any] = {"isActive": True}
        removes = ("deactivatedAt", "deactivatedBy", "deactivationReason")
    else:
        changes = {"isActive": False, "deactivatedAt": now_iso(), "deactivatedBy": actor.sub, "deactivationReason": reason}
        removes = ()
    updated = update(str(profile["id"]), {"isActive": active})
    uid = str(profile.get("userId") or "")
    if uid and users_repo.get_user(uid):
        users_repo.update_user(uid, changes, removes=removes)

    log.info("account_active_changed", kind=kind, entity_id=profile.get("id"), active=active, actor_id=actor.sub)
    notify(
        user_id=uid,
        type=NotificationType.ACCOUNT_REACTIVATED if active else NotificationType.ACCOUNT_DEACTIVATED,
        title="Account reactivated" if active else "Account deactivated",
        message="Your account has been reactivated" if active else f"Your account was deactivated: {reason}",
        data={"kind": kind, "id": profile.get("id")},
        priority=NotificationPriority.HIGH,
    )
    return updated


def dashboard(*, actor: Any) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    return {
        "pendingCharities": len(charities_repo.list_charities({"verificationStatus": ReviewStatus.PENDING.value})),
        "pendingVolunteers": len(volunteers_repo.list_volunteers({"approvalStatus": ReviewStatus.PENDING.value})),
        "flaggedApplications": len(
            applications_repo.list_applications({"status": ApplicationStatus.MODERATOR_REVIEW.value})
        ),
        "openReports": len(
            reports_repo.list_reports({"status": [ReportStatus.PENDING.value, ReportStatus.UNDER_REVIEW.value]})
        ),
        "suspendedOpportunities": len(
            opportunities_repo.list_opportunities({"status": OpportunityStatus.SUSPENDED.value})
        ),
        "pendingOpportunityModeration": len(
            opportunities_repo.list_opportunities({"moderationStatus": ReviewStatus.PENDING.value})
        ),
    }
