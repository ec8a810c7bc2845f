from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ...db.errors import StoreConflict
from ...db.store import now_iso
from ...domain.enums import (
    ACTIVE_APPLICATION_STATUSES,
    ApplicationStatus,
    LocationType,
    NotificationPriority,
    NotificationType,
    OpportunityStatus,
    ReviewStatus,
    Visibility,
)
from ...errors import Forbidden, InvalidTransition, NotFound, ValidationFailed, invalid_transition
from ...observability.logging import get_logger
from ...pagination import paginate
from ...repositories import (
    applications_repo,
    attendance_repo,
    charities_repo,
    opportunities_repo,
    volunteers_repo,
)
from ..applications.application_machine import stored_forms
from ..identity.roles import ROLE_CHARITY, ROLE_MODERATOR, has_role, require_role
from ..matching.match_scorer import normalize_terms
from ..notifications.notifier import notify
from ..profiles.profile_service import require_charity
from . import lifecycle

log = get_logger("opportunities")

O = OpportunityStatus

EDITABLE_FIELDS = (
    "title",
    "description",
    "category",
    "requiredSkills",
    "numberOfVolunteers",
    "locationType",
    "city",
    "state",
    "country",
    "startDate",
    "endDate",
    "applicationDeadline",
    "visibility",
    "backgroundCheckRequired",
)

# Statuses an anonymous caller may see on a public opportunity.
PUBLICLY_VISIBLE = frozenset({O.PUBLISHED.value, O.ACTIVE.value, O.IN_PROGRESS.value, O.COMPLETED.value})

_SUSPENSION_FIELDS = ("suspendedAt", "suspendedBy", "suspensionReason", "previousStatus")


def load_opportunity(opportunity_id: str) -> dict[str, Any]:
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise NotFound(message="Opportunity not found", extensions={"opportunityId": opportunity_id})
    return opp


def _parse_date(value: Any, *, field: str) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationFailed(message=f"{field} must be an ISO-8601 date", extensions={"field": field}) from e
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _clean_fields(fields: dict[str, Any], *, creating: bool) -> dict[str, Any]:
    out = {k: v for k, v in (fields or {}).items() if k in EDITABLE_FIELDS}

    if creating or "title" in out:
        title = str(out.get("title") or "").strip()
        if not title:
            raise ValidationFailed(message="title is required", extensions={"field": "title"})
        out["title"] = title

    if creating or "numberOfVolunteers" in out:
        try:
            n = int(out.get("numberOfVolunteers") if out.get("numberOfVolunteers") is not None else 1)
        except (TypeError, ValueError) as e:
            raise ValidationFailed(message="numberOfVolunteers must be an integer") from e
        if n < 1:
            raise ValidationFailed(
                message="numberOfVolunteers must be at least 1", extensions={"numberOfVolunteers": n}
            )
        out["numberOfVolunteers"] = n

    if "locationType" in out or creating:
        out["locationType"] = LocationType.parse(out.get("locationType") or "in-person", field="locationType").value
    if "visibility" in out:
        out["visibility"] = Visibility.parse(out["visibility"], field="visibility").value
    if "requiredSkills" in out:
        skills = out["requiredSkills"] or []
        if not isinstance(skills, list):
            raise ValidationFailed(message="requiredSkills must be a list")
        out["requiredSkills"] = [str(s).strip() for s in skills if str(s).strip()]
    if "backgroundCheckRequired" in out:
        out["backgroundCheckRequired"] = bool(out["backgroundCheckRequired"])

    start = _parse_date(out.get("startDate"), field="startDate")
    end = _parse_date(out.get("endDate"), field="endDate")
    _parse_date(out.get("applicationDeadline"), field="applicationDeadline")
    if start and end and end < start:
        raise ValidationFailed(message="endDate must not be before startDate")
    return out


def _owned(actor: Any, opp: dict[str, Any], *, approved: bool = True) -> dict[str, Any]:
    ch = require_charity(actor, approved=approved)
    if opp.get("charityId") != ch.get("id"):
        raise Forbidden(message="You can only manage your own opportunities")
    return ch


def _owner_or_moderator(actor: Any, opp: dict[str, Any]) -> None:
    if has_role(actor, ROLE_MODERATOR):
        return
    require_role(actor, ROLE_CHARITY, ROLE_MODERATOR)
    _owned(actor, opp)


def _charity_user_id(opp: dict[str, Any]) -> str | None:
    ch = charities_repo.get_charity(str(opp.get("charityId") or ""))
    return str(ch.get("userId")) if ch else None


def _conditional(
    opp: dict[str, Any],
    *,
    event: str,
    target: str | None,
    changes: dict[str, Any],
    expect: dict[str, Any] | None = None,
    removes: tuple[str, ...] = (),
):
    """Write guarded by the status we validated against; a concurrent change becomes InvalidTransition."""
    try:
        return opportunities_repo.update_opportunity(
            str(opp["id"]), changes, expect={"status": opp.get("status"), **(expect or {})}, removes=removes
        )
    except StoreConflict as e:
        fresh = opportunities_repo.get_opportunity(str(opp["id"])) or {}
        raise invalid_transition(
            entity="opportunity", current_status=fresh.get("status"), target_status=target, event=event
        ) from e


# ---- charity actions ----


def create_opportunity(*, actor: Any, fields: dict[str, Any], publish: bool = False) -> dict[str, Any]:
    ch = require_charity(actor)
    clean = _clean_fields(fields, creating=True)
    status = O.PUBLISHED if publish else O.DRAFT
    opp = opportunities_repo.create_opportunity(charity_id=str(ch["id"]), fields=clean, status=status.value)
    log.info("opportunity_created", opportunity_id=opp.get("id"), charity_id=ch.get("id"), status=status.value)
    return opp


def publish_opportunity(*, actor: Any, opportunity_id: str) -> dict[str, Any]:
    opp = load_opportunity(opportunity_id)
    _owned(actor, opp)
    lifecycle.check_publish(lifecycle.status_of(opp))
    updated = _conditional(opp, event="publish", target=O.PUBLISHED.value, changes={"status": O.PUBLISHED.value})
    log.info("opportunity_published", opportunity_id=opp.get("id"))
    return updated


def update_opportunity(*, actor: Any, opportunity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    opp = load_opportunity(opportunity_id)
    _owner_or_moderator(actor, opp)
    status = lifecycle.status_of(opp)
    if lifecycle.is_terminal(status):
        raise InvalidTransition(
            message=f"Opportunity is {status.value} and can no longer be edited",
            code="opportunity_closed",
            extensions={"entity": "opportunity", "event": "update", "currentStatus": status.value},
        )

    clean = _clean_fields(fields, creating=False)
    if not clean:
        return opp
    confirmed = int(opp.get("volunteersConfirmed") or 0)
    if "numberOfVolunteers" in clean and clean["numberOfVolunteers"] < confirmed:
        raise ValidationFailed(
            message="numberOfVolunteers cannot be lower than the number of confirmed volunteers",
            extensions={"numberOfVolunteers": clean["numberOfVolunteers"], "volunteersConfirmed": confirmed},
        )
    expect = {"volunteersConfirmed": opp.get("volunteersConfirmed")} if "numberOfVolunteers" in clean else None
    updated = _conditional(opp, event="update", target=status.value, changes=clean, expect=expect)
    log.info("opportunity_updated", opportunity_id=opp.get("id"), fields=sorted(clean))
    return updated


def close_opportunity(
    *,
    actor: Any,
    opportunity_id: str,
    status: str,
    notes: str | None = None,
) -> dict[str, Any]:
    opp = load_opportunity(opportunity_id)
    _owner_or_moderator(actor, opp)
    target = OpportunityStatus.parse(status, field="status")
    lifecycle.check_close(lifecycle.status_of(opp), target)

    updated = _conditional(
        opp,
        event="close",
        target=target.value,
        changes={"status": target.value, "closedAt": now_iso(), "closureNotes": notes},
    )
    log.info("opportunity_closed", opportunity_id=opp.get("id"), status=target.value, actor_id=actor.sub)

    holders = applications_repo.list_applications(
        {
            "opportunityId": opp["id"],
            "status": stored_forms(ApplicationStatus.APPROVED) + [ApplicationStatus.CONFIRMED.value],
        }
    )
    for a in holders:
        vol = volunteers_repo.get_volunteer(str(a.get("volunteerId"))) or {}
        notify(
            user_id=vol.get("userId"),
            type=NotificationType.OPPORTUNITY_CLOSED,
            title="Opportunity closed",
            message=f"\"{opp.get('title')}\" was marked {target.value}",
            data={"opportunityId": opp.get("id"), "status": target.value, "notes": notes},
            action_url=f"/opportunities/{opp.get('id')}",
        )
    if has_role(actor, ROLE_MODERATOR):
        notify(
            user_id=_charity_user_id(opp),
            type=NotificationType.OPPORTUNITY_CLOSED,
            title="Opportunity closed by a moderator",
            message=f"\"{opp.get('title')}\" was marked {target.value}",
            data={"opportunityId": opp.get("id"), "status": target.value, "notes": notes},
            action_url=f"/opportunities/{opp.get('id')}",
        )
    return updated


# ---- moderator actions ----


def suspend_opportunity(*, actor: Any, opportunity_id: str, reason: str) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationFailed(message="A suspension reason is required", extensions={"field": "reason"})
    opp = load_opportunity(opportunity_id)
    status = lifecycle.status_of(opp)
    lifecycle.check_suspend(status)

    updated = _conditional(
        opp,
        event="suspend",
        target=O.SUSPENDED.value,
        changes={
            "status": O.SUSPENDED.value,
            "previousStatus": status.value,
            "suspendedAt": now_iso(),
            "suspendedBy": actor.sub,
            "suspensionReason": reason,
        },
    )
    log.info("opportunity_suspended", opportunity_id=opp.get("id"), previous_status=status.value, actor_id=actor.sub)
    notify(
        user_id=_charity_user_id(opp),
        type=NotificationType.OPPORTUNITY_SUSPENDED,
        title="Opportunity suspended",
        message=f"\"{opp.get('title')}\" was suspended by a moderator: {reason}",
        data={"opportunityId": opp.get("id"), "reason": reason},
        action_url=f"/opportunities/{opp.get('id')}",
        priority=NotificationPriority.HIGH,
    )
    return updated


def resume_opportunity(*, actor: Any, opportunity_id: str, notes: str | None = None) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    opp = load_opportunity(opportunity_id)
    target = lifecycle.resume_target(opp)

    changes: dict[str, Any] = {"status": target.value, "resumedAt": now_iso(), "resumedBy": actor.sub}
    if notes:
        changes["moderationNotes"] = notes
    updated = _conditional(
        opp,
        event="resume",
        target=target.value,
        changes=changes,
        removes=_SUSPENSION_FIELDS,
    )
    log.info("opportunity_resumed", opportunity_id=opp.get("id"), status=target.value, actor_id=actor.sub)
    notify(
        user_id=_charity_user_id(opp),
        type=NotificationType.OPPORTUNITY_RESUMED,
        title="Opportunity resumed",
        message=f"\"{opp.get('title')}\" is {target.value} again",
        data={"opportunityId": opp.get("id"), "status": target.value, "notes": notes},
        action_url=f"/opportunities/{opp.get('id')}",
    )
    return updated


def moderate_opportunity(
    *,
    actor: Any,
    opportunity_id: str,
    moderation_status: str,
    notes: str | None = None,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    decision = ReviewStatus.parse(moderation_status, field="moderationStatus")
    if decision == ReviewStatus.PENDING:
        raise ValidationFailed(message="moderationStatus must be approved or rejected")
    opp = load_opportunity(opportunity_id)
    updated = opportunities_repo.update_opportunity(
        str(opp["id"]),
        {
            "moderationStatus": decision.value,
            "moderationNotes": notes,
            "moderatedBy": actor.sub,
            "moderatedAt": now_iso(),
        },
    )
    log.info("opportunity_moderated", opportunity_id=opp.get("id"), decision=decision.value, actor_id=actor.sub)
    return updated


def delete_opportunity(*, actor: Any, opportunity_id: str, reason: str) -> dict[str, Any]:
    """Hard delete with cascade; refused while any application still holds or may hold a slot."""
    require_role(actor, ROLE_MODERATOR)
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationFailed(message="A deletion reason is required", extensions={"field": "reason"})
    opp = load_opportunity(opportunity_id)

    apps = applications_repo.list_applications({"opportunityId": opp["id"]})
    active_forms = {f for s in ACTIVE_APPLICATION_STATUSES for f in stored_forms(s)}
    active = [a for a in apps if str(a.get("status") or "") in active_forms]
    if active:
        raise InvalidTransition(
            message="Cannot delete an opportunity with active applications",
            code="has_active_applications",
            extensions={"entity": "opportunity", "event": "delete", "activeApplications": len(active)},
        )

    charity_user = _charity_user_id(opp)
    attendance = attendance_repo.list_attendance({"opportunityId": opp["id"]})
    for rec in attendance:
        attendance_repo.delete_attendance(rec)
    for a in apps:
        applications_repo.delete_application(a)
    opportunities_repo.delete_opportunity(str(opp["id"]))

    log.info(
        "opportunity_deleted",
        opportunity_id=opp.get("id"),
        applications_removed=len(apps),
        attendance_removed=len(attendance),
        actor_id=actor.sub,
    )
    notify(
        user_id=charity_user,
        type=NotificationType.OPPORTUNITY_DELETED,
        title="Opportunity removed",
        message=f"\"{opp.get('title')}\" was removed by a moderator: {reason}",
        data={"opportunityId": opp.get("id"), "reason": reason},
        priority=NotificationPriority.HIGH,
    )
    return {"id": opp.get("id"), "applicationsRemoved": len(apps), "attendanceRemoved": len(attendance)}


# ---- reads ----


def _with_charity(opp: dict[str, Any]) -> dict[str, Any]:
    ch = charities_repo.get_charity(str(opp.get("charityId") or "")) or {}
    summary = {k: ch.get(k) for k in ("id", "organizationName", "city", "verificationStatus")} if ch else None
    return {**opp, "charity": summary}


def get_opportunity_for(*, actor: Any | None, opportunity_id: str) -> dict[str, Any]:
    opp = load_opportunity(opportunity_id)
    if actor is not None and has_role(actor, ROLE_MODERATOR):
        return _with_charity(opp)
    public = opp.get("status") in PUBLICLY_VISIBLE and opp.get("visibility", "public") == Visibility.PUBLIC.value
    if not public:
        if actor is None or not has_role(actor, ROLE_CHARITY):
            raise NotFound(message="Opportunity not found", extensions={"opportunityId": opportunity_id})
        _owned(actor, opp, approved=False)
    return _with_charity(opp)


def search_opportunities(
    *,
    category: str | None = None,
    location_type: str | None = None,
    city: str | None = None,
    skill: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    """Public listing: published, public opportunities, newest first."""
    filters: dict[str, Any] = {"status": O.PUBLISHED.value, "visibility": Visibility.PUBLIC.value}
    if category:
        filters["category"] = category
    if location_type:
        filters["locationType"] = LocationType.parse(location_type, field="locationType").value
    rows = opportunities_repo.list_opportunities(filters)

    city_n = str(city or "").strip().lower()
    skill_n = str(skill or "").strip().lower()
    q = str(search or "").strip().lower()
    out = []
    for o in rows:
        if city_n and str(o.get("city") or "").strip().lower() != city_n:
            continue
        if skill_n and not any(skill_n in s for s in normalize_terms(o.get("requiredSkills"))):
            continue
        if q and q not in f"{o.get('title') or ''} {o.get('description') or ''}".lower():
            continue
        out.append(o)
    out.sort(key=lambda o: (str(o.get("createdAt") or ""), str(o.get("id"))), reverse=True)
    result = paginate(out, page=page, limit=limit)
    result["data"] = [_with_charity(o) for o in result["data"]]
    return result


def list_my_opportunities(*, actor: Any, status: str | None = None) -> list[dict[str, Any]]:
    ch = require_charity(actor, approved=False)
    filters: dict[str, Any] = {"charityId": ch["id"]}
    if status:
        filters["status"] = OpportunityStatus.parse(status, field="status").value
    rows = opportunities_repo.list_opportunities(filters)
    return sorted(rows, key=lambda o: str(o.get("createdAt") or ""), reverse=True)


def list_for_moderator(
    *,
    actor: Any,
    status: str | None = None,
    moderation_status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    filters: dict[str, Any] = {}
    if status:
        filters["status"] = OpportunityStatus.parse(status, field="status").value
    if moderation_status:
        filters["moderationStatus"] = ReviewStatus.parse(moderation_status, field="moderationStatus").value
    rows = opportunities_repo.list_opportunities(filters)
    rows.sort(key=lambda o: str(o.get("createdAt") or ""), reverse=True)
    result = paginate(rows, page=page, limit=limit)
    result["data"] = [_with_charity(o) for o in result["data"]]
    return result
