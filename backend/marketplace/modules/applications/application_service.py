from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ...db.errors import StoreConflict
from ...db.store import now_iso
from ...domain.enums import (
    ApplicationStatus,
    BackgroundCheckStatus,
    ModeratorReviewStatus,
    NotificationPriority,
    NotificationType,
)
from ...errors import (
    CapacityExceeded,
    DuplicateEntity,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationFailed,
    invalid_transition,
)
from ...observability.logging import get_logger
from ...repositories import (
    applications_repo,
    charities_repo,
    opportunities_repo,
    volunteers_repo,
)
from ..identity.roles import ROLE_CHARITY, ROLE_MODERATOR, ROLE_VOLUNTEER, require_role
from ..notifications.notifier import notify
from ..opportunities import lifecycle
from ..profiles.profile_service import current_user, require_charity, require_volunteer
from . import application_machine as machine

log = get_logger("applications")

S = ApplicationStatus

MIN_COMMITTED_HOURS = 1
MAX_COMMITTED_HOURS = 168


# ---- loading / authorization helpers ----


def load_application(application_id: str) -> dict[str, Any]:
    app = applications_repo.get_application(application_id)
    if not app:
        raise NotFound(message="Application not found", extensions={"applicationId": application_id})
    return app


def load_opportunity(opportunity_id: str) -> dict[str, Any]:
    opp = opportunities_repo.get_opportunity(opportunity_id)
    if not opp:
        raise NotFound(message="Opportunity not found", extensions={"opportunityId": opportunity_id})
    return opp


def charity_user_id(opportunity: dict[str, Any]) -> str | None:
    ch = charities_repo.get_charity(str(opportunity.get("charityId") or ""))
    return str(ch.get("userId")) if ch else None


def volunteer_user_id(application: dict[str, Any]) -> str | None:
    vol = volunteers_repo.get_volunteer(str(application.get("volunteerId") or ""))
    return str(vol.get("userId")) if vol else None


def _owned_by_volunteer(actor: Any, application: dict[str, Any], *, approved: bool = True) -> dict[str, Any]:
    vol = require_volunteer(actor, approved=approved)
    if application.get("volunteerId") != vol.get("id"):
        raise Forbidden(message="You can only act on your own applications")
    return vol


def _owned_by_charity(actor: Any, opportunity: dict[str, Any], *, approved: bool = True) -> dict[str, Any]:
    ch = require_charity(actor, approved=approved)
    if opportunity.get("charityId") != ch.get("id"):
        raise Forbidden(message="You can only manage applications for your own opportunities")
    return ch


def _app_url(application: dict[str, Any]) -> str:
    return f"/applications/{application.get('id')}"


def _deadline_passed(opportunity: dict[str, Any]) -> bool:
    raw = opportunity.get("applicationDeadline")
    if not raw:
        return False
    try:
        deadline = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return False
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    return deadline < datetime.now(timezone.utc)


def _transition(
    application: dict[str, Any],
    *,
    event: str,
    target: ApplicationStatus,
    actor: Any,
    changes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Validate against the table, then compare-and-set on the stored status.
    A lost race surfaces as an invalid transition from the status that won.
    """
    machine.check_actor(event, getattr(actor, "role", None))
    current = machine.check_transition(application.get("status"), event, target)
    try:
        updated = applications_repo.transition_application(
            str(application["id"]),
            expected_status=machine.stored_forms(current),
            changes={"status": target.value, **(changes or {})},
        )
    except StoreConflict as e:
        fresh = applications_repo.get_application(str(application["id"])) or {}
        raise invalid_transition(
            entity="application",
            current_status=str(fresh.get("status") or "") or None,
            target_status=target.value,
            event=event,
        ) from e

    log.info(
        "application_transition",
        application_id=application.get("id"),
        opportunity_id=application.get("opportunityId"),
        transition=event,
        from_status=current.value,
        to_status=target.value,
        actor_id=actor.sub,
    )
    return updated


# ---- submit ----


def submit_application(*, actor: Any, opportunity_id: str, message: str | None = None) -> dict[str, Any]:
    vol = require_volunteer(actor)
    opp = load_opportunity(opportunity_id)

    if not lifecycle.accepts_applications(opp):
        raise InvalidTransition(
            message="Opportunity is not accepting applications",
            code="opportunity_not_open",
            extensions={"entity": "opportunity", "event": "submit", "currentStatus": opp.get("status")},
        )
    if _deadline_passed(opp):
        raise ValidationFailed(
            message="Application deadline has passed",
            code="application_deadline_passed",
            extensions={"applicationDeadline": opp.get("applicationDeadline")},
        )
    if lifecycle.is_full(opp):
        raise CapacityExceeded(
            message="This opportunity is full",
            extensions={
                "numberOfVolunteers": opp.get("numberOfVolunteers"),
                "volunteersConfirmed": opp.get("volunteersConfirmed"),
            },
        )

    existing = applications_repo.find_for_pair(opportunity_id=str(opp["id"]), volunteer_id=str(vol["id"]))
    if existing:
        raise DuplicateEntity(
            message="You have already applied for this opportunity",
            code="duplicate_application",
            extensions={"applicationId": existing.get("id"), "currentStatus": existing.get("status")},
        )

    try:
        app = applications_repo.create_application(
            opportunity_id=str(opp["id"]),
            volunteer_id=str(vol["id"]),
            fields={"status": S.PENDING.value, "applicationMessage": message},
        )
    except StoreConflict as e:
        raise DuplicateEntity(
            message="You have already applied for this opportunity",
            code="duplicate_application",
        ) from e

    log.info("application_submitted", application_id=app.get("id"), opportunity_id=opp.get("id"), volunteer_id=vol.get("id"))
    notify(
        user_id=charity_user_id(opp),
        type=NotificationType.APPLICATION_RECEIVED,
        title="New application received",
        message=f"A volunteer applied for \"{opp.get('title') or 'your opportunity'}\"",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id"), "volunteerId": vol.get("id")},
        action_url=_app_url(app),
    )
    return app


# ---- charity review ----


def request_additional_info(
    *,
    actor: Any,
    application_id: str,
    fields: list[str],
    message: str,
) -> dict[str, Any]:
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))
    _owned_by_charity(actor, opp)
    lifecycle.check_application_mutable(opp, event="request_info")

    wanted = [str(f).strip() for f in (fields or []) if str(f or "").strip()]
    if not wanted:
        raise ValidationFailed(message="At least one requested field is required")
    if not str(message or "").strip():
        raise ValidationFailed(message="A message to the volunteer is required")

    now = now_iso()
    updated = _transition(
        app,
        event="request_info",
        target=S.ADDITIONAL_INFO_REQUESTED,
        actor=actor,
        changes={
            "additionalInfoRequested": {
                "fields": wanted,
                "message": str(message).strip(),
                "requestedBy": actor.sub,
                "requestedAt": now,
            },
            "additionalInfoRequestedAt": now,
        },
    )
    notify(
        user_id=volunteer_user_id(app),
        type=NotificationType.ADDITIONAL_INFO_REQUESTED,
        title="Additional information requested",
        message=str(message).strip(),
        data={"applicationId": app.get("id"), "fields": wanted},
        action_url=_app_url(app),
        priority=NotificationPriority.HIGH,
    )
    return updated


def provide_additional_info(*, actor: Any, application_id: str, data: dict[str, Any]) -> dict[str, Any]:
    app = load_application(application_id)
    _owned_by_volunteer(actor, app)
    opp = load_opportunity(str(app.get("opportunityId")))
    lifecycle.check_application_mutable(opp, event="provide_info")

    if not isinstance(data, dict) or not data:
        raise ValidationFailed(message="Provided information must be a non-empty object")

    now = now_iso()
    updated = _transition(
        app,
        event="provide_info",
        target=S.UNDER_REVIEW,
        actor=actor,
        changes={"additionalInfoProvided": data, "additionalInfoProvidedAt": now},
    )
    notify(
        user_id=charity_user_id(opp),
        type=NotificationType.ADDITIONAL_INFO_PROVIDED,
        title="Additional information provided",
        message="A volunteer responded to your information request",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id")},
        action_url=_app_url(app),
    )
    return updated


def approve_application(*, actor: Any, application_id: str, notes: str | None = None) -> dict[str, Any]:
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))
    _owned_by_charity(actor, opp)
    lifecycle.check_application_mutable(opp, event="approve")

    if machine.current_status(app) == S.BACKGROUND_CHECK_REQUIRED:
        vol = volunteers_repo.get_volunteer(str(app.get("volunteerId"))) or {}
        if vol.get("backgroundCheckStatus") != BackgroundCheckStatus.APPROVED.value:
            raise InvalidTransition(
                message="The volunteer's background check has not been approved yet",
                code="background_check_pending",
                extensions={"backgroundCheckStatus": vol.get("backgroundCheckStatus")},
            )

    updated = _transition(
        app,
        event="approve",
        target=S.APPROVED,
        actor=actor,
        changes={"reviewNotes": notes, "reviewedBy": actor.sub, "reviewedAt": now_iso()},
    )
    notify(
        user_id=volunteer_user_id(app),
        type=NotificationType.APPLICATION_APPROVED,
        title="Application approved",
        message=f"Your application for \"{opp.get('title') or 'an opportunity'}\" was approved. Please confirm your participation.",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id")},
        action_url=_app_url(app),
        priority=NotificationPriority.HIGH,
    )
    return updated


def reject_application(*, actor: Any, application_id: str, notes: str | None = None) -> dict[str, Any]:
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))
    _owned_by_charity(actor, opp)
    lifecycle.check_application_mutable(opp, event="reject")

    updated = _transition(
        app,
        event="reject",
        target=S.REJECTED,
        actor=actor,
        changes={"reviewNotes": notes, "reviewedBy": actor.sub, "reviewedAt": now_iso()},
    )
    notify(
        user_id=volunteer_user_id(app),
        type=NotificationType.APPLICATION_REJECTED,
        title="Application not accepted",
        message=f"Your application for \"{opp.get('title') or 'an opportunity'}\" was not accepted.",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id")},
        action_url=_app_url(app),
    )
    return updated


def complete_vetting(
    *,
    actor: Any,
    application_id: str,
    vetting_score: int | None = None,
    vetting_notes: str | None = None,
    require_background_check: bool = False,
    flag_for_moderation: bool = False,
    flag_reason: str | None = None,
) -> dict[str, Any]:
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))
    _owned_by_charity(actor, opp)
    lifecycle.check_application_mutable(opp, event="complete_vetting")

    if vetting_score is not None and not 1 <= int(vetting_score) <= 10:
        raise ValidationFailed(message="vettingScore must be between 1 and 10")
    if flag_for_moderation and not str(flag_reason or "").strip():
        raise ValidationFailed(message="A reason is required when flagging for moderation")

    now = now_iso()
    changes: dict[str, Any] = {
        "vettingScore": vetting_score,
        "vettingNotes": vetting_notes,
        "reviewedBy": actor.sub,
        "reviewedAt": now,
    }
    if flag_for_moderation:
        target = S.MODERATOR_REVIEW
        machine.check_moderator_track(app.get("moderatorReviewStatus"), ModeratorReviewStatus.PENDING)
        changes.update(
            {
                "flaggedForModeration": True,
                "flaggedReason": str(flag_reason).strip(),
                "moderatorReviewStatus": ModeratorReviewStatus.PENDING.value,
                "statusBeforeModeration": machine.current_status(app).value,
            }
        )
    elif require_background_check:
        target = S.BACKGROUND_CHECK_REQUIRED
    else:
        target = S.UNDER_REVIEW

    updated = _transition(app, event="complete_vetting", target=target, actor=actor, changes=changes)

    if target == S.BACKGROUND_CHECK_REQUIRED:
        vol = volunteers_repo.get_volunteer(str(app.get("volunteerId"))) or {}
        if vol and vol.get("backgroundCheckStatus") != BackgroundCheckStatus.APPROVED.value:
            volunteers_repo.update_volunteer(
                str(vol["id"]), {"backgroundCheckStatus": BackgroundCheckStatus.PENDING.value}
            )
        notify(
            user_id=volunteer_user_id(app),
            type=NotificationType.BACKGROUND_CHECK_REQUIRED,
            title="Background check required",
            message=f"\"{opp.get('title') or 'This opportunity'}\" requires a background check before approval.",
            data={"applicationId": app.get("id")},
            action_url=_app_url(app),
            priority=NotificationPriority.HIGH,
        )
    elif target == S.UNDER_REVIEW:
        notify(
            user_id=volunteer_user_id(app),
            type=NotificationType.APPLICATION_UNDER_REVIEW,
            title="Application under review",
            message=f"Your application for \"{opp.get('title') or 'an opportunity'}\" is being reviewed.",
            data={"applicationId": app.get("id")},
            action_url=_app_url(app),
        )
    return updated


def review_suggested_match(
    *,
    actor: Any,
    application_id: str,
    decision: str,
    notes: str | None = None,
) -> dict[str, Any]:
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))
    _owned_by_charity(actor, opp)
    lifecycle.check_application_mutable(opp, event="review_suggested")

    if not app.get("isSystemMatched"):
        raise ValidationFailed(message="This application is not a system-suggested match")
    d = str(decision or "").strip().lower()
    if d not in ("accept", "decline"):
        raise ValidationFailed(message='Invalid decision. Must be "accept" or "decline"')

    target = S.UNDER_REVIEW if d == "accept" else S.REJECTED
    updated = _transition(
        app,
        event="review_suggested",
        target=target,
        actor=actor,
        changes={"reviewNotes": notes, "reviewedBy": actor.sub, "reviewedAt": now_iso()},
    )
    notify(
        user_id=volunteer_user_id(app),
        type=NotificationType.APPLICATION_UNDER_REVIEW if d == "accept" else NotificationType.APPLICATION_REJECTED,
        title="Suggested match reviewed",
        message=(
            f"A charity is interested in you for \"{opp.get('title') or 'an opportunity'}\""
            if d == "accept"
            else f"The suggested match for \"{opp.get('title') or 'an opportunity'}\" was declined"
        ),
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id")},
        action_url=_app_url(app),
    )
    return updated


# ---- volunteer actions ----


def confirm_application(*, actor: Any, application_id: str, committed_hours: float) -> dict[str, Any]:
    try:
        hours = float(committed_hours)
    except (TypeError, ValueError) as e:
        raise ValidationFailed(message="committedHours must be a number") from e
    if not MIN_COMMITTED_HOURS <= hours <= MAX_COMMITTED_HOURS:
        raise ValidationFailed(
            message=f"committedHours must be between {MIN_COMMITTED_HOURS} and {MAX_COMMITTED_HOURS}",
            extensions={"committedHours": committed_hours},
        )
    if hours.is_integer():
        hours = int(hours)

    app = load_application(application_id)
    _owned_by_volunteer(actor, app)
    opp = load_opportunity(str(app.get("opportunityId")))
    lifecycle.check_application_mutable(opp, event="confirm")

    current = machine.check_transition(app.get("status"), "confirm", S.CONFIRMED)

    def _full(o: dict[str, Any]) -> CapacityExceeded:
        return CapacityExceeded(
            message="This opportunity is full",
            extensions={
                "opportunityId": o.get("id"),
                "numberOfVolunteers": o.get("numberOfVolunteers"),
                "volunteersConfirmed": o.get("volunteersConfirmed"),
            },
        )

    if lifecycle.is_full(opp):
        raise _full(opp)

    now = now_iso()
    try:
        updated, opp_after = applications_repo.confirm_application(
            application_id=str(app["id"]),
            opportunity_id=str(opp["id"]),
            expected_status=machine.stored_forms(current),
            opportunity_status=str(opp.get("status")),
            changes={"status": S.CONFIRMED.value, "hoursCommitted": hours, "confirmedAt": now},
        )
    except StoreConflict as e:
        # Tell a lost slot apart from a status that moved underneath us.
        fresh_app = applications_repo.get_application(str(app["id"])) or {}
        if str(fresh_app.get("status") or "") not in machine.stored_forms(S.APPROVED):
            raise invalid_transition(
                entity="application",
                current_status=str(fresh_app.get("status") or "") or None,
                target_status=S.CONFIRMED.value,
                event="confirm",
            ) from e
        fresh_opp = opportunities_repo.get_opportunity(str(opp["id"])) or opp
        if fresh_opp.get("status") != opp.get("status"):
            # Suspended or closed while confirming.
            lifecycle.check_application_mutable(fresh_opp, event="confirm")
            raise invalid_transition(
                entity="opportunity",
                current_status=str(fresh_opp.get("status") or "") or None,
                target_status=str(opp.get("status") or "") or None,
                event="confirm",
            ) from e
        raise _full(fresh_opp) from e

    log.info(
        "application_confirmed",
        application_id=app.get("id"),
        opportunity_id=opp.get("id"),
        hours_committed=hours,
        volunteers_confirmed=opp_after.get("volunteersConfirmed"),
        number_of_volunteers=opp_after.get("numberOfVolunteers"),
    )
    notify(
        user_id=charity_user_id(opp),
        type=NotificationType.VOLUNTEER_CONFIRMED,
        title="Volunteer confirmed",
        message=f"A volunteer confirmed participation in \"{opp.get('title') or 'your opportunity'}\"",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id"), "hoursCommitted": hours},
        action_url=_app_url(app),
    )
    notify(
        user_id=volunteer_user_id(app),
        type=NotificationType.APPLICATION_CONFIRMED,
        title="Participation confirmed",
        message=f"You are confirmed for \"{opp.get('title') or 'the opportunity'}\"",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id")},
        action_url=_app_url(app),
    )
    return updated


def withdraw_application(*, actor: Any, application_id: str, reason: str | None = None) -> dict[str, Any]:
    app = load_application(application_id)
    _owned_by_volunteer(actor, app, approved=False)
    opp = load_opportunity(str(app.get("opportunityId")))
    lifecycle.check_application_mutable(opp, event="withdraw")

    updated = _transition(
        app,
        event="withdraw",
        target=S.WITHDRAWN,
        actor=actor,
        changes={"withdrawnAt": now_iso(), "withdrawnReason": reason},
    )
    notify(
        user_id=charity_user_id(opp),
        type=NotificationType.APPLICATION_WITHDRAWN,
        title="Application withdrawn",
        message=f"A volunteer withdrew from \"{opp.get('title') or 'your opportunity'}\"",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id"), "reason": reason},
        action_url=_app_url(app),
        priority=NotificationPriority.LOW,
    )
    return updated


# ---- moderator escalation track ----


def flag_for_moderation(*, actor: Any, application_id: str, reason: str) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    current_user(actor)
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))
    lifecycle.check_application_mutable(opp, event="moderator_flag")

    if not str(reason or "").strip():
        raise ValidationFailed(message="A reason is required when flagging an application")
    machine.check_moderator_track(app.get("moderatorReviewStatus"), ModeratorReviewStatus.PENDING)

    updated = _transition(
        app,
        event="moderator_flag",
        target=S.MODERATOR_REVIEW,
        actor=actor,
        changes={
            "flaggedForModeration": True,
            "flaggedReason": str(reason).strip(),
            "moderatorReviewStatus": ModeratorReviewStatus.PENDING.value,
            "statusBeforeModeration": machine.current_status(app).value,
        },
    )
    notify(
        user_id=charity_user_id(opp),
        type=NotificationType.APPLICATION_FLAGGED,
        title="Application flagged for moderation",
        message="An application on your opportunity is under moderator review",
        data={"applicationId": app.get("id"), "opportunityId": opp.get("id")},
        action_url=_app_url(app),
    )
    return updated


def moderator_review(
    *,
    actor: Any,
    application_id: str,
    decision: str,
    notes: str | None = None,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    current_user(actor)
    app = load_application(application_id)
    opp = load_opportunity(str(app.get("opportunityId")))

    d = ModeratorReviewStatus.parse(decision, field="decision")
    if d == ModeratorReviewStatus.PENDING:
        raise ValidationFailed(message="decision must be approved, rejected or escalated")
    machine.check_moderator_track(app.get("moderatorReviewStatus"), d)

    prior = app.get("statusBeforeModeration")
    target = machine.moderator_resolution_target(d, prior)
    changes: dict[str, Any] = {
        "moderatorReviewStatus": d.value,
        "moderatorNotes": notes,
        "moderatorReviewedBy": actor.sub,
        "moderatorReviewedAt": now_iso(),
        "flaggedForModeration": d == ModeratorReviewStatus.ESCALATED,
    }

    if target == S.REJECTED and prior == S.CONFIRMED.value:
        # The rejected volunteer held a confirmed slot; give it back atomically.
        machine.check_actor("moderator_review", getattr(actor, "role", None))
        current = machine.check_transition(app.get("status"), "moderator_review", target)
        try:
            updated, _ = applications_repo.release_confirmed_slot(
                application_id=str(app["id"]),
                opportunity_id=str(opp["id"]),
                expected_status=machine.stored_forms(current),
                changes={"status": target.value, **changes},
            )
        except StoreConflict as e:
            fresh = applications_repo.get_application(str(app["id"])) or {}
            raise invalid_transition(
                entity="application",
                current_status=str(fresh.get("status") or "") or None,
                target_status=target.value,
                event="moderator_review",
            ) from e
        log.info("application_slot_released", application_id=app.get("id"), opportunity_id=opp.get("id"))
    else:
        updated = _transition(app, event="moderator_review", target=target, actor=actor, changes=changes)

    if d != ModeratorReviewStatus.ESCALATED:
        for uid in (volunteer_user_id(app), charity_user_id(opp)):
            notify(
                user_id=uid,
                type=NotificationType.MODERATOR_REVIEW_COMPLETE,
                title="Moderator review complete",
                message=f"A moderator {d.value} the application",
                data={"applicationId": app.get("id"), "decision": d.value, "status": target.value},
                action_url=_app_url(app),
            )
    return updated


# ---- reads ----


def _opportunity_summary(opp: dict[str, Any] | None) -> dict[str, Any] | None:
    if not opp:
        return None
    keys = ("id", "title", "status", "startDate", "endDate", "city", "locationType", "charityId")
    return {k: opp.get(k) for k in keys}


def _status_filter(status: str | None) -> dict[str, Any]:
    if not status:
        return {}
    st = ApplicationStatus.parse(status, field="status")
    return {"status": machine.stored_forms(st)}


def list_my_applications(*, actor: Any, status: str | None = None) -> list[dict[str, Any]]:
    vol = require_volunteer(actor, approved=False)
    rows = applications_repo.list_applications({"volunteerId": vol["id"], **_status_filter(status)})
    out = []
    for a in rows:
        opp = opportunities_repo.get_opportunity(str(a.get("opportunityId")))
        out.append({**a, "opportunity": _opportunity_summary(opp)})
    return out


def list_for_opportunity(*, actor: Any, opportunity_id: str, status: str | None = None) -> list[dict[str, Any]]:
    opp = load_opportunity(opportunity_id)
    if getattr(actor, "role", None) != ROLE_MODERATOR:
        _owned_by_charity(actor, opp, approved=False)
    rows = applications_repo.list_applications({"opportunityId": opp["id"], **_status_filter(status)})
    out = []
    for a in rows:
        vol = volunteers_repo.get_volunteer(str(a.get("volunteerId")))
        out.append({**a, "volunteer": vol})
    return out


def get_application_for(*, actor: Any, application_id: str) -> dict[str, Any]:
    app = load_application(application_id)
    opp = opportunities_repo.get_opportunity(str(app.get("opportunityId")))
    role = getattr(actor, "role", None)
    if role == ROLE_VOLUNTEER:
        _owned_by_volunteer(actor, app, approved=False)
    elif role == ROLE_CHARITY:
        if not opp:
            raise NotFound(message="Opportunity not found")
        _owned_by_charity(actor, opp, approved=False)
    elif role != ROLE_MODERATOR:
        raise Forbidden(message="Not authorized to view this application")
    return {**app, "opportunity": _opportunity_summary(opp)}


def moderator_queue(*, actor: Any) -> list[dict[str, Any]]:
    require_role(actor, ROLE_MODERATOR)
    rows = applications_repo.list_applications({"status": S.MODERATOR_REVIEW.value})
    return sorted(rows, key=lambda a: str(a.get("updatedAt") or ""))
