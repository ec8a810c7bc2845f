from __future__ import annotations

from collections import Counter
from typing import Any

from ...db.store import now_iso
from ...domain.enums import ReportEntityType, ReportReason, ReportStatus
from ...errors import DuplicateEntity, Forbidden, NotFound, ValidationFailed, invalid_transition
from ...observability.logging import get_logger
from ...pagination import paginate
from ...repositories import charities_repo, opportunities_repo, reports_repo, users_repo
from ..identity.roles import ROLE_MODERATOR, has_role, require_role
from ..profiles.profile_service import current_user

log = get_logger("reports")

OPEN_STATUSES = (ReportStatus.PENDING.value, ReportStatus.UNDER_REVIEW.value)
CLOSED_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.DISMISSED})

MAX_DESCRIPTION_LENGTH = 2000


def _load_entity(entity_type: ReportEntityType, entity_id: str) -> dict[str, Any] | None:
    if entity_type == ReportEntityType.USER:
        return users_repo.get_user(entity_id)
    if entity_type == ReportEntityType.CHARITY:
        return charities_repo.get_charity(entity_id)
    if entity_type == ReportEntityType.OPPORTUNITY:
        return opportunities_repo.get_opportunity(entity_id)
    return None


def _entity_summary(entity_type: str, entity_id: str) -> dict[str, Any] | None:
    try:
        et = ReportEntityType.parse(entity_type)
    except ValidationFailed:
        return None
    e = _load_entity(et, entity_id)
    if not e:
        return None
    if et == ReportEntityType.USER:
        name = " ".join(str(x) for x in (e.get("firstName"), e.get("lastName")) if x) or e.get("email")
        return {"id": e.get("id"), "name": name, "role": e.get("role")}
    if et == ReportEntityType.CHARITY:
        return {"id": e.get("id"), "name": e.get("organizationName"), "registrationNumber": e.get("registrationNumber")}
    return {"id": e.get("id"), "name": e.get("title"), "category": e.get("category"), "startDate": e.get("startDate")}


def create_report(
    *,
    actor: Any,
    entity_type: str,
    entity_id: str,
    reason: str,
    description: str | None = None,
) -> dict[str, Any]:
    user = current_user(actor)
    et = ReportEntityType.parse(entity_type, field="reportedEntityType")
    rs = ReportReason.parse(reason, field="reason")
    eid = str(entity_id or "").strip()
    if not eid:
        raise ValidationFailed(message="reportedEntityId is required", extensions={"field": "reportedEntityId"})
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationFailed(message=f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")

    if et != ReportEntityType.COMMENT and not _load_entity(et, eid):
        raise NotFound(message="Reported entity not found", extensions={"reportedEntityType": et.value, "reportedEntityId": eid})
    if et == ReportEntityType.USER and eid == user["id"]:
        raise ValidationFailed(message="You cannot report yourself", code="self_report")

    open_reports = reports_repo.list_reports(
        {
            "reporterId": user["id"],
            "reportedEntityType": et.value,
            "reportedEntityId": eid,
            "status": list(OPEN_STATUSES),
        }
    )
    if open_reports:
        raise DuplicateEntity(
            message="You have already reported this entity",
            code="duplicate_report",
            extensions={"reportId": open_reports[0].get("id")},
        )

    report = reports_repo.create_report(
        reporter_id=str(user["id"]),
        fields={"reportedEntityType": et.value, "reportedEntityId": eid, "reason": rs.value, "description": description},
    )
    log.info("report_created", report_id=report.get("id"), entity_type=et.value, reason=rs.value)
    return report


def list_my_reports(*, actor: Any, page: int = 1, limit: int = 20) -> dict[str, Any]:
    user = current_user(actor)
    rows = reports_repo.list_reports({"reporterId": user["id"]})
    rows.sort(key=lambda r: str(r.get("createdAt") or ""), reverse=True)
    return paginate(rows, page=page, limit=limit)


def list_reports(
    *,
    actor: Any,
    status: str | None = None,
    entity_type: str | None = None,
    reason: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    filters: dict[str, Any] = {}
    if status:
        filters["status"] = ReportStatus.parse(status, field="status").value
    if entity_type:
        filters["reportedEntityType"] = ReportEntityType.parse(entity_type, field="reportedEntityType").value
    if reason:
        filters["reason"] = ReportReason.parse(reason, field="reason").value
    rows = reports_repo.list_reports(filters)
    rows.sort(key=lambda r: str(r.get("createdAt") or ""), reverse=True)
    return paginate(rows, page=page, limit=limit)


def get_report(*, actor: Any, report_id: str) -> dict[str, Any]:
    report = reports_repo.get_report(report_id)
    if not report:
        raise NotFound(message="Report not found", extensions={"reportId": report_id})
    if report.get("reporterId") != actor.sub and not has_role(actor, ROLE_MODERATOR):
        raise Forbidden(message="Not authorized to view this report")
    return {
        **report,
        "entityDetails": _entity_summary(str(report.get("reportedEntityType")), str(report.get("reportedEntityId"))),
    }


def update_report_status(
    *,
    actor: Any,
    report_id: str,
    status: str | None = None,
    resolution: str | None = None,
    action_taken: str | None = None,
) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    report = reports_repo.get_report(report_id)
    if not report:
        raise NotFound(message="Report not found", extensions={"reportId": report_id})

    changes: dict[str, Any] = {}
    if resolution is not None:
        changes["resolution"] = resolution
    if action_taken is not None:
        changes["actionTaken"] = action_taken

    expect = None
    if status:
        target = ReportStatus.parse(status, field="status")
        current = ReportStatus.parse(report.get("status"), field="status")
        # Closed reports stay closed; they may still move between resolved and dismissed.
        if current in CLOSED_STATUSES and target not in CLOSED_STATUSES:
            raise invalid_transition(
                entity="report", current_status=current.value, target_status=target.value, event="update_status"
            )
        changes["status"] = target.value
        expect = {"status": current.value}
        if target in CLOSED_STATUSES:
            changes["reviewedBy"] = actor.sub
            changes["reviewedAt"] = now_iso()

    if not changes:
        raise ValidationFailed(message="Nothing to update: provide status, resolution or actionTaken")
    updated = reports_repo.update_report(str(report["id"]), changes, expect=expect)
    log.info("report_updated", report_id=report.get("id"), status=updated.get("status"), actor_id=actor.sub)
    return updated


def delete_report(*, actor: Any, report_id: str) -> None:
    require_role(actor, ROLE_MODERATOR)
    if not reports_repo.get_report(report_id):
        raise NotFound(message="Report not found", extensions={"reportId": report_id})
    reports_repo.delete_report(report_id)
    log.info("report_deleted", report_id=report_id, actor_id=actor.sub)


def report_stats(*, actor: Any) -> dict[str, Any]:
    require_role(actor, ROLE_MODERATOR)
    rows = reports_repo.list_reports()
    by_status = Counter(str(r.get("status")) for r in rows)
    return {
        "totalReports": len(rows),
        "pendingReports": by_status.get(ReportStatus.PENDING.value, 0),
        "underReviewReports": by_status.get(ReportStatus.UNDER_REVIEW.value, 0),
        "resolvedReports": by_status.get(ReportStatus.RESOLVED.value, 0),
        "dismissedReports": by_status.get(ReportStatus.DISMISSED.value, 0),
        "reportsByEntityType": dict(Counter(str(r.get("reportedEntityType")) for r in rows)),
        "reportsByReason": dict(Counter(str(r.get("reason")) for r in rows)),
    }


def reports_for_entity(*, actor: Any, entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    require_role(actor, ROLE_MODERATOR)
    et = ReportEntityType.parse(entity_type, field="reportedEntityType")
    rows = reports_repo.list_reports({"reportedEntityType": et.value, "reportedEntityId": entity_id})
    return sorted(rows, key=lambda r: str(r.get("createdAt") or ""), reverse=True)
