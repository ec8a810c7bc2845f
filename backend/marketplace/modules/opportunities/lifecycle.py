from __future__ import annotations

from typing import Any

from ...domain.enums import TERMINAL_OPPORTUNITY_STATUSES, OpportunityStatus
from ...errors import InvalidTransition, ValidationFailed, invalid_transition

O = OpportunityStatus

# `resume` restores the recorded prior status; this is the default when none was recorded.
RESUME_FALLBACK_STATUS = O.PUBLISHED

CLOSE_TARGETS = frozenset({O.COMPLETED, O.CANCELLED})


def status_of(opportunity: dict[str, Any]) -> OpportunityStatus:
    return OpportunityStatus.parse(opportunity.get("status"), field="status")


def is_terminal(status: OpportunityStatus) -> bool:
    return status in TERMINAL_OPPORTUNITY_STATUSES


def check_publish(status: OpportunityStatus) -> None:
    if status != O.DRAFT:
        raise invalid_transition(
            entity="opportunity", current_status=status.value, target_status=O.PUBLISHED.value, event="publish"
        )


def check_suspend(status: OpportunityStatus) -> None:
    if status == O.SUSPENDED or is_terminal(status):
        raise invalid_transition(
            entity="opportunity", current_status=status.value, target_status=O.SUSPENDED.value, event="suspend"
        )


def resume_target(opportunity: dict[str, Any]) -> OpportunityStatus:
    status = status_of(opportunity)
    if status != O.SUSPENDED:
        raise invalid_transition(entity="opportunity", current_status=status.value, target_status=None, event="resume")
    prev = opportunity.get("previousStatus")
    try:
        target = OpportunityStatus.parse(prev) if prev else RESUME_FALLBACK_STATUS
    except ValidationFailed:
        target = RESUME_FALLBACK_STATUS
    # Never restore into suspended or a terminal status.
    if target == O.SUSPENDED or is_terminal(target):
        target = RESUME_FALLBACK_STATUS
    return target


def check_close(status: OpportunityStatus, target: OpportunityStatus) -> None:
    if target not in CLOSE_TARGETS or is_terminal(status):
        raise invalid_transition(entity="opportunity", current_status=status.value, target_status=target.value, event="close")


def accepts_applications(opportunity: dict[str, Any]) -> bool:
    return str(opportunity.get("status") or "") == O.PUBLISHED.value


def is_full(opportunity: dict[str, Any]) -> bool:
    return int(opportunity.get("volunteersConfirmed") or 0) >= int(opportunity.get("numberOfVolunteers") or 0)


def check_application_mutable(opportunity: dict[str, Any], *, event: str) -> None:
    """
    Terminal opportunities freeze their applications; while suspended,
    approvals and confirmations are held.
    """
    status = status_of(opportunity)
    if is_terminal(status):
        raise InvalidTransition(
            message=f"Opportunity is {status.value}; applications can no longer change",
            code="opportunity_closed",
            extensions={"entity": "opportunity", "event": event, "currentStatus": status.value},
        )
    if status == O.SUSPENDED and event in ("approve", "confirm"):
        raise InvalidTransition(
            message=f"Opportunity is suspended; cannot {event} applications until it is resumed",
            code="opportunity_suspended",
            extensions={"entity": "opportunity", "event": event, "currentStatus": status.value},
        )
