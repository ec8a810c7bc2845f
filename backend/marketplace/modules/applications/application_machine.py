"""
Application lifecycle as an explicit transition table.

Two orthogonal tracks live on one Application:

- `status`: the primary lifecycle (TRANSITIONS below).
- `moderatorReviewStatus`: the escalation track (MODERATOR_TRACK), moved only
  by moderator flag / review events.

Functions here are pure; the service layer pairs every accepted transition
with a compare-and-set write on the stored status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ...domain.enums import (
    TERMINAL_APPLICATION_STATUSES,
    ApplicationStatus,
    ModeratorReviewStatus,
    Role,
)
from ...errors import Forbidden, ValidationFailed, invalid_transition

S = ApplicationStatus


@dataclass(frozen=True, slots=True)
class Transition:
    event: str
    actor: Role
    sources: frozenset[ApplicationStatus]
    targets: frozenset[ApplicationStatus]


_REVIEWABLE = frozenset({S.PENDING, S.UNDER_REVIEW})
_NON_TERMINAL = frozenset(set(S) - set(TERMINAL_APPLICATION_STATUSES))

TRANSITIONS: dict[str, Transition] = {
    t.event: t
    for t in (
        Transition("request_info", Role.CHARITY, _REVIEWABLE, frozenset({S.ADDITIONAL_INFO_REQUESTED})),
        Transition("provide_info", Role.VOLUNTEER, frozenset({S.ADDITIONAL_INFO_REQUESTED}), frozenset({S.UNDER_REVIEW})),
        Transition(
            "approve",
            Role.CHARITY,
            _REVIEWABLE | {S.BACKGROUND_CHECK_REQUIRED},
            frozenset({S.APPROVED}),
        ),
        Transition(
            "reject",
            Role.CHARITY,
            _REVIEWABLE | {S.BACKGROUND_CHECK_REQUIRED},
            frozenset({S.REJECTED}),
        ),
        Transition("confirm", Role.VOLUNTEER, frozenset({S.APPROVED}), frozenset({S.CONFIRMED})),
        Transition(
            "withdraw",
            Role.VOLUNTEER,
            _REVIEWABLE | {S.ADDITIONAL_INFO_REQUESTED},
            frozenset({S.WITHDRAWN}),
        ),
        Transition(
            "moderator_flag",
            Role.MODERATOR,
            _NON_TERMINAL - {S.MODERATOR_REVIEW},
            frozenset({S.MODERATOR_REVIEW}),
        ),
        Transition(
            "complete_vetting",
            Role.CHARITY,
            _REVIEWABLE,
            frozenset({S.UNDER_REVIEW, S.BACKGROUND_CHECK_REQUIRED, S.MODERATOR_REVIEW}),
        ),
        Transition(
            "moderator_review",
            Role.MODERATOR,
            frozenset({S.MODERATOR_REVIEW}),
            frozenset({S.UNDER_REVIEW, S.APPROVED, S.CONFIRMED, S.REJECTED, S.MODERATOR_REVIEW}),
        ),
        Transition("review_suggested", Role.CHARITY, frozenset({S.PENDING}), frozenset({S.UNDER_REVIEW, S.REJECTED})),
    )
}

MR = ModeratorReviewStatus

# None = never flagged.
MODERATOR_TRACK: dict[ModeratorReviewStatus | None, frozenset[ModeratorReviewStatus]] = {
    None: frozenset({MR.PENDING}),
    MR.PENDING: frozenset({MR.APPROVED, MR.REJECTED, MR.ESCALATED}),
    MR.ESCALATED: frozenset({MR.APPROVED, MR.REJECTED}),
    MR.APPROVED: frozenset({MR.PENDING}),
    MR.REJECTED: frozenset({MR.PENDING}),
}


def current_status(application: dict[str, Any]) -> ApplicationStatus:
    return ApplicationStatus.parse(application.get("status"), field="status")


def stored_forms(status: ApplicationStatus) -> list[str]:
    """Stored values that read back as `status` (legacy 'accepted' rows are approved)."""
    if status == S.APPROVED:
        return [S.APPROVED.value, "accepted"]
    return [status.value]


def is_terminal(status: ApplicationStatus) -> bool:
    return status in TERMINAL_APPLICATION_STATUSES


def actor_for(event: str) -> Role:
    return TRANSITIONS[event].actor


def check_actor(event: str, role: str | None) -> None:
    want = actor_for(event)
    if role != want.value:
        raise Forbidden(
            message=f"Only a {want.value} can {event.replace('_', ' ')} an application",
            extensions={"event": event, "requiredRole": want.value},
        )


def check_transition(
    status: ApplicationStatus | str | None,
    event: str,
    target: ApplicationStatus,
) -> ApplicationStatus:
    """Validate `status --event--> target`; returns the parsed current status."""
    t = TRANSITIONS.get(event)
    if t is None:
        raise ValueError(f"unknown application event: {event}")

    cur = ApplicationStatus.parse(status, field="status") if status is not None else None
    if cur is None or is_terminal(cur) or cur not in t.sources or target not in t.targets:
        raise invalid_transition(
            entity="application",
            current_status=cur.value if cur else None,
            target_status=target.value,
            event=event,
        )
    return cur


def check_moderator_track(current: Any, target: ModeratorReviewStatus) -> ModeratorReviewStatus | None:
    cur = ModeratorReviewStatus.parse(current, field="moderatorReviewStatus") if current else None
    if target not in MODERATOR_TRACK.get(cur, frozenset()):
        raise invalid_transition(
            entity="moderator review",
            current_status=cur.value if cur else None,
            target_status=target.value,
            event="moderator_review",
        )
    return cur


def moderator_resolution_target(
    decision: ModeratorReviewStatus,
    status_before_moderation: Any,
) -> ApplicationStatus:
    """
    Where a moderator decision leaves the primary track:
    approved -> back to approved/confirmed if that is where it was flagged,
    otherwise under_review; rejected -> rejected; escalated -> stays.
    """
    if decision == MR.REJECTED:
        return S.REJECTED
    if decision == MR.ESCALATED:
        return S.MODERATOR_REVIEW
    try:
        prior = ApplicationStatus.parse(status_before_moderation) if status_before_moderation else None
    except ValidationFailed:
        prior = None
    if prior in (S.APPROVED, S.CONFIRMED):
        return prior
    return S.UNDER_REVIEW
