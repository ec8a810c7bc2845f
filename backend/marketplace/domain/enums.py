"""Closed vocabularies for every status-like field in the marketplace.

Values are stored as their string form; `parse()` is the single place that
turns untrusted input into a member (raising ValidationFailed otherwise).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from ..errors import ValidationFailed

E = TypeVar("E", bound="StrEnum")


class StrEnum(str, Enum):
    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]

    @classmethod
    def parse(cls: type[E], value: Any, *, field: str | None = None) -> E:
        raw = str(value.value if isinstance(value, Enum) else value or "").strip().lower()
        for m in cls:
            if m.value == raw:
                return m
        name = field or cls.__name__
        raise ValidationFailed(
            message=f"Invalid {name}: '{value}'. Expected one of: {', '.join(cls.values())}",
            extensions={"field": name, "allowed": cls.values()},
        )


class Role(StrEnum):
    VOLUNTEER = "volunteer"
    CHARITY = "charity"
    MODERATOR = "moderator"


class ReviewStatus(StrEnum):
    """Charity verification / volunteer approval / opportunity moderation."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BackgroundCheckStatus(StrEnum):
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OpportunityStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LocationType(StrEnum):
    IN_PERSON = "in-person"
    VIRTUAL = "virtual"
    HYBRID = "hybrid"


class Visibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"
    INVITE_ONLY = "invite_only"


class ApplicationStatus(StrEnum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    ADDITIONAL_INFO_REQUESTED = "additional_info_requested"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    BACKGROUND_CHECK_REQUIRED = "background_check_required"
    MODERATOR_REVIEW = "moderator_review"

    @classmethod
    def parse(cls, value: Any, *, field: str | None = None) -> "ApplicationStatus":
        # Legacy rows may carry "accepted"; it is read as "approved" and never written.
        raw = str(value.value if isinstance(value, Enum) else value or "").strip().lower()
        if raw == "accepted":
            return cls.APPROVED
        return super().parse(value, field=field)


class ModeratorReviewStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"


class AttendanceStatus(StrEnum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class ReportEntityType(StrEnum):
    USER = "user"
    CHARITY = "charity"
    OPPORTUNITY = "opportunity"
    COMMENT = "comment"


class ReportReason(StrEnum):
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    SPAM = "spam"
    HARASSMENT = "harassment"
    FALSE_INFORMATION = "false_information"
    SAFETY_CONCERN = "safety_concern"
    OTHER = "other"


class ReportStatus(StrEnum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class NotificationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(StrEnum):
    APPLICATION_RECEIVED = "application_received"
    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    APPLICATION_CONFIRMED = "application_confirmed"
    APPLICATION_UNDER_REVIEW = "application_under_review"
    APPLICATION_WITHDRAWN = "application_withdrawn"
    APPLICATION_FLAGGED = "application_flagged"
    ADDITIONAL_INFO_REQUESTED = "additional_info_requested"
    ADDITIONAL_INFO_PROVIDED = "additional_info_provided"
    BACKGROUND_CHECK_REQUIRED = "background_check_required"
    MODERATOR_REVIEW_COMPLETE = "moderator_review_complete"
    VOLUNTEER_CONFIRMED = "volunteer_confirmed"
    VOLUNTEER_MATCH_SUGGESTION = "volunteer_match_suggestion"
    NEW_OPPORTUNITY_MATCH = "new_opportunity_match"
    ATTENDANCE_RECORDED = "attendance_recorded"
    OPPORTUNITY_SUSPENDED = "opportunity_suspended"
    OPPORTUNITY_RESUMED = "opportunity_resumed"
    OPPORTUNITY_CLOSED = "opportunity_closed"
    OPPORTUNITY_DELETED = "opportunity_deleted"
    VERIFICATION_UPDATE = "verification_update"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_REACTIVATED = "account_reactivated"


TERMINAL_OPPORTUNITY_STATUSES = frozenset({OpportunityStatus.COMPLETED, OpportunityStatus.CANCELLED})
TERMINAL_APPLICATION_STATUSES = frozenset({ApplicationStatus.WITHDRAWN, ApplicationStatus.REJECTED})
# Applications that still hold (or may come to hold) a slot on an opportunity.
ACTIVE_APPLICATION_STATUSES = frozenset(
    {
        ApplicationStatus.PENDING,
        ApplicationStatus.UNDER_REVIEW,
        ApplicationStatus.APPROVED,
        ApplicationStatus.CONFIRMED,
    }
)
