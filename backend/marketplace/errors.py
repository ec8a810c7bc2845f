"""Domain errors raised by the marketplace services.

Each error carries a stable machine-readable `code` plus optional structured
`extensions`; the FastAPI exception handler in `main.py` renders them as
RFC7807 problem-details responses. Clients key off `extensions.code` to tell
an "opportunity full" conflict apart from an invalid state transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class MarketplaceError(Exception):
    message: str
    code: str = "error"
    extensions: dict[str, Any] = field(default_factory=dict)

    status_code = 400
    title = "Bad Request"

    def __str__(self) -> str:
        return self.message

    def problem_extensions(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code}
        out.update({k: v for k, v in (self.extensions or {}).items() if v is not None})
        return out


@dataclass(slots=True)
class ValidationFailed(MarketplaceError):
    code: str = "validation_failed"

    status_code = 400
    title = "Validation Failed"


@dataclass(slots=True)
class NotFound(MarketplaceError):
    code: str = "not_found"

    status_code = 404
    title = "Not Found"


@dataclass(slots=True)
class Forbidden(MarketplaceError):
    code: str = "forbidden"

    status_code = 403
    title = "Forbidden"


@dataclass(slots=True)
class DuplicateEntity(MarketplaceError):
    code: str = "duplicate"

    status_code = 409
    title = "Conflict"


@dataclass(slots=True)
class InvalidTransition(MarketplaceError):
    code: str = "invalid_transition"

    status_code = 409
    title = "Invalid Transition"


@dataclass(slots=True)
class CapacityExceeded(MarketplaceError):
    code: str = "opportunity_full"

    status_code = 409
    title = "Opportunity Full"


def invalid_transition(
    *,
    entity: str,
    current_status: str | None,
    target_status: str | None,
    event: str,
) -> InvalidTransition:
    cur = current_status or "none"
    tgt = target_status or "none"
    return InvalidTransition(
        message=f"Cannot {event.replace('_', ' ')} {entity} in status '{cur}' (target '{tgt}')",
        extensions={
            "entity": entity,
            "event": event,
            "currentStatus": current_status,
            "targetStatus": target_status,
        },
    )
