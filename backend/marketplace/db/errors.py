"""Errors raised by EntityStore backends.

Both backends report failures in entity terms (kind + id, unique tokens),
so services can react to a conflict without knowing which backend ran.
Each class carries the HTTP status `main.py` renders it with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(slots=True)
class StoreError(Exception):
    message: str
    operation: str | None = None
    kind: str | None = None
    entity_id: str | None = None
    # DynamoDB request context; unset for the in-process backend.
    table_name: str | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    http_status: ClassVar[int] = 500
    title: ClassVar[str] = "Storage Error"

    def __str__(self) -> str:
        if self.kind and self.entity_id:
            return f"{self.message} ({self.kind} {self.entity_id})"
        return self.message

    def problem_extensions(self) -> dict[str, Any]:
        out = {
            "operation": self.operation,
            "kind": self.kind,
            "entityId": self.entity_id,
            "table": self.table_name,
            "awsRequestId": self.aws_request_id,
            "retryable": self.retryable or None,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass(slots=True)
class StoreNotFound(StoreError):
    http_status: ClassVar[int] = 404
    title: ClassVar[str] = "Not Found"


@dataclass(slots=True)
class StoreConflict(StoreError):
    """A conditional write lost: an expectation, a capacity ceiling, or a unique token."""

    unique_tokens: tuple[str, ...] = ()

    http_status: ClassVar[int] = 409
    title: ClassVar[str] = "Conflict"

    def problem_extensions(self) -> dict[str, Any]:
        out = StoreError.problem_extensions(self)
        if self.unique_tokens:
            out["uniqueTokens"] = list(self.unique_tokens)
        return out


@dataclass(slots=True)
class StoreValidation(StoreError):
    http_status: ClassVar[int] = 400
    title: ClassVar[str] = "Bad Request"


@dataclass(slots=True)
class StoreThrottled(StoreError):
    http_status: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class StoreUnavailable(StoreError):
    http_status: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class StoreInternal(StoreError):
    pass
