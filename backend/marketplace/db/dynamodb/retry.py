from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import (
    StoreConflict,
    StoreError,
    StoreInternal,
    StoreThrottled,
    StoreUnavailable,
    StoreValidation,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = 5
    base_delay_s: float = 0.05
    max_delay_s: float = 1.0


# Confirmation races land on TransactWriteItems, so transactions retry longer.
DEFAULT_POLICY = RetryPolicy()
TRANSACTION_POLICY = RetryPolicy(attempts=8, base_delay_s=0.08, max_delay_s=2.0)

# error code -> (error class, message, retryable)
_CODE_MAP: dict[str, tuple[type[StoreError], str, bool]] = {
    "ConditionalCheckFailedException": (StoreConflict, "conditional check failed", False),
    "ValidationException": (StoreValidation, "request validation failed", False),
    "AccessDeniedException": (StoreUnavailable, "access denied", False),
    "UnrecognizedClientException": (StoreUnavailable, "access denied", False),
    "ResourceNotFoundException": (StoreUnavailable, "table not found", False),
    "ProvisionedThroughputExceededException": (StoreThrottled, "throughput exceeded", True),
    "ThrottlingException": (StoreThrottled, "throttled", True),
    "RequestLimitExceeded": (StoreThrottled, "request limit exceeded", True),
    "TransactionConflictException": (StoreThrottled, "transaction conflict", True),
    "InternalServerError": (StoreUnavailable, "service error", True),
    "ServiceUnavailable": (StoreUnavailable, "service unavailable", True),
}


def _cancellation_codes(e: ClientError) -> set[str]:
    reasons = (e.response or {}).get("CancellationReasons") or []
    return {str((r or {}).get("Code") or "None") for r in reasons}


def classify(exc: Exception, *, operation: str, table_name: str | None, key: dict[str, Any] | None) -> StoreError:
    """Map a boto error onto the store error hierarchy."""
    if isinstance(exc, StoreError):
        return exc
    # Entity keys look like {"pk": "OPPORTUNITY#opp_1", "sk": "ENTITY"}.
    kind, _, entity_id = str((key or {}).get("pk") or "").partition("#")
    ctx: dict[str, Any] = {
        "operation": operation,
        "table_name": table_name,
        "kind": kind or None,
        "entity_id": entity_id or None,
        "cause": exc,
    }

    if isinstance(exc, BotoCoreError):
        return StoreUnavailable(message="DynamoDB client error", retryable=True, **ctx)
    if not isinstance(exc, ClientError):
        return StoreInternal(message="Unexpected DynamoDB error", **ctx)

    resp = exc.response or {}
    code = str((resp.get("Error") or {}).get("Code") or "")
    ctx["aws_request_id"] = (resp.get("ResponseMetadata") or {}).get("RequestId")

    if code == "TransactionCanceledException":
        reasons = _cancellation_codes(exc)
        # A failed condition wins even if another participant only raced.
        if "ConditionalCheckFailed" in reasons:
            return StoreConflict(message="DynamoDB transaction condition failed", **ctx)
        if reasons & {"TransactionConflict", "ThrottlingError"}:
            return StoreThrottled(message="DynamoDB transaction contended", retryable=True, **ctx)
        return StoreInternal(message="DynamoDB transaction cancelled", **ctx)

    cls, msg, retryable = _CODE_MAP.get(code, (StoreInternal, f"request failed ({code or 'ClientError'})", False))
    return cls(message=f"DynamoDB {msg}", retryable=retryable, **ctx)


def ddb_call(
    operation: str,
    fn: Callable[[], T],
    *,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
    policy: RetryPolicy = DEFAULT_POLICY,
) -> T:
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            mapped = classify(e, operation=operation, table_name=table_name, key=key)
            if not mapped.retryable or attempt >= max(1, policy.attempts):
                if mapped is e:
                    raise
                raise mapped from e
            # Full jitter.
            cap = min(policy.max_delay_s, policy.base_delay_s * (2 ** (attempt - 1)))
            time.sleep(random.random() * cap)
