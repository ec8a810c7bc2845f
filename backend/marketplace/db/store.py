"""
Entity store interface.

Every entity kind (User, Charity, Volunteer, Opportunity, Application,
Attendance, Report, Notification) is persisted as a camelCase document with an
`id`. Both backends implement this contract, including the conditional
update used for the capacity check on application confirmation.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Iterable

from .errors import StoreValidation


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:20]}"


@dataclass(slots=True)
class UpdateOp:
    """A conditional update of one entity.

    - `changes`: attributes to set.
    - `expect`: attribute -> required current value. A list/tuple/set means
      "one of"; `None` means the attribute must be absent.
    - `increments`: attribute -> numeric delta (missing counters start at 0).
    - `ceilings`: counter -> capacity attribute; the write only succeeds while
      `counter < capacity`. Counters under a ceiling must increment by 1.
    - `removes`: attributes to delete.
    """

    kind: str
    entity_id: str
    changes: dict[str, Any] = field(default_factory=dict)
    expect: dict[str, Any] = field(default_factory=dict)
    increments: dict[str, int | float] = field(default_factory=dict)
    ceilings: dict[str, str] = field(default_factory=dict)
    removes: tuple[str, ...] = ()

    def validate(self) -> None:
        if not str(self.kind or "").strip() or not str(self.entity_id or "").strip():
            raise StoreValidation(message="kind and entity_id are required", operation="Update")
        for counter in self.ceilings:
            if self.increments.get(counter) != 1:
                raise StoreValidation(
                    message=f"ceiling on '{counter}' requires an increment of exactly 1",
                    operation="Update",
                )
        overlap = set(self.changes) & (set(self.increments) | set(self.removes))
        if overlap or set(self.increments) & set(self.removes):
            raise StoreValidation(message="an attribute may appear in only one clause", operation="Update")
        if "id" in self.changes or "id" in self.removes:
            raise StoreValidation(message="id is immutable", operation="Update")


def matches_filters(item: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    for k, want in (filters or {}).items():
        have = item.get(k)
        if isinstance(want, (list, tuple, set, frozenset)):
            if have not in want:
                return False
        elif have != want:
            return False
    return True


def check_expectations(item: dict[str, Any], op: UpdateOp) -> bool:
    """Evaluate an UpdateOp's conditions against the current document."""
    for k, want in op.expect.items():
        if want is None:
            if item.get(k) is not None:
                return False
        elif isinstance(want, (list, tuple, set, frozenset)):
            if item.get(k) not in want:
                return False
        elif item.get(k) != want:
            return False
    for counter, capacity in op.ceilings.items():
        cur = item.get(counter)
        cap = item.get(capacity)
        if cur is None or cap is None or not cur < cap:
            return False
    return True


def apply_update(item: dict[str, Any], op: UpdateOp) -> dict[str, Any]:
    out = dict(item)
    out.update(op.changes)
    for k, delta in op.increments.items():
        out[k] = (out.get(k) or 0) + delta
    for k in op.removes:
        out.pop(k, None)
    return out


class EntityStore(ABC):
    """Entity store interface."""

    @abstractmethod
    def get(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        """Get an entity by id."""

    @abstractmethod
    def list(self, kind: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """List entities of a kind matching equality / membership filters."""

    @abstractmethod
    def create(self, kind: str, item: dict[str, Any], *, unique: Iterable[str] = ()) -> dict[str, Any]:
        """Create an entity; raises StoreConflict if the id or a unique token is taken."""

    @abstractmethod
    def update(self, op: UpdateOp) -> dict[str, Any]:
        """Apply a conditional update and return the new document."""

    @abstractmethod
    def transact(self, ops: list[UpdateOp]) -> list[dict[str, Any]]:
        """Apply several conditional updates atomically (all or nothing)."""

    @abstractmethod
    def delete(self, kind: str, entity_id: str, *, unique: Iterable[str] = ()) -> None:
        """Delete an entity and release its unique tokens."""


@lru_cache(maxsize=1)
def get_store() -> EntityStore:
    from ..settings import get_settings

    if get_settings().normalized_store_backend == "memory":
        from .memory_store import MemoryEntityStore

        return MemoryEntityStore()

    from .dynamo_store import DynamoEntityStore
    from .dynamodb.table import get_main_table

    return DynamoEntityStore(table=get_main_table())
