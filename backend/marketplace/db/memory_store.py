from __future__ import annotations

import copy
import threading
from typing import Any, Iterable

from .errors import StoreConflict, StoreNotFound, StoreValidation
from .store import EntityStore, UpdateOp, apply_update, check_expectations, matches_filters


class MemoryEntityStore(EntityStore):
    """In-process store for local runs and tests.

    A single lock serializes writes, so conditional updates and transactions
    have the same all-or-nothing behaviour as the DynamoDB backend.
    """

    def __init__(self) -> None:
        self._items: dict[tuple[str, str], dict[str, Any]] = {}
        self._unique: dict[str, tuple[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        with self._lock:
            it = self._items.get((kind, str(entity_id or "")))
            return copy.deepcopy(it) if it is not None else None

    def list(self, kind: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        with self._lock:
            out = [
                copy.deepcopy(it)
                for (k, _), it in self._items.items()
                if k == kind and matches_filters(it, filters)
            ]
        out.sort(key=lambda x: (str(x.get("createdAt") or ""), str(x.get("id") or "")))
        return out

    def create(self, kind: str, item: dict[str, Any], *, unique: Iterable[str] = ()) -> dict[str, Any]:
        eid = str(item.get("id") or "").strip()
        if not eid:
            raise StoreValidation(message="id is required", operation="Create", kind=kind)
        tokens = list(unique)
        with self._lock:
            if (kind, eid) in self._items:
                raise StoreConflict(message="already exists", operation="Create", kind=kind, entity_id=eid)
            taken = [t for t in tokens if t in self._unique]
            if taken:
                raise StoreConflict(
                    message="unique value is taken",
                    operation="Create",
                    kind=kind,
                    entity_id=eid,
                    unique_tokens=tuple(taken),
                )
            self._items[(kind, eid)] = copy.deepcopy(item)
            for t in tokens:
                self._unique[t] = (kind, eid)
        return copy.deepcopy(item)

    def update(self, op: UpdateOp) -> dict[str, Any]:
        return self.transact([op])[0]

    def transact(self, ops: list[UpdateOp]) -> list[dict[str, Any]]:
        for op in ops:
            op.validate()
        with self._lock:
            current: list[dict[str, Any]] = []
            for op in ops:
                it = self._items.get((op.kind, op.entity_id))
                if it is None:
                    raise StoreNotFound(
                        message="not found", operation="Update", kind=op.kind, entity_id=op.entity_id
                    )
                if not check_expectations(it, op):
                    raise StoreConflict(
                        message="conditional check failed", operation="Update", kind=op.kind, entity_id=op.entity_id
                    )
                current.append(it)
            out: list[dict[str, Any]] = []
            for op, it in zip(ops, current):
                new = apply_update(it, op)
                self._items[(op.kind, op.entity_id)] = new
                out.append(copy.deepcopy(new))
        return out

    def delete(self, kind: str, entity_id: str, *, unique: Iterable[str] = ()) -> None:
        with self._lock:
            self._items.pop((kind, str(entity_id or "")), None)
            for t in unique:
                self._unique.pop(t, None)
