from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from boto3.dynamodb.conditions import Attr, Key

from .dynamodb.table import DynamoTable
from .errors import StoreConflict, StoreNotFound
from .store import EntityStore, UpdateOp, matches_filters


# Single-table layout:
#   entity:       pk = "<KIND>#<id>",      sk = "ENTITY"
#   kind index:   gsi1pk = "KIND#<Kind>",  gsi1sk = "<createdAt>#<id>"
#   unique guard: pk = "UNIQUE#<token>",   sk = "UNIQUE"
_ENTITY_SK = "ENTITY"
_UNIQUE_SK = "UNIQUE"
_INTERNAL_KEYS = ("pk", "sk", "gsi1pk", "gsi1sk", "entityType")


def entity_key(kind: str, entity_id: str) -> dict[str, str]:
    eid = str(entity_id or "").strip()
    if not eid:
        raise ValueError("entity_id is required")
    return {"pk": f"{str(kind).upper()}#{eid}", "sk": _ENTITY_SK}


def unique_key(token: str) -> dict[str, str]:
    return {"pk": f"UNIQUE#{token}", "sk": _UNIQUE_SK}


def kind_index_pk(kind: str) -> str:
    return f"KIND#{kind}"


def to_ddb(value: Any) -> Any:
    # DynamoDB rejects float; numbers round-trip through Decimal.
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_ddb(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_ddb(v) for v in value]
    return value


def from_ddb(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_ddb(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_ddb(v) for v in value]
    if isinstance(value, set):
        return sorted(from_ddb(v) for v in value)
    return value


def _strip(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if item is None:
        return None
    return from_ddb({k: v for k, v in item.items() if k not in _INTERNAL_KEYS})


def build_update_expression(op: UpdateOp) -> dict[str, Any]:
    """Translate an UpdateOp into UpdateExpression / ConditionExpression parts."""
    names: dict[str, str] = {}
    values: dict[str, Any] = {}

    def _n(attr: str) -> str:
        for ph, a in names.items():
            if a == attr:
                return ph
        ph = f"#a{len(names)}"
        names[ph] = attr
        return ph

    def _v(value: Any) -> str:
        ph = f":v{len(values)}"
        values[ph] = to_ddb(value)
        return ph

    sets: list[str] = []
    for attr, value in op.changes.items():
        sets.append(f"{_n(attr)} = {_v(value)}")
    if op.increments:
        zero = _v(0)
        for attr, delta in op.increments.items():
            ph = _n(attr)
            sets.append(f"{ph} = if_not_exists({ph}, {zero}) + {_v(delta)}")

    clauses: list[str] = []
    if sets:
        clauses.append("SET " + ", ".join(sets))
    if op.removes:
        clauses.append("REMOVE " + ", ".join(_n(a) for a in op.removes))

    conditions = ["attribute_exists(pk)"]
    for attr, want in op.expect.items():
        if want is None:
            conditions.append(f"attribute_not_exists({_n(attr)})")
        elif isinstance(want, (list, tuple, set, frozenset)):
            opts = ", ".join(_v(w) for w in sorted(want, key=str))
            conditions.append(f"{_n(attr)} IN ({opts})")
        else:
            conditions.append(f"{_n(attr)} = {_v(want)}")
    for counter, capacity in op.ceilings.items():
        conditions.append(f"{_n(counter)} < {_n(capacity)}")

    return {
        "update_expression": " ".join(clauses),
        "expression_attribute_names": names,
        "expression_attribute_values": values or None,
        "condition_expression": " AND ".join(conditions),
    }


def _filter_expression(filters: dict[str, Any] | None):
    expr = None
    for k, want in (filters or {}).items():
        if want is None:
            continue
        if isinstance(want, (list, tuple, set, frozenset)):
            if not want or len(want) > 100:
                continue
            cond = Attr(k).is_in([to_ddb(w) for w in want])
        else:
            cond = Attr(k).eq(to_ddb(want))
        expr = cond if expr is None else expr & cond
    return expr


class DynamoEntityStore(EntityStore):
    def __init__(self, *, table: DynamoTable):
        self._table = table

    def get(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        if not str(entity_id or "").strip():
            return None
        return _strip(self._table.get_item(key=entity_key(kind, entity_id)))

    def list(self, kind: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        items = self._table.query_all(
            index_name="GSI1",
            key_condition_expression=Key("gsi1pk").eq(kind_index_pk(kind)),
            filter_expression=_filter_expression(filters),
        )
        out = [_strip(it) or {} for it in items]
        # Server-side filters skip None/oversized lists; re-check exactly here.
        return [it for it in out if matches_filters(it, filters)]

    def create(self, kind: str, item: dict[str, Any], *, unique: Iterable[str] = ()) -> dict[str, Any]:
        eid = str(item.get("id") or "").strip()
        doc: dict[str, Any] = {
            **to_ddb(item),
            **entity_key(kind, eid),
            "entityType": kind,
            "gsi1pk": kind_index_pk(kind),
            "gsi1sk": f"{item.get('createdAt') or ''}#{eid}",
        }
        tokens = list(unique)
        if not tokens:
            self._table.put_item(item=doc, condition_expression="attribute_not_exists(pk)")
            return dict(item)

        puts = [self._table.tx_put(item=doc, condition_expression="attribute_not_exists(pk)")]
        for t in tokens:
            guard = {**unique_key(t), "entityType": "UniqueGuard", "ownerKind": kind, "ownerId": eid}
            puts.append(self._table.tx_put(item=guard, condition_expression="attribute_not_exists(pk)"))
        try:
            self._table.transact_write(puts=puts)
        except StoreConflict as e:
            raise StoreConflict(
                message="already exists or a unique value is taken",
                operation="TransactWriteItems",
                kind=kind,
                entity_id=eid,
                table_name=self._table.table_name,
                unique_tokens=tuple(tokens),
                cause=e,
            ) from e
        return dict(item)

    def update(self, op: UpdateOp) -> dict[str, Any]:
        op.validate()
        key = entity_key(op.kind, op.entity_id)
        try:
            attrs = self._table.update_item(key=key, **build_update_expression(op))
        except StoreConflict:
            if self._table.get_item(key=key) is None:
                raise StoreNotFound(
                    message="not found",
                    operation="UpdateItem",
                    kind=op.kind,
                    entity_id=op.entity_id,
                    table_name=self._table.table_name,
                )
            raise
        return _strip(attrs) or {}

    def transact(self, ops: list[UpdateOp]) -> list[dict[str, Any]]:
        for op in ops:
            op.validate()
        updates = [
            self._table.tx_update(key=entity_key(op.kind, op.entity_id), **build_update_expression(op))
            for op in ops
        ]
        try:
            self._table.transact_write(updates=updates)
        except StoreConflict:
            for op in ops:
                key = entity_key(op.kind, op.entity_id)
                if self._table.get_item(key=key) is None:
                    raise StoreNotFound(
                        message="not found",
                        operation="TransactWriteItems",
                        kind=op.kind,
                        entity_id=op.entity_id,
                        table_name=self._table.table_name,
                    )
            raise
        return [self.get(op.kind, op.entity_id) or {} for op in ops]

    def delete(self, kind: str, entity_id: str, *, unique: Iterable[str] = ()) -> None:
        key = entity_key(kind, entity_id)
        tokens = list(unique)
        if not tokens:
            self._table.delete_item(key=key)
            return
        deletes = [self._table.tx_delete(key=key)]
        deletes.extend(self._table.tx_delete(key=unique_key(t)) for t in tokens)
        self._table.transact_write(deletes=deletes)
