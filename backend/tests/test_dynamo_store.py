from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest

from marketplace.db.dynamo_store import (
    DynamoEntityStore,
    build_update_expression,
    entity_key,
    from_ddb,
    to_ddb,
)
from marketplace.db.errors import StoreConflict, StoreNotFound, StoreValidation
from marketplace.db.store import UpdateOp


class FakeTable:
    """
    Records what the store sends to DynamoDB.

    Conditions are not evaluated; tests arm `fail_next` to simulate a
    ConditionalCheckFailed on the next conditional write.
    """

    table_name = "Fake"

    def __init__(self):
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_next = False

    def _maybe_fail(self, op: str) -> None:
        if self.fail_next:
            self.fail_next = False
            raise StoreConflict(message="conditional check failed", operation=op, table_name=self.table_name)

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        return self.items.get((key["pk"], key["sk"]))

    def put_item(self, *, item: dict[str, Any], condition_expression: str | None = None, **_kw) -> dict[str, Any]:
        self.calls.append(("put_item", {"item": item, "condition_expression": condition_expression}))
        self._maybe_fail("PutItem")
        self.items[(item["pk"], item["sk"])] = dict(item)
        return {}

    def delete_item(self, *, key: dict[str, Any], **_kw) -> dict[str, Any]:
        self.calls.append(("delete_item", {"key": key}))
        self.items.pop((key["pk"], key["sk"]), None)
        return {}

    def update_item(self, *, key: dict[str, Any], **kw) -> dict[str, Any] | None:
        self.calls.append(("update_item", {"key": key, **kw}))
        self._maybe_fail("UpdateItem")
        return {**self.items.get((key["pk"], key["sk"]), {}), "updated": True}

    def query_all(self, **kw) -> list[dict[str, Any]]:
        self.calls.append(("query_all", kw))
        return [it for it in self.items.values() if it.get("gsi1pk") == "KIND#Widget"]

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        return {"Item": item, "ConditionExpression": condition_expression}

    def tx_delete(self, *, key: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        return {"Key": key}

    def tx_update(self, *, key: dict[str, Any], **kw) -> dict[str, Any]:
        return {"Key": key, **kw}

    def transact_write(self, *, puts=(), deletes=(), updates=()) -> dict[str, Any]:
        self.calls.append(("transact_write", {"puts": list(puts), "deletes": list(deletes), "updates": list(updates)}))
        self._maybe_fail("TransactWriteItems")
        for p in self.calls[-1][1]["puts"]:
            it = p["Item"]
            self.items[(it["pk"], it["sk"])] = dict(it)
        for d in self.calls[-1][1]["deletes"]:
            self.items.pop((d["Key"]["pk"], d["Key"]["sk"]), None)
        return {}


def test_update_expression_with_expectations_and_ceiling():
    op = UpdateOp(
        kind="Opportunity",
        entity_id="opp_1",
        changes={"updatedAt": "t"},
        expect={"status": ["approved", "accepted"], "closedAt": None, "charityId": "ch_1"},
        increments={"volunteersConfirmed": 1},
        ceilings={"volunteersConfirmed": "numberOfVolunteers"},
    )
    out = build_update_expression(op)
    names = out["expression_attribute_names"]
    by_attr = {a: ph for ph, a in names.items()}

    counter = by_attr["volunteersConfirmed"]
    assert f"{counter} = if_not_exists({counter}, :v1) + :v2" in out["update_expression"]
    assert out["update_expression"].startswith("SET ")

    cond = out["condition_expression"]
    assert cond.startswith("attribute_exists(pk)")
    assert f"{by_attr['status']} IN (" in cond
    assert f"attribute_not_exists({by_attr['closedAt']})" in cond
    assert f"{by_attr['charityId']} = " in cond
    assert f"{counter} < {by_attr['numberOfVolunteers']}" in cond

    values = out["expression_attribute_values"]
    assert values[":v1"] == 0
    assert values[":v2"] == 1
    assert {"approved", "accepted"} <= set(values.values())


def test_update_expression_removes_and_floats():
    op = UpdateOp(kind="User", entity_id="u1", changes={"rating": 4.5}, removes=("deactivatedAt",))
    out = build_update_expression(op)
    assert " REMOVE " in out["update_expression"]
    assert out["expression_attribute_values"][":v0"] == Decimal("4.5")


def test_update_op_validation():
    with pytest.raises(StoreValidation):
        UpdateOp(kind="X", entity_id="1", increments={"n": 2}, ceilings={"n": "cap"}).validate()
    with pytest.raises(StoreValidation):
        UpdateOp(kind="X", entity_id="1", changes={"n": 1}, increments={"n": 1}).validate()
    with pytest.raises(StoreValidation):
        UpdateOp(kind="X", entity_id="1", changes={"id": "other"}).validate()
    with pytest.raises(StoreValidation):
        UpdateOp(kind="X", entity_id=" ").validate()


def test_decimal_round_trip():
    assert to_ddb({"a": 1.5, "b": [2.25], "c": True, "d": None}) == {
        "a": Decimal("1.5"),
        "b": [Decimal("2.25")],
        "c": True,
        "d": None,
    }
    assert from_ddb({"n": Decimal("3"), "f": Decimal("2.5"), "s": {Decimal("2"), Decimal("1")}}) == {
        "n": 3,
        "f": 2.5,
        "s": [1, 2],
    }


def test_create_without_unique_tokens_uses_conditional_put():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]

    out = store.create("Widget", {"id": "w1", "createdAt": "2030-01-01T00:00:00Z", "weight": 1.5})
    assert out["weight"] == 1.5

    name, call = table.calls[-1]
    assert name == "put_item"
    assert call["condition_expression"] == "attribute_not_exists(pk)"
    assert call["item"]["pk"] == "WIDGET#w1"
    assert call["item"]["gsi1pk"] == "KIND#Widget"
    assert call["item"]["gsi1sk"] == "2030-01-01T00:00:00Z#w1"
    assert call["item"]["weight"] == Decimal("1.5")

    got = store.get("Widget", "w1")
    assert got == {"id": "w1", "createdAt": "2030-01-01T00:00:00Z", "weight": 1.5}


def test_create_with_unique_tokens_is_transactional():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]

    store.create("Widget", {"id": "w1"}, unique=["widget:a:b"])
    name, call = table.calls[-1]
    assert name == "transact_write"
    pks = [p["Item"]["pk"] for p in call["puts"]]
    assert pks == ["WIDGET#w1", "UNIQUE#widget:a:b"]
    assert all(p["ConditionExpression"] == "attribute_not_exists(pk)" for p in call["puts"])

    table.fail_next = True
    with pytest.raises(StoreConflict):
        store.create("Widget", {"id": "w2"}, unique=["widget:a:b"])


def test_update_conflict_on_missing_item_is_not_found():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]

    table.fail_next = True
    with pytest.raises(StoreNotFound):
        store.update(UpdateOp(kind="Widget", entity_id="missing", changes={"a": 1}))

    store.create("Widget", {"id": "w1"})
    table.fail_next = True
    with pytest.raises(StoreConflict) as ei:
        store.update(UpdateOp(kind="Widget", entity_id="w1", changes={"a": 1}, expect={"status": "x"}))
    assert not isinstance(ei.value, StoreNotFound)


def test_update_passes_key_and_expressions():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]
    store.create("Widget", {"id": "w1"})

    out = store.update(UpdateOp(kind="Widget", entity_id="w1", changes={"a": 1}))
    assert out["updated"] is True
    name, call = table.calls[-1]
    assert name == "update_item"
    assert call["key"] == entity_key("Widget", "w1")
    assert call["update_expression"] == "SET #a0 = :v0"
    assert call["condition_expression"] == "attribute_exists(pk)"


def test_transact_builds_one_update_per_op():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]
    store.create("Application", {"id": "a1"})
    store.create("Opportunity", {"id": "o1"})

    store.transact(
        [
            UpdateOp(kind="Application", entity_id="a1", changes={"status": "confirmed"}, expect={"status": "approved"}),
            UpdateOp(
                kind="Opportunity",
                entity_id="o1",
                increments={"volunteersConfirmed": 1},
                ceilings={"volunteersConfirmed": "numberOfVolunteers"},
            ),
        ]
    )
    name, call = table.calls[-1]
    assert name == "transact_write"
    assert [u["Key"]["pk"] for u in call["updates"]] == ["APPLICATION#a1", "OPPORTUNITY#o1"]
    assert "< " in call["updates"][1]["condition_expression"]


def test_delete_releases_unique_tokens():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]
    store.create("Widget", {"id": "w1"}, unique=["widget:t"])

    store.delete("Widget", "w1", unique=["widget:t"])
    assert table.items == {}

    store.create("Widget", {"id": "w2"})
    store.delete("Widget", "w2")
    assert table.calls[-1][0] == "delete_item"


def test_list_filters_are_rechecked_locally():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]
    store.create("Widget", {"id": "w1", "status": "a", "createdAt": "1"})
    store.create("Widget", {"id": "w2", "status": "b", "createdAt": "2"})

    rows = store.list("Widget", {"status": "a"})
    assert [r["id"] for r in rows] == ["w1"]
    name, call = table.calls[-1]
    assert name == "query_all"
    assert call["index_name"] == "GSI1"
    assert call["filter_expression"] is not None


def test_guarded_create_conflict_names_the_tokens():
    table = FakeTable()
    store = DynamoEntityStore(table=table)  # type: ignore[arg-type]

    table.fail_next = True
    with pytest.raises(StoreConflict) as ei:
        store.create("Application", {"id": "app_1"}, unique=["application:opp_1:vol_1"])
    err = ei.value
    assert err.kind == "Application"
    assert err.entity_id == "app_1"
    assert err.unique_tokens == ("application:opp_1:vol_1",)
    assert err.http_status == 409
    assert err.problem_extensions()["uniqueTokens"] == ["application:opp_1:vol_1"]


def test_client_errors_are_classified_per_entity():
    from botocore.exceptions import ClientError

    from marketplace.db.dynamodb.retry import classify

    exc = ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException"}, "ResponseMetadata": {"RequestId": "req-1"}},
        "UpdateItem",
    )
    err = classify(exc, operation="UpdateItem", table_name="Fake", key=entity_key("Opportunity", "opp_1"))
    assert isinstance(err, StoreConflict)
    assert (err.kind, err.entity_id) == ("OPPORTUNITY", "opp_1")
    assert err.aws_request_id == "req-1"
    assert str(err) == "DynamoDB conditional check failed (OPPORTUNITY opp_1)"

    throttled = ClientError({"Error": {"Code": "ThrottlingException"}}, "Query")
    err = classify(throttled, operation="Query", table_name="Fake", key=None)
    assert err.retryable is True
    assert err.http_status == 503
    assert err.kind is None
