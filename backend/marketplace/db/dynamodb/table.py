from __future__ import annotations

from typing import Any, Iterable

from boto3.dynamodb.types import TypeSerializer

from ..errors import StoreInternal
from .client import dynamodb_client, table_resource
from .retry import TRANSACTION_POLICY, ddb_call


_serializer = TypeSerializer()


def _wire(item: dict[str, Any]) -> dict[str, Any]:
    # Transactions go through the low-level client, which wants AttributeValue maps.
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _expr_kwargs(
    *,
    condition_expression: str | None = None,
    expression_attribute_names: dict[str, str] | None = None,
    expression_attribute_values: dict[str, Any] | None = None,
    wire: bool = False,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if condition_expression:
        out["ConditionExpression"] = condition_expression
    if expression_attribute_names:
        out["ExpressionAttributeNames"] = expression_attribute_names
    if expression_attribute_values:
        out["ExpressionAttributeValues"] = (
            _wire(expression_attribute_values) if wire else expression_attribute_values
        )
    return out


class DynamoTable:
    """The marketplace's single DynamoDB table.

    Item operations use the resource API (plain Python values); the
    `tx_*` builders return low-level client entries for `transact_write`.
    """

    def __init__(self, *, table_name: str):
        self.table_name = str(table_name)
        self._table = table_resource(self.table_name)
        self._client = dynamodb_client()

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        resp = ddb_call(
            "GetItem",
            lambda: self._table.get_item(Key=key, ConsistentRead=True),
            table_name=self.table_name,
            key=key,
        )
        return resp.get("Item")

    def put_item(self, *, item: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        kwargs = {"Item": item, **_expr_kwargs(condition_expression=condition_expression)}
        return ddb_call("PutItem", lambda: self._table.put_item(**kwargs), table_name=self.table_name)

    def delete_item(self, *, key: dict[str, Any]) -> dict[str, Any]:
        return ddb_call("DeleteItem", lambda: self._table.delete_item(Key=key), table_name=self.table_name, key=key)

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any] | None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        kwargs = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ReturnValues": "ALL_NEW",
            **_expr_kwargs(
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            ),
        }
        resp = ddb_call("UpdateItem", lambda: self._table.update_item(**kwargs), table_name=self.table_name, key=key)
        return resp.get("Attributes")

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        filter_expression: Any | None = None,
        max_items: int = 5000,
    ) -> list[dict[str, Any]]:
        """Follow LastEvaluatedKey until the partition is exhausted or `max_items` is hit."""
        base: dict[str, Any] = {"KeyConditionExpression": key_condition_expression, "Limit": 1000}
        if index_name:
            base["IndexName"] = index_name
        if filter_expression is not None:
            base["FilterExpression"] = filter_expression

        out: list[dict[str, Any]] = []
        start: dict[str, Any] | None = None
        while len(out) < max_items:
            kwargs = {**base, **({"ExclusiveStartKey": start} if start else {})}
            resp = ddb_call("Query", lambda: self._table.query(**kwargs), table_name=self.table_name)
            out.extend(resp.get("Items") or [])
            start = resp.get("LastEvaluatedKey") or None
            if not start:
                break
        return out[:max_items]

    def transact_write(
        self,
        *,
        puts: Iterable[dict[str, Any]] = (),
        deletes: Iterable[dict[str, Any]] = (),
        updates: Iterable[dict[str, Any]] = (),
    ) -> dict[str, Any]:
        items = (
            [{"Put": p} for p in puts]
            + [{"Delete": d} for d in deletes]
            + [{"Update": u} for u in updates]
        )
        if not items:
            return {}
        return ddb_call(
            "TransactWriteItems",
            lambda: self._client.transact_write_items(TransactItems=items),
            table_name=self.table_name,
            policy=TRANSACTION_POLICY,
        )

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        return {
            "TableName": self.table_name,
            "Item": _wire(item),
            **_expr_kwargs(condition_expression=condition_expression),
        }

    def tx_delete(self, *, key: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        return {
            "TableName": self.table_name,
            "Key": _wire(key),
            **_expr_kwargs(condition_expression=condition_expression),
        }

    def tx_update(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any] | None,
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        return {
            "TableName": self.table_name,
            "Key": _wire(key),
            "UpdateExpression": update_expression,
            **_expr_kwargs(
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
                wire=True,
            ),
        }


def get_main_table() -> DynamoTable:
    from ...settings import settings

    if not settings.ddb_table_name:
        raise StoreInternal(message="DDB_TABLE_NAME is not set", operation="Config")
    return DynamoTable(table_name=settings.ddb_table_name)
