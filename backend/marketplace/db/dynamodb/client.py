from __future__ import annotations

from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from ...settings import settings


def _boto_kwargs() -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "region_name": settings.aws_region,
        # botocore keeps its own adaptive retries underneath ddb_call.
        "config": Config(retries={"max_attempts": 10, "mode": "adaptive"}, connect_timeout=2, read_timeout=10),
    }
    endpoint = str(settings.ddb_endpoint_url or "").strip()
    if endpoint:
        # DynamoDB Local for development.
        kwargs["endpoint_url"] = endpoint
    return kwargs


@lru_cache(maxsize=1)
def dynamodb_resource():
    return boto3.resource("dynamodb", **_boto_kwargs())


@lru_cache(maxsize=1)
def dynamodb_client():
    return boto3.client("dynamodb", **_boto_kwargs())


def table_resource(table_name: str):
    return dynamodb_resource().Table(table_name)
