from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

import boto3
import pytest
from users_schema import new_users_table

from domino_py import DynamoTable


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    skip = pytest.mark.skip(reason="SKIP_INTEGRATION is set")
    for item in items:
        item.add_marker(pytest.mark.integration)
        if os.environ.get("SKIP_INTEGRATION"):
            item.add_marker(skip)


def _dynamodb_endpoint() -> str:
    return os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000")


@pytest.fixture(scope="session")
def client() -> Any:
    return boto3.client(
        "dynamodb",
        endpoint_url=_dynamodb_endpoint(),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


@pytest.fixture
def users(client: Any) -> Iterator[DynamoTable]:
    table = new_users_table()
    table.create_table().execute_with(client, poll_interval_seconds=0.1)
    try:
        yield table
    finally:
        table.delete_table().execute_with(client, wait_for_delete=False)
