from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .marshal import serialize_item
from .mocks import ANY, FakeDynamoDBClient, client_error


def no_sleep(_: float) -> None:
    return None


def page(
    items: Sequence[Mapping[str, Any]] = (),
    *,
    last_key: Mapping[str, Any] | None = None,
    consumed_capacity: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a query/scan response from plain Python items."""
    resp: dict[str, Any] = {"Items": [serialize_item(item) for item in items], "Count": len(items)}
    if last_key is not None:
        resp["LastEvaluatedKey"] = serialize_item(last_key)
    if consumed_capacity is not None:
        resp["ConsumedCapacity"] = dict(consumed_capacity)
    return resp


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "client_error",
    "no_sleep",
    "page",
]
