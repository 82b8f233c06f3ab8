from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Self

from botocore.exceptions import ClientError

from .aws_errors import map_client_error as _map_client_error
from .client import get_dynamodb_client
from .cursor import Cursor, Page, SortDirection, decode_cursor, encode_cursor
from .errors import BatchRetryExceededError, ValidationError
from .expression import (
    CONDITION_COUNTER_START,
    EQ,
    KEY_CONDITION_COUNTER_START,
    UPDATE_COUNTER_START,
    AttributeMaps,
    Expression,
    KeyCondition,
    and_,
)
from .fields import Field
from .marshal import Loader, load_item, marshal_values, serialize_item
from .model import GlobalSecondaryIndex, KeyValue, LocalSecondaryIndex
from .placeholders import path_ref
from .update import UpdateExpression, build_update_expression

if TYPE_CHECKING:
    from .table import DynamoTable

logger = logging.getLogger(__name__)

MaxBatchGetKeys = 100
MaxBatchWriteItems = 25
DefaultMaxRetries = 5

type CapacityHandler = Callable[[Mapping[str, Any] | None], None]


def _backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


def _chunked[T](items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _call(client: Any | None, operation: str, req: Mapping[str, Any]) -> Mapping[str, Any]:
    if client is None:
        client = get_dynamodb_client()
    try:
        return getattr(client, operation)(**req)
    except ClientError as err:
        raise _map_client_error(err) from err


def _attach_expressions(req: dict[str, Any], maps: AttributeMaps) -> None:
    if maps.names:
        req["ExpressionAttributeNames"] = dict(maps.names)
    if maps.values:
        req["ExpressionAttributeValues"] = marshal_values(maps.values)


def _projection_expression(fields: Sequence[Field], maps: AttributeMaps) -> str:
    refs: list[str] = []
    for f in fields:
        ref, names = path_ref(f.name, 0)
        maps.absorb_names(names)
        refs.append(ref)
    return ", ".join(refs)


def _check_retries(max_retries: int) -> None:
    if max_retries < 0:
        raise ValidationError("max_retries must be >= 0")


class _ReturnValues:
    _return_values: str | None = None

    def return_all_old(self) -> Self:
        self._return_values = "ALL_OLD"
        return self

    def return_none(self) -> Self:
        self._return_values = "NONE"
        return self


class GetItemInput:
    def __init__(self, table: DynamoTable, key: KeyValue) -> None:
        self._table = table
        self._key = key
        self._consistent_read: bool | None = None
        self._projection: tuple[Field, ...] = ()

    def set_consistent_read(self, consistent: bool = True) -> GetItemInput:
        self._consistent_read = consistent
        return self

    def set_projection(self, *fields: Field) -> GetItemInput:
        self._projection = tuple(fields)
        return self

    def build(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._table.name, "Key": self._table.key(self._key)}
        if self._consistent_read is not None:
            req["ConsistentRead"] = self._consistent_read
        if self._projection:
            maps = AttributeMaps()
            req["ProjectionExpression"] = _projection_expression(self._projection, maps)
            _attach_expressions(req, maps)
        return req

    def execute_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> Any:
        resp = _call(client, "get_item", self.build())
        item = resp.get("Item")
        if not item:
            return None
        return load_item(item, loader)


class BatchGetInput:
    def __init__(self, table: DynamoTable, keys: Sequence[KeyValue]) -> None:
        self._table = table
        self._keys = tuple(keys)
        self._consistent_read: bool | None = None
        self._projection: tuple[Field, ...] = ()

    def set_consistent_read(self, consistent: bool = True) -> BatchGetInput:
        self._consistent_read = consistent
        return self

    def set_projection(self, *fields: Field) -> BatchGetInput:
        self._projection = tuple(fields)
        return self

    def _base_request(self) -> dict[str, Any]:
        base: dict[str, Any] = {}
        if self._consistent_read is not None:
            base["ConsistentRead"] = self._consistent_read
        if self._projection:
            maps = AttributeMaps()
            base["ProjectionExpression"] = _projection_expression(self._projection, maps)
            _attach_expressions(base, maps)
        return base

    def build(self) -> list[dict[str, Any]]:
        """One ``BatchGetItem`` request per chunk of at most 100 keys."""
        base = self._base_request()
        keys = [self._table.key(k) for k in self._keys]
        return [
            {"RequestItems": {self._table.name: dict(base, Keys=list(chunk))}}
            for chunk in _chunked(keys, MaxBatchGetKeys)
        ]

    def execute_with[T](
        self,
        client: Any | None = None,
        loader: Loader[T] | None = None,
        *,
        max_retries: int = DefaultMaxRetries,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> list[Any]:
        _check_retries(max_retries)
        table_name = self._table.name
        out: list[Any] = []

        for req in self.build():
            pending = req["RequestItems"][table_name]
            attempts = 0

            while pending:
                resp = _call(client, "batch_get_item", {"RequestItems": {table_name: pending}})
                for item in resp.get("Responses", {}).get(table_name, []):
                    out.append(load_item(item, loader))

                unprocessed = resp.get("UnprocessedKeys", {}).get(table_name) or {}
                if not unprocessed.get("Keys"):
                    break
                if attempts >= max_retries:
                    raise BatchRetryExceededError(
                        operation="batch_get_item", unprocessed_count=len(unprocessed["Keys"])
                    )
                attempts += 1
                logger.warning(
                    "batch_get_item %s: retrying %d unprocessed keys (attempt %d)",
                    table_name,
                    len(unprocessed["Keys"]),
                    attempts,
                )
                if sleep is not None:
                    sleep(_backoff_seconds(attempts))
                pending = dict(pending, Keys=unprocessed["Keys"])

        return out


class PutInput(_ReturnValues):
    def __init__(self, table: DynamoTable, item: Any) -> None:
        self._table = table
        self._item = item
        self._condition: Expression | None = None

    def set_condition_expression(self, condition: Expression) -> PutInput:
        self._condition = condition
        return self

    def build(self) -> dict[str, Any]:
        item = serialize_item(self._item)
        self._table.check_item_key(item)

        req: dict[str, Any] = {"TableName": self._table.name, "Item": item}
        if self._condition is not None:
            maps = AttributeMaps()
            req["ConditionExpression"] = maps.construct(self._condition, CONDITION_COUNTER_START)
            _attach_expressions(req, maps)
        if self._return_values is not None:
            req["ReturnValues"] = self._return_values
        return req

    def execute_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> Any:
        req = self.build()
        logger.debug("put_item %s", self._table.name)
        resp = _call(client, "put_item", req)
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return load_item(attrs, loader)


class BatchWriteInput:
    def __init__(self, table: DynamoTable) -> None:
        self._table = table
        self._puts: list[Any] = []
        self._deletes: list[KeyValue] = []

    def put_items(self, *items: Any) -> BatchWriteInput:
        self._puts.extend(items)
        return self

    def delete_items(self, *keys: KeyValue) -> BatchWriteInput:
        self._deletes.extend(keys)
        return self

    def build(self) -> list[dict[str, Any]]:
        """One ``BatchWriteItem`` request per chunk of at most 25 writes."""
        writes: list[dict[str, Any]] = []
        for item in self._puts:
            av = serialize_item(item)
            self._table.check_item_key(av)
            writes.append({"PutRequest": {"Item": av}})
        for key in self._deletes:
            writes.append({"DeleteRequest": {"Key": self._table.key(key)}})

        return [
            {"RequestItems": {self._table.name: list(chunk)}} for chunk in _chunked(writes, MaxBatchWriteItems)
        ]

    def execute_with(
        self,
        client: Any | None = None,
        *,
        max_retries: int = DefaultMaxRetries,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> None:
        _check_retries(max_retries)
        table_name = self._table.name

        for req in self.build():
            pending = req["RequestItems"][table_name]
            attempts = 0

            while pending:
                resp = _call(client, "batch_write_item", {"RequestItems": {table_name: pending}})
                pending = resp.get("UnprocessedItems", {}).get(table_name) or []
                if not pending:
                    break
                if attempts >= max_retries:
                    raise BatchRetryExceededError(operation="batch_write_item", unprocessed_count=len(pending))
                attempts += 1
                logger.warning(
                    "batch_write_item %s: retrying %d unprocessed items (attempt %d)",
                    table_name,
                    len(pending),
                    attempts,
                )
                if sleep is not None:
                    sleep(_backoff_seconds(attempts))


class DeleteItemInput(_ReturnValues):
    def __init__(self, table: DynamoTable, key: KeyValue) -> None:
        self._table = table
        self._key = key
        self._condition: Expression | None = None

    def set_condition_expression(self, condition: Expression) -> DeleteItemInput:
        self._condition = condition
        return self

    def build(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._table.name, "Key": self._table.key(self._key)}
        if self._condition is not None:
            maps = AttributeMaps()
            req["ConditionExpression"] = maps.construct(self._condition, CONDITION_COUNTER_START)
            _attach_expressions(req, maps)
        if self._return_values is not None:
            req["ReturnValues"] = self._return_values
        return req

    def execute_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> Any:
        resp = _call(client, "delete_item", self.build())
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return load_item(attrs, loader)


class UpdateInput(_ReturnValues):
    def __init__(self, table: DynamoTable, key: KeyValue) -> None:
        self._table = table
        self._key = key
        self._updates: tuple[UpdateExpression, ...] = ()
        self._condition: Expression | None = None

    def return_all_new(self) -> UpdateInput:
        self._return_values = "ALL_NEW"
        return self

    def return_updated_new(self) -> UpdateInput:
        self._return_values = "UPDATED_NEW"
        return self

    def return_updated_old(self) -> UpdateInput:
        self._return_values = "UPDATED_OLD"
        return self

    def set_update_expression(self, *updates: UpdateExpression) -> UpdateInput:
        key_names = self._table.key_names()
        for update in updates:
            if update.path in key_names:
                raise ValidationError(f"cannot update key field: {update.path}")
        self._updates = tuple(updates)
        return self

    def set_condition_expression(self, condition: Expression) -> UpdateInput:
        self._condition = condition
        return self

    def build(self) -> dict[str, Any]:
        if not self._updates:
            raise ValidationError("no updates provided")

        maps = AttributeMaps()
        req: dict[str, Any] = {"TableName": self._table.name, "Key": self._table.key(self._key)}
        if self._condition is not None:
            req["ConditionExpression"] = maps.construct(self._condition, CONDITION_COUNTER_START)

        rendered = build_update_expression(self._updates, maps.start(UPDATE_COUNTER_START))
        maps.absorb(rendered)
        req["UpdateExpression"] = rendered.expression

        _attach_expressions(req, maps)
        if self._return_values is not None:
            req["ReturnValues"] = self._return_values
        return req

    def execute_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> Any:
        req = self.build()
        logger.debug("update_item %s: %s", self._table.name, req["UpdateExpression"])
        resp = _call(client, "update_item", req)
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return load_item(attrs, loader)


class _ReadInput(ABC):
    _operation = ""

    def __init__(self, table: DynamoTable) -> None:
        self._table = table
        self._consistent_read: bool | None = None
        self._projection: tuple[Field, ...] = ()
        self._limit: int | None = None
        self._page_size: int | None = None
        self._filter: Expression | None = None
        self._index_name: str | None = None
        self._cursor: Cursor | None = None
        self._capacity_handlers: list[CapacityHandler] = []

    def set_consistent_read(self, consistent: bool = True) -> Self:
        self._consistent_read = consistent
        return self

    def set_projection(self, *fields: Field) -> Self:
        self._projection = tuple(fields)
        return self

    def set_limit(self, limit: int) -> Self:
        """Cap the total number of items returned across all pages."""
        if limit <= 0:
            raise ValidationError("limit must be > 0")
        self._limit = limit
        return self

    def set_page_size(self, page_size: int) -> Self:
        if page_size <= 0:
            raise ValidationError("page_size must be > 0")
        self._page_size = page_size
        return self

    def set_filter_expression(self, condition: Expression) -> Self:
        self._filter = condition
        return self

    def set_local_index(self, index: LocalSecondaryIndex) -> Self:
        self._index_name = index.name
        return self

    def set_global_index(self, index: GlobalSecondaryIndex) -> Self:
        self._index_name = index.name
        return self

    def set_cursor(self, cursor: str) -> Self:
        try:
            self._cursor = decode_cursor(cursor)
        except ValueError as err:
            raise ValidationError(f"invalid cursor: {err}") from err
        return self

    def with_consumed_capacity_handler(self, handler: CapacityHandler) -> Self:
        self._capacity_handlers.append(handler)
        return self

    def _sort(self) -> SortDirection | None:
        return None

    def _build_into(self, req: dict[str, Any], maps: AttributeMaps) -> None:
        if self._filter is not None:
            req["FilterExpression"] = maps.construct(self._filter, CONDITION_COUNTER_START)
        if self._projection:
            req["ProjectionExpression"] = _projection_expression(self._projection, maps)
        _attach_expressions(req, maps)

        if self._index_name is not None:
            req["IndexName"] = self._index_name
        if self._consistent_read is not None:
            req["ConsistentRead"] = self._consistent_read
        sizes = [n for n in (self._page_size, self._limit) if n is not None]
        if sizes:
            # Limit never exceeds the total item cap.
            req["Limit"] = min(sizes)
        if self._capacity_handlers:
            req["ReturnConsumedCapacity"] = "INDEXES"
        if self._cursor is not None:
            if self._cursor.index != self._index_name:
                raise ValidationError("cursor index does not match request")
            if self._cursor.sort is not None and self._cursor.sort != self._sort():
                raise ValidationError("cursor sort does not match request")
            req["ExclusiveStartKey"] = self._cursor.last_key

    @abstractmethod
    def build(self) -> dict[str, Any]: ...

    def pages(self, client: Any | None = None) -> Iterator[Mapping[str, Any]]:
        """Yield raw responses, following ``LastEvaluatedKey`` until exhausted."""
        if client is None:
            client = get_dynamodb_client()
        req = self.build()
        page = 0
        while True:
            page += 1
            logger.debug("%s %s: fetching page %d", self._operation, self._table.name, page)
            resp = _call(client, self._operation, req)
            for handler in self._capacity_handlers:
                handler(resp.get("ConsumedCapacity"))
            yield resp

            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return
            req = dict(req, ExclusiveStartKey=last_key)

    def stream_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> Iterator[Any]:
        count = 0
        for resp in self.pages(client):
            for item in resp.get("Items", []):
                if self._limit is not None and count >= self._limit:
                    return
                count += 1
                yield load_item(item, loader)
            if self._limit is not None and count >= self._limit:
                return

    def execute_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> list[Any]:
        return list(self.stream_with(client, loader))

    def page_with[T](self, client: Any | None = None, loader: Loader[T] | None = None) -> Page[Any]:
        """Fetch a single page and return it with a cursor for the next one."""
        resp = _call(client, self._operation, self.build())
        for handler in self._capacity_handlers:
            handler(resp.get("ConsumedCapacity"))

        items = [load_item(item, loader) for item in resp.get("Items", [])]
        cursor = encode_cursor(resp.get("LastEvaluatedKey"), index=self._index_name, sort=self._sort())
        return Page(items=items, next_cursor=cursor or None)


class QueryInput(_ReadInput):
    _operation = "query"

    def __init__(
        self,
        table: DynamoTable,
        partition_condition: KeyCondition,
        range_condition: KeyCondition | None = None,
    ) -> None:
        super().__init__(table)
        if not isinstance(partition_condition, KeyCondition) or partition_condition.op != EQ:
            raise ValidationError("partition key condition must be an equality")
        if range_condition is not None and not isinstance(range_condition, KeyCondition):
            raise ValidationError("range key condition must be a key condition")
        self._key_condition: Expression = (
            partition_condition if range_condition is None else and_(partition_condition, range_condition)
        )
        self._scan_forward: bool | None = None

    def set_scan_forward(self, forward: bool) -> QueryInput:
        self._scan_forward = forward
        return self

    def _sort(self) -> SortDirection | None:
        return "DESC" if self._scan_forward is False else "ASC"

    def build(self) -> dict[str, Any]:
        maps = AttributeMaps()
        req: dict[str, Any] = {
            "TableName": self._table.name,
            "KeyConditionExpression": maps.construct(self._key_condition, KEY_CONDITION_COUNTER_START),
        }
        self._build_into(req, maps)
        if self._scan_forward is not None:
            req["ScanIndexForward"] = self._scan_forward
        return req


class ScanInput(_ReadInput):
    _operation = "scan"

    def __init__(self, table: DynamoTable) -> None:
        super().__init__(table)
        self._segment: tuple[int, int] | None = None

    def set_segment(self, segment: int, total_segments: int) -> ScanInput:
        if total_segments <= 0:
            raise ValidationError("total_segments must be > 0")
        if segment < 0 or segment >= total_segments:
            raise ValidationError("segment must be in [0, total_segments)")
        self._segment = (segment, total_segments)
        return self

    def build(self) -> dict[str, Any]:
        maps = AttributeMaps()
        req: dict[str, Any] = {"TableName": self._table.name}
        self._build_into(req, maps)
        if self._segment is not None:
            req["Segment"], req["TotalSegments"] = self._segment
        return req
