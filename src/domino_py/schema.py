from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError

from .aws_errors import error_code, map_client_error
from .client import get_dynamodb_client
from .errors import ValidationError
from .fields import KEY_STORAGE_TYPES, Field

if TYPE_CHECKING:
    from .table import DynamoTable

logger = logging.getLogger(__name__)

BillingMode = str  # "PAY_PER_REQUEST" | "PROVISIONED"


def _key_schema(partition: Field, sort: Field) -> list[dict[str, str]]:
    out = [{"AttributeName": partition.name, "KeyType": "HASH"}]
    if not sort.empty:
        out.append({"AttributeName": sort.name, "KeyType": "RANGE"})
    return out


def _define(attr_types: dict[str, str], key: Field) -> None:
    if key.empty:
        return
    if key.storage_type not in KEY_STORAGE_TYPES:
        raise ValidationError(f"key attribute must be S/N/B: {key.name} (got {key.storage_type})")
    existing = attr_types.get(key.name)
    if existing is not None and existing != key.storage_type:
        raise ValidationError(f"conflicting attribute types for {key.name}: {existing} and {key.storage_type}")
    attr_types[key.name] = key.storage_type


def build_create_table_request(
    table: DynamoTable,
    *,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
) -> dict[str, Any]:
    billing_mode = (billing_mode or "PAY_PER_REQUEST").strip() or "PAY_PER_REQUEST"
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")

    provisioned = billing_mode == "PROVISIONED"
    if provisioned and provisioned_throughput is None:
        raise ValidationError("provisioned_throughput is required when billing_mode=PROVISIONED")

    attr_types: dict[str, str] = {}
    _define(attr_types, table.partition_key)
    _define(attr_types, table.range_key)

    gsis: list[dict[str, Any]] = []
    for gsi in table.global_secondary_indexes:
        _define(attr_types, gsi.partition_key)
        _define(attr_types, gsi.range_key)
        entry: dict[str, Any] = {
            "IndexName": gsi.name,
            "KeySchema": _key_schema(gsi.partition_key, gsi.range_key),
            "Projection": gsi.projection.to_request(),
        }
        if provisioned:
            entry["ProvisionedThroughput"] = {
                "ReadCapacityUnits": gsi.read_units,
                "WriteCapacityUnits": gsi.write_units,
            }
        gsis.append(entry)

    lsis: list[dict[str, Any]] = []
    for lsi in table.local_secondary_indexes:
        if lsi.partition_key.name != table.partition_key.name:
            raise ValidationError(f"LSI partition key must match table partition key: {lsi.name}")
        _define(attr_types, lsi.sort_key)
        lsis.append(
            {
                "IndexName": lsi.name,
                "KeySchema": _key_schema(lsi.partition_key, lsi.sort_key),
                "Projection": lsi.projection.to_request(),
            }
        )

    req: dict[str, Any] = {
        "TableName": table.name,
        "BillingMode": billing_mode,
        "KeySchema": _key_schema(table.partition_key, table.range_key),
        "AttributeDefinitions": [
            {"AttributeName": name, "AttributeType": attr_types[name]} for name in sorted(attr_types)
        ],
    }
    if provisioned_throughput is not None and provisioned:
        req["ProvisionedThroughput"] = dict(provisioned_throughput)
    if gsis:
        req["GlobalSecondaryIndexes"] = gsis
    if lsis:
        req["LocalSecondaryIndexes"] = lsis
    return req


def create_table(
    table: DynamoTable,
    *,
    client: Any | None = None,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_for_active: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    client = client or get_dynamodb_client()
    req = build_create_table_request(
        table,
        billing_mode=billing_mode,
        provisioned_throughput=provisioned_throughput,
    )

    try:
        client.create_table(**req)
        logger.info("created table %s", table.name)
    except ClientError as err:
        if error_code(err) != "ResourceInUseException":
            raise map_client_error(err) from err
        logger.debug("table %s already exists", table.name)

    if wait_for_active:
        _wait_for_table_active(
            client,
            table.name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


def ensure_table(
    table: DynamoTable,
    *,
    client: Any | None = None,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_for_active: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    client = client or get_dynamodb_client()

    try:
        client.describe_table(TableName=table.name)
    except ClientError as err:
        if error_code(err) != "ResourceNotFoundException":
            raise map_client_error(err) from err
        create_table(
            table,
            client=client,
            billing_mode=billing_mode,
            provisioned_throughput=provisioned_throughput,
            wait_for_active=wait_for_active,
            wait_timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )
        return

    if wait_for_active:
        _wait_for_table_active(
            client,
            table.name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


def delete_table(
    table: DynamoTable,
    *,
    client: Any | None = None,
    wait_for_delete: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    ignore_missing: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    client = client or get_dynamodb_client()

    try:
        client.delete_table(TableName=table.name)
        logger.info("deleted table %s", table.name)
    except ClientError as err:
        if ignore_missing and error_code(err) == "ResourceNotFoundException":
            return
        raise map_client_error(err) from err

    if wait_for_delete:
        _wait_for_table_deleted(
            client,
            table.name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


def describe_table(table: DynamoTable, *, client: Any | None = None) -> dict[str, Any]:
    client = client or get_dynamodb_client()
    try:
        return dict(client.describe_table(TableName=table.name))
    except ClientError as err:
        raise map_client_error(err) from err


class CreateTableInput:
    def __init__(self, table: DynamoTable) -> None:
        self._table = table
        self._billing_mode: BillingMode = "PAY_PER_REQUEST"
        self._throughput: dict[str, int] | None = None

    def set_provisioned_throughput(self, read_units: int, write_units: int) -> CreateTableInput:
        self._billing_mode = "PROVISIONED"
        self._throughput = {"ReadCapacityUnits": read_units, "WriteCapacityUnits": write_units}
        return self

    def build(self) -> dict[str, Any]:
        return build_create_table_request(
            self._table,
            billing_mode=self._billing_mode,
            provisioned_throughput=self._throughput,
        )

    def execute_with(self, client: Any | None = None, **wait: Any) -> None:
        create_table(
            self._table,
            client=client,
            billing_mode=self._billing_mode,
            provisioned_throughput=self._throughput,
            **wait,
        )


class DeleteTableInput:
    def __init__(self, table: DynamoTable) -> None:
        self._table = table

    def build(self) -> dict[str, Any]:
        return {"TableName": self._table.name}

    def execute_with(self, client: Any | None = None, **wait: Any) -> None:
        delete_table(self._table, client=client, **wait)


def _wait_for_table_active(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            resp = client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) != "ResourceNotFoundException":
                raise map_client_error(err) from err
            resp = {}

        if str(resp.get("Table", {}).get("TableStatus", "")) == "ACTIVE":
            return
        sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table ACTIVE: {table_name}")


def _wait_for_table_deleted(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float,
    poll_interval_seconds: float,
    sleep: Callable[[float], None],
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) == "ResourceNotFoundException":
                return
            raise map_client_error(err) from err
        sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table deletion: {table_name}")
