from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import ValidationError
from .expression import KeyCondition
from .fields import KEY_STORAGE_TYPES, EmptyField, Field
from .marshal import AttributeValue, serialize
from .model import GlobalSecondaryIndex, KeyValue, LocalSecondaryIndex
from .operations import (
    BatchGetInput,
    BatchWriteInput,
    DeleteItemInput,
    GetItemInput,
    PutInput,
    QueryInput,
    ScanInput,
    UpdateInput,
)

if TYPE_CHECKING:
    from .schema import CreateTableInput, DeleteTableInput


@dataclass(frozen=True)
class DynamoTable:
    """Schema of one table and the entry point for building its requests."""

    name: str
    partition_key: Field
    range_key: Field = field(default_factory=EmptyField)
    global_secondary_indexes: tuple[GlobalSecondaryIndex, ...] = ()
    local_secondary_indexes: tuple[LocalSecondaryIndex, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("table name is required")
        if self.partition_key.empty or not self.partition_key.name:
            raise ValidationError("partition key is required")
        if self.partition_key.storage_type not in KEY_STORAGE_TYPES:
            raise ValidationError(f"key attribute must be S/N/B: {self.partition_key.name}")
        if not self.range_key.empty and self.range_key.storage_type not in KEY_STORAGE_TYPES:
            raise ValidationError(f"key attribute must be S/N/B: {self.range_key.name}")

    def key_names(self) -> frozenset[str]:
        if self.range_key.empty:
            return frozenset({self.partition_key.name})
        return frozenset({self.partition_key.name, self.range_key.name})

    def key(self, key: KeyValue) -> dict[str, AttributeValue]:
        if key.partition_key is None:
            raise ValidationError("partition key value is required")
        if self.range_key.empty and key.range_key is not None:
            raise ValidationError("table does not define a range key")
        if not self.range_key.empty and key.range_key is None:
            raise ValidationError("range key value is required")

        out = {self.partition_key.name: serialize(key.partition_key)}
        if not self.range_key.empty:
            out[self.range_key.name] = serialize(key.range_key)
        return out

    def check_item_key(self, item: Mapping[str, Any]) -> None:
        for name in sorted(self.key_names()):
            if name not in item:
                raise ValidationError(f"item is missing key attribute: {name}")

    def get_item(self, key: KeyValue) -> GetItemInput:
        return GetItemInput(self, key)

    def batch_get_item(self, *keys: KeyValue) -> BatchGetInput:
        return BatchGetInput(self, keys)

    def put_item(self, item: Any) -> PutInput:
        return PutInput(self, item)

    def batch_write_item(self) -> BatchWriteInput:
        return BatchWriteInput(self)

    def delete_item(self, key: KeyValue) -> DeleteItemInput:
        return DeleteItemInput(self, key)

    def update_item(self, key: KeyValue) -> UpdateInput:
        return UpdateInput(self, key)

    def query(self, partition_condition: KeyCondition, range_condition: KeyCondition | None = None) -> QueryInput:
        return QueryInput(self, partition_condition, range_condition)

    def scan(self) -> ScanInput:
        return ScanInput(self)

    def create_table(self) -> CreateTableInput:
        from .schema import CreateTableInput

        return CreateTableInput(self)

    def delete_table(self) -> DeleteTableInput:
        from .schema import DeleteTableInput

        return DeleteTableInput(self)
