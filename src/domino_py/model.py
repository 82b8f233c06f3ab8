from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .fields import EmptyField, Field

ProjectionTypeAll = "ALL"
ProjectionTypeInclude = "INCLUDE"
ProjectionTypeKeysOnly = "KEYS_ONLY"

DefaultIndexReadUnits = 10
DefaultIndexWriteUnits = 10


@dataclass(frozen=True)
class Projection:
    type: str
    fields: tuple[Field, ...] = ()

    @staticmethod
    def all() -> Projection:
        return Projection(type=ProjectionTypeAll)

    @staticmethod
    def keys_only() -> Projection:
        return Projection(type=ProjectionTypeKeysOnly)

    @staticmethod
    def include(*fields: Field) -> Projection:
        return Projection(type=ProjectionTypeInclude, fields=tuple(fields))

    def to_request(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ProjectionType": self.type}
        if self.type == ProjectionTypeInclude and self.fields:
            out["NonKeyAttributes"] = [f.name for f in self.fields]
        return out


@dataclass(frozen=True)
class GlobalSecondaryIndex:
    name: str
    partition_key: Field
    range_key: Field = field(default_factory=EmptyField)
    projection: Projection = field(default_factory=Projection.all)
    read_units: int = DefaultIndexReadUnits
    write_units: int = DefaultIndexWriteUnits


@dataclass(frozen=True)
class LocalSecondaryIndex:
    name: str
    partition_key: Field
    sort_key: Field
    projection: Projection = field(default_factory=Projection.all)


@dataclass(frozen=True)
class KeyValue:
    partition_key: Any
    range_key: Any | None = None
