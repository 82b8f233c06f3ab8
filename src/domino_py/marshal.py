from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict, is_dataclass
from decimal import Decimal, DecimalException
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .errors import SerializationError

type AttributeValue = dict[str, Any]
type Loader[T] = Callable[[dict[str, Any]], T]

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def normalize(value: Any) -> Any:
    """Convert a Python value into the shapes ``TypeSerializer`` accepts.

    Floats become ``Decimal`` through their shortest repr, tuples become lists
    and frozensets become sets, recursively.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, Mapping):
        return {k: normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {normalize(v) for v in value}
    return value


def serialize(value: Any) -> AttributeValue:
    try:
        return _serializer.serialize(normalize(value))
    except (TypeError, DecimalException) as err:
        raise SerializationError(value=value, reason=str(err) or type(err).__name__) from err


def deserialize(av: Mapping[str, Any]) -> Any:
    return _deserializer.deserialize(dict(av))


def marshal_values(values: Mapping[str, Any]) -> dict[str, AttributeValue]:
    return {ref: serialize(value) for ref, value in values.items()}


def item_to_mapping(item: Any) -> Mapping[str, Any]:
    to_value = getattr(item, "to_dynamodb_value", None)
    if callable(to_value):
        out = to_value()
        if not isinstance(out, Mapping):
            raise SerializationError(value=item, reason="to_dynamodb_value() must return a mapping")
        return out
    if is_dataclass(item) and not isinstance(item, type):
        return asdict(item)
    if isinstance(item, Mapping):
        return item
    raise SerializationError(value=item, reason="item must be a mapping or a dataclass instance")


def serialize_item(item: Any) -> dict[str, AttributeValue]:
    return {str(name): serialize(value) for name, value in item_to_mapping(item).items()}


def deserialize_item(item: Mapping[str, Any]) -> dict[str, Any]:
    return {name: deserialize(av) for name, av in item.items()}


def load_item[T](item: Mapping[str, Any], loader: Loader[T] | None = None) -> Any:
    out = deserialize_item(item)
    if loader is None:
        return out
    return loader(out)
