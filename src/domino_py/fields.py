from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar

from .errors import ValidationError
from .expression import COMPARISON_OPERATORS, EQ, GE, GT, LE, LT, NE, Condition, KeyCondition
from .update import UpdateExpression

type Number = int | float | Decimal

KEY_STORAGE_TYPES = frozenset({"S", "N", "B"})


def _normalize_set(values: Any) -> set[Any]:
    if isinstance(values, (set, frozenset)):
        out = set(values)
    elif isinstance(values, (str, bytes, bytearray)):
        out = {values}
    elif isinstance(values, Iterable):
        out = set(values)
    else:
        out = {values}
    if not out:
        raise ValidationError("set operations require at least one value")
    return out


@dataclass(frozen=True)
class Field:
    name: str

    storage_type: ClassVar[str] = ""
    empty: ClassVar[bool] = False

    def _condition(self, op: str, *args: Any) -> Condition:
        return Condition(path=self.name, op=op, args=args)

    def _key_condition(self, op: str, *args: Any) -> KeyCondition:
        return KeyCondition(path=self.name, op=op, args=args)

    def equals(self, value: Any) -> KeyCondition:
        return self._key_condition(EQ, value)

    def not_equals(self, value: Any) -> Condition:
        return self._condition(NE, value)

    def less_than(self, value: Any) -> KeyCondition:
        return self._key_condition(LT, value)

    def less_than_or_eq(self, value: Any) -> KeyCondition:
        return self._key_condition(LE, value)

    def greater_than(self, value: Any) -> KeyCondition:
        return self._key_condition(GT, value)

    def greater_than_or_eq(self, value: Any) -> KeyCondition:
        return self._key_condition(GE, value)

    def between(self, low: Any, high: Any) -> KeyCondition:
        return self._key_condition("between", low, high)

    def in_(self, *values: Any) -> Condition:
        return self._condition("in", *values)

    def exists(self) -> Condition:
        return self._condition("exists")

    def not_exists(self) -> Condition:
        return self._condition("not_exists")

    def set_field(self, value: Any, only_if_absent: bool = False) -> UpdateExpression:
        kind = "set_if_not_exists" if only_if_absent else "set"
        return UpdateExpression(action="SET", kind=kind, path=self.name, args=(value,))

    def remove_field(self) -> UpdateExpression:
        return UpdateExpression(action="REMOVE", kind="remove", path=self.name)


class _SizedField(Field):
    def contains(self, value: Any) -> Condition:
        return self._condition("contains", value)

    def size(self, op: str, value: int) -> Condition:
        if op not in COMPARISON_OPERATORS:
            raise ValidationError(f"unsupported size comparator: {op}")
        return Condition(path=self.name, op="size", args=(value,), comparator=op)


@dataclass(frozen=True)
class StringField(_SizedField):
    storage_type: ClassVar[str] = "S"

    def begins_with(self, prefix: str) -> KeyCondition:
        return self._key_condition("begins_with", prefix)


@dataclass(frozen=True)
class NumericField(Field):
    storage_type: ClassVar[str] = "N"

    def add(self, amount: Number) -> UpdateExpression:
        return UpdateExpression(action="ADD", kind="add", path=self.name, args=(amount,))

    def increment(self, by: Number = 1) -> UpdateExpression:
        return self.add(by)

    def decrement(self, by: Number = 1) -> UpdateExpression:
        return self.add(-by)


@dataclass(frozen=True)
class BinaryField(Field):
    storage_type: ClassVar[str] = "B"


@dataclass(frozen=True)
class BoolField(Field):
    storage_type: ClassVar[str] = "BOOL"


@dataclass(frozen=True)
class ListField(_SizedField):
    storage_type: ClassVar[str] = "L"

    def append(self, value: Any) -> UpdateExpression:
        return UpdateExpression(action="SET", kind="append", path=self.name, args=([value],))

    def prepend(self, value: Any) -> UpdateExpression:
        return UpdateExpression(action="SET", kind="prepend", path=self.name, args=([value],))

    def set(self, index: int, value: Any) -> UpdateExpression:
        return UpdateExpression(action="SET", kind="set_list_element", path=self.name, args=(index, value))

    def remove(self, index: int) -> UpdateExpression:
        return UpdateExpression(action="REMOVE", kind="remove_list_element", path=self.name, args=(index,))


@dataclass(frozen=True)
class MapField(Field):
    storage_type: ClassVar[str] = "M"

    def set(self, key: str, value: Any) -> UpdateExpression:
        return UpdateExpression(action="SET", kind="set_map_entry", path=self.name, args=(key, value))

    def remove(self, key: str) -> UpdateExpression:
        return UpdateExpression(action="REMOVE", kind="remove_map_entry", path=self.name, args=(key,))


class _SetField(_SizedField):
    def add(self, values: Any) -> UpdateExpression:
        return UpdateExpression(action="ADD", kind="add", path=self.name, args=(_normalize_set(values),))

    def delete(self, values: Any) -> UpdateExpression:
        return UpdateExpression(action="DELETE", kind="delete", path=self.name, args=(_normalize_set(values),))


@dataclass(frozen=True)
class StringSetField(_SetField):
    storage_type: ClassVar[str] = "SS"

    def add_string(self, value: str) -> UpdateExpression:
        return self.add({value})

    def delete_string(self, value: str) -> UpdateExpression:
        return self.delete({value})


@dataclass(frozen=True)
class NumericSetField(_SetField):
    storage_type: ClassVar[str] = "NS"

    def add_integer(self, value: int) -> UpdateExpression:
        return self.add({value})

    def add_float(self, value: float) -> UpdateExpression:
        return self.add({value})

    def delete_integer(self, value: int) -> UpdateExpression:
        return self.delete({value})

    def delete_float(self, value: float) -> UpdateExpression:
        return self.delete({value})


@dataclass(frozen=True)
class BinarySetField(_SetField):
    storage_type: ClassVar[str] = "BS"

    def add_binary(self, value: bytes) -> UpdateExpression:
        return self.add({value})

    def delete_binary(self, value: bytes) -> UpdateExpression:
        return self.delete({value})


@dataclass(frozen=True)
class EmptyField(Field):
    """Placeholder for an absent sort key."""

    name: str = ""

    storage_type: ClassVar[str] = "NULL"
    empty: ClassVar[bool] = True
