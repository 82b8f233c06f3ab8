from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import ValidationError
from .placeholders import generate_placeholder, path_ref

KEY_CONDITION_COUNTER_START = 0
CONDITION_COUNTER_START = 1
UPDATE_COUNTER_START = 100

EQ = "="
NE = "<>"
LT = "<"
LE = "<="
GT = ">"
GE = ">="

COMPARISON_OPERATORS = frozenset({EQ, NE, LT, LE, GT, GE})
KEY_OPERATORS = frozenset({EQ, LT, LE, GT, GE, "between", "begins_with"})
MaxInValues = 100

_ARITY = {
    "between": 2,
    "begins_with": 1,
    "contains": 1,
    "size": 1,
    "exists": 0,
    "not_exists": 0,
}

type LogicalOp = Literal["AND", "OR"]


@dataclass(frozen=True)
class Rendered:
    expression: str
    names: Mapping[str, str] = field(default_factory=dict)
    values: Mapping[str, Any] = field(default_factory=dict)
    counter: int = 0


def merge_names(target: dict[str, str], names: Mapping[str, str]) -> None:
    for ref, name in names.items():
        existing = target.get(ref)
        if existing is not None and existing != name:
            raise ValidationError(f"expression attribute name collision: {ref}")
        target[ref] = name


def merge_values(target: dict[str, Any], values: Mapping[str, Any]) -> None:
    for ref, value in values.items():
        if ref in target:
            raise ValidationError(f"expression attribute value collision: {ref}")
        target[ref] = value


class Expression(ABC):
    @abstractmethod
    def construct(self, counter: int, top_level: bool) -> Rendered: ...

    def __and__(self, other: Expression) -> ExpressionGroup:
        if isinstance(self, ExpressionGroup) and self.op == "AND":
            return ExpressionGroup(expressions=(*self.expressions, other), op="AND")
        return and_(self, other)

    def __or__(self, other: Expression) -> ExpressionGroup:
        if isinstance(self, ExpressionGroup) and self.op == "OR":
            return ExpressionGroup(expressions=(*self.expressions, other), op="OR")
        return or_(self, other)

    def __invert__(self) -> Negation:
        return not_(self)

    def __str__(self) -> str:
        return self.construct(0, True).expression


@dataclass(frozen=True)
class Condition(Expression):
    path: str
    op: str
    args: tuple[Any, ...] = ()
    comparator: str | None = None

    def __post_init__(self) -> None:
        op = self.op
        if op in COMPARISON_OPERATORS:
            expected = 1
        elif op == "in":
            if not self.args:
                raise ValidationError("in requires at least one value")
            if len(self.args) > MaxInValues:
                raise ValidationError(f"in supports maximum {MaxInValues} values")
            expected = len(self.args)
        elif op in _ARITY:
            expected = _ARITY[op]
        else:
            raise ValidationError(f"unsupported condition operator: {op}")

        if len(self.args) != expected:
            raise ValidationError(f"{op} requires {expected} value(s), got {len(self.args)}")

        if op == "size":
            if self.comparator not in COMPARISON_OPERATORS:
                raise ValidationError(f"unsupported size comparator: {self.comparator}")
        elif self.comparator is not None:
            raise ValidationError(f"{op} does not take a comparator")

    def construct(self, counter: int, top_level: bool) -> Rendered:
        path, names = path_ref(self.path, counter)

        placeholders: list[str] = []
        values: dict[str, Any] = {}
        for arg in self.args:
            ref = generate_placeholder(arg, counter)
            placeholders.append(ref)
            values[ref] = arg
            counter += 1

        return Rendered(self._render(path, placeholders), names, values, counter)

    def _render(self, path: str, placeholders: list[str]) -> str:
        op = self.op
        if op in COMPARISON_OPERATORS:
            return f"{path} {op} {placeholders[0]}"
        if op == "between":
            return f"({path} between {placeholders[0]} and {placeholders[1]})"
        if op == "in":
            return f"({path} in ({','.join(placeholders)}))"
        if op == "begins_with":
            return f"begins_with({path},{placeholders[0]})"
        if op == "contains":
            return f"contains({path},{placeholders[0]})"
        if op == "size":
            return f"size({path}) {self.comparator} {placeholders[0]}"
        if op == "exists":
            return f"attribute_exists({path})"
        return f"attribute_not_exists({path})"


@dataclass(frozen=True)
class KeyCondition(Condition):
    def __post_init__(self) -> None:
        super().__post_init__()
        if self.op not in KEY_OPERATORS:
            raise ValidationError(f"operator not allowed in a key condition: {self.op}")


@dataclass(frozen=True)
class ExpressionGroup(Expression):
    expressions: tuple[Expression, ...]
    op: LogicalOp

    def construct(self, counter: int, top_level: bool) -> Rendered:
        parts: list[str] = []
        names: dict[str, str] = {}
        values: dict[str, Any] = {}

        for expr in self.expressions:
            rendered = expr.construct(counter, False)
            parts.append(rendered.expression)
            merge_names(names, rendered.names)
            values.update(rendered.values)
            counter = rendered.counter

        out = f" {self.op} ".join(parts)
        if not top_level and len(self.expressions) > 1:
            out = f"({out})"
        return Rendered(out, names, values, counter)


@dataclass(frozen=True)
class Negation(Expression):
    """``NOT`` over one expression; a multi-child group operand keeps its parentheses even at top level."""

    expression: Expression

    def construct(self, counter: int, top_level: bool) -> Rendered:
        inner_top_level = top_level
        # NOT binds tighter than AND/OR, so a compound operand keeps its parens.
        if isinstance(self.expression, ExpressionGroup) and len(self.expression.expressions) > 1:
            inner_top_level = False

        inner = self.expression.construct(counter, inner_top_level)
        out = "NOT " + inner.expression
        if not top_level:
            out = f"({out})"
        return Rendered(out, inner.names, inner.values, inner.counter)


def and_(*expressions: Expression) -> ExpressionGroup:
    if not expressions:
        raise ValidationError("and_ requires at least one expression")
    return ExpressionGroup(expressions=tuple(expressions), op="AND")


def or_(*expressions: Expression) -> ExpressionGroup:
    if not expressions:
        raise ValidationError("or_ requires at least one expression")
    return ExpressionGroup(expressions=tuple(expressions), op="OR")


def not_(expression: Expression) -> Negation:
    return Negation(expression=expression)


class AttributeMaps:
    """Accumulates several expression trees into one request.

    Each tree starts at ``max(offset, counter after the previous tree)`` so
    placeholder ranges of trees sharing a request never overlap.
    """

    def __init__(self) -> None:
        self.names: dict[str, str] = {}
        self.values: dict[str, Any] = {}
        self.counter = 0

    def start(self, offset: int) -> int:
        return max(offset, self.counter)

    def construct(self, expression: Expression, offset: int) -> str:
        rendered = expression.construct(self.start(offset), True)
        self.absorb(rendered)
        return rendered.expression

    def absorb_names(self, names: Mapping[str, str]) -> None:
        merge_names(self.names, names)

    def absorb(self, rendered: Rendered) -> None:
        merge_names(self.names, rendered.names)
        merge_values(self.values, rendered.values)
        self.counter = max(self.counter, rendered.counter)
