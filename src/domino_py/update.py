from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal

from .errors import ValidationError
from .expression import UPDATE_COUNTER_START, Rendered, merge_names
from .placeholders import generate_placeholder, path_ref

type UpdateAction = Literal["SET", "REMOVE", "ADD", "DELETE"]

ACTION_ORDER: tuple[UpdateAction, ...] = ("SET", "REMOVE", "ADD", "DELETE")

_KIND_ACTION: dict[str, UpdateAction] = {
    "set": "SET",
    "set_if_not_exists": "SET",
    "append": "SET",
    "prepend": "SET",
    "set_list_element": "SET",
    "set_map_entry": "SET",
    "remove": "REMOVE",
    "remove_list_element": "REMOVE",
    "remove_map_entry": "REMOVE",
    "add": "ADD",
    "delete": "DELETE",
}

_KIND_ARITY = {
    "remove": 0,
    "remove_list_element": 1,
    "remove_map_entry": 1,
    "set_list_element": 2,
    "set_map_entry": 2,
}


def _check_index(index: Any) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValidationError("list index must be a non-negative integer")


@dataclass(frozen=True)
class UpdateExpression:
    """One clause of an update expression.

    ``args`` holds the operands in order: the value for plain clauses, the
    index or key for element removals, and ``(index_or_key, value)`` for
    element assignment.
    """

    action: UpdateAction
    kind: str
    path: str
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        expected_action = _KIND_ACTION.get(self.kind)
        if expected_action is None:
            raise ValidationError(f"unsupported update operation: {self.kind}")
        if expected_action != self.action:
            raise ValidationError(f"{self.kind} is a {expected_action} operation, not {self.action}")

        expected = _KIND_ARITY.get(self.kind, 1)
        if len(self.args) != expected:
            raise ValidationError(f"{self.kind} requires {expected} argument(s), got {len(self.args)}")

        if self.kind in {"remove_list_element", "set_list_element"}:
            _check_index(self.args[0])
        if self.kind in {"remove_map_entry", "set_map_entry"} and not isinstance(self.args[0], str):
            raise ValidationError("map key must be a string")

    def render(self, counter: int) -> Rendered:
        path, names = path_ref(self.path, counter)
        kind = self.kind

        if kind == "remove":
            return Rendered(path, names, {}, counter)
        if kind == "remove_list_element":
            return Rendered(f"{path}[{self.args[0]}]", names, {}, counter)
        if kind in {"remove_map_entry", "set_map_entry"}:
            key_ref, key_names = path_ref(self.args[0], counter)
            merge_names(names, key_names)
            path = f"{path}.{key_ref}"
            if kind == "remove_map_entry":
                return Rendered(path, names, {}, counter)

        value = self.args[-1]
        ref = generate_placeholder(value, counter)
        values = {ref: value}
        counter += 1

        if kind == "set_if_not_exists":
            clause = f"{path} = if_not_exists({path},{ref})"
        elif kind == "append":
            clause = f"{path} = list_append({path},{ref})"
        elif kind == "prepend":
            clause = f"{path} = list_append({ref},{path})"
        elif kind == "set_list_element":
            clause = f"{path}[{self.args[0]}] = {ref}"
        elif self.action == "SET":
            clause = f"{path} = {ref}"
        else:
            clause = f"{path} {ref}"
        return Rendered(clause, names, values, counter)


def build_update_expression(
    expressions: Iterable[UpdateExpression],
    counter: int = UPDATE_COUNTER_START,
) -> Rendered:
    buckets: dict[UpdateAction, list[str]] = {action: [] for action in ACTION_ORDER}
    names: dict[str, str] = {}
    values: dict[str, Any] = {}

    for expr in expressions:
        rendered = expr.render(counter)
        buckets[expr.action].append(rendered.expression)
        merge_names(names, rendered.names)
        values.update(rendered.values)
        counter = rendered.counter

    parts = [f"{action} " + ", ".join(buckets[action]) for action in ACTION_ORDER if buckets[action]]
    if not parts:
        raise ValidationError("no updates provided")
    return Rendered(" ".join(parts), names, values, counter)
