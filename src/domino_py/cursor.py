from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

type SortDirection = Literal["ASC", "DESC"]


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    index: str | None = None
    sort: SortDirection | None = None


def _b64(raw: bytes) -> str:
    return base64.b64encode(bytes(raw)).decode("ascii")


def _unb64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as err:
        raise ValueError(f"invalid base64 binary value: {err}") from err


def _transform(av: Any, binary: Callable[[Any], Any], binary_type: type | tuple[type, ...]) -> dict[str, Any]:
    if not isinstance(av, dict) or len(av) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((kind, value),) = av.items()

    if kind in {"S", "N"}:
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}
    if kind == "BOOL":
        if not isinstance(value, bool):
            raise ValueError("BOOL value must be a boolean")
        return {kind: value}
    if kind == "NULL":
        if value is not True:
            raise ValueError("NULL value must be true")
        return {kind: True}
    if kind == "B":
        if not isinstance(value, binary_type):
            raise ValueError("B value has the wrong type")
        return {kind: binary(value)}
    if kind in {"SS", "NS"}:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError(f"{kind} value must be a list of strings")
        return {kind: list(value)}
    if kind == "BS":
        if not isinstance(value, list) or not all(isinstance(v, binary_type) for v in value):
            raise ValueError("BS value has the wrong element type")
        return {kind: [binary(v) for v in value]}
    if kind == "L":
        if not isinstance(value, list):
            raise ValueError("L value must be a list")
        return {kind: [_transform(v, binary, binary_type) for v in value]}
    if kind == "M":
        if not isinstance(value, dict):
            raise ValueError("M value must be a map")
        return {kind: {str(k): _transform(value[k], binary, binary_type) for k in sorted(value)}}

    raise ValueError(f"unsupported attribute value type: {kind}")


def encode_cursor(
    last_key: dict[str, Any] | None,
    *,
    index: str | None = None,
    sort: SortDirection | None = None,
) -> str:
    """Encode a ``LastEvaluatedKey`` as an opaque URL-safe token.

    An empty or missing key means there are no further pages and encodes to
    the empty string.
    """
    if not last_key:
        return ""
    if not isinstance(last_key, dict):
        raise ValueError("last_key must be a map")

    payload: dict[str, Any] = {
        "lastKey": {str(k): _transform(last_key[k], _b64, (bytes, bytearray)) for k in sorted(last_key)}
    }
    if index is not None:
        payload["index"] = index
    if sort is not None:
        payload["sort"] = sort

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    try:
        parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as err:
        raise ValueError(f"cursor is malformed: {err}") from err
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValueError("cursor lastKey is invalid")

    index = parsed.get("index")
    sort = parsed.get("sort")
    return Cursor(
        last_key={str(k): _transform(last_key_raw[k], _unb64, str) for k in sorted(last_key_raw)},
        index=index if isinstance(index, str) else None,
        sort=sort if sort in {"ASC", "DESC"} else None,
    )
