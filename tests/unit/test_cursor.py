from __future__ import annotations

import base64
import json

import pytest

from domino_py.cursor import Cursor, decode_cursor, encode_cursor


def test_cursor_round_trip_with_binary_and_nested_values() -> None:
    last_key = {
        "pk": {"S": "A"},
        "sk": {"N": "10"},
        "blob": {"B": b"\x00\x01"},
        "tags": {"BS": [b"\xff"]},
        "meta": {"M": {"z": {"BOOL": True}, "a": {"L": [{"NULL": True}, {"SS": ["x"]}]}}},
    }
    cursor = encode_cursor(last_key, index="gsi-1", sort="DESC")
    assert decode_cursor(cursor) == Cursor(last_key=last_key, index="gsi-1", sort="DESC")


def test_encode_is_stable_and_url_safe() -> None:
    a = encode_cursor({"b": {"S": "1"}, "a": {"S": "2"}})
    b = encode_cursor({"a": {"S": "2"}, "b": {"S": "1"}})
    assert a == b
    assert "+" not in a and "/" not in a

    payload = json.loads(base64.urlsafe_b64decode(a))
    assert list(payload["lastKey"]) == ["a", "b"]


def test_empty_last_key_encodes_to_empty_string() -> None:
    assert encode_cursor(None) == ""
    assert encode_cursor({}) == ""


def test_decode_tolerates_missing_padding_and_ignores_bad_sort() -> None:
    token = base64.urlsafe_b64encode(b'{"lastKey":{"pk":{"S":"A"}},"sort":"SIDEWAYS"}').decode().rstrip("=")
    assert decode_cursor(token) == Cursor(last_key={"pk": {"S": "A"}})


@pytest.mark.parametrize(
    "token",
    [
        "",
        "%%%",
        base64.urlsafe_b64encode(b"[1, 2]").decode(),
        base64.urlsafe_b64encode(b'{"lastKey": {}}').decode(),
        base64.urlsafe_b64encode(b'{"lastKey": {"pk": {"X": "1"}}}').decode(),
        base64.urlsafe_b64encode(b'{"lastKey": {"pk": {"B": "***"}}}').decode(),
    ],
)
def test_decode_rejects_invalid_cursors(token: str) -> None:
    with pytest.raises(ValueError):
        decode_cursor(token)


def test_encode_rejects_malformed_attribute_values() -> None:
    with pytest.raises(ValueError, match="single-key"):
        encode_cursor({"pk": {"S": "a", "N": "1"}})
    with pytest.raises(ValueError, match="must be a string"):
        encode_cursor({"pk": {"S": 1}})
