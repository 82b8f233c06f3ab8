from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

from .reserved_words import is_reserved_word

MaxPlaceholderStemLength = 32

_NON_WORD = re.compile(r"[^A-Za-z0-9_]")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def sanitize(raw: str) -> str:
    return _NON_WORD.sub("_", raw)


def _stem(value: Any) -> str:
    # Unordered containers would make the stem depend on iteration order.
    if isinstance(value, (str, bool, int, float, Decimal)):
        return str(value)[:MaxPlaceholderStemLength]
    return type(value).__name__.lower()


def generate_placeholder(value: Any, counter: int) -> str:
    return ":" + sanitize(f"{_stem(value)}_{counter}")


def _escape_name(name: str) -> str:
    # Injective: every character outside [A-Za-z0-9] becomes _<hex codepoint>_.
    return "".join(c if c.isascii() and c.isalnum() else f"_{ord(c):x}_" for c in name)


def generate_name_placeholder(name: str, counter: int) -> str:
    return f"#{_escape_name(name)}_{counter}"


def needs_name_placeholder(name: str) -> bool:
    return _IDENTIFIER.match(name) is None or is_reserved_word(name)


def path_ref(name: str, counter: int) -> tuple[str, dict[str, str]]:
    """Render an attribute name for use inside an expression.

    Plain identifiers are returned verbatim with an empty name map. Reserved
    words and names with characters outside ``[A-Za-z0-9_]`` are replaced by a
    ``#`` placeholder derived from ``counter``; the counter is not consumed.
    Distinct names always get distinct placeholders at the same counter.
    """
    if not needs_name_placeholder(name):
        return name, {}
    ref = generate_name_placeholder(name, counter)
    return ref, {ref: name}
