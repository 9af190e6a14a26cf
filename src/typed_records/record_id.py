"""Composite record identifiers (collection + key) and their canonical form.

The canonical string of an identifier is ``collection:key``. Numeric and
structured keys are wrapped in the reserved glyphs U+27E8/U+27E9 so they can
be told apart from textual keys. These glyphs are not the ASCII ``<`` and
``>``:

    building_tbl:main_street
    building_tbl:⟨1234567890⟩
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from typed_records.errors import MalformedIdentifier
from typed_records.identity import IdentityTraits

ID_OPEN = "⟨"
ID_CLOSE = "⟩"
ESCAPE = "\\"
SEPARATOR = ":"

_INTEGER_LITERAL = re.compile(r"[+-]?[0-9]+")


def is_canonical_integer(text: str) -> bool:
    """Return whether text is an integer literal that prints back unchanged."""
    return _INTEGER_LITERAL.fullmatch(text) is not None and str(int(text)) == text


class KeyValue:
    """Base class for the per-record key variants."""

    @property
    def bracketed(self) -> bool:
        """Return whether the rendering is wrapped in the reserved glyphs."""
        return False

    def raw(self) -> str:
        """Return the key text without brackets or escapes."""
        raise NotImplementedError

    def render(self) -> str:
        """Return the key part of the canonical string."""
        if self.bracketed:
            return f"{ID_OPEN}{self.raw()}{ID_CLOSE}"
        return self.raw()


@dataclass(frozen=True)
class TextualKey(KeyValue):
    """A plain string key."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise MalformedIdentifier(self.value, "textual key must be a non-empty string")

    def raw(self) -> str:
        return self.value

    def render(self) -> str:
        # A leading glyph or escape would otherwise read back as a different key
        if self.value.startswith((ID_OPEN, ESCAPE)):
            return ESCAPE + self.value
        return self.value


@dataclass(frozen=True)
class NumericKey(KeyValue):
    """An integer key, always bracketed."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise MalformedIdentifier(self.value, "numeric key must be an integer")

    @property
    def bracketed(self) -> bool:
        return True

    def raw(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class StructuredKey(KeyValue):
    """A compound key, kept as its opaque inner rendering."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise MalformedIdentifier(self.value, "structured key must be a non-empty string")
        if _INTEGER_LITERAL.fullmatch(self.value):
            raise MalformedIdentifier(self.value, "structured key cannot be an integer literal")

    @property
    def bracketed(self) -> bool:
        return True

    def raw(self) -> str:
        return self.value


def _escape_collection(collection: str) -> str:
    return collection.replace(ESCAPE, ESCAPE + ESCAPE).replace(SEPARATOR, ESCAPE + SEPARATOR)


def _split_canonical(raw: str) -> tuple[str, str]:
    """Split on the first unescaped separator, unescaping the collection part."""
    chars: list[str] = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch == ESCAPE:
            if i + 1 >= len(raw):
                raise MalformedIdentifier(raw, "dangling escape in collection name")
            chars.append(raw[i + 1])
            i += 2
            continue
        if ch == SEPARATOR:
            return "".join(chars), raw[i + 1:]
        chars.append(ch)
        i += 1
    raise MalformedIdentifier(raw, f"missing '{SEPARATOR}' separator")


def _parse_key(raw: str, key_text: str) -> KeyValue:
    if not key_text:
        raise MalformedIdentifier(raw, "empty key")
    if key_text.startswith(ESCAPE):
        if len(key_text) == 1:
            raise MalformedIdentifier(raw, "dangling escape in key")
        return TextualKey(key_text[1:])
    if key_text.startswith(ID_OPEN):
        if len(key_text) < 2 or not key_text.endswith(ID_CLOSE):
            raise MalformedIdentifier(raw, "unterminated bracketed key")
        inner = key_text[1:-1]
        if not inner:
            raise MalformedIdentifier(raw, "empty bracketed key")
        if _INTEGER_LITERAL.fullmatch(inner):
            return NumericKey(int(inner))
        return StructuredKey(inner)
    return TextualKey(key_text)


def coerce_key(key: Any) -> KeyValue:
    """Build a KeyValue from a raw engine value.

    Strings in canonical integer form become numeric keys, the same way the
    engine brackets ``"1234567890"``.
    """
    if isinstance(key, KeyValue):
        return key
    if isinstance(key, bool):
        raise MalformedIdentifier(key, "boolean keys are not supported")
    if isinstance(key, int):
        return NumericKey(key)
    if isinstance(key, str):
        if is_canonical_integer(key):
            return NumericKey(int(key))
        return TextualKey(key)
    raise MalformedIdentifier(key, f"unsupported key type {type(key).__name__}")


@dataclass(frozen=True)
class RecordId(IdentityTraits):
    """Immutable composite identifier of a stored record."""

    collection: str
    key: KeyValue

    def __post_init__(self) -> None:
        if not isinstance(self.collection, str) or not self.collection:
            raise MalformedIdentifier(self.collection, "collection must be a non-empty string")
        if not isinstance(self.key, KeyValue):
            raise MalformedIdentifier(self.key, "key must be a KeyValue")

    @classmethod
    def parse(cls, raw: str) -> RecordId:
        """Parse a canonical identifier string.

        Args:
            raw: String of the form ``collection:key``.

        Returns:
            The parsed identifier.

        Raises:
            MalformedIdentifier: If the string is not a valid canonical form.
        """
        if not isinstance(raw, str):
            raise MalformedIdentifier(raw, "expected a string")
        collection, key_text = _split_canonical(raw)
        if not collection:
            raise MalformedIdentifier(raw, "empty collection")
        return cls(collection, _parse_key(raw, key_text))

    @classmethod
    def from_parts(cls, collection: str, key: Any) -> RecordId:
        """Build an identifier from a collection name and a raw key."""
        return cls(collection, coerce_key(key))

    @classmethod
    def coerce(cls, value: Any) -> RecordId:
        """Accept any supported encoding of an identifier.

        Supported: a RecordId, a canonical string, or a ``{"tb": ..., "id": ...}``
        mapping.
        """
        if isinstance(value, RecordId):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, Mapping) and "tb" in value and "id" in value:
            return cls.from_parts(value["tb"], value["id"])
        raise MalformedIdentifier(value, f"unsupported encoding {type(value).__name__}")

    def canonical_string(self) -> str:
        return f"{_escape_collection(self.collection)}{SEPARATOR}{self.key.render()}"

    def raw_key(self) -> str:
        return self.key.raw()

    def get_tbl_id(self) -> str:
        return self.canonical_string()

    def get_id(self) -> str:
        return self.raw_key()

    def get_tbl(self) -> str:
        return self.collection

    def __str__(self) -> str:
        return self.canonical_string()
