"""
Composite codec: nested JSON-shaped payloads <-> tagged store values.

Free-form configuration (stack configuration, validation rules, property
default values) has no compile-time shape. Its carrier is the native JSON
value: None, bool, int, float, str, list and str-keyed dict, nested
arbitrarily.

Rules:
    - A None or empty *top-level* map encodes to NULL ("no configuration")
    - Nested empty maps stay {"M": {}}
    - Lists, empty or not, stay lists; "zero items" is not "absent"
    - UUID, datetime and Enum leaves are written through the scalar codecs
      and read back as their string form
    - Any other type raises EncodeError rather than being stringified,
      so every written value has a decode path back

How to change safely:
    - Supporting a new leaf type means choosing a tag it decodes back from;
      never add a str() fallback
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from ..errors import DecodeError, EncodeError
from .scalars import (
    encode_enum,
    encode_number,
    encode_timestamp,
    encode_uuid,
    parse_number,
)
from .types import (
    BOOL_TAG,
    LIST_TAG,
    MAP_TAG,
    NULL_TAG,
    NUMBER_TAG,
    STRING_TAG,
    AttributeValue,
    null_value,
    tag_of,
)


def encode_map(value: Mapping[str, Any] | None) -> AttributeValue:
    """Encode a top-level configuration map.

    Args:
        value: String-keyed map, or None

    Returns:
        {"M": {...}}, or the NULL tag when value is None or empty
    """
    if not value:
        return null_value()
    return {MAP_TAG: _encode_entries(value)}


def decode_map(value: AttributeValue, attribute: str | None = None) -> dict[str, Any] | None:
    """Decode a configuration map. NULL decodes to None.

    Raises:
        DecodeError: If the value is neither a map nor NULL
    """
    tag = tag_of(value, attribute)
    if tag == NULL_TAG:
        return None
    if tag != MAP_TAG:
        raise DecodeError(
            f"Expected map attribute value, got '{tag}'", attribute=attribute, raw_value=value
        )
    return {k: decode_value(v, attribute) for k, v in value[MAP_TAG].items()}


def encode_value(value: Any) -> AttributeValue:
    """Encode any JSON-shaped value recursively.

    Raises:
        EncodeError: For map keys that are not strings and unsupported types
    """
    if value is None:
        return null_value()
    # bool before numbers: bool is an int subclass
    if isinstance(value, bool):
        return {BOOL_TAG: value}
    if isinstance(value, (int, float, Decimal)):
        return encode_number(value)
    if isinstance(value, str):
        return {STRING_TAG: value}
    if isinstance(value, UUID):
        return encode_uuid(value)
    if isinstance(value, datetime):
        return encode_timestamp(value)
    if isinstance(value, Enum):
        return encode_enum(value)
    if isinstance(value, Mapping):
        return {MAP_TAG: _encode_entries(value)}
    if isinstance(value, (list, tuple)):
        return {LIST_TAG: [encode_value(v) for v in value]}
    raise EncodeError(
        f"Cannot store value of type {type(value).__name__}: {value!r}",
        value_type=type(value).__name__,
    )


def decode_value(value: AttributeValue, attribute: str | None = None) -> Any:
    """Decode any tagged value recursively.

    Raises:
        DecodeError: For unknown tags or malformed payloads
    """
    tag = tag_of(value, attribute)
    payload = value[tag]
    if tag == NULL_TAG:
        return None
    if tag == STRING_TAG:
        return payload
    if tag == NUMBER_TAG:
        return parse_number(payload, attribute)
    if tag == BOOL_TAG:
        return payload
    if tag == MAP_TAG:
        return {k: decode_value(v, attribute) for k, v in payload.items()}
    # LIST_TAG; tag_of() rejected everything else
    return [decode_value(v, attribute) for v in payload]


def _encode_entries(value: Mapping[Any, Any]) -> dict[str, AttributeValue]:
    entries: dict[str, AttributeValue] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise EncodeError(
                f"Map keys must be strings, got {type(key).__name__}: {key!r}",
                value_type=type(key).__name__,
            )
        entries[key] = encode_value(item)
    return entries
