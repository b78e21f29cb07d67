"""
Tagged store values.

A tagged value is the low-level DynamoDB attribute-value shape that
botocore clients send and receive: a one-entry dict whose key is the
type tag.

    {"NULL": True}   explicit null
    {"BOOL": True}   boolean
    {"N": "12.5"}    number, as its decimal literal
    {"S": "text"}    string
    {"L": [...]}     ordered list of tagged values
    {"M": {...}}     string-keyed map of tagged values

An Item is a string-keyed mapping of tagged values. A key that is absent
from an item means "not set"; a key holding NULL means "set to null".
"""

from __future__ import annotations

from typing import Any

from ..errors import DecodeError

AttributeValue = dict[str, Any]
Item = dict[str, AttributeValue]

NULL_TAG = "NULL"
BOOL_TAG = "BOOL"
NUMBER_TAG = "N"
STRING_TAG = "S"
LIST_TAG = "L"
MAP_TAG = "M"

PAYLOAD_TYPES: dict[str, type] = {
    NULL_TAG: bool,
    BOOL_TAG: bool,
    NUMBER_TAG: str,
    STRING_TAG: str,
    LIST_TAG: list,
    MAP_TAG: dict,
}

KNOWN_TAGS = frozenset(PAYLOAD_TYPES)


def null_value() -> AttributeValue:
    """The explicit null tag."""
    return {NULL_TAG: True}


def is_null(value: AttributeValue | None) -> bool:
    """Whether a tagged value is the explicit null tag."""
    return value is not None and value.get(NULL_TAG) is True


def tag_of(value: AttributeValue, attribute: str | None = None) -> str:
    """Return the single type tag of a tagged value.

    Raises:
        DecodeError: If the value is not a one-entry dict with a known tag,
            or its payload is not of the tag's type (e.g. {"S": 5})
    """
    if not isinstance(value, dict) or len(value) != 1:
        raise DecodeError(
            f"Malformed attribute value: {value!r}", attribute=attribute, raw_value=value
        )
    ((tag, payload),) = value.items()
    payload_type = PAYLOAD_TYPES.get(tag)
    if payload_type is None:
        raise DecodeError(
            f"Unsupported attribute type tag '{tag}'", attribute=attribute, raw_value=value
        )
    if not isinstance(payload, payload_type):
        raise DecodeError(
            f"Invalid '{tag}' payload {payload!r}", attribute=attribute, raw_value=value
        )
    return tag


def expect_tag(value: AttributeValue, expected: str, attribute: str | None = None) -> Any:
    """Return the payload of a tagged value, checking its tag.

    Raises:
        DecodeError: If the value carries a different tag
    """
    tag = tag_of(value, attribute)
    if tag != expected:
        raise DecodeError(
            f"Expected '{expected}' attribute value, got '{tag}'",
            attribute=attribute,
            raw_value=value,
        )
    return value[tag]
