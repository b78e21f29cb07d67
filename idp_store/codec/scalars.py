"""
Scalar codecs: primitive domain values <-> tagged store values.

Every codec is a pure encode/decode pair with decode(encode(x)) == x for
every valid x. `None` always encodes to the explicit NULL tag and the NULL
tag always decodes to `None`; whether a field is omitted from an item is
the entity mapper's decision, never a codec's.

Formats:
    UUID       {"S": "<36-char hyphenated, lowercase>"}
    timestamp  {"S": "YYYY-MM-DDTHH:MM:SS[.ffffff]"} (local, no offset)
    enum       {"S": "<constant name>"}
    number     {"N": "<decimal literal>"} (int literal has no '.'/exponent)

Invariants:
    - Decoding never substitutes a default for a corrupt value
    - Enums are stored by constant name, never by value or ordinal
    - Timestamps round-trip exactly at microsecond precision
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from ..errors import DecodeError, EncodeError
from .types import (
    BOOL_TAG,
    LIST_TAG,
    NULL_TAG,
    NUMBER_TAG,
    STRING_TAG,
    AttributeValue,
    expect_tag,
    null_value,
    tag_of,
)

E = TypeVar("E", bound=Enum)

_INTEGER_LITERAL = re.compile(r"^-?[0-9]+$")
_DECIMAL_LITERAL = re.compile(r"^-?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")
_UUID_LENGTH = 36

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
# Seconds are mandatory; at most microsecond precision is stored
_TIMESTAMP = re.compile(
    r"^(?P<seconds>[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2})"
    r"(?:\.(?P<fraction>[0-9]{1,6}))?$"
)
_OFFSET_SUFFIX = re.compile(r"(Z|[+-][0-9]{2}:?[0-9]{2})$")


# =============================================================================
# Strings and booleans
# =============================================================================


def encode_string(value: str | None) -> AttributeValue:
    if value is None:
        return null_value()
    return {STRING_TAG: value}


def decode_string(value: AttributeValue, attribute: str | None = None) -> str | None:
    if tag_of(value, attribute) == NULL_TAG:
        return None
    return expect_tag(value, STRING_TAG, attribute)


def encode_bool(value: bool | None) -> AttributeValue:
    if value is None:
        return null_value()
    return {BOOL_TAG: bool(value)}


def decode_bool(value: AttributeValue, attribute: str | None = None) -> bool | None:
    if tag_of(value, attribute) == NULL_TAG:
        return None
    return expect_tag(value, BOOL_TAG, attribute)


# =============================================================================
# UUIDs
# =============================================================================


def encode_uuid(value: UUID | None) -> AttributeValue:
    if value is None:
        return null_value()
    return {STRING_TAG: str(value)}


def decode_uuid(value: AttributeValue, attribute: str | None = None) -> UUID | None:
    """Decode a UUID.

    Raises:
        DecodeError: If the string is not a 36-character hyphenated UUID
    """
    if tag_of(value, attribute) == NULL_TAG:
        return None
    text = expect_tag(value, STRING_TAG, attribute)
    return parse_uuid(text, attribute)


def parse_uuid(text: str, attribute: str | None = None) -> UUID:
    if len(text) != _UUID_LENGTH or text.count("-") != 4:
        raise DecodeError(f"Invalid UUID '{text}'", attribute=attribute, raw_value=text)
    try:
        return UUID(text)
    except ValueError as e:
        raise DecodeError(f"Invalid UUID '{text}': {e}", attribute=attribute, raw_value=text) from e


def encode_uuid_list(values: list[UUID] | None) -> AttributeValue:
    """Encode an ordered list of identities. An empty list stays a list."""
    if values is None:
        return null_value()
    return {LIST_TAG: [{STRING_TAG: str(v)} for v in values]}


def decode_uuid_list(value: AttributeValue, attribute: str | None = None) -> list[UUID] | None:
    if tag_of(value, attribute) == NULL_TAG:
        return None
    elements = expect_tag(value, LIST_TAG, attribute)
    return [parse_uuid(expect_tag(e, STRING_TAG, attribute), attribute) for e in elements]


# =============================================================================
# Timestamps
# =============================================================================


def encode_timestamp(value: datetime | None) -> AttributeValue:
    """Encode a naive local date-time.

    Raises:
        EncodeError: If the datetime carries a timezone
    """
    if value is None:
        return null_value()
    if value.tzinfo is not None:
        raise EncodeError(
            f"Timestamps are stored as local date-times; got aware datetime {value!r}",
            value_type="datetime",
        )
    return {STRING_TAG: value.isoformat()}


def decode_timestamp(value: AttributeValue, attribute: str | None = None) -> datetime | None:
    """Decode a local date-time.

    Raises:
        DecodeError: If the string is not a local date-time or has an offset
    """
    if tag_of(value, attribute) == NULL_TAG:
        return None
    text = expect_tag(value, STRING_TAG, attribute)
    match = _TIMESTAMP.match(text)
    if not match:
        if _OFFSET_SUFFIX.search(text):
            raise DecodeError(
                f"Timestamp '{text}' carries an offset", attribute=attribute, raw_value=text
            )
        raise DecodeError(f"Invalid timestamp '{text}'", attribute=attribute, raw_value=text)
    try:
        parsed = datetime.strptime(match.group("seconds"), TIMESTAMP_FORMAT)
    except ValueError as e:
        raise DecodeError(
            f"Invalid timestamp '{text}': {e}", attribute=attribute, raw_value=text
        ) from e
    fraction = match.group("fraction")
    if fraction:
        parsed = parsed.replace(microsecond=int(fraction.ljust(6, "0")))
    return parsed


# =============================================================================
# Enums
# =============================================================================


def encode_enum(value: Enum | None) -> AttributeValue:
    if value is None:
        return null_value()
    return {STRING_TAG: value.name}


def decode_enum(
    value: AttributeValue,
    enum_cls: type[E],
    attribute: str | None = None,
) -> E | None:
    """Decode an enum constant by exact, case-sensitive name.

    Raises:
        DecodeError: If no constant has that name
    """
    if tag_of(value, attribute) == NULL_TAG:
        return None
    name = expect_tag(value, STRING_TAG, attribute)
    try:
        return enum_cls[name]
    except KeyError:
        valid = [m.name for m in enum_cls]
        raise DecodeError(
            f"Invalid {enum_cls.__name__} '{name}'. Valid names: {valid}",
            attribute=attribute,
            raw_value=name,
        ) from None


# =============================================================================
# Numbers
# =============================================================================


def encode_number(value: int | float | Decimal | None) -> AttributeValue:
    """Encode a number, keeping integral values free of a decimal point.

    Raises:
        EncodeError: For booleans and non-finite values
    """
    if value is None:
        return null_value()
    if isinstance(value, bool):
        raise EncodeError("Booleans are not numbers; use encode_bool", value_type="bool")
    if isinstance(value, int):
        return {NUMBER_TAG: str(value)}
    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodeError(f"Cannot store non-finite number {value}", value_type="float")
        return {NUMBER_TAG: repr(value)}
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise EncodeError(f"Cannot store non-finite number {value}", value_type="Decimal")
        return {NUMBER_TAG: str(value)}
    raise EncodeError(f"Not a number: {value!r}", value_type=type(value).__name__)


def decode_number(value: AttributeValue, attribute: str | None = None) -> int | float | None:
    """Decode a number literal.

    A literal without a decimal point or exponent decodes to int, anything
    else to float.

    Raises:
        DecodeError: If the literal is not a decimal number
    """
    if tag_of(value, attribute) == NULL_TAG:
        return None
    literal = expect_tag(value, NUMBER_TAG, attribute)
    return parse_number(literal, attribute)


def parse_number(literal: str, attribute: str | None = None) -> int | float:
    if _INTEGER_LITERAL.match(literal):
        return int(literal)
    if _DECIMAL_LITERAL.match(literal):
        return float(literal)
    raise DecodeError(f"Invalid number '{literal}'", attribute=attribute, raw_value=literal)
