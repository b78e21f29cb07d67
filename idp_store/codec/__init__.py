"""
Codecs between domain values and tagged store values.

- scalars: UUID, timestamp, enum, string, boolean, number
- composite: nested maps and lists of free-form configuration

All codecs are pure functions and safe to call concurrently.
"""

from .composite import decode_map, decode_value, encode_map, encode_value
from .scalars import (
    decode_bool,
    decode_enum,
    decode_number,
    decode_string,
    decode_timestamp,
    decode_uuid,
    decode_uuid_list,
    encode_bool,
    encode_enum,
    encode_number,
    encode_string,
    encode_timestamp,
    encode_uuid,
    encode_uuid_list,
)
from .types import AttributeValue, Item, is_null, null_value

__all__ = [
    "AttributeValue",
    "Item",
    "is_null",
    "null_value",
    # Scalars
    "encode_bool",
    "decode_bool",
    "encode_enum",
    "decode_enum",
    "encode_number",
    "decode_number",
    "encode_string",
    "decode_string",
    "encode_timestamp",
    "decode_timestamp",
    "encode_uuid",
    "decode_uuid",
    "encode_uuid_list",
    "decode_uuid_list",
    # Composite
    "encode_map",
    "decode_map",
    "encode_value",
    "decode_value",
]
