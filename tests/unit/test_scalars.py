"""
Unit tests for scalar codecs.

Tests cover:
- UUID, timestamp and enum string formats
- Number literals and int/float fidelity
- NULL handling
- Rejection of corrupt values
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from idp_store.codec import (
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
from idp_store.domain import ProgrammingLanguage, StackType
from idp_store.errors import DecodeError, EncodeError

SAMPLE_ID = UUID("3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b")


class TestUuidCodec:
    """Tests for UUID encoding."""

    def test_encode_canonical_string(self):
        """UUIDs are stored as lowercase hyphenated strings."""
        assert encode_uuid(SAMPLE_ID) == {"S": "3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b"}

    def test_round_trip(self):
        """Decoding an encoded UUID yields the same UUID."""
        assert decode_uuid(encode_uuid(SAMPLE_ID)) == SAMPLE_ID

    def test_none_is_null(self):
        """None encodes to NULL and NULL decodes to None."""
        assert encode_uuid(None) == {"NULL": True}
        assert decode_uuid({"NULL": True}) is None

    def test_malformed_uuid_rejected(self):
        """A non-UUID string is a decode error, not a default."""
        with pytest.raises(DecodeError, match="Invalid UUID"):
            decode_uuid({"S": "not-a-uuid"}, attribute="teamId")

    def test_unhyphenated_uuid_rejected(self):
        """Only the 36-character hyphenated form is accepted."""
        with pytest.raises(DecodeError):
            decode_uuid({"S": SAMPLE_ID.hex})

    def test_wrong_tag_rejected(self):
        """A UUID stored under a number tag is rejected."""
        with pytest.raises(DecodeError, match="Expected 'S'"):
            decode_uuid({"N": "12"})

    def test_decode_error_carries_attribute(self):
        """DecodeError names the attribute being decoded."""
        with pytest.raises(DecodeError) as exc_info:
            decode_uuid({"S": "bogus"}, attribute="stackId")
        assert exc_info.value.attribute == "stackId"

    def test_uuid_list_keeps_order(self):
        """Identity lists keep their order."""
        ids = [UUID(int=3), UUID(int=1), UUID(int=2)]
        assert decode_uuid_list(encode_uuid_list(ids)) == ids

    def test_empty_uuid_list_stays_list(self):
        """An empty identity list is not NULL."""
        assert encode_uuid_list([]) == {"L": []}
        assert decode_uuid_list({"L": []}) == []


class TestTimestampCodec:
    """Tests for timestamp encoding."""

    def test_encode_iso_local(self):
        """Timestamps are ISO-8601 local date-times without offset."""
        value = datetime(2024, 1, 15, 10, 30, 0)
        assert encode_timestamp(value) == {"S": "2024-01-15T10:30:00"}

    def test_microseconds_preserved(self):
        """Fractional seconds round-trip exactly."""
        value = datetime(2024, 1, 15, 10, 30, 0, 123456)
        assert encode_timestamp(value) == {"S": "2024-01-15T10:30:00.123456"}
        assert decode_timestamp(encode_timestamp(value)) == value

    def test_aware_datetime_rejected(self):
        """Aware datetimes cannot be written as local date-times."""
        with pytest.raises(EncodeError):
            encode_timestamp(datetime(2024, 1, 15, tzinfo=timezone.utc))

    def test_offset_rejected_on_decode(self):
        """A stored timestamp with an offset is corrupt."""
        with pytest.raises(DecodeError, match="offset"):
            decode_timestamp({"S": "2024-01-15T10:30:00+02:00"})

    def test_date_only_rejected(self):
        """A bare date is not a date-time."""
        with pytest.raises(DecodeError, match="Invalid timestamp"):
            decode_timestamp({"S": "2024-01-15"})

    def test_garbage_rejected(self):
        """Unparseable text is a decode error."""
        with pytest.raises(DecodeError):
            decode_timestamp({"S": "yesterdayT"})

    @pytest.mark.parametrize(
        "text",
        [
            "20250101T123000",
            "2025-01-01T12:30",
            "2025-01-01 12:30:00",
            "2025-01-01T12:30:00.",
            "2025-01-01T12:30:00,5",
            "2025-13-01T12:30:00",
        ],
    )
    def test_only_the_written_format_is_accepted(self, text):
        """Shapes the encoder never produces are rejected."""
        with pytest.raises(DecodeError, match="Invalid timestamp"):
            decode_timestamp({"S": text})

    def test_sub_microsecond_fraction_rejected(self):
        """Nanosecond fractions would lose precision, so they are corrupt."""
        with pytest.raises(DecodeError, match="Invalid timestamp"):
            decode_timestamp({"S": "2025-01-01T12:30:00.123456789"})

    def test_short_fraction(self):
        """Fractions shorter than six digits are scaled to microseconds."""
        assert decode_timestamp({"S": "2025-01-01T12:30:00.5"}) == datetime(
            2025, 1, 1, 12, 30, 0, 500000
        )

    def test_null(self):
        """NULL decodes to None."""
        assert decode_timestamp({"NULL": True}) is None


class TestEnumCodec:
    """Tests for enum encoding."""

    def test_stored_by_name(self):
        """Enums are stored by constant name, not by value."""
        assert encode_enum(StackType.RESTFUL_API) == {"S": "RESTFUL_API"}
        assert encode_enum(ProgrammingLanguage.NODE_JS) == {"S": "NODE_JS"}

    def test_decode_by_name(self):
        """Decoding looks up the constant by exact name."""
        assert decode_enum({"S": "INFRASTRUCTURE"}, StackType) == StackType.INFRASTRUCTURE

    def test_decode_is_case_sensitive(self):
        """A lowercase name is not a constant."""
        with pytest.raises(DecodeError, match="Invalid StackType"):
            decode_enum({"S": "infrastructure"}, StackType)

    def test_value_is_not_a_name(self):
        """The display value is never accepted in place of the name."""
        with pytest.raises(DecodeError):
            decode_enum({"S": "RESTful API"}, StackType)

    def test_null(self):
        """NULL decodes to None."""
        assert encode_enum(None) == {"NULL": True}
        assert decode_enum({"NULL": True}, StackType) is None


class TestNumberCodec:
    """Tests for number encoding."""

    def test_integer_literal(self):
        """Integers have no decimal point."""
        assert encode_number(42) == {"N": "42"}
        assert decode_number({"N": "42"}) == 42
        assert isinstance(decode_number({"N": "42"}), int)

    def test_float_stays_float(self):
        """A float with an integral value still decodes as float."""
        encoded = encode_number(3.0)
        assert encoded == {"N": "3.0"}
        decoded = decode_number(encoded)
        assert decoded == 3.0
        assert isinstance(decoded, float)

    def test_decimal(self):
        """Decimals keep their literal."""
        assert encode_number(Decimal("12.50")) == {"N": "12.50"}

    def test_exponent_literal(self):
        """Exponent literals decode as float."""
        assert decode_number({"N": "1.5e3"}) == 1500.0

    def test_bool_is_not_a_number(self):
        """Booleans are rejected by the number codec."""
        with pytest.raises(EncodeError):
            encode_number(True)

    def test_non_finite_rejected(self):
        """NaN and infinity have no stored form."""
        with pytest.raises(EncodeError):
            encode_number(float("nan"))
        with pytest.raises(EncodeError):
            encode_number(float("inf"))

    def test_invalid_literal(self):
        """A non-numeric literal is a decode error."""
        with pytest.raises(DecodeError, match="Invalid number"):
            decode_number({"N": "12abc"})


class TestStringAndBoolCodec:
    """Tests for strings and booleans."""

    def test_string(self):
        """Strings are stored verbatim, including the empty string."""
        assert encode_string("") == {"S": ""}
        assert decode_string({"S": ""}) == ""

    def test_bool(self):
        """Booleans round-trip and NULL stays distinct from False."""
        assert decode_bool(encode_bool(False)) is False
        assert decode_bool(encode_bool(None)) is None

    def test_bool_payload_must_be_bool(self):
        """A string payload under the BOOL tag is corrupt."""
        with pytest.raises(DecodeError):
            decode_bool({"BOOL": "true"})

    @pytest.mark.parametrize("value", [{"S": 5}, {"S": None}, {"S": ["a"]}])
    def test_string_payload_must_be_str(self, value):
        """A non-string payload under the S tag is corrupt."""
        with pytest.raises(DecodeError, match="Invalid 'S' payload"):
            decode_string(value)

    def test_number_payload_must_be_str(self):
        """Number literals travel as strings."""
        with pytest.raises(DecodeError, match="Invalid 'N' payload"):
            decode_number({"N": 12})

    def test_unknown_tag(self):
        """Unknown type tags are rejected."""
        with pytest.raises(DecodeError, match="Unsupported attribute type tag"):
            decode_string({"SS": ["a"]})

    def test_malformed_value(self):
        """A value with two tags is malformed."""
        with pytest.raises(DecodeError, match="Malformed"):
            decode_string({"S": "a", "N": "1"})
