"""Tests for document value encoding."""

import pytest

from hub_migration.client.values import (
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
    quote_field_path,
)


class TestEncodeValue:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, {"nullValue": None}),
            (True, {"booleanValue": True}),
            (42, {"integerValue": "42"}),
            (1.5, {"doubleValue": 1.5}),
            ("Ann", {"stringValue": "Ann"}),
        ],
    )
    def test_scalars(self, value, expected):
        assert encode_value(value) == expected

    def test_bool_is_not_encoded_as_integer(self):
        assert encode_value(False) == {"booleanValue": False}

    def test_nested(self):
        assert encode_value({"tags": ["a", 1]}) == {
            "mapValue": {
                "fields": {
                    "tags": {
                        "arrayValue": {"values": [{"stringValue": "a"}, {"integerValue": "1"}]}
                    }
                }
            }
        }

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            encode_value(object())


class TestDecodeValue:

    def test_fields_round_trip(self):
        data = {"id": 7, "name": "Haifa", "active": True, "score": 2.5, "note": None}
        assert decode_fields(encode_fields(data)) == data

    def test_timestamp_kept_as_text(self):
        assert decode_value({"timestampValue": "2024-01-01T00:00:00Z"}) == "2024-01-01T00:00:00Z"

    def test_empty_array(self):
        assert decode_value({"arrayValue": {}}) == []

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            decode_value({"mysteryValue": 1})


class TestQuoteFieldPath:

    def test_simple_name(self):
        assert quote_field_path("full_name") == "full_name"

    def test_name_needing_quotes(self):
        assert quote_field_path("first-name") == "`first-name`"
        assert quote_field_path("1st") == "`1st`"

    def test_backtick_is_escaped(self):
        assert quote_field_path("a`b") == "`a\\`b`"
