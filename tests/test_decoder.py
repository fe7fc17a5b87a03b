"""
Tests for the record decoder.

Covers field splitting, untyped coercion precedence and typed schemas.
All tests are pure: no files, no network.
"""

import pytest

from hub_migration.migration.decoder import (
    ABSENT,
    ValueTypeError,
    coerce_typed,
    coerce_value,
    decode,
    decode_table,
    split_fields,
)
from hub_migration.resources import ColumnType, TableSchema

# =============================================================================
# Field splitting
# =============================================================================


class TestSplitFields:

    def test_plain_fields(self):
        assert split_fields("a;b;c") == ["a", "b", "c"]

    def test_last_field_without_trailing_separator(self):
        assert split_fields("a;b") == ["a", "b"]

    def test_trailing_separator_emits_empty_field(self):
        assert split_fields("a;") == ["a", ""]

    def test_quoted_separator_is_content(self):
        assert split_fields('1;"Tel Aviv; North";x') == ["1", "Tel Aviv; North", "x"]

    def test_doubled_quote_inside_quotes_is_literal(self):
        assert split_fields('"say ""hi"";now";2') == ['say "hi";now', "2"]

    def test_quotes_are_not_kept(self):
        assert split_fields('"a";"b"') == ["a", "b"]

    def test_empty_line_is_one_empty_field(self):
        assert split_fields("") == [""]

    def test_unterminated_quote_swallows_rest_of_line(self):
        assert split_fields('a;"b;c') == ["a", "b;c"]


# =============================================================================
# Untyped coercion
# =============================================================================


class TestCoerceValue:

    def test_empty_is_null(self):
        assert coerce_value("") is None

    def test_integer(self):
        value = coerce_value("42")
        assert value == 42
        assert isinstance(value, int)

    def test_negative_decimal(self):
        assert coerce_value("-3.5") == -3.5

    def test_zero_fraction_becomes_integer(self):
        value = coerce_value("1.0")
        assert value == 1
        assert isinstance(value, int)
        assert coerce_value("-12.000") == -12
        assert coerce_value("2.50") == 2.5

    def test_leading_zeros_become_number(self):
        assert coerce_value("007") == 7

    @pytest.mark.parametrize("raw", ["1e5", "1.", ".5", "+1", " 42", "4 2", "١٢"])
    def test_non_matching_numbers_stay_text(self, raw):
        assert coerce_value(raw) == raw

    def test_booleans_are_lowercase_only(self):
        assert coerce_value("true") is True
        assert coerce_value("false") is False
        assert coerce_value("True") == "True"
        assert coerce_value("FALSE") == "FALSE"

    def test_text(self):
        assert coerce_value("Haifa") == "Haifa"


class TestCoerceTyped:

    def test_text_keeps_numeric_looking_value(self):
        assert coerce_typed("00123", ColumnType.TEXT) == "00123"

    def test_text_empty_is_null(self):
        assert coerce_typed("", ColumnType.TEXT) is None

    def test_number_accepts_numeric(self):
        assert coerce_typed("12.5", ColumnType.NUMBER) == 12.5

    def test_number_rejects_text(self):
        with pytest.raises(ValueTypeError, match="expected a number"):
            coerce_typed("abc", ColumnType.NUMBER)

    def test_boolean_rejects_other_text(self):
        with pytest.raises(ValueTypeError, match="true or false"):
            coerce_typed("yes", ColumnType.BOOLEAN)

    def test_auto_uses_untyped_precedence(self):
        assert coerce_typed("5", ColumnType.AUTO) == 5


# =============================================================================
# Whole-file decoding
# =============================================================================


class TestDecode:

    def test_rows_follow_header(self):
        rows = decode("id;name;active\n1;Haifa;true\n2;Eilat;false\n")
        assert rows == [
            {"id": 1, "name": "Haifa", "active": True},
            {"id": 2, "name": "Eilat", "active": False},
        ]

    def test_header_only_yields_no_rows(self):
        assert decode("id;name\n") == []

    def test_empty_content_yields_no_rows(self):
        assert decode("") == []
        assert decode("\n  \n") == []

    def test_blank_and_whitespace_lines_are_discarded(self):
        rows = decode("id;name\n\n1;a\n   \n2;b\n")
        assert [row["id"] for row in rows] == [1, 2]

    def test_blank_trailing_field_is_not_a_blank_line(self):
        rows = decode("id;note\n1;\n")
        assert rows == [{"id": 1, "note": None}]

    def test_missing_trailing_values_are_null(self):
        rows = decode("id;name;city\n1;Ann\n")
        assert rows == [{"id": 1, "name": "Ann", "city": None}]

    def test_surplus_values_are_ignored(self):
        rows = decode("id;name\n1;Ann;extra;more\n")
        assert rows == [{"id": 1, "name": "Ann"}]

    def test_crlf_line_endings(self):
        rows = decode("id;name\r\n1;Ann\r\n")
        assert rows == [{"id": 1, "name": "Ann"}]

    def test_quoted_value_with_separator_and_quote_round_trips(self):
        original = 'Branch; "North"'
        encoded = '"' + original.replace('"', '""') + '"'
        rows = decode(f"id;name\n1;{encoded}\n")
        assert rows[0]["name"] == original

    def test_numeric_looking_identifier_becomes_number(self):
        rows = decode("id;code\n1;0042\n")
        assert rows[0]["code"] == 42


class TestDecodeTable:

    def test_schema_keeps_identifier_text(self):
        schema = TableSchema({"user_id": ColumnType.TEXT})
        decoded = decode_table("user_id;age\n00017;30\n", schema)
        assert decoded.rows == [{"user_id": "00017", "age": 30}]
        assert decoded.rejected == []

    def test_row_violating_schema_is_rejected_with_line_number(self):
        schema = TableSchema({"rank": ColumnType.NUMBER})
        decoded = decode_table("id;rank\n1;3\n\n2;high\n3;4\n", schema)

        assert [row["id"] for row in decoded.rows] == [1, 3]
        assert len(decoded.rejected) == 1
        rejection = decoded.rejected[0]
        assert rejection.line_number == 4
        assert rejection.column == "rank"
        assert rejection.value == "high"

    def test_declared_column_missing_from_header_is_absent(self):
        schema = TableSchema({"user_id": ColumnType.TEXT, "created_at": ColumnType.TEXT})
        decoded = decode_table("user_id\nu1\n", schema)
        assert decoded.rows[0]["user_id"] == "u1"
        assert decoded.rows[0]["created_at"] is ABSENT

    def test_absent_is_falsy_singleton(self):
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"

    def test_header_is_exposed(self):
        decoded = decode_table("a;b\n1;2\n")
        assert decoded.header == ["a", "b"]
