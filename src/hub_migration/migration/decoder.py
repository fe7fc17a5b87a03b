"""Record decoder for semicolon-delimited table exports.

Export files carry one record per line: ``;`` separates fields, ``"`` quotes
a field and ``""`` inside quotes is a literal quote. The first non-blank
line is the header.

Untyped columns are coerced in a fixed order: empty text becomes None, text
matching ``-?\\d+(\\.\\d+)?`` becomes a number, exactly ``true``/``false``
becomes a bool, anything else stays text. A decimal with a zero fraction
(``1.0``) becomes an integer. A numeric-looking identifier
therefore becomes a number unless its column is declared TEXT in the
table's schema.

Everything here is pure: no I/O and no logging.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from hub_migration.resources import ColumnType, TableSchema

SEPARATOR = ";"
QUOTE = '"'

_NUMERIC = re.compile(r"-?\d+(\.\d+)?", re.ASCII)

Row = dict[str, Any]


class _Absent:
    """Marker for a declared column that the export file does not carry."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


@dataclass(frozen=True)
class RowRejection:
    """A line dropped because a value did not satisfy its declared type."""

    line_number: int
    column: str
    value: str
    reason: str


@dataclass
class DecodedTable:
    """Result of decoding one export file."""

    header: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    rejected: list[RowRejection] = field(default_factory=list)


class ValueTypeError(ValueError):
    """A raw value does not match the column's declared type."""


def split_fields(line: str) -> list[str]:
    """Split one line into raw field values.

    A separator inside quotes is literal content. The text after the last
    separator is always emitted, so ``a;`` yields ``["a", ""]``.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if char == QUOTE:
            if in_quotes and i + 1 < len(line) and line[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == SEPARATOR and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current))
    return fields


def _number(raw: str) -> int | float:
    whole, _, fraction = raw.partition(".")
    if fraction.strip("0"):
        return float(raw)
    return int(whole)


def coerce_value(raw: str) -> Any:
    """Coerce a raw field value using the untyped precedence."""
    if raw == "":
        return None
    if _NUMERIC.fullmatch(raw):
        return _number(raw)
    if raw == "true":
        return True
    if raw == "false":
        return False
    return raw


def coerce_typed(raw: str, column_type: ColumnType) -> Any:
    """Coerce a raw field value to a declared column type.

    Raises:
        ValueTypeError: If the value does not satisfy the type
    """
    if column_type is ColumnType.AUTO:
        return coerce_value(raw)
    if raw == "":
        return None
    if column_type is ColumnType.TEXT:
        return raw
    if column_type is ColumnType.NUMBER:
        if not _NUMERIC.fullmatch(raw):
            raise ValueTypeError(f"expected a number, got {raw!r}")
        return _number(raw)
    if raw not in ("true", "false"):
        raise ValueTypeError(f"expected true or false, got {raw!r}")
    return raw == "true"


def _lines(content: str) -> list[tuple[int, str]]:
    """Non-blank lines with their 1-based line numbers, CR stripped."""
    numbered = []
    for number, line in enumerate(content.split("\n"), start=1):
        if line.endswith("\r"):
            line = line[:-1]
        if line.strip():
            numbered.append((number, line))
    return numbered


def decode_table(content: str, schema: TableSchema | None = None) -> DecodedTable:
    """Decode an export file into typed rows.

    Every row has exactly the header's columns; missing trailing values are
    None and surplus values are ignored. Declared columns absent from the
    header are filled with ``ABSENT``. A row with a value that violates its
    declared type is rejected as a whole.

    Args:
        content: Full text of the export file
        schema: Declared column types (all AUTO when omitted)

    Returns:
        DecodedTable with the accepted rows and the rejections
    """
    schema = schema or TableSchema()
    lines = _lines(content)
    if not lines:
        return DecodedTable()

    header = split_fields(lines[0][1])
    missing_columns = [name for name in schema.columns if name not in header]
    result = DecodedTable(header=header)

    for line_number, line in lines[1:]:
        values = split_fields(line)
        if not values:
            continue

        row: Row = {}
        rejection: RowRejection | None = None
        for idx, column in enumerate(header):
            raw = values[idx] if idx < len(values) else ""
            try:
                row[column] = coerce_typed(raw, schema.type_of(column))
            except ValueTypeError as e:
                rejection = RowRejection(line_number, column, raw, str(e))
                break

        if rejection is not None:
            result.rejected.append(rejection)
            continue

        for column in missing_columns:
            row[column] = ABSENT
        result.rows.append(row)

    return result


def decode(content: str) -> list[Row]:
    """Decode an export file with untyped coercion."""
    return decode_table(content).rows
