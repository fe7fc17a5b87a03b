"""Conversion between Python values and document-store REST values.

The REST API wraps every field value in a single-key object naming its type,
for example ``{"stringValue": "Ann"}`` or ``{"integerValue": "42"}``.
"""

import re
from typing import Any

_SIMPLE_FIELD = re.compile(r"[A-Za-z_][A-Za-z_0-9]*")


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a typed REST value.

    Raises:
        TypeError: If the value has no document-store representation
    """
    # bool is a subclass of int, so it must be tested first
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Unsupported document value type: {type(value).__name__}")


def encode_fields(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Encode a flat mapping of field name to Python value."""
    return {str(key): encode_value(value) for key, value in data.items()}


def decode_value(value: dict[str, Any]) -> Any:
    """Decode a typed REST value into a Python value.

    Timestamps, references and geo points are returned in their wire form
    (text or mapping); this tool only writes the scalar types.
    """
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "bytesValue" in value:
        return value["bytesValue"]
    if "geoPointValue" in value:
        return dict(value["geoPointValue"])
    if "arrayValue" in value:
        return [decode_value(item) for item in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    raise ValueError(f"Unknown document value: {value!r}")


def decode_fields(fields: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Decode the ``fields`` object of a REST document."""
    return {key: decode_value(value) for key, value in fields.items()}


def quote_field_path(name: str) -> str:
    """Quote a field name for use in an update mask.

    Names that are not simple identifiers are wrapped in back-ticks, with
    back-ticks and back-slashes escaped.
    """
    if _SIMPLE_FIELD.fullmatch(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"
