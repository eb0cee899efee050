from __future__ import annotations

import base64
import binascii
import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from google.cloud.bigquery import SchemaField

from ..errors import InvalidValueError, StructuralDecodeError, UnsupportedTypeError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_POINT = re.compile(r"^POINT\((-?\d+(?:\.\d+)?) (-?\d+(?:\.\d+)?)\)$")

_TYPE_ALIASES = {
    "BOOL": "BOOLEAN",
    "INT64": "INTEGER",
    "FLOAT64": "FLOAT",
    "STRUCT": "RECORD",
}


def unwrap_cell(item: Any) -> Any:
    if isinstance(item, dict) and "v" in item:
        return item["v"]
    return item


def _field_type(field: SchemaField) -> str:
    name = (field.field_type or "").upper()
    return _TYPE_ALIASES.get(name, name)


def _to_boolean(field: SchemaField, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise InvalidValueError(f"Field '{field.name}': invalid boolean '{value}'")


def _to_bytes(field: SchemaField, value: Any) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise InvalidValueError(f"Field '{field.name}': invalid base64 bytes") from exc


def _to_date(field: SchemaField, value: Any) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidValueError(f"Field '{field.name}': invalid date '{value}'") from exc


def _strptime(field: SchemaField, value: Any, formats: List[str]) -> datetime:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except (TypeError, ValueError):
            continue
    raise InvalidValueError(f"Field '{field.name}': invalid {_field_type(field).lower()} '{value}'")


def _to_datetime(field: SchemaField, value: Any) -> datetime:
    # DATETIME carries no zone; it is read as UTC
    text = value.replace(" ", "T", 1) if isinstance(value, str) else value
    parsed = _strptime(field, text, ["%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S"])
    return parsed.replace(tzinfo=timezone.utc)


def _to_time(field: SchemaField, value: Any) -> time:
    return _strptime(field, value, ["%H:%M:%S.%f", "%H:%M:%S"]).time()


def _to_float(field: SchemaField, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidValueError(f"Field '{field.name}': invalid number '{value}'") from exc


def _to_integer(field: SchemaField, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidValueError(f"Field '{field.name}': invalid integer '{value}'") from exc


def _to_geography(field: SchemaField, value: Any) -> List[float]:
    match = _POINT.match(value) if isinstance(value, str) else None
    if not match:
        raise InvalidValueError(
            f"Field '{field.name}': unsupported geography representation '{value}'"
        )
    return [float(match.group(1)), float(match.group(2))]


def _to_string(field: SchemaField, value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _timestamp_micros(field: SchemaField, value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value)
    try:
        if text.lstrip("-").isdigit():
            return int(text)
        # float seconds, returned when int64 timestamps were not requested
        return int(Decimal(text) * 1000000)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidValueError(f"Field '{field.name}': invalid timestamp '{value}'") from exc


def _to_timestamp(field: SchemaField, value: Any) -> datetime:
    micros = _timestamp_micros(field, value)
    millis = abs(micros) // 1000
    if micros < 0:
        millis = -millis
    return _EPOCH + timedelta(milliseconds=millis)


def _to_record(field: SchemaField, value: Any) -> Dict[str, Any]:
    cells = value.get("f") if isinstance(value, dict) else None
    if not isinstance(cells, list):
        raise StructuralDecodeError(f"Field '{field.name}': record value has no sub-cells")
    subfields = list(field.fields)
    if len(subfields) != len(cells):
        raise StructuralDecodeError(
            f"Field '{field.name}': {len(subfields)} subfields but {len(cells)} sub-cells"
        )
    return {sub.name: decode_cell(sub, unwrap_cell(cell)) for sub, cell in zip(subfields, cells)}


_DECODERS: Dict[str, Callable[[SchemaField, Any], Any]] = {
    "BOOLEAN": _to_boolean,
    "BYTES": _to_bytes,
    "DATE": _to_date,
    "DATETIME": _to_datetime,
    "FLOAT": _to_float,
    "GEOGRAPHY": _to_geography,
    "INTEGER": _to_integer,
    "NUMERIC": _to_float,
    "RECORD": _to_record,
    "STRING": _to_string,
    "TIME": _to_time,
    "TIMESTAMP": _to_timestamp,
}

FIELD_TYPES = frozenset(_DECODERS)


def decode_value(field: SchemaField, value: Any) -> Any:
    if value is None:
        return None
    decoder = _DECODERS.get(_field_type(field))
    if decoder is None:
        raise UnsupportedTypeError(f"Field '{field.name}': unsupported field type '{field.field_type}'")
    return decoder(field, value)


def decode_cell(field: SchemaField, cell: Any) -> Optional[Any]:
    if field.mode != "REPEATED" or cell is None:
        return decode_value(field, cell)
    if not isinstance(cell, list):
        raise StructuralDecodeError(f"Field '{field.name}': repeated value is not a list")
    return [decode_value(field, unwrap_cell(item)) for item in cell]
