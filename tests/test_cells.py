import base64
from datetime import date, datetime, time, timedelta, timezone

import pytest
from google.cloud.bigquery import SchemaField

from bq_runner.convert.cells import FIELD_TYPES, decode_cell, decode_value
from bq_runner.errors import (
    DecodeError,
    InvalidValueError,
    StructuralDecodeError,
    UnsupportedTypeError,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_scalar_values():
    assert decode_cell(SchemaField("b", "BOOLEAN"), "true") is True
    assert decode_cell(SchemaField("b", "BOOLEAN"), "false") is False
    assert decode_cell(SchemaField("i", "INTEGER"), "-42") == -42
    assert decode_cell(SchemaField("f", "FLOAT"), "1.25") == 1.25
    assert decode_cell(SchemaField("s", "STRING"), "hello") == "hello"
    assert decode_cell(SchemaField("d", "DATE"), "2008-12-25") == date(2008, 12, 25)
    assert decode_cell(SchemaField("t", "TIME"), "15:30:00.123456") == time(15, 30, 0, 123456)
    assert decode_cell(SchemaField("t", "TIME"), "15:30:00") == time(15, 30)


def test_bytes_are_base64_decoded():
    raw = base64.b64encode(b"\x00\x01bq").decode("ascii")
    assert decode_cell(SchemaField("b", "BYTES"), raw) == b"\x00\x01bq"


def test_numeric_is_narrowed_to_float():
    assert decode_cell(SchemaField("n", "NUMERIC"), "123.456789") == pytest.approx(123.456789)


def test_standard_sql_type_aliases():
    assert decode_cell(SchemaField("i", "INT64"), "7") == 7
    assert decode_cell(SchemaField("b", "BOOL"), "TRUE") is True
    assert decode_cell(SchemaField("f", "FLOAT64"), "0.5") == 0.5


def test_datetime_is_read_as_utc():
    value = decode_cell(SchemaField("dt", "DATETIME"), "2008-12-25T15:30:00.123456")
    assert value == datetime(2008, 12, 25, 15, 30, 0, 123456, tzinfo=timezone.utc)
    value = decode_cell(SchemaField("dt", "DATETIME"), "2008-12-25 15:30:00")
    assert value == datetime(2008, 12, 25, 15, 30, tzinfo=timezone.utc)


def test_timestamp_truncates_to_milliseconds():
    value = decode_cell(SchemaField("ts", "TIMESTAMP"), "1230217800123456")
    assert (value - EPOCH) // timedelta(milliseconds=1) == 1230217800123
    assert value.tzinfo == timezone.utc


def test_timestamp_accepts_float_seconds():
    value = decode_cell(SchemaField("ts", "TIMESTAMP"), "1.230217800123456E9")
    assert (value - EPOCH) // timedelta(milliseconds=1) == 1230217800123


def test_geography_point():
    assert decode_cell(SchemaField("g", "GEOGRAPHY"), "POINT(2.9 50.6833)") == [2.9, 50.6833]
    assert decode_cell(SchemaField("g", "GEOGRAPHY"), "POINT(-73.98 40.75)") == [-73.98, 40.75]


def test_geography_other_shapes_rejected():
    with pytest.raises(InvalidValueError):
        decode_cell(SchemaField("g", "GEOGRAPHY"), "POLYGON((0 0, 1 1, 1 0, 0 0))")
    with pytest.raises(InvalidValueError):
        decode_cell(SchemaField("g", "GEOGRAPHY"), "LINESTRING(0 0, 1 1)")


def test_geography_malformed_coordinates():
    for text in ["POINT(1.2.3 4)", "POINT(. 4)", "POINT(1 -)", "POINT(1.  4)"]:
        with pytest.raises(DecodeError):
            decode_cell(SchemaField("g", "GEOGRAPHY"), text)


def test_null_for_every_type_and_mode():
    for field_type in FIELD_TYPES:
        for mode in ("NULLABLE", "REQUIRED", "REPEATED"):
            fields = [SchemaField("x", "STRING")] if field_type == "RECORD" else ()
            assert decode_cell(SchemaField("c", field_type, mode=mode, fields=fields), None) is None


def test_repeated_keeps_order():
    field = SchemaField("arr", "INTEGER", mode="REPEATED")
    assert decode_cell(field, [{"v": "3"}, {"v": "1"}, {"v": "2"}]) == [3, 1, 2]
    assert decode_cell(field, []) == []


def test_repeated_elements_may_be_null():
    field = SchemaField("arr", "STRING", mode="REPEATED")
    assert decode_cell(field, [{"v": "a"}, {"v": None}]) == ["a", None]


def test_repeated_requires_list():
    with pytest.raises(StructuralDecodeError):
        decode_cell(SchemaField("arr", "INTEGER", mode="REPEATED"), "1")


def test_record_is_positional():
    field = SchemaField(
        "struct",
        "RECORD",
        fields=[
            SchemaField("x", "INTEGER"),
            SchemaField("y", "INTEGER"),
            SchemaField("z", "INTEGER", mode="REPEATED"),
        ],
    )
    cell = {"f": [{"v": "4"}, {"v": "0"}, {"v": [{"v": "1"}, {"v": "2"}, {"v": "3"}]}]}
    value = decode_cell(field, cell)
    assert value == {"x": 4, "y": 0, "z": [1, 2, 3]}
    assert list(value) == ["x", "y", "z"]


def test_repeated_nested_records():
    inner = SchemaField("points", "GEOGRAPHY", mode="REPEATED")
    field = SchemaField(
        "items",
        "RECORD",
        mode="REPEATED",
        fields=[SchemaField("name", "STRING"), inner],
    )
    cell = [
        {"v": {"f": [{"v": "a"}, {"v": [{"v": "POINT(1 2)"}]}]}},
        {"v": {"f": [{"v": "b"}, {"v": []}]}},
    ]
    assert decode_cell(field, cell) == [
        {"name": "a", "points": [[1.0, 2.0]]},
        {"name": "b", "points": []},
    ]


def test_record_arity_mismatch():
    field = SchemaField("s", "RECORD", fields=[SchemaField("x", "INTEGER"), SchemaField("y", "INTEGER")])
    with pytest.raises(StructuralDecodeError):
        decode_cell(field, {"f": [{"v": "1"}]})
    with pytest.raises(StructuralDecodeError):
        decode_cell(field, {"f": [{"v": "1"}, {"v": "2"}, {"v": "3"}]})


def test_unsupported_type():
    with pytest.raises(UnsupportedTypeError):
        decode_value(SchemaField("j", "JSON"), "{}")


def test_malformed_scalar_is_decode_error():
    with pytest.raises(InvalidValueError):
        decode_cell(SchemaField("i", "INTEGER"), "abc")
    with pytest.raises(InvalidValueError):
        decode_cell(SchemaField("d", "DATE"), "25/12/2008")
    with pytest.raises(DecodeError):
        decode_cell(SchemaField("b", "BOOLEAN"), "yes")


def test_field_types_are_closed():
    assert FIELD_TYPES == {
        "BOOLEAN",
        "BYTES",
        "DATE",
        "DATETIME",
        "FLOAT",
        "GEOGRAPHY",
        "INTEGER",
        "NUMERIC",
        "RECORD",
        "STRING",
        "TIME",
        "TIMESTAMP",
    }
