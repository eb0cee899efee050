from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Sequence

from google.cloud.bigquery import SchemaField

from ..errors import StructuralDecodeError
from .cells import decode_cell, unwrap_cell


class RawRow:
    def __init__(self, cells: Sequence[Any], index: Dict[str, int]) -> None:
        self._cells = [unwrap_cell(cell) for cell in cells]
        self._index = index

    @classmethod
    def from_api_repr(cls, resource: Dict[str, Any], index: Dict[str, int]) -> "RawRow":
        return cls(resource.get("f") or [], index)

    def get(self, name: str) -> Any:
        try:
            return self._cells[self._index[name]]
        except (KeyError, IndexError) as exc:
            raise StructuralDecodeError(f"Row has no cell for field '{name}'") from exc

    def __len__(self) -> int:
        return len(self._cells)


def field_index(schema: Sequence[SchemaField]) -> Dict[str, int]:
    return {field.name: position for position, field in enumerate(schema)}


def decode_row(schema: Sequence[SchemaField], row: RawRow) -> Dict[str, Any]:
    return {field.name: decode_cell(field, row.get(field.name)) for field in schema}


def decode_rows(schema: Sequence[SchemaField], rows: Iterable[RawRow]) -> Iterator[Dict[str, Any]]:
    for row in rows:
        yield decode_row(schema, row)


def decode_all(schema: Sequence[SchemaField], rows: Iterable[RawRow]) -> List[Dict[str, Any]]:
    return list(decode_rows(schema, rows))
