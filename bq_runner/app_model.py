from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError

WRITE_DISPOSITIONS = {"WRITE_TRUNCATE", "WRITE_APPEND", "WRITE_EMPTY"}
CREATE_DISPOSITIONS = {"CREATE_IF_NEEDED", "CREATE_NEVER"}
SCHEMA_UPDATE_OPTIONS = {"ALLOW_FIELD_ADDITION", "ALLOW_FIELD_RELAXATION"}


def _check_enum(name: str, value: Optional[str], allowed: set) -> Optional[str]:
    if value is None:
        return None
    if value not in allowed:
        raise ConfigurationError(f"Invalid {name} '{value}', expected one of {sorted(allowed)}.")
    return value


@dataclass
class QueryTask:
    sql: str
    legacy_sql: bool = False
    fetch: bool = False
    fetch_one: bool = False
    clustering_fields: Optional[List[str]] = None
    destination_table: Optional[str] = None
    schema_update_options: Optional[List[str]] = None
    time_partitioning_field: Optional[str] = None
    write_disposition: Optional[str] = None
    create_disposition: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.sql:
            raise ConfigurationError("SQL is required.")
        _check_enum("write_disposition", self.write_disposition, WRITE_DISPOSITIONS)
        _check_enum("create_disposition", self.create_disposition, CREATE_DISPOSITIONS)
        for option in self.schema_update_options or []:
            _check_enum("schema_update_option", option, SCHEMA_UPDATE_OPTIONS)

    @property
    def fetches(self) -> bool:
        return self.fetch or self.fetch_one

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "QueryTask":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigurationError(f"Unknown task properties: {', '.join(unknown)}.")
        if not payload.get("sql"):
            raise ConfigurationError("SQL is required.")
        return cls(**payload)


@dataclass
class Metric:
    name: str
    value: int
    tags: Dict[str, str]
    kind: str = "counter"


@dataclass
class QueryOutput:
    job_id: str
    rows: Optional[List[Dict[str, Any]]] = None
    row: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"job_id": self.job_id}
        if self.rows is not None:
            data["rows"] = self.rows
        if self.row is not None:
            data["row"] = self.row
        return data


@dataclass
class Succeeded:
    job_id: str
    statistics: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Failed:
    job_id: Optional[str]
    error: Dict[str, Any]
    statement_errors: List[Dict[str, Any]] = field(default_factory=list)
    missing: bool = False


JobOutcome = Union[Succeeded, Failed]
