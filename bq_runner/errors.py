from __future__ import annotations

from typing import Any, Dict, List, Optional


class QueryRunError(Exception):
    pass


class ConfigurationError(QueryRunError):
    pass


class JobError(QueryRunError):
    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        error: Optional[Dict[str, Any]] = None,
        statement_errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.error = error
        self.statement_errors = list(statement_errors or [])

    def __str__(self) -> str:
        message = super().__str__()
        if self.job_id:
            return f"{message} (job {self.job_id})"
        return message


class JobNotFoundError(JobError):
    pass


class JobRejectionError(JobError):
    pass


class JobExecutionError(JobError):
    pass


class TransportError(QueryRunError):
    def __init__(self, message: str, job_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.job_id = job_id


class DecodeError(QueryRunError):
    pass


class InvalidValueError(DecodeError):
    pass


class UnsupportedTypeError(InvalidValueError):
    pass


class StructuralDecodeError(DecodeError):
    pass


class EmptyResultError(QueryRunError, IndexError):
    pass
