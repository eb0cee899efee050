from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from google.cloud import bigquery

from ..app_model import Failed, JobOutcome, Succeeded
from ..errors import JobExecutionError, JobNotFoundError, JobRejectionError
from .jobs import job_statistics

logger = logging.getLogger(__name__)


class JobStage(str, Enum):
    SUBMIT = "SUBMIT"
    COMPLETE = "COMPLETE"


def job_outcome(job: Optional[bigquery.QueryJob]) -> JobOutcome:
    if job is None:
        return Failed(job_id=None, error={"message": "Job no longer exists"}, missing=True)
    if job.error_result:
        return Failed(
            job_id=job.job_id,
            error=dict(job.error_result),
            statement_errors=[dict(item) for item in job.errors or []],
        )
    return Succeeded(job_id=job.job_id, statistics=job_statistics(job))


def _describe(error: Any) -> str:
    return json.dumps(error, ensure_ascii=False, sort_keys=True, default=str)


def check_job(
    job: Optional[bigquery.QueryJob], stage: JobStage, job_id: Optional[str] = None
) -> Succeeded:
    outcome = job_outcome(job)
    if isinstance(outcome, Succeeded):
        return outcome
    if outcome.missing:
        raise JobNotFoundError("Job no longer exists", job_id=job_id)

    for error in outcome.statement_errors:
        logger.error(
            "Job %s statement error [%s]:\n - %s",
            outcome.job_id,
            error.get("reason", "unknown"),
            _describe(error),
        )
    error_cls = JobRejectionError if stage is JobStage.SUBMIT else JobExecutionError
    raise error_cls(
        _describe(outcome.error),
        job_id=outcome.job_id,
        error=outcome.error,
        statement_errors=outcome.statement_errors,
    )
