from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from google.cloud import bigquery

from .app_model import QueryOutput, QueryTask
from .bq.client import build_job_config, parse_table_id
from .bq.jobs import fetch_result, make_job_id, submit_query, wait_for_job
from .bq.status import JobStage, check_job
from .context import RunContext
from .convert.rows import decode_all, decode_row
from .errors import EmptyResultError, QueryRunError
from .metrics import emit_metrics

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    BUILT = "BUILT"
    SUBMITTED = "SUBMITTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_TRANSITIONS = {
    JobState.BUILT: {JobState.SUBMITTED, JobState.FAILED},
    JobState.SUBMITTED: {JobState.COMPLETED, JobState.FAILED},
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
}


class QueryJobRunner:
    def __init__(
        self,
        client: bigquery.Client,
        task: QueryTask,
        context: RunContext,
        location: Optional[str] = None,
        labels: Optional[Dict[str, Any]] = None,
        wait_timeout: Optional[float] = None,
        page_size: Optional[int] = None,
    ) -> None:
        self.client = client
        self.task = task
        self.context = context
        self.location = location
        self.labels = dict(labels or {})
        self.wait_timeout = wait_timeout
        self.page_size = page_size
        self.state = JobState.BUILT
        self.job_id = make_job_id(
            context.namespace, context.flow_id, context.execution_id, context.task_run_id
        )

    def _advance(self, state: JobState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Job {self.job_id} cannot move from {self.state.value} to {state.value}")
        logger.debug("Job %s: %s -> %s", self.job_id, self.state.value, state.value)
        self.state = state

    def job_config(self) -> bigquery.QueryJobConfig:
        destination = None
        if self.task.destination_table is not None:
            destination = parse_table_id(
                self.context.render(self.task.destination_table), self.client.project
            )
        return build_job_config(self.task, destination, self.labels)

    def run(self) -> QueryOutput:
        if self.state is not JobState.BUILT:
            raise RuntimeError(f"Job {self.job_id} was already run ({self.state.value})")
        sql = self.context.render(self.task.sql)
        job_config = self.job_config()
        logger.debug("Starting query %s\n%s", self.job_id, sql)

        try:
            job = submit_query(self.client, sql, job_config, self.job_id, self.location)
            self._advance(JobState.SUBMITTED)
            check_job(job, JobStage.SUBMIT, self.job_id)
            job = wait_for_job(job, self.wait_timeout)
            outcome = check_job(job, JobStage.COMPLETE, self.job_id)
        except QueryRunError:
            self._advance(JobState.FAILED)
            raise
        self._advance(JobState.COMPLETED)
        logger.info("Job %s completed", outcome.job_id)

        emit_metrics(self.context, self.task, outcome.statistics, job.project, job.location)

        output = QueryOutput(job_id=outcome.job_id)
        if self.task.fetch:
            output.rows = self.fetch_rows(job)
        elif self.task.fetch_one:
            output.row = self.fetch_first_row(job)
        return output

    def fetch_rows(self, job: bigquery.QueryJob) -> List[Dict[str, Any]]:
        result = fetch_result(self.client, job, page_size=self.page_size)
        return decode_all(result.schema, result.rows)

    def fetch_first_row(self, job: bigquery.QueryJob) -> Dict[str, Any]:
        result = fetch_result(self.client, job, max_rows=1)
        first = next(result.rows, None)
        if first is None:
            raise EmptyResultError(f"Job {job.job_id} returned no rows, index 0 is out of bounds")
        return decode_row(result.schema, first)
