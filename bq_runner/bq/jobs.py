from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import requests
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import bigquery

from ..convert.rows import RawRow, field_index
from ..errors import JobRejectionError, TransportError

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (GoogleAPIError, concurrent.futures.TimeoutError, requests.RequestException)


def make_job_id(namespace: str, flow_id: str, execution_id: str, task_run_id: str) -> str:
    return f"{namespace}.{flow_id}_{execution_id}_{task_run_id}".replace(".", "-")


def submit_query(
    client: bigquery.Client,
    sql: str,
    job_config: bigquery.QueryJobConfig,
    job_id: str,
    location: Optional[str],
) -> bigquery.QueryJob:
    try:
        return client.query(sql, job_config=job_config, job_id=job_id, location=location)
    except GoogleAPIError as exc:
        message = getattr(exc, "message", None) or str(exc)
        raise JobRejectionError(
            f"Job submission refused: {message}",
            job_id=job_id,
            error={"message": message},
            statement_errors=list(getattr(exc, "errors", None) or []),
        ) from exc


def wait_for_job(job: bigquery.QueryJob, timeout: Optional[float]) -> Optional[bigquery.QueryJob]:
    try:
        job.result(timeout=timeout)
    except _TRANSPORT_ERRORS as exc:
        if job.error_result:
            return job
        if isinstance(exc, NotFound):
            return None
        raise TransportError(f"Waiting for job failed: {exc}", job_id=job.job_id) from exc
    return job


def job_statistics(job: bigquery.QueryJob) -> Dict[str, Any]:
    return dict(job._properties.get("statistics") or {})


@dataclass
class RawResult:
    schema: List[bigquery.SchemaField]
    rows: Iterator[RawRow]
    total_rows: Optional[int] = None


def _get_page(client: bigquery.Client, path: str, params: Dict[str, Any], job_id: str) -> Dict[str, Any]:
    try:
        return client._connection.api_request(method="GET", path=path, query_params=params)
    except _TRANSPORT_ERRORS as exc:
        raise TransportError(f"Fetching results failed: {exc}", job_id=job_id) from exc


def _iter_rows(
    client: bigquery.Client,
    path: str,
    params: Dict[str, Any],
    resource: Dict[str, Any],
    index: Dict[str, int],
    job_id: str,
    max_rows: Optional[int],
) -> Iterator[RawRow]:
    count = 0
    while True:
        for row in resource.get("rows") or []:
            if max_rows is not None and count >= max_rows:
                return
            yield RawRow.from_api_repr(row, index)
            count += 1
        token = resource.get("pageToken")
        if not token or (max_rows is not None and count >= max_rows):
            return
        resource = _get_page(client, path, dict(params, pageToken=token), job_id)


def fetch_result(
    client: bigquery.Client,
    job: bigquery.QueryJob,
    page_size: Optional[int] = None,
    max_rows: Optional[int] = None,
) -> RawResult:
    path = f"/projects/{job.project}/queries/{job.job_id}"
    params: Dict[str, Any] = {"formatOptions.useInt64Timestamp": "true"}
    if job.location:
        params["location"] = job.location
    page_limit = min(filter(None, [page_size, max_rows]), default=None)
    if page_limit:
        params["maxResults"] = page_limit

    resource = _get_page(client, path, params, job.job_id)
    if not resource.get("jobComplete", True):
        raise TransportError("Query results are not ready", job_id=job.job_id)

    schema = [
        bigquery.SchemaField.from_api_repr(item)
        for item in (resource.get("schema") or {}).get("fields", [])
    ]
    total_rows = resource.get("totalRows")
    logger.debug("Job %s returned %s rows", job.job_id, total_rows)
    return RawResult(
        schema=schema,
        rows=_iter_rows(client, path, params, resource, field_index(schema), job.job_id, max_rows),
        total_rows=int(total_rows) if total_rows is not None else None,
    )
