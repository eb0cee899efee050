from unittest import mock

import pytest


def _make_job(job_id="ns-flow_exec_run", error_result=None, errors=None, statistics=None):
    job = mock.MagicMock()
    job.job_id = job_id
    job.project = "proj"
    job.location = "EU"
    job.error_result = error_result
    job.errors = errors
    job._properties = {"statistics": statistics or {}}
    job.result.return_value = None
    return job


@pytest.fixture
def make_job():
    return _make_job


@pytest.fixture
def make_client():
    def factory(job=None, pages=None):
        client = mock.MagicMock()
        client.project = "proj"
        if job is not None:
            client.query.return_value = job
        if pages is not None:
            client._connection.api_request.side_effect = list(pages)
        return client

    return factory
