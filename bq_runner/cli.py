from __future__ import annotations

import base64
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime, time
from typing import Any, Dict, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError

from .app_model import QueryTask
from .bq.client import get_client
from .config import ConfigLoader, get_history_path
from .context import RunContext
from .errors import JobError, QueryRunError
from .gcloud import get_default_location, get_default_project
from .history import append_history
from .runner import QueryJobRunner

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "US"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _resolve_project_location(config: Dict[str, Any]) -> Dict[str, Optional[str]]:
    project = config["app"].get("default_project") or get_default_project()
    location = config["app"].get("default_location") or get_default_location() or DEFAULT_LOCATION
    return {"project": project, "location": location}


def _error_response(message: str, exc: Exception, job_id: Optional[str] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message, "detail": str(exc), "type": type(exc).__name__}
    job_id = getattr(exc, "job_id", None) or job_id
    if job_id:
        error["job_id"] = job_id
    if isinstance(exc, JobError) and exc.error:
        error["error_result"] = exc.error
    return {"ok": False, "error": error}


def _run_query(payload: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    task = QueryTask.from_payload(payload.get("task") or {})
    context = RunContext.from_payload(payload.get("context") or {}, payload.get("variables") or {})
    resolved = _resolve_project_location(config)
    client = get_client(resolved["project"], resolved["location"])
    runner = QueryJobRunner(
        client,
        task,
        context,
        location=resolved["location"],
        labels=config["app"]["bq"]["labels"],
        wait_timeout=config["app"]["wait_timeout_s"] or None,
        page_size=config["app"]["page_size"],
    )
    history = config["app"]["history"].get("enabled", True)
    try:
        output = runner.run()
    except QueryRunError as exc:
        logger.error("Query %s failed: %s", runner.job_id, exc)
        if history:
            append_history(
                {
                    "status": "EXEC_FAILED",
                    "project": resolved["project"],
                    "location": resolved["location"],
                    "job_id": getattr(exc, "job_id", None) or runner.job_id,
                    "state": runner.state.value,
                    "error": str(exc),
                }
            )
        return _error_response("Query failed.", exc, runner.job_id)
    if history:
        fetched = len(output.rows) if output.rows is not None else int(output.row is not None)
        append_history(
            {
                "status": "EXECUTED",
                "project": resolved["project"],
                "location": resolved["location"],
                "job_id": output.job_id,
                "fetched_rows": fetched,
            }
        )
    return {
        "ok": True,
        "project": resolved["project"],
        "location": resolved["location"],
        "output": output.to_dict(),
        "metrics": [asdict(metric) for metric in context.metrics],
    }


def handle_request(payload: Dict[str, Any], loader: Optional[ConfigLoader] = None) -> Dict[str, Any]:
    loader = loader or ConfigLoader()
    config = loader.load()
    op = payload.get("op")

    if op == "query":
        try:
            return _run_query(payload, config)
        except (QueryRunError, GoogleAPIError, DefaultCredentialsError) as exc:
            logger.error("Query failed: %s", exc)
            return _error_response("Query failed.", exc)

    if op == "get_effective_config":
        return {
            "ok": True,
            "config": config,
            "paths": {
                "config": loader.config_path,
                "history": get_history_path(),
            },
        }

    return {"ok": False, "error": {"message": f"Unknown op {op}."}}


def main() -> None:
    loader = ConfigLoader()
    config = loader.load()
    logging.basicConfig(
        stream=sys.stderr,
        level=config["app"]["log_level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
            response = handle_request(payload, loader)
        except Exception as exc:
            logger.exception("Unhandled error")
            response = {"ok": False, "error": {"message": "Unhandled error", "detail": str(exc)}}
        sys.stdout.write(json.dumps(response, ensure_ascii=False, default=_json_default) + "\n")
        sys.stdout.flush()


if __name__ == "__main__":
    main()
