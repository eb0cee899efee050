from __future__ import annotations

from typing import Any, Dict, List, Optional

from .app_model import Metric, QueryTask
from .context import RunContext

# (metric name, key in statistics.query, key in statistics)
_COUNTERS = [
    ("estimated.bytes.processed", "estimatedBytesProcessed", None),
    ("num.dml.affected.rows", "numDmlAffectedRows", None),
    ("total.bytes.billed", "totalBytesBilled", None),
    ("total.bytes.processed", "totalBytesProcessed", None),
    ("total.partitions.processed", "totalPartitionsProcessed", None),
    ("total.slot.ms", "totalSlotMs", "totalSlotMs"),
    ("num.child.jobs", None, "numChildJobs"),
]


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def metric_tags(
    task: QueryTask,
    context: RunContext,
    statistics: Dict[str, Any],
    project: Optional[str],
    location: Optional[str],
) -> Dict[str, str]:
    query_stats = statistics.get("query") or {}
    tags = {
        "statement_type": str(query_stats.get("statementType") or "UNKNOWN"),
        "fetch": "true" if task.fetches else "false",
        "projectId": project or "",
        "location": location or "",
    }
    if task.destination_table is not None:
        tags["destination_table"] = context.render(task.destination_table)
    return tags


def extract_metrics(statistics: Dict[str, Any], tags: Dict[str, str]) -> List[Metric]:
    query_stats = statistics.get("query") or {}
    metrics: List[Metric] = []
    for name, query_key, job_key in _COUNTERS:
        value = query_stats.get(query_key) if query_key else None
        if value is None and job_key:
            value = statistics.get(job_key)
        if value is not None:
            metrics.append(Metric(name=name, value=_as_int(value), tags=dict(tags)))

    cache_hit = query_stats.get("cacheHit")
    if cache_hit is not None:
        hit = 1 if str(cache_hit).lower() == "true" else 0
        metrics.append(Metric(name="cache.hit", value=hit, tags=dict(tags)))

    # statistics times are epoch milliseconds
    start = _as_int(statistics.get("startTime")) or 0
    end = _as_int(statistics.get("endTime")) or start
    metrics.append(
        Metric(name="duration", value=(end - start) * 1000000, tags=dict(tags), kind="timer")
    )
    return metrics


def emit_metrics(
    context: RunContext,
    task: QueryTask,
    statistics: Dict[str, Any],
    project: Optional[str],
    location: Optional[str],
) -> List[Metric]:
    tags = metric_tags(task, context, statistics, project, location)
    metrics = extract_metrics(statistics, tags)
    for metric in metrics:
        context.metric(metric)
    return metrics
