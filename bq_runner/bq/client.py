from __future__ import annotations

from typing import Any, Dict, Optional

from google.cloud import bigquery

from ..app_model import QueryTask
from ..errors import ConfigurationError


def get_client(project: Optional[str], location: Optional[str] = None) -> bigquery.Client:
    return bigquery.Client(project=project, location=location)


def parse_table_id(table: str, default_project: Optional[str]) -> bigquery.TableReference:
    parts = table.split(".")
    if len(parts) == 3:
        project, dataset, table_id = parts
    elif len(parts) == 2:
        project = default_project
        dataset, table_id = parts
    else:
        raise ConfigurationError(f"Invalid table name '{table}'")
    if not all(parts) or not project:
        raise ConfigurationError(f"Invalid table name '{table}'")
    return bigquery.TableReference(bigquery.DatasetReference(project, dataset), table_id)


def build_job_config(
    task: QueryTask,
    destination: Optional[bigquery.TableReference],
    labels: Dict[str, Any],
) -> bigquery.QueryJobConfig:
    config = bigquery.QueryJobConfig()
    config.use_legacy_sql = task.legacy_sql
    config.labels = labels
    if task.clustering_fields is not None:
        config.clustering_fields = list(task.clustering_fields)
    if destination is not None:
        config.destination = destination
    if task.schema_update_options is not None:
        config.schema_update_options = list(task.schema_update_options)
    if task.time_partitioning_field is not None:
        config.time_partitioning = bigquery.TimePartitioning(
            type_=bigquery.TimePartitioningType.DAY,
            field=task.time_partitioning_field,
        )
    if task.write_disposition is not None:
        config.write_disposition = task.write_disposition
    if task.create_disposition is not None:
        config.create_disposition = task.create_disposition
    return config
