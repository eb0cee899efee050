from __future__ import annotations

import os
import subprocess
from functools import lru_cache
from typing import Optional

PROJECT_ENV_VARS = ["GOOGLE_CLOUD_PROJECT", "CLOUDSDK_CORE_PROJECT"]
LOCATION_ENV_VARS = ["BIGQUERY_LOCATION", "CLOUDSDK_COMPUTE_REGION"]


@lru_cache(maxsize=None)
def _gcloud_value(key: str) -> Optional[str]:
    try:
        result = subprocess.run(
            ["gcloud", "config", "get-value", key],
            capture_output=True,
            text=True,
            check=False,
        )
    except (FileNotFoundError, PermissionError):
        return None
    if result.returncode != 0:
        return None
    value = result.stdout.strip()
    if value in {"", "(unset)"}:
        return None
    return value


def _from_env(names) -> Optional[str]:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def get_default_project() -> Optional[str]:
    return _from_env(PROJECT_ENV_VARS) or _gcloud_value("project")


def get_default_location() -> Optional[str]:
    return _from_env(LOCATION_ENV_VARS) or _gcloud_value("compute/region")
