from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any, Dict, Optional

import yaml
from platformdirs import user_config_dir, user_state_dir

logger = logging.getLogger(__name__)

APP_NAME = "bq_runner"

DEFAULT_CONFIG: Dict[str, Any] = {
    "app": {
        "default_project": None,
        "default_location": None,
        "page_size": 1000,
        "wait_timeout_s": 0,
        "log_level": "INFO",
        "bq": {
            "labels": {
                "app": "bq-runner",
            },
        },
        "history": {
            "enabled": True,
        },
    }
}

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigLoader:
    def __init__(self, config_path: Optional[str] = None) -> None:
        self.config_dir = user_config_dir(APP_NAME)
        self.config_path = config_path or f"{self.config_dir}/config.yaml"
        self._config: Optional[Dict[str, Any]] = None

    def load(self) -> Dict[str, Any]:
        if self._config is not None:
            return self._config
        data = copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(self.config_path, "r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
            if not isinstance(loaded, dict):
                raise yaml.YAMLError("top-level value is not a mapping")
            data = self._merge(data, loaded)
        except FileNotFoundError:
            self._ensure_default_written(data)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self.config_path, exc)
        self._config = self._validate(data)
        return self._config

    def _ensure_default_written(self, data: Dict[str, Any]) -> None:
        try:
            os.makedirs(os.path.dirname(self.config_path), exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as handle:
                yaml.safe_dump(data, handle, sort_keys=False)
        except OSError as exc:
            logger.warning("Could not write default config %s: %s", self.config_path, exc)

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = self._merge(base[key], value)
            else:
                base[key] = value
        return base

    def _validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        app = data["app"]

        def safe_int(key: str, default: int) -> int:
            value = app.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                return value
            return default

        app["page_size"] = safe_int("page_size", 1000) or 1000
        app["wait_timeout_s"] = safe_int("wait_timeout_s", 0)
        level = str(app.get("log_level") or "INFO").upper()
        app["log_level"] = level if level in LOG_LEVELS else "INFO"
        if not isinstance(app.get("bq"), dict) or not isinstance(app["bq"].get("labels"), dict):
            app["bq"] = copy.deepcopy(DEFAULT_CONFIG["app"]["bq"])
        if not isinstance(app.get("history"), dict):
            app["history"] = copy.deepcopy(DEFAULT_CONFIG["app"]["history"])
        return data

    def as_json(self) -> str:
        return json.dumps(self.load())


def get_history_path() -> str:
    history_dir = user_state_dir(APP_NAME)
    return f"{history_dir}/history.jsonl"
