from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError

from .app_model import Metric
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_ENV = Environment(loader=BaseLoader(), undefined=StrictUndefined, autoescape=False)


@dataclass
class RunContext:
    namespace: str
    flow_id: str
    execution_id: str
    task_run_id: str
    variables: Dict[str, Any] = field(default_factory=dict)
    metrics: List[Metric] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], variables: Dict[str, Any]) -> "RunContext":
        missing = [key for key in ("namespace", "flow_id", "execution_id", "task_run_id") if not payload.get(key)]
        if missing:
            raise ConfigurationError(f"Missing context identifiers: {', '.join(missing)}.")
        return cls(
            namespace=payload["namespace"],
            flow_id=payload["flow_id"],
            execution_id=payload["execution_id"],
            task_run_id=payload["task_run_id"],
            variables=dict(variables or {}),
        )

    def template_vars(self) -> Dict[str, Any]:
        data = dict(self.variables)
        data["flow"] = {"namespace": self.namespace, "id": self.flow_id}
        data["execution"] = {"id": self.execution_id}
        data["taskrun"] = {"id": self.task_run_id}
        return data

    def render(self, template: str) -> str:
        try:
            return _ENV.from_string(template).render(**self.template_vars())
        except TemplateError as exc:
            raise ConfigurationError(f"Unable to render '{template}': {exc}") from exc

    def metric(self, metric: Metric) -> None:
        logger.debug("metric %s=%s %s", metric.name, metric.value, metric.tags)
        self.metrics.append(metric)
