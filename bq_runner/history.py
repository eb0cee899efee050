from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import get_history_path

logger = logging.getLogger(__name__)


def append_history(entry: Dict[str, Any], path: Optional[str] = None) -> None:
    path = path or get_history_path()
    entry = dict(entry)
    entry.setdefault("ts", datetime.now(timezone.utc).isoformat())
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
    except OSError as exc:
        logger.warning("Could not record run history in %s: %s", path, exc)
