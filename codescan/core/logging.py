"""
Logging setup shared by the API process and Celery workers.

LOG_FORMAT=text prints one human-readable line per record; LOG_FORMAT=json
prints one JSON object per line, carrying the TracingContext fields so a
whole scan job or integration run can be pulled out of aggregated logs.
"""

import json
import logging
import sys
from typing import Any, Dict

from codescan.config import settings
from codescan.core.tracing import TracingContext

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty at INFO: one line per HTTP request.
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "pymongo")


class JSONFormatter(logging.Formatter):
    """Render a record as a single-line JSON object with tracing fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        # Empty tracing fields are left out rather than written as "".
        payload.update({key: value for key, value in TracingContext.get().items() if value})

        task_id = getattr(record, "task_id", None)
        if task_id:
            payload["task_id"] = task_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging() -> None:
    """Install the stdout handler on the root logger once per process."""
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.setLevel(settings.LOG_LEVEL.upper())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
