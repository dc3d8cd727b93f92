"""
Per-execution tracing identifiers.

API requests and Celery tasks record which scan job, integration run and
integration they are working on; JSONFormatter attaches these to every log
record emitted in the same context.

Usage:
    TracingContext.set(job_id="665f...", task_name="run_repository_scan")
    ctx = TracingContext.get()
    TracingContext.clear()
"""

import uuid
from contextvars import ContextVar
from typing import Dict

FIELDS = ("correlation_id", "job_id", "run_id", "integration_id", "task_name")

_vars: Dict[str, ContextVar[str]] = {
    name: ContextVar(name, default="") for name in FIELDS
}


class TracingContext:
    """Static accessors over one ContextVar per tracing field."""

    @staticmethod
    def set(
        correlation_id: str = "",
        job_id: str = "",
        run_id: str = "",
        integration_id: str = "",
        task_name: str = "",
    ) -> None:
        """Set the given fields; empty arguments leave the current value alone."""
        values = {
            "correlation_id": correlation_id,
            "job_id": job_id,
            "run_id": run_id,
            "integration_id": integration_id,
            "task_name": task_name,
        }
        for name, value in values.items():
            if value:
                _vars[name].set(str(value))

    @staticmethod
    def get() -> Dict[str, str]:
        return {name: var.get() for name, var in _vars.items()}

    @staticmethod
    def get_correlation_id() -> str:
        return _vars["correlation_id"].get()

    @staticmethod
    def generate_correlation_id() -> str:
        """Start a new correlation scope and return its id."""
        correlation_id = str(uuid.uuid4())
        _vars["correlation_id"].set(correlation_id)
        return correlation_id

    @staticmethod
    def clear() -> None:
        for var in _vars.values():
            var.set("")
