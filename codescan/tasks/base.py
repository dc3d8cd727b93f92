"""Base task class shared by every codescan Celery task."""

import logging

from celery import Task
from pymongo.database import Database

from codescan.core.tracing import TracingContext
from codescan.database.mongo import get_database

logger = logging.getLogger(__name__)


class PipelineTask(Task):
    """Task with a lazily opened database handle and per-task tracing."""

    abstract = True
    _db: Database | None = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = get_database()
        return self._db

    def before_start(self, task_id, args, kwargs):
        TracingContext.clear()
        TracingContext.set(
            correlation_id=kwargs.get("correlation_id") or task_id,
            task_name=self.name,
        )

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error("Task %s [%s] failed: %s", self.name, task_id, exc)

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        TracingContext.clear()
