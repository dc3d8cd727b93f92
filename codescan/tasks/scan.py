"""Repository scan tasks."""

import logging
from typing import Any, Dict, List, Optional

from codescan.celery_app import celery_app
from codescan.core.tracing import TracingContext
from codescan.repositories.scan_job import ScanJobRepository
from codescan.services.analyzer import get_analyzer
from codescan.services.scan_runner import ScanJobRunner
from codescan.tasks.base import PipelineTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="codescan.tasks.scan.run_repository_scan",
    queue="scans",
    acks_late=True,
)
def run_repository_scan(
    self: PipelineTask,
    job_id: str,
    files: List[Dict[str, Any]],
    token: str,
    options: Optional[Dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Drive one pending scan job to completed or failed.

    `files` is the discovery result captured when the job was created, so the
    worker analyzes exactly the set the caller was told about.
    """
    runner = ScanJobRunner(ScanJobRepository(self.db), get_analyzer())
    job = runner.run(job_id, files, token, options)

    if job is None:
        logger.error(f"Scan job {job_id} not found")
        return {"status": "error", "job_id": job_id, "error": "Scan job not found"}

    return {
        "status": job.status,
        "job_id": job_id,
        "correlation_id": TracingContext.get_correlation_id(),
        "analyzed_files": job.summary.analyzed_files if job.summary else 0,
        "error": job.error,
    }
