"""
Maintenance Tasks - Scheduled housekeeping jobs.

These tasks run periodically via Celery Beat.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from pymongo.database import Database

from codescan.celery_app import celery_app
from codescan.config import settings
from codescan.repositories.integration_run import IntegrationRunRepository
from codescan.repositories.scan_job import ScanJobRepository
from codescan.entities.integration_run import IntegrationRunStatus
from codescan.tasks.base import PipelineTask
from codescan.utils.datetime import utc_now

logger = logging.getLogger(__name__)

HEARTBEAT_LOST = "Worker heartbeat lost"


def fail_stale_work(db: Database, minutes: int) -> Dict[str, int]:
    """
    Fail scan jobs and integration runs stuck in running.

    A record is stale when its heartbeat is older than `minutes`; this covers
    workers that crashed or were killed between two progress writes.
    """
    cutoff = utc_now() - timedelta(minutes=minutes)
    job_repo = ScanJobRepository(db)
    run_repo = IntegrationRunRepository(db)

    failed_jobs = 0
    for job in job_repo.find_stale_running(cutoff):
        if job_repo.fail(job.id, HEARTBEAT_LOST) is not None:
            failed_jobs += 1
            logger.warning(f"Scan job {job.id} failed: no heartbeat since {cutoff.isoformat()}")

    failed_runs = 0
    for run in run_repo.find_stale_running(cutoff):
        run_repo.append_log(run.id, f"Processing failed: {HEARTBEAT_LOST}")
        finished = run_repo.finish(
            run, IntegrationRunStatus.FAILED, {"error": HEARTBEAT_LOST}
        )
        if finished is not None:
            failed_runs += 1
            logger.warning(f"Integration run {run.id} failed: no heartbeat since {cutoff.isoformat()}")

    return {"failed_jobs": failed_jobs, "failed_runs": failed_runs}


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="codescan.tasks.maintenance.flag_stale_jobs",
    queue="maintenance",
)
def flag_stale_jobs(self: PipelineTask, minutes: Optional[int] = None) -> Dict[str, Any]:
    """Fail work whose worker stopped reporting. Scheduled every five minutes."""
    minutes = minutes or settings.STALE_JOB_MINUTES
    try:
        counts = fail_stale_work(self.db, minutes)
        logger.info(
            f"Stale work sweep completed: {counts['failed_jobs']} jobs, "
            f"{counts['failed_runs']} runs failed"
        )
        return {
            "status": "success",
            **counts,
            "minutes_threshold": minutes,
            "executed_at": utc_now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Stale work sweep failed: {e}", exc_info=True)
        return {
            "status": "failed",
            "error": str(e),
            "executed_at": utc_now().isoformat(),
        }
