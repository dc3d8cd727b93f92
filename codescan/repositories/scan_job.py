"""Repository for ScanJob entities"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo.database import Database

from codescan.entities.scan_job import (
    FileResult,
    ScanJob,
    ScanJobStatus,
    ScanProgress,
    ScanSummary,
)
from .base import BaseRepository


class ScanJobRepository(BaseRepository[ScanJob]):
    """Repository for scan job entities.

    Every status change is a conditional update on the current status, so a
    terminal job is never rewritten and transitions only move forward.
    """

    def __init__(self, db: Database):
        super().__init__(db, "scan_jobs", ScanJob)
        self.collection.create_index(
            [("status", 1), ("heartbeat_at", 1)], background=True
        )
        self.collection.create_index(
            [("owner_id", 1), ("created_at", -1)], background=True
        )

    def create_job(
        self,
        owner_id: str,
        repository: str,
        branch: str,
        total_files: int,
        options: Optional[Dict[str, Any]] = None,
    ) -> ScanJob:
        """Create a new pending scan job"""
        job = ScanJob(
            owner_id=owner_id,
            repository=repository,
            branch=branch,
            progress=ScanProgress(total=total_files),
            options=options or {},
        )
        return self.insert_one(job)

    def mark_running(self, job_id: str | ObjectId) -> Optional[ScanJob]:
        now = datetime.now(timezone.utc)
        return self._find_and_update(
            {"_id": self._to_object_id(job_id), "status": ScanJobStatus.PENDING.value},
            {
                "$set": {
                    "status": ScanJobStatus.RUNNING.value,
                    "started_at": now,
                    "heartbeat_at": now,
                }
            },
        )

    def update_progress(
        self, job_id: str | ObjectId, progress: ScanProgress
    ) -> Optional[ScanJob]:
        """Overwrite progress; ignored if it would move `current` backwards."""
        if progress.current > progress.total:
            raise ValueError(
                f"progress.current ({progress.current}) exceeds total ({progress.total})"
            )
        return self._find_and_update(
            {
                "_id": self._to_object_id(job_id),
                "status": ScanJobStatus.RUNNING.value,
                "progress.current": {"$lte": progress.current},
            },
            {
                "$set": {
                    "progress": progress.model_dump(),
                    "heartbeat_at": datetime.now(timezone.utc),
                }
            },
        )

    def touch_heartbeat(self, job_id: str | ObjectId) -> bool:
        """Mark a running job as alive. False once the job is no longer running."""
        result = self.collection.update_one(
            {"_id": self._to_object_id(job_id), "status": ScanJobStatus.RUNNING.value},
            {"$set": {"heartbeat_at": datetime.now(timezone.utc)}},
        )
        return result.matched_count == 1

    def append_file_result(self, job_id: str | ObjectId, result: FileResult) -> bool:
        """Push one file result onto a running job. False if the job is terminal."""
        now = datetime.now(timezone.utc)
        outcome = self.collection.update_one(
            {"_id": self._to_object_id(job_id), "status": ScanJobStatus.RUNNING.value},
            {
                "$push": {"file_results": result.model_dump()},
                "$set": {"updated_at": now, "heartbeat_at": now},
            },
        )
        return outcome.matched_count == 1

    def complete(
        self, job_id: str | ObjectId, summary: ScanSummary
    ) -> Optional[ScanJob]:
        now = datetime.now(timezone.utc)
        return self._find_and_update(
            {"_id": self._to_object_id(job_id), "status": ScanJobStatus.RUNNING.value},
            {
                "$set": {
                    "status": ScanJobStatus.COMPLETED.value,
                    "summary": summary.model_dump(),
                    "completed_at": now,
                }
            },
        )

    def fail(self, job_id: str | ObjectId, error: str) -> Optional[ScanJob]:
        now = datetime.now(timezone.utc)
        return self._find_and_update(
            {
                "_id": self._to_object_id(job_id),
                "status": {
                    "$in": [ScanJobStatus.PENDING.value, ScanJobStatus.RUNNING.value]
                },
            },
            {
                "$set": {
                    "status": ScanJobStatus.FAILED.value,
                    "error": error,
                    "completed_at": now,
                }
            },
        )

    def find_stale_running(self, cutoff: datetime) -> List[ScanJob]:
        """Running jobs whose worker has not reported since `cutoff`."""
        return self.find_many(
            {
                "status": ScanJobStatus.RUNNING.value,
                "heartbeat_at": {"$lt": cutoff},
            }
        )

    def find_by_owner(
        self, owner_id: str, skip: int = 0, limit: int = 20
    ) -> Tuple[List[ScanJob], int]:
        """Newest first, with the total count for paging."""
        return self.paginate(
            {"owner_id": owner_id}, sort=[("created_at", -1)], skip=skip, limit=limit
        )
