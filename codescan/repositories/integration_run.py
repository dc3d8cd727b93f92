"""Repository for IntegrationRun entities."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo.database import Database

from codescan.entities.integration_run import IntegrationRun, IntegrationRunStatus
from codescan.utils.datetime import elapsed_ms, log_timestamp
from .base import BaseRepository

FINISHED_STATUSES = (IntegrationRunStatus.SUCCESS, IntegrationRunStatus.FAILED)


class IntegrationRunRepository(BaseRepository[IntegrationRun]):
    def __init__(self, db: Database):
        super().__init__(db, "integration_runs", IntegrationRun)
        self.collection.create_index(
            [("integration_id", 1), ("started_at", -1)], background=True
        )
        self.collection.create_index(
            [("status", 1), ("heartbeat_at", 1)], background=True
        )

    def create_run(self, run: IntegrationRun) -> IntegrationRun:
        return self.insert_one(run)

    def append_log(self, run_id: str | ObjectId, message: str) -> None:
        """Append a timestamp-prefixed line to the run's audit trail."""
        now = datetime.now(timezone.utc)
        self.collection.update_one(
            {"_id": self._to_object_id(run_id)},
            {
                "$push": {"log_lines": f"{log_timestamp(now)}: {message}"},
                "$set": {"updated_at": now, "heartbeat_at": now},
            },
        )

    def mark_running(self, run_id: str | ObjectId) -> Optional[IntegrationRun]:
        now = datetime.now(timezone.utc)
        return self._find_and_update(
            {
                "_id": self._to_object_id(run_id),
                "status": IntegrationRunStatus.PENDING.value,
            },
            {"$set": {"status": IntegrationRunStatus.RUNNING.value, "heartbeat_at": now}},
        )

    def finish(
        self,
        run: IntegrationRun,
        status: IntegrationRunStatus,
        metrics: Optional[Dict[str, Any]] = None,
    ) -> Optional[IntegrationRun]:
        """Move a pending/running run to success or failed, stamping duration."""
        if status not in FINISHED_STATUSES:
            raise ValueError(f"finish() only accepts success/failed, got {status}")
        completed_at = datetime.now(timezone.utc)
        updates: Dict[str, Any] = dict(metrics or {})
        updates.update(
            {
                "status": status.value,
                "completed_at": completed_at,
                "duration_ms": elapsed_ms(run.started_at, completed_at),
            }
        )
        return self._find_and_update(
            {
                "_id": self._to_object_id(run.id),
                "status": {
                    "$in": [
                        IntegrationRunStatus.PENDING.value,
                        IntegrationRunStatus.RUNNING.value,
                    ]
                },
            },
            {"$set": updates},
        )

    def count_completed(self, integration_id: str | ObjectId) -> Tuple[int, int]:
        """(successful, completed) over all non-pending/non-running runs."""
        oid = self._to_object_id(integration_id)
        completed = self.count(
            {
                "integration_id": oid,
                "status": {
                    "$nin": [
                        IntegrationRunStatus.PENDING.value,
                        IntegrationRunStatus.RUNNING.value,
                    ]
                },
            }
        )
        successful = self.count(
            {"integration_id": oid, "status": IntegrationRunStatus.SUCCESS.value}
        )
        return successful, completed

    def find_recent(
        self, integration_id: str | ObjectId, limit: int = 20
    ) -> List[IntegrationRun]:
        return self.find_many(
            {"integration_id": self._to_object_id(integration_id)},
            sort=[("started_at", -1)],
            limit=limit,
        )

    def delete_for_integration(self, integration_id: str | ObjectId) -> int:
        result = self.collection.delete_many(
            {"integration_id": self._to_object_id(integration_id)}
        )
        return result.deleted_count

    def find_stale_running(self, cutoff: datetime) -> List[IntegrationRun]:
        return self.find_many(
            {
                "status": IntegrationRunStatus.RUNNING.value,
                "heartbeat_at": {"$lt": cutoff},
            }
        )
