"""Repository for CI/CD Integration entities."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database

from codescan.entities.integration import Integration
from .base import BaseRepository

PROTECTED_FIELDS = frozenset({"_id", "id", "owner_id", "webhook", "created_at"})


class IntegrationRepository(BaseRepository[Integration]):
    def __init__(self, db: Database):
        super().__init__(db, "integrations", Integration)
        self.collection.create_index("owner_id", background=True)

    def create_integration(self, integration: Integration) -> Integration:
        return self.insert_one(integration)

    def find_active(self, integration_id: str | ObjectId) -> Optional[Integration]:
        oid = self._to_object_id(integration_id)
        if oid is None:
            return None
        return self.find_one({"_id": oid, "is_active": True})

    def find_by_owner(self, owner_id: str) -> List[Integration]:
        return self.find_many({"owner_id": owner_id}, sort=[("created_at", -1)])

    def update_integration(
        self, integration_id: str | ObjectId, updates: Dict[str, Any]
    ) -> Optional[Integration]:
        """Apply user-editable changes. Identity and webhook credentials are never touched."""
        updates = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}
        return self.update_one(integration_id, updates)

    def record_run_started(self, integration_id: str | ObjectId) -> None:
        now = datetime.now(timezone.utc)
        self.collection.update_one(
            {"_id": self._to_object_id(integration_id)},
            {"$inc": {"total_runs": 1}, "$set": {"last_run_at": now, "updated_at": now}},
        )

    def update_success_rate(
        self, integration_id: str | ObjectId, success_rate: int
    ) -> Optional[Integration]:
        return self.update_one(integration_id, {"success_rate": success_rate})
