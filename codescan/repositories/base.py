"""Generic MongoDB repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from codescan.entities.base import BaseEntity

T = TypeVar("T", bound=BaseEntity)

SortSpec = Optional[Sequence[Tuple[str, int]]]


class BaseRepository(Generic[T]):
    """CRUD helpers over one collection, returning typed entities."""

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection = db[collection_name]
        self.model_class = model_class

    @staticmethod
    def _to_object_id(value: str | ObjectId | None) -> Optional[ObjectId]:
        if value is None:
            return None
        if isinstance(value, ObjectId):
            return value
        if ObjectId.is_valid(value):
            return ObjectId(value)
        return None

    def _to_entity(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if not doc:
            return None
        return self.model_class.model_validate(doc)

    def find_by_id(self, entity_id: str | ObjectId) -> Optional[T]:
        oid = self._to_object_id(entity_id)
        if oid is None:
            return None
        return self._to_entity(self.collection.find_one({"_id": oid}))

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        return self._to_entity(self.collection.find_one(query))

    def find_many(
        self,
        query: Dict[str, Any],
        sort: SortSpec = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[T]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [self.model_class.model_validate(doc) for doc in cursor]

    def paginate(
        self,
        query: Dict[str, Any],
        sort: SortSpec = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[T], int]:
        total = self.collection.count_documents(query)
        items = self.find_many(query, sort=sort, skip=skip, limit=limit)
        return items, total

    def insert_one(self, entity: T) -> T:
        doc = entity.to_mongo()
        result = self.collection.insert_one(doc)
        entity.id = result.inserted_id
        return entity

    def update_one(
        self, entity_id: str | ObjectId, updates: Dict[str, Any]
    ) -> Optional[T]:
        """Apply a partial $set and return the updated entity."""
        return self._find_and_update(
            {"_id": self._to_object_id(entity_id)}, {"$set": updates}
        )

    def _find_and_update(
        self, query: Dict[str, Any], update: Dict[str, Any]
    ) -> Optional[T]:
        """Atomic conditional update; None when the precondition did not match."""
        update.setdefault("$set", {})
        update["$set"].setdefault("updated_at", datetime.now(timezone.utc))
        doc = self.collection.find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER
        )
        return self._to_entity(doc)

    def delete_by_id(self, entity_id: str | ObjectId) -> bool:
        oid = self._to_object_id(entity_id)
        if oid is None:
            return False
        return self.collection.delete_one({"_id": oid}).deleted_count == 1

    def count(self, query: Dict[str, Any]) -> int:
        return self.collection.count_documents(query)
