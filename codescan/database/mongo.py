"""
MongoDB connection helpers.

One MongoClient per process; pymongo pools connections internally, so API
requests and Celery tasks share it through get_database().
"""

from __future__ import annotations

import logging

from pymongo import MongoClient
from pymongo.database import Database

from codescan.config import settings

logger = logging.getLogger(__name__)

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        logger.info("Connecting to MongoDB database %s", settings.MONGODB_DB_NAME)
        # tz_aware so heartbeat comparisons never mix naive and aware datetimes
        _client = MongoClient(settings.MONGODB_URI, tz_aware=True)
    return _client


def get_database() -> Database:
    return get_client()[settings.MONGODB_DB_NAME]


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


def ping(db: Database) -> None:
    """Raises pymongo errors when the server is unreachable."""
    db.command("ping")


def get_db():
    """FastAPI dependency."""
    yield get_database()
