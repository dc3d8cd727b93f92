"""
Integration Run Entity - one webhook-triggered analysis.

Collection: integration_runs

Status: pending -> running -> success | failed. CANCELLED is part of the
stored vocabulary but nothing produces it yet.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId
from .scan_job import FileResult


class IntegrationRunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class IntegrationRun(BaseEntity):
    integration_id: PyObjectId
    commit_sha: str
    branch: str
    author: str = "unknown"
    status: IntegrationRunStatus = IntegrationRunStatus.PENDING
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    files_analyzed: int = 0
    issues_found: int = 0
    quality_score_pct: int = 0
    file_results: List[FileResult] = Field(default_factory=list)
    log_lines: List[str] = Field(default_factory=list)
    pull_request_url: Optional[str] = None
    error: Optional[str] = None
    heartbeat_at: Optional[datetime] = None
