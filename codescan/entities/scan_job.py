"""
Scan Job Entity - one repository-wide analysis execution.

Collection: scan_jobs

Status moves forward only: pending -> running -> completed | failed.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .analysis import EstimatedImpact, Issue, TechnicalDebt
from .base import BaseEntity


class ScanJobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanProgress(BaseModel):
    """Live progress, overwritten at every file boundary."""

    current: int = 0
    total: int = 0
    percentage: int = 0
    current_file_path: Optional[str] = None
    estimated_seconds_remaining: Optional[int] = None


class FileResult(BaseModel):
    """Outcome for one file. Either issues (success) or error_message (failure)."""

    path: str
    success: bool
    issues: List[Issue] = Field(default_factory=list)
    error_message: Optional[str] = None
    elapsed_ms: int = 0
    language: Optional[str] = None
    size_bytes: Optional[int] = None
    confidence: float = 0.0
    recommended_layers: List[int] = Field(default_factory=list)
    technical_debt: Optional[TechnicalDebt] = None
    estimated_impact: Optional[EstimatedImpact] = None


class ModernizationPriority(BaseModel):
    layer: int
    description: str
    files: int
    priority: str


class Recommendation(BaseModel):
    title: str
    description: str
    priority: str
    effort: str
    impact: str
    layers: List[int] = Field(default_factory=list)


class ScanSummary(BaseModel):
    """Aggregate written exactly once, when the job completes."""

    total_files: int = 0
    analyzed_files: int = 0
    failed_files: int = 0
    issues_found: int = 0
    critical_issues: int = 0
    high_issues: int = 0
    medium_issues: int = 0
    low_issues: int = 0
    average_technical_debt: int = 100
    estimated_fix_time: str = "0m"
    modernization_priority: List[ModernizationPriority] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


class ScanJob(BaseEntity):
    """
    Track a repository scan from creation to its terminal state.

    file_results is append-only and readable while the job runs so pollers
    see partial results before the summary exists.
    """

    owner_id: str
    repository: str
    branch: str = "main"
    status: ScanJobStatus = ScanJobStatus.PENDING
    progress: ScanProgress = Field(default_factory=ScanProgress)
    file_results: List[FileResult] = Field(default_factory=list)
    summary: Optional[ScanSummary] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    heartbeat_at: Optional[datetime] = None
