"""Database entity models - represents the actual structure stored in MongoDB"""

from .analysis import AnalysisOutcome, DebtCategory, Issue, Severity, TechnicalDebt
from .base import BaseEntity, PyObjectId
from .file_descriptor import FileDescriptor
from .integration import (
    Integration,
    IntegrationSettings,
    IntegrationType,
    NotificationChannels,
    WebhookConfig,
)
from .integration_run import IntegrationRun, IntegrationRunStatus
from .scan_job import (
    FileResult,
    ModernizationPriority,
    ScanJob,
    ScanJobStatus,
    ScanProgress,
    ScanSummary,
)

__all__ = [
    # Base
    "BaseEntity",
    "PyObjectId",
    # Analysis
    "AnalysisOutcome",
    "DebtCategory",
    "Issue",
    "Severity",
    "TechnicalDebt",
    "FileDescriptor",
    # Scan jobs
    "FileResult",
    "ModernizationPriority",
    "ScanJob",
    "ScanJobStatus",
    "ScanProgress",
    "ScanSummary",
    # CI/CD
    "Integration",
    "IntegrationSettings",
    "IntegrationType",
    "NotificationChannels",
    "WebhookConfig",
    "IntegrationRun",
    "IntegrationRunStatus",
]
