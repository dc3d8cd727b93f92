"""Repository layer for database operations"""

from .base import BaseRepository
from .integration import IntegrationRepository
from .integration_run import IntegrationRunRepository
from .scan_job import ScanJobRepository

__all__ = [
    "BaseRepository",
    "IntegrationRepository",
    "IntegrationRunRepository",
    "ScanJobRepository",
]
