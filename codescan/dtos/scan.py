"""Repository scan DTOs."""

from typing import Optional

from pydantic import BaseModel, Field

from codescan.entities.scan_job import ScanProgress


class ScanStartRequest(BaseModel):
    owner_id: str
    repository: str = Field(..., description="owner/name")
    branch: str = "main"
    layers: Optional[str] = None


class ScanStartResponse(BaseModel):
    scan_id: str
    status: str = "started"
    message: str = "Repository scan started successfully"
    estimated_time: int = Field(..., description="Seconds, two per file")
    progress: ScanProgress
