"""CI/CD integration DTOs - webhook payloads and API responses."""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from codescan.entities.integration import IntegrationSettings

# =============================================================================
# Inbound webhook payload
# =============================================================================


class WebhookRepository(BaseModel):
    name: str
    url: Optional[str] = None
    branch: str


class WebhookAuthor(BaseModel):
    name: str = "unknown"
    email: Optional[str] = None


class WebhookCommit(BaseModel):
    id: str
    message: Optional[str] = None
    author: Union[WebhookAuthor, str] = Field(default_factory=WebhookAuthor)
    timestamp: Optional[str] = None
    url: Optional[str] = None

    @property
    def author_name(self) -> str:
        if isinstance(self.author, str):
            return self.author
        return self.author.name


class WebhookFile(BaseModel):
    filename: str
    content: str = ""
    # Only "removed" is acted on; providers send others such as "renamed".
    status: str = "modified"


class WebhookPullRequest(BaseModel):
    number: Optional[int] = None
    title: Optional[str] = None
    url: Optional[str] = None
    base: Optional[str] = None
    head: Optional[str] = None


class WebhookPayload(BaseModel):
    """Normalized CI/CD event body accepted by the webhook endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    event: str
    repository: WebhookRepository
    commit: WebhookCommit
    files: List[WebhookFile] = Field(default_factory=list)
    pull_request: Optional[WebhookPullRequest] = Field(None, alias="pullRequest")


# =============================================================================
# API DTOs
# =============================================================================


class WebhookAcceptedResponse(BaseModel):
    success: bool = True
    run_id: str
    message: str = "Webhook received, processing started"


class WebhookIgnoredResponse(BaseModel):
    message: str


class IntegrationCreateRequest(BaseModel):
    name: str
    type: str = Field(..., description="One of github, gitlab, jenkins, azure, custom")
    owner_id: str
    repository: str
    branch: str = "main"
    settings: IntegrationSettings = Field(default_factory=IntegrationSettings)


class IntegrationCreateResponse(BaseModel):
    id: str
    name: str
    type: str
    repository: str
    branch: str
    webhook_url: str
    webhook_secret: str
    events: List[str]


class WebhookInfoResponse(BaseModel):
    webhook_url: str
    events: List[str]
    last_run_at: Optional[datetime] = None
    total_runs: int
    success_rate: int
    is_active: bool


class IntegrationUpdateRequest(BaseModel):
    """Editable fields only; owner and webhook credentials cannot be changed."""

    name: Optional[str] = None
    repository: Optional[str] = None
    branch: Optional[str] = None
    is_active: Optional[bool] = None
    settings: Optional[IntegrationSettings] = None
