"""
CI/CD Integration Entity - webhook configuration for one repository/branch.

Collection: integrations
"""

from __future__ import annotations

import secrets
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from .base import BaseEntity


class IntegrationType(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    JENKINS = "jenkins"
    AZURE = "azure"
    CUSTOM = "custom"


def generate_webhook_secret() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


class WebhookConfig(BaseModel):
    secret: str = Field(default_factory=generate_webhook_secret)
    events: List[str] = Field(default_factory=lambda: ["push", "pull_request"])


class NotificationChannels(BaseModel):
    """Chat webhook URL per channel. Unset channels are skipped."""

    slack: Optional[str] = None
    teams: Optional[str] = None


class IntegrationSettings(BaseModel):
    auto_analyze: bool = True
    fail_on_issues: bool = False
    max_issues: int = 10
    layers: Union[List[int], str] = "auto"
    notifications: NotificationChannels = Field(default_factory=NotificationChannels)


class Integration(BaseEntity):
    """A CI/CD integration that receives webhook events and triggers runs."""

    name: str
    type: IntegrationType
    owner_id: str
    repository: str
    branch: str = "main"
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    settings: IntegrationSettings = Field(default_factory=IntegrationSettings)
    is_active: bool = True
    last_run_at: Optional[datetime] = None
    total_runs: int = 0
    success_rate: int = 0
