"""
Chat notifications for finished integration runs.

Channels:
- Slack: attachment-style message to an incoming webhook
- Teams: MessageCard to an incoming webhook

Delivery is best-effort and at-most-once: each configured channel gets one
POST, failures are logged and never reach the caller, and one channel's
failure does not stop the others.
"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from codescan.config import settings
from codescan.entities.integration import Integration
from codescan.entities.integration_run import IntegrationRun, IntegrationRunStatus
from codescan.templates import chat_templates

logger = logging.getLogger(__name__)

TemplateFn = Callable[..., Dict[str, Any]]

CHANNEL_TEMPLATES: Dict[str, TemplateFn] = {
    "slack": chat_templates.slack_run_completed,
    "teams": chat_templates.teams_run_completed,
}


class NotificationSink:
    """Posts run outcomes to every chat channel configured on an integration."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT
        self._transport = transport

    def notify(self, integration: Integration, run: IntegrationRun) -> None:
        channels = integration.settings.notifications.model_dump()
        for channel, template in CHANNEL_TEMPLATES.items():
            url = channels.get(channel)
            if not url:
                continue
            payload = template(
                repository=integration.repository,
                branch=run.branch,
                commit_sha=run.commit_sha,
                files_analyzed=run.files_analyzed,
                issues_found=run.issues_found,
                quality_score_pct=run.quality_score_pct,
                passed=run.status == IntegrationRunStatus.SUCCESS.value,
            )
            self._post(channel, url, payload)

    def _post(self, channel: str, url: str, payload: Dict[str, Any]) -> bool:
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload)
            if response.is_success:
                logger.info("%s notification sent", channel.capitalize())
                return True
            logger.warning(
                "%s notification failed: %s", channel.capitalize(), response.status_code
            )
            return False
        except Exception as e:
            logger.error(f"{channel.capitalize()} notification error: {e}")
            return False
