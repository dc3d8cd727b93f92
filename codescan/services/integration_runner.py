"""
CI/CD webhook runner.

Intake (synchronous, inside the HTTP request):
    integration lookup -> signature check -> payload parse -> event/branch
    filter -> pending run created -> run id returned

Run (detached, in a worker):
    pending -> running -> success | failed

Unsigned requests are accepted when no signature header is present at all.
That keeps existing CI senders working but means anyone who knows the
webhook URL can trigger a run; it is logged at WARNING on every occurrence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from codescan.config import settings
from codescan.core.tracing import TracingContext
from codescan.dtos.integration import WebhookFile, WebhookPayload
from codescan.entities.integration import Integration
from codescan.entities.integration_run import IntegrationRun, IntegrationRunStatus
from codescan.entities.scan_job import FileResult
from codescan.repositories.integration import IntegrationRepository
from codescan.repositories.integration_run import IntegrationRunRepository
from codescan.services.analyzer import Analyzer
from codescan.services.file_discovery import has_extension
from codescan.services.notification_service import NotificationSink
from codescan.services.webhook_security import extract_signature, verify_signature
from codescan.utils.datetime import utc_now
from codescan.utils.numbers import round_half_up

logger = logging.getLogger(__name__)


class WebhookError(Exception):
    """Base class for intake rejections. status_code is the HTTP answer."""

    status_code = 400


class WebhookNotFoundError(WebhookError):
    status_code = 404


class WebhookSignatureError(WebhookError):
    status_code = 401


class WebhookPayloadError(WebhookError):
    status_code = 400


@dataclass
class IntakeResult:
    accepted: bool
    message: str
    run: Optional[IntegrationRun] = None
    payload: Optional[WebhookPayload] = None


def calculate_success_rate(successful: int, completed: int) -> int:
    if completed == 0:
        return 0
    return round_half_up(successful / completed * 100)


class WebhookRunRunner:
    def __init__(
        self,
        integration_repo: IntegrationRepository,
        run_repo: IntegrationRunRepository,
        analyzer: Analyzer,
        notifier: Optional[NotificationSink] = None,
        extensions: Optional[List[str]] = None,
    ):
        self.integration_repo = integration_repo
        self.run_repo = run_repo
        self.analyzer = analyzer
        self.notifier = notifier or NotificationSink()
        self.extensions = [ext.lower() for ext in (extensions or settings.WEBHOOK_EXTENSIONS)]

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def intake(
        self, integration_id: str, raw_body: bytes, headers: Mapping[str, str]
    ) -> IntakeResult:
        integration = self.integration_repo.find_active(integration_id)
        if integration is None:
            raise WebhookNotFoundError("Integration not found or inactive")

        signature = extract_signature(headers)
        if signature is None:
            logger.warning(
                "Accepting unsigned webhook for integration %s", integration_id
            )
        elif not verify_signature(raw_body, signature, integration.webhook.secret):
            raise WebhookSignatureError("Invalid signature")

        try:
            payload = WebhookPayload.model_validate_json(raw_body)
        except ValidationError as exc:
            raise WebhookPayloadError("Invalid JSON payload") from exc

        if payload.event not in integration.webhook.events:
            return IntakeResult(accepted=False, message="Event not configured")
        if payload.repository.branch != integration.branch:
            return IntakeResult(accepted=False, message="Branch not configured")
        if not integration.settings.auto_analyze:
            return IntakeResult(accepted=False, message="Auto analysis disabled")

        run = self.run_repo.create_run(
            IntegrationRun(
                integration_id=integration.id,
                commit_sha=payload.commit.id,
                branch=payload.repository.branch,
                author=payload.commit.author_name,
                started_at=utc_now(),
                pull_request_url=payload.pull_request.url if payload.pull_request else None,
            )
        )
        self.run_repo.append_log(run.id, f"Webhook received for commit {payload.commit.id}")
        self.integration_repo.record_run_started(integration.id)
        logger.info(
            "Integration %s accepted %s event, run %s", integration_id, payload.event, run.id
        )
        return IntakeResult(
            accepted=True,
            message="Webhook received, processing started",
            run=run,
            payload=payload,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def eligible_files(self, payload: WebhookPayload) -> List[WebhookFile]:
        return [
            f
            for f in payload.files
            if f.status != "removed" and has_extension(f.filename, self.extensions)
        ]

    def run(
        self, run_id: str, payload: WebhookPayload | Dict[str, Any]
    ) -> Optional[IntegrationRun]:
        TracingContext.set(run_id=str(run_id))
        run = self.run_repo.mark_running(run_id)
        if run is None:
            logger.warning("Integration run %s is not pending, refusing to run it", run_id)
            return self.run_repo.find_by_id(run_id)

        TracingContext.set(integration_id=str(run.integration_id))
        try:
            payload = WebhookPayload.model_validate(payload)
            integration = self.integration_repo.find_by_id(run.integration_id)
            if integration is None:
                raise WebhookNotFoundError(f"Integration {run.integration_id} no longer exists")
            finished = self._analyze_and_decide(run, integration, payload)
        except Exception as exc:
            logger.exception("Integration run %s failed", run_id)
            self.run_repo.append_log(run.id, f"Processing failed: {exc}")
            return self.run_repo.finish(
                run, IntegrationRunStatus.FAILED, {"error": str(exc) or exc.__class__.__name__}
            )

        if finished is not None:
            self._post_process(integration, finished)
        return finished

    def _analyze_and_decide(
        self, run: IntegrationRun, integration: Integration, payload: WebhookPayload
    ) -> Optional[IntegrationRun]:
        self.run_repo.append_log(run.id, "Starting file analysis")
        files = self.eligible_files(payload)

        if not files:
            self.run_repo.append_log(run.id, "No eligible files to analyze")
            return self.run_repo.finish(
                run,
                IntegrationRunStatus.SUCCESS,
                {
                    "files_analyzed": 0,
                    "issues_found": 0,
                    "quality_score_pct": 100,
                    "file_results": [],
                },
            )

        results = self._analyze_files(run, integration, files)

        files_analyzed = len(results)
        issues_found = sum(len(r.issues) for r in results)
        avg_confidence = sum(r.confidence for r in results) / files_analyzed
        quality_score_pct = round_half_up(avg_confidence * 100)
        self.run_repo.append_log(
            run.id,
            f"Analysis complete: {files_analyzed} files, {issues_found} issues, "
            f"{quality_score_pct}% quality",
        )

        rules = integration.settings
        should_fail = rules.fail_on_issues and issues_found > rules.max_issues
        status = IntegrationRunStatus.FAILED if should_fail else IntegrationRunStatus.SUCCESS

        finished = self.run_repo.finish(
            run,
            status,
            {
                "files_analyzed": files_analyzed,
                "issues_found": issues_found,
                "quality_score_pct": quality_score_pct,
                "file_results": [r.model_dump() for r in results],
            },
        )
        if should_fail:
            self.run_repo.append_log(
                run.id,
                f"Build failed: {issues_found} issues exceeds limit of {rules.max_issues}",
            )
        else:
            self.run_repo.append_log(run.id, "Build passed")
        return finished

    def _analyze_files(
        self, run: IntegrationRun, integration: Integration, files: List[WebhookFile]
    ) -> List[FileResult]:
        self.run_repo.append_log(run.id, f"Starting analysis of {len(files)} files")
        options = {"layers": integration.settings.layers, "single_file": True, "dry_run": True}
        results: List[FileResult] = []

        for f in files:
            self.run_repo.append_log(run.id, f"Analyzing {f.filename}...")
            try:
                outcome = self.analyzer.analyze(f.content, f.filename, options)
            except Exception as exc:
                self.run_repo.append_log(run.id, f"Error analyzing {f.filename}: {exc}")
                results.append(
                    FileResult(path=f.filename, success=False, error_message=str(exc))
                )
                continue

            results.append(
                FileResult(
                    path=f.filename,
                    success=True,
                    issues=outcome.issues,
                    confidence=outcome.confidence,
                    recommended_layers=outcome.recommended_layers,
                    technical_debt=outcome.technical_debt,
                    estimated_impact=outcome.estimated_impact,
                )
            )
            self.run_repo.append_log(
                run.id, f"{f.filename}: {len(outcome.issues)} issues found"
            )
        return results

    def _post_process(self, integration: Integration, run: IntegrationRun) -> None:
        """Refresh the integration's success rate and notify. Never raises."""
        try:
            successful, completed = self.run_repo.count_completed(integration.id)
            self.integration_repo.update_success_rate(
                integration.id, calculate_success_rate(successful, completed)
            )
        except Exception:
            logger.exception("Failed to update success rate for %s", integration.id)

        try:
            self.notifier.notify(integration, run)
        except Exception:
            logger.exception("Notification dispatch failed for run %s", run.id)
