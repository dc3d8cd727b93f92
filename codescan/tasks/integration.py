"""CI/CD integration run tasks."""

import logging
from typing import Any, Dict, Optional

from codescan.celery_app import celery_app
from codescan.core.tracing import TracingContext
from codescan.repositories.integration import IntegrationRepository
from codescan.repositories.integration_run import IntegrationRunRepository
from codescan.services.analyzer import get_analyzer
from codescan.services.integration_runner import WebhookRunRunner
from codescan.tasks.base import PipelineTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="codescan.tasks.integration.process_integration_run",
    queue="integrations",
    acks_late=True,
)
def process_integration_run(
    self: PipelineTask,
    run_id: str,
    payload: Dict[str, Any],
    correlation_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Analyze the files of an accepted webhook and finish its run."""
    runner = WebhookRunRunner(
        IntegrationRepository(self.db),
        IntegrationRunRepository(self.db),
        get_analyzer(),
    )
    run = runner.run(run_id, payload)

    if run is None:
        logger.error(f"Integration run {run_id} not found")
        return {"status": "error", "run_id": run_id, "error": "Integration run not found"}

    return {
        "status": run.status,
        "run_id": run_id,
        "correlation_id": TracingContext.get_correlation_id(),
        "files_analyzed": run.files_analyzed,
        "issues_found": run.issues_found,
        "quality_score_pct": run.quality_score_pct,
    }
