"""CI/CD integration endpoints: configuration, run history and webhook intake."""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from codescan.api.deps import get_integration_repo, get_run_repo, get_webhook_runner
from codescan.config import settings
from codescan.core.tracing import TracingContext
from codescan.dtos.integration import (
    IntegrationCreateRequest,
    IntegrationCreateResponse,
    IntegrationUpdateRequest,
    WebhookAcceptedResponse,
    WebhookIgnoredResponse,
    WebhookInfoResponse,
)
from codescan.entities.integration import Integration, IntegrationType
from codescan.entities.integration_run import IntegrationRunStatus
from codescan.repositories.integration import IntegrationRepository
from codescan.repositories.integration_run import IntegrationRunRepository
from codescan.services.integration_runner import WebhookError, WebhookRunRunner
from codescan.tasks.integration import process_integration_run

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def _webhook_url(integration_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/integrations/{integration_id}/webhook"


def _get_integration_or_404(
    integration_id: str, repo: IntegrationRepository
) -> Integration:
    integration = repo.find_by_id(integration_id)
    if integration is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Integration not found"
        )
    return integration


def _integration_view(integration: Integration) -> Dict[str, Any]:
    """Stored integration minus the webhook secret, plus its webhook URL."""
    view = integration.model_dump(mode="json", exclude={"webhook": {"secret"}})
    view["webhook_url"] = _webhook_url(str(integration.id))
    return view


@router.post(
    "",
    response_model=IntegrationCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_integration(
    payload: IntegrationCreateRequest,
    repo: IntegrationRepository = Depends(get_integration_repo),
):
    """Register a CI/CD integration and hand back its webhook URL and secret."""
    try:
        integration_type = IntegrationType(payload.type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid integration type: {payload.type}",
        )

    integration = repo.create_integration(
        Integration(
            name=payload.name,
            type=integration_type,
            owner_id=payload.owner_id,
            repository=payload.repository,
            branch=payload.branch,
            settings=payload.settings,
        )
    )
    integration_id = str(integration.id)
    logger.info(f"Created {integration.type} integration {integration_id} for {integration.repository}")

    return IntegrationCreateResponse(
        id=integration_id,
        name=integration.name,
        type=integration.type,
        repository=integration.repository,
        branch=integration.branch,
        webhook_url=_webhook_url(integration_id),
        webhook_secret=integration.webhook.secret,
        events=integration.webhook.events,
    )


@router.get("")
def list_integrations(
    owner_id: str,
    repo: IntegrationRepository = Depends(get_integration_repo),
    run_repo: IntegrationRunRepository = Depends(get_run_repo),
):
    """All integrations of an owner, each with its five most recent runs."""
    items = []
    for integration in repo.find_by_owner(owner_id):
        view = _integration_view(integration)
        view["recent_runs"] = [
            run.model_dump(mode="json")
            for run in run_repo.find_recent(integration.id, limit=5)
        ]
        items.append(view)
    return {
        "integrations": items,
        "total": len(items),
        "supported_types": [t.value for t in IntegrationType],
    }


@router.get("/{integration_id}")
def get_integration(
    integration_id: str,
    repo: IntegrationRepository = Depends(get_integration_repo),
    run_repo: IntegrationRunRepository = Depends(get_run_repo),
):
    integration = _get_integration_or_404(integration_id, repo)
    return {
        "integration": _integration_view(integration),
        "runs": [
            run.model_dump(mode="json") for run in run_repo.find_recent(integration.id)
        ],
    }


@router.patch("/{integration_id}")
def update_integration(
    integration_id: str,
    payload: IntegrationUpdateRequest,
    repo: IntegrationRepository = Depends(get_integration_repo),
):
    """Change settings, branch or activation. Owner and webhook stay as created."""
    _get_integration_or_404(integration_id, repo)
    updates = payload.model_dump(exclude_unset=True)
    if payload.settings is not None:
        # settings is replaced as a whole block
        updates["settings"] = payload.settings.model_dump()
    updated = repo.update_integration(integration_id, updates)
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Integration not found"
        )
    logger.info(f"Updated integration {integration_id}: {sorted(payload.model_fields_set)}")
    return {"integration": _integration_view(updated)}


@router.delete("/{integration_id}")
def delete_integration(
    integration_id: str,
    repo: IntegrationRepository = Depends(get_integration_repo),
    run_repo: IntegrationRunRepository = Depends(get_run_repo),
):
    """Remove the integration together with its run history."""
    integration = _get_integration_or_404(integration_id, repo)
    repo.delete_by_id(integration.id)
    removed_runs = run_repo.delete_for_integration(integration.id)
    logger.info(f"Deleted integration {integration_id} and {removed_runs} runs")
    return {"success": True}


@router.get("/{integration_id}/runs")
def list_integration_runs(
    integration_id: str,
    limit: int = 20,
    repo: IntegrationRepository = Depends(get_integration_repo),
    run_repo: IntegrationRunRepository = Depends(get_run_repo),
) -> List[dict]:
    """Most recent runs first."""
    integration = _get_integration_or_404(integration_id, repo)
    runs = run_repo.find_recent(integration.id, limit=limit)
    return [run.model_dump(mode="json") for run in runs]


@router.get("/{integration_id}/webhook", response_model=WebhookInfoResponse)
def get_webhook_info(
    integration_id: str,
    repo: IntegrationRepository = Depends(get_integration_repo),
):
    integration = _get_integration_or_404(integration_id, repo)
    return WebhookInfoResponse(
        webhook_url=_webhook_url(integration_id),
        events=integration.webhook.events,
        last_run_at=integration.last_run_at,
        total_runs=integration.total_runs,
        success_rate=integration.success_rate,
        is_active=integration.is_active,
    )


def _abandon_run(runner: WebhookRunRunner, run, exc: Exception) -> None:
    runner.run_repo.append_log(run.id, f"Processing failed: could not queue run ({exc})")
    runner.run_repo.finish(
        run, IntegrationRunStatus.FAILED, {"error": f"Failed to queue run: {exc}"}
    )


@router.post("/{integration_id}/webhook")
async def receive_webhook(
    integration_id: str,
    request: Request,
    runner: WebhookRunRunner = Depends(get_webhook_runner),
):
    """
    Accept a CI/CD event.

    The signature is computed over the exact request bytes, so the body is
    read raw rather than through a pydantic body parameter.
    """
    raw_body = await request.body()
    TracingContext.set(integration_id=integration_id)

    try:
        result = await run_in_threadpool(
            runner.intake, integration_id, raw_body, dict(request.headers)
        )
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    if not result.accepted:
        return WebhookIgnoredResponse(message=result.message)

    run_id = str(result.run.id)
    try:
        process_integration_run.delay(
            run_id=run_id,
            payload=result.payload.model_dump(mode="json", by_alias=True),
            correlation_id=TracingContext.generate_correlation_id(),
        )
    except Exception as exc:
        logger.exception(f"Failed to queue integration run {run_id}")
        await run_in_threadpool(_abandon_run, runner, result.run, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Run queue unavailable, please retry later",
        )

    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=WebhookAcceptedResponse(run_id=run_id, message=result.message).model_dump(),
    )
