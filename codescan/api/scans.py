"""Repository scan endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from codescan.api.deps import get_scan_runner
from codescan.core.tracing import TracingContext
from codescan.dtos.scan import ScanStartRequest, ScanStartResponse
from codescan.services.github.exceptions import GithubConfigurationError
from codescan.services.scan_runner import (
    JobNotFoundError,
    NoEligibleFilesError,
    ScanJobRunner,
)
from codescan.tasks.scan import run_repository_scan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scans", tags=["Scans"])

SECONDS_PER_FILE = 2


@router.post(
    "",
    response_model=ScanStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def start_scan(
    payload: ScanStartRequest,
    x_github_token: Optional[str] = Header(None, alias="X-GitHub-Token"),
    runner: ScanJobRunner = Depends(get_scan_runner),
):
    """Discover eligible files, create a pending job and queue the scan."""
    if not x_github_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="GitHub access token required",
        )

    options: Dict[str, Any] = {}
    if payload.layers:
        options["layers"] = payload.layers

    try:
        job, files = runner.start(
            payload.owner_id,
            payload.repository,
            payload.branch,
            x_github_token,
            options,
        )
    except GithubConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except NoEligibleFilesError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    correlation_id = TracingContext.generate_correlation_id()
    try:
        run_repository_scan.delay(
            job_id=str(job.id),
            files=[f.model_dump() for f in files],
            token=x_github_token,
            options=options,
            correlation_id=correlation_id,
        )
    except Exception as exc:
        logger.exception(f"Failed to queue scan job {job.id}")
        runner.job_repo.fail(job.id, f"Failed to queue scan: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scan queue unavailable, please retry later",
        )
    logger.info(f"Queued scan job {job.id} for {payload.repository}@{payload.branch}")

    return ScanStartResponse(
        scan_id=str(job.id),
        estimated_time=len(files) * SECONDS_PER_FILE,
        progress=job.progress,
    )


@router.get("")
def list_scans(
    owner_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    runner: ScanJobRunner = Depends(get_scan_runner),
):
    """An owner's scan jobs, newest first."""
    jobs, total = runner.list_jobs(owner_id, skip=skip, limit=limit)
    return {
        "items": [job.model_dump(mode="json") for job in jobs],
        "total": total,
        "skip": skip,
        "limit": limit,
    }


@router.get("/{scan_id}")
def get_scan(scan_id: str, runner: ScanJobRunner = Depends(get_scan_runner)):
    """Current state of a scan job: progress, partial results and summary."""
    try:
        job = runner.get_job(scan_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return job.model_dump(mode="json")
