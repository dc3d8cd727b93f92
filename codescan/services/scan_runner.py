"""
Scan job runner - repository-wide analysis.

State machine: pending -> running -> completed | failed.

Files are processed strictly one after another so the job never competes
with itself for the shared GitHub rate-limit budget. A file whose fetch or
analysis fails is recorded as a failed result and the loop moves on; only an
error outside the per-file loop fails the whole job.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from codescan.core.tracing import TracingContext
from codescan.entities.file_descriptor import FileDescriptor
from codescan.entities.scan_job import FileResult, ScanJob, ScanProgress
from codescan.repositories.scan_job import ScanJobRepository
from codescan.services.analyzer import Analyzer
from codescan.services.file_discovery import FileDiscoveryCrawler
from codescan.services.github.github_client import GithubClient
from codescan.services.scan_summary import build_summary
from codescan.utils.numbers import round_half_up

logger = logging.getLogger(__name__)


class JobNotFoundError(Exception):
    """Raised when a scan job id does not resolve to a record."""


class NoEligibleFilesError(Exception):
    """Raised when discovery finds nothing to analyze."""


class JobInterruptedError(Exception):
    """Raised when a job stops being `running` underneath the worker."""


def compute_progress(
    index: int, total: int, elapsed_ms: float, current_file_path: str
) -> ScanProgress:
    """Progress at the start of file `index` (0-based)."""
    done = index + 1
    return ScanProgress(
        current=done,
        total=total,
        percentage=round_half_up(100 * done / total),
        current_file_path=current_file_path,
        estimated_seconds_remaining=round_half_up(
            (elapsed_ms / done) * (total - done) / 1000
        ),
    )


class ScanJobRunner:
    """Creates scan jobs and drives them to a terminal state."""

    def __init__(
        self,
        job_repo: ScanJobRepository,
        analyzer: Analyzer,
        client_factory: Callable[[str], GithubClient] = GithubClient,
        crawler_factory: Callable[[GithubClient], FileDiscoveryCrawler] = FileDiscoveryCrawler,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.job_repo = job_repo
        self.analyzer = analyzer
        self._client_factory = client_factory
        self._crawler_factory = crawler_factory
        self._clock = clock

    def start(
        self,
        owner_id: str,
        repository: str,
        branch: str,
        token: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[ScanJob, List[FileDescriptor]]:
        """
        Discover eligible files and create the pending job.

        Raises GithubError when the repository root cannot be listed and
        NoEligibleFilesError when nothing matches the discovery policy; no
        job is created in either case.
        """
        with self._client_factory(token) as gh:
            files = self._crawler_factory(gh).discover(
                repository, branch, raise_on_root_error=True
            )
        if not files:
            raise NoEligibleFilesError(f"No eligible files found in {repository}@{branch}")
        job = self.create_job(owner_id, repository, branch, files, options)
        logger.info(
            "Created scan job %s for %s@%s with %d files",
            job.id,
            repository,
            branch,
            len(files),
        )
        return job, files

    def create_job(
        self,
        owner_id: str,
        repository: str,
        branch: str,
        files: List[FileDescriptor],
        options: Optional[Dict[str, Any]] = None,
    ) -> ScanJob:
        return self.job_repo.create_job(
            owner_id, repository, branch, total_files=len(files), options=options
        )

    def get_job(self, job_id: str) -> ScanJob:
        job = self.job_repo.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(f"Scan job {job_id} not found")
        return job

    def list_jobs(
        self, owner_id: str, skip: int = 0, limit: int = 20
    ) -> Tuple[List[ScanJob], int]:
        return self.job_repo.find_by_owner(owner_id, skip=skip, limit=limit)

    def run(
        self,
        job_id: str,
        files: Iterable[FileDescriptor | Dict[str, Any]],
        token: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[ScanJob]:
        """Run a pending job to completion. Returns the final job record."""
        TracingContext.set(job_id=str(job_id))
        job = self.job_repo.mark_running(job_id)
        if job is None:
            logger.warning("Scan job %s is not pending, refusing to run it", job_id)
            return self.job_repo.find_by_id(job_id)

        try:
            descriptors = [FileDescriptor.model_validate(f) for f in files]
            with self._client_factory(token) as gh:
                gh.heartbeat = lambda: self.job_repo.touch_heartbeat(job_id)
                results = self._process_files(job_id, descriptors, gh, options or {})
            summary = build_summary(results)
        except JobInterruptedError as exc:
            logger.warning("Scan job %s stopped: %s", job_id, exc)
            return self.job_repo.find_by_id(job_id)
        except Exception as exc:
            logger.exception("Scan job %s failed", job_id)
            return self.job_repo.fail(job_id, str(exc) or exc.__class__.__name__)

        logger.info(
            "Scan job %s completed: %d/%d files analyzed, %d issues",
            job_id,
            summary.analyzed_files,
            summary.total_files,
            summary.issues_found,
        )
        return self.job_repo.complete(job_id, summary)

    def _process_files(
        self,
        job_id: str,
        files: List[FileDescriptor],
        gh: GithubClient,
        options: Dict[str, Any],
    ) -> List[FileResult]:
        total = len(files)
        started = self._clock()
        results: List[FileResult] = []

        for index, descriptor in enumerate(files):
            elapsed_ms = (self._clock() - started) * 1000
            self.job_repo.update_progress(
                job_id, compute_progress(index, total, elapsed_ms, descriptor.path)
            )
            result = self._process_file(descriptor, gh, options)
            if not self.job_repo.append_file_result(job_id, result):
                raise JobInterruptedError(
                    f"job is no longer running after {len(results)} of {total} files"
                )
            results.append(result)

        return results

    def _process_file(
        self, descriptor: FileDescriptor, gh: GithubClient, options: Dict[str, Any]
    ) -> FileResult:
        file_started = self._clock()
        try:
            content = gh.download_file(descriptor.download_ref)
            outcome = self.analyzer.analyze(content, descriptor.path, options)
        except Exception as exc:
            logger.warning("Failed to analyze %s: %s", descriptor.path, exc)
            return FileResult(
                path=descriptor.path,
                success=False,
                error_message=str(exc) or exc.__class__.__name__,
                elapsed_ms=self._elapsed_ms(file_started),
                language=descriptor.language,
                size_bytes=descriptor.size_bytes,
            )

        return FileResult(
            path=descriptor.path,
            success=True,
            issues=outcome.issues,
            elapsed_ms=self._elapsed_ms(file_started),
            language=descriptor.language,
            size_bytes=descriptor.size_bytes,
            confidence=outcome.confidence,
            recommended_layers=outcome.recommended_layers,
            technical_debt=outcome.technical_debt,
            estimated_impact=outcome.estimated_impact,
        )

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)
