"""In-memory stand-ins for the MongoDB repositories and the analyzer."""

from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId

from codescan.entities.analysis import AnalysisOutcome, Issue
from codescan.entities.integration import Integration
from codescan.entities.integration_run import IntegrationRun, IntegrationRunStatus
from codescan.repositories.integration import PROTECTED_FIELDS
from codescan.entities.scan_job import (
    FileResult,
    ScanJob,
    ScanJobStatus,
    ScanProgress,
    ScanSummary,
)
from codescan.services.analyzer import calculate_technical_debt
from codescan.utils.datetime import elapsed_ms, utc_now


class FakeScanJobRepository:
    def __init__(self):
        self.jobs: Dict[str, ScanJob] = {}
        self.progress_history: List[ScanProgress] = []
        self.heartbeats = 0

    def _get(self, job_id) -> Optional[ScanJob]:
        return self.jobs.get(str(job_id))

    def create_job(self, owner_id, repository, branch, total_files, options=None):
        job = ScanJob(
            id=ObjectId(),
            owner_id=owner_id,
            repository=repository,
            branch=branch,
            progress=ScanProgress(total=total_files),
            options=options or {},
        )
        self.jobs[str(job.id)] = job
        return job

    def find_by_id(self, job_id):
        return self._get(job_id)

    def mark_running(self, job_id):
        job = self._get(job_id)
        if job is None or job.status != ScanJobStatus.PENDING.value:
            return None
        job.status = ScanJobStatus.RUNNING.value
        job.started_at = job.heartbeat_at = utc_now()
        return job

    def update_progress(self, job_id, progress):
        if progress.current > progress.total:
            raise ValueError("progress.current exceeds total")
        job = self._get(job_id)
        if (
            job is None
            or job.status != ScanJobStatus.RUNNING.value
            or job.progress.current > progress.current
        ):
            return None
        job.progress = progress
        job.heartbeat_at = utc_now()
        self.progress_history.append(progress)
        return job

    def touch_heartbeat(self, job_id):
        job = self._get(job_id)
        if job is None or job.status != ScanJobStatus.RUNNING.value:
            return False
        job.heartbeat_at = utc_now()
        self.heartbeats += 1
        return True

    def append_file_result(self, job_id, result: FileResult):
        job = self._get(job_id)
        if job is None or job.status != ScanJobStatus.RUNNING.value:
            return False
        job.file_results.append(result)
        job.heartbeat_at = utc_now()
        return True

    def complete(self, job_id, summary: ScanSummary):
        job = self._get(job_id)
        if job is None or job.status != ScanJobStatus.RUNNING.value:
            return None
        job.status = ScanJobStatus.COMPLETED.value
        job.summary = summary
        job.completed_at = utc_now()
        return job

    def fail(self, job_id, error):
        job = self._get(job_id)
        if job is None or job.status not in (
            ScanJobStatus.PENDING.value,
            ScanJobStatus.RUNNING.value,
        ):
            return None
        job.status = ScanJobStatus.FAILED.value
        job.error = error
        job.completed_at = utc_now()
        return job

    def find_stale_running(self, cutoff):
        return [
            job
            for job in self.jobs.values()
            if job.status == ScanJobStatus.RUNNING.value
            and job.heartbeat_at is not None
            and job.heartbeat_at < cutoff
        ]

    def find_by_owner(self, owner_id, skip=0, limit=20):
        jobs = sorted(
            (j for j in self.jobs.values() if j.owner_id == owner_id),
            key=lambda j: j.created_at,
            reverse=True,
        )
        return jobs[skip : skip + limit], len(jobs)


class FakeIntegrationRepository:
    def __init__(self, *integrations: Integration):
        self.integrations: Dict[str, Integration] = {}
        self.success_rates: List[int] = []
        for integration in integrations:
            self.add(integration)

    def add(self, integration: Integration) -> Integration:
        if integration.id is None:
            integration.id = ObjectId()
        self.integrations[str(integration.id)] = integration
        return integration

    def create_integration(self, integration):
        return self.add(integration)

    def find_by_id(self, integration_id):
        return self.integrations.get(str(integration_id))

    def find_active(self, integration_id):
        integration = self.find_by_id(integration_id)
        if integration is None or not integration.is_active:
            return None
        return integration

    def find_by_owner(self, owner_id):
        return [i for i in self.integrations.values() if i.owner_id == owner_id]

    def update_integration(self, integration_id, updates):
        integration = self.find_by_id(integration_id)
        if integration is None:
            return None
        merged = integration.model_dump()
        merged.update(
            {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}
        )
        updated = Integration.model_validate(merged)
        self.integrations[str(integration_id)] = updated
        return updated

    def delete_by_id(self, integration_id):
        return self.integrations.pop(str(integration_id), None) is not None

    def record_run_started(self, integration_id):
        integration = self.find_by_id(integration_id)
        integration.total_runs += 1
        integration.last_run_at = utc_now()

    def update_success_rate(self, integration_id, success_rate):
        self.success_rates.append(success_rate)
        integration = self.find_by_id(integration_id)
        integration.success_rate = success_rate
        return integration


class FakeIntegrationRunRepository:
    def __init__(self):
        self.runs: Dict[str, IntegrationRun] = {}

    def create_run(self, run: IntegrationRun) -> IntegrationRun:
        run.id = ObjectId()
        self.runs[str(run.id)] = run
        return run

    def find_by_id(self, run_id):
        return self.runs.get(str(run_id))

    def append_log(self, run_id, message):
        run = self.find_by_id(run_id)
        run.log_lines.append(message)
        run.heartbeat_at = utc_now()

    def mark_running(self, run_id):
        run = self.find_by_id(run_id)
        if run is None or run.status != IntegrationRunStatus.PENDING.value:
            return None
        run.status = IntegrationRunStatus.RUNNING.value
        run.heartbeat_at = utc_now()
        return run

    def finish(self, run, status, metrics=None):
        stored = self.find_by_id(run.id)
        if stored is None or stored.status not in (
            IntegrationRunStatus.PENDING.value,
            IntegrationRunStatus.RUNNING.value,
        ):
            return None
        updates = dict(metrics or {})
        updates["file_results"] = [
            FileResult.model_validate(r) for r in updates.get("file_results", [])
        ]
        for key, value in updates.items():
            setattr(stored, key, value)
        stored.status = IntegrationRunStatus(status).value
        stored.completed_at = utc_now()
        stored.duration_ms = elapsed_ms(stored.started_at, stored.completed_at)
        return stored

    def count_completed(self, integration_id):
        runs = [r for r in self.runs.values() if str(r.integration_id) == str(integration_id)]
        completed = [
            r
            for r in runs
            if r.status
            not in (IntegrationRunStatus.PENDING.value, IntegrationRunStatus.RUNNING.value)
        ]
        successful = [r for r in completed if r.status == IntegrationRunStatus.SUCCESS.value]
        return len(successful), len(completed)

    def find_recent(self, integration_id, limit=20):
        runs = [r for r in self.runs.values() if str(r.integration_id) == str(integration_id)]
        return sorted(runs, key=lambda r: r.started_at, reverse=True)[:limit]

    def delete_for_integration(self, integration_id):
        doomed = [
            key
            for key, run in self.runs.items()
            if str(run.integration_id) == str(integration_id)
        ]
        for key in doomed:
            del self.runs[key]
        return len(doomed)

    def find_stale_running(self, cutoff):
        return [
            run
            for run in self.runs.values()
            if run.status == IntegrationRunStatus.RUNNING.value
            and run.heartbeat_at is not None
            and run.heartbeat_at < cutoff
        ]


def make_outcome(
    issue_count: int = 0, severity: str = "medium", confidence: float = 0.9, layers=None
) -> AnalysisOutcome:
    issues = [
        Issue(type=f"issue-{i}", severity=severity, description="found")
        for i in range(issue_count)
    ]
    return AnalysisOutcome(
        success=True,
        issues=issues,
        confidence=confidence,
        recommended_layers=layers or [],
        technical_debt=calculate_technical_debt(issues),
    )


class FakeAnalyzer:
    """Returns a fixed outcome, or whatever `behaviour(content, path)` yields or raises."""

    def __init__(
        self,
        outcome: Optional[AnalysisOutcome] = None,
        behaviour: Optional[Callable[[str, str], AnalysisOutcome]] = None,
    ):
        self.outcome = outcome or make_outcome()
        self.behaviour = behaviour
        self.calls: List[Dict[str, Any]] = []

    def analyze(self, content, path, options=None):
        self.calls.append({"content": content, "path": path, "options": options})
        if self.behaviour is not None:
            return self.behaviour(content, path)
        return self.outcome
