import unittest
from unittest.mock import MagicMock, patch

from codescan.entities.integration_run import IntegrationRun
from codescan.entities.scan_job import ScanJob, ScanSummary
from codescan.tasks.integration import process_integration_run
from codescan.tasks.maintenance import flag_stale_jobs
from codescan.tasks.scan import run_repository_scan
from codescan.utils.datetime import utc_now


class TaskTestCase(unittest.TestCase):
    def setUp(self):
        patcher = patch("codescan.tasks.base.get_database", return_value=MagicMock())
        patcher.start()
        self.addCleanup(patcher.stop)
        # Task instances are singletons; drop any handle cached by another test.
        for task in (run_repository_scan, process_integration_run, flag_stale_jobs):
            task._db = None


class TestRunRepositoryScan(TaskTestCase):
    @patch("codescan.tasks.scan.get_analyzer")
    @patch("codescan.tasks.scan.ScanJobRunner")
    def test_runs_job_and_reports(self, MockRunner, mock_get_analyzer):
        job = ScanJob(
            owner_id="user-1",
            repository="acme/app",
            status="completed",
            summary=ScanSummary(total_files=2, analyzed_files=2),
        )
        MockRunner.return_value.run.return_value = job
        files = [{"path": "a.ts"}]

        result = run_repository_scan("job-1", files, "token", {"layers": [1]})

        MockRunner.return_value.run.assert_called_once_with(
            "job-1", files, "token", {"layers": [1]}
        )
        self.assertEqual(result["status"], "completed")
        self.assertEqual(result["analyzed_files"], 2)

    @patch("codescan.tasks.scan.get_analyzer")
    @patch("codescan.tasks.scan.ScanJobRunner")
    def test_missing_job(self, MockRunner, mock_get_analyzer):
        MockRunner.return_value.run.return_value = None

        result = run_repository_scan("job-404", [], "token")

        self.assertEqual(result["status"], "error")


class TestProcessIntegrationRun(TaskTestCase):
    @patch("codescan.tasks.integration.get_analyzer")
    @patch("codescan.tasks.integration.WebhookRunRunner")
    def test_runs_and_reports(self, MockRunner, mock_get_analyzer):
        run = IntegrationRun(
            integration_id="64b7f0c2a1b2c3d4e5f60718",
            commit_sha="abc",
            branch="main",
            status="failed",
            started_at=utc_now(),
            files_analyzed=3,
            issues_found=12,
            quality_score_pct=70,
        )
        MockRunner.return_value.run.return_value = run

        result = process_integration_run("run-1", {"event": "push"})

        MockRunner.return_value.run.assert_called_once_with("run-1", {"event": "push"})
        self.assertEqual(result["status"], "failed")
        self.assertEqual(result["issues_found"], 12)
        self.assertEqual(result["quality_score_pct"], 70)


class TestFlagStaleJobs(TaskTestCase):
    @patch("codescan.tasks.maintenance.fail_stale_work")
    def test_uses_configured_threshold(self, mock_fail):
        mock_fail.return_value = {"failed_jobs": 2, "failed_runs": 0}

        result = flag_stale_jobs()

        self.assertEqual(mock_fail.call_args.args[1], 30)
        self.assertEqual(result["status"], "success")
        self.assertEqual(result["failed_jobs"], 2)

    @patch("codescan.tasks.maintenance.fail_stale_work")
    def test_reports_sweep_errors(self, mock_fail):
        mock_fail.side_effect = RuntimeError("mongo down")

        result = flag_stale_jobs(minutes=10)

        self.assertEqual(result["status"], "failed")
        self.assertEqual(result["error"], "mongo down")


if __name__ == "__main__":
    unittest.main()
