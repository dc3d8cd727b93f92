import json
import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from codescan.api.deps import (
    get_integration_repo,
    get_run_repo,
    get_scan_runner,
    get_webhook_runner,
)
from codescan.database.mongo import get_db
from codescan.entities.file_descriptor import FileDescriptor
from codescan.entities.integration import Integration
from codescan.main import app
from codescan.services.github.exceptions import (
    ApiErrorClassification,
    GithubApiError,
    GithubRateLimitError,
)
from codescan.services.integration_runner import WebhookRunRunner
from codescan.services.scan_runner import ScanJobRunner
from codescan.services.webhook_security import sign_payload
from tests.fakes import (
    FakeAnalyzer,
    FakeIntegrationRepository,
    FakeIntegrationRunRepository,
    FakeScanJobRepository,
)


class _NullGithub:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None


def _descriptor(path):
    return FileDescriptor(
        path=path,
        name=path,
        size_bytes=1,
        content_hash="sha",
        language="TypeScript",
        download_ref=f"https://raw.example.test/{path}",
    )


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self.addCleanup(app.dependency_overrides.clear)


class TestScanEndpoints(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.repo = FakeScanJobRepository()
        self.crawler = MagicMock()
        self.runner = ScanJobRunner(
            self.repo,
            FakeAnalyzer(),
            client_factory=lambda token: _NullGithub(),
            crawler_factory=lambda gh: self.crawler,
        )
        app.dependency_overrides[get_scan_runner] = lambda: self.runner
        patcher = patch("codescan.api.scans.run_repository_scan")
        self.task = patcher.start()
        self.addCleanup(patcher.stop)

    def _start(self, headers=None):
        return self.client.post(
            "/api/scans",
            json={"owner_id": "user-1", "repository": "acme/app", "branch": "main"},
            headers={"X-GitHub-Token": "ghp_test"} if headers is None else headers,
        )

    def test_start_scan_queues_job(self):
        self.crawler.discover.return_value = [_descriptor("a.ts"), _descriptor("b.ts")]

        response = self._start()

        self.assertEqual(response.status_code, 202)
        body = response.json()
        self.assertEqual(body["status"], "started")
        self.assertEqual(body["estimated_time"], 4)
        self.assertEqual(body["progress"]["total"], 2)
        self.assertIn(body["scan_id"], self.repo.jobs)
        kwargs = self.task.delay.call_args.kwargs
        self.assertEqual(kwargs["job_id"], body["scan_id"])
        self.assertEqual(kwargs["token"], "ghp_test")
        self.assertEqual([f["path"] for f in kwargs["files"]], ["a.ts", "b.ts"])

    def test_missing_token(self):
        response = self._start(headers={})
        self.assertEqual(response.status_code, 401)
        self.task.delay.assert_not_called()

    def test_no_eligible_files(self):
        self.crawler.discover.return_value = []

        response = self._start()

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.repo.jobs, {})
        self.task.delay.assert_not_called()

    def test_github_errors_are_mapped(self):
        self.crawler.discover.side_effect = GithubApiError(
            "Repository not found or access denied.",
            status_code=404,
            classification=ApiErrorClassification.NOT_FOUND,
        )

        response = self._start()

        self.assertEqual(response.status_code, 404)
        error = response.json()["error"]
        self.assertEqual(error["code"], "NOT_FOUND")
        self.assertEqual(error["classification"], "not_found")

    def test_rate_limit_is_mapped(self):
        self.crawler.discover.side_effect = GithubRateLimitError("exhausted", retry_after=12.5)

        response = self._start()

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.headers["Retry-After"], "12")
        self.assertEqual(response.json()["error"]["code"], "RATE_LIMITED")

    def test_queue_failure_fails_the_job(self):
        self.crawler.discover.return_value = [_descriptor("a.ts")]
        self.task.delay.side_effect = ConnectionError("broker down")

        response = self._start()

        self.assertEqual(response.status_code, 503)
        (job,) = self.repo.jobs.values()
        self.assertEqual(job.status, "failed")
        self.assertIn("broker down", job.error)

    def test_list_scans_for_owner(self):
        for repository in ("acme/app", "acme/api", "acme/web"):
            self.repo.create_job("user-1", repository, "main", total_files=1)
        self.repo.create_job("user-2", "other/app", "main", total_files=1)

        response = self.client.get("/api/scans", params={"owner_id": "user-1", "limit": 2})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total"], 3)
        self.assertEqual(body["limit"], 2)
        self.assertEqual(len(body["items"]), 2)
        self.assertTrue(all(item["owner_id"] == "user-1" for item in body["items"]))

    def test_list_scans_rejects_bad_paging(self):
        response = self.client.get("/api/scans", params={"owner_id": "user-1", "limit": 0})
        self.assertEqual(response.status_code, 422)

    def test_get_scan(self):
        job = self.repo.create_job("user-1", "acme/app", "main", total_files=3)

        response = self.client.get(f"/api/scans/{job.id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["id"], str(job.id))
        self.assertEqual(body["status"], "pending")
        self.assertEqual(body["progress"]["total"], 3)

    def test_get_unknown_scan(self):
        response = self.client.get("/api/scans/64b7f0c2a1b2c3d4e5f60718")
        self.assertEqual(response.status_code, 404)


class TestIntegrationEndpoints(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.integration = Integration(
            name="CI", type="github", owner_id="user-1", repository="acme/app"
        )
        self.integrations = FakeIntegrationRepository(self.integration)
        self.runs = FakeIntegrationRunRepository()
        self.runner = WebhookRunRunner(
            self.integrations, self.runs, FakeAnalyzer(), notifier=MagicMock()
        )
        app.dependency_overrides[get_integration_repo] = lambda: self.integrations
        app.dependency_overrides[get_run_repo] = lambda: self.runs
        app.dependency_overrides[get_webhook_runner] = lambda: self.runner
        patcher = patch("codescan.api.integrations.process_integration_run")
        self.task = patcher.start()
        self.addCleanup(patcher.stop)
        self.webhook_url = f"/api/integrations/{self.integration.id}/webhook"

    def _body(self, branch="main"):
        return json.dumps(
            {
                "event": "push",
                "repository": {"name": "acme/app", "branch": branch},
                "commit": {"id": "abc123", "author": {"name": "Dev"}},
                "files": [{"filename": "a.ts", "content": "let a;", "status": "added"}],
            }
        ).encode("utf-8")

    def test_create_integration(self):
        response = self.client.post(
            "/api/integrations",
            json={"name": "Jenkins", "type": "jenkins", "owner_id": "user-1", "repository": "acme/api"},
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["type"], "jenkins")
        self.assertEqual(body["branch"], "main")
        self.assertEqual(len(body["webhook_secret"]), 64)
        self.assertEqual(body["events"], ["push", "pull_request"])
        self.assertTrue(body["webhook_url"].endswith(f"/api/integrations/{body['id']}/webhook"))

    def test_create_integration_invalid_type(self):
        response = self.client.post(
            "/api/integrations",
            json={"name": "X", "type": "circleci", "owner_id": "user-1", "repository": "acme/api"},
        )
        self.assertEqual(response.status_code, 400)

    def test_signed_webhook_is_accepted(self):
        body = self._body()
        response = self.client.post(
            self.webhook_url,
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Hub-Signature-256": sign_payload(body, self.integration.webhook.secret),
            },
        )

        self.assertEqual(response.status_code, 202)
        data = response.json()
        self.assertTrue(data["success"])
        self.assertIn(data["run_id"], self.runs.runs)
        kwargs = self.task.delay.call_args.kwargs
        self.assertEqual(kwargs["run_id"], data["run_id"])
        self.assertEqual(kwargs["payload"]["commit"]["id"], "abc123")

    def test_bad_signature(self):
        response = self.client.post(
            self.webhook_url,
            content=self._body(),
            headers={"X-Hub-Signature-256": "sha256=" + "0" * 64},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.runs.runs, {})
        self.task.delay.assert_not_called()

    def test_ignored_branch(self):
        response = self.client.post(self.webhook_url, content=self._body(branch="dev"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Branch not configured"})
        self.task.delay.assert_not_called()

    def test_invalid_payload(self):
        response = self.client.post(self.webhook_url, content=b"not json")
        self.assertEqual(response.status_code, 400)

    def test_unknown_integration(self):
        response = self.client.post(
            "/api/integrations/64b7f0c2a1b2c3d4e5f60718/webhook", content=self._body()
        )
        self.assertEqual(response.status_code, 404)

    def test_webhook_info_and_runs(self):
        self.client.post(self.webhook_url, content=self._body())

        info = self.client.get(self.webhook_url).json()
        self.assertEqual(info["total_runs"], 1)
        self.assertTrue(info["is_active"])

        runs = self.client.get(f"/api/integrations/{self.integration.id}/runs").json()
        self.assertEqual(len(runs), 1)
        self.assertEqual(runs[0]["status"], "pending")
        self.assertEqual(runs[0]["integration_id"], str(self.integration.id))

    def test_runs_of_unknown_integration(self):
        response = self.client.get("/api/integrations/64b7f0c2a1b2c3d4e5f60718/runs")
        self.assertEqual(response.status_code, 404)

    def test_renamed_file_is_accepted(self):
        body = json.loads(self._body())
        body["files"][0]["status"] = "renamed"

        response = self.client.post(self.webhook_url, content=json.dumps(body).encode("utf-8"))

        self.assertEqual(response.status_code, 202)

    def test_queue_failure_fails_the_run(self):
        self.task.delay.side_effect = ConnectionError("broker down")

        response = self.client.post(self.webhook_url, content=self._body())

        self.assertEqual(response.status_code, 503)
        (run,) = self.runs.runs.values()
        self.assertEqual(run.status, "failed")
        self.assertIn("broker down", run.error)
        self.assertIn("could not queue run", run.log_lines[-1])

    def test_list_integrations_for_owner(self):
        self.integrations.add(
            Integration(name="Other", type="gitlab", owner_id="user-2", repository="x/y")
        )
        self.client.post(self.webhook_url, content=self._body())

        response = self.client.get("/api/integrations", params={"owner_id": "user-1"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total"], 1)
        self.assertIn("jenkins", body["supported_types"])
        (item,) = body["integrations"]
        self.assertEqual(item["id"], str(self.integration.id))
        self.assertNotIn("secret", item["webhook"])
        self.assertTrue(item["webhook_url"].endswith(self.webhook_url))
        self.assertEqual(len(item["recent_runs"]), 1)

    def test_get_integration(self):
        response = self.client.get(f"/api/integrations/{self.integration.id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["integration"]["name"], "CI")
        self.assertNotIn("secret", body["integration"]["webhook"])
        self.assertEqual(body["runs"], [])

    def test_get_unknown_integration(self):
        response = self.client.get("/api/integrations/64b7f0c2a1b2c3d4e5f60718")
        self.assertEqual(response.status_code, 404)

    def test_update_integration(self):
        secret = self.integration.webhook.secret

        response = self.client.patch(
            f"/api/integrations/{self.integration.id}",
            json={
                "branch": "release",
                "settings": {"fail_on_issues": True, "max_issues": 3},
                "owner_id": "intruder",
                "webhook": {"secret": "known"},
            },
        )

        self.assertEqual(response.status_code, 200)
        stored = self.integrations.find_by_id(self.integration.id)
        self.assertEqual(stored.branch, "release")
        self.assertEqual(stored.settings.max_issues, 3)
        self.assertTrue(stored.settings.fail_on_issues)
        self.assertEqual(stored.owner_id, "user-1")
        self.assertEqual(stored.webhook.secret, secret)
        self.assertEqual(stored.name, "CI")

    def test_deactivated_integration_stops_receiving(self):
        self.client.patch(
            f"/api/integrations/{self.integration.id}", json={"is_active": False}
        )

        response = self.client.post(self.webhook_url, content=self._body())

        self.assertEqual(response.status_code, 404)
        self.task.delay.assert_not_called()

    def test_update_unknown_integration(self):
        response = self.client.patch(
            "/api/integrations/64b7f0c2a1b2c3d4e5f60718", json={"branch": "x"}
        )
        self.assertEqual(response.status_code, 404)

    def test_delete_integration_removes_runs(self):
        self.client.post(self.webhook_url, content=self._body())

        response = self.client.delete(f"/api/integrations/{self.integration.id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(self.integrations.integrations, {})
        self.assertEqual(self.runs.runs, {})
        self.assertEqual(self.client.delete(f"/api/integrations/{self.integration.id}").status_code, 404)


class TestHealth(ApiTestCase):
    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

    def test_ready(self):
        db = MagicMock()
        app.dependency_overrides[get_db] = lambda: db

        response = self.client.get("/api/health/ready")

        self.assertEqual(response.status_code, 200)
        db.command.assert_called_once_with("ping")

    def test_not_ready_when_mongo_is_down(self):
        db = MagicMock()
        db.command.side_effect = ServerSelectionTimeoutError("no servers")
        app.dependency_overrides[get_db] = lambda: db

        response = self.client.get("/api/health/ready")

        self.assertEqual(response.status_code, 503)


if __name__ == "__main__":
    unittest.main()
