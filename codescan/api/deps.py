"""Request-scoped service wiring shared by the routers."""

from fastapi import Depends
from pymongo.database import Database

from codescan.database.mongo import get_db
from codescan.repositories.integration import IntegrationRepository
from codescan.repositories.integration_run import IntegrationRunRepository
from codescan.repositories.scan_job import ScanJobRepository
from codescan.services.analyzer import get_analyzer
from codescan.services.integration_runner import WebhookRunRunner
from codescan.services.scan_runner import ScanJobRunner


def get_scan_runner(db: Database = Depends(get_db)) -> ScanJobRunner:
    return ScanJobRunner(ScanJobRepository(db), get_analyzer())


def get_integration_repo(db: Database = Depends(get_db)) -> IntegrationRepository:
    return IntegrationRepository(db)


def get_run_repo(db: Database = Depends(get_db)) -> IntegrationRunRepository:
    return IntegrationRunRepository(db)


def get_webhook_runner(
    integration_repo: IntegrationRepository = Depends(get_integration_repo),
    run_repo: IntegrationRunRepository = Depends(get_run_repo),
) -> WebhookRunRunner:
    return WebhookRunRunner(integration_repo, run_repo, get_analyzer())
