"""
Application context for DinDin

This module ties together all the components the HTTP layer needs:
storage, audit, session verification, backup/restore, data export, OCR
extraction, import and the dashboard.

DESIGN DECISION: There are no module-level singletons. The context is
built once by `create_app_components()` and handed to whoever serves
requests (the FastAPI lifespan), so tests can inject an in-memory one.

Missing configuration degrades instead of failing at startup:
- no spreadsheet configured → in-memory storage (data lives only as long
  as the process)
- no Gemini key → OCR answers "not configured"
- no JWT secret → every authenticated route answers 401
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from pydantic import ValidationError

from src.audit import AuditLogger
from src.auth import SupabaseJWTAuthenticator
from src.backup import BackupService, DataExporter
from src.config import AppSettings, get_settings
from src.dashboard import DashboardService
from src.imports import TransactionImporter
from src.services.ocr import GeminiOCRService
from src.services.storage import (
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
)

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    """Everything a request handler may use."""

    settings: AppSettings
    storage: FinanceStorageInterface
    audit_logger: AuditLogger
    authenticator: Optional[SupabaseJWTAuthenticator]
    backup_service: BackupService
    exporter: DataExporter
    ocr_service: GeminiOCRService
    importer: TransactionImporter
    dashboard: DashboardService

    async def close(self) -> None:
        await self.storage.close()
        logger.info("app_context_closed")


def build_context(
    storage: FinanceStorageInterface,
    audit_logger: AuditLogger,
    authenticator: Optional[SupabaseJWTAuthenticator],
    ocr_service: GeminiOCRService,
    app_settings: AppSettings,
) -> AppContext:
    """Wire the services that only depend on storage and audit."""
    return AppContext(
        settings=app_settings,
        storage=storage,
        audit_logger=audit_logger,
        authenticator=authenticator,
        backup_service=BackupService(storage, audit_logger),
        exporter=DataExporter(storage, audit_logger),
        ocr_service=ocr_service,
        importer=TransactionImporter(storage, audit_logger),
        dashboard=DashboardService(storage, app_settings),
    )


def create_app_components(use_storage: bool = True) -> AppContext:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for testing without storage.
    """
    settings = get_settings()
    app_settings = settings.app

    storage: FinanceStorageInterface
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsFinanceStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValidationError as e:
            logger.warning("storage_not_configured", error=str(e))
            storage = InMemoryFinanceStorage()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        storage = InMemoryFinanceStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    try:
        authenticator = SupabaseJWTAuthenticator(settings.auth)
    except ValidationError as e:
        logger.warning("auth_not_configured", error=str(e))
        authenticator = None

    try:
        ocr_service = GeminiOCRService(settings.gemini, app_settings)
    except ValidationError as e:
        logger.warning("ocr_not_configured", error=str(e))
        ocr_service = GeminiOCRService(None, app_settings)

    return build_context(storage, audit_logger, authenticator, ocr_service, app_settings)
