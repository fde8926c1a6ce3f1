"""
Audit Logger

DESIGN DECISION: Every destructive or user-visible action is logged.
A restore deletes the household's data before re-inserting it, so each
step (rejected, started, deleted, restored, completed, failed) leaves a
trace that can be followed by correlation id.

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit worksheet (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_backup_exported(
        self,
        owner_id: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.backup_exported(owner_id, counts, correlation_id))

    async def log_data_exported(
        self,
        owner_id: str,
        resource: str,
        export_format: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.data_exported(
            owner_id, resource, export_format, counts, correlation_id
        ))

    async def log_restore_previewed(
        self,
        owner_id: str,
        version: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.restore_previewed(owner_id, version, counts, correlation_id)
        )

    async def log_restore_rejected(
        self,
        owner_id: str,
        stage: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a restore refused before any data was touched."""
        await self.log(
            AuditEventBuilder.restore_rejected(owner_id, stage, reason, correlation_id)
        )

    async def log_restore_started(
        self,
        owner_id: str,
        version: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.restore_started(owner_id, version, correlation_id))

    async def log_resource_deleted(
        self,
        owner_id: str,
        resource: str,
        count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.resource_deleted(owner_id, resource, count, correlation_id)
        )

    async def log_resource_restored(
        self,
        owner_id: str,
        resource: str,
        restored: int,
        errors: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.resource_restored(
                owner_id, resource, restored, errors, correlation_id
            )
        )

    async def log_profile_updated(
        self,
        owner_id: str,
        fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.profile_updated(owner_id, fields, correlation_id))

    async def log_restore_completed(
        self,
        owner_id: str,
        restored: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.restore_completed(owner_id, restored, correlation_id)
        )

    async def log_restore_failed(
        self,
        owner_id: str,
        stage: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a restore that failed after mutation may have started."""
        await self.log(
            AuditEventBuilder.restore_failed(owner_id, stage, error_message, correlation_id)
        )

    async def log_document_extracted(
        self,
        owner_id: str,
        document_kind: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.document_extracted(
                owner_id, document_kind, transaction_count, correlation_id
            )
        )

    async def log_extraction_failed(
        self,
        owner_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(owner_id, reason, correlation_id))

    async def log_import_completed(
        self,
        owner_id: str,
        imported: dict[str, int],
        skipped: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.import_completed(owner_id, imported, skipped, correlation_id)
        )

    async def log_authentication_failed(self, reason: str) -> None:
        await self.log(AuditEventBuilder.authentication_failed(reason))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
            owner_id=owner_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (an export, a restore,
    an import). Pass it through all subsequent operations.
    """
    return uuid4()
