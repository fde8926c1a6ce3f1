"""
Audit Models for DinDin

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of destructive operations (restores delete data)
2. Debugging information when an export, restore or import fails
3. A history the household can review

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.finance import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each stage of the backup, restore and import flows has its own type.
    """
    # Backup
    BACKUP_EXPORTED = "backup_exported"
    DATA_EXPORTED = "data_exported"

    # Restore
    RESTORE_PREVIEWED = "restore_previewed"
    RESTORE_REJECTED = "restore_rejected"
    RESTORE_STARTED = "restore_started"
    RESOURCE_DELETED = "resource_deleted"
    RESOURCE_RESTORED = "resource_restored"
    PROFILE_UPDATED = "profile_updated"
    RESTORE_COMPLETED = "restore_completed"
    RESTORE_FAILED = "restore_failed"

    # Document import
    DOCUMENT_EXTRACTED = "document_extracted"
    EXTRACTION_FAILED = "extraction_failed"
    IMPORT_COMPLETED = "import_completed"

    # Access
    AUTHENTICATION_FAILED = "authentication_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who triggered it
    owner_id: Optional[str] = Field(
        default=None,
        description="User the event was performed for"
    )

    # Context - what resource is this about?
    resource: Optional[str] = Field(
        default=None,
        description="Resource name (e.g., 'backup', 'transacoes')"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one restore)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "resource": self.resource,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, resource,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.resource or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.backup_exported(owner_id, counts, correlation_id)
        event = AuditEventBuilder.restore_rejected(owner_id, "checksum", message, correlation_id)
    """

    @staticmethod
    def backup_exported(
        owner_id: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            owner_id=owner_id,
            resource="backup",
            correlation_id=correlation_id,
            description="Backup exported",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def data_exported(
        owner_id: str,
        resource: str,
        export_format: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            owner_id=owner_id,
            resource=resource,
            correlation_id=correlation_id,
            description=f"Data exported as {export_format}",
            details={"format": export_format, "counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def restore_previewed(
        owner_id: str,
        version: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_PREVIEWED,
            owner_id=owner_id,
            resource="backup",
            correlation_id=correlation_id,
            description=f"Restore preview of backup version {version}",
            details={"version": version, "counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def restore_rejected(
        owner_id: str,
        stage: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            resource="backup",
            correlation_id=correlation_id,
            description=f"Restore rejected at stage {stage}",
            details={"stage": stage},
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def restore_started(
        owner_id: str,
        version: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_STARTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            resource="backup",
            correlation_id=correlation_id,
            description="Confirmed restore started, existing data will be deleted",
            details={"version": version},
            is_user_action=True,
        )

    @staticmethod
    def resource_deleted(
        owner_id: str,
        resource: str,
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESOURCE_DELETED,
            owner_id=owner_id,
            resource=resource,
            correlation_id=correlation_id,
            description=f"Deleted {count} {resource} records",
            details={"count": count},
        )

    @staticmethod
    def resource_restored(
        owner_id: str,
        resource: str,
        restored: int,
        errors: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESOURCE_RESTORED,
            severity=AuditSeverity.WARNING if errors else AuditSeverity.INFO,
            owner_id=owner_id,
            resource=resource,
            correlation_id=correlation_id,
            description=f"Restored {restored} {resource} records",
            details={"restored": restored, "errors": errors},
        )

    @staticmethod
    def profile_updated(
        owner_id: str,
        fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            owner_id=owner_id,
            resource="usuarios",
            correlation_id=correlation_id,
            description="Profile patched from backup",
            details={"fields": fields},
        )

    @staticmethod
    def restore_completed(
        owner_id: str,
        restored: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_COMPLETED,
            owner_id=owner_id,
            resource="backup",
            correlation_id=correlation_id,
            description="Backup restored",
            details={"restored": restored},
        )

    @staticmethod
    def restore_failed(
        owner_id: str,
        stage: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            resource="backup",
            correlation_id=correlation_id,
            description=f"Restore failed during {stage}, data may be partially restored",
            details={"stage": stage},
            error_message=error_message,
        )

    @staticmethod
    def document_extracted(
        owner_id: str,
        document_kind: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_EXTRACTED,
            owner_id=owner_id,
            resource="ocr",
            correlation_id=correlation_id,
            description=f"Extracted {transaction_count} transactions from {document_kind}",
            details={
                "document_kind": document_kind,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def extraction_failed(
        owner_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            resource="ocr",
            correlation_id=correlation_id,
            description="Document extraction failed",
            error_message=reason,
        )

    @staticmethod
    def import_completed(
        owner_id: str,
        imported: dict[str, int],
        skipped: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            owner_id=owner_id,
            resource="import",
            correlation_id=correlation_id,
            description=f"Imported {sum(imported.values())} records ({skipped} duplicates skipped)",
            details={"imported": imported, "skipped": skipped},
            is_user_action=True,
        )

    @staticmethod
    def authentication_failed(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTHENTICATION_FAILED,
            severity=AuditSeverity.WARNING,
            description="Request rejected: no valid session",
            error_message=reason,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
