"""Backup and restore of a user's household data, and plain data export."""

from src.backup.checksum import BACKUP_VERSION, compute_checksum, is_compatible
from src.backup.errors import (
    BackupError,
    BackupValidationError,
    ChecksumMismatchError,
    ConfirmationRequiredError,
    DataExportFailedError,
    ExportFailedError,
    IncompatibleVersionError,
    InvalidBackupError,
    InvalidExportOptionError,
    RestoreFailedError,
)
from src.backup.snapshot import (
    BackupPayload,
    BackupSnapshot,
    ResourceRestoreResult,
    RestorePreview,
    RestoreReport,
    RestoreStage,
    SnapshotUser,
    backup_filename,
)
from src.backup.service import BackupService
from src.backup.export import (
    DataExporter,
    ExportFormat,
    ExportResource,
    export_filename,
    parse_export_options,
    render_csv,
    to_csv,
)

__all__ = [
    "BACKUP_VERSION",
    "compute_checksum",
    "is_compatible",
    # Errors
    "BackupError",
    "BackupValidationError",
    "ChecksumMismatchError",
    "ConfirmationRequiredError",
    "DataExportFailedError",
    "ExportFailedError",
    "IncompatibleVersionError",
    "InvalidBackupError",
    "InvalidExportOptionError",
    "RestoreFailedError",
    # Models
    "BackupPayload",
    "BackupSnapshot",
    "ResourceRestoreResult",
    "RestorePreview",
    "RestoreReport",
    "RestoreStage",
    "SnapshotUser",
    "backup_filename",
    # Service
    "BackupService",
    # Plain export
    "DataExporter",
    "ExportFormat",
    "ExportResource",
    "export_filename",
    "parse_export_options",
    "render_csv",
    "to_csv",
]
