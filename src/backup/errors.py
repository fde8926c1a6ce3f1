"""
Backup and restore errors.

Validation errors are raised before any data is touched and carry the
message shown to the user. `RestoreFailedError` means mutation may already
have happened.
"""

from src.backup.checksum import BACKUP_VERSION


class BackupError(Exception):
    """Base exception for backup operations."""

    status_code = 500

    def __init__(self, message: str, stage: str = ""):
        super().__init__(message)
        self.message = message
        self.stage = stage


class BackupValidationError(BackupError):
    """The submitted backup cannot be restored as sent."""

    status_code = 400


class InvalidBackupError(BackupValidationError):
    """Missing version, data or checksum."""

    def __init__(self, stage: str = "received"):
        super().__init__("Arquivo de backup inválido", stage)


class ChecksumMismatchError(BackupValidationError):
    """The data does not hash to the supplied checksum."""

    def __init__(self, stage: str = "received"):
        super().__init__("Backup corrompido - checksum inválido", stage)


class IncompatibleVersionError(BackupValidationError):
    """The backup's major version differs from ours."""

    def __init__(self, version: str, current: str = BACKUP_VERSION, stage: str = "checksum_verified"):
        super().__init__(
            f"Versão do backup ({version}) incompatível com a versão atual ({current})",
            stage,
        )
        self.version = version
        self.current = current


class ConfirmationRequiredError(BackupValidationError):
    """A destructive restore was requested without `confirmDelete: true`."""

    def __init__(self, stage: str = "version_checked"):
        super().__init__(
            "Para restaurar o backup, envie confirmDelete: true. "
            "ATENÇÃO: Isso irá DELETAR todos os seus dados atuais!",
            stage,
        )


class RestoreFailedError(BackupError):
    """Unexpected failure while deleting or re-inserting data."""

    def __init__(self, stage: str = "executing"):
        super().__init__("Erro ao restaurar backup", stage)


class ExportFailedError(BackupError):
    """Unexpected failure while reading the data to export."""

    def __init__(self):
        super().__init__("Erro ao criar backup", "export")


class InvalidExportOptionError(BackupValidationError):
    """Unknown export format or resource."""

    def __init__(self, message: str):
        super().__init__(message, "export")


class DataExportFailedError(BackupError):
    """Unexpected failure while reading the data of a plain export."""

    def __init__(self):
        super().__init__("Erro ao exportar dados", "export")
