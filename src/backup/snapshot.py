"""
Backup file models.

The envelope keeps the collection names and camelCase keys of the web
client's backup files. The rows inside `data` are this API's own records
(snake_case model fields), so only files exported here restore here:

    {
      "version": "1.0.0",
      "createdAt": "2024-05-01T12:00:00+00:00",
      "user": {"id": "...", "email": "..."},
      "data": {"usuario": {...}, "contas": [...], "categorias": [...],
               "transacoes": [...], "investimentos": [...], "metas": [...]},
      "checksum": "1a2b3c"
    }

Records inside `data` stay plain dicts here. They are only interpreted as
models at restore time, after the checksum over the raw dicts has been
verified.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.backup.checksum import BACKUP_VERSION
from src.models.finance import utcnow
from src.services.storage.interface import Resource

RESTORE_WARNING = (
    "ATENÇÃO: Restaurar este backup irá DELETAR todos os seus dados atuais "
    "e substituí-los pelos dados do backup."
)
RESTORE_SUCCESS_MESSAGE = "Backup restaurado com sucesso"
RELINK_NOTE = (
    "Os IDs de categoria e conta das transações foram removidos pois os IDs "
    "originais não são mais válidos. Você precisará reassociar manualmente "
    "se necessário."
)

# Collections carried by a backup, in restore insert order
BACKUP_RESOURCES = (
    Resource.ACCOUNTS,
    Resource.CATEGORIES,
    Resource.TRANSACTIONS,
    Resource.INVESTMENTS,
    Resource.GOALS,
)

# Delete order: children before parents
DELETE_ORDER = (
    Resource.TRANSACTIONS,
    Resource.INVESTMENTS,
    Resource.GOALS,
    Resource.CATEGORIES,
    Resource.ACCOUNTS,
)


class RestoreStage(str, Enum):
    """Where a restore request is in its lifecycle."""
    RECEIVED = "received"
    CHECKSUM_VERIFIED = "checksum_verified"
    VERSION_CHECKED = "version_checked"
    PREVIEW = "preview"
    CONFIRMATION_REQUIRED = "confirmation_required"
    EXECUTING = "executing"
    DONE = "done"


class SnapshotUser(BaseModel):
    id: str
    email: str = ""


class BackupPayload(BaseModel):
    """The checksummed part of a backup."""

    usuario: Optional[dict[str, Any]] = None
    contas: list[dict[str, Any]] = Field(default_factory=list)
    categorias: list[dict[str, Any]] = Field(default_factory=list)
    transacoes: list[dict[str, Any]] = Field(default_factory=list)
    investimentos: list[dict[str, Any]] = Field(default_factory=list)
    metas: list[dict[str, Any]] = Field(default_factory=list)

    def rows(self, resource: Resource) -> list[dict[str, Any]]:
        return getattr(self, resource.value)

    def counts(self) -> dict[str, int]:
        return {r.value: len(self.rows(r)) for r in BACKUP_RESOURCES}


class BackupSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = BACKUP_VERSION
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    user: SnapshotUser
    data: BackupPayload
    checksum: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BackupInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    original_user: Optional[str] = Field(default=None, alias="originalUser")


class RestorePreview(BaseModel):
    """What a restore would do, without doing it."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    preview: bool = True
    backup_info: BackupInfo = Field(alias="backupInfo")
    counts: dict[str, int]
    warning: str = RESTORE_WARNING

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ResourceRestoreResult(BaseModel):
    restored: int = 0
    errors: list[str] = Field(default_factory=list)


class RestoreReport(BaseModel):
    success: bool = True
    message: str = RESTORE_SUCCESS_MESSAGE
    results: dict[str, ResourceRestoreResult] = Field(default_factory=dict)
    note: str = RELINK_NOTE

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def backup_filename(now: datetime, prefix: str = "dindin-backup") -> str:
    """Download name of a backup taken at `now`."""
    return f"{prefix}-{now.date().isoformat()}.json"
