"""
Backup Service

Exports one user's household data as a versioned, checksummed file and
replays such a file back into storage.

RESTORE FLOW (each step must pass before the next runs):
1. RECEIVED             version, data and checksum must be present
2. CHECKSUM_VERIFIED    checksum recomputed over the raw `data`
3. VERSION_CHECKED      major version must match BACKUP_VERSION
4. PREVIEW              (optional) counts and a warning, nothing changes
5. CONFIRMATION_REQUIRED  `confirmDelete: true` is mandatory from here on
6. EXECUTING            delete children before parents, then re-insert
                        parents before children with fresh ids
7. DONE                 per-resource report

DESIGN DECISION: The restore is NOT atomic. The spreadsheet backend has no
transactions, so a failure during step 6 leaves the user with whatever was
deleted and re-inserted up to that point. The failure is audited with its
correlation id so the partial state can be traced, and the caller is told
the restore failed.

Restored transactions lose their category and account links: the old ids
point at records that were just deleted and re-created under new ids.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from src.audit import AuditLogger, create_correlation_id
from src.backup.checksum import BACKUP_VERSION, compute_checksum, is_compatible
from src.backup.errors import (
    BackupValidationError,
    ChecksumMismatchError,
    ConfirmationRequiredError,
    ExportFailedError,
    IncompatibleVersionError,
    InvalidBackupError,
    RestoreFailedError,
)
from src.backup.snapshot import (
    BACKUP_RESOURCES,
    DELETE_ORDER,
    BackupInfo,
    BackupPayload,
    BackupSnapshot,
    ResourceRestoreResult,
    RestorePreview,
    RestoreReport,
    RestoreStage,
    SnapshotUser,
)
from src.models.finance import AuthenticatedUser, utcnow
from src.services.storage import (
    FinanceStorageInterface,
    NotFoundError,
    Resource,
    StorageError,
)

logger = structlog.get_logger(__name__)


class BackupService:
    """Export and restore of a user's complete dataset."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # EXPORT
    # =========================================================================

    async def export(
        self,
        user: AuthenticatedUser,
        now: Optional[datetime] = None,
    ) -> BackupSnapshot:
        """
        Snapshot everything the user owns.

        The six reads run concurrently. An empty result becomes an empty
        list (or a null profile); a failing read fails the whole export.

        Raises:
            ExportFailedError: If any read fails
        """
        correlation_id = create_correlation_id()
        try:
            (
                profile,
                accounts,
                categories,
                transactions,
                investments,
                goals,
            ) = await asyncio.gather(
                self._storage.get_profile(user.id),
                self._storage.list_records(Resource.ACCOUNTS, user.id),
                self._storage.list_records(Resource.CATEGORIES, user.id),
                self._storage.list_records(
                    Resource.TRANSACTIONS, user.id, order_by="date", descending=True
                ),
                self._storage.list_records(Resource.INVESTMENTS, user.id),
                self._storage.list_records(Resource.GOALS, user.id),
            )
        except Exception as e:
            logger.exception("backup_export_failed", action="backup", resource="backup")
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"action": "backup"},
                correlation_id=correlation_id,
                owner_id=user.id,
            )
            raise ExportFailedError() from e

        def dump(records) -> list[dict[str, Any]]:
            return [r.model_dump(mode="json") for r in records or []]

        payload = BackupPayload(
            usuario=profile.model_dump(mode="json") if profile else None,
            contas=dump(accounts),
            categorias=dump(categories),
            transacoes=dump(transactions),
            investimentos=dump(investments),
            metas=dump(goals),
        )

        snapshot = BackupSnapshot(
            version=BACKUP_VERSION,
            created_at=now or utcnow(),
            user=SnapshotUser(id=user.id, email=user.email),
            data=payload,
            checksum=compute_checksum(payload.model_dump(mode="json")),
        )

        await self._audit.log_backup_exported(user.id, payload.counts(), correlation_id)
        return snapshot

    # =========================================================================
    # RESTORE
    # =========================================================================

    async def restore(
        self,
        user: AuthenticatedUser,
        body: Any,
    ) -> Union[RestorePreview, RestoreReport]:
        """
        Validate a backup file and, when confirmed, replace the user's data.

        Args:
            user: The requester; every restored record is stamped with their id
            body: The parsed request JSON: a backup file plus the optional
                `preview` and `confirmDelete` flags

        Returns:
            RestorePreview when `preview` is set, RestoreReport otherwise

        Raises:
            BackupValidationError: Before any mutation, with the user message
            RestoreFailedError: If deleting or re-inserting failed midway
        """
        correlation_id = create_correlation_id()

        try:
            payload = self._validate(body)
        except BackupValidationError as e:
            await self._audit.log_restore_rejected(user.id, e.stage, e.message, correlation_id)
            raise

        if body.get("preview") is True:
            preview = self._preview(body, payload)
            await self._audit.log_restore_previewed(
                user.id, body["version"], preview.counts, correlation_id
            )
            return preview

        if body.get("confirmDelete") is not True:
            error = ConfirmationRequiredError(stage=RestoreStage.CONFIRMATION_REQUIRED.value)
            await self._audit.log_restore_rejected(
                user.id, error.stage, error.message, correlation_id
            )
            raise error

        return await self._execute(user, body["version"], payload, correlation_id)

    def _validate(self, body: Any) -> BackupPayload:
        """Steps 1-3. Nothing in `data` is interpreted before the checksum passes."""
        if not isinstance(body, dict):
            raise InvalidBackupError(stage=RestoreStage.RECEIVED.value)

        version = body.get("version")
        data = body.get("data")
        checksum = body.get("checksum")
        if not version or data is None or not checksum:
            raise InvalidBackupError(stage=RestoreStage.RECEIVED.value)
        if not isinstance(version, str) or not isinstance(data, dict):
            raise InvalidBackupError(stage=RestoreStage.RECEIVED.value)
        created_at = body.get("createdAt")
        if created_at is not None and not isinstance(created_at, str):
            raise InvalidBackupError(stage=RestoreStage.RECEIVED.value)

        if compute_checksum(data) != checksum:
            raise ChecksumMismatchError(stage=RestoreStage.RECEIVED.value)

        if not is_compatible(version):
            raise IncompatibleVersionError(
                version, stage=RestoreStage.CHECKSUM_VERIFIED.value
            )

        try:
            return BackupPayload.model_validate(data)
        except ValidationError:
            raise InvalidBackupError(stage=RestoreStage.VERSION_CHECKED.value)

    def _preview(self, body: dict, payload: BackupPayload) -> RestorePreview:
        snapshot_user = body.get("user")
        original_user = snapshot_user.get("email") if isinstance(snapshot_user, dict) else None
        return RestorePreview(
            backup_info=BackupInfo(
                version=body["version"],
                created_at=body.get("createdAt"),
                original_user=original_user,
            ),
            counts=payload.counts(),
        )

    async def _execute(
        self,
        user: AuthenticatedUser,
        version: str,
        payload: BackupPayload,
        correlation_id,
    ) -> RestoreReport:
        """Step 6: delete, re-insert, patch the profile."""
        await self._audit.log_restore_started(user.id, version, correlation_id)

        try:
            for resource in DELETE_ORDER:
                count = await self._storage.delete_records(resource, user.id)
                await self._audit.log_resource_deleted(
                    user.id, resource.value, count, correlation_id
                )

            report = RestoreReport()
            for resource in BACKUP_RESOURCES:
                result = await self._restore_resource(resource, payload.rows(resource), user.id)
                report.results[resource.value] = result
                await self._audit.log_resource_restored(
                    user.id, resource.value, result.restored, result.errors, correlation_id
                )

            await self._patch_profile(user.id, payload.usuario, correlation_id)
        except Exception as e:
            logger.exception(
                "backup_restore_failed",
                action="restore",
                resource="backup",
                owner_id=user.id,
                correlation_id=str(correlation_id),
            )
            await self._audit.log_restore_failed(
                user.id, RestoreStage.EXECUTING.value, str(e), correlation_id
            )
            raise RestoreFailedError(stage=RestoreStage.EXECUTING.value) from e

        await self._audit.log_restore_completed(
            user.id,
            {name: r.restored for name, r in report.results.items()},
            correlation_id,
        )
        return report

    async def _restore_resource(
        self,
        resource: Resource,
        rows: list[dict[str, Any]],
        owner_id: str,
    ) -> ResourceRestoreResult:
        """
        Re-insert one collection.

        Invalid rows and a failed insert are recorded in the result instead
        of aborting the restore of the other collections.
        """
        result = ResourceRestoreResult()
        records = []

        for index, row in enumerate(rows, start=1):
            data = {k: v for k, v in row.items() if k != "id"}
            data["owner_id"] = owner_id
            if resource == Resource.TRANSACTIONS:
                data["category_id"] = None
                data["account_id"] = None
            try:
                records.append(resource.model.model_validate(data))
            except ValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"]) or "registro"
                result.errors.append(f"Registro {index} inválido ({field}): {first['msg']}")

        if records:
            try:
                inserted = await self._storage.insert_records(resource, records)
                result.restored = len(inserted)
            except StorageError as e:
                result.errors.append(str(e))

        return result

    async def _patch_profile(
        self,
        owner_id: str,
        usuario: Optional[dict[str, Any]],
        correlation_id,
    ) -> None:
        """Copy name and monthly income from the backup; nothing else."""
        if not usuario:
            return

        fields: dict[str, Any] = {}
        if usuario.get("name"):
            fields["name"] = usuario["name"]
        if "monthly_income" in usuario:
            fields["monthly_income"] = usuario["monthly_income"]
        if not fields:
            return

        try:
            await self._storage.update_profile(owner_id, fields)
        except NotFoundError:
            logger.warning("restore_profile_missing", owner_id=owner_id)
            return
        await self._audit.log_profile_updated(owner_id, sorted(fields), correlation_id)
