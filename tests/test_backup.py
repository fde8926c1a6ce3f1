"""
Tests for backup export and restore.

Restore is exercised against the in-memory store. A recording subclass
captures the order of deletes and inserts.
"""

import asyncio
import copy
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from src.backup import (
    BACKUP_VERSION,
    BackupService,
    ChecksumMismatchError,
    ConfirmationRequiredError,
    ExportFailedError,
    IncompatibleVersionError,
    InvalidBackupError,
    RestoreFailedError,
    RestorePreview,
    RestoreReport,
    backup_filename,
    compute_checksum,
)
from src.backup.checksum import string_hash
from src.models.audit import AuditEventType
from src.services.storage import InMemoryFinanceStorage, Resource, StorageError

EXPORTED_AT = datetime(2024, 5, 20, 9, 30, tzinfo=timezone.utc)


class RecordingStorage(InMemoryFinanceStorage):
    """In-memory store that remembers every mutation."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, str]] = []

    async def delete_records(self, resource, owner_id):
        self.calls.append(("delete", resource.value))
        return await super().delete_records(resource, owner_id)

    async def insert_records(self, resource, records):
        self.calls.append(("insert", resource.value))
        return await super().insert_records(resource, records)

    async def update_profile(self, owner_id, fields):
        self.calls.append(("update_profile", ",".join(sorted(fields))))
        return await super().update_profile(owner_id, fields)


def make_body(data, version=BACKUP_VERSION, **flags):
    body = {
        "version": version,
        "createdAt": "2024-05-01T12:00:00+00:00",
        "user": {"id": "user-1", "email": "ana@example.com"},
        "data": data,
        "checksum": compute_checksum(data),
    }
    body.update(flags)
    return body


def full_data():
    return {
        "usuario": {"id": "old-user", "email": "old@example.com", "name": "Ana Maria", "monthly_income": "12000"},
        "contas": [{"id": str(uuid4()), "owner_id": "old-user", "name": "Conta", "type": "checking"}],
        "categorias": [{"id": str(uuid4()), "owner_id": "old-user", "name": "Mercado", "group": "essential"}],
        "transacoes": [{
            "id": str(uuid4()),
            "owner_id": "old-user",
            "description": "Feira",
            "amount": "80.00",
            "kind": "expense",
            "date": "2024-04-10",
            "category_id": str(uuid4()),
            "account_id": str(uuid4()),
        }],
        "investimentos": [{
            "owner_id": "old-user",
            "name": "CDB",
            "type": "bonds",
            "purchase_price": "1000.00",
            "current_price": "1050.00",
            "purchase_date": "2023-01-01",
        }],
        "metas": [{"owner_id": "old-user", "name": "Viagem", "target_amount": "5000.00"}],
    }


def counts(storage, owner_id):
    return {
        r.value: len(asyncio.run(storage.list_records(r, owner_id)))
        for r in Resource
    }


class TestChecksum:
    """Tests for the backup checksum."""

    def test_known_values(self):
        """Test the rolling hash on short inputs."""
        assert compute_checksum({}) == "f62"  # "{}" -> 123 * 31 + 125
        assert compute_checksum("é") == "9bfb"  # "\"é\"" -> (34 * 31 + 233) * 31 + 34

    def test_hash_wraps_to_signed_32_bits(self):
        """Test long inputs stay within 32 bits and the checksum is unsigned."""
        h = string_hash("x" * 10000)
        assert -(2 ** 31) <= h < 2 ** 31
        assert not compute_checksum({"x": "y" * 10000}).startswith("-")

    def test_deterministic(self):
        """Test the same payload always hashes the same."""
        data = full_data()
        assert compute_checksum(data) == compute_checksum(copy.deepcopy(data))

    def test_any_mutation_changes_checksum(self):
        """Test editing a single field is detected."""
        data = full_data()
        original = compute_checksum(data)
        data["transacoes"][0]["amount"] = "80.01"
        assert compute_checksum(data) != original

    def test_key_order_matters(self):
        """Test the serialization keeps the payload's own key order."""
        assert compute_checksum({"a": 1, "b": 2}) != compute_checksum({"b": 2, "a": 1})


class TestExport:
    """Tests for BackupService.export."""

    def test_export_snapshot(self, household, user, audit_logger, audit_storage):
        """Test the snapshot holds only the owner's data, newest transactions first."""
        service = BackupService(household, audit_logger)

        snapshot = asyncio.run(service.export(user, now=EXPORTED_AT))

        assert snapshot.version == "1.0.0"
        assert snapshot.user.id == "user-1"
        assert snapshot.data.usuario["id"] == "user-1"
        assert snapshot.data.counts() == {
            "contas": 2,
            "categorias": 1,
            "transacoes": 2,
            "investimentos": 1,
            "metas": 1,
        }
        assert [t["description"] for t in snapshot.data.transacoes] == ["Salário", "Supermercado"]
        assert all(t["owner_id"] == "user-1" for t in snapshot.data.transacoes)
        assert snapshot.checksum == compute_checksum(snapshot.data.model_dump(mode="json"))

        events = [e.event_type for e in audit_storage.events]
        assert events == [AuditEventType.BACKUP_EXPORTED]

    def test_export_wire_format(self, household, user):
        """Test the downloadable file uses the web client's keys."""
        snapshot = asyncio.run(BackupService(household).export(user, now=EXPORTED_AT))
        wire = snapshot.to_wire()

        assert set(wire) == {"version", "createdAt", "user", "data", "checksum"}
        assert set(wire["data"]) == {
            "usuario", "contas", "categorias", "transacoes", "investimentos", "metas",
        }
        assert wire["data"]["transacoes"][0]["amount"] == "10000.00"
        assert wire["checksum"] == compute_checksum(wire["data"])

    def test_export_empty_user(self, storage, user):
        """Test missing collections become empty lists and the profile null."""
        snapshot = asyncio.run(BackupService(storage).export(user))
        assert snapshot.data.usuario is None
        assert snapshot.data.contas == []
        assert snapshot.data.metas == []

    def test_export_read_failure(self, user, audit_logger, audit_storage):
        """Test a failing read fails the whole export."""

        class BrokenStorage(InMemoryFinanceStorage):
            async def list_records(self, resource, owner_id, order_by=None, descending=False):
                if resource == Resource.INVESTMENTS:
                    raise StorageError("sheet unavailable")
                return await super().list_records(resource, owner_id, order_by, descending)

        with pytest.raises(ExportFailedError, match="Erro ao criar backup"):
            asyncio.run(BackupService(BrokenStorage(), audit_logger).export(user))
        assert audit_storage.events[-1].event_type == AuditEventType.SYSTEM_ERROR

    def test_backup_filename(self):
        """Test the download name carries the date."""
        assert backup_filename(EXPORTED_AT) == "dindin-backup-2024-05-20.json"


class TestRestoreValidation:
    """Tests for the checks that run before anything is touched."""

    @pytest.mark.parametrize(
        "body",
        [
            None,
            [],
            "backup",
            {},
            {"version": "1.0.0", "data": {}},
            {"version": "1.0.0", "checksum": "f62"},
            {"data": {}, "checksum": "f62"},
            {"version": 1, "data": {}, "checksum": "f62"},
            {"version": "1.0.0", "data": [], "checksum": "0"},
        ],
    )
    def test_invalid_file(self, household, user, body):
        """Test structurally invalid files are rejected."""
        with pytest.raises(InvalidBackupError, match="Arquivo de backup inválido"):
            asyncio.run(BackupService(household).restore(user, body))

    def test_checksum_altered_by_one_character(self, household, user, audit_logger, audit_storage):
        """Test a tampered checksum is rejected and nothing is deleted."""
        before = counts(household, "user-1")
        body = make_body(full_data(), confirmDelete=True)
        checksum = body["checksum"]
        body["checksum"] = checksum[:-1] + ("0" if checksum[-1] != "0" else "1")

        with pytest.raises(ChecksumMismatchError, match="checksum inválido") as exc:
            asyncio.run(BackupService(household, audit_logger).restore(user, body))

        assert exc.value.status_code == 400
        assert counts(household, "user-1") == before
        assert audit_storage.events[-1].event_type == AuditEventType.RESTORE_REJECTED

    def test_data_edited_after_export(self, household, user):
        """Test a checksum computed over different data is rejected."""
        body = make_body(full_data(), confirmDelete=True)
        body["data"]["metas"][0]["target_amount"] = "1.00"

        with pytest.raises(ChecksumMismatchError):
            asyncio.run(BackupService(household).restore(user, body))

    @pytest.mark.parametrize("created_at", [1714564800000, {"date": "2024-05-01"}, True])
    def test_created_at_must_be_text(self, household, user, audit_logger, audit_storage, created_at):
        """Test a preview of a file with a non-text creation date is a 400, not a crash."""
        body = make_body(full_data(), createdAt=created_at, preview=True)

        with pytest.raises(InvalidBackupError) as exc:
            asyncio.run(BackupService(household, audit_logger).restore(user, body))

        assert exc.value.status_code == 400
        assert audit_storage.events[-1].event_type == AuditEventType.RESTORE_REJECTED

    def test_missing_created_at_previews(self, household, user):
        """Test the creation date is optional."""
        body = make_body(full_data(), preview=True)
        del body["createdAt"]

        preview = asyncio.run(BackupService(household).restore(user, body))

        assert preview.backup_info.created_at is None

    def test_checksum_checked_before_version(self, household, user):
        """Test a corrupt file from another version reports the checksum."""
        body = make_body(full_data(), version="2.0.0")
        body["checksum"] = "0"

        with pytest.raises(ChecksumMismatchError):
            asyncio.run(BackupService(household).restore(user, body))

    def test_incompatible_major_version(self, household, user):
        """Test only the major version gates compatibility."""
        body = make_body(full_data(), version="2.0.0", confirmDelete=True)

        with pytest.raises(IncompatibleVersionError) as exc:
            asyncio.run(BackupService(household).restore(user, body))

        assert str(exc.value) == (
            "Versão do backup (2.0.0) incompatível com a versão atual (1.0.0)"
        )

    def test_minor_version_accepted(self, household, user):
        """Test minor and patch differences are accepted."""
        body = make_body(full_data(), version="1.4.2", preview=True)
        result = asyncio.run(BackupService(household).restore(user, body))
        assert isinstance(result, RestorePreview)

    def test_unreadable_collections(self, household, user):
        """Test a valid checksum over the wrong shape is still invalid."""
        body = make_body({"contas": "not a list"}, confirmDelete=True)

        with pytest.raises(InvalidBackupError):
            asyncio.run(BackupService(household).restore(user, body))


class TestRestorePreview:
    """Tests for the non-destructive preview branch."""

    def test_preview(self, user):
        """Test counts and warning, with no mutation."""
        storage = RecordingStorage()
        body = make_body(full_data(), preview=True, confirmDelete=True)

        result = asyncio.run(BackupService(storage).restore(user, body))

        assert storage.calls == []
        wire = result.to_wire()
        assert wire["success"] is True
        assert wire["preview"] is True
        assert wire["backupInfo"] == {
            "version": "1.0.0",
            "createdAt": "2024-05-01T12:00:00+00:00",
            "originalUser": "ana@example.com",
        }
        assert wire["counts"] == {
            "contas": 1,
            "categorias": 1,
            "transacoes": 1,
            "investimentos": 1,
            "metas": 1,
        }
        assert "DELETAR" in wire["warning"]

    def test_preview_flag_must_be_true(self, user):
        """Test a truthy non-boolean preview flag does not count."""
        storage = RecordingStorage()
        body = make_body(full_data(), preview="true")

        with pytest.raises(ConfirmationRequiredError):
            asyncio.run(BackupService(storage).restore(user, body))
        assert storage.calls == []


class TestRestoreConfirmation:
    """Tests for the two-step destructive guard."""

    @pytest.mark.parametrize("flags", [{}, {"confirmDelete": False}, {"confirmDelete": "true"}])
    def test_confirmation_required(self, user, audit_logger, audit_storage, flags):
        """Test nothing is deleted or inserted without confirmDelete: true."""
        storage = RecordingStorage()
        body = make_body(full_data(), **flags)

        with pytest.raises(ConfirmationRequiredError) as exc:
            asyncio.run(BackupService(storage, audit_logger).restore(user, body))

        assert exc.value.status_code == 400
        assert "confirmDelete: true" in exc.value.message
        assert storage.calls == []
        assert audit_storage.events[-1].details["stage"] == "confirmation_required"


class TestRestoreExecution:
    """Tests for the confirmed restore."""

    def test_delete_and_insert_order(self, user):
        """Test children are deleted first and parents inserted first."""
        storage = RecordingStorage()
        body = make_body(full_data(), confirmDelete=True)

        asyncio.run(BackupService(storage).restore(user, body))

        assert storage.calls[:10] == [
            ("delete", "transacoes"),
            ("delete", "investimentos"),
            ("delete", "metas"),
            ("delete", "categorias"),
            ("delete", "contas"),
            ("insert", "contas"),
            ("insert", "categorias"),
            ("insert", "transacoes"),
            ("insert", "investimentos"),
            ("insert", "metas"),
        ]

    def test_transaction_links_are_nulled(self, storage, user):
        """Test restored transactions lose category and account links."""
        body = make_body(full_data(), confirmDelete=True)

        report = asyncio.run(BackupService(storage).restore(user, body))

        [restored] = asyncio.run(storage.list_records(Resource.TRANSACTIONS, "user-1"))
        assert restored.category_id is None
        assert restored.account_id is None
        assert report.results["transacoes"].restored == 1
        assert report.results["transacoes"].errors == []

    def test_records_get_new_ids_and_requester_owner(self, storage, user):
        """Test original ids and owners are discarded."""
        data = full_data()
        old_id = data["contas"][0]["id"]

        asyncio.run(BackupService(storage).restore(user, make_body(data, confirmDelete=True)))

        [account] = asyncio.run(storage.list_records(Resource.ACCOUNTS, "user-1"))
        assert str(account.id) != old_id
        assert asyncio.run(storage.list_records(Resource.ACCOUNTS, "old-user")) == []

    def test_replaces_only_the_requesters_data(self, household, user):
        """Test another user's records survive a restore."""
        other_before = counts(household, "user-2")

        report = asyncio.run(
            BackupService(household).restore(user, make_body(full_data(), confirmDelete=True))
        )

        assert isinstance(report, RestoreReport)
        assert counts(household, "user-1")["contas"] == 1
        assert counts(household, "user-1")["transacoes"] == 1
        assert counts(household, "user-2") == other_before

    def test_round_trip(self, household, user):
        """Test an exported file restores to the same collections."""
        service = BackupService(household)
        wire = asyncio.run(service.export(user)).to_wire()
        wire["confirmDelete"] = True

        report = asyncio.run(service.restore(user, wire))

        assert {name: r.restored for name, r in report.results.items()} == {
            "contas": 2,
            "categorias": 1,
            "transacoes": 2,
            "investimentos": 1,
            "metas": 1,
        }
        transactions = asyncio.run(household.list_records(Resource.TRANSACTIONS, "user-1"))
        assert {t.description for t in transactions} == {"Salário", "Supermercado"}

    def test_invalid_rows_do_not_abort_siblings(self, storage, user):
        """Test per-resource error reporting."""
        data = full_data()
        data["contas"].insert(0, {"owner_id": "old-user", "type": "checking"})

        report = asyncio.run(BackupService(storage).restore(user, make_body(data, confirmDelete=True)))

        assert report.results["contas"].restored == 1
        assert len(report.results["contas"].errors) == 1
        assert report.results["contas"].errors[0].startswith("Registro 1 inválido (name)")
        assert report.results["metas"].restored == 1

    def test_empty_collections_are_reported(self, storage, user):
        """Test every collection appears in the report, even when empty."""
        report = asyncio.run(BackupService(storage).restore(user, make_body({}, confirmDelete=True)))

        wire = report.to_wire()
        assert wire["success"] is True
        assert set(wire["results"]) == {"contas", "categorias", "transacoes", "investimentos", "metas"}
        assert all(r == {"restored": 0, "errors": []} for r in wire["results"].values())
        assert "reassociar" in wire["note"]

    def test_profile_patch(self, household, user):
        """Test only name and monthly income are copied to the profile."""
        asyncio.run(BackupService(household).restore(user, make_body(full_data(), confirmDelete=True)))

        profile = asyncio.run(household.get_profile("user-1"))
        assert profile.name == "Ana Maria"
        assert profile.monthly_income == Decimal("12000")
        assert profile.email == "user-1@example.com"
        assert profile.id == "user-1"

    def test_profile_patch_skips_absent_fields(self, household, user):
        """Test absent fields are left untouched."""
        data = full_data()
        data["usuario"] = {"email": "old@example.com", "name": ""}
        storage = household

        asyncio.run(BackupService(storage).restore(user, make_body(data, confirmDelete=True)))

        profile = asyncio.run(storage.get_profile("user-1"))
        assert profile.name == "Ana"
        assert profile.monthly_income == Decimal("10000")

    def test_missing_profile_is_not_an_error(self, storage, user):
        """Test a restore for a user without profile row still succeeds."""
        report = asyncio.run(
            BackupService(storage).restore(user, make_body(full_data(), confirmDelete=True))
        )
        assert report.success is True

    def test_audit_trail(self, storage, user, audit_logger, audit_storage):
        """Test every step is audited under one correlation id."""
        asyncio.run(
            BackupService(storage, audit_logger).restore(user, make_body(full_data(), confirmDelete=True))
        )

        types = [e.event_type for e in audit_storage.events]
        assert types[0] == AuditEventType.RESTORE_STARTED
        assert types.count(AuditEventType.RESOURCE_DELETED) == 5
        assert types.count(AuditEventType.RESOURCE_RESTORED) == 5
        assert types[-1] == AuditEventType.RESTORE_COMPLETED
        assert len({e.correlation_id for e in audit_storage.events}) == 1

    def test_unexpected_failure(self, user, audit_logger, audit_storage):
        """Test a failure midway surfaces as RestoreFailedError without rollback."""

        class FailingStorage(RecordingStorage):
            async def delete_records(self, resource, owner_id):
                if resource == Resource.CATEGORIES:
                    raise RuntimeError("quota exceeded")
                return await super().delete_records(resource, owner_id)

        storage = FailingStorage()
        with pytest.raises(RestoreFailedError, match="Erro ao restaurar backup") as exc:
            asyncio.run(
                BackupService(storage, audit_logger).restore(user, make_body(full_data(), confirmDelete=True))
            )

        assert exc.value.status_code == 500
        assert storage.calls == [
            ("delete", "transacoes"),
            ("delete", "investimentos"),
            ("delete", "metas"),
        ]
        failed = audit_storage.events[-1]
        assert failed.event_type == AuditEventType.RESTORE_FAILED
