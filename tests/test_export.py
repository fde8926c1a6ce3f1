"""Tests for plain JSON/CSV data export."""

import asyncio
from datetime import date

import pytest

from src.backup import (
    DataExporter,
    DataExportFailedError,
    ExportFormat,
    ExportResource,
    InvalidExportOptionError,
    export_filename,
    parse_export_options,
    render_csv,
    to_csv,
)
from src.models.audit import AuditEventType
from src.services.storage import InMemoryFinanceStorage, Resource, StorageError


class TestCsv:
    """Tests for CSV rendering."""

    def test_header_and_rows(self):
        text = to_csv([{"name": "Conta", "type": "checking"}, {"name": "Cartão", "type": "credit_card"}])
        assert text == "name,type\nConta,checking\nCartão,credit_card\n"

    def test_quoting(self):
        """Test commas, quotes and line breaks are quoted."""
        text = to_csv([{"description": 'Feira, "orgânica"', "notes": "linha 1\nlinha 2"}])
        assert text == 'description,notes\n"Feira, ""orgânica""","linha 1\nlinha 2"\n'

    def test_cells(self):
        """Test missing values, lists, booleans and integers."""
        rows = [
            {"tags": ["casa", "mercado"], "recurring": True, "installments": 3},
            {"tags": [], "recurring": False, "installments": None},
        ]
        text = to_csv(rows, ["tags", "recurring", "installments", "notes"])
        assert text == (
            "tags,recurring,installments,notes\n"
            "casa; mercado,true,3,\n"
            ",false,,\n"
        )

    def test_no_rows(self):
        assert to_csv([]) == ""


class TestOptions:
    """Tests for format and resource selection."""

    def test_defaults(self):
        assert parse_export_options("json", "all") == (ExportFormat.JSON, ExportResource.ALL)
        assert parse_export_options("csv", "contas") == (ExportFormat.CSV, ExportResource.ACCOUNTS)

    def test_invalid_format(self):
        with pytest.raises(InvalidExportOptionError, match="Formato inválido") as exc:
            parse_export_options("xlsx", "all")
        assert exc.value.status_code == 400

    def test_invalid_resource(self):
        with pytest.raises(InvalidExportOptionError, match="Recurso inválido"):
            parse_export_options("json", "metas")

    def test_filenames(self):
        today = date(2024, 5, 20)
        assert export_filename(ExportResource.ALL, ExportFormat.JSON, today) == "dindin-export-2024-05-20.json"
        assert export_filename(ExportResource.TRANSACTIONS, ExportFormat.CSV, today) == "dindin-transacoes-2024-05-20.csv"


class TestDataExporter:
    """Tests for DataExporter against the in-memory household."""

    def test_all_resources(self, household, user, audit_logger, audit_storage):
        """Test only the owner's rows are read, each collection in its order."""
        data = asyncio.run(DataExporter(household, audit_logger).export(user))

        assert set(data) == {"transacoes", "contas", "categorias"}
        assert [t["description"] for t in data["transacoes"]] == ["Salário", "Supermercado"]
        assert [a["name"] for a in data["contas"]] == ["Cartão", "Conta Corrente"]
        assert all(row["owner_id"] == "user-1" for rows in data.values() for row in rows)

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.DATA_EXPORTED
        assert event.details["counts"] == {"transacoes": 2, "contas": 2, "categorias": 1}

    def test_date_range_is_inclusive(self, household, user):
        exporter = DataExporter(household)

        only_salary = asyncio.run(exporter.export(
            user, ExportResource.TRANSACTIONS, start=date(2024, 5, 4), end=date(2024, 5, 5),
        ))
        both = asyncio.run(exporter.export(
            user, ExportResource.TRANSACTIONS, start=date(2024, 5, 3), end=date(2024, 5, 5),
        ))

        assert [t["description"] for t in only_salary["transacoes"]] == ["Salário"]
        assert len(both["transacoes"]) == 2

    def test_csv_of_one_resource(self, household, user):
        data = asyncio.run(DataExporter(household).export(user, ExportResource.CATEGORIES))

        text = render_csv(data, ExportResource.CATEGORIES)

        header, row = text.splitlines()
        assert header.split(",")[:3] == ["id", "owner_id", "name"]
        assert "Mercado" in row

    def test_csv_of_everything(self, household, user):
        data = asyncio.run(DataExporter(household).export(user))

        body = render_csv(data, ExportResource.ALL)

        assert body["format"] == "csv"
        assert set(body["files"]) == {"transacoes", "contas", "categorias"}
        assert body["files"]["transacoes"].count("\n") == 3

    def test_read_failure(self, user, audit_logger, audit_storage):
        """Test a failing read fails the export and is audited."""

        class BrokenStorage(InMemoryFinanceStorage):
            async def list_records(self, resource, owner_id, order_by=None, descending=False):
                if resource == Resource.CATEGORIES:
                    raise StorageError("sheet unavailable")
                return await super().list_records(resource, owner_id, order_by, descending)

        with pytest.raises(DataExportFailedError, match="Erro ao exportar dados"):
            asyncio.run(DataExporter(BrokenStorage(), audit_logger).export(user))
        assert audit_storage.events[-1].event_type == AuditEventType.SYSTEM_ERROR
