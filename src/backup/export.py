"""
Data Export

Plain downloads of the ledger for spreadsheets and other tools. Unlike a
backup there is no version, no checksum and no restore: transactions,
accounts and categories, as JSON or CSV, optionally limited to a date
range of transactions.

File names:
    all resources, JSON      dindin-export-YYYY-MM-DD.json
    one resource             dindin-<resource>-YYYY-MM-DD.<format>

CSV of every resource at once is not one file: each resource becomes its
own CSV text, returned side by side for the client to save.
"""

import asyncio
from datetime import date
from enum import Enum
from typing import Any, Optional, Union

import pandas as pd
import structlog

from src.audit import AuditLogger, create_correlation_id
from src.backup.errors import DataExportFailedError, InvalidExportOptionError
from src.models.finance import AuthenticatedUser
from src.services.storage import FinanceStorageInterface, Resource

logger = structlog.get_logger(__name__)

CSV_FILES_MESSAGE = "Use os dados de cada propriedade para salvar como arquivos CSV separados"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class ExportResource(str, Enum):
    TRANSACTIONS = "transacoes"
    ACCOUNTS = "contas"
    CATEGORIES = "categorias"
    ALL = "all"

    @property
    def resources(self) -> list[Resource]:
        if self == ExportResource.ALL:
            return [Resource.TRANSACTIONS, Resource.ACCOUNTS, Resource.CATEGORIES]
        return [Resource(self.value)]


def parse_export_options(export_format: str, resource: str) -> tuple[ExportFormat, ExportResource]:
    """
    Raises:
        InvalidExportOptionError: Unknown format or resource
    """
    try:
        fmt = ExportFormat(export_format)
    except ValueError:
        raise InvalidExportOptionError("Formato inválido. Use 'json' ou 'csv'")
    try:
        selected = ExportResource(resource)
    except ValueError:
        raise InvalidExportOptionError(
            "Recurso inválido. Use 'transacoes', 'contas', 'categorias' ou 'all'"
        )
    return fmt, selected


def export_filename(resource: ExportResource, fmt: ExportFormat, today: date) -> str:
    if resource == ExportResource.ALL:
        return f"dindin-export-{today.isoformat()}.{fmt.value}"
    return f"dindin-{resource.value}-{today.isoformat()}.{fmt.value}"


def _cell(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "; ".join(str(v) for v in value)
    return value


def to_csv(rows: list[dict[str, Any]], columns: Optional[list[str]] = None) -> str:
    """
    CSV text of `rows`, header first.

    Columns default to the keys of the first row. Missing values are empty
    cells, lists are joined with "; " and text holding commas, quotes or
    line breaks is quoted. No rows gives an empty string.
    """
    if not rows:
        return ""
    columns = columns or list(rows[0])
    frame = pd.DataFrame(
        [{c: _cell(row.get(c)) for c in columns} for row in rows],
        columns=columns,
        dtype=object,
    )
    return frame.to_csv(index=False, lineterminator="\n")


class DataExporter:
    """Reads one user's ledger for download."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def export(
        self,
        user: AuthenticatedUser,
        resource: ExportResource = ExportResource.ALL,
        start: Optional[date] = None,
        end: Optional[date] = None,
        export_format: ExportFormat = ExportFormat.JSON,
    ) -> dict[str, list[dict[str, Any]]]:
        """
        Rows of the selected resources, keyed by resource name.

        Transactions come newest first and are limited to `start`..`end`
        (both inclusive) when given. Accounts are sorted by name and
        categories by kind, then name.

        Raises:
            DataExportFailedError: If any read fails
        """
        correlation_id = create_correlation_id()
        selected = resource.resources
        try:
            results = await asyncio.gather(*(self._read(r, user.id, start, end) for r in selected))
        except Exception as e:
            logger.exception("data_export_failed", action="export", resource=resource.value)
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"action": "export"},
                correlation_id=correlation_id,
                owner_id=user.id,
            )
            raise DataExportFailedError() from e

        data = {
            r.value: [record.model_dump(mode="json") for record in records]
            for r, records in zip(selected, results)
        }
        await self._audit.log_data_exported(
            user.id,
            resource.value,
            export_format.value,
            {name: len(rows) for name, rows in data.items()},
            correlation_id,
        )
        return data

    async def _read(
        self,
        resource: Resource,
        owner_id: str,
        start: Optional[date],
        end: Optional[date],
    ) -> list:
        if resource == Resource.TRANSACTIONS:
            records = await self._storage.list_records(
                resource, owner_id, order_by="date", descending=True
            )
            return [
                t for t in records
                if (start is None or t.date >= start) and (end is None or t.date <= end)
            ]
        if resource == Resource.CATEGORIES:
            records = await self._storage.list_records(resource, owner_id)
            return sorted(records, key=lambda c: (c.kind.value, c.name.lower()))
        return await self._storage.list_records(resource, owner_id, order_by="name")


def render_csv(data: dict[str, list[dict[str, Any]]], resource: ExportResource) -> Union[dict[str, Any], str]:
    """One CSV text for a single resource, or every resource side by side."""
    columns = {r.value: list(r.model.model_fields) for r in resource.resources}
    if resource == ExportResource.ALL:
        return {
            "format": ExportFormat.CSV.value,
            "files": {name: to_csv(rows, columns[name]) for name, rows in data.items()},
            "message": CSV_FILES_MESSAGE,
        }
    return to_csv(data[resource.value], columns[resource.value])
