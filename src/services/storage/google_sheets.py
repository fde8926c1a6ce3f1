"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The household can view and fix its data directly in Sheets
2. No database setup required
3. Built-in version history (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one household)
- No transactions: a restore that fails halfway stays half-applied
- Limited query capabilities (we filter in Python)

Layout: one worksheet per collection, titled with the collection's wire
name (`contas`, `transacoes`, ...), plus `usuarios` for profiles and the
audit sheet. The header row holds the model's field names. Scalar values
are written as plain text; list fields (e.g. tags) are JSON-encoded.
Reads validate every row back through the model.

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Type, get_args, get_origin
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.finance import Transaction, UserProfile
from src.services.storage.interface import (
    PATCHABLE_PROFILE_FIELDS,
    PROFILE_COLLECTION,
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    NotFoundError,
    Resource,
    StorageError,
)

logger = structlog.get_logger(__name__)


# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "resource",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def columns_for(model_cls: Type[BaseModel]) -> list[str]:
    """Header row of a model's worksheet."""
    return list(model_cls.model_fields.keys())


def _is_json_field(model_cls: Type[BaseModel], name: str) -> bool:
    annotation = model_cls.model_fields[name].annotation
    candidates = [annotation, *get_args(annotation)]
    return any(get_origin(a) in (list, dict) or a in (list, dict) for a in candidates)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str, ensure_ascii=False)
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    return str(value)


def record_to_row(record: BaseModel, columns: list[str]) -> list[str]:
    """Convert a model instance to a spreadsheet row."""
    return [_cell(getattr(record, name, None)) for name in columns]


def row_to_record(
    model_cls: Type[BaseModel],
    columns: list[str],
    row: list[str],
) -> BaseModel:
    """
    Convert a spreadsheet row back to a model instance.

    Empty cells are left out so the model's defaults apply.

    Raises:
        ValidationError: If the row does not describe a valid record
    """
    data: dict[str, Any] = {}
    for index, name in enumerate(columns):
        if name not in model_cls.model_fields:
            continue
        value = row[index] if index < len(row) else ""
        if value == "":
            continue
        data[name] = json.loads(value) if _is_json_field(model_cls, name) else value
    return model_cls.model_validate(data)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsFinanceStorage(FinanceStorageInterface):
    """
    Google Sheets implementation of household data storage.

    Every read loads the whole worksheet and filters on `owner_id` in
    Python. Rows that no longer validate are skipped with a warning rather
    than failing the whole read.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self, resource: Resource) -> gspread.Worksheet:
        return self._client.get_worksheet(resource.value, columns_for(resource.model))

    def _profile_sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(PROFILE_COLLECTION, columns_for(UserProfile))

    def _read(self, sheet: gspread.Worksheet, model_cls: Type[BaseModel]) -> list[tuple[int, BaseModel]]:
        """All valid rows of a sheet with their 1-based row numbers."""
        all_rows = sheet.get_all_values()
        if not all_rows:
            return []
        header = all_rows[0]

        records = []
        for idx, row in enumerate(all_rows[1:], start=2):  # row 1 is the header
            if not any(row):
                continue
            try:
                records.append((idx, row_to_record(model_cls, header, row)))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "sheet_row_skipped",
                    sheet=sheet.title,
                    row=idx,
                    error=str(e),
                )
        return records

    async def _owned_ids(self, resource: Resource, owner_id: str) -> set[UUID]:
        records = await self.list_records(resource, owner_id)
        return {r.id for r in records if r.id is not None}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get_profile(self, owner_id: str) -> Optional[UserProfile]:
        try:
            for _, profile in self._read(self._profile_sheet(), UserProfile):
                if profile.id == owner_id:
                    return profile
            return None
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

    async def update_profile(self, owner_id: str, fields: dict[str, Any]) -> UserProfile:
        """Patch the profile row cell by cell."""
        patch = {k: v for k, v in fields.items() if k in PATCHABLE_PROFILE_FIELDS}
        try:
            sheet = self._profile_sheet()
            header = sheet.row_values(1)
            for idx, profile in self._read(sheet, UserProfile):
                if profile.id != owner_id:
                    continue
                updated = UserProfile.model_validate({**profile.model_dump(), **patch})
                for name in patch:
                    sheet.update_cell(idx, header.index(name) + 1, _cell(getattr(updated, name)))
                return updated
            raise NotFoundError(f"Profile not found: {owner_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update profile: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_records(
        self,
        resource: Resource,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[BaseModel]:
        try:
            records = [
                record for _, record in self._read(self._sheet(resource), resource.model)
                if record.owner_id == owner_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list {resource.value}: {e}")

        if order_by:
            records.sort(key=lambda r: getattr(r, order_by), reverse=descending)
        return records

    async def get_record(
        self,
        resource: Resource,
        record_id: UUID,
        owner_id: str,
    ) -> Optional[BaseModel]:
        for record in await self.list_records(resource, owner_id):
            if record.id == record_id:
                return record
        return None

    async def insert_records(
        self,
        resource: Resource,
        records: list[BaseModel],
    ) -> list[BaseModel]:
        if not records:
            return []

        if resource == Resource.TRANSACTIONS:
            await self._check_links(records)

        inserted = [r.model_copy(update={"id": uuid4()}) for r in records]
        columns = columns_for(resource.model)
        try:
            sheet = self._sheet(resource)
            sheet.append_rows(
                [record_to_row(r, columns) for r in inserted],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to insert {resource.value}: {e}")
        return inserted

    async def _check_links(self, transactions: list[Transaction]) -> None:
        """Reject transactions pointing at categories or accounts of another owner."""
        for owner_id in {t.owner_id for t in transactions}:
            categories = await self._owned_ids(Resource.CATEGORIES, owner_id)
            accounts = await self._owned_ids(Resource.ACCOUNTS, owner_id)
            for t in transactions:
                if t.owner_id != owner_id:
                    continue
                if t.category_id and t.category_id not in categories:
                    raise StorageError(f"Category not found: {t.category_id}")
                if t.account_id and t.account_id not in accounts:
                    raise StorageError(f"Account not found: {t.account_id}")

    async def delete_records(self, resource: Resource, owner_id: str) -> int:
        try:
            sheet = self._sheet(resource)
            rows = [
                idx for idx, record in self._read(sheet, resource.model)
                if record.owner_id == owner_id
            ]
            # Bottom-up so earlier row numbers stay valid
            for idx in reversed(rows):
                sheet.delete_rows(idx)
            return len(rows)
        except Exception as e:
            raise StorageError(f"Failed to delete {resource.value}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            resource=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _events(self, predicate) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, ValidationError):
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = self._events(lambda row: len(row) > 6 and row[6] == str(correlation_id))
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_owner(
        self,
        owner_id: str,
    ) -> list[AuditEvent]:
        """Get events by owner."""
        try:
            events = self._events(lambda row: len(row) > 4 and row[4] == owner_id)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._events(lambda row: True)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
