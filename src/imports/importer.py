"""
Data Importer

Stores accounts, categories and transactions sent by the user in one
request: rows read from a document after review, or rows from a file.

IMPORT FLOW:
1. Every row of every resource is validated; any invalid row rejects the
   whole request with the errors listed by resource, index and field
2. `preview` stops here and reports per-resource totals and duplicates
3. Accounts, then categories, then transactions are inserted, so a
   transaction can name a category created by the same request

DUPLICATE DETECTION: A transaction row is a duplicate when an existing
transaction of the same user, or an earlier row of the same request, has
the same `description|amount|date` key. The first occurrence is kept.
Duplicates are skipped by default.

Card purchases are billed on the next month's statement, so rows imported
into a credit card account get `billing_month` set to the first day of the
following month. Every other account bills in the transaction's own month.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.audit import AuditLogger, create_correlation_id
from src.models.extraction import ExtractedTransaction
from src.models.finance import (
    Account,
    AccountType,
    AuthenticatedUser,
    Category,
    CategoryGroup,
    CategoryKind,
    Ownership,
    Transaction,
)
from src.services.storage import FinanceStorageInterface, Resource, StorageError

logger = structlog.get_logger(__name__)

# Message per invalid field, in the words the web client shows.
FIELD_MESSAGES = {
    "description": "Descrição é obrigatória",
    "amount": "Valor deve ser maior que zero",
    "kind": "Tipo inválido",
    "type": "Tipo inválido",
    "date": "Data deve estar no formato YYYY-MM-DD",
    "name": "Nome é obrigatório",
    "color": "Cor é obrigatória",
    "group": "Grupo inválido",
    "ownership": "Ownership inválido",
}


class RowError(BaseModel):
    index: int
    field: str
    message: str


class ResourceErrors(BaseModel):
    resource: str
    errors: list[RowError]


class ImportValidationError(Exception):
    """The import request cannot be processed as sent."""

    status_code = 400

    def __init__(self, message: str, validation_errors: Optional[list[ResourceErrors]] = None):
        super().__init__(message)
        self.message = message
        self.validation_errors = validation_errors or []


# =============================================================================
# ROWS
# =============================================================================

class AccountRow(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=120)
    type: AccountType
    bank: Optional[str] = None
    opening_balance: Decimal = Decimal("0")
    color: Optional[str] = None
    icon: Optional[str] = None
    active: bool = True


class CategoryRow(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=80)
    kind: CategoryKind
    color: str = Field(..., min_length=1)
    icon: Optional[str] = None
    group: CategoryGroup
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0)


class TransactionRow(ExtractedTransaction):
    """A reviewed extraction row, plus what a file row may also carry."""

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    recurring: bool = False
    installments: Optional[int] = Field(default=None, ge=1)
    current_installment: Optional[int] = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    ownership: Ownership = Ownership.HOUSEHOLD
    account_id: Optional[UUID] = None


class ImportRequest(BaseModel):
    """Rows to import, per resource, with the import options."""

    accounts: list[Any] = Field(default_factory=list)
    categories: list[Any] = Field(default_factory=list)
    transactions: list[Any] = Field(default_factory=list)
    account_id: Optional[UUID] = None
    skip_duplicates: bool = True
    preview: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.accounts or self.categories or self.transactions)


class ResourceImportResult(BaseModel):
    total: int = 0
    imported: int = 0
    skipped: int = 0
    duplicates: int = 0
    errors: int = 0
    error_messages: list[str] = Field(default_factory=list)


class ImportReport(BaseModel):
    success: bool = True
    preview: bool = False
    message: str
    results: dict[str, ResourceImportResult] = Field(default_factory=dict)

    def result(self, resource: Resource) -> ResourceImportResult:
        return self.results.setdefault(resource.value, ResourceImportResult())


# =============================================================================
# HELPERS
# =============================================================================

def duplicate_key(description: str, amount: Decimal, on: date) -> str:
    return f"{description.strip()}|{Decimal(amount).quantize(Decimal('0.01'))}|{on.isoformat()}"


def billing_month(on: date, account: Optional[Account]) -> date:
    """First day of the month the purchase is charged in."""
    if account is not None and account.type == AccountType.CREDIT_CARD:
        if on.month == 12:
            return date(on.year + 1, 1, 1)
        return date(on.year, on.month + 1, 1)
    return date(on.year, on.month, 1)


def find_duplicates(
    rows: list[ExtractedTransaction],
    existing: Iterable[Transaction],
) -> set[int]:
    """Indexes of `rows` that already exist or repeat an earlier row."""
    known = {duplicate_key(t.description, t.amount, t.date) for t in existing}
    duplicates = set()
    for index, row in enumerate(rows):
        key = duplicate_key(row.description, row.amount, row.date)
        if key in known:
            duplicates.add(index)
        known.add(key)
    return duplicates


def row_error(index: int, error: dict) -> RowError:
    field = str(error["loc"][0]) if error.get("loc") else "registro"
    if field == "date" and error.get("type") == "missing":
        message = "Data é obrigatória"
    else:
        message = FIELD_MESSAGES.get(field, error.get("msg", "Valor inválido"))
    return RowError(index=index, field=field, message=message)


def validate_rows(model: type[BaseModel], rows: list[Any]) -> tuple[list[BaseModel], list[RowError]]:
    """Parse every row, collecting one error per invalid field."""
    parsed, errors = [], []
    for index, row in enumerate(rows):
        if not isinstance(row, (dict, BaseModel)):
            errors.append(RowError(index=index, field="registro", message="Registro inválido"))
            continue
        try:
            parsed.append(model.model_validate(row.model_dump() if isinstance(row, BaseModel) else row))
        except ValidationError as e:
            seen = set()
            for error in e.errors():
                found = row_error(index, error)
                if found.field not in seen:
                    seen.add(found.field)
                    errors.append(found)
    return parsed, errors


# =============================================================================
# IMPORTER
# =============================================================================

class TransactionImporter:
    """Imports accounts, categories and transactions of one user."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def import_transactions(
        self,
        user: AuthenticatedUser,
        extracted: list[ExtractedTransaction],
        account_id: Optional[UUID] = None,
        skip_duplicates: bool = True,
        preview: bool = False,
    ) -> ImportReport:
        """
        Import reviewed extraction rows, or report what the import would do.

        Args:
            user: Owner of the new transactions
            extracted: Reviewed rows
            account_id: Account to attach every row to; must be the user's
            skip_duplicates: Leave out duplicate rows
            preview: Only count rows and duplicates

        Raises:
            ImportValidationError: Nothing to import, unknown account or
                invalid rows
        """
        return await self.import_data(user, ImportRequest(
            transactions=list(extracted),
            account_id=account_id,
            skip_duplicates=skip_duplicates,
            preview=preview,
        ))

    async def import_data(self, user: AuthenticatedUser, request: ImportRequest) -> ImportReport:
        """Validate every row, then preview or import all resources."""
        if request.is_empty:
            raise ImportValidationError("Nenhum dado para importar")

        accounts = {
            a.id: a for a in await self._storage.list_records(Resource.ACCOUNTS, user.id)
        }
        default_account = None
        if request.account_id is not None:
            default_account = accounts.get(request.account_id)
            if default_account is None:
                raise ImportValidationError("Conta não encontrada")

        account_rows, category_rows, transaction_rows = self._validate(request, accounts)

        existing = await self._storage.list_records(Resource.TRANSACTIONS, user.id)
        duplicates = find_duplicates(transaction_rows, existing)

        if request.preview:
            report = ImportReport(preview=True, message="Preview da importação")
            for resource, rows in (
                (Resource.ACCOUNTS, account_rows),
                (Resource.CATEGORIES, category_rows),
                (Resource.TRANSACTIONS, transaction_rows),
            ):
                if rows:
                    report.result(resource).total = len(rows)
            if transaction_rows:
                report.result(Resource.TRANSACTIONS).duplicates = len(duplicates)
            return report

        report = ImportReport(message="Importação concluída")

        if account_rows:
            await self._insert(report, Resource.ACCOUNTS, user.id, [
                Account(owner_id=user.id, **row.model_dump()) for row in account_rows
            ])

        if category_rows:
            await self._insert(report, Resource.CATEGORIES, user.id, [
                Category(owner_id=user.id, **row.model_dump(exclude_none=True)) for row in category_rows
            ])

        if transaction_rows:
            categories = await self._storage.list_records(Resource.CATEGORIES, user.id)
            category_ids = self._category_index(categories)

            kept = [
                row for index, row in enumerate(transaction_rows)
                if not (request.skip_duplicates and index in duplicates)
            ]
            result = report.result(Resource.TRANSACTIONS)
            result.total = len(transaction_rows)
            result.duplicates = len(duplicates)
            result.skipped = len(transaction_rows) - len(kept)

            records = []
            for row in kept:
                account = accounts.get(row.account_id) if row.account_id else default_account
                try:
                    records.append(Transaction(
                        owner_id=user.id,
                        description=row.description,
                        amount=row.amount,
                        kind=row.kind,
                        date=row.date,
                        recurring=row.recurring,
                        installments=row.installments,
                        current_installment=row.current_installment,
                        billing_month=billing_month(row.date, account),
                        tags=row.tags,
                        notes=row.notes,
                        ownership=row.ownership,
                        category_id=category_ids.get(row.category.strip().lower()),
                        account_id=account.id if account else None,
                    ))
                except ValidationError as e:
                    result.errors += 1
                    result.error_messages.append(f"{row.description}: {e.errors()[0]['msg']}")

            await self._insert(report, Resource.TRANSACTIONS, user.id, records)

        imported = {name: r.imported for name, r in report.results.items()}
        skipped = sum(r.skipped for r in report.results.values())
        await self._audit.log_import_completed(user.id, imported, skipped, create_correlation_id())
        return report

    def _validate(
        self,
        request: ImportRequest,
        accounts: dict[UUID, Account],
    ) -> tuple[list[AccountRow], list[CategoryRow], list[TransactionRow]]:
        account_rows, account_errors = validate_rows(AccountRow, request.accounts)
        category_rows, category_errors = validate_rows(CategoryRow, request.categories)
        transaction_rows, transaction_errors = validate_rows(TransactionRow, request.transactions)

        for index, row in enumerate(request.transactions):
            if not isinstance(row, dict) or not row.get("account_id"):
                continue
            if any(e.index == index and e.field == "account_id" for e in transaction_errors):
                continue
            try:
                known = UUID(str(row["account_id"])) in accounts
            except ValueError:
                known = False
            if not known:
                transaction_errors.append(
                    RowError(index=index, field="account_id", message="Conta não encontrada")
                )

        failures = [
            ResourceErrors(resource=resource.value, errors=errors)
            for resource, errors in (
                (Resource.TRANSACTIONS, transaction_errors),
                (Resource.ACCOUNTS, account_errors),
                (Resource.CATEGORIES, category_errors),
            )
            if errors
        ]
        if failures:
            raise ImportValidationError("Erros de validação encontrados", failures)
        return account_rows, category_rows, transaction_rows

    async def _insert(
        self,
        report: ImportReport,
        resource: Resource,
        owner_id: str,
        records: list,
    ) -> None:
        """Insert one resource; a failed insert counts every row as an error."""
        result = report.result(resource)
        if resource != Resource.TRANSACTIONS:
            result.total = len(records)
        if not records:
            return
        try:
            inserted = await self._storage.insert_records(resource, records)
            result.imported = len(inserted)
        except StorageError as e:
            logger.error(
                "import_failed",
                action="import",
                resource=resource.value,
                owner_id=owner_id,
                error=str(e),
            )
            result.errors += len(records)
            result.error_messages.append(str(e))

    @staticmethod
    def _category_index(categories: Iterable[Category]) -> dict[str, UUID]:
        """Category id by lowercase name; the first category wins on clashes."""
        index: dict[str, UUID] = {}
        for category in categories:
            if category.id is not None:
                index.setdefault(category.name.strip().lower(), category.id)
        return index
