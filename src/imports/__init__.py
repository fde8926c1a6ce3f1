"""Import of accounts, categories and reviewed transactions."""

from src.imports.importer import (
    ImportReport,
    ImportRequest,
    ImportValidationError,
    ResourceImportResult,
    RowError,
    TransactionImporter,
    billing_month,
    duplicate_key,
    find_duplicates,
)

__all__ = [
    "ImportReport",
    "ImportRequest",
    "ImportValidationError",
    "ResourceImportResult",
    "RowError",
    "TransactionImporter",
    "billing_month",
    "duplicate_key",
    "find_duplicates",
]
