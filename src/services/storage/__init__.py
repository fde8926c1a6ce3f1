"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves tests
and unconfigured deployments.
"""

from src.services.storage.interface import (
    PATCHABLE_PROFILE_FIELDS,
    PROFILE_COLLECTION,
    RESOURCE_MODELS,
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    NotFoundError,
    Resource,
    StorageError,
)
from src.services.storage.memory import InMemoryAuditStorage, InMemoryFinanceStorage
from src.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FinanceStorageInterface",
    "Resource",
    "RESOURCE_MODELS",
    "PATCHABLE_PROFILE_FIELDS",
    "PROFILE_COLLECTION",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
]
