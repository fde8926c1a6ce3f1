"""Services package."""

from src.services.ocr import (
    ExtractionFailedError,
    GeminiOCRService,
    NoTransactionsFoundError,
    OCRError,
    OCRNotConfiguredError,
    UnsupportedDocumentError,
)
from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    NotFoundError,
    Resource,
    StorageError,
)

__all__ = [
    # OCR services
    "ExtractionFailedError",
    "GeminiOCRService",
    "NoTransactionsFoundError",
    "OCRError",
    "OCRNotConfiguredError",
    "UnsupportedDocumentError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "FinanceStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    "NotFoundError",
    "Resource",
    "StorageError",
]
