"""OCR services package."""

from src.services.ocr.gemini_service import (
    ExtractionFailedError,
    GeminiOCRService,
    NoTransactionsFoundError,
    OCRError,
    OCRNotConfiguredError,
    UnsupportedDocumentError,
    clean_row,
    parse_extraction,
    strip_code_fences,
)

__all__ = [
    "ExtractionFailedError",
    "GeminiOCRService",
    "NoTransactionsFoundError",
    "OCRError",
    "OCRNotConfiguredError",
    "UnsupportedDocumentError",
    "clean_row",
    "parse_extraction",
    "strip_code_fences",
]
