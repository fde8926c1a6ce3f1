"""
Data Models Package

This package contains all Pydantic models used in DinDin.
All data flowing through the system must conform to these schemas.
"""

from src.models.finance import (
    Account,
    AccountType,
    AuthenticatedUser,
    Budget,
    Category,
    CategoryGroup,
    CategoryKind,
    Goal,
    GoalStatus,
    Investment,
    InvestmentType,
    Ownership,
    Transaction,
    TransactionKind,
    UserProfile,
)
from src.models.extraction import (
    DocumentKind,
    ExtractedTransaction,
    ExtractionResult,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Account",
    "AccountType",
    "AuthenticatedUser",
    "Budget",
    "Category",
    "CategoryGroup",
    "CategoryKind",
    "Goal",
    "GoalStatus",
    "Investment",
    "InvestmentType",
    "Ownership",
    "Transaction",
    "TransactionKind",
    "UserProfile",
    # Extraction models
    "DocumentKind",
    "ExtractedTransaction",
    "ExtractionResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
