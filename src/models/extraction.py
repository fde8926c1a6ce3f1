"""
Document Extraction Models

What the OCR step reads off a bill slip (boleto) or a credit card
statement (fatura). These are suggestions for the user to review and
import; nothing here is persisted as-is.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.finance import TransactionKind

DEFAULT_DESCRIPTION = "Transação importada"
DEFAULT_CATEGORY = "Outros"


class DocumentKind(str, Enum):
    """Documents the extractor knows how to read."""
    BOLETO = "boleto"   # Brazilian bank payment slip: one payable
    FATURA = "fatura"   # Credit card statement: many purchases


class ExtractedTransaction(BaseModel):
    """One transaction read from a document."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(default=DEFAULT_DESCRIPTION, min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    date: date
    kind: TransactionKind = TransactionKind.EXPENSE
    category: str = DEFAULT_CATEGORY


class ExtractionResult(BaseModel):
    """Everything read from one document."""

    kind: DocumentKind
    transactions: list[ExtractedTransaction] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.transactions)
