"""
Core Data Models for DinDin

These models define the schemas for every household record the system
stores, summarizes and backs up:
1. Accounts, categories and transactions (the ledger)
2. Investments and goals (the long-term view)
3. Monthly budgets (the 50/30/20 snapshot)
4. The user profile and the verified session identity

DESIGN DECISION: Every owned record carries an explicit `owner_id`.
Storage filters on it for every read and write; a record owned by someone
else is indistinguishable from a record that does not exist.

Identifiers are assigned by the store on insert, so freshly built records
have `id=None` until they are persisted.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of accounts a household keeps."""
    CHECKING = "checking"
    CREDIT_CARD = "credit_card"
    INVESTMENT = "investment"
    CASH = "cash"
    OTHER = "other"


class CategoryKind(str, Enum):
    """Which side of the ledger a category belongs to."""
    INCOME = "income"
    EXPENSE = "expense"
    INVESTMENT = "investment"


class CategoryGroup(str, Enum):
    """
    The three buckets of the 50/30/20 budgeting rule.

    Spending in a category without a group is budgeted as LIFESTYLE
    (see `src.metrics.budget_rule.DEFAULT_GROUP`).
    """
    ESSENTIAL = "essential"
    LIFESTYLE = "lifestyle"
    INVESTMENT = "investment"


class TransactionKind(str, Enum):
    """Transaction direction."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    INVESTMENT = "investment"


class Ownership(str, Enum):
    """Whether a transaction is a household or a personal expense."""
    HOUSEHOLD = "household"
    PERSONAL = "personal"


class InvestmentType(str, Enum):
    """Asset classes used for allocation analysis."""
    STOCKS = "stocks"
    BONDS = "bonds"
    CRYPTO = "crypto"
    REAL_ESTATE = "real_estate"
    FUNDS = "funds"
    OTHER = "other"


class GoalStatus(str, Enum):
    """Lifecycle of a savings goal."""
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Account(BaseModel):
    """
    A bank account, credit card, wallet or brokerage account.

    The current balance is derived, never stored: see
    `src.metrics.accounts.account_balance`.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    type: AccountType = AccountType.CHECKING
    bank: Optional[str] = Field(default=None, max_length=120)
    opening_balance: Decimal = Field(default=Decimal("0"), decimal_places=2)
    color: Optional[str] = None
    icon: Optional[str] = None
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class Category(BaseModel):
    """A spending or income category with its budget group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=80)
    kind: CategoryKind = CategoryKind.EXPENSE
    color: str = "#6b7280"
    icon: Optional[str] = None
    group: Optional[CategoryGroup] = None
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)


class Transaction(BaseModel):
    """
    A single ledger entry.

    `amount` is always a non-negative magnitude; the direction comes from
    `kind`. Installment purchases carry `installments` (total) and
    `current_installment`, and card purchases carry the `billing_month`
    they are charged in.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    owner_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    kind: TransactionKind
    date: date
    recurring: bool = False
    installments: Optional[int] = Field(default=None, ge=1)
    current_installment: Optional[int] = Field(default=None, ge=1)
    billing_month: Optional[date] = None
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=1000)
    ownership: Ownership = Ownership.HOUSEHOLD
    category_id: Optional[UUID] = None
    account_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def validate_installments(self) -> "Transaction":
        """An installment number cannot run past the installment count."""
        if self.installments and self.current_installment:
            if self.current_installment > self.installments:
                raise ValueError("Current installment cannot exceed installments")
        return self

    @property
    def is_installment(self) -> bool:
        return (
            self.installments is not None
            and self.installments >= 2
            and self.current_installment is not None
        )


# =============================================================================
# LONG-TERM MODELS
# =============================================================================

class Investment(BaseModel):
    """A holding tracked at purchase and current price."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    type: InvestmentType = InvestmentType.OTHER
    institution: Optional[str] = Field(default=None, max_length=120)
    purchase_price: Decimal = Field(..., ge=0, decimal_places=2)
    current_price: Decimal = Field(..., ge=0, decimal_places=2)
    purchase_date: date
    maturity_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def validate_dates(self) -> "Investment":
        if self.maturity_date and self.maturity_date < self.purchase_date:
            raise ValueError("Maturity date cannot be before purchase date")
        return self

    @property
    def profitability(self) -> float:
        """Percent gain over the purchase price (0 when nothing was paid)."""
        if self.purchase_price <= 0:
            return 0.0
        gain = self.current_price - self.purchase_price
        return float(gain / self.purchase_price * 100)


class Goal(BaseModel):
    """
    A savings goal.

    Progress values are derived and clamped: `remaining` never goes
    negative, and a goal with `current_amount >= target_amount` is complete
    even when the target is zero.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: Decimal = Field(..., ge=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    deadline: Optional[date] = None
    category_id: Optional[UUID] = None
    status: GoalStatus = GoalStatus.ACTIVE
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def progress(self) -> float:
        from src.metrics.primitives import percentage

        return percentage(float(self.current_amount), float(self.target_amount))

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.target_amount - self.current_amount)

    @property
    def completed(self) -> bool:
        return self.current_amount >= self.target_amount


class Budget(BaseModel):
    """Projected vs realized amounts of one month under the 50/30/20 rule."""

    id: Optional[UUID] = None
    owner_id: str = Field(..., min_length=1)
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="YYYY-MM")
    essentials_projected: Decimal = Decimal("0")
    essentials_realized: Decimal = Decimal("0")
    lifestyle_projected: Decimal = Decimal("0")
    lifestyle_realized: Decimal = Decimal("0")
    investments_projected: Decimal = Decimal("0")
    investments_realized: Decimal = Decimal("0")
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_analysis(cls, owner_id: str, month: str, analysis) -> "Budget":
        """Freeze a `BudgetRuleAnalysis` into a storable monthly budget."""
        def money(value: float) -> Decimal:
            return Decimal(str(round(value, 2)))

        return cls(
            owner_id=owner_id,
            month=month,
            essentials_projected=money(analysis.essentials.projected),
            essentials_realized=money(analysis.essentials.realized),
            lifestyle_projected=money(analysis.lifestyle.projected),
            lifestyle_realized=money(analysis.lifestyle.realized),
            investments_projected=money(analysis.investments.projected),
            investments_realized=money(analysis.investments.realized),
        )


# =============================================================================
# USERS
# =============================================================================

class UserProfile(BaseModel):
    """Profile row of a household member."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    email: str
    name: Optional[str] = Field(default=None, max_length=120)
    monthly_income: Optional[Decimal] = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class AuthenticatedUser(BaseModel):
    """The verified identity behind a request."""

    id: str = Field(..., min_length=1)
    email: str = ""
