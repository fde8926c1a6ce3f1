"""
Month filtering and per-category spending analysis.

A card purchase belongs to the month of the statement it is billed on
(`billing_month`); older rows without one fall back to the transaction
date.
"""

from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel

from src.models.finance import Category, Transaction, TransactionKind

TREND_THRESHOLD = 0.1


class MonthTransaction(BaseModel):
    transaction: Transaction
    installment_display: Optional[str] = None


class MonthTotals(BaseModel):
    total_income: float
    total_expenses: float
    balance: float
    transaction_count: int


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class CategorySpending(BaseModel):
    category_id: UUID
    category_name: str
    amount_spent: float
    budget: Optional[float] = None
    percent_used: float
    percent_of_total: float
    trend: Trend
    monthly_average: float


def in_month(transaction: Transaction, year: int, month: int) -> bool:
    reference = transaction.billing_month or transaction.date
    return reference.year == year and reference.month == month


def transactions_for_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> list[MonthTransaction]:
    """Transactions of a month, with "n/N" attached to installment purchases."""
    result = []
    for t in transactions:
        if not in_month(t, year, month):
            continue
        display = f"{t.current_installment}/{t.installments}" if t.is_installment else None
        result.append(MonthTransaction(transaction=t, installment_display=display))
    return result


def month_totals(transactions: Iterable[Transaction], year: int, month: int) -> MonthTotals:
    rows = [m.transaction for m in transactions_for_month(transactions, year, month)]
    income = sum(float(t.amount) for t in rows if t.kind == TransactionKind.INCOME)
    expenses = sum(float(t.amount) for t in rows if t.kind == TransactionKind.EXPENSE)
    return MonthTotals(
        total_income=income,
        total_expenses=expenses,
        balance=income - expenses,
        transaction_count=len(rows),
    )


def _by_category(transactions: Iterable[Transaction]) -> dict[UUID, float]:
    totals: dict[UUID, float] = {}
    for t in transactions:
        if t.category_id is None:
            continue
        totals[t.category_id] = totals.get(t.category_id, 0.0) + float(t.amount)
    return totals


def _trend(current: float, previous: float) -> Trend:
    diff = current - previous
    if diff > previous * TREND_THRESHOLD:
        return Trend.UP
    if diff < -previous * TREND_THRESHOLD:
        return Trend.DOWN
    return Trend.STABLE


def analyze_category_spending(
    current_month: Iterable[Transaction],
    previous_month: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[CategorySpending]:
    """
    Spending per category this month, largest first.

    Transactions without a category, or whose category is unknown, are
    left out. `percent_used` is 0 for categories without a monthly limit.
    """
    by_id = {c.id: c for c in categories if c.id is not None}
    current = {k: v for k, v in _by_category(current_month).items() if k in by_id}
    previous = _by_category(previous_month)
    total = sum(current.values())

    analysis = []
    for category_id, amount in current.items():
        category = by_id[category_id]
        prev = previous.get(category_id, 0.0)
        budget = float(category.monthly_limit) if category.monthly_limit else None
        analysis.append(CategorySpending(
            category_id=category_id,
            category_name=category.name,
            amount_spent=amount,
            budget=budget,
            percent_used=amount / budget * 100 if budget else 0.0,
            percent_of_total=amount / total * 100 if total > 0 else 0.0,
            trend=_trend(amount, prev),
            monthly_average=(amount + prev) / 2,
        ))

    return sorted(analysis, key=lambda c: c.amount_spent, reverse=True)
