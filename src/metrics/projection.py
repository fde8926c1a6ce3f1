"""
Month-End Projection Engine

Extrapolates the month's daily spending rate to the end of the month and
compares the projected balance with previous months.
"""

import calendar
from datetime import date
from enum import Enum
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

from src.metrics.primitives import percentage
from src.models.finance import Transaction, TransactionKind

TIGHT_MARGIN_RATIO = 0.1


class ProjectionStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    DANGER = "danger"


STATUS_LABELS = {
    ProjectionStatus.DANGER: "Atenção",
    ProjectionStatus.WARNING: "Apertado",
    ProjectionStatus.OK: "No caminho certo",
}


class MonthComparison(BaseModel):
    """Projected and actual balance of a past month."""
    month: str
    projected: float
    actual: float


class MonthEndProjection(BaseModel):
    current_day: int
    days_in_month: int
    remaining_days: int
    income: float
    expenses_to_date: float
    average_daily_expense: float
    projected_additional_expenses: float
    projected_total_expenses: float
    projected_balance: float
    status: ProjectionStatus
    status_label: str
    month_progress: float
    expense_progress: float
    daily_limit: float
    historical_average_balance: Optional[float] = None
    difference_from_average: Optional[float] = None
    percent_difference: Optional[float] = None


def classify_balance(projected_balance: float, income: float) -> ProjectionStatus:
    """Negative is danger; below 10% of income is tight; anything else is on track."""
    if projected_balance < 0:
        return ProjectionStatus.DANGER
    if projected_balance < income * TIGHT_MARGIN_RATIO:
        return ProjectionStatus.WARNING
    return ProjectionStatus.OK


def project_month_end(
    current_day: int,
    days_in_month: int,
    income: float,
    expenses_to_date: float,
    average_daily_expense: float,
    previous_months: Sequence[MonthComparison] = (),
) -> MonthEndProjection:
    """
    Project the balance left at the end of the month.

    Args:
        current_day: Day of the month (1-based)
        days_in_month: Length of the month
        income: Total income of the month
        expenses_to_date: Spent so far
        average_daily_expense: Daily spending rate to extrapolate
        previous_months: Past months to compare the projection with

    The comparison with history is omitted (None) when there is no history
    or its average balance is exactly zero.
    """
    remaining_days = max(0, days_in_month - current_day)
    projected_additional = average_daily_expense * remaining_days
    projected_total = expenses_to_date + projected_additional
    projected_balance = income - projected_total
    status = classify_balance(projected_balance, income)

    daily_limit = (income - expenses_to_date) / remaining_days if remaining_days > 0 else 0.0

    average = None
    difference = None
    percent_diff = None
    if previous_months:
        average = sum(m.actual for m in previous_months) / len(previous_months)
        difference = projected_balance - average
        if average != 0:
            percent_diff = difference / abs(average) * 100

    return MonthEndProjection(
        current_day=current_day,
        days_in_month=days_in_month,
        remaining_days=remaining_days,
        income=income,
        expenses_to_date=expenses_to_date,
        average_daily_expense=average_daily_expense,
        projected_additional_expenses=projected_additional,
        projected_total_expenses=projected_total,
        projected_balance=projected_balance,
        status=status,
        status_label=STATUS_LABELS[status],
        month_progress=percentage(current_day, days_in_month),
        expense_progress=percentage(expenses_to_date, income),
        daily_limit=daily_limit,
        historical_average_balance=average,
        difference_from_average=difference,
        percent_difference=percent_diff,
    )


def project_from_transactions(
    transactions: Iterable[Transaction],
    income: float,
    today: date,
    previous_months: Sequence[MonthComparison] = (),
) -> MonthEndProjection:
    """Projection for the month of `today`, from that month's transactions."""
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    expenses = sum(
        float(t.amount) for t in transactions
        if t.kind == TransactionKind.EXPENSE
    )
    daily_average = expenses / today.day if today.day > 0 else 0.0

    return project_month_end(
        current_day=today.day,
        days_in_month=days_in_month,
        income=income,
        expenses_to_date=expenses,
        average_daily_expense=daily_average,
        previous_months=previous_months,
    )
