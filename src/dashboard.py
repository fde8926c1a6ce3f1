"""
Dashboard summary.

Fetches one owner's records and runs every metrics engine over them.
The engines are pure; this is the only place they meet storage.

Month membership follows `billing_month` when set, so card purchases show
up in the month they are charged, not the month they were made.
"""

import asyncio
from datetime import date, datetime, time, timezone
from typing import Optional

import structlog
from pydantic import BaseModel

from src.config import AppSettings
from src.metrics import (
    DEFAULT_TARGETS,
    AccountTotals,
    Alert,
    AllocationAnalysis,
    BudgetRuleAnalysis,
    CategorySpending,
    GoalAlert,
    InvestmentSummary,
    MonthComparison,
    MonthEndProjection,
    MonthTotals,
    account_totals,
    aggregate_spending,
    analyze_allocation,
    analyze_budget_rule,
    analyze_category_spending,
    budget_alerts,
    goal_alerts,
    month_totals,
    project_from_transactions,
    summarize_investments,
    transactions_for_month,
)
from src.models.finance import AuthenticatedUser, Transaction
from src.services.storage import FinanceStorageInterface, Resource

logger = structlog.get_logger(__name__)

HISTORY_MONTHS = 3


class DashboardSummary(BaseModel):
    month: str
    totals: MonthTotals
    budget_rule: BudgetRuleAnalysis
    allocation: AllocationAnalysis
    investments: InvestmentSummary
    goal_alerts: list[GoalAlert]
    alerts: list[Alert]
    projection: MonthEndProjection
    accounts: AccountTotals
    categories: list[CategorySpending]


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_history(
    transactions: list[Transaction],
    today: date,
    months: int = HISTORY_MONTHS,
) -> list[MonthComparison]:
    """Closing balances of the months before `today`'s, skipping empty months."""
    history = []
    year, month = today.year, today.month
    for _ in range(months):
        year, month = previous_month(year, month)
        totals = month_totals(transactions, year, month)
        if totals.transaction_count == 0:
            continue
        history.append(MonthComparison(
            month=f"{year:04d}-{month:02d}",
            projected=totals.balance,
            actual=totals.balance,
        ))
    return history


class DashboardService:
    """Builds the dashboard of one user."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        app_settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._alert_limit = app_settings.goal_alert_limit if app_settings else 3

    async def build(self, user: AuthenticatedUser, today: Optional[date] = None) -> DashboardSummary:
        today = today or datetime.now(timezone.utc).date()

        profile, accounts, categories, transactions, investments, goals = await asyncio.gather(
            self._storage.get_profile(user.id),
            self._storage.list_records(Resource.ACCOUNTS, user.id),
            self._storage.list_records(Resource.CATEGORIES, user.id),
            self._storage.list_records(Resource.TRANSACTIONS, user.id),
            self._storage.list_records(Resource.INVESTMENTS, user.id),
            self._storage.list_records(Resource.GOALS, user.id),
        )

        current = [m.transaction for m in transactions_for_month(transactions, today.year, today.month)]
        year, month = previous_month(today.year, today.month)
        previous = [m.transaction for m in transactions_for_month(transactions, year, month)]

        totals = month_totals(current, today.year, today.month)
        income = totals.total_income
        if income == 0 and profile is not None and profile.monthly_income is not None:
            income = float(profile.monthly_income)

        now = datetime.combine(today, time.min, tzinfo=timezone.utc)
        budget_rule = analyze_budget_rule(income, aggregate_spending(current, categories))

        summary = DashboardSummary(
            month=f"{today.year:04d}-{today.month:02d}",
            totals=totals,
            budget_rule=budget_rule,
            allocation=analyze_allocation(investments, DEFAULT_TARGETS),
            investments=summarize_investments(investments),
            goal_alerts=goal_alerts(goals, now, limit=self._alert_limit),
            alerts=budget_alerts(current, categories, budget_rule, transactions, today),
            projection=project_from_transactions(
                current, income, today, month_history(transactions, today)
            ),
            accounts=account_totals(accounts, transactions),
            categories=analyze_category_spending(current, previous, categories),
        )

        logger.info(
            "dashboard_built",
            owner_id=user.id,
            month=summary.month,
            transactions=len(current),
        )
        return summary
