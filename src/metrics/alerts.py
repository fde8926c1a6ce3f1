"""
Budget Alert Rules

Notifications derived from the month's numbers, next to the goal alerts:

    budget_alert      a category reached 70%, 90% or 100% of its monthly limit
    rule_imbalance    a 50/30/20 bucket is more than 10 points off its target
    goal_achieved     this month's investments reached 20% of income
    installment_due   an installment is due today or in the next 3 days

Every check is a pure function that returns an `Alert` or nothing.

DESIGN DECISION: `check_category_budget` reports the highest threshold the
spending crossed since `previous_spent`. Called with no previous amount it
reports where the category stands now, which is what the dashboard shows.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.metrics.budget_rule import BudgetRuleAnalysis, GroupAnalysis
from src.metrics.goals import LEVEL_PRIORITY, AlertLevel
from src.metrics.primitives import format_currency
from src.models.finance import Category, CategoryGroup, Transaction, TransactionKind

BUDGET_THRESHOLDS = (70, 90, 100)
RULE_IMBALANCE_THRESHOLD = 10.0
INSTALLMENT_DAYS_AHEAD = 3

RULE_NAMES = {
    CategoryGroup.ESSENTIAL: "Essenciais (50%)",
    CategoryGroup.LIFESTYLE: "Estilo de vida (30%)",
    CategoryGroup.INVESTMENT: "Investimentos (20%)",
}


class AlertCategory(str, Enum):
    BUDGET_ALERT = "budget_alert"
    RULE_IMBALANCE = "rule_imbalance"
    GOAL_ACHIEVED = "goal_achieved"
    INSTALLMENT_DUE = "installment_due"


class Alert(BaseModel):
    category: AlertCategory
    level: AlertLevel
    title: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)


def check_category_budget(
    category: Category,
    spent: float,
    previous_spent: float = 0.0,
) -> Optional[Alert]:
    """The threshold `spent` crossed against the category's monthly limit."""
    limit = float(category.monthly_limit or 0)
    if limit <= 0:
        return None

    current = spent / limit * 100
    previous = previous_spent / limit * 100

    for threshold in sorted(BUDGET_THRESHOLDS, reverse=True):
        if current >= threshold > previous:
            break
    else:
        return None

    if threshold == 100:
        level = AlertLevel.DANGER
        title = "Orçamento estourado!"
        message = f"{category.name} ultrapassou o limite de {format_currency(limit)}"
    else:
        level = AlertLevel.WARNING if threshold == 90 else AlertLevel.INFO
        title = "Alerta de orçamento"
        message = (
            f"{category.name} atingiu {threshold}% do orçamento "
            f"({format_currency(spent)} de {format_currency(limit)})"
        )

    return Alert(
        category=AlertCategory.BUDGET_ALERT,
        level=level,
        title=title,
        message=message,
        metadata={
            "category_id": str(category.id) if category.id else None,
            "threshold": threshold,
            "spent": spent,
            "limit": limit,
        },
    )


def category_spending(transactions: Iterable[Transaction]) -> dict[UUID, float]:
    """Expense totals per category id."""
    totals: dict[UUID, float] = {}
    for t in transactions:
        if t.kind == TransactionKind.EXPENSE and t.category_id is not None:
            totals[t.category_id] = totals.get(t.category_id, 0.0) + float(t.amount)
    return totals


def category_budget_alerts(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[Alert]:
    spent = category_spending(transactions)
    alerts = []
    for category in categories:
        if category.id is None:
            continue
        alert = check_category_budget(category, spent.get(category.id, 0.0))
        if alert is not None:
            alerts.append(alert)
    return alerts


def check_budget_rule(analysis: BudgetRuleAnalysis) -> Optional[Alert]:
    """
    Flag the bucket furthest from its target, in points of income.

    Nothing is flagged without income. Under-investing is a warning; every
    other imbalance is informational.
    """
    if analysis.income <= 0:
        return None

    def points(group: GroupAnalysis) -> tuple[float, float]:
        return group.target_ratio * 100, group.realized / analysis.income * 100

    groups = [analysis.essentials, analysis.lifestyle, analysis.investments]
    imbalanced = [
        g for g in groups
        if abs(points(g)[1] - points(g)[0]) > RULE_IMBALANCE_THRESHOLD
    ]
    if not imbalanced:
        return None

    worst = max(imbalanced, key=lambda g: abs(points(g)[1] - points(g)[0]))
    target, actual = points(worst)
    over = actual > target
    under_investing = worst.group == CategoryGroup.INVESTMENT and not over

    return Alert(
        category=AlertCategory.RULE_IMBALANCE,
        level=AlertLevel.WARNING if under_investing else AlertLevel.INFO,
        title="Regra 50/30/20 desbalanceada",
        message=(
            f"{RULE_NAMES[worst.group]} está {abs(actual - target):.0f}% "
            f"{'acima' if over else 'abaixo'} do ideal"
        ),
        metadata={
            "imbalanced": [
                {
                    "group": g.group.value,
                    "projected": points(g)[0],
                    "actual": round(points(g)[1], 1),
                }
                for g in imbalanced
            ],
        },
    )


def check_investment_goal(monthly_target: float, contributed: float) -> Optional[Alert]:
    if monthly_target <= 0 or contributed < monthly_target:
        return None
    return Alert(
        category=AlertCategory.GOAL_ACHIEVED,
        level=AlertLevel.SUCCESS,
        title="Meta de investimento batida!",
        message=f"Você atingiu sua meta de {format_currency(monthly_target)} este mês",
        metadata={"target": monthly_target, "contributed": contributed},
    )


def _due_title(days: int) -> tuple[AlertLevel, str]:
    if days == 0:
        return AlertLevel.DANGER, "Parcela vence hoje!"
    if days == 1:
        return AlertLevel.WARNING, "Parcela vence amanhã"
    return AlertLevel.INFO, f"Parcela vence em {days} dias"


def check_installments_due(
    transactions: Iterable[Transaction],
    today: date,
    days_ahead: int = INSTALLMENT_DAYS_AHEAD,
) -> list[Alert]:
    """Installments dated from today up to `days_ahead` days from now, soonest first."""
    last_day = today + timedelta(days=days_ahead)
    due = sorted(
        (t for t in transactions if t.is_installment and today <= t.date <= last_day),
        key=lambda t: t.date,
    )

    alerts = []
    for t in due:
        days = (t.date - today).days
        level, title = _due_title(days)
        alerts.append(Alert(
            category=AlertCategory.INSTALLMENT_DUE,
            level=level,
            title=title,
            message=(
                f"{t.description} - Parcela {t.current_installment}/{t.installments}: "
                f"{format_currency(float(t.amount))}"
            ),
            metadata={
                "transaction_id": str(t.id) if t.id else None,
                "due_date": t.date.isoformat(),
                "amount": float(t.amount),
            },
        ))
    return alerts


def run_daily_checks(transactions: Iterable[Transaction], today: date) -> list[Alert]:
    return check_installments_due(transactions, today)


def budget_alerts(
    month_transactions: Iterable[Transaction],
    categories: Iterable[Category],
    analysis: BudgetRuleAnalysis,
    transactions: Iterable[Transaction],
    today: date,
) -> list[Alert]:
    """
    Every alert that applies today, most urgent first.

    Args:
        month_transactions: The current month's transactions
        categories: The owner's categories
        analysis: 50/30/20 analysis of the current month
        transactions: All transactions, for installments due soon
        today: Reference day
    """
    alerts = category_budget_alerts(month_transactions, categories)

    rule = check_budget_rule(analysis)
    if rule is not None:
        alerts.append(rule)

    achieved = check_investment_goal(analysis.investments.projected, analysis.investments.realized)
    if achieved is not None:
        alerts.append(achieved)

    alerts.extend(run_daily_checks(transactions, today))
    return sorted(alerts, key=lambda a: LEVEL_PRIORITY[a.level])
