"""
50/30/20 Budget Rule Engine

Compares a month's income against spending grouped into the three buckets
of the rule:

    essentials   50% of income   (rent, groceries, utilities...)
    lifestyle    30% of income   (everything discretionary)
    investments  20% of income   (contributions, savings)

DESIGN DECISION: Spending whose category has no group, and spending with no
category at all, is budgeted as lifestyle. This is an explicit policy
(`DEFAULT_GROUP`), not a fallthrough.

Over-spending is the problem for essentials and lifestyle; for investments
the undesirable direction is the opposite (under-investing), which is why
its status uses "below" instead of "exceeded".
"""

from enum import Enum
from typing import Iterable, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel

from src.models.finance import (
    Category,
    CategoryGroup,
    Transaction,
    TransactionKind,
)

TARGET_RATIOS: dict[CategoryGroup, float] = {
    CategoryGroup.ESSENTIAL: 0.5,
    CategoryGroup.LIFESTYLE: 0.3,
    CategoryGroup.INVESTMENT: 0.2,
}

DEFAULT_GROUP = CategoryGroup.LIFESTYLE

# Maximum points each bucket can take off the health score.
ESSENTIALS_PENALTY_CAP = 30.0
LIFESTYLE_PENALTY_CAP = 20.0
INVESTMENTS_PENALTY_CAP = 30.0


class GroupStatus(str, Enum):
    OK = "ok"
    EXCEEDED = "exceeded"
    BELOW = "below"


class GroupAnalysis(BaseModel):
    group: CategoryGroup
    target_ratio: float
    projected: float
    realized: float
    deviation_percent: float
    status: GroupStatus


class BudgetRuleAnalysis(BaseModel):
    income: float
    essentials: GroupAnalysis
    lifestyle: GroupAnalysis
    investments: GroupAnalysis
    total_projected: float
    total_realized: float
    health_score: float
    health_label: str


def _deviation(realized: float, projected: float) -> float:
    if projected <= 0:
        return 0.0
    return (realized - projected) / projected * 100


def _analyze_group(group: CategoryGroup, income: float, realized: float) -> GroupAnalysis:
    ratio = TARGET_RATIOS[group]
    projected = income * ratio if income > 0 else 0.0
    if group == CategoryGroup.INVESTMENT:
        status = GroupStatus.OK if realized >= projected else GroupStatus.BELOW
    else:
        status = GroupStatus.EXCEEDED if realized > projected else GroupStatus.OK
    return GroupAnalysis(
        group=group,
        target_ratio=ratio,
        projected=projected,
        realized=realized,
        deviation_percent=_deviation(realized, projected),
        status=status,
    )


def health_score(
    essentials_deviation: float,
    lifestyle_deviation: float,
    investments_deviation: float,
) -> float:
    """Score in [0, 100]; every bucket off its target costs a capped penalty."""
    score = 100.0
    if essentials_deviation > 0:
        score -= min(ESSENTIALS_PENALTY_CAP, essentials_deviation)
    if lifestyle_deviation > 0:
        score -= min(LIFESTYLE_PENALTY_CAP, lifestyle_deviation)
    if investments_deviation < 0:
        score -= min(INVESTMENTS_PENALTY_CAP, abs(investments_deviation))
    return max(0.0, min(100.0, score))


def health_label(score: float) -> str:
    if score >= 80:
        return "Excelente"
    if score >= 60:
        return "Bom"
    if score >= 40:
        return "Atenção"
    return "Crítico"


def analyze_budget_rule(
    income: float,
    spending: Mapping[CategoryGroup, float],
) -> BudgetRuleAnalysis:
    """
    Compare realized spending per group with the 50/30/20 targets.

    Args:
        income: Total income of the month
        spending: Realized spending per group; missing groups count as 0

    With zero income every projection and deviation is 0 and the score
    is 100, since there is no target to violate.
    """
    income = max(0.0, float(income))
    essentials = _analyze_group(
        CategoryGroup.ESSENTIAL, income, float(spending.get(CategoryGroup.ESSENTIAL, 0.0))
    )
    lifestyle = _analyze_group(
        CategoryGroup.LIFESTYLE, income, float(spending.get(CategoryGroup.LIFESTYLE, 0.0))
    )
    investments = _analyze_group(
        CategoryGroup.INVESTMENT, income, float(spending.get(CategoryGroup.INVESTMENT, 0.0))
    )

    score = health_score(
        essentials.deviation_percent,
        lifestyle.deviation_percent,
        investments.deviation_percent,
    )

    return BudgetRuleAnalysis(
        income=income,
        essentials=essentials,
        lifestyle=lifestyle,
        investments=investments,
        total_projected=essentials.projected + lifestyle.projected + investments.projected,
        total_realized=essentials.realized + lifestyle.realized + investments.realized,
        health_score=score,
        health_label=health_label(score),
    )


def group_for(category: Optional[Category]) -> CategoryGroup:
    """Budget bucket of a category, applying `DEFAULT_GROUP`."""
    if category is None or category.group is None:
        return DEFAULT_GROUP
    return category.group


def aggregate_spending(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> dict[CategoryGroup, float]:
    """
    Sum the month's outflows per budget group.

    Expense and investment transactions count; income and transfers do not.
    """
    by_id: dict[UUID, Category] = {c.id: c for c in categories if c.id is not None}
    totals = {group: 0.0 for group in CategoryGroup}

    for t in transactions:
        if t.kind not in (TransactionKind.EXPENSE, TransactionKind.INVESTMENT):
            continue
        category = by_id.get(t.category_id) if t.category_id else None
        if category is None and t.kind == TransactionKind.INVESTMENT:
            group = CategoryGroup.INVESTMENT
        else:
            group = group_for(category)
        totals[group] += float(t.amount)

    return totals


def total_income(transactions: Iterable[Transaction]) -> float:
    return sum(float(t.amount) for t in transactions if t.kind == TransactionKind.INCOME)
