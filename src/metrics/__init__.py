"""
Derived financial metrics.

Pure functions over already-fetched records. None of them touch storage
and none raise for well-formed input; undefined results degrade to 0, an
empty list or an explicit "no comparison" value.
"""

from src.metrics.primitives import (
    Variation,
    VariationKind,
    format_currency,
    format_percentage,
    percentage,
    safe_percentage,
    savings_rate,
    variation,
)
from src.metrics.budget_rule import (
    DEFAULT_GROUP,
    TARGET_RATIOS,
    BudgetRuleAnalysis,
    GroupAnalysis,
    GroupStatus,
    aggregate_spending,
    analyze_budget_rule,
)
from src.metrics.allocation import (
    DEFAULT_TARGETS,
    AllocationAnalysis,
    AllocationSlice,
    AllocationSuggestion,
    InvestmentSummary,
    SuggestionLevel,
    analyze_allocation,
    summarize_investments,
)
from src.metrics.goals import (
    AlertLevel,
    GoalAlert,
    GoalProgress,
    ValuePoint,
    days_until,
    evaluate_goal,
    goal_alerts,
    goal_progress,
)
from src.metrics.projection import (
    MonthComparison,
    MonthEndProjection,
    ProjectionStatus,
    project_from_transactions,
    project_month_end,
)
from src.metrics.spending import (
    CategorySpending,
    MonthTotals,
    Trend,
    analyze_category_spending,
    month_totals,
    transactions_for_month,
)
from src.metrics.accounts import AccountTotals, account_balance, account_totals
from src.metrics.alerts import (
    BUDGET_THRESHOLDS,
    Alert,
    AlertCategory,
    budget_alerts,
    category_budget_alerts,
    check_budget_rule,
    check_category_budget,
    check_installments_due,
    check_investment_goal,
    run_daily_checks,
)

__all__ = [
    # Primitives
    "Variation",
    "VariationKind",
    "format_currency",
    "format_percentage",
    "percentage",
    "safe_percentage",
    "savings_rate",
    "variation",
    # Budget rule
    "DEFAULT_GROUP",
    "TARGET_RATIOS",
    "BudgetRuleAnalysis",
    "GroupAnalysis",
    "GroupStatus",
    "aggregate_spending",
    "analyze_budget_rule",
    # Allocation
    "DEFAULT_TARGETS",
    "AllocationAnalysis",
    "AllocationSlice",
    "AllocationSuggestion",
    "InvestmentSummary",
    "SuggestionLevel",
    "analyze_allocation",
    "summarize_investments",
    # Goals
    "AlertLevel",
    "GoalAlert",
    "GoalProgress",
    "ValuePoint",
    "days_until",
    "evaluate_goal",
    "goal_alerts",
    "goal_progress",
    # Projection
    "MonthComparison",
    "MonthEndProjection",
    "ProjectionStatus",
    "project_from_transactions",
    "project_month_end",
    # Spending
    "CategorySpending",
    "MonthTotals",
    "Trend",
    "analyze_category_spending",
    "month_totals",
    "transactions_for_month",
    # Accounts
    "AccountTotals",
    "account_balance",
    "account_totals",
    # Alerts
    "BUDGET_THRESHOLDS",
    "Alert",
    "AlertCategory",
    "budget_alerts",
    "category_budget_alerts",
    "check_budget_rule",
    "check_category_budget",
    "check_installments_due",
    "check_investment_goal",
    "run_daily_checks",
]
