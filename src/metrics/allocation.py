"""
Investment Allocation Engine

Computes how the portfolio is split across asset types, compares each
slice with its target share and produces rebalancing suggestions.

Suggestion bands, per asset type with a target:

    |deviation| <= 2 points     balanced, nothing to say
    2 < |deviation| <= 5        dead zone, nothing to say either
    deviation > 5               overweight, suggest rebalancing
    deviation < -5              underweight, suggest the next contribution

DESIGN DECISION: The 2-5 point dead zone is deliberate hysteresis. A
portfolio hovering around its target should not flip between advice on
every price update.
"""

from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping, Optional, Union

from pydantic import BaseModel

from src.models.finance import Investment, InvestmentType

BALANCED_TOLERANCE = 2.0
REBALANCE_THRESHOLD = 5.0

TYPE_LABELS: dict[InvestmentType, str] = {
    InvestmentType.STOCKS: "Ações",
    InvestmentType.BONDS: "Renda Fixa",
    InvestmentType.CRYPTO: "Cripto",
    InvestmentType.REAL_ESTATE: "FIIs",
    InvestmentType.FUNDS: "Fundos",
    InvestmentType.OTHER: "Outros",
}

DEFAULT_TARGETS: dict[InvestmentType, float] = {
    InvestmentType.STOCKS: 30.0,
    InvestmentType.BONDS: 35.0,
    InvestmentType.CRYPTO: 10.0,
    InvestmentType.REAL_ESTATE: 15.0,
    InvestmentType.FUNDS: 10.0,
    InvestmentType.OTHER: 0.0,
}

BALANCED_MESSAGE = "Sua carteira está bem balanceada! Continue assim."

Holding = Union[Investment, tuple[InvestmentType, float]]


class SuggestionLevel(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"


class AllocationSlice(BaseModel):
    type: InvestmentType
    label: str
    value: float
    percent: float
    target_percent: Optional[float] = None
    deviation: Optional[float] = None


class AllocationSuggestion(BaseModel):
    level: SuggestionLevel
    type: Optional[InvestmentType] = None
    message: str


class AllocationAnalysis(BaseModel):
    total_value: float
    slices: list[AllocationSlice]
    suggestions: list[AllocationSuggestion]


class InvestmentSummary(BaseModel):
    total_invested: float
    total_value: float
    total_profit: float
    profitability: float


def _holding_value(holding: Holding) -> tuple[InvestmentType, float]:
    if isinstance(holding, Investment):
        return holding.type, float(holding.current_price)
    kind, value = holding
    return InvestmentType(kind), float(value)


def summarize_investments(investments: Iterable[Investment]) -> InvestmentSummary:
    """Totals across every holding; profitability is 0 when nothing was invested."""
    invested = Decimal("0")
    value = Decimal("0")
    for inv in investments:
        invested += inv.purchase_price
        value += inv.current_price

    profit = value - invested
    profitability = float(profit / invested * 100) if invested > 0 else 0.0
    return InvestmentSummary(
        total_invested=float(invested),
        total_value=float(value),
        total_profit=float(profit),
        profitability=profitability,
    )


def suggest(slice_: AllocationSlice) -> Optional[AllocationSuggestion]:
    """Advice for one slice, or None inside the tolerance and dead-zone bands."""
    if slice_.deviation is None:
        return None
    diff = slice_.deviation
    if abs(diff) <= BALANCED_TOLERANCE:
        return None
    if diff > REBALANCE_THRESHOLD:
        return AllocationSuggestion(
            level=SuggestionLevel.WARNING,
            type=slice_.type,
            message=(
                f"Você está {diff:.0f}% acima do ideal em {slice_.label}. "
                "Considere rebalancear."
            ),
        )
    if diff < -REBALANCE_THRESHOLD:
        return AllocationSuggestion(
            level=SuggestionLevel.INFO,
            type=slice_.type,
            message=(
                f"Você está {abs(diff):.0f}% abaixo em {slice_.label}. "
                "Próximo aporte pode ser direcionado aqui."
            ),
        )
    return None


def analyze_allocation(
    holdings: Iterable[Holding],
    targets: Optional[Mapping[InvestmentType, float]] = None,
) -> AllocationAnalysis:
    """
    Split the portfolio by asset type and compare it with the targets.

    Args:
        holdings: `Investment` records (valued at current price) or
            `(type, value)` pairs
        targets: Target share per type, in percent. Types absent from the
            mapping get no target and therefore no suggestion.

    Returns:
        AllocationAnalysis with one slice per type that is held or has a
        positive target, in `InvestmentType` order.
    """
    targets = dict(targets or {})
    by_type: dict[InvestmentType, float] = {}
    for holding in holdings:
        kind, value = _holding_value(holding)
        by_type[kind] = by_type.get(kind, 0.0) + value

    total = sum(by_type.values())

    slices = []
    for kind in InvestmentType:
        value = by_type.get(kind, 0.0)
        target = targets.get(kind)
        if value <= 0 and not (target and target > 0):
            continue
        percent = value / total * 100 if total > 0 else 0.0
        slices.append(AllocationSlice(
            type=kind,
            label=TYPE_LABELS[kind],
            value=value,
            percent=percent,
            target_percent=target,
            deviation=percent - target if target is not None else None,
        ))

    suggestions = [s for s in (suggest(sl) for sl in slices) if s is not None]
    if not suggestions:
        suggestions.append(AllocationSuggestion(
            level=SuggestionLevel.SUCCESS,
            message=BALANCED_MESSAGE,
        ))

    return AllocationAnalysis(total_value=total, slices=slices, suggestions=suggestions)
