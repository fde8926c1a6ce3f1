"""
Numeric primitives shared by every calculator.

None of these functions raise for numeric input: division by zero and
non-finite values degrade to 0 or to an explicit "no comparison" result.
"""

import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel

NO_COMPARISON = "—"
NEW_LABEL = "Novo"


def _finite(*values: float) -> bool:
    try:
        return all(math.isfinite(v) for v in values)
    except TypeError:
        return False


def percentage(current: float, target: float) -> float:
    """`current` as a percentage of `target`; 0 when target is not positive."""
    if not _finite(current, target) or target <= 0:
        return 0.0
    return current / target * 100


def safe_percentage(numerator: float, denominator: float, decimal_places: int = 1) -> float:
    """Rounded percentage, 0 whenever the division is undefined."""
    if not _finite(numerator, denominator) or denominator == 0:
        return 0.0
    result = numerator / denominator * 100
    if not math.isfinite(result):
        return 0.0
    return round(result, decimal_places)


class VariationKind(str, Enum):
    CHANGE = "change"
    NEW = "new"
    UNAVAILABLE = "unavailable"


class Variation(BaseModel):
    """Relative change between two readings of the same value."""

    kind: VariationKind
    value: Optional[float] = None

    @property
    def display(self) -> str:
        if self.kind == VariationKind.NEW:
            return NEW_LABEL
        if self.kind == VariationKind.UNAVAILABLE or self.value is None:
            return NO_COMPARISON
        sign = "+" if self.value > 0 else ""
        return f"{sign}{self.value:.1f}%"


def variation(current: float, previous: float) -> Variation:
    """
    Signed percentage change from `previous` to `current`.

    - either input non-finite: unavailable ("—")
    - both zero: 0% change
    - previous zero, current not: NEW (a percentage would be undefined)
    - otherwise the change rounded to one decimal
    """
    if not _finite(current, previous):
        return Variation(kind=VariationKind.UNAVAILABLE)
    if previous == 0:
        if current == 0:
            return Variation(kind=VariationKind.CHANGE, value=0.0)
        return Variation(kind=VariationKind.NEW)

    change = (current - previous) / previous * 100
    if not math.isfinite(change):
        return Variation(kind=VariationKind.UNAVAILABLE)
    return Variation(kind=VariationKind.CHANGE, value=round(change, 1))


def format_percentage(value: Optional[float], decimal_places: int = 1) -> str:
    """Render a percentage, or "—" when there is nothing to show."""
    if value is None or not _finite(value):
        return NO_COMPARISON
    return f"{value:.{decimal_places}f}%"


def format_currency(value: float) -> str:
    """Brazilian reais with pt-BR separators: R$ 1.234,56."""
    text = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}R$ {text}"


def savings_rate(income: float, expenses: float) -> float:
    """Share of income left after expenses, never negative."""
    if not _finite(income, expenses) or income <= 0:
        return 0.0
    return max(0.0, (income - expenses) / income * 100)
