"""
Goal Alerting Engine

Turns the household's savings goals into a short, urgency-ranked list of
alerts for the dashboard, and computes the detailed progress view of a
single goal.

Alert rules, first match wins:
1. Deadline passed                                  -> danger  "Prazo expirado!"
2. Up to 7 days left and not complete               -> danger  "N dia(s) restante(s)"
3. Up to 30 days left and under 80%                 -> warning "N dias restantes"
4. Progress in [90, 100)                            -> info    "Quase lá!"

Rule 4 applies whenever rules 1-3 did not fire, with or without a deadline.
"""

import calendar
import math
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID

from pydantic import BaseModel

from src.metrics.primitives import percentage
from src.models.finance import Goal, GoalStatus

DEFAULT_ALERT_LIMIT = 3
SECONDS_PER_DAY = 24 * 60 * 60
DAYS_PER_MONTH = 30


class AlertLevel(str, Enum):
    DANGER = "danger"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


LEVEL_PRIORITY = {
    AlertLevel.DANGER: 0,
    AlertLevel.WARNING: 1,
    AlertLevel.INFO: 2,
    AlertLevel.SUCCESS: 3,
}


class GoalAlert(BaseModel):
    goal_id: Optional[UUID] = None
    goal_name: str
    level: AlertLevel
    message: str
    days_remaining: Optional[int] = None
    progress: float


class ValuePoint(BaseModel):
    """A goal's saved amount at a point in time."""
    at: datetime
    value: float


class GoalProgress(BaseModel):
    percentage: float
    remaining: float
    days_remaining: Optional[int] = None
    monthly_rate: float
    estimated_completion: Optional[date] = None
    off_track: bool


def _as_utc(moment: Union[date, datetime]) -> datetime:
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment
    return datetime.combine(moment, time.min, tzinfo=timezone.utc)


def days_until(deadline: Union[date, datetime], now: datetime) -> int:
    """Whole days to the deadline, rounded up; negative once it has passed."""
    delta = _as_utc(deadline) - _as_utc(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def _days_message(days: int) -> str:
    plural = "s" if days != 1 else ""
    return f"{days} dia{plural} restante{plural}"


def evaluate_goal(goal: Goal, now: datetime) -> Optional[GoalAlert]:
    """The alert a goal raises right now, if any."""
    progress = goal.progress
    days_remaining = days_until(goal.deadline, now) if goal.deadline else None

    def alert(level: AlertLevel, message: str) -> GoalAlert:
        return GoalAlert(
            goal_id=goal.id,
            goal_name=goal.name,
            level=level,
            message=message,
            days_remaining=days_remaining,
            progress=progress,
        )

    if days_remaining is not None:
        if days_remaining < 0:
            return alert(AlertLevel.DANGER, "Prazo expirado!")
        if days_remaining <= 7 and progress < 100:
            return alert(AlertLevel.DANGER, _days_message(days_remaining))
        if days_remaining <= 30 and progress < 80:
            return alert(AlertLevel.WARNING, f"{days_remaining} dias restantes")

    if 90 <= progress < 100:
        return alert(AlertLevel.INFO, "Quase lá!")

    return None


def is_alertable(goal: Goal) -> bool:
    return goal.is_active and goal.status == GoalStatus.ACTIVE


def goal_alerts(
    goals: Iterable[Goal],
    now: datetime,
    limit: int = DEFAULT_ALERT_LIMIT,
) -> list[GoalAlert]:
    """
    Most urgent alerts across the active goals.

    `sorted` is stable, so goals of the same level keep their input order.
    """
    alerts = [
        a for a in (evaluate_goal(g, now) for g in goals if is_alertable(g))
        if a is not None
    ]
    alerts = sorted(alerts, key=lambda a: LEVEL_PRIORITY[a.level])
    return alerts[:limit]


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(start.day, calendar.monthrange(year, month)[1]))


def monthly_rate(history: Sequence[ValuePoint]) -> float:
    """Average saved per 30-day month between the first and last readings."""
    if len(history) < 2:
        return 0.0
    ordered = sorted(history, key=lambda p: _as_utc(p.at))
    first, last = ordered[0], ordered[-1]
    months = (_as_utc(last.at) - _as_utc(first.at)).total_seconds() / (
        SECONDS_PER_DAY * DAYS_PER_MONTH
    )
    if months <= 0:
        return 0.0
    return (last.value - first.value) / months


def goal_progress(
    goal: Goal,
    history: Sequence[ValuePoint] = (),
    now: Optional[datetime] = None,
) -> GoalProgress:
    """
    Detailed progress of one goal.

    The percentage is capped at 100 for display, and days remaining never
    goes below 0 here (the alert engine is what reports expiry). A goal is
    off track when the saving rate is below what the deadline requires.
    """
    now = now or datetime.now(timezone.utc)
    target = float(goal.target_amount)
    current = float(goal.current_amount)

    pct = min(100.0, percentage(current, target))
    remaining = float(goal.remaining)

    days_remaining = None
    if goal.deadline:
        days_remaining = max(0, days_until(goal.deadline, now))

    rate = monthly_rate(history)

    estimated = None
    if rate > 0 and remaining > 0:
        estimated = _add_months(_as_utc(now).date(), math.ceil(remaining / rate))

    off_track = False
    if days_remaining and remaining > 0:
        required = remaining / (days_remaining / DAYS_PER_MONTH)
        off_track = rate < required

    return GoalProgress(
        percentage=pct,
        remaining=remaining,
        days_remaining=days_remaining,
        monthly_rate=rate,
        estimated_completion=estimated,
        off_track=off_track,
    )
