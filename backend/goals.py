from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from backend.money import (
    ZERO,
    AmountLike,
    InvalidInput,
    coerce_amount,
    coerce_non_negative_amount,
    coerce_positive_amount,
)

PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"
DEFAULT_GOAL_CATEGORY = "Savings"
HALF_WAY = Decimal("0.5")


@dataclass(frozen=True)
class FinancialGoal:
    name: str
    target_amount: Decimal
    target_date: date
    current_amount: Decimal = ZERO
    category: str = DEFAULT_GOAL_CATEGORY
    priority: str = DEFAULT_PRIORITY
    id: Optional[str] = None


@dataclass(frozen=True)
class GoalProgress:
    goal: FinancialGoal
    percentage: Decimal
    months_left: int
    past_due: bool
    completed: bool


@dataclass(frozen=True)
class CategoryProgress:
    category: str
    target: Decimal
    current: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class GoalsSummary:
    total_target: Decimal
    total_current: Decimal
    remaining: Decimal
    percentage: Decimal
    started_count: int
    half_way_count: int
    completed_count: int


def validate_goal(goal: FinancialGoal) -> FinancialGoal:
    name = (goal.name or "").strip()
    if not name:
        raise InvalidInput("Goal name required.")
    if goal.target_date is None:
        raise InvalidInput("Goal target date required.")
    priority = (goal.priority or DEFAULT_PRIORITY).strip().lower()
    if priority not in PRIORITIES:
        raise InvalidInput("Goal priority must be low, medium, or high.")
    category = (goal.category or "").strip() or DEFAULT_GOAL_CATEGORY
    return replace(
        goal,
        name=name,
        target_amount=coerce_positive_amount(goal.target_amount),
        current_amount=coerce_non_negative_amount(goal.current_amount or ZERO),
        category=category,
        priority=priority,
    )


def add_contribution(goal: FinancialGoal, amount: AmountLike) -> FinancialGoal:
    """Return ``goal`` with ``amount`` added, never exceeding the target."""
    contribution = coerce_positive_amount(amount)
    target = coerce_amount(goal.target_amount)
    updated = coerce_amount(goal.current_amount) + contribution
    return replace(goal, current_amount=min(updated, target))


def goal_progress(goal: FinancialGoal, *, today: Optional[date] = None) -> GoalProgress:
    today = today or date.today()
    months_left = months_between(today, goal.target_date)
    target = coerce_amount(goal.target_amount)
    current = coerce_amount(goal.current_amount)
    return GoalProgress(
        goal=goal,
        percentage=_percentage(current, target),
        months_left=months_left,
        past_due=months_left < 0,
        completed=target > ZERO and current >= target,
    )


def summarize_goals(goals: Iterable[FinancialGoal]) -> GoalsSummary:
    total_target = ZERO
    total_current = ZERO
    started = half_way = completed = 0
    for goal in goals:
        target = coerce_amount(goal.target_amount)
        current = coerce_amount(goal.current_amount)
        total_target += target
        total_current += current
        if current > ZERO:
            started += 1
        if target > ZERO and current / target >= HALF_WAY:
            half_way += 1
        if current >= target:
            completed += 1
    return GoalsSummary(
        total_target=total_target,
        total_current=total_current,
        remaining=total_target - total_current,
        percentage=_percentage(total_current, total_target),
        started_count=started,
        half_way_count=half_way,
        completed_count=completed,
    )


def progress_by_category(goals: Iterable[FinancialGoal]) -> List[CategoryProgress]:
    targets: Dict[str, Decimal] = {}
    currents: Dict[str, Decimal] = {}
    for goal in goals:
        targets[goal.category] = targets.get(goal.category, ZERO) + coerce_amount(goal.target_amount)
        currents[goal.category] = currents.get(goal.category, ZERO) + coerce_amount(goal.current_amount)
    return [
        CategoryProgress(
            category=category,
            target=target,
            current=currents[category],
            percentage=_percentage(currents[category], target),
        )
        for category, target in targets.items()
    ]


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start`` to ``end``, truncated toward zero."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def _percentage(current: Decimal, target: Decimal) -> Decimal:
    if target <= ZERO:
        return ZERO
    return current / target * 100
