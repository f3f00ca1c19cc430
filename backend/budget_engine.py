from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from backend.aggregation import Expense, category_totals, record_date
from backend.formatting import DEFAULT_DISPLAY_CURRENCY, format_currency
from backend.money import ZERO, InvalidInput, coerce_amount

SUPPORTED_PERIODS = {"weekly", "monthly", "yearly"}
WARNING_PERCENTAGE = Decimal("75")
FULL_PERCENTAGE = Decimal("100")
LOW_USAGE_PERCENTAGE = Decimal("50")


@dataclass(frozen=True)
class Budget:
    amount: Decimal
    period: str
    id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BudgetStatus:
    total_budget: Decimal
    total_spent: Decimal
    percentage: Decimal
    status: str
    remaining_budget: Decimal
    period_start: Optional[date] = None


NO_BUDGET_STATUS = BudgetStatus(
    total_budget=ZERO,
    total_spent=ZERO,
    percentage=ZERO,
    status="no-data",
    remaining_budget=ZERO,
)


def normalize_period(period: str) -> str:
    normalized = period.strip().lower()
    if normalized not in SUPPORTED_PERIODS:
        raise InvalidInput("Budget period must be weekly, monthly, or yearly.")
    return normalized


def active_budget(budgets: Iterable[Budget]) -> Optional[Budget]:
    """Most recently created budget; budgets without a timestamp rank last."""
    latest: Optional[Budget] = None
    for budget in budgets:
        if latest is None or _created_key(budget) > _created_key(latest):
            latest = budget
    return latest


def budget_period_start(period: str, today: date) -> date:
    normalized = period.strip().lower()
    if normalized == "weekly":
        # weeks start on Sunday
        return today - timedelta(days=(today.weekday() + 1) % 7)
    if normalized == "yearly":
        return today.replace(month=1, day=1)
    return today.replace(day=1)


def evaluate_budget_status(
    budget: Optional[Budget],
    expenses: Iterable[Expense],
    *,
    today: Optional[date] = None,
) -> BudgetStatus:
    if budget is None:
        return NO_BUDGET_STATUS

    today = today or date.today()
    total_budget = max(ZERO, coerce_amount(budget.amount))
    start_date = budget_period_start(budget.period, today)
    total_spent = _sum_expenses(period_expenses(expenses, start_date, today))

    if total_budget > ZERO:
        used = total_spent / total_budget * 100
    else:
        used = ZERO

    if used <= WARNING_PERCENTAGE:
        status = "within"
    elif used <= FULL_PERCENTAGE:
        status = "warning"
    else:
        status = "exceeded"

    return BudgetStatus(
        total_budget=total_budget,
        total_spent=total_spent,
        percentage=min(used, FULL_PERCENTAGE),
        status=status,
        remaining_budget=total_budget - total_spent,
        period_start=start_date,
    )


def period_expenses(
    expenses: Iterable[Expense], start_date: date, end_date: date
) -> List[Expense]:
    return [
        expense
        for expense in expenses
        if start_date <= record_date(expense) <= end_date
    ]


def budget_recommendations(
    budget: Optional[Budget],
    status: BudgetStatus,
    expenses: Sequence[Expense],
    *,
    currency: str = DEFAULT_DISPLAY_CURRENCY,
) -> List[str]:
    if budget is None:
        return ["Start by setting your first budget to track spending effectively."]

    totals = category_totals(expenses)
    top_categories = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:3]

    recommendations: List[str] = []
    if status.status == "exceeded":
        recommendations.append(
            "Your spending has exceeded the budget. "
            "Consider reducing expenses in your top spending categories."
        )
        if top_categories:
            top_category, amount = top_categories[0]
            recommendations.append(
                f"Focus on reducing {top_category} expenses "
                f"({format_currency(amount, currency)} this period)."
            )
    elif status.status == "warning":
        recommendations.append(
            "You're approaching your budget limit. "
            "Monitor spending carefully for the remainder of this period."
        )
        if top_categories:
            top_category, _ = top_categories[0]
            recommendations.append(
                f"Consider limiting {top_category} expenses for the rest of this period."
            )
    elif status.status == "within":
        recommendations.append(
            "Great job staying within budget! "
            "Consider allocating surplus to savings or emergency fund."
        )
        if status.percentage < LOW_USAGE_PERCENTAGE:
            recommendations.append(
                "You're using less than 50% of your budget. "
                "You might be able to increase savings or investments."
            )
    return recommendations


def budget_status_message(
    status: BudgetStatus, currency: str = DEFAULT_DISPLAY_CURRENCY
) -> str:
    remaining = format_currency(abs(status.remaining_budget), currency)
    if status.status == "within":
        return f"You're within budget! {remaining} remaining."
    if status.status == "warning":
        return f"Approaching budget limit. {remaining} remaining."
    if status.status == "exceeded":
        return f"Budget exceeded by {remaining}!"
    return "Set up a budget to track your spending."


def _sum_expenses(expenses: Iterable[Expense]) -> Decimal:
    total = ZERO
    for expense in expenses:
        total += abs(coerce_amount(expense.amount))
    return total


def _created_key(budget: Budget) -> datetime:
    return budget.created_at or datetime.min
