from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence, Tuple

from backend.formatting import DEFAULT_DISPLAY_CURRENCY, format_currency, format_percent
from backend.money import (
    DIVISION_UNDEFINED,
    ZERO,
    AmountLike,
    coerce_amount,
    safe_ratio,
)

HEALTH_STATUSES = ("excellent", "good", "fair", "needs-attention", "critical")
MILESTONE_TYPES = ("income", "saving", "ratio")


@dataclass(frozen=True)
class HealthThreshold:
    min_ratio: Decimal
    score: int
    status: str
    color: str
    message: str


@dataclass(frozen=True)
class HealthScore:
    score: int
    status: str
    message: str
    color: str = "bg-yellow-500"


@dataclass(frozen=True)
class Milestone:
    achieved: bool
    message: str
    type: str
    amount: Optional[Decimal] = None


# Evaluated top to bottom; the first threshold the ratio reaches wins.
HEALTH_THRESHOLDS: Tuple[HealthThreshold, ...] = (
    HealthThreshold(
        Decimal("2.5"), 95, "excellent", "bg-green-500",
        "Excellent! You're saving a significant portion of your income.",
    ),
    HealthThreshold(
        Decimal("1.5"), 85, "good", "bg-green-400",
        "Good job! You're maintaining a healthy financial balance.",
    ),
    HealthThreshold(
        Decimal("1.2"), 70, "good", "bg-blue-500",
        "You're on the right track, but could save a bit more.",
    ),
    HealthThreshold(
        Decimal("1"), 50, "fair", "bg-yellow-500",
        "You're breaking even. Try to increase your savings rate.",
    ),
    HealthThreshold(
        Decimal("0.8"), 30, "needs-attention", "bg-orange-500",
        "Caution: You're spending more than you earn.",
    ),
)

CRITICAL_HEALTH = HealthScore(
    score=10,
    status="critical",
    color="bg-red-500",
    message="Warning: Your expenses significantly exceed your income.",
)

INSUFFICIENT_DATA_HEALTH = HealthScore(
    score=50,
    status="fair",
    color="bg-yellow-500",
    message="Start tracking your finances to get an accurate health score.",
)

LOW_SAVINGS_RATE = Decimal("0.10")
HIGH_SAVINGS_RATE = Decimal("0.50")
MILESTONE_GROWTH_FACTOR = Decimal("1.25")
LIFETIME_MILESTONES: Tuple[Decimal, ...] = tuple(
    Decimal(value) for value in ("10000", "50000", "100000", "250000", "500000", "1000000")
)

NO_INCOME_RECOMMENDATION = (
    "Start by tracking your income to get personalized recommendations."
)


def calculate_health_score(
    total_income: AmountLike, total_expenses: AmountLike
) -> HealthScore:
    income = coerce_amount(total_income)
    expenses = abs(coerce_amount(total_expenses))
    ratio = safe_ratio(income, expenses)
    if income == ZERO or ratio is DIVISION_UNDEFINED:
        return INSUFFICIENT_DATA_HEALTH
    return classify_ratio(ratio)


def classify_ratio(ratio: Decimal) -> HealthScore:
    for threshold in HEALTH_THRESHOLDS:
        if ratio >= threshold.min_ratio:
            return HealthScore(
                score=threshold.score,
                status=threshold.status,
                message=threshold.message,
                color=threshold.color,
            )
    return CRITICAL_HEALTH


def generate_budget_recommendations(
    total_income: AmountLike,
    expenses_by_category: Mapping[str, AmountLike],
    health_score: HealthScore,
    *,
    currency: str = DEFAULT_DISPLAY_CURRENCY,
) -> List[str]:
    income = coerce_amount(total_income)
    if income == ZERO:
        return [NO_INCOME_RECOMMENDATION]

    category_amounts = [
        (category, abs(coerce_amount(amount)))
        for category, amount in expenses_by_category.items()
    ]
    total_expenses = sum((amount for _, amount in category_amounts), ZERO)
    top_categories = sorted(category_amounts, key=lambda item: item[1], reverse=True)[:3]

    recommendations: List[str] = []
    status = health_score.status
    if status == "excellent":
        recommendations.append(
            "Consider investing more of your surplus income for long-term growth."
        )
        recommendations.append(
            "You could allocate more to retirement accounts or emergency savings."
        )
    elif status == "good":
        recommendations.append(
            "You're on the right track. Try to maintain or slightly increase your savings rate."
        )
        if top_categories:
            top_category, _ = top_categories[0]
            recommendations.append(
                f"Keep an eye on your {top_category} expenses which are your largest category."
            )
    elif status == "fair":
        recommendations.append(
            "Try to increase your income-to-expense ratio to at least 1.2."
        )
        if top_categories:
            top_category, amount = top_categories[0]
            share = format_percent(amount / income * 100)
            recommendations.append(
                f"Consider reducing {top_category} expenses which currently account "
                f"for {share}% of your income."
            )
    else:
        recommendations.append(
            "Focus on reducing expenses or increasing income to improve your financial health."
        )
        for category, amount in top_categories[:2]:
            recommendations.append(
                f"Look for ways to reduce {category} expenses "
                f"(currently {format_currency(amount, currency)})."
            )

    if income > ZERO and total_expenses > ZERO:
        savings_rate = (income - total_expenses) / income
        if savings_rate < LOW_SAVINGS_RATE and status != "critical":
            recommendations.append(
                "Aim to save at least 10-20% of your income for financial security."
            )
        if savings_rate > HIGH_SAVINGS_RATE:
            recommendations.append(
                "You're saving a large portion of your income. "
                "Consider if you're meeting your lifestyle needs."
            )

    return recommendations


def check_income_milestones(
    current_month_income: AmountLike,
    previous_months_income: Sequence[AmountLike],
    total_lifetime_income: AmountLike,
    *,
    currency: str = DEFAULT_DISPLAY_CURRENCY,
) -> List[Milestone]:
    """Detect income milestones for the latest period.

    Results follow check order (growth over average, new record, lifetime
    threshold) rather than significance.
    """
    current = coerce_amount(current_month_income)
    previous = [coerce_amount(value) for value in previous_months_income]
    lifetime = coerce_amount(total_lifetime_income)
    milestones: List[Milestone] = []

    if previous:
        average = sum(previous, ZERO) / len(previous)
        if average > ZERO and current >= average * MILESTONE_GROWTH_FACTOR:
            increase = format_percent((current / average - 1) * 100, places=0)
            milestones.append(
                Milestone(
                    achieved=True,
                    message=(
                        f"Congratulations! Your income this month is {increase}% "
                        "higher than your average."
                    ),
                    type="income",
                    amount=current,
                )
            )
        if current > max(previous):
            milestones.append(
                Milestone(
                    achieved=True,
                    message="New record! This is your highest monthly income so far.",
                    type="income",
                    amount=current,
                )
            )

    crossed = lifetime_milestone_crossed(lifetime - current, lifetime)
    if crossed is not None:
        milestones.append(
            Milestone(
                achieved=True,
                message=(
                    "You've reached a lifetime income milestone of "
                    f"{format_currency(crossed, currency)}!"
                ),
                type="income",
                amount=crossed,
            )
        )

    return milestones


def lifetime_milestone_crossed(
    previous_total: Decimal, lifetime_total: Decimal
) -> Optional[Decimal]:
    for threshold in reversed(LIFETIME_MILESTONES):
        if previous_total < threshold <= lifetime_total:
            return threshold
    return None
