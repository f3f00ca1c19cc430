from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from backend.aggregation import Income, record_date
from backend.money import ZERO, InvalidInput, coerce_amount

MIN_HISTORY_POINTS = 2
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class MonthlyIncomePoint:
    year: int
    month: int
    amount: Decimal
    forecast: bool = False

    @property
    def label(self) -> str:
        return f"{self.month}/{self.year}"


def monthly_income_totals(incomes: Iterable[Income]) -> List[MonthlyIncomePoint]:
    totals: Dict[Tuple[int, int], Decimal] = {}
    for income in incomes:
        income_date = record_date(income)
        key = (income_date.year, income_date.month)
        totals[key] = totals.get(key, ZERO) + coerce_amount(income.amount)
    return [
        MonthlyIncomePoint(year=year, month=month, amount=totals[(year, month)])
        for year, month in sorted(totals)
    ]


def average_growth_rate(history: Sequence[MonthlyIncomePoint]) -> Decimal:
    """Mean month-over-month growth across consecutive pairs.

    Pairs whose earlier month is zero contribute nothing to the sum but are
    still counted in the divisor.
    """
    if len(history) < MIN_HISTORY_POINTS:
        return ZERO
    total_growth = ZERO
    for previous, current in zip(history, history[1:]):
        previous_amount = coerce_amount(previous.amount)
        if previous_amount == ZERO:
            continue
        total_growth += (coerce_amount(current.amount) - previous_amount) / previous_amount
    return total_growth / (len(history) - 1)


def forecast_income(
    history: Sequence[MonthlyIncomePoint],
    months: int,
) -> List[MonthlyIncomePoint]:
    if months < 0:
        raise InvalidInput("Forecast months must not be negative.")

    points = list(history)
    if len(points) < MIN_HISTORY_POINTS:
        return points

    growth = average_growth_rate(points)
    last_point = points[-1]
    current_amount = coerce_amount(last_point.amount)
    for offset in range(1, months + 1):
        year, month = _roll_month(last_point.year, last_point.month, offset)
        current_amount = current_amount * (1 + growth)
        points.append(
            MonthlyIncomePoint(
                year=year,
                month=month,
                amount=current_amount,
                forecast=True,
            )
        )
    return points


def _roll_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    month_index = year * MONTHS_PER_YEAR + (month - 1) + offset
    return month_index // MONTHS_PER_YEAR, month_index % MONTHS_PER_YEAR + 1
