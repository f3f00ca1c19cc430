from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from backend.money import ZERO, InvalidInput, coerce_amount

SUPPORTED_WINDOWS = {"all", "week", "month", "year"}
WEEK_DAYS = 7
DAILY_BUCKET_LIMIT = 14


@dataclass(frozen=True)
class Expense:
    amount: Decimal
    date: date
    category: str
    currency: str = "USD"
    description: Optional[str] = None
    id: Optional[int] = None
    user_id: Optional[int] = None


@dataclass(frozen=True)
class Income:
    amount: Decimal
    date: date
    source: str
    description: Optional[str] = None
    id: Optional[int] = None
    user_id: Optional[int] = None


@dataclass(frozen=True)
class SummaryPoint:
    label: str
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class RadarPoint:
    category: str
    amount: Decimal


@dataclass(frozen=True)
class TreemapPoint:
    name: str
    size: Decimal


Record = TypeVar("Record", Expense, Income)


def filter_by_window(
    records: Sequence[Record],
    window: str,
    *,
    today: Optional[date] = None,
) -> List[Record]:
    normalized = _normalize_window(window)
    if normalized == "all":
        return list(records)

    today = today or date.today()
    window_start = window_start_date(normalized, today)
    return [
        record
        for record in records
        if window_start <= record_date(record) <= today
    ]


def window_start_date(window: str, today: date) -> date:
    normalized = _normalize_window(window)
    if normalized == "week":
        return today - timedelta(days=WEEK_DAYS)
    if normalized == "month":
        return shift_month_keep_day(today, -1)
    if normalized == "year":
        return shift_month_keep_day(today, -12)
    return date.min


def aggregate_by_category(
    expenses: Iterable[Expense], currency: str
) -> List[SummaryPoint]:
    return _aggregate(expenses, lambda expense: expense.category, currency)


def aggregate_by_source(
    incomes: Iterable[Income], currency: str
) -> List[SummaryPoint]:
    return _aggregate(incomes, lambda income: income.source, currency)


def category_totals(expenses: Iterable[Expense]) -> Dict[str, Decimal]:
    """Absolute expense totals keyed by category, in first-seen order."""
    return _sum_by_key(expenses, lambda expense: expense.category)


def bucket_daily(records: Iterable[Record], currency: str) -> List[SummaryPoint]:
    totals = _sum_by_key(records, lambda record: record_date(record).isoformat())
    points = _sorted_points(totals, currency)
    return points[-DAILY_BUCKET_LIMIT:]


def bucket_monthly(records: Iterable[Record], currency: str) -> List[SummaryPoint]:
    totals = _sum_by_key(records, lambda record: month_key(record_date(record)))
    return _sorted_points(totals, currency)


def radar_series(expenses: Iterable[Expense], currency: str) -> List[RadarPoint]:
    return [
        RadarPoint(category=point.label, amount=point.amount)
        for point in aggregate_by_category(expenses, currency)
    ]


def treemap_series(expenses: Iterable[Expense], currency: str) -> List[TreemapPoint]:
    return [
        TreemapPoint(name=point.label, size=point.amount)
        for point in aggregate_by_category(expenses, currency)
    ]


def sum_absolute(records: Iterable[Record]) -> Decimal:
    total = ZERO
    for record in records:
        total += abs(coerce_amount(record.amount))
    return total


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def record_date(record: Record) -> date:
    value = record.date
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise InvalidInput(f"Invalid record date: {value!r}") from exc


def shift_month_keep_day(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    day = min(value.day, last_day)
    return date(year, month, day)


def _normalize_window(window: str) -> str:
    normalized = (window or "all").strip().lower()
    if normalized not in SUPPORTED_WINDOWS:
        raise InvalidInput("Window must be one of: all, week, month, year.")
    return normalized


def _aggregate(
    records: Iterable[Record],
    key: Callable[[Record], str],
    currency: str,
) -> List[SummaryPoint]:
    totals = _sum_by_key(records, key)
    return [
        SummaryPoint(label=label, amount=amount, currency=currency)
        for label, amount in totals.items()
    ]


def _sum_by_key(
    records: Iterable[Record], key: Callable[[Record], str]
) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = {}
    for record in records:
        label = key(record)
        totals[label] = totals.get(label, ZERO) + abs(coerce_amount(record.amount))
    return totals


def _sorted_points(totals: Dict[str, Decimal], currency: str) -> List[SummaryPoint]:
    return [
        SummaryPoint(label=label, amount=totals[label], currency=currency)
        for label in sorted(totals)
    ]
