from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from backend.money import AmountLike, InvalidInput, coerce_amount

CENTS = Decimal("0.01")
DEFAULT_DISPLAY_CURRENCY = "USD"
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class CurrencyDisplay:
    locale: str
    symbol: str


@dataclass(frozen=True)
class LocaleLayout:
    group_separator: str = ","
    decimal_separator: str = "."
    symbol_after: bool = False
    indian_grouping: bool = False


CURRENCY_DISPLAY: Mapping[str, CurrencyDisplay] = {
    "USD": CurrencyDisplay(locale="en-US", symbol="$"),
    "EUR": CurrencyDisplay(locale="de-DE", symbol="€"),
    "GBP": CurrencyDisplay(locale="en-GB", symbol="£"),
    "JPY": CurrencyDisplay(locale="ja-JP", symbol="¥"),
    "INR": CurrencyDisplay(locale="en-IN", symbol="₹"),
    "CAD": CurrencyDisplay(locale="en-CA", symbol="C$"),
    "AUD": CurrencyDisplay(locale="en-AU", symbol="A$"),
    "CNY": CurrencyDisplay(locale="zh-CN", symbol="¥"),
}

LOCALE_LAYOUTS: Mapping[str, LocaleLayout] = {
    "de-DE": LocaleLayout(group_separator=".", decimal_separator=",", symbol_after=True),
    "en-IN": LocaleLayout(indian_grouping=True),
}


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise InvalidInput("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def currency_display(currency: str) -> CurrencyDisplay:
    """Locale and symbol used to render ``currency``; unknown codes use USD layout."""
    normalized = normalize_currency(currency)
    display = CURRENCY_DISPLAY.get(normalized)
    if display is not None:
        return display
    return CurrencyDisplay(
        locale=CURRENCY_DISPLAY[DEFAULT_DISPLAY_CURRENCY].locale,
        symbol=f"{normalized} ",
    )


def format_currency(amount: AmountLike, currency: str = DEFAULT_DISPLAY_CURRENCY) -> str:
    display = currency_display(currency)
    layout = LOCALE_LAYOUTS.get(display.locale, LocaleLayout())
    value = coerce_amount(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, fraction = f"{abs(value):.2f}".split(".")
    number = (
        _group_digits(whole, layout)
        + layout.decimal_separator
        + fraction
    )
    if layout.symbol_after:
        return f"{sign}{number} {display.symbol}"
    return f"{sign}{display.symbol}{number}"


def format_percent(value: AmountLike, places: int = 1) -> str:
    quantum = Decimal(1).scaleb(-places)
    return str(coerce_amount(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_chart_date(key: str) -> str:
    """Render ``YYYY-MM`` as ``Mar 2024`` and ``YYYY-MM-DD`` as ``Mar 5, 2024``."""
    parts = key.split("-")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        return key
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12:
        return key
    label = MONTH_ABBREVIATIONS[month - 1]
    if len(parts) == 2:
        return f"{label} {year}"
    return f"{label} {int(parts[2])}, {year}"


def _group_digits(digits: str, layout: LocaleLayout) -> str:
    if layout.indian_grouping and len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        return layout.group_separator.join(groups + [tail])

    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return layout.group_separator.join(groups)
