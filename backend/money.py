from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

ZERO = Decimal("0")

AmountLike = Union[Decimal, int, float, str]


class InvalidInput(ValueError):
    """Raised for amounts or selectors the engines cannot evaluate."""


class _DivisionUndefined:
    __slots__ = ()

    def __repr__(self) -> str:
        return "DIVISION_UNDEFINED"

    def __bool__(self) -> bool:
        return False


DIVISION_UNDEFINED = _DivisionUndefined()


def coerce_amount(amount: AmountLike) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidInput("Amount must be numeric.")
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise InvalidInput(f"Amount must be numeric: {amount!r}") from exc
    if not value.is_finite():
        raise InvalidInput("Amount must be finite.")
    return value


def coerce_positive_amount(amount: AmountLike) -> Decimal:
    value = coerce_amount(amount)
    if value <= ZERO:
        raise InvalidInput("Amount must be greater than zero.")
    return value


def coerce_non_negative_amount(amount: AmountLike) -> Decimal:
    value = coerce_amount(amount)
    if value < ZERO:
        raise InvalidInput("Amount must not be negative.")
    return value


def safe_ratio(numerator: AmountLike, denominator: AmountLike):
    """Divide two amounts, returning ``DIVISION_UNDEFINED`` for a zero denominator."""
    denominator_value = coerce_amount(denominator)
    if denominator_value == ZERO:
        return DIVISION_UNDEFINED
    return coerce_amount(numerator) / denominator_value
