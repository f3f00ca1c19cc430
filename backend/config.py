import os
from functools import lru_cache

from backend.formatting import normalize_currency

DEFAULT_FORECAST_MONTHS = 3


class Settings:
    def __init__(
        self,
        database_url: str,
        frontend_origin: str,
        default_currency: str,
        forecast_months: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.frontend_origin = frontend_origin
        self.default_currency = default_currency
        self.forecast_months = forecast_months
        self.log_level = log_level


def _default_currency() -> str:
    raw = os.getenv("BUDGET_SAVVY_DEFAULT_CURRENCY", "USD")
    try:
        return normalize_currency(raw)
    except ValueError:
        return "USD"


def _forecast_months() -> int:
    raw = os.getenv("BUDGET_SAVVY_FORECAST_MONTHS", str(DEFAULT_FORECAST_MONTHS))
    try:
        months = int(raw)
    except ValueError:
        return DEFAULT_FORECAST_MONTHS
    return months if months >= 0 else DEFAULT_FORECAST_MONTHS


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("BUDGET_SAVVY_DATABASE_URL", "sqlite:///./budget_savvy.db"),
        frontend_origin=os.getenv("BUDGET_SAVVY_FRONTEND_ORIGIN", "http://localhost:5173"),
        default_currency=_default_currency(),
        forecast_months=_forecast_months(),
        log_level=os.getenv("BUDGET_SAVVY_LOG_LEVEL", "INFO").upper(),
    )
