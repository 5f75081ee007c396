"""Project-wide configuration values loaded from environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ssp_fx.analytics.market_summary import (
    DEFAULT_RANGE_WINDOW_DAYS,
    DEFAULT_TREND_THRESHOLD_PCT,
    DEFAULT_TREND_WINDOW_DAYS,
    DEFAULT_VOLATILITY_WINDOW_DAYS,
    resolve_trend_threshold,
)

DEFAULT_QUOTE_CURRENCIES: tuple[str, ...] = ("USD", "EUR", "KES", "GBP")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


def _env_codes(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    codes = tuple(code.strip().upper() for code in raw.split(",") if code.strip())
    return codes or default


@dataclass(frozen=True)
class Settings:
    """Application settings, built once at startup and passed to ``create_app``."""

    supabase_url: str | None = None
    supabase_key: str | None = None

    rates_table: str = "fx_daily_rates"
    default_rates_table: str = "fx_daily_rates_default"
    sources_table: str = "fx_sources"
    currencies_table: str = "currencies"

    base_currency: str = "SSP"
    default_quote: str = "USD"
    quote_currencies: tuple[str, ...] = DEFAULT_QUOTE_CURRENCIES

    admin_secret: str | None = None
    internal_admin_token: str | None = None
    secret_key: str | None = None
    manual_source_code: str = "SAVVY_FEED"

    trend_threshold_pct: float = DEFAULT_TREND_THRESHOLD_PCT
    range_window_days: int = DEFAULT_RANGE_WINDOW_DAYS
    trend_window_days: int = DEFAULT_TREND_WINDOW_DAYS
    volatility_window_days: int = DEFAULT_VOLATILITY_WINDOW_DAYS

    # PostgREST caps a single response at 1000 rows by default
    fetch_chunk_size: int = 1000
    history_limit: int = 2000

    log_level: str = "INFO"
    service_name: str = "SSP FX API"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY")
            or os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
            rates_table=os.getenv("FX_RATES_TABLE", "fx_daily_rates"),
            default_rates_table=os.getenv(
                "FX_DEFAULT_RATES_TABLE", "fx_daily_rates_default"
            ),
            sources_table=os.getenv("FX_SOURCES_TABLE", "fx_sources"),
            currencies_table=os.getenv("FX_CURRENCIES_TABLE", "currencies"),
            base_currency=os.getenv("FX_BASE_CURRENCY", "SSP").upper(),
            default_quote=os.getenv("FX_DEFAULT_QUOTE", "USD").upper(),
            quote_currencies=_env_codes(
                "FX_QUOTE_CURRENCIES", DEFAULT_QUOTE_CURRENCIES
            ),
            admin_secret=os.getenv("FX_ADMIN_SECRET"),
            internal_admin_token=os.getenv("INTERNAL_ADMIN_TOKEN"),
            secret_key=os.getenv("FLASK_SECRET_KEY"),
            manual_source_code=os.getenv("FX_MANUAL_SOURCE_CODE", "SAVVY_FEED"),
            trend_threshold_pct=resolve_trend_threshold(
                os.getenv("FX_TREND_THRESHOLD")
            ),
            range_window_days=_env_int(
                "FX_RANGE_WINDOW_DAYS", DEFAULT_RANGE_WINDOW_DAYS
            ),
            trend_window_days=_env_int(
                "FX_TREND_WINDOW_DAYS", DEFAULT_TREND_WINDOW_DAYS
            ),
            volatility_window_days=_env_int(
                "FX_VOLATILITY_WINDOW_DAYS", DEFAULT_VOLATILITY_WINDOW_DAYS
            ),
            fetch_chunk_size=_env_int("FX_FETCH_CHUNK_SIZE", 1000),
            history_limit=_env_int("FX_HISTORY_LIMIT", 2000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
