"""Statistics derived from stored FX rate series."""

from .insights import build_insights
from .market_summary import (
    TREND_THRESHOLD_PRESETS,
    CurrencyPair,
    EmptySeriesError,
    InvalidWindowError,
    MarketSummary,
    MarketSummaryError,
    RateObservation,
    TrendLabel,
    resolve_trend_threshold,
    summarize,
)

__all__ = [
    "TREND_THRESHOLD_PRESETS",
    "CurrencyPair",
    "EmptySeriesError",
    "InvalidWindowError",
    "MarketSummary",
    "MarketSummaryError",
    "RateObservation",
    "TrendLabel",
    "build_insights",
    "resolve_trend_threshold",
    "summarize",
]
