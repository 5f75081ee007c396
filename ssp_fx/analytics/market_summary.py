"""Market summary statistics derived from a daily mid-rate series.

The engine is a pure function: it receives a date-ascending series for one
currency pair and returns the latest fixing, the change against the previous
fixing, a trailing high/low range, a short-window trend label and the average
absolute daily move. Windows count observations, not calendar days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

TREND_THRESHOLD_PRESETS: Dict[str, float] = {
    "standard": 1.0,
    "sensitive": 0.1,
}
DEFAULT_TREND_THRESHOLD_PCT: float = TREND_THRESHOLD_PRESETS["standard"]

DEFAULT_RANGE_WINDOW_DAYS = 7
DEFAULT_TREND_WINDOW_DAYS = 3
DEFAULT_VOLATILITY_WINDOW_DAYS = 30


class MarketSummaryError(ValueError):
    """Raised when the engine is called outside its preconditions."""


class EmptySeriesError(MarketSummaryError):
    pass


class InvalidWindowError(MarketSummaryError):
    pass


class TrendLabel(str, Enum):
    UPTREND = "Uptrend"
    DOWNTREND = "Downtrend"
    RANGE_BOUND = "Range-Bound"


@dataclass(frozen=True)
class CurrencyPair:
    base: str
    quote: str

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"


@dataclass(frozen=True)
class RateObservation:
    pair: CurrencyPair
    date: date
    mid: float


@dataclass(frozen=True)
class RangeStats:
    window_days: int
    high: float
    low: float


@dataclass(frozen=True)
class TrendStats:
    window_days: int
    label: TrendLabel


@dataclass(frozen=True)
class VolatilityStats:
    window_days: int
    avg_daily_move_pct: Optional[float]


@dataclass(frozen=True)
class MarketSummary:
    pair: CurrencyPair
    as_of_date: date
    mid_rate: float
    change_pct_vs_previous: Optional[float]
    range: RangeStats
    trend: TrendStats
    volatility: VolatilityStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pair": str(self.pair),
            "base": self.pair.base,
            "quote": self.pair.quote,
            "as_of_date": self.as_of_date.isoformat(),
            "mid_rate": self.mid_rate,
            "change_pct_vs_previous": self.change_pct_vs_previous,
            "range": {
                "window_days": self.range.window_days,
                "high": self.range.high,
                "low": self.range.low,
            },
            "trend": {
                "window_days": self.trend.window_days,
                "label": self.trend.label.value,
            },
            "volatility": {
                "window_days": self.volatility.window_days,
                "avg_daily_move_pct": self.volatility.avg_daily_move_pct,
            },
        }


def resolve_trend_threshold(value: Union[str, float, int, None]) -> float:
    """Turn a preset name or a number into a trend threshold in percent.

    ``None`` or an empty string selects the standard preset.
    """
    if value is None or value == "":
        return DEFAULT_TREND_THRESHOLD_PCT
    if isinstance(value, str):
        preset = TREND_THRESHOLD_PRESETS.get(value.strip().lower())
        if preset is not None:
            return preset
        try:
            value = float(value)
        except ValueError:
            raise ValueError(
                f"Unknown trend threshold {value!r}; use a number or one of "
                f"{', '.join(sorted(TREND_THRESHOLD_PRESETS))}"
            ) from None
    threshold = float(value)
    if threshold != threshold or threshold < 0:
        raise ValueError("Trend threshold must be a non-negative number")
    return threshold


def pct_change(start: float, end: float) -> Optional[float]:
    """Percent move from ``start`` to ``end``; ``None`` when ``start`` is zero."""
    if start == 0:
        return None
    return (end - start) / start * 100


def classify_move(pct: Optional[float], threshold_pct: float) -> TrendLabel:
    if pct is None:
        return TrendLabel.RANGE_BOUND
    if pct > threshold_pct:
        return TrendLabel.UPTREND
    if pct < -threshold_pct:
        return TrendLabel.DOWNTREND
    return TrendLabel.RANGE_BOUND


def classify_trend(mids: Sequence[float], threshold_pct: float) -> TrendLabel:
    """Label the move between the first and last value of ``mids``."""
    if len(mids) < 2:
        return TrendLabel.RANGE_BOUND
    return classify_move(pct_change(mids[0], mids[-1]), threshold_pct)


def average_daily_move(mids: Sequence[float]) -> Optional[float]:
    """Mean absolute day-over-day percent move, skipping zero denominators."""
    moves = [
        abs(move)
        for move in (pct_change(prev, cur) for prev, cur in zip(mids, mids[1:]))
        if move is not None
    ]
    if not moves:
        return None
    return sum(moves) / len(moves)


def _check_window(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidWindowError(f"{name} must be an integer >= 1, got {value!r}")
    return value


def _trailing(values: Sequence[float], window: int) -> Sequence[float]:
    return values[-window:]


def summarize(
    series: Sequence[RateObservation],
    range_window_days: int = DEFAULT_RANGE_WINDOW_DAYS,
    trend_window_days: int = DEFAULT_TREND_WINDOW_DAYS,
    volatility_window_days: int = DEFAULT_VOLATILITY_WINDOW_DAYS,
    trend_threshold_pct: float = DEFAULT_TREND_THRESHOLD_PCT,
) -> MarketSummary:
    """Compute a :class:`MarketSummary` for a date-ascending series.

    Args:
        series: observations for a single pair, strictly increasing by date,
            every ``mid`` positive.
        range_window_days: number of trailing observations for high/low.
        trend_window_days: number of trailing observations for the trend label.
        volatility_window_days: number of trailing observations for the
            average daily move.
        trend_threshold_pct: absolute percent move above which the trend
            window counts as an up or down trend.

    Raises:
        EmptySeriesError: ``series`` has no observations.
        InvalidWindowError: a window is not an integer >= 1.
    """
    _check_window("range_window_days", range_window_days)
    _check_window("trend_window_days", trend_window_days)
    _check_window("volatility_window_days", volatility_window_days)

    observations = tuple(series)
    if not observations:
        raise EmptySeriesError("Cannot summarize an empty rate series")

    mids = [observation.mid for observation in observations]
    latest = observations[-1]
    mid_rate = latest.mid

    change = pct_change(mids[-2], mid_rate) if len(mids) >= 2 else None

    range_mids = _trailing(mids, range_window_days)
    high = max(range_mids) if range_mids else mid_rate
    low = min(range_mids) if range_mids else mid_rate

    trend_label = classify_trend(
        _trailing(mids, trend_window_days), trend_threshold_pct
    )
    avg_move = average_daily_move(_trailing(mids, volatility_window_days))

    return MarketSummary(
        pair=latest.pair,
        as_of_date=latest.date,
        mid_rate=mid_rate,
        change_pct_vs_previous=change,
        range=RangeStats(window_days=range_window_days, high=high, low=low),
        trend=TrendStats(window_days=trend_window_days, label=trend_label),
        volatility=VolatilityStats(
            window_days=volatility_window_days, avg_daily_move_pct=avg_move
        ),
    )
