"""Plain-English insights built from a market summary."""

from __future__ import annotations

from typing import List

from .market_summary import MarketSummary, TrendLabel

MAX_INSIGHTS = 3


def format_pair(summary: MarketSummary) -> str:
    # SSP markets are quoted as "USD/SSP"
    return f"{summary.pair.quote}/{summary.pair.base}"


def format_pct(value: float, digits: int = 2) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{digits}f}%"


def _change_descriptor(delta: float) -> str:
    magnitude = abs(delta)
    if magnitude < 0.15:
        return "has been stable"
    if magnitude < 0.75:
        return "has moved moderately"
    return "has moved sharply"


def _range_descriptor(range_pct: float) -> str:
    if range_pct < 1:
        return "tight"
    if range_pct < 3:
        return "moderate"
    return "wide"


def _volatility_descriptor(avg_move: float) -> str:
    magnitude = abs(avg_move)
    if magnitude < 0.10:
        return "very low"
    if magnitude < 0.30:
        return "low"
    if magnitude < 0.70:
        return "elevated"
    return "high"


def build_insights(summary: MarketSummary) -> List[str]:
    """Return up to three short sentences describing ``summary``."""
    insights: List[str] = []
    pair_label = format_pair(summary)

    delta = summary.change_pct_vs_previous
    if delta is not None:
        insights.append(
            f"{pair_label} {_change_descriptor(delta)} vs the previous fixing "
            f"({format_pct(delta)})."
        )

    high, low = summary.range.high, summary.range.low
    if summary.mid_rate > 0 and high > 0 and low > 0 and high >= low:
        range_pct = (high - low) / summary.mid_rate * 100
        insights.append(
            f"{pair_label} {summary.range.window_days}-day trading range is "
            f"{_range_descriptor(range_pct)}: {low:.2f} - {high:.2f}."
        )

    avg_move = summary.volatility.avg_daily_move_pct
    if avg_move is not None:
        insights.append(
            f"Average daily move over the last {summary.volatility.window_days} "
            f"days is {format_pct(avg_move)}, indicating "
            f"{_volatility_descriptor(avg_move)} volatility."
        )

    label: TrendLabel = summary.trend.label
    insights.append(
        f'Trend signal: {pair_label} is "{label.value}" over the last '
        f"{summary.trend.window_days} days."
    )

    return insights[:MAX_INSIGHTS]
