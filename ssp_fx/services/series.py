"""Assemble clean rate series from paginated table reads."""

from __future__ import annotations

import logging
import math
from collections import deque
from itertools import chain
from datetime import date
from typing import Any, Callable, Deque, Dict, Iterable, Iterator, List, Optional

from ssp_fx.analytics.market_summary import CurrencyPair, RateObservation

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
FetchPage = Callable[[int, int], List[Row]]


def parse_rate_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_mid(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        mid = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(mid) or mid <= 0:
        return None
    return mid


def parse_observation(
    row: Row,
    pair: CurrencyPair,
    date_key: str = "as_of_date",
    mid_key: str = "rate_mid",
) -> Optional[RateObservation]:
    """Build an observation from a table row, or ``None`` if the row is unusable."""
    as_of = parse_rate_date(row.get(date_key))
    mid = parse_mid(row.get(mid_key))
    if as_of is None or mid is None:
        return None
    return RateObservation(pair=pair, date=as_of, mid=mid)


def iter_chunks(fetch_page: FetchPage, chunk_size: int) -> Iterator[List[Row]]:
    """Yield pages from ``fetch_page(offset, size)`` until an empty page ends the scan.

    The server may cap a page below ``chunk_size`` (PostgREST ``max-rows``), so
    a short page is not treated as the last one and ``offset`` advances by the
    rows actually returned.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    offset = 0
    while True:
        page = fetch_page(offset, chunk_size)
        if not page:
            return
        yield page
        offset += len(page)


def assemble_series(
    chunks: Iterable[List[Row]],
    pair: CurrencyPair,
    limit: Optional[int] = None,
) -> List[RateObservation]:
    """Collapse date-ascending row chunks into a series of at most ``limit`` points.

    One observation is kept per date; a later row for the same date replaces
    the earlier one. When more than ``limit`` dates are seen only the most
    recent ``limit`` are kept.
    """
    if limit is not None and limit < 1:
        raise ValueError("limit must be >= 1")

    window: Deque[RateObservation] = deque(maxlen=limit)
    skipped = 0
    for chunk in chunks:
        for row in chunk:
            observation = parse_observation(row, pair)
            if observation is None:
                skipped += 1
                continue
            if window and observation.date == window[-1].date:
                window[-1] = observation
            elif window and observation.date < window[-1].date:
                skipped += 1
            else:
                window.append(observation)

    if skipped:
        logger.debug("Skipped %d unusable rows while assembling %s", skipped, pair)
    return list(window)


def latest_series(
    chunks: Iterable[List[Row]],
    pair: CurrencyPair,
    limit: int,
) -> List[RateObservation]:
    """Collect the latest ``limit`` dates from date-descending row chunks.

    Rows must be newest first within a date as well; the first usable row
    seen for a date wins. Chunks stop being consumed once ``limit`` dates are
    held. The result is in ascending date order.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    newest_first: List[RateObservation] = []
    skipped = 0
    for row in chain.from_iterable(chunks):
        observation = parse_observation(row, pair)
        if observation is None:
            skipped += 1
            continue
        if newest_first and observation.date >= newest_first[-1].date:
            continue
        newest_first.append(observation)
        if len(newest_first) == limit:
            break

    if skipped:
        logger.debug("Skipped %d unusable rows while assembling %s", skipped, pair)
    newest_first.reverse()
    return newest_first
