"""Read and write FX rates stored in Supabase."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from postgrest.exceptions import APIError
from supabase import Client

from ssp_fx.analytics.market_summary import (
    CurrencyPair,
    MarketSummary,
    RateObservation,
    pct_change,
    summarize,
)
from ssp_fx.config import Settings
from ssp_fx.errors import (
    DatabaseError,
    FxApiError,
    InvalidParameterError,
    NoDataError,
)
from ssp_fx.services.series import (
    Row,
    assemble_series,
    iter_chunks,
    latest_series,
    parse_mid,
    parse_rate_date,
)
from ssp_fx.services.supabase_client import create_supabase_client

logger = logging.getLogger(__name__)

RATE_COLUMNS = (
    "id, as_of_date, base_currency, quote_currency, rate_mid, "
    "is_official, is_manual_override, source_id, created_at"
)
EXPORT_COLUMNS = (
    "as_of_date",
    "base_currency",
    "quote_currency",
    "rate_mid",
    "is_official",
    "is_manual_override",
    "source_id",
)
UPSERT_CONFLICT_KEY = (
    "as_of_date,base_currency,quote_currency,source_id,is_manual_override"
)
RECENT_LIMIT_MAX = 100

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_currency(code: Any, field: str = "currency") -> str:
    if not isinstance(code, str) or not _CURRENCY_CODE.match(code.strip().upper()):
        raise InvalidParameterError(f"{field} must be a 3-letter currency code.")
    return code.strip().upper()


def parse_flag(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "t")
    return bool(value)


class RatesService:
    """Access to the rate tables, configured by an explicit :class:`Settings`."""

    def __init__(self, settings: Settings, client: Optional[Client] = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = create_supabase_client(self.settings)
        return self._client

    def _table(self, name: str):
        return self.client.table(name)

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as exc:
            message = exc.message or str(exc)
            logger.error("Supabase %s failed: %s", action, message)
            raise DatabaseError(message) from exc

    def _pair_query(self, columns: str, base: str, quote: str, table: Optional[str] = None):
        return (
            self._table(table or self.settings.rates_table)
            .select(columns)
            .eq("base_currency", base)
            .eq("quote_currency", quote)
        )

    # Series and statistics

    def fetch_series(
        self,
        base: str,
        quote: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[RateObservation]:
        """Read the pair's history in chunks, keeping the latest ``limit`` points.

        With a ``limit`` the table is read newest first and reading stops once
        ``limit`` dates are held; without one the whole range is read ascending.
        """
        pair = CurrencyPair(base, quote)
        newest_first = limit is not None

        def fetch_page(offset: int, size: int) -> List[Row]:
            query = self._pair_query("as_of_date, rate_mid, created_at", base, quote)
            if start is not None:
                query = query.gte("as_of_date", start.isoformat())
            if end is not None:
                query = query.lte("as_of_date", end.isoformat())
            query = (
                query.order("as_of_date", desc=newest_first)
                .order("created_at", desc=newest_first)
                .range(offset, offset + size - 1)
            )
            return self._execute(query, "series read").data or []

        chunk_size = self.settings.fetch_chunk_size
        if limit is None:
            return assemble_series(iter_chunks(fetch_page, chunk_size), pair)
        return latest_series(
            iter_chunks(fetch_page, min(chunk_size, limit)), pair, limit
        )

    def market_summary(
        self,
        base: str,
        quote: str,
        range_days: Optional[int] = None,
        trend_days: Optional[int] = None,
        volatility_days: Optional[int] = None,
        threshold_pct: Optional[float] = None,
    ) -> MarketSummary:
        settings = self.settings
        windows = (
            settings.range_window_days if range_days is None else range_days,
            settings.trend_window_days if trend_days is None else trend_days,
            settings.volatility_window_days if volatility_days is None else volatility_days,
        )
        if any(window < 1 for window in windows):
            raise InvalidParameterError("Window sizes must be positive integers.")

        series = self.fetch_series(base, quote, limit=max(windows))
        if not series:
            raise NoDataError(f"No FX data for pair {base}/{quote}.")

        return summarize(
            series,
            range_window_days=windows[0],
            trend_window_days=windows[1],
            volatility_window_days=windows[2],
            trend_threshold_pct=(
                settings.trend_threshold_pct if threshold_pct is None else threshold_pct
            ),
        )

    def market_snapshot(self, base: str) -> List[MarketSummary]:
        summaries = []
        for quote in self.settings.quote_currencies:
            if quote == base:
                continue
            try:
                summaries.append(self.market_summary(base, quote))
            except NoDataError:
                logger.info(
                    "No data for %s/%s; leaving it out of the snapshot", base, quote
                )
        return summaries

    # Latest fixings

    def latest_row(self, base: str, quote: str, table: Optional[str] = None) -> Optional[Row]:
        query = (
            self._pair_query(RATE_COLUMNS, base, quote, table)
            .order("as_of_date", desc=True)
            .order("created_at", desc=True)
            .limit(1)
        )
        rows = self._execute(query, "latest rate read").data or []
        return rows[0] if rows else None

    def previous_row(self, base: str, quote: str, before: str) -> Optional[Row]:
        query = (
            self._pair_query("as_of_date, rate_mid", base, quote)
            .lt("as_of_date", before)
            .order("as_of_date", desc=True)
            .order("created_at", desc=True)
            .limit(1)
        )
        rows = self._execute(query, "previous rate read").data or []
        return rows[0] if rows else None

    def latest_quote(self, base: str, quote: str) -> Dict[str, Any]:
        latest = self.latest_row(base, quote)
        if latest is None:
            raise NoDataError(f"No FX data found for pair {base}/{quote}.")

        latest_mid = parse_mid(latest.get("rate_mid"))
        previous = self.previous_row(base, quote, latest["as_of_date"])
        previous_mid = parse_mid(previous.get("rate_mid")) if previous else None

        change = None
        if latest_mid is not None and previous_mid is not None:
            change = pct_change(previous_mid, latest_mid)

        return {
            "pair": f"{base}/{quote}",
            "base": base,
            "quote": quote,
            "as_of_date": latest["as_of_date"],
            "mid_rate": latest_mid,
            "change_pct_vs_previous": change,
            "is_official": latest.get("is_official"),
            "is_manual_override": latest.get("is_manual_override"),
            "source_id": latest.get("source_id"),
        }

    def latest_rates(self, base: str) -> Dict[str, Any]:
        """Every quote for the newest date, falling back to the default table."""
        for table in (self.settings.rates_table, self.settings.default_rates_table):
            date_query = (
                self._table(table)
                .select("as_of_date")
                .eq("base_currency", base)
                .order("as_of_date", desc=True)
                .limit(1)
            )
            date_rows = self._execute(date_query, f"{table} latest date read").data or []
            if not date_rows:
                continue
            as_of = date_rows[0]["as_of_date"]

            rows_query = (
                self._table(table)
                .select("quote_currency, rate_mid, created_at")
                .eq("base_currency", base)
                .eq("as_of_date", as_of)
                .order("quote_currency")
                .order("created_at")
            )
            rows = self._execute(rows_query, f"{table} latest rates read").data or []

            rates: Dict[str, float] = {}
            for row in rows:
                mid = parse_mid(row.get("rate_mid"))
                if mid is not None:
                    rates[row["quote_currency"]] = mid
            if rates:
                return {"base": base, "as_of_date": as_of, "source": table, "rates": rates}

        raise NoDataError(f"No FX data found for base currency {base}.")

    def last_rate_date(self) -> Optional[str]:
        query = (
            self._table(self.settings.rates_table)
            .select("as_of_date")
            .order("as_of_date", desc=True)
            .limit(1)
        )
        rows = self._execute(query, "last date read").data or []
        return rows[0]["as_of_date"] if rows else None

    # Listings

    def recent_rates(
        self, base: str, quote: Optional[str] = None, limit: int = 20
    ) -> List[Row]:
        limit = min(max(limit, 1), RECENT_LIMIT_MAX)
        query = self._table(self.settings.rates_table).select(RATE_COLUMNS)
        if base:
            query = query.eq("base_currency", base)
        if quote:
            query = query.eq("quote_currency", quote)
        query = (
            query.order("as_of_date", desc=True)
            .order("quote_currency")
            .order("created_at", desc=True)
            .limit(limit)
        )
        return self._execute(query, "recent rates read").data or []

    def timeseries(
        self, base: str, quotes: Sequence[str], start: date, end: date
    ) -> Dict[str, List[RateObservation]]:
        def fetch_page(offset: int, size: int) -> List[Row]:
            query = (
                self._table(self.settings.rates_table)
                .select("as_of_date, quote_currency, rate_mid, created_at")
                .eq("base_currency", base)
                .in_("quote_currency", list(quotes))
                .gte("as_of_date", start.isoformat())
                .lte("as_of_date", end.isoformat())
                .order("as_of_date")
                .order("created_at")
                .range(offset, offset + size - 1)
            )
            return self._execute(query, "timeseries read").data or []

        by_quote: Dict[str, List[Row]] = defaultdict(list)
        for chunk in iter_chunks(fetch_page, self.settings.fetch_chunk_size):
            for row in chunk:
                by_quote[row.get("quote_currency")].append(row)

        return {
            quote: assemble_series([by_quote[quote]], CurrencyPair(base, quote))
            for quote in quotes
            if by_quote.get(quote)
        }

    def export_rows(
        self, base: str, quote: Optional[str], start: date, end: date
    ) -> List[Row]:
        def fetch_page(offset: int, size: int) -> List[Row]:
            query = self._table(self.settings.rates_table).select(", ".join(EXPORT_COLUMNS))
            query = query.eq("base_currency", base)
            if quote:
                query = query.eq("quote_currency", quote)
            query = (
                query.gte("as_of_date", start.isoformat())
                .lte("as_of_date", end.isoformat())
                .order("as_of_date")
                .order("quote_currency")
                .range(offset, offset + size - 1)
            )
            return self._execute(query, "export read").data or []

        rows: List[Row] = []
        for chunk in iter_chunks(fetch_page, self.settings.fetch_chunk_size):
            rows.extend(chunk)
        return rows

    def list_currencies(self, search: Optional[str] = None) -> List[Row]:
        query = self._table(self.settings.currencies_table).select(
            "code, name, symbol, decimals, created_at"
        )
        if search:
            # commas and parentheses are filter syntax in PostgREST
            term = re.sub(r"[,()]", "", search).strip()
            if term:
                query = query.or_(f"code.ilike.%{term}%,name.ilike.%{term}%")
        return self._execute(query.order("code"), "currencies read").data or []

    def ping(self) -> bool:
        query = self._table(self.settings.currencies_table).select("code").limit(1)
        self._execute(query, "health check")
        return True

    # Conversion

    def convert(self, from_code: str, to_code: str, amount: float) -> Dict[str, Any]:
        """Convert ``amount`` through the base currency using the latest mids."""
        if from_code == to_code:
            return {
                "from": from_code,
                "to": to_code,
                "amount": amount,
                "rate": 1.0,
                "result": amount,
                "date": None,
            }

        base = self.settings.base_currency
        values = []
        dates = []
        for code in (from_code, to_code):
            if code == base:
                values.append(1.0)
                continue
            row = self.latest_row(base, code)
            mid = parse_mid(row.get("rate_mid")) if row else None
            if mid is None:
                raise NoDataError(
                    f"No rate path found for {from_code} -> {to_code}; "
                    f"{base}/{code} has no rate."
                )
            values.append(mid)
            dates.append(row["as_of_date"])

        rate = values[0] / values[1]
        return {
            "from": from_code,
            "to": to_code,
            "amount": amount,
            "rate": rate,
            "result": amount * rate,
            "date": min(dates),
        }

    # Admin writes

    def source_ids(self) -> Dict[str, Any]:
        query = self._table(self.settings.sources_table).select("id, code")
        rows = self._execute(query, "sources read").data or []
        return {row["code"]: row["id"] for row in rows}

    def save_manual_rate(
        self, as_of_date: date, quote: str, rate_mid: float, is_official: bool = True
    ) -> Dict[str, Any]:
        code = self.settings.manual_source_code
        source_id = self.source_ids().get(code)
        if source_id is None:
            raise FxApiError(
                f"Could not find FX source '{code}'. Ensure it exists in "
                f"{self.settings.sources_table}.",
                code="SOURCE_NOT_FOUND",
            )

        record = {
            "as_of_date": as_of_date.isoformat(),
            "base_currency": self.settings.base_currency,
            "quote_currency": quote,
            "rate_mid": rate_mid,
            "source_id": source_id,
            "is_official": is_official,
            "is_manual_override": True,
        }
        query = self._table(self.settings.rates_table).upsert(
            record, on_conflict=UPSERT_CONFLICT_KEY
        )
        self._execute(query, "manual rate upsert")
        logger.info(
            "Saved manual rate %s/%s for %s: %s",
            record["base_currency"],
            quote,
            record["as_of_date"],
            rate_mid,
        )
        return record

    def delete_rate(self, rate_id: int) -> bool:
        query = self._table(self.settings.rates_table).delete().eq("id", rate_id)
        deleted = self._execute(query, "rate delete").data or []
        if deleted:
            logger.info("Deleted rate id=%s", rate_id)
        return bool(deleted)

    def bulk_upsert(self, rows: Iterable[Dict[str, Any]], manual: bool = False) -> int:
        """Validate and upsert rows; sources are given by ``source_code`` or ``source_id``."""
        records = [self._validate_row(row) for row in rows]
        if not records:
            return 0

        if any("source_code" in record for record in records):
            ids_by_code = self.source_ids()
            missing = sorted(
                {
                    record["source_code"]
                    for record in records
                    if "source_code" in record and record["source_code"] not in ids_by_code
                }
            )
            if missing:
                raise InvalidParameterError(
                    f"Unknown source_code(s): {', '.join(missing)}", code="UNKNOWN_SOURCE"
                )
            for record in records:
                code = record.pop("source_code", None)
                if code is not None:
                    record["source_id"] = ids_by_code[code]

        for record in records:
            record["is_manual_override"] = manual

        query = self._table(self.settings.rates_table).upsert(
            records, on_conflict=UPSERT_CONFLICT_KEY
        )
        self._execute(query, "bulk upsert")
        logger.info("Upserted %d rate rows", len(records))
        return len(records)

    def _validate_row(self, row: Any) -> Dict[str, Any]:
        message = (
            "Each row needs as_of_date (YYYY-MM-DD), quote_currency, a positive "
            "rate_mid, and source_code or source_id."
        )
        if not isinstance(row, dict):
            raise InvalidParameterError(message, code="VALIDATION")

        as_of = row.get("as_of_date")
        if (
            not isinstance(as_of, str)
            or not _ISO_DATE.match(as_of)
            or parse_rate_date(as_of) is None
        ):
            raise InvalidParameterError(message, code="VALIDATION")

        rate = row.get("rate_mid")
        if isinstance(rate, str):
            rate = parse_mid(rate)
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise InvalidParameterError(message, code="VALIDATION")
        if parse_mid(rate) is None:
            raise InvalidParameterError(message, code="VALIDATION")

        if not row.get("source_code") and row.get("source_id") is None:
            raise InvalidParameterError(message, code="VALIDATION")

        try:
            base = normalize_currency(
                row.get("base_currency") or self.settings.base_currency, "base_currency"
            )
            quote = normalize_currency(row.get("quote_currency"), "quote_currency")
        except InvalidParameterError:
            raise InvalidParameterError(message, code="VALIDATION") from None

        record: Dict[str, Any] = {
            "as_of_date": as_of,
            "base_currency": base,
            "quote_currency": quote,
            "rate_mid": float(rate),
            "is_official": parse_flag(row.get("is_official"), default=True),
        }
        if row.get("source_id") is not None:
            record["source_id"] = row["source_id"]
        else:
            record["source_code"] = row["source_code"]
        return record
