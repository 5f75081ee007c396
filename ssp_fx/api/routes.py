"""Public read-only HTTP routes for SSP exchange rate data."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request

from ssp_fx.analytics import build_insights, resolve_trend_threshold
from ssp_fx.api.params import (
    amount_arg,
    currency_arg,
    date_arg,
    days_window,
    positive_int_arg,
    rates_service,
    symbols_arg,
)
from ssp_fx.errors import DatabaseError, InvalidParameterError
from ssp_fx.services.rates_service import EXPORT_COLUMNS, normalize_currency
from ssp_fx.services.supabase_client import supabase_configured

API_VERSION = "v1"

api_bp = Blueprint("api_v1", __name__)


@api_bp.after_request
def add_version_header(response: Response) -> Response:
    response.headers["X-FX-API-Version"] = API_VERSION
    return response


def _pair_args() -> tuple[str, str]:
    settings = rates_service().settings
    base = currency_arg("base", settings.base_currency)
    quote = currency_arg("quote", settings.default_quote)
    return base, quote


def _points(series) -> list[dict]:
    return [{"date": point.date.isoformat(), "mid": point.mid} for point in series]


@api_bp.get("/summary/market")
def market_summary():
    """Latest mid, change, range, trend and volatility for one pair."""
    base, quote = _pair_args()
    threshold = request.args.get("threshold")
    try:
        threshold_pct = resolve_trend_threshold(threshold) if threshold else None
    except ValueError as exc:
        raise InvalidParameterError(str(exc)) from None

    summary = rates_service().market_summary(
        base,
        quote,
        range_days=positive_int_arg("range_days"),
        trend_days=positive_int_arg("trend_days"),
        volatility_days=positive_int_arg("volatility_days"),
        threshold_pct=threshold_pct,
    )
    return jsonify(summary.to_dict())


@api_bp.get("/summary/insights")
def market_insights():
    base, quote = _pair_args()
    summary = rates_service().market_summary(base, quote)
    return jsonify(
        {
            "pair": f"{quote}/{base}",
            "base": base,
            "quote": quote,
            "as_of_date": summary.as_of_date.isoformat(),
            "insights": build_insights(summary),
            "meta": {"version": API_VERSION, "source": "/api/v1/summary/market"},
        }
    )


@api_bp.get("/summary/snapshot")
def market_snapshot():
    """Market summaries for every configured quote currency."""
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    summaries = service.market_snapshot(base)
    return jsonify(
        {
            "base": base,
            "data": [summary.to_dict() for summary in summaries],
            "meta": {"count": len(summaries)},
        }
    )


@api_bp.get("/rates/latest")
def latest_rates():
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    return jsonify(service.latest_rates(base))


@api_bp.get("/rates/<quote>/latest")
def latest_quote(quote: str):
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    return jsonify(service.latest_quote(base, normalize_currency(quote, "quote")))


@api_bp.get("/rates/history")
def rate_history():
    """Points for a pair over ``days``, ``from``/``to`` or all history."""
    service = rates_service()
    base, quote = _pair_args()
    days = positive_int_arg("days")
    start = date_arg("from")
    end = date_arg("to")

    if (start is None) != (end is None):
        raise InvalidParameterError(
            "Provide either days or both from/to (YYYY-MM-DD).",
            code="MISSING_PARAMETER",
        )
    if start is None and days is not None:
        start, end = days_window(days)

    if start is not None and end is not None:
        if start > end:
            raise InvalidParameterError("from must not be after to.")
        series = service.fetch_series(base, quote, start=start, end=end)
    else:
        limit = positive_int_arg("limit", service.settings.history_limit)
        series = service.fetch_series(base, quote, limit=limit)

    points = _points(series)
    if start is None and points:
        start, end = series[0].date, series[-1].date
    return jsonify(
        {
            "pair": f"{base}/{quote}",
            "base": base,
            "quote": quote,
            "points": points,
            "meta": {
                "from": start.isoformat() if start else None,
                "to": end.isoformat() if end else None,
                "count": len(points),
            },
        }
    )


@api_bp.get("/rates/recent")
def recent_rates():
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    quote = currency_arg("quote")
    limit = min(positive_int_arg("limit", 20), 100)
    data = service.recent_rates(base, quote, limit)
    return jsonify({"data": data, "meta": {"limit": limit, "base": base}})


@api_bp.get("/timeseries")
def timeseries():
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    quotes = symbols_arg()
    start = date_arg("start")
    end = date_arg("end")
    if not quotes or start is None or end is None:
        raise InvalidParameterError(
            "start, end and symbols are required.", code="MISSING_PARAMETER"
        )

    series = service.timeseries(base, quotes, start, end)
    return jsonify(
        {
            "base": base,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "series": {quote: _points(points) for quote, points in series.items()},
        }
    )


@api_bp.get("/convert")
def convert():
    from_code = currency_arg("from")
    to_code = currency_arg("to")
    if not from_code or not to_code:
        raise InvalidParameterError("from and to are required.", code="MISSING_PARAMETER")
    amount = amount_arg("amount")
    return jsonify(rates_service().convert(from_code, to_code, amount))


@api_bp.get("/currencies")
def currencies():
    search = request.args.get("search", "").strip() or None
    data = rates_service().list_currencies(search)
    return jsonify({"data": data, "meta": {"count": len(data)}})


def _csv_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@api_bp.get("/export/rates")
def export_rates():
    """Rows for a base currency between two dates as CSV (default) or JSON."""
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    quote = currency_arg("quote")
    start = date_arg("from")
    end = date_arg("to")
    export_format = request.args.get("format", "csv").strip().lower()

    if start is None or end is None:
        raise InvalidParameterError(
            "from and to (YYYY-MM-DD) are required.", code="MISSING_PARAMETER"
        )
    if export_format not in ("csv", "json"):
        raise InvalidParameterError("format must be csv or json.")

    rows = service.export_rows(base, quote, start, end)

    if export_format == "json":
        return jsonify(
            {
                "data": rows,
                "meta": {"base": base, "from": start.isoformat(), "to": end.isoformat()},
            }
        )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        writer.writerow([_csv_value(row.get(column)) for column in EXPORT_COLUMNS])

    filename = f"fx_rates_{base}_{start.isoformat()}_to_{end.isoformat()}.csv"
    return Response(
        buffer.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@api_bp.get("/status")
def status():
    service = rates_service()
    return jsonify(
        {
            "service": service.settings.service_name,
            "last_date": service.last_rate_date(),
            "now": datetime.now(timezone.utc).isoformat(),
        }
    )


@api_bp.get("/health")
def healthcheck():
    """Basic healthcheck endpoint."""
    service = rates_service()
    configured = supabase_configured(service.settings)
    if not configured:
        return jsonify({"status": "ok", "supabase_configured": False, "db": False})

    try:
        service.ping()
    except DatabaseError as exc:
        return (
            jsonify(
                {
                    "status": "error",
                    "supabase_configured": True,
                    "db": False,
                    "message": exc.message,
                }
            ),
            500,
        )
    return jsonify({"status": "ok", "supabase_configured": True, "db": True})
