"""Admin routes for entering and maintaining daily SSP rates."""

from __future__ import annotations

import hmac
import logging
from datetime import timedelta
from functools import wraps

from flask import Blueprint, Response, jsonify, request, session

from ssp_fx.api.params import (
    currency_arg,
    days_window,
    positive_int_arg,
    rates_service,
)
from ssp_fx.errors import (
    FxApiError,
    InvalidParameterError,
    NoDataError,
    UnauthorizedError,
)
from ssp_fx.services.rates_service import normalize_currency, parse_flag
from ssp_fx.services.series import parse_mid, parse_rate_date

logger = logging.getLogger(__name__)

ADMIN_SESSION_KEY = "fx_admin_session"
ADMIN_SESSION_LIFETIME = timedelta(hours=8)
RECENT_RATES_LIMIT = 20

admin_bp = Blueprint("admin", __name__)


@admin_bp.after_request
def add_version_header(response: Response) -> Response:
    response.headers["X-FX-API-Version"] = "admin-v1"
    return response


def is_admin_authenticated() -> bool:
    return session.get(ADMIN_SESSION_KEY) is True


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not is_admin_authenticated():
            raise UnauthorizedError("Unauthorized")
        return view(*args, **kwargs)

    return wrapped


def _json_body():
    body = request.get_json(silent=True)
    if body is None:
        raise InvalidParameterError("Request body must be JSON.", code="BAD_JSON")
    return body


@admin_bp.post("/login")
def login():
    secret = rates_service().settings.admin_secret
    if not secret:
        raise FxApiError(
            "FX_ADMIN_SECRET is not configured on the server", code="NOT_CONFIGURED"
        )

    body = request.get_json(silent=True) or {}
    password = body.get("password") if isinstance(body, dict) else None
    if not password or not isinstance(password, str):
        raise InvalidParameterError("Password is required", code="MISSING_PARAMETER")

    if not hmac.compare_digest(password.encode(), secret.encode()):
        logger.warning("Rejected admin login from %s", request.remote_addr)
        raise UnauthorizedError("Invalid admin password")

    session.permanent = True
    session[ADMIN_SESSION_KEY] = True
    return jsonify({"ok": True})


@admin_bp.post("/logout")
def logout():
    session.pop(ADMIN_SESSION_KEY, None)
    return jsonify({"ok": True})


@admin_bp.get("/check")
@admin_required
def check():
    return jsonify({"ok": True})


@admin_bp.post("/manual-rate")
@admin_required
def manual_rate():
    """Save one manually entered mid rate against the base currency."""
    body = _json_body()
    if not isinstance(body, dict):
        raise InvalidParameterError("Request body must be a JSON object.", code="BAD_JSON")

    message = (
        "Missing or invalid fields. Required: asOfDate (YYYY-MM-DD), "
        "quoteCurrency, rateMid (number)."
    )
    raw_date = body.get("asOfDate")
    as_of = None
    if isinstance(raw_date, str) and len(raw_date) == 10:
        as_of = parse_rate_date(raw_date)
    rate_mid = parse_mid(body.get("rateMid"))
    try:
        quote = normalize_currency(body.get("quoteCurrency"), "quoteCurrency")
    except InvalidParameterError:
        quote = None
    if as_of is None or rate_mid is None or quote is None:
        raise InvalidParameterError(message, code="VALIDATION")

    record = rates_service().save_manual_rate(
        as_of, quote, rate_mid, is_official=parse_flag(body.get("isOfficial"), default=True)
    )
    return jsonify(
        {
            "status": "ok",
            "message": "FX rate saved successfully",
            "record": {
                "asOfDate": record["as_of_date"],
                "baseCurrency": record["base_currency"],
                "quoteCurrency": record["quote_currency"],
                "rateMid": record["rate_mid"],
            },
        }
    )


@admin_bp.get("/recent-rates")
@admin_required
def recent_rates():
    service = rates_service()
    data = service.recent_rates(service.settings.base_currency, None, RECENT_RATES_LIMIT)
    return jsonify({"data": data})


@admin_bp.post("/delete-rate")
@admin_required
def delete_rate():
    body = _json_body()
    rate_id = body.get("id") if isinstance(body, dict) else None
    if isinstance(rate_id, bool) or not isinstance(rate_id, int):
        raise InvalidParameterError("Missing or invalid id in request body")

    if not rates_service().delete_rate(rate_id):
        raise NoDataError(f"No FX rate with id {rate_id}.")
    return jsonify({"message": "FX rate deleted successfully"})


@admin_bp.get("/chart-data")
@admin_required
def chart_data():
    """Ascending points for the admin chart, capped to the latest ``limit``."""
    service = rates_service()
    base = currency_arg("base", service.settings.base_currency)
    quote = currency_arg("quote", service.settings.default_quote)
    limit = positive_int_arg("limit", service.settings.history_limit)
    days = positive_int_arg("days")

    start = days_window(days)[0] if days else None
    series = service.fetch_series(base, quote, start=start, limit=limit)
    points = [{"date": point.date.isoformat(), "rateMid": point.mid} for point in series]
    return jsonify(
        {
            "base": base,
            "quote": quote,
            "points": points,
            "meta": {
                "from": points[0]["date"] if points else None,
                "to": points[-1]["date"] if points else None,
                "count": len(points),
            },
        }
    )


@admin_bp.post("/rates")
def bulk_rates():
    """Bulk upsert for internal feeds, authorised by a shared token header."""
    expected = rates_service().settings.internal_admin_token
    if not expected:
        raise FxApiError("INTERNAL_ADMIN_TOKEN missing", code="CONFIG")

    supplied = (request.headers.get("X-Internal-Admin-Token") or "").strip()
    if not supplied or not hmac.compare_digest(supplied.encode(), expected.strip().encode()):
        raise UnauthorizedError("invalid token")

    if not request.is_json:
        raise FxApiError(
            "Send application/json", code="UNSUPPORTED_MEDIA_TYPE", status=415
        )
    body = _json_body()
    if not isinstance(body, list):
        raise InvalidParameterError("Body must be a JSON array", code="BAD_JSON")

    inserted = rates_service().bulk_upsert(body)
    return jsonify({"success": True, "inserted": inserted})
