"""Query string parsing shared by the blueprints."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from flask import current_app, request

from ssp_fx.errors import InvalidParameterError
from ssp_fx.services.rates_service import RatesService, normalize_currency
from ssp_fx.services.series import parse_rate_date


def rates_service() -> RatesService:
    return current_app.extensions["ssp_fx"]


def today() -> date:
    return datetime.now(timezone.utc).date()


def currency_arg(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = request.args.get(name, "").strip()
    if not raw:
        return default
    return normalize_currency(raw, name)


def positive_int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidParameterError(f"{name} must be a positive integer.") from None
    if value < 1:
        raise InvalidParameterError(f"{name} must be a positive integer.")
    return value


def amount_arg(name: str, default: float = 1.0) -> float:
    raw = request.args.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidParameterError(f"{name} must be a non-negative number.") from None
    if not math.isfinite(value) or value < 0:
        raise InvalidParameterError(f"{name} must be a non-negative number.")
    return value


def date_arg(name: str) -> Optional[date]:
    raw = request.args.get(name, "").strip()
    if not raw:
        return None
    parsed = parse_rate_date(raw) if len(raw) == 10 else None
    if parsed is None:
        raise InvalidParameterError(f"{name} must be a date in YYYY-MM-DD format.")
    return parsed


def symbols_arg(name: str = "symbols") -> List[str]:
    raw = request.args.get(name, "")
    codes = [code.strip() for code in raw.split(",") if code.strip()]
    return [normalize_currency(code, name) for code in codes]


def days_window(days: int) -> tuple[date, date]:
    """Inclusive window of ``days`` calendar days ending today."""
    end = today()
    return end - timedelta(days=days - 1), end
