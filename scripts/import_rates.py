"""CLI script to load manually collected SSP rates from a CSV or JSON file."""

from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path
from typing import Any

from ssp_fx.config import Settings
from ssp_fx.errors import FxApiError
from ssp_fx.services import RatesService, SupabaseConfigurationError, supabase_configured


def read_rows(path: Path) -> list[dict[str, Any]]:
    """Read rows with as_of_date, quote_currency, rate_mid and optional is_official."""
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            content = handle.read().strip()
            rows = json.loads(content) if content else []
            if not isinstance(rows, list):
                raise ValueError(f"{path} must contain a JSON array of rows")
            return rows
        return [dict(row) for row in csv.DictReader(handle)]


def prepare_rows(rows: list[dict[str, Any]], source_code: str) -> list[dict[str, Any]]:
    prepared = []
    for index, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            raise ValueError(f"row {index} is not an object: {row!r}")
        row = {key.strip(): value for key, value in row.items() if key}
        row.setdefault("source_code", source_code)
        prepared.append(row)
    return prepared


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", type=Path, help="CSV or JSON file of daily rates")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    try:
        rows = prepare_rows(read_rows(args.path), settings.manual_source_code)
    except (OSError, ValueError) as exc:
        print(f"Could not read {args.path}: {exc}")
        return 1

    if not rows:
        print("No rates found; nothing to import.")
        return 0

    if not supabase_configured(settings):
        print("Supabase credentials not configured; skipping Supabase upsert.")
        return 1

    try:
        count = RatesService(settings).bulk_upsert(rows, manual=True)
    except SupabaseConfigurationError as exc:
        print(f"Supabase configuration error: {exc}")
        return 1
    except FxApiError as exc:
        print(f"Failed to import rates ({exc.code}): {exc.message}")
        return 1

    print(f"Imported {count} rates from {args.path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
