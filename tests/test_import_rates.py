import json

import pytest

from scripts.import_rates import main, prepare_rows, read_rows
from ssp_fx.services import RatesService

from .conftest import FakeSupabaseClient


@pytest.fixture
def feed_env(monkeypatch, fake_db):
    """Point ``main`` at configured credentials and the in-memory tables."""
    monkeypatch.setattr("ssp_fx.config.load_dotenv", lambda: False)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "test-service-key")
    monkeypatch.delenv("FX_MANUAL_SOURCE_CODE", raising=False)
    monkeypatch.setattr(
        "scripts.import_rates.RatesService",
        lambda settings: RatesService(settings, client=FakeSupabaseClient(fake_db)),
    )
    return fake_db


def test_read_csv(tmp_path):
    path = tmp_path / "rates.csv"
    path.write_text(
        "as_of_date,quote_currency,rate_mid,is_official\n"
        "2024-04-01,USD,4510.5,true\n"
        "2024-04-01,EUR,4990,false\n",
        encoding="utf-8",
    )

    rows = prepare_rows(read_rows(path), "SAVVY_FEED")

    assert rows[0] == {
        "as_of_date": "2024-04-01",
        "quote_currency": "USD",
        "rate_mid": "4510.5",
        "is_official": "true",
        "source_code": "SAVVY_FEED",
    }
    assert len(rows) == 2


def test_read_json(tmp_path):
    path = tmp_path / "rates.json"
    path.write_text(
        json.dumps([{"as_of_date": "2024-04-01", "quote_currency": "KES", "rate_mid": 34.2}]),
        encoding="utf-8",
    )

    rows = read_rows(path)

    assert rows[0]["rate_mid"] == 34.2


def test_main_without_credentials(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("ssp_fx.config.load_dotenv", lambda: False)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    path = tmp_path / "rates.csv"
    path.write_text("as_of_date,quote_currency,rate_mid\n2024-04-01,USD,4500\n", encoding="utf-8")

    assert main([str(path)]) == 1
    assert "not configured" in capsys.readouterr().out


def test_main_rejects_non_array_json(tmp_path, capsys):
    path = tmp_path / "rates.json"
    path.write_text('{"as_of_date": "2024-04-01"}', encoding="utf-8")

    assert main([str(path)]) == 1
    assert "JSON array" in capsys.readouterr().out


def test_main_rejects_rows_that_are_not_objects(tmp_path, capsys):
    path = tmp_path / "rates.json"
    path.write_text(json.dumps([["2024-04-01", "USD", 4500]]), encoding="utf-8")

    assert main([str(path)]) == 1
    assert "row 1 is not an object" in capsys.readouterr().out


def test_main_imports_csv_as_manual_rates(tmp_path, feed_env, capsys):
    path = tmp_path / "rates.csv"
    path.write_text(
        "as_of_date,quote_currency,rate_mid,is_official\n"
        "2024-04-01,usd,4510.5,false\n"
        "2024-04-01,EUR,4990,true\n",
        encoding="utf-8",
    )

    assert main([str(path)]) == 0
    assert "Imported 2 rates" in capsys.readouterr().out

    stored = {row["quote_currency"]: row for row in feed_env.tables["fx_daily_rates"]}
    assert stored["USD"]["rate_mid"] == 4510.5
    assert stored["USD"]["is_official"] is False
    assert stored["USD"]["is_manual_override"] is True
    assert stored["USD"]["source_id"] == 1
    assert stored["USD"]["base_currency"] == "SSP"
    assert stored["EUR"]["is_official"] is True
    assert "source_code" not in stored["EUR"]


def test_main_reports_unknown_source(tmp_path, feed_env, capsys):
    path = tmp_path / "rates.json"
    path.write_text(
        json.dumps(
            [
                {
                    "as_of_date": "2024-04-01",
                    "quote_currency": "USD",
                    "rate_mid": 4500,
                    "source_code": "NOPE",
                }
            ]
        ),
        encoding="utf-8",
    )

    assert main([str(path)]) == 1
    assert "UNKNOWN_SOURCE" in capsys.readouterr().out
    assert "fx_daily_rates" not in feed_env.tables
