import pytest

from ssp_fx.config import DEFAULT_QUOTE_CURRENCIES, Settings

ENV_VARS = [
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "FX_BASE_CURRENCY",
    "FX_QUOTE_CURRENCIES",
    "FX_TREND_THRESHOLD",
    "FX_HISTORY_LIMIT",
    "FX_FETCH_CHUNK_SIZE",
    "FX_RANGE_WINDOW_DAYS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr("ssp_fx.config.load_dotenv", lambda: False)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.supabase_url is None
    assert settings.base_currency == "SSP"
    assert settings.quote_currencies == DEFAULT_QUOTE_CURRENCIES
    assert settings.trend_threshold_pct == 1.0
    assert settings.fetch_chunk_size == 1000
    assert settings.history_limit == 2000


def test_overrides(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setenv("FX_QUOTE_CURRENCIES", "usd, eur,,kes")
    monkeypatch.setenv("FX_TREND_THRESHOLD", "sensitive")
    monkeypatch.setenv("FX_HISTORY_LIMIT", "500")

    settings = Settings.from_env()

    assert settings.supabase_key == "service-key"
    assert settings.quote_currencies == ("USD", "EUR", "KES")
    assert settings.trend_threshold_pct == 0.1
    assert settings.history_limit == 500


@pytest.mark.parametrize(
    "name, value",
    [("FX_HISTORY_LIMIT", "lots"), ("FX_FETCH_CHUNK_SIZE", "0"), ("FX_TREND_THRESHOLD", "x")],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        Settings.from_env()
