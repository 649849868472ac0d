import pytest

from trend_bot.config.settings import Settings, interval_ms, polling_interval_seconds
from trend_bot.config.trading_config import CRYPTO_BASE_CONFIG, DEFAULT_SESSIONS, StrategyConfig
from trend_bot.exceptions import ConfigurationError
from trend_bot.utils.helpers import format_currency, format_time_duration, ms_to_iso, to_epoch_ms


def test_warmup_period():
    assert StrategyConfig(swing_length=10, slow_ma_period=30).warmup_period == 31
    assert StrategyConfig(swing_length=20, slow_ma_period=30).warmup_period == 41


def test_validate_rejects_bad_parameters():
    with pytest.raises(ConfigurationError):
        StrategyConfig(swing_length=0).validate()
    with pytest.raises(ConfigurationError):
        StrategyConfig(bankroll_usd=-1).validate()
    assert CRYPTO_BASE_CONFIG.validate() is CRYPTO_BASE_CONFIG


def test_with_overrides_ignores_none():
    config = CRYPTO_BASE_CONFIG.with_overrides(leverage=5.0, risk_percent=None)
    assert config.leverage == 5.0
    assert config.risk_percent == CRYPTO_BASE_CONFIG.risk_percent


def test_default_sessions_are_valid():
    for session in DEFAULT_SESSIONS:
        session.validate()
    assert {s.symbol for s in DEFAULT_SESSIONS} == {"BTC_USDT", "ETH_USDT", "XAU/USD"}


def test_timeframes():
    assert interval_ms("Min15") == 15 * 60 * 1000
    assert polling_interval_seconds("Min5") == 60
    assert polling_interval_seconds("Hour4") == 300
    assert polling_interval_seconds("Day1") == 3600
    with pytest.raises(ConfigurationError):
        interval_ms("Min7")


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("TREND_BOT_DB_PATH", "/tmp/x.db")
    monkeypatch.setenv("MAX_TICK_FAILURES", "4")
    monkeypatch.setenv("DISCORD_WEBHOOK", "")
    settings = Settings.from_env()
    assert settings.db_path == "/tmp/x.db"
    assert settings.max_tick_failures == 4
    assert settings.discord_webhook is None

    monkeypatch.setenv("MAX_INIT_ATTEMPTS", "three")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_helpers():
    assert format_currency(-1234.5) == "-$1,234.50"
    assert ms_to_iso(1_704_067_200_000) == "2024-01-01 00:00"
    assert to_epoch_ms(1_704_067_200) == 1_704_067_200_000
    assert to_epoch_ms("2024-01-01T00:00:00Z") == 1_704_067_200_000
    assert format_time_duration(90) == "1m"
    assert format_time_duration(3720) == "1h 2m"
