"""
Configuration settings for the Trend Strategy Bot
Environment-driven runtime settings and timeframe tables
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from trend_bot.exceptions import ConfigurationError

# Environment variables (for sensitive data)
load_dotenv()


MINUTE_MS = 60 * 1000

# Candle duration per supported timeframe code
TIMEFRAME_MS: Dict[str, int] = {
    'Min1': MINUTE_MS,
    'Min5': 5 * MINUTE_MS,
    'Min15': 15 * MINUTE_MS,
    'Min30': 30 * MINUTE_MS,
    'Min60': 60 * MINUTE_MS,
    'Hour4': 4 * 60 * MINUTE_MS,
    'Day1': 24 * 60 * MINUTE_MS,
}

# Polling cadence for live sessions (seconds). Longer than any tick's I/O,
# so ticks never overlap.
POLLING_INTERVAL_SEC: Dict[str, int] = {
    'Min1': 60,
    'Min5': 60,
    'Min15': 60,
    'Min30': 60,
    'Min60': 5 * 60,
    'Hour4': 5 * 60,
    'Day1': 60 * 60,
}

# Live driver window: candles loaded at start-up and fetched per tick
HISTORY_CANDLES = 500
TICK_CANDLES = 100
LIVE_WINDOW_OLD = 400
LIVE_WINDOW_NEW = 100

# Batch driver samples the equity curve every N processed candles
BACKTEST_EQUITY_SAMPLE_EVERY = 100


def validate_timeframe(timeframe: str) -> str:
    """Return the timeframe unchanged, or raise ConfigurationError if unsupported"""
    if timeframe not in TIMEFRAME_MS:
        raise ConfigurationError(
            f"Invalid timeframe: {timeframe}. Supported: {', '.join(TIMEFRAME_MS)}"
        )
    return timeframe


def interval_ms(timeframe: str) -> int:
    return TIMEFRAME_MS[validate_timeframe(timeframe)]


def polling_interval_seconds(timeframe: str) -> int:
    return POLLING_INTERVAL_SEC[validate_timeframe(timeframe)]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    """Process-level runtime settings"""
    db_path: str = 'data/trend_bot.db'
    discord_webhook: Optional[str] = None
    twelvedata_api_key: Optional[str] = None
    log_level: str = 'INFO'
    log_file: Optional[str] = None
    max_init_attempts: int = 3
    max_tick_failures: int = 10
    snapshot_interval_sec: int = 300

    @staticmethod
    def from_env() -> 'Settings':
        """Load settings from environment variables (and .env)"""
        return Settings(
            db_path=os.getenv('TREND_BOT_DB_PATH', 'data/trend_bot.db'),
            discord_webhook=os.getenv('DISCORD_WEBHOOK') or None,
            twelvedata_api_key=os.getenv('TWELVEDATA_API_KEY') or None,
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
            log_file=os.getenv('LOG_FILE') or None,
            max_init_attempts=_int_env('MAX_INIT_ATTEMPTS', 3),
            max_tick_failures=_int_env('MAX_TICK_FAILURES', 10),
            snapshot_interval_sec=_int_env('SNAPSHOT_INTERVAL_SEC', 300),
        )
