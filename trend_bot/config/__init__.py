from .settings import (
    Settings,
    TIMEFRAME_MS,
    POLLING_INTERVAL_SEC,
    HISTORY_CANDLES,
    TICK_CANDLES,
    LIVE_WINDOW_OLD,
    LIVE_WINDOW_NEW,
    BACKTEST_EQUITY_SAMPLE_EVERY,
    validate_timeframe,
    interval_ms,
    polling_interval_seconds,
)
from .trading_config import (
    StrategyConfig,
    SessionConfig,
    CRYPTO_BASE_CONFIG,
    GOLD_BASE_CONFIG,
    DEFAULT_SESSIONS,
)

__all__ = [
    'Settings',
    'TIMEFRAME_MS',
    'POLLING_INTERVAL_SEC',
    'HISTORY_CANDLES',
    'TICK_CANDLES',
    'LIVE_WINDOW_OLD',
    'LIVE_WINDOW_NEW',
    'BACKTEST_EQUITY_SAMPLE_EVERY',
    'validate_timeframe',
    'interval_ms',
    'polling_interval_seconds',
    'StrategyConfig',
    'SessionConfig',
    'CRYPTO_BASE_CONFIG',
    'GOLD_BASE_CONFIG',
    'DEFAULT_SESSIONS',
]
