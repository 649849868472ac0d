from .repository import (
    SQLiteRepository,
    BACKTEST_TRADE_BATCH_SIZE,
    TRADE_OPEN,
    TRADE_CLOSED_TP,
    TRADE_CLOSED_SL,
    TRADE_CLOSED_SIGNAL,
)

__all__ = [
    'SQLiteRepository',
    'BACKTEST_TRADE_BATCH_SIZE',
    'TRADE_OPEN',
    'TRADE_CLOSED_TP',
    'TRADE_CLOSED_SL',
    'TRADE_CLOSED_SIGNAL',
]
