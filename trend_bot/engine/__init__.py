from .core import (
    StrategyEngine,
    EngineEvent,
    EffectsSink,
    SWING_HIGH,
    SWING_LOW,
    TRADE_OPENED,
    TRADE_CLOSED,
)
from .lifecycle import TradeLifecycleManager
from .metrics import PerformanceAggregator, PerformanceMetrics, ProfitFactor

__all__ = [
    'StrategyEngine',
    'EngineEvent',
    'EffectsSink',
    'SWING_HIGH',
    'SWING_LOW',
    'TRADE_OPENED',
    'TRADE_CLOSED',
    'TradeLifecycleManager',
    'PerformanceAggregator',
    'PerformanceMetrics',
    'ProfitFactor',
]
