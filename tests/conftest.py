"""
Shared fixtures: synthetic candle builders and small strategy configs
"""

from typing import List, Sequence

import matplotlib
import numpy as np
import pytest

from trend_bot.config.trading_config import SessionConfig, StrategyConfig
from trend_bot.models import Candle

matplotlib.use("Agg")

BASE_TIMESTAMP = 1_704_067_200_000     # 2024-01-01 00:00 UTC
FIVE_MINUTES = 5 * 60 * 1000

# Rises to a swing high at index 5, drops to a swing low at index 12, recovers
SWING_CLOSES = [
    100, 102, 104, 106, 108, 110,
    108, 106, 104, 102, 100, 98, 96,
    98, 100, 102, 104, 106, 108, 110,
]


def make_candles(closes: Sequence[float], spread: float = 0.5,
                 start: int = BASE_TIMESTAMP, step: int = FIVE_MINUTES) -> List[Candle]:
    """One candle per close: open == close, high/low `spread` away"""
    return [
        Candle(
            timestamp=start + i * step,
            open=float(close),
            high=float(close) + spread,
            low=float(close) - spread,
            close=float(close),
            volume=100.0,
        )
        for i, close in enumerate(closes)
    ]


def random_walk_candles(n: int = 1500, seed: int = 42, start_price: float = 2000.0) -> List[Candle]:
    rng = np.random.RandomState(seed)
    closes = start_price + np.cumsum(rng.normal(0, 4, n))
    candles = []
    prev_close = closes[0]
    for i, close in enumerate(closes):
        open_ = prev_close
        high = max(open_, close) + abs(rng.normal(0, 2))
        low = min(open_, close) - abs(rng.normal(0, 2))
        candles.append(Candle(BASE_TIMESTAMP + i * FIVE_MINUTES, float(open_), float(high),
                              float(low), float(close), float(rng.randint(10, 1000))))
        prev_close = close
    return candles


@pytest.fixture
def swing_candles() -> List[Candle]:
    return make_candles(SWING_CLOSES)


@pytest.fixture
def small_config() -> StrategyConfig:
    """swing 2, SMA 3/5: warm-up of 6 candles"""
    return StrategyConfig(
        bankroll_usd=10000.0,
        risk_percent=0.02,
        leverage=40.0,
        contract_value=0.01,
        swing_length=2,
        sl_distance=50.0,
        fast_ma_period=3,
        slow_ma_period=5,
        risk_reward_ratio=2.0,
    )


@pytest.fixture
def session_config(small_config) -> SessionConfig:
    return SessionConfig("Test 5m", "BTC_USDT", "Min5", "static", small_config)


@pytest.fixture
def candle_factory():
    return make_candles


@pytest.fixture
def random_walk():
    return random_walk_candles
