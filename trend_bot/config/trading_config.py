"""
Trading Configuration
Strategy parameters, session definitions and the default deployment presets
"""

from dataclasses import dataclass, asdict, replace
from typing import Dict, List

from trend_bot.config.settings import validate_timeframe
from trend_bot.exceptions import ConfigurationError


@dataclass(frozen=True)
class StrategyConfig:
    """Immutable strategy parameters for one engine run"""

    # Position sizing (risk-based)
    bankroll_usd: float = 10000.0
    risk_percent: float = 0.02          # 0.02 = 2% of balance per trade
    leverage: float = 40.0

    # Asset units per contract (BTC: 0.0001, Gold: 1 oz)
    contract_value: float = 0.0001

    # Swing detection
    swing_length: int = 10

    # Stop loss buffer beyond the swing point (price units)
    sl_distance: float = 50.0

    # Trend moving averages
    fast_ma_period: int = 10
    slow_ma_period: int = 30

    risk_reward_ratio: float = 2.0

    allow_trend_continuation: bool = False
    exit_on_zone_change: bool = True

    @property
    def warmup_period(self) -> int:
        """Candles required before the first candle is evaluated"""
        return max(self.swing_length * 2 + 1, self.slow_ma_period + 1)

    def validate(self) -> 'StrategyConfig':
        """Raise ConfigurationError for parameters the engine cannot run with"""
        problems = []
        if self.swing_length < 1:
            problems.append(f"swing_length must be >= 1 (got {self.swing_length})")
        if self.fast_ma_period < 1 or self.slow_ma_period < 1:
            problems.append("moving average periods must be >= 1")
        if self.bankroll_usd <= 0:
            problems.append(f"bankroll_usd must be positive (got {self.bankroll_usd})")
        if self.leverage <= 0:
            problems.append(f"leverage must be positive (got {self.leverage})")
        if self.contract_value <= 0:
            problems.append(f"contract_value must be positive (got {self.contract_value})")
        if self.risk_percent < 0:
            problems.append(f"risk_percent must not be negative (got {self.risk_percent})")
        if self.risk_reward_ratio <= 0:
            problems.append(f"risk_reward_ratio must be positive (got {self.risk_reward_ratio})")
        if problems:
            raise ConfigurationError("; ".join(problems))
        return self

    def with_overrides(self, **overrides) -> 'StrategyConfig':
        """Copy with selected fields replaced (None values are ignored)"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class SessionConfig:
    """One instrument/timeframe paper-trading session"""
    name: str
    symbol: str
    timeframe: str
    data_source: str
    strategy: StrategyConfig
    paper_trading: bool = True

    def validate(self) -> 'SessionConfig':
        validate_timeframe(self.timeframe)
        if not self.paper_trading:
            raise ConfigurationError(f"[{self.name}] live order routing is not supported; use paper trading")
        self.strategy.validate()
        return self

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'data_source': self.data_source,
            'paper_trading': self.paper_trading,
            **self.strategy.to_dict(),
        }


# Crypto (BTC/ETH perpetuals): 1 contract = 0.0001 of the asset
CRYPTO_BASE_CONFIG = StrategyConfig(
    bankroll_usd=10000.0,
    risk_percent=0.02,
    contract_value=0.0001,
    swing_length=10,
    sl_distance=50.0,          # $50 buffer from swing point
    fast_ma_period=10,
    slow_ma_period=30,
    risk_reward_ratio=2.0,
    allow_trend_continuation=False,
    exit_on_zone_change=True,
)

# Gold: 1 contract = 1 oz, slower swings, lower risk
GOLD_BASE_CONFIG = StrategyConfig(
    bankroll_usd=10000.0,
    risk_percent=0.01,
    contract_value=1.0,
    swing_length=15,
    sl_distance=3.0,           # $3 buffer (gold ~ $2600)
    fast_ma_period=12,
    slow_ma_period=50,
    risk_reward_ratio=2.0,
    allow_trend_continuation=False,
    exit_on_zone_change=True,
)


DEFAULT_SESSIONS: List[SessionConfig] = [
    SessionConfig("BTC 15m", "BTC_USDT", "Min15", "hyperliquid", replace(CRYPTO_BASE_CONFIG, leverage=40.0)),
    SessionConfig("BTC 5m", "BTC_USDT", "Min5", "hyperliquid", replace(CRYPTO_BASE_CONFIG, leverage=40.0)),
    SessionConfig("ETH 5m", "ETH_USDT", "Min5", "hyperliquid", replace(CRYPTO_BASE_CONFIG, leverage=20.0)),
    SessionConfig("ETH 15m", "ETH_USDT", "Min15", "hyperliquid", replace(CRYPTO_BASE_CONFIG, leverage=20.0)),
    SessionConfig("Gold 15m", "XAU/USD", "Min15", "twelvedata", replace(GOLD_BASE_CONFIG, leverage=10.0)),
    SessionConfig("Gold 5m", "XAU/USD", "Min5", "twelvedata", replace(GOLD_BASE_CONFIG, leverage=10.0)),
]
