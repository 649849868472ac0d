"""
Core data model for the swing-range / MA crossover strategy
Candles, swing points, zones, positions, closed trades and equity samples
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Any


# Exit reasons recorded on closed trades
EXIT_STOP_LOSS = "sl"
EXIT_TAKE_PROFIT = "tp"
EXIT_TREND_REVERSAL = "trend_reversal"
EXIT_ZONE_CHANGE = "zone_change"
EXIT_END_OF_DATA = "end_of_data"

# Entry reasons
ENTRY_CROSSOVER = "crossover"
ENTRY_CONTINUATION = "continuation"


class Zone(Enum):
    """Price position relative to the midpoint of the current swing range"""
    PREMIUM = "premium"
    DISCOUNT = "discount"
    EQUILIBRIUM = "equilibrium"


class Side(Enum):
    """Direction of a position"""
    LONG = "long"
    SHORT = "short"

    @property
    def opposite_zone(self) -> Zone:
        """Zone that signals a take-profit area for this side"""
        return Zone.PREMIUM if self is Side.LONG else Zone.DISCOUNT


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. Timestamp is epoch milliseconds."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Candle':
        return Candle(
            timestamp=int(data['timestamp']),
            open=float(data['open']),
            high=float(data['high']),
            low=float(data['low']),
            close=float(data['close']),
            volume=float(data.get('volume', 0.0) or 0.0),
        )


@dataclass(frozen=True)
class SwingPoint:
    """Confirmed pivot: price, candle timestamp and index within the in-memory window"""
    price: float
    timestamp: int
    index: int


@dataclass(frozen=True)
class Position:
    """The single open position an engine may hold"""
    side: Side
    size: float                 # contracts
    size_usd: float             # notional at entry
    entry_price: float
    stop_loss: float
    take_profit: float
    entry_time: int
    entry_zone: Zone
    entry_reason: str
    fast_ma_at_entry: float = float('nan')
    slow_ma_at_entry: float = float('nan')
    atr_at_entry: float = float('nan')

    @property
    def risk_per_unit(self) -> float:
        return abs(self.entry_price - self.stop_loss)


@dataclass(frozen=True)
class ClosedTrade:
    """Append-only record of a completed round trip"""
    trade_number: int
    side: Side
    entry_price: float
    entry_time: int
    entry_zone: Zone
    entry_reason: str
    exit_price: float
    exit_time: int
    exit_zone: Zone
    exit_reason: str
    size: float
    size_usd: float
    stop_loss: float
    take_profit: float
    pnl_usd: float
    pnl_percent: float
    r_multiple: float
    running_balance: float
    running_pnl: float
    drawdown: float
    fast_ma_at_entry: float
    slow_ma_at_entry: float
    atr_at_entry: float

    @property
    def is_win(self) -> bool:
        return self.pnl_usd > 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['side'] = self.side.value
        data['entry_zone'] = self.entry_zone.value
        data['exit_zone'] = self.exit_zone.value
        return data


@dataclass(frozen=True)
class EquityPoint:
    """Balance sample on the equity curve"""
    timestamp: int
    balance: float
    drawdown: float
    drawdown_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EngineState:
    """
    Mutable state owned by exactly one engine instance.

    `peak` is the running maximum of `balance` and never decreases.
    """
    balance: float
    peak: float
    total_pnl: float = 0.0
    last_swing_high: Optional[SwingPoint] = None
    last_swing_low: Optional[SwingPoint] = None
    range_high: Optional[float] = None
    range_low: Optional[float] = None
    position: Optional[Position] = None
    trades: List[ClosedTrade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)

    @property
    def is_flat(self) -> bool:
        return self.position is None

    @property
    def drawdown(self) -> float:
        return self.peak - self.balance

    @property
    def drawdown_percent(self) -> float:
        return (self.drawdown / self.peak) * 100 if self.peak > 0 else 0.0
