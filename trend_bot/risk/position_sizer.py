"""
RISK MANAGEMENT & POSITION SIZING
Converts a risk percentage of the balance plus a stop distance into a
contract-denominated position:
- Stop loss beyond the latest swing point (ATR fallback)
- Notional = risk amount / stop fraction, capped by leverage
- Take profit at a fixed risk:reward multiple
"""

import math
from dataclasses import dataclass
from typing import Optional

from trend_bot.config.trading_config import StrategyConfig
from trend_bot.models import Side, SwingPoint

# Stop distance in ATRs when no swing point exists for the side
ATR_STOP_MULTIPLIER = 1.5


@dataclass(frozen=True)
class PositionPlan:
    """Sized trade ready to be opened"""
    side: Side
    entry_price: float
    stop_loss: float
    take_profit: float
    contracts: int
    size_usd: float             # contracts * contract_value * entry
    risk_amount: float          # balance * risk_percent

    @property
    def risk_points(self) -> float:
        return abs(self.entry_price - self.stop_loss)


class PositionSizer:
    """
    Risk-based position sizing

    Sizing always uses the balance passed in, so position size compounds
    with realised P&L in both backtest and live runs.
    """

    def __init__(self, config: StrategyConfig):
        self.config = config

    def stop_loss(self, side: Side, entry_price: float, atr: float,
                  swing_high: Optional[SwingPoint] = None,
                  swing_low: Optional[SwingPoint] = None) -> float:
        """
        Stop loss price

        Long:  swing low - sl_distance, else entry - 1.5 * ATR
        Short: swing high + sl_distance, else entry + 1.5 * ATR
        """
        if side is Side.LONG:
            if swing_low is not None:
                return swing_low.price - self.config.sl_distance
            return entry_price - atr * ATR_STOP_MULTIPLIER

        if swing_high is not None:
            return swing_high.price + self.config.sl_distance
        return entry_price + atr * ATR_STOP_MULTIPLIER

    def take_profit(self, side: Side, entry_price: float, stop_loss: float) -> float:
        risk = abs(entry_price - stop_loss)
        if side is Side.LONG:
            return entry_price + risk * self.config.risk_reward_ratio
        return entry_price - risk * self.config.risk_reward_ratio

    def contracts(self, balance: float, entry_price: float, stop_loss: float) -> int:
        """
        Number of contracts for the given balance and stop

        Args:
            balance: Current account balance (USD)
            entry_price: Expected fill price
            stop_loss: Stop loss price

        Returns:
            Contract count; 0 means "do not trade" (zero stop distance,
            zero risk or an undefined stop)
        """
        if not (math.isfinite(entry_price) and math.isfinite(stop_loss)) or entry_price <= 0:
            return 0

        risk_amount = balance * self.config.risk_percent
        stop_fraction = abs(entry_price - stop_loss) / entry_price
        if stop_fraction == 0:
            return 0

        notional = risk_amount / stop_fraction
        max_notional = balance * self.config.leverage
        capped_notional = min(notional, max_notional)

        return math.floor(capped_notional / (entry_price * self.config.contract_value))

    def plan(self, side: Side, entry_price: float, atr: float, balance: float,
             swing_high: Optional[SwingPoint] = None,
             swing_low: Optional[SwingPoint] = None) -> Optional[PositionPlan]:
        """Full sizing pass; None when the position would be empty"""
        stop = self.stop_loss(side, entry_price, atr, swing_high, swing_low)
        size = self.contracts(balance, entry_price, stop)
        if size <= 0:
            return None

        return PositionPlan(
            side=side,
            entry_price=entry_price,
            stop_loss=stop,
            take_profit=self.take_profit(side, entry_price, stop),
            contracts=size,
            size_usd=size * self.config.contract_value * entry_price,
            risk_amount=balance * self.config.risk_percent,
        )
