"""
Trade lifecycle: Flat -> Open -> Flat

Owns the single open-position slot of an EngineState, realises P&L on close
and keeps running balance / peak / drawdown current.
"""

from typing import Optional

from loguru import logger

from trend_bot.config.trading_config import StrategyConfig
from trend_bot.models import (
    Candle,
    ClosedTrade,
    EngineState,
    Position,
    Side,
    Zone,
    EXIT_STOP_LOSS,
    EXIT_TAKE_PROFIT,
)
from trend_bot.risk.position_sizer import PositionPlan
from trend_bot.signals.generator import MarketAnalysis
from trend_bot.strategies.swing_zone import classify_zone


class TradeLifecycleManager:
    """Opens, checks and closes the one position an engine may hold"""

    def __init__(self, config: StrategyConfig, state: EngineState):
        self.config = config
        self.state = state
        # Trades closed before a restart, so numbering continues across sessions
        self.trade_offset = 0

    def open_position(self, plan: PositionPlan, entry_time: int, zone: Zone,
                      reason: str, analysis: Optional[MarketAnalysis] = None) -> Position:
        if not self.state.is_flat:
            raise RuntimeError("Cannot open a position while another one is open")

        position = Position(
            side=plan.side,
            size=plan.contracts,
            size_usd=plan.size_usd,
            entry_price=plan.entry_price,
            stop_loss=plan.stop_loss,
            take_profit=plan.take_profit,
            entry_time=entry_time,
            entry_zone=zone,
            entry_reason=reason,
            fast_ma_at_entry=analysis.fast_ma if analysis else float('nan'),
            slow_ma_at_entry=analysis.slow_ma if analysis else float('nan'),
            atr_at_entry=analysis.atr if analysis else float('nan'),
        )
        self.state.position = position
        logger.debug(
            f"[Trade] OPEN {position.side.value.upper()} {position.size} contracts @ {position.entry_price:.2f} "
            f"SL {position.stop_loss:.2f} TP {position.take_profit:.2f}"
        )
        return position

    def check_stop_target(self, candle: Candle) -> Optional[ClosedTrade]:
        """
        Stop loss / take profit touch test on the candle range

        The stop is checked first on each side (worst case when both levels
        sit inside one candle). Fills happen at the level itself.
        """
        position = self.state.position
        if position is None:
            return None

        exit_price = None
        reason = None
        if position.side is Side.LONG:
            if candle.low <= position.stop_loss:
                exit_price, reason = position.stop_loss, EXIT_STOP_LOSS
            elif candle.high >= position.take_profit:
                exit_price, reason = position.take_profit, EXIT_TAKE_PROFIT
        else:
            if candle.high >= position.stop_loss:
                exit_price, reason = position.stop_loss, EXIT_STOP_LOSS
            elif candle.low <= position.take_profit:
                exit_price, reason = position.take_profit, EXIT_TAKE_PROFIT

        if reason is None:
            return None

        # Zone of the candle close, against the range known before this candle
        zone = classify_zone(self.state.range_high, self.state.range_low, candle.close)
        return self.close_position(exit_price, candle.timestamp, reason, zone)

    def close_position(self, exit_price: float, exit_time: int, reason: str, zone: Zone) -> ClosedTrade:
        position = self.state.position
        if position is None:
            raise RuntimeError("No open position to close")

        asset_size = position.size * self.config.contract_value
        if position.side is Side.LONG:
            pnl = (exit_price - position.entry_price) * asset_size
        else:
            pnl = (position.entry_price - exit_price) * asset_size

        pnl_percent = (pnl / position.size_usd) * 100 if position.size_usd else 0.0
        risk_amount = position.risk_per_unit * asset_size
        r_multiple = pnl / risk_amount if risk_amount > 0 else 0.0

        state = self.state
        state.balance += pnl
        state.total_pnl += pnl
        state.peak = max(state.peak, state.balance)

        trade = ClosedTrade(
            trade_number=self.trade_offset + len(state.trades) + 1,
            side=position.side,
            entry_price=position.entry_price,
            entry_time=position.entry_time,
            entry_zone=position.entry_zone,
            entry_reason=position.entry_reason,
            exit_price=exit_price,
            exit_time=exit_time,
            exit_zone=zone,
            exit_reason=reason,
            size=position.size,
            size_usd=position.size_usd,
            stop_loss=position.stop_loss,
            take_profit=position.take_profit,
            pnl_usd=pnl,
            pnl_percent=pnl_percent,
            r_multiple=r_multiple,
            running_balance=state.balance,
            running_pnl=state.total_pnl,
            drawdown=state.peak - state.balance,
            fast_ma_at_entry=position.fast_ma_at_entry,
            slow_ma_at_entry=position.slow_ma_at_entry,
            atr_at_entry=position.atr_at_entry,
        )
        state.trades.append(trade)
        state.position = None

        logger.debug(
            f"[Trade] CLOSE #{trade.trade_number} {reason} @ {exit_price:.2f} "
            f"P&L ${pnl:.2f} ({r_multiple:.2f}R) balance ${state.balance:.2f}"
        )
        return trade

    def restore(self, balance: float, position: Optional[Position] = None,
                peak: Optional[float] = None, trade_count: int = 0):
        """Resume after a restart from persisted balance and open trade"""
        self.state.balance = balance
        self.state.peak = max(peak if peak is not None else balance, balance)
        self.state.position = position
        self.trade_offset = trade_count
