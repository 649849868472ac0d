"""
Performance aggregation: equity curve sampling and end-of-run statistics
"""

from dataclasses import dataclass, asdict, replace
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from trend_bot.models import ClosedTrade, EngineState, EquityPoint


@dataclass(frozen=True)
class ProfitFactor:
    """
    Gross profit / gross loss

    `unbounded` is set when there are winning trades and no losing P&L;
    with neither, the value is 0.
    """
    value: float = 0.0
    unbounded: bool = False

    @staticmethod
    def from_totals(gross_profit: float, gross_loss: float) -> 'ProfitFactor':
        if gross_loss > 0:
            return ProfitFactor(value=gross_profit / gross_loss)
        if gross_profit > 0:
            return ProfitFactor(value=0.0, unbounded=True)
        return ProfitFactor(value=0.0)

    def to_json(self) -> Union[float, str]:
        return "unbounded" if self.unbounded else self.value

    def __str__(self) -> str:
        return "unbounded" if self.unbounded else f"{self.value:.2f}"


@dataclass(frozen=True)
class PerformanceMetrics:
    total_trades: int
    win_count: int
    loss_count: int
    win_rate: float                 # 0..1
    total_pnl: float
    return_percent: float
    final_balance: float
    peak_balance: float
    max_drawdown: float
    max_drawdown_percent: float
    profit_factor: ProfitFactor
    sharpe_ratio: float
    avg_r_multiple: float
    avg_win: Optional[float] = None
    avg_loss: Optional[float] = None
    largest_win: Optional[float] = None
    largest_loss: Optional[float] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['profit_factor'] = self.profit_factor.to_json()
        return data

    @staticmethod
    def empty(bankroll: float) -> 'PerformanceMetrics':
        """Metrics of a run that produced no trades"""
        return PerformanceMetrics(
            total_trades=0,
            win_count=0,
            loss_count=0,
            win_rate=0.0,
            total_pnl=0.0,
            return_percent=0.0,
            final_balance=bankroll,
            peak_balance=bankroll,
            max_drawdown=0.0,
            max_drawdown_percent=0.0,
            profit_factor=ProfitFactor(),
            sharpe_ratio=0.0,
            avg_r_multiple=0.0,
        )


class PerformanceAggregator:
    """Samples the equity curve and derives summary statistics"""

    def __init__(self, bankroll: float, max_points: Optional[int] = None):
        """
        Args:
            bankroll: Starting balance
            max_points: Keep only the newest points on the equity curve (None = all)
        """
        self.bankroll = bankroll
        self.max_points = max_points

    def record_equity(self, timestamp: int, state: EngineState) -> EquityPoint:
        """Append a sample; a second sample at the same timestamp replaces the first"""
        point = EquityPoint(
            timestamp=timestamp,
            balance=state.balance,
            drawdown=state.drawdown,
            drawdown_percent=state.drawdown_percent,
        )
        curve = state.equity_curve
        if curve and curve[-1].timestamp == timestamp:
            curve[-1] = point
        else:
            curve.append(point)
        if self.max_points is not None and len(curve) > self.max_points:
            del curve[:len(curve) - self.max_points]
        return point

    @staticmethod
    def sharpe_ratio(pnl_percents: Sequence[float]) -> float:
        """Mean / sample standard deviation of per-trade returns (not annualised)"""
        if len(pnl_percents) < 2:
            return 0.0
        returns = np.asarray(pnl_percents, dtype=float)
        std = returns.std(ddof=1)
        if std == 0 or not np.isfinite(std):
            return 0.0
        return float(returns.mean() / std)

    def summarize(self, trades: List[ClosedTrade], final_balance: float, peak: float) -> PerformanceMetrics:
        """
        Finalize run statistics

        Args:
            trades: Closed trades in order
            final_balance: Balance after the last trade
            peak: Running peak balance

        Returns:
            PerformanceMetrics
        """
        return self._build(
            pnls=[t.pnl_usd for t in trades],
            pnl_percents=[t.pnl_percent for t in trades],
            r_multiples=[t.r_multiple for t in trades],
            drawdowns=[t.drawdown for t in trades],
            final_balance=final_balance,
            peak=peak,
        )

    def summarize_records(self, records: Sequence[Dict], final_balance: float, peak: float) -> PerformanceMetrics:
        """
        Statistics from stored trade rows (pnl_usd, pnl_percent, r_multiple)

        Running balance and per-trade drawdown are replayed from the
        bankroll, so a resumed session reports its whole history.
        """
        balance = self.bankroll
        running_peak = self.bankroll
        drawdowns = []
        for r in records:
            balance += r['pnl_usd'] or 0.0
            running_peak = max(running_peak, balance)
            drawdowns.append(running_peak - balance)

        return self._build(
            pnls=[r['pnl_usd'] or 0.0 for r in records],
            pnl_percents=[r['pnl_percent'] or 0.0 for r in records],
            r_multiples=[r['r_multiple'] or 0.0 for r in records],
            drawdowns=drawdowns,
            final_balance=final_balance,
            peak=max(peak, running_peak),
        )

    def _build(self, pnls: List[float], pnl_percents: List[float], r_multiples: List[float],
               drawdowns: List[float], final_balance: float, peak: float) -> PerformanceMetrics:
        total_pnl = final_balance - self.bankroll
        return_percent = (total_pnl / self.bankroll) * 100 if self.bankroll else 0.0

        if not pnls:
            return replace(PerformanceMetrics.empty(self.bankroll),
                           total_pnl=total_pnl, return_percent=return_percent,
                           final_balance=final_balance, peak_balance=peak)

        # A zero P&L trade counts as a loss
        wins = [p for p in pnls if p > 0]
        losses = [p for p in pnls if p <= 0]

        gross_profit = sum(wins)
        gross_loss = abs(sum(losses))

        # Maximum of the per-trade drawdown fields
        max_drawdown = max(drawdowns)

        return PerformanceMetrics(
            total_trades=len(pnls),
            win_count=len(wins),
            loss_count=len(losses),
            win_rate=len(wins) / len(pnls),
            total_pnl=total_pnl,
            return_percent=return_percent,
            final_balance=final_balance,
            peak_balance=peak,
            max_drawdown=max_drawdown,
            max_drawdown_percent=(max_drawdown / peak) * 100 if peak > 0 else 0.0,
            profit_factor=ProfitFactor.from_totals(gross_profit, gross_loss),
            sharpe_ratio=self.sharpe_ratio(pnl_percents),
            avg_r_multiple=sum(r_multiples) / len(r_multiples),
            avg_win=gross_profit / len(wins) if wins else None,
            avg_loss=sum(losses) / len(losses) if losses else None,
            largest_win=max(wins) if wins else None,
            largest_loss=min(losses) if losses else None,
        )
