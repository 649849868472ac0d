"""
Backtesting framework for the trend strategy
Replays a finite candle array through the strategy engine
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import pandas as pd
from loguru import logger

from trend_bot.config.settings import BACKTEST_EQUITY_SAMPLE_EVERY, validate_timeframe
from trend_bot.config.trading_config import StrategyConfig
from trend_bot.data.sources import CandleSource
from trend_bot.engine.core import StrategyEngine
from trend_bot.engine.metrics import PerformanceMetrics
from trend_bot.exceptions import ConfigurationError
from trend_bot.models import Candle, ClosedTrade, EquityPoint
from trend_bot.utils.helpers import format_currency, ms_to_iso

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class BacktestResult:
    """Immutable outcome of one backtest run"""
    status: str
    config: StrategyConfig
    metrics: PerformanceMetrics
    symbol: str = ""
    timeframe: str = ""
    error_message: Optional[str] = None
    trades: Tuple[ClosedTrade, ...] = field(default_factory=tuple)
    equity_curve: Tuple[EquityPoint, ...] = field(default_factory=tuple)
    execution_time_ms: float = 0.0
    candles_processed: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_COMPLETED

    def to_dict(self) -> Dict:
        return {
            'status': self.status,
            'error_message': self.error_message,
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'config': self.config.to_dict(),
            'metrics': self.metrics.to_dict(),
            'trades': [t.to_dict() for t in self.trades],
            'equity_curve': [p.to_dict() for p in self.equity_curve],
            'execution_time_ms': self.execution_time_ms,
            'candles_processed': self.candles_processed,
        }

    def generate_report(self) -> str:
        """Generate a formatted backtest report"""
        report = []
        report.append("=" * 60)
        report.append("🔄 BACKTEST RESULTS")
        report.append("=" * 60)
        report.append(f"Symbol: {self.symbol}  Timeframe: {self.timeframe}")
        report.append(f"Status: {self.status}")

        if not self.succeeded:
            report.append(f"Error: {self.error_message}")
            report.append("=" * 60)
            return "\n".join(report)

        m = self.metrics
        if self.trades:
            report.append(f"Period: {ms_to_iso(self.trades[0].entry_time)} to {ms_to_iso(self.trades[-1].exit_time)}")
        report.append(f"Initial Balance: {format_currency(self.config.bankroll_usd)}")
        report.append(f"Final Balance: {format_currency(m.final_balance)}")
        report.append(f"Total P&L: {format_currency(m.total_pnl)} ({m.return_percent:.2f}%)")
        report.append(f"Total Trades: {m.total_trades}")

        report.append("")
        report.append("📊 Performance Metrics:")
        report.append(f"Win Rate: {m.win_rate * 100:.1f}% ({m.win_count}W / {m.loss_count}L)")
        report.append(f"Profit Factor: {m.profit_factor}")
        report.append(f"Sharpe Ratio: {m.sharpe_ratio:.2f}")
        report.append(f"Average R: {m.avg_r_multiple:.2f}R")
        report.append(f"Max Drawdown: {format_currency(m.max_drawdown)} ({m.max_drawdown_percent:.2f}%)")
        if m.largest_win is not None:
            report.append(f"Largest Win: {format_currency(m.largest_win)}")
        if m.largest_loss is not None:
            report.append(f"Largest Loss: {format_currency(m.largest_loss)}")

        exit_counts = pd.Series([t.exit_reason for t in self.trades], dtype=object).value_counts()
        if not exit_counts.empty:
            report.append("")
            report.append("Exits:")
            for reason, count in exit_counts.items():
                report.append(f"  {reason}: {count}")

        report.append("")
        report.append(f"Candles: {self.candles_processed}  Time: {self.execution_time_ms:.0f} ms")
        report.append("=" * 60)

        return "\n".join(report)

    def plot_equity_curve(self, path: str) -> Optional[str]:
        """Save balance and drawdown charts to `path`; returns the path or None"""
        if not self.equity_curve:
            logger.warning("No equity curve to plot")
            return None

        frame = pd.DataFrame([p.to_dict() for p in self.equity_curve])
        frame['datetime'] = pd.to_datetime(frame['timestamp'], unit='ms', utc=True)

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
        try:
            ax1.plot(frame['datetime'], frame['balance'], label='Balance')
            ax1.axhline(self.config.bankroll_usd, color='grey', linestyle='--', linewidth=0.8)
            ax1.set_title(f'Equity Curve {self.symbol} {self.timeframe}')
            ax1.set_ylabel('Balance ($)')
            ax1.legend()

            ax2.fill_between(frame['datetime'], -frame['drawdown_percent'], 0, color='red', alpha=0.3)
            ax2.set_title('Drawdown')
            ax2.set_ylabel('Drawdown (%)')

            fig.tight_layout()
            fig.savefig(path)
            logger.info(f"Equity curve saved to {path}")
            return path
        finally:
            plt.close(fig)


class Backtester:
    """
    Batch driver: one fresh engine per run, force-close at end of data
    """

    def __init__(self, config: Optional[StrategyConfig] = None):
        self.config = config or StrategyConfig()

    def run(self, candles: Sequence[Candle], symbol: str = "", timeframe: str = "Min5") -> BacktestResult:
        """
        Run backtest on a candle array

        Args:
            candles: Candles in ascending timestamp order
            symbol: Instrument label for the result
            timeframe: Timeframe code of the candles

        Returns:
            BacktestResult; configuration problems and too little data
            produce a failed result instead of raising
        """
        start_time = time.perf_counter()

        try:
            self.config.validate()
            validate_timeframe(timeframe)
            warmup = self.config.warmup_period
            if len(candles) < warmup:
                raise ConfigurationError(f"Insufficient candles: {len(candles)} < {warmup}")
        except ConfigurationError as e:
            logger.warning(f"Backtest {symbol} {timeframe} failed: {e}")
            return self._failed(str(e), symbol, timeframe, start_time)

        logger.info(f"Starting backtest for {symbol} {timeframe} over {len(candles)} candles")

        engine = StrategyEngine(
            self.config,
            equity_sample_every=BACKTEST_EQUITY_SAMPLE_EVERY,
            name=f"backtest {symbol}".strip(),
        )
        for candle in candles:
            engine.process_candle(candle)

        # Close any remaining position at last price
        engine.finalize(candles[-1])

        metrics = engine.metrics()
        result = BacktestResult(
            status=STATUS_COMPLETED,
            config=self.config,
            metrics=metrics,
            symbol=symbol,
            timeframe=timeframe,
            trades=tuple(engine.state.trades),
            equity_curve=tuple(engine.state.equity_curve),
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            candles_processed=len(candles),
        )
        logger.info(
            f"Backtest complete: {metrics.total_trades} trades, "
            f"final balance {format_currency(metrics.final_balance)}, win rate {metrics.win_rate * 100:.1f}%"
        )
        return result

    def run_from_source(self, source: CandleSource, symbol: str, timeframe: str, limit: int = 5000) -> BacktestResult:
        """Fetch candles from a data source, then run"""
        candles = source.get_candles(symbol, timeframe, limit)
        return self.run(candles, symbol=symbol, timeframe=timeframe)

    def _failed(self, message: str, symbol: str, timeframe: str, start_time: float) -> BacktestResult:
        return BacktestResult(
            status=STATUS_FAILED,
            config=self.config,
            metrics=PerformanceMetrics.empty(self.config.bankroll_usd),
            symbol=symbol,
            timeframe=timeframe,
            error_message=message,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            candles_processed=0,
        )
