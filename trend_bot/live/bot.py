"""
Live paper-trading bot
Polls a market data source, feeds every newly closed candle through the
strategy engine and mirrors trade events to the repository and notifier.
"""

import threading
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from trend_bot.config.settings import (
    HISTORY_CANDLES,
    LIVE_WINDOW_NEW,
    LIVE_WINDOW_OLD,
    TICK_CANDLES,
    interval_ms,
    polling_interval_seconds,
)
from trend_bot.config.trading_config import SessionConfig
from trend_bot.data.sources import CandleSource
from trend_bot.engine.core import EffectsSink, StrategyEngine
from trend_bot.engine.metrics import PerformanceMetrics
from trend_bot.exceptions import DataSourceError, PersistenceError
from trend_bot.integrations.discord_notifier import DiscordNotifier
from trend_bot.models import Candle, ClosedTrade, Position
from trend_bot.persistence.repository import SQLiteRepository
from trend_bot.signals.generator import MarketAnalysis
from trend_bot.utils.helpers import (
    calculate_percentage_change,
    format_currency,
    format_time_duration,
    ms_to_iso,
)

DEFAULT_MAX_TICK_FAILURES = 10


class _SessionEffects(EffectsSink):
    """Routes engine events of one bot to persistence and notification"""

    def __init__(self, bot: 'LiveTradingBot'):
        self.bot = bot

    def trade_opened(self, position: Position, analysis: MarketAnalysis, indicators: Dict[str, float]):
        bot = self.bot
        state = bot.engine.state
        risk_usd = position.risk_per_unit * position.size * bot.strategy.contract_value

        bot.log.info(
            f"📈 OPEN {position.side.value.upper()} {position.size} contracts @ {position.entry_price:.2f} "
            f"| SL {position.stop_loss:.2f} | TP {position.take_profit:.2f} | {position.entry_reason}"
        )

        if bot.repository is not None and bot.session_id is not None:
            signal = {
                **analysis.to_dict(),
                **indicators,
                'range_high': state.range_high,
                'range_low': state.range_low,
                'swing_high_price': state.last_swing_high.price if state.last_swing_high else None,
                'swing_high_time': state.last_swing_high.timestamp if state.last_swing_high else None,
                'swing_low_price': state.last_swing_low.price if state.last_swing_low else None,
                'swing_low_time': state.last_swing_low.timestamp if state.last_swing_low else None,
            }
            try:
                bot.current_trade_id = bot.repository.record_trade_open(
                    bot.session_id, position, risk_amount=risk_usd, signal=signal
                )
            except PersistenceError as e:
                bot.log.error(f"Failed to record trade open: {e}")

        if bot.notifier is not None:
            bot.notifier.notify_trade_opened(bot.name, position, risk_usd, bot.strategy.leverage)

    def trade_closed(self, trade: ClosedTrade):
        bot = self.bot
        balance = bot.engine.state.balance
        result = "✅ WIN" if trade.is_win else "❌ LOSS"
        bot.log.info(
            f"📉 CLOSE {trade.side.value.upper()} ({trade.exit_reason}) @ {trade.exit_price:.2f} | "
            f"{result} {format_currency(trade.pnl_usd)} ({trade.r_multiple:.2f}R) | "
            f"balance {format_currency(balance)}"
        )

        if trade.is_win:
            bot.win_count += 1
        else:
            bot.loss_count += 1

        if bot.repository is not None and bot.session_id is not None:
            try:
                if bot.current_trade_id is not None:
                    bot.repository.record_trade_close(bot.current_trade_id, trade)
                bot.repository.update_session_balance(bot.session_id, balance)
            except PersistenceError as e:
                bot.log.error(f"Failed to record trade close: {e}")
        bot.current_trade_id = None

        if bot.notifier is not None:
            bot.notifier.notify_trade_closed(bot.name, trade, balance)


class LiveTradingBot:
    """Paper-trading driver for one instrument/timeframe session"""

    def __init__(self,
                 session: SessionConfig,
                 source: CandleSource,
                 repository: Optional[SQLiteRepository] = None,
                 notifier: Optional[DiscordNotifier] = None,
                 session_id: Optional[int] = None,
                 max_tick_failures: int = DEFAULT_MAX_TICK_FAILURES):
        self.session = session
        self.strategy = session.strategy
        self.name = session.name
        self.source = source
        self.repository = repository
        self.notifier = notifier
        self.session_id = session_id
        self.max_tick_failures = max_tick_failures

        self.log = logger.bind(session=self.name)
        self.engine = StrategyEngine(
            self.strategy,
            sink=_SessionEffects(self),
            max_window=LIVE_WINDOW_OLD + LIVE_WINDOW_NEW,
            equity_sample_every=1,
            max_equity_points=LIVE_WINDOW_OLD + LIVE_WINDOW_NEW,
            name=self.name,
        )

        self.current_trade_id: Optional[int] = None
        self.win_count = 0
        self.loss_count = 0
        self.consecutive_failures = 0
        self.initialized = False
        self.running = False
        self._stop_event = threading.Event()

    @property
    def balance(self) -> float:
        return self.engine.state.balance

    @property
    def polling_interval(self) -> int:
        return polling_interval_seconds(self.session.timeframe)

    def initialize(self):
        """
        Restore persisted state and load history

        Raises:
            ConfigurationError: invalid session configuration
            DataSourceError: history could not be fetched
        """
        self.session.validate()
        self.log.info("📝 PAPER TRADING MODE - No real orders will be placed")

        if self.repository is not None and self.session_id is not None:
            self._restore_from_repository()
        self.log.info(f"Starting balance: {format_currency(self.balance)}")

        self._load_history()
        self.initialized = True

    def _restore_from_repository(self):
        try:
            balance = self.repository.load_session_balance(self.session_id)
            open_trade = self.repository.load_open_trade(self.session_id)
            trades = self.repository.get_session_trades(self.session_id)
        except PersistenceError as e:
            self.log.error(f"Failed to restore state from database: {e}")
            return

        closed = [t for t in trades if t['status'] != 'open']
        self.win_count = sum(1 for t in closed if (t['pnl_usd'] or 0) > 0)
        self.loss_count = len(closed) - self.win_count

        position = None
        if open_trade is not None:
            self.current_trade_id, position = open_trade
            self.log.info(
                f"🔄 Restored open position: {position.side.value.upper()} @ {position.entry_price:.2f} "
                f"| Size: {position.size} | SL: {position.stop_loss:.2f} | TP: {position.take_profit:.2f}"
            )

        restored_balance = balance if balance is not None else self.strategy.bankroll_usd
        self.engine.lifecycle.restore(
            restored_balance,
            position=position,
            peak=max(self.strategy.bankroll_usd, restored_balance),
            trade_count=len(closed),
        )
        self.engine.state.total_pnl = restored_balance - self.strategy.bankroll_usd
        if restored_balance != self.strategy.bankroll_usd:
            self.log.info(f"🔄 Restored balance from database: {format_currency(restored_balance)}")

    def _load_history(self):
        self.log.info(f"📡 Fetching market data from {self.source.name}...")
        candles = self.source.get_candles(self.session.symbol, self.session.timeframe, HISTORY_CANDLES)
        if not candles:
            raise DataSourceError(f"No candle data received for {self.session.symbol}")

        self.engine.seed(candles)
        oldest, latest = candles[0], candles[-1]
        self.log.info(f"✅ Loaded {len(candles)} historical candles")
        self.log.info(f"📈 {self.session.symbol} @ {latest.close:.2f}")
        self.log.info(f"📅 Data range: {ms_to_iso(oldest.timestamp)} → {ms_to_iso(latest.timestamp)}")

        age_ms = int(time.time() * 1000) - latest.timestamp
        if age_ms > max(60 * 60 * 1000, 2 * interval_ms(self.session.timeframe)):
            self.log.warning(f"⚠️  Latest candle is {format_time_duration(age_ms // 1000)} old")

        self._save_candles(candles)

    def _save_candles(self, candles: List[Candle]):
        if self.repository is None or self.session_id is None or not candles:
            return
        try:
            saved = self.repository.save_candles(self.session.symbol, self.session.timeframe, candles)
            self.log.debug(f"💾 Saved {saved} candles to database")
        except PersistenceError as e:
            self.log.error(f"Failed to save candles: {e}")

    def check_market(self) -> int:
        """
        One polling tick

        Returns:
            Number of new candles processed
        """
        try:
            latest = self.source.get_candles(self.session.symbol, self.session.timeframe, TICK_CANDLES)
        except DataSourceError as e:
            self._record_failure(e)
            return 0
        self.consecutive_failures = 0

        last_known = self.engine.last_candle
        last_timestamp = last_known.timestamp if last_known else None
        new_candles = sorted(
            (c for c in latest if last_timestamp is None or c.timestamp > last_timestamp),
            key=lambda c: c.timestamp,
        )
        if not new_candles:
            return 0

        processed = 0
        for candle in new_candles:
            if self.engine.last_candle and candle.timestamp <= self.engine.last_candle.timestamp:
                continue
            self.log.debug(
                f"[{ms_to_iso(candle.timestamp)}] Candle: O={candle.open:.2f} H={candle.high:.2f} "
                f"L={candle.low:.2f} C={candle.close:.2f}"
            )
            self.engine.process_candle(candle)
            processed += 1

        self._save_candles(new_candles)
        self.log.info(self.format_status_line())
        return processed

    def _record_failure(self, error: Exception):
        self.consecutive_failures += 1
        self.log.error(
            f"Market check failed ({self.consecutive_failures}/{self.max_tick_failures}): {error}"
        )
        if self.consecutive_failures >= self.max_tick_failures:
            self.log.error("Too many consecutive failures, stopping session")
            self.stop()

    def start(self):
        """Blocking poll loop; returns after stop()"""
        if not self.initialized:
            self.initialize()

        self.running = True
        self._stop_event.clear()
        self.log.info(
            f"Starting polling for {self.session.symbol} {self.session.timeframe} every {self.polling_interval}s"
        )

        while self.running:
            try:
                self.check_market()
            except Exception as e:
                self.log.exception(f"Polling error: {e}")
                self._record_failure(e)
            if self._stop_event.wait(self.polling_interval):
                break

        self.running = False

    def stop(self):
        self.running = False
        self._stop_event.set()
        self.log.info("Stopped")

    def session_metrics(self) -> PerformanceMetrics:
        """
        Metrics over the whole persisted session, including trades closed
        before the last restart
        """
        state = self.engine.state
        if self.repository is None or self.session_id is None:
            return self.engine.metrics()
        try:
            trades = self.repository.get_session_trades(self.session_id)
        except PersistenceError as e:
            self.log.error(f"Failed to load session trades, using in-memory metrics: {e}")
            return self.engine.metrics()

        closed = [t for t in trades if t['status'] != 'open']
        return self.engine.performance.summarize_records(closed, state.balance, state.peak)

    def status(self) -> Dict[str, Any]:
        """Paper trading summary"""
        state = self.engine.state
        closed = self.win_count + self.loss_count
        position = state.position
        last = self.engine.last_candle
        return {
            'name': self.name,
            'symbol': self.session.symbol,
            'timeframe': self.session.timeframe,
            'balance': state.balance,
            'initial_balance': self.strategy.bankroll_usd,
            'total_pnl': state.balance - self.strategy.bankroll_usd,
            'return_percent': calculate_percentage_change(self.strategy.bankroll_usd, state.balance),
            'wins': self.win_count,
            'losses': self.loss_count,
            'win_rate': self.win_count / closed if closed else 0.0,
            'position': position.side.value if position else None,
            'entry_price': position.entry_price if position else None,
            'last_price': last.close if last else None,
            'running': self.running,
        }

    def format_status_line(self) -> str:
        s = self.status()
        position = s['position'].upper() if s['position'] else 'FLAT'
        return (
            f"📊 Balance {format_currency(s['balance'])} | P&L {format_currency(s['total_pnl'])} "
            f"({s['return_percent']:+.2f}%) | {s['wins']}W/{s['losses']}L "
            f"({s['win_rate'] * 100:.1f}%) | {position}"
        )
