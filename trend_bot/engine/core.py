"""
Strategy execution core

One engine per (instrument, timeframe, config). Drivers feed candles in
order; the engine runs swing -> zone -> signal -> exit -> entry for each
candle and reports side effects to an injected EffectsSink.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from trend_bot.config.settings import HISTORY_CANDLES
from trend_bot.config.trading_config import StrategyConfig
from trend_bot.engine.lifecycle import TradeLifecycleManager
from trend_bot.engine.metrics import PerformanceAggregator, PerformanceMetrics
from trend_bot.models import (
    Candle,
    ClosedTrade,
    EngineState,
    Position,
    SwingPoint,
    EXIT_END_OF_DATA,
)
from trend_bot.risk.position_sizer import PositionSizer
from trend_bot.signals.generator import MarketAnalysis, SignalGenerator
from trend_bot.strategies.swing_zone import SwingTracker, classify_zone

# Event kinds
SWING_HIGH = "swing_high"
SWING_LOW = "swing_low"
TRADE_OPENED = "trade_opened"
TRADE_CLOSED = "trade_closed"


@dataclass(frozen=True)
class EngineEvent:
    """Something that happened while processing one candle"""
    kind: str
    timestamp: int
    payload: Any = None
    context: Dict[str, Any] = field(default_factory=dict)


class EffectsSink:
    """
    Receiver for engine side effects (persistence, notification)

    The default implementation ignores everything, so batch runs need no sink.
    Exceptions raised by a sink are logged by the engine and never undo
    in-memory state.
    """

    def trade_opened(self, position: Position, analysis: MarketAnalysis, indicators: Dict[str, float]):
        pass

    def trade_closed(self, trade: ClosedTrade):
        pass

    def swing_confirmed(self, kind: str, swing: SwingPoint):
        pass


class StrategyEngine:
    """Swing-range zone + MA crossover strategy over a candle stream"""

    def __init__(self,
                 config: StrategyConfig,
                 sink: Optional[EffectsSink] = None,
                 max_window: Optional[int] = None,
                 equity_sample_every: int = 100,
                 max_equity_points: Optional[int] = None,
                 name: str = "engine"):
        """
        Args:
            config: Validated strategy parameters
            sink: Side-effect receiver (defaults to a no-op sink)
            max_window: Bound on the in-memory candle list (None = unbounded)
            equity_sample_every: Sample equity when the candle index is a
                multiple of this (trade closes are always sampled)
            max_equity_points: Bound on the equity curve length (None = unbounded)
            name: Label used in log lines
        """
        self.config = config
        self.sink = sink or EffectsSink()
        self.max_window = max_window
        self.equity_sample_every = max(1, equity_sample_every)
        self.log = logger.bind(session=name)

        self.state = EngineState(balance=config.bankroll_usd, peak=config.bankroll_usd)
        self.candles: List[Candle] = []
        self.candles_seen = 0
        self.last_analysis: Optional[MarketAnalysis] = None

        self.swings = SwingTracker(config.swing_length, self.state)
        self.signals = SignalGenerator(config)
        self.sizer = PositionSizer(config)
        self.lifecycle = TradeLifecycleManager(config, self.state)
        self.performance = PerformanceAggregator(config.bankroll_usd, max_points=max_equity_points)

    @property
    def warmup_period(self) -> int:
        return self.config.warmup_period

    @property
    def position(self) -> Optional[Position]:
        return self.state.position

    @property
    def last_candle(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    def seed(self, history: Sequence[Candle]):
        """
        Load history without trading on it

        Swing points are replayed over the history so the range is known
        before the first live candle arrives.
        """
        for candle in history:
            self._append(candle)
            if len(self.candles) >= self.warmup_period:
                self.swings.update(self.candles)

    def process_candle(self, candle: Candle) -> List[EngineEvent]:
        """
        Feed one candle through the strategy

        Returns:
            Events produced by this candle (empty during warm-up)
        """
        index = self.candles_seen
        self._append(candle)
        if len(self.candles) < self.warmup_period:
            return []

        events: List[EngineEvent] = []

        # Stop / target first; a hit ends evaluation of this candle
        if self.state.position is not None:
            trade = self.lifecycle.check_stop_target(candle)
            if trade is not None:
                self._on_trade_closed(trade, events)
                self._sample_equity(index, candle, closed=True)
                return events

        new_high, new_low = self.swings.update(self.candles)
        if new_high is not None:
            events.append(EngineEvent(SWING_HIGH, candle.timestamp, new_high))
            self._emit('swing_confirmed', SWING_HIGH, new_high)
        if new_low is not None:
            events.append(EngineEvent(SWING_LOW, candle.timestamp, new_low))
            self._emit('swing_confirmed', SWING_LOW, new_low)

        zone = self.swings.zone(candle.close)
        analysis = self.signals.analyze(self.candles, zone)
        self.last_analysis = analysis

        closed = False
        position = self.state.position
        if position is not None:
            reason = analysis.exit_reason(position.side, self.config.exit_on_zone_change)
            if reason is not None:
                trade = self.lifecycle.close_position(candle.close, candle.timestamp, reason, zone)
                self._on_trade_closed(trade, events)
                closed = True

        if self.state.position is None:
            self._check_entry(candle, analysis, events)

        self._sample_equity(index, candle, closed=closed)
        return events

    def finalize(self, candle: Optional[Candle] = None) -> Optional[ClosedTrade]:
        """Force-close a residual position at the final close (finite runs only)"""
        candle = candle or self.last_candle
        if self.state.position is None or candle is None:
            return None

        zone = classify_zone(self.state.range_high, self.state.range_low, candle.close)
        trade = self.lifecycle.close_position(candle.close, candle.timestamp, EXIT_END_OF_DATA, zone)
        self._on_trade_closed(trade, [])
        self.performance.record_equity(candle.timestamp, self.state)
        return trade

    def metrics(self) -> PerformanceMetrics:
        return self.performance.summarize(self.state.trades, self.state.balance, self.state.peak)

    def _check_entry(self, candle: Candle, analysis: MarketAnalysis, events: List[EngineEvent]):
        side = analysis.entry_side(self.config.allow_trend_continuation)
        if side is None:
            return

        plan = self.sizer.plan(
            side,
            entry_price=candle.close,
            atr=analysis.atr,
            balance=self.state.balance,
            swing_high=self.state.last_swing_high,
            swing_low=self.state.last_swing_low,
        )
        if plan is None:
            self.log.debug(f"[{side.value.upper()}] signal skipped: position size is zero")
            return

        position = self.lifecycle.open_position(
            plan, candle.timestamp, analysis.zone, analysis.entry_reason, analysis
        )
        indicators = self.signals.indicator_snapshot(self.candles[-HISTORY_CANDLES:])
        events.append(EngineEvent(TRADE_OPENED, candle.timestamp, position, indicators))
        self._emit('trade_opened', position, analysis, indicators)

    def _on_trade_closed(self, trade: ClosedTrade, events: List[EngineEvent]):
        events.append(EngineEvent(TRADE_CLOSED, trade.exit_time, trade))
        self._emit('trade_closed', trade)

    def _sample_equity(self, index: int, candle: Candle, closed: bool):
        if closed or index % self.equity_sample_every == 0:
            self.performance.record_equity(candle.timestamp, self.state)

    def _append(self, candle: Candle):
        self.candles.append(candle)
        self.candles_seen += 1
        if self.max_window is not None and len(self.candles) > self.max_window:
            del self.candles[:len(self.candles) - self.max_window]

    def _emit(self, method: str, *args):
        try:
            getattr(self.sink, method)(*args)
        except Exception as e:
            self.log.exception(f"Effect '{method}' failed: {e}")
