"""
Signal generation module for the trend strategy
Detects moving-average crossovers / trend state and combines them with the
premium/discount zone into entry and exit eligibility.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from trend_bot.config.trading_config import StrategyConfig
from trend_bot.indicators.technical import TechnicalIndicators
from trend_bot.models import (
    Candle,
    Side,
    Zone,
    ENTRY_CONTINUATION,
    ENTRY_CROSSOVER,
    EXIT_TREND_REVERSAL,
    EXIT_ZONE_CHANGE,
)

ATR_PERIOD = 14
RSI_PERIOD = 14
ADX_PERIOD = 14


@dataclass(frozen=True)
class MarketAnalysis:
    """Indicator readings and signal flags for the newest candle"""
    current_price: float
    fast_ma: float
    slow_ma: float
    atr: float
    zone: Zone
    is_bullish: bool
    is_bearish: bool
    bullish_crossover: bool
    bearish_crossover: bool

    @property
    def entry_reason(self) -> str:
        if self.bullish_crossover or self.bearish_crossover:
            return ENTRY_CROSSOVER
        return ENTRY_CONTINUATION

    def entry_side(self, allow_trend_continuation: bool) -> Optional[Side]:
        """
        Side eligible for entry on this candle, long evaluated before short

        Long:  discount zone AND (bullish crossover OR (bullish AND continuation allowed))
        Short: premium zone AND (bearish crossover OR (bearish AND continuation allowed))
        """
        long_condition = self.zone is Zone.DISCOUNT and (
            self.bullish_crossover or (self.is_bullish and allow_trend_continuation)
        )
        if long_condition:
            return Side.LONG

        short_condition = self.zone is Zone.PREMIUM and (
            self.bearish_crossover or (self.is_bearish and allow_trend_continuation)
        )
        if short_condition:
            return Side.SHORT
        return None

    def exit_reason(self, side: Side, exit_on_zone_change: bool) -> Optional[str]:
        """Signal exit for an open position; a zone change overrides a trend reversal"""
        reason = None
        if side is Side.LONG and self.is_bearish:
            reason = EXIT_TREND_REVERSAL
        elif side is Side.SHORT and self.is_bullish:
            reason = EXIT_TREND_REVERSAL

        if exit_on_zone_change and self.zone is side.opposite_zone:
            reason = EXIT_ZONE_CHANGE
        return reason

    def to_dict(self) -> Dict:
        return {
            'current_price': self.current_price,
            'fast_ma': self.fast_ma,
            'slow_ma': self.slow_ma,
            'atr': self.atr,
            'zone': self.zone.value,
            'is_bullish': self.is_bullish,
            'is_bearish': self.is_bearish,
            'bullish_crossover': self.bullish_crossover,
            'bearish_crossover': self.bearish_crossover,
        }


class SignalGenerator:
    """Computes fast/slow SMA and ATR(14) on the candle window"""

    def __init__(self, config: StrategyConfig):
        self.config = config
        self.indicators = TechnicalIndicators()
        # One extra candle so the oldest true range in the tail still has a previous close
        self.lookback = max(config.fast_ma_period, config.slow_ma_period, ATR_PERIOD) + 1

    def analyze(self, candles: Sequence[Candle], zone: Zone) -> MarketAnalysis:
        """
        Analyze the newest candle

        Args:
            candles: Candle window, oldest first (at least 2 candles)
            zone: Zone of the newest close against the current swing range

        Returns:
            MarketAnalysis for the newest candle
        """
        tail = candles[-self.lookback:]
        closes = [c.close for c in tail]
        highs = [c.high for c in tail]
        lows = [c.low for c in tail]

        fast_ma = self.indicators.sma(closes, self.config.fast_ma_period)
        slow_ma = self.indicators.sma(closes, self.config.slow_ma_period)
        atr = self.indicators.atr(highs, lows, closes, ATR_PERIOD)

        current_fast, current_slow = float(fast_ma[-1]), float(slow_ma[-1])
        if len(tail) >= 2:
            prev_fast, prev_slow = float(fast_ma[-2]), float(slow_ma[-2])
        else:
            prev_fast = prev_slow = math.nan

        # NaN compares False, so an incomplete warm-up never signals
        return MarketAnalysis(
            current_price=closes[-1],
            fast_ma=current_fast,
            slow_ma=current_slow,
            atr=float(atr[-1]),
            zone=zone,
            is_bullish=current_fast > current_slow,
            is_bearish=current_fast < current_slow,
            bullish_crossover=prev_fast <= prev_slow and current_fast > current_slow,
            bearish_crossover=prev_fast >= prev_slow and current_fast < current_slow,
        )

    def indicator_snapshot(self, candles: Sequence[Candle]) -> Dict[str, float]:
        """RSI, ADX/DI and VWAP for the newest candle, recorded alongside entries"""
        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        volumes = [c.volume for c in candles]

        adx = self.indicators.adx(highs, lows, closes, ADX_PERIOD)
        return {
            'rsi': float(self.indicators.rsi(closes, RSI_PERIOD)[-1]),
            'adx': float(adx['adx'][-1]),
            'plus_di': float(adx['plus_di'][-1]),
            'minus_di': float(adx['minus_di'][-1]),
            'vwap': float(self.indicators.vwap(highs, lows, closes, volumes)[-1]),
        }
