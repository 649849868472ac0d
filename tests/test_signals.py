import math

import pytest

from trend_bot.config.trading_config import StrategyConfig
from trend_bot.models import Side, Zone, EXIT_TREND_REVERSAL, EXIT_ZONE_CHANGE
from trend_bot.signals.generator import MarketAnalysis, SignalGenerator


def _analysis(**overrides):
    values = dict(
        current_price=100.0, fast_ma=101.0, slow_ma=100.0, atr=1.0, zone=Zone.DISCOUNT,
        is_bullish=True, is_bearish=False, bullish_crossover=True, bearish_crossover=False,
    )
    values.update(overrides)
    return MarketAnalysis(**values)


def test_long_on_bullish_crossover_in_discount():
    analysis = _analysis()
    assert analysis.entry_side(allow_trend_continuation=False) is Side.LONG
    assert analysis.entry_reason == "crossover"


def test_no_long_outside_discount():
    assert _analysis(zone=Zone.PREMIUM).entry_side(False) is None
    assert _analysis(zone=Zone.EQUILIBRIUM).entry_side(False) is None


def test_continuation_requires_flag():
    analysis = _analysis(bullish_crossover=False)
    assert analysis.entry_side(False) is None
    assert analysis.entry_side(True) is Side.LONG
    assert analysis.entry_reason == "continuation"


def test_short_on_bearish_crossover_in_premium():
    analysis = _analysis(zone=Zone.PREMIUM, fast_ma=99.0, is_bullish=False, is_bearish=True,
                         bullish_crossover=False, bearish_crossover=True)
    assert analysis.entry_side(False) is Side.SHORT


def test_exit_reasons():
    bearish = _analysis(is_bullish=False, is_bearish=True, bullish_crossover=False, zone=Zone.DISCOUNT)
    assert bearish.exit_reason(Side.LONG, exit_on_zone_change=True) == EXIT_TREND_REVERSAL
    assert bearish.exit_reason(Side.SHORT, exit_on_zone_change=True) == EXIT_ZONE_CHANGE

    # Zone change overrides trend reversal
    both = _analysis(is_bullish=False, is_bearish=True, zone=Zone.PREMIUM)
    assert both.exit_reason(Side.LONG, exit_on_zone_change=True) == EXIT_ZONE_CHANGE
    assert both.exit_reason(Side.LONG, exit_on_zone_change=False) == EXIT_TREND_REVERSAL

    assert _analysis(zone=Zone.EQUILIBRIUM).exit_reason(Side.LONG, True) is None


def test_analyze_detects_crossover(swing_candles):
    config = StrategyConfig(fast_ma_period=3, slow_ma_period=5, swing_length=2)
    generator = SignalGenerator(config)

    analysis = generator.analyze(swing_candles[:16], Zone.DISCOUNT)
    assert analysis.fast_ma == pytest.approx(100.0)
    assert analysis.slow_ma == pytest.approx(98.8)
    assert analysis.bullish_crossover
    assert not analysis.bearish_crossover
    assert analysis.entry_side(False) is Side.LONG

    # Already bullish on the next candle: trend, no new crossover
    following = generator.analyze(swing_candles[:17], Zone.DISCOUNT)
    assert following.is_bullish
    assert not following.bullish_crossover


def test_analyze_incomplete_warmup_never_signals(candle_factory):
    generator = SignalGenerator(StrategyConfig(fast_ma_period=3, slow_ma_period=5))
    analysis = generator.analyze(candle_factory([1, 2, 3, 4]), Zone.DISCOUNT)
    assert math.isnan(analysis.slow_ma)
    assert not analysis.is_bullish and not analysis.is_bearish
    assert analysis.entry_side(True) is None


def test_atr_uses_fourteen_periods(candle_factory):
    generator = SignalGenerator(StrategyConfig(fast_ma_period=3, slow_ma_period=5))
    candles = candle_factory([100.0] * 20, spread=1.0)
    analysis = generator.analyze(candles, Zone.EQUILIBRIUM)
    assert analysis.atr == pytest.approx(2.0)
    assert math.isnan(generator.analyze(candles[:13], Zone.EQUILIBRIUM).atr)


def test_indicator_snapshot(swing_candles):
    generator = SignalGenerator(StrategyConfig())
    snapshot = generator.indicator_snapshot(swing_candles)
    assert set(snapshot) == {'rsi', 'adx', 'plus_di', 'minus_di', 'vwap'}
    assert 0 <= snapshot['rsi'] <= 100
    assert snapshot['vwap'] == pytest.approx(sum(c.close for c in swing_candles) / len(swing_candles))
