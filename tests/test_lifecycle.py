import pytest

from trend_bot.config.trading_config import StrategyConfig
from trend_bot.engine.lifecycle import TradeLifecycleManager
from trend_bot.models import Candle, EngineState, Side, Zone, EXIT_STOP_LOSS, EXIT_TAKE_PROFIT
from trend_bot.risk.position_sizer import PositionPlan, PositionSizer

CONFIG = StrategyConfig(contract_value=1.0, risk_reward_ratio=2.0)


def _manager():
    state = EngineState(balance=10000.0, peak=10000.0)
    return TradeLifecycleManager(CONFIG, state), state


def _plan(side=Side.LONG, entry=100.0, stop=99.0, contracts=10):
    take_profit = PositionSizer(CONFIG).take_profit(side, entry, stop)
    return PositionPlan(side, entry, stop, take_profit, contracts, contracts * entry, 200.0)


def test_take_profit_hit_before_stop():
    manager, state = _manager()
    position = manager.open_position(_plan(), 1000, Zone.DISCOUNT, "crossover")
    assert position.take_profit == 102.0

    trade = manager.check_stop_target(Candle(2000, 100.5, 102.5, 99.5, 102.2))

    assert trade is not None
    assert trade.exit_reason == EXIT_TAKE_PROFIT
    assert trade.exit_price == 102.0
    assert trade.r_multiple == pytest.approx(2.0)
    assert trade.pnl_usd == pytest.approx(20.0)
    assert state.balance == pytest.approx(10020.0)
    assert state.position is None


def test_stop_checked_before_target():
    manager, _ = _manager()
    manager.open_position(_plan(), 1000, Zone.DISCOUNT, "crossover")

    trade = manager.check_stop_target(Candle(2000, 100.0, 103.0, 98.0, 100.0))

    assert trade.exit_reason == EXIT_STOP_LOSS
    assert trade.exit_price == 99.0
    assert trade.r_multiple == pytest.approx(-1.0)


def test_target_exit_zone_uses_candle_close():
    manager, state = _manager()
    state.range_high, state.range_low = 110.0, 90.0
    manager.open_position(_plan(), 1000, Zone.DISCOUNT, "crossover")

    # Target 102 is touched but the candle closes below equilibrium (100)
    trade = manager.check_stop_target(Candle(2000, 100.5, 102.5, 99.5, 99.6))

    assert trade.exit_reason == EXIT_TAKE_PROFIT
    assert trade.exit_price == 102.0
    assert trade.exit_zone is Zone.DISCOUNT


def test_short_levels():
    manager, _ = _manager()
    manager.open_position(_plan(Side.SHORT, 100.0, 101.0), 1000, Zone.PREMIUM, "crossover")
    assert manager.check_stop_target(Candle(2000, 100.0, 100.5, 99.0, 99.5)) is None

    trade = manager.check_stop_target(Candle(3000, 99.0, 99.2, 97.5, 98.0))
    assert trade.exit_reason == EXIT_TAKE_PROFIT
    assert trade.pnl_usd == pytest.approx(20.0)


def test_single_position_slot():
    manager, _ = _manager()
    manager.open_position(_plan(), 1000, Zone.DISCOUNT, "crossover")
    with pytest.raises(RuntimeError):
        manager.open_position(_plan(), 2000, Zone.DISCOUNT, "crossover")


def test_peak_never_decreases_and_drawdown():
    manager, state = _manager()
    manager.open_position(_plan(), 1000, Zone.DISCOUNT, "crossover")
    win = manager.close_position(105.0, 2000, "trend_reversal", Zone.PREMIUM)
    assert state.peak == pytest.approx(10050.0)
    assert win.drawdown == 0

    manager.open_position(_plan(), 3000, Zone.DISCOUNT, "crossover")
    loss = manager.close_position(97.0, 4000, "trend_reversal", Zone.DISCOUNT)
    assert state.peak == pytest.approx(10050.0)
    assert loss.drawdown == pytest.approx(30.0)
    assert loss.running_balance == pytest.approx(10020.0)
    assert [win.trade_number, loss.trade_number] == [1, 2]


def test_restore_continues_numbering():
    manager, state = _manager()
    manager.restore(12000.0, peak=12500.0, trade_count=7)
    assert state.balance == 12000.0
    assert state.peak == 12500.0

    manager.open_position(_plan(), 1000, Zone.DISCOUNT, "crossover")
    trade = manager.close_position(101.0, 2000, "zone_change", Zone.PREMIUM)
    assert trade.trade_number == 8
