import pytest

from trend_bot.engine.metrics import PerformanceAggregator, PerformanceMetrics, ProfitFactor
from trend_bot.models import ClosedTrade, EngineState, Side, Zone


def _trade(number, pnl, pnl_percent, r_multiple, drawdown=0.0, balance=10000.0):
    return ClosedTrade(
        trade_number=number, side=Side.LONG,
        entry_price=100.0, entry_time=number * 1000, entry_zone=Zone.DISCOUNT, entry_reason="crossover",
        exit_price=100.0, exit_time=number * 1000 + 500, exit_zone=Zone.PREMIUM, exit_reason="tp",
        size=1, size_usd=100.0, stop_loss=99.0, take_profit=102.0,
        pnl_usd=pnl, pnl_percent=pnl_percent, r_multiple=r_multiple,
        running_balance=balance, running_pnl=0.0, drawdown=drawdown,
        fast_ma_at_entry=float('nan'), slow_ma_at_entry=float('nan'), atr_at_entry=float('nan'),
    )


def test_profit_factor_variants():
    assert ProfitFactor.from_totals(300.0, 100.0).value == pytest.approx(3.0)
    unbounded = ProfitFactor.from_totals(50.0, 0.0)
    assert unbounded.unbounded
    assert unbounded.to_json() == "unbounded"
    assert str(unbounded) == "unbounded"
    none = ProfitFactor.from_totals(0.0, 0.0)
    assert not none.unbounded and none.value == 0.0


def test_summarize():
    aggregator = PerformanceAggregator(10000.0)
    trades = [
        _trade(1, 200.0, 2.0, 2.0, drawdown=0.0),
        _trade(2, -100.0, -1.0, -1.0, drawdown=100.0),
        _trade(3, 0.0, 0.0, 0.0, drawdown=100.0),
        _trade(4, 300.0, 3.0, 3.0, drawdown=0.0),
    ]
    metrics = aggregator.summarize(trades, final_balance=10400.0, peak=10400.0)

    assert metrics.total_trades == 4
    # Break-even trades count as losses
    assert metrics.win_count == 2
    assert metrics.loss_count == 2
    assert metrics.win_rate == pytest.approx(0.5)
    assert metrics.total_pnl == pytest.approx(400.0)
    assert metrics.return_percent == pytest.approx(4.0)
    assert metrics.profit_factor.value == pytest.approx(5.0)
    assert metrics.max_drawdown == pytest.approx(100.0)
    assert metrics.max_drawdown_percent == pytest.approx(100.0 / 10400.0 * 100)
    assert metrics.avg_r_multiple == pytest.approx(1.0)
    assert metrics.largest_win == 300.0
    assert metrics.largest_loss == -100.0
    assert metrics.avg_loss == pytest.approx(-50.0)


def test_sharpe_ratio():
    assert PerformanceAggregator.sharpe_ratio([1.0]) == 0.0
    assert PerformanceAggregator.sharpe_ratio([1.0, 1.0, 1.0]) == 0.0
    # mean 2, sample std 1
    assert PerformanceAggregator.sharpe_ratio([1.0, 2.0, 3.0]) == pytest.approx(2.0)


def test_summarize_without_trades():
    metrics = PerformanceAggregator(10000.0).summarize([], final_balance=10000.0, peak=10000.0)
    assert metrics == PerformanceMetrics.empty(10000.0)
    assert metrics.to_dict()['profit_factor'] == 0.0


def test_record_equity():
    state = EngineState(balance=9000.0, peak=10000.0)
    point = PerformanceAggregator(10000.0).record_equity(123, state)
    assert point.drawdown == pytest.approx(1000.0)
    assert point.drawdown_percent == pytest.approx(10.0)
    assert state.equity_curve == [point]


def test_summarize_without_trades_keeps_balance_change():
    metrics = PerformanceAggregator(10000.0).summarize([], final_balance=10250.0, peak=10300.0)
    assert metrics.total_trades == 0
    assert metrics.total_pnl == pytest.approx(250.0)
    assert metrics.return_percent == pytest.approx(2.5)
    assert metrics.peak_balance == 10300.0


def test_summarize_records_replays_drawdown():
    rows = [
        {'pnl_usd': 200.0, 'pnl_percent': 2.0, 'r_multiple': 2.0},
        {'pnl_usd': -150.0, 'pnl_percent': -1.5, 'r_multiple': -1.0},
        {'pnl_usd': 50.0, 'pnl_percent': 0.5, 'r_multiple': 0.5},
    ]
    metrics = PerformanceAggregator(10000.0).summarize_records(rows, final_balance=10100.0, peak=10000.0)

    assert metrics.total_trades == 3
    assert metrics.win_count == 2
    assert metrics.loss_count == 1
    assert metrics.total_pnl == pytest.approx(100.0)
    assert metrics.peak_balance == pytest.approx(10200.0)
    assert metrics.max_drawdown == pytest.approx(150.0)
    assert metrics.profit_factor.value == pytest.approx(250.0 / 150.0)


def test_record_equity_same_timestamp_replaces_point():
    state = EngineState(balance=10000.0, peak=10000.0)
    aggregator = PerformanceAggregator(10000.0)
    aggregator.record_equity(100, state)
    state.balance = 10100.0
    state.peak = 10100.0
    aggregator.record_equity(100, state)

    assert len(state.equity_curve) == 1
    assert state.equity_curve[0].balance == 10100.0


def test_record_equity_keeps_newest_points():
    state = EngineState(balance=10000.0, peak=10000.0)
    aggregator = PerformanceAggregator(10000.0, max_points=3)
    for ts in range(1, 6):
        aggregator.record_equity(ts, state)

    assert [p.timestamp for p in state.equity_curve] == [3, 4, 5]
