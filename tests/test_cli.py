import json

import pytest

from trend_bot.backtesting import cli
from trend_bot.backtesting.cli import build_config, build_parser, main
from trend_bot.config.trading_config import GOLD_BASE_CONFIG
from trend_bot.persistence.repository import SQLiteRepository


@pytest.fixture
def csv_file(tmp_path, swing_candles):
    path = tmp_path / "candles.csv"
    lines = ["timestamp,open,high,low,close,volume"]
    lines += [f"{c.timestamp},{c.open},{c.high},{c.low},{c.close},{c.volume}" for c in swing_candles]
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


SMALL_ARGS = ["--swing-length", "2", "--fast-ma", "3", "--slow-ma", "5", "--contract-value", "0.01"]


def test_overrides_apply_on_top_of_preset():
    args = build_parser().parse_args(["--csv", "x.csv", "--preset", "gold", "--rr", "3", "--no-zone-exit"])
    config = build_config(args)
    assert config.risk_reward_ratio == 3.0
    assert config.exit_on_zone_change is False
    assert config.slow_ma_period == GOLD_BASE_CONFIG.slow_ma_period
    assert config.allow_trend_continuation is False


def test_backtest_from_csv(tmp_path, csv_file, capsys, monkeypatch):
    db_path = tmp_path / "bt.db"
    json_path = tmp_path / "result.json"
    monkeypatch.setenv("TREND_BOT_DB_PATH", str(db_path))

    code = main(["--csv", str(csv_file), "--symbol", "TEST", *SMALL_ARGS,
                 "--json", str(json_path), "--save"])

    assert code == 0
    out = capsys.readouterr().out
    assert "BACKTEST RESULTS" in out
    assert "Saved as backtest #1" in out

    result = json.loads(json_path.read_text())
    assert result['status'] == 'completed'
    assert result['metrics']['total_trades'] == 1

    repo = SQLiteRepository(str(db_path))
    try:
        assert repo.get_backtest(1)['symbol'] == "TEST"
    finally:
        repo.close()


def test_too_few_candles_exit_code(csv_file, capsys):
    code = main(["--csv", str(csv_file), "--slow-ma", "50"])
    assert code == 1
    assert "Insufficient candles" in capsys.readouterr().out


def test_missing_csv_exit_code(tmp_path):
    assert main(["--csv", str(tmp_path / "missing.csv")]) == 1


def test_requires_a_data_option():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--symbol", "BTC_USDT"])
