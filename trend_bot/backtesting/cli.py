"""
Backtest command line

Usage:
  trend-bot-backtest --csv data/XAUUSD_M15.csv --symbol XAU/USD --timeframe Min15 --preset gold
  trend-bot-backtest --source hyperliquid --symbol BTC_USDT --timeframe Min5 --limit 5000 --plot btc.png
"""

import argparse
import sys
from typing import List, Optional

from loguru import logger

from trend_bot.backtesting.engine import Backtester
from trend_bot.config.settings import Settings, TIMEFRAME_MS
from trend_bot.config.trading_config import CRYPTO_BASE_CONFIG, GOLD_BASE_CONFIG, StrategyConfig
from trend_bot.data.sources import SOURCES, create_candle_source
from trend_bot.exceptions import TrendBotError
from trend_bot.persistence.repository import SQLiteRepository
from trend_bot.utils.helpers import save_to_json
from trend_bot.utils.logging_setup import configure_logging

PRESETS = {
    'crypto': CRYPTO_BASE_CONFIG,
    'gold': GOLD_BASE_CONFIG,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Backtest the swing-range zone + MA crossover strategy'
    )
    data = parser.add_mutually_exclusive_group(required=True)
    data.add_argument('--csv', type=str, help='CSV file with OHLCV candles')
    data.add_argument('--source', type=str, choices=sorted(s for s in SOURCES if s not in ('csv', 'static')),
                      help='Market data source')

    parser.add_argument('--symbol', type=str, default='BTC_USDT', help='Instrument (default: BTC_USDT)')
    parser.add_argument('--timeframe', type=str, default='Min5', choices=list(TIMEFRAME_MS),
                        help='Candle timeframe (default: Min5)')
    parser.add_argument('--limit', type=int, default=5000, help='Candles to fetch from --source (default: 5000)')
    parser.add_argument('--preset', type=str, default='crypto', choices=sorted(PRESETS),
                        help='Base strategy parameters (default: crypto)')

    overrides = parser.add_argument_group('strategy overrides')
    overrides.add_argument('--bankroll', type=float, dest='bankroll_usd')
    overrides.add_argument('--risk-percent', type=float, dest='risk_percent', help='0.02 = 2%%')
    overrides.add_argument('--leverage', type=float)
    overrides.add_argument('--contract-value', type=float, dest='contract_value')
    overrides.add_argument('--swing-length', type=int, dest='swing_length')
    overrides.add_argument('--sl-distance', type=float, dest='sl_distance')
    overrides.add_argument('--fast-ma', type=int, dest='fast_ma_period')
    overrides.add_argument('--slow-ma', type=int, dest='slow_ma_period')
    overrides.add_argument('--rr', type=float, dest='risk_reward_ratio')
    overrides.add_argument('--allow-continuation', action='store_true', default=None,
                           dest='allow_trend_continuation')
    overrides.add_argument('--no-zone-exit', action='store_false', default=None, dest='exit_on_zone_change')

    parser.add_argument('--save', action='store_true', help='Store the result in the database')
    parser.add_argument('--plot', type=str, metavar='PATH', help='Save the equity curve chart')
    parser.add_argument('--json', type=str, metavar='PATH', help='Write the full result as JSON')
    parser.add_argument('--log-level', type=str, default=None, help='Override LOG_LEVEL')
    return parser


def build_config(args: argparse.Namespace) -> StrategyConfig:
    base = PRESETS[args.preset]
    return base.with_overrides(
        bankroll_usd=args.bankroll_usd,
        risk_percent=args.risk_percent,
        leverage=args.leverage,
        contract_value=args.contract_value,
        swing_length=args.swing_length,
        sl_distance=args.sl_distance,
        fast_ma_period=args.fast_ma_period,
        slow_ma_period=args.slow_ma_period,
        risk_reward_ratio=args.risk_reward_ratio,
        allow_trend_continuation=args.allow_trend_continuation,
        exit_on_zone_change=args.exit_on_zone_change,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(args.log_level or settings.log_level, settings.log_file)

    config = build_config(args)
    try:
        backtester = Backtester(config)
        if args.csv:
            # Whole file, --limit applies to remote sources only
            candles = create_candle_source('csv', path=args.csv).load()
            result = backtester.run(candles, symbol=args.symbol, timeframe=args.timeframe)
        else:
            if args.source == 'twelvedata':
                source = create_candle_source('twelvedata', api_key=settings.twelvedata_api_key)
            else:
                source = create_candle_source(args.source)
            result = backtester.run_from_source(source, args.symbol, args.timeframe, args.limit)
    except TrendBotError as e:
        logger.error(f"Backtest aborted: {e}")
        return 1

    print(result.generate_report())

    if args.plot:
        result.plot_equity_curve(args.plot)
    if args.json:
        save_to_json(result.to_dict(), args.json)
    if args.save:
        repository = SQLiteRepository(settings.db_path)
        try:
            backtest_id = repository.save_backtest(result)
            print(f"Saved as backtest #{backtest_id} in {settings.db_path}")
        except TrendBotError as e:
            logger.error(f"Could not save backtest: {e}")
        finally:
            repository.close()

    return 0 if result.succeeded else 1


if __name__ == '__main__':
    sys.exit(main())
