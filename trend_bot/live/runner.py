#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Live session runner
Runs every configured paper-trading session in its own thread until Ctrl+C.

Usage:
  trend-bot-live                       # all default sessions
  trend-bot-live --session "BTC 5m" --session "Gold 15m"
"""

import argparse
import sys
import threading
from typing import Callable, Dict, List, Optional

from loguru import logger

from trend_bot.config.settings import Settings
from trend_bot.config.trading_config import DEFAULT_SESSIONS, SessionConfig
from trend_bot.data.sources import CandleSource, create_candle_source
from trend_bot.exceptions import ConfigurationError, PersistenceError, TrendBotError
from trend_bot.integrations.discord_notifier import DiscordNotifier
from trend_bot.live.bot import LiveTradingBot
from trend_bot.persistence.repository import SQLiteRepository
from trend_bot.utils.helpers import create_summary_table, format_currency
from trend_bot.utils.logging_setup import configure_logging

INIT_RETRY_DELAY_SEC = 5

SourceFactory = Callable[[SessionConfig], CandleSource]


def default_source_factory(settings: Settings) -> SourceFactory:
    """One data source instance per session, keyed by SessionConfig.data_source"""
    def factory(session: SessionConfig) -> CandleSource:
        if session.data_source == 'twelvedata':
            return create_candle_source('twelvedata', api_key=settings.twelvedata_api_key)
        return create_candle_source(session.data_source)
    return factory


class SessionRunner:
    """Starts, snapshots and shuts down a set of LiveTradingBots"""

    def __init__(self,
                 sessions: List[SessionConfig],
                 settings: Settings,
                 repository: SQLiteRepository,
                 notifier: Optional[DiscordNotifier] = None,
                 source_factory: Optional[SourceFactory] = None,
                 retry_delay_sec: float = INIT_RETRY_DELAY_SEC):
        self.sessions = sessions
        self.settings = settings
        self.repository = repository
        self.notifier = notifier
        self.source_factory = source_factory or default_source_factory(settings)
        self.retry_delay_sec = retry_delay_sec

        self.bots: List[LiveTradingBot] = []
        self.threads: Dict[str, threading.Thread] = {}
        self._stop_event = threading.Event()
        self._snapshot_thread: Optional[threading.Thread] = None

    def initialize_bots(self) -> List[LiveTradingBot]:
        """Create and initialize one bot per session; sessions that keep failing are skipped"""
        for session in self.sessions:
            try:
                session.validate()
                source = self.source_factory(session)
            except ConfigurationError as e:
                logger.error(f"[{session.name}] Skipping session: {e}")
                continue

            session_id = self.repository.get_or_create_session(session)
            bot = LiveTradingBot(
                session,
                source,
                repository=self.repository,
                notifier=self.notifier,
                session_id=session_id,
                max_tick_failures=self.settings.max_tick_failures,
            )
            if self._initialize_with_retry(bot):
                self.bots.append(bot)
            else:
                source.close()

        logger.info(f"{len(self.bots)}/{len(self.sessions)} sessions initialized")
        return self.bots

    def _initialize_with_retry(self, bot: LiveTradingBot) -> bool:
        attempts = max(1, self.settings.max_init_attempts)
        for attempt in range(1, attempts + 1):
            try:
                bot.initialize()
                return True
            except ConfigurationError as e:
                bot.log.error(f"Invalid configuration, not retrying: {e}")
                return False
            except TrendBotError as e:
                bot.log.warning(f"Initialization attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts and self._stop_event.wait(self.retry_delay_sec * attempt):
                    return False
        bot.log.error(f"Giving up after {attempts} attempts")
        return False

    def start(self):
        """Start one thread per bot plus the snapshot thread"""
        for bot in self.bots:
            thread = threading.Thread(target=self._run_bot, args=(bot,), name=bot.name, daemon=True)
            self.threads[bot.name] = thread
            thread.start()

        self._snapshot_thread = threading.Thread(target=self._snapshot_loop, name="snapshots", daemon=True)
        self._snapshot_thread.start()
        logger.info(f"🚀 {len(self.threads)} sessions running. Press Ctrl+C to stop.")

    def _run_bot(self, bot: LiveTradingBot):
        try:
            bot.start()
        except Exception as e:
            bot.log.exception(f"Session crashed: {e}")

    def _snapshot_loop(self):
        while not self._stop_event.wait(self.settings.snapshot_interval_sec):
            self.take_snapshots()

    def take_snapshots(self):
        for bot in self.bots:
            try:
                self.repository.create_session_snapshot(
                    bot.session_id,
                    bot.balance,
                    bot.session_metrics(),
                    open_trades=0 if bot.engine.position is None else 1,
                )
            except PersistenceError as e:
                bot.log.error(f"Snapshot failed: {e}")

    def wait(self):
        """Block until every bot thread has ended or stop() is called"""
        while not self._stop_event.is_set():
            if not any(t.is_alive() for t in self.threads.values()):
                break
            self._stop_event.wait(1)

    def stop(self):
        """Stop bots, persist balances, print and send the summary"""
        self._stop_event.set()
        for bot in self.bots:
            bot.stop()
        for thread in self.threads.values():
            thread.join(timeout=10)

        for bot in self.bots:
            try:
                self.repository.update_session_balance(bot.session_id, bot.balance)
            except PersistenceError as e:
                bot.log.error(f"Failed to persist balance: {e}")
        self.take_snapshots()

        summaries = [bot.status() for bot in self.bots]
        print(self.format_summary(summaries))
        if self.notifier is not None and summaries:
            self.notifier.notify_summary(summaries)

        for bot in self.bots:
            bot.source.close()

    @staticmethod
    def format_summary(summaries: List[Dict]) -> str:
        lines = ["", "=" * 60, "📊 PAPER TRADING SUMMARY", "=" * 60]
        for s in summaries:
            lines.append(create_summary_table({
                'session': s['name'],
                'balance': format_currency(s['balance']),
                'total_pnl': f"{format_currency(s['total_pnl'])} ({s['return_percent']:+.2f}%)",
                'trades': f"{s['wins']}W / {s['losses']}L",
                'win_rate': f"{s['win_rate'] * 100:.1f}%",
                'position': (s['position'] or 'flat').upper(),
            }))
        if not summaries:
            lines.append("No sessions ran")
        lines.append("=" * 60)
        return "\n".join(lines)


def select_sessions(names: Optional[List[str]]) -> List[SessionConfig]:
    if not names:
        return list(DEFAULT_SESSIONS)
    by_name = {s.name.lower(): s for s in DEFAULT_SESSIONS}
    unknown = [n for n in names if n.lower() not in by_name]
    if unknown:
        raise ConfigurationError(
            f"Unknown session(s): {', '.join(unknown)}. Available: {', '.join(s.name for s in DEFAULT_SESSIONS)}"
        )
    return [by_name[n.lower()] for n in names]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run paper-trading sessions until Ctrl+C')
    parser.add_argument('--session', action='append', dest='sessions', metavar='NAME',
                        help='Session name to run (repeatable; default: all)')
    parser.add_argument('--log-level', type=str, default=None, help='Override LOG_LEVEL')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(args.log_level or settings.log_level, settings.log_file)

    try:
        sessions = select_sessions(args.sessions)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    logger.info("🤖 Trend Strategy Bot - Paper Trading")
    logger.info(f"Sessions: {', '.join(s.name for s in sessions)}")

    try:
        repository = SQLiteRepository(settings.db_path)
    except PersistenceError as e:
        logger.error(str(e))
        return 1

    notifier = DiscordNotifier(settings.discord_webhook)
    runner = SessionRunner(sessions, settings, repository, notifier)
    try:
        if not runner.initialize_bots():
            logger.error("No session could be initialized")
            return 1
        runner.start()
        runner.wait()
    except KeyboardInterrupt:
        logger.info("⏹️  Shutting down...")
    finally:
        runner.stop()
        repository.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
