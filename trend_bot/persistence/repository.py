#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
TRADING REPOSITORY
SQLite storage for paper-trading sessions, their trades, market candles,
periodic session snapshots and backtest results.

One repository instance owns one connection; construct it at start-up,
pass it to the drivers that need it and close it on shutdown.
"""

import json
import math
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from trend_bot.config.trading_config import SessionConfig
from trend_bot.exceptions import PersistenceError
from trend_bot.models import Candle, ClosedTrade, Position, Side, Zone, EXIT_STOP_LOSS, EXIT_TAKE_PROFIT

SESSION_ACTIVE = "active"
SESSION_ENDED = "ended"

TRADE_OPEN = "open"
TRADE_CLOSED_TP = "closed_tp"
TRADE_CLOSED_SL = "closed_sl"
TRADE_CLOSED_SIGNAL = "closed_signal"

BACKTEST_TRADE_BATCH_SIZE = 100


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


def _real(value: Optional[float]) -> Optional[float]:
    """NaN -> NULL"""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return float(value)


def _closed_status(exit_reason: str) -> str:
    if exit_reason == EXIT_TAKE_PROFIT:
        return TRADE_CLOSED_TP
    if exit_reason == EXIT_STOP_LOSS:
        return TRADE_CLOSED_SL
    return TRADE_CLOSED_SIGNAL


class SQLiteRepository:
    """
    Manages the SQLite database of the trading bot.
    Tables: sessions, trades, candles, session_snapshots, backtests, backtest_trades
    """

    def __init__(self, db_path: str = "data/trend_bot.db"):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file (":memory:" for a throwaway store)
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # Session bots run in their own threads; every statement holds the lock
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._initialize_database()
        logger.debug(f"Repository ready: {self.db_path}")

    def _initialize_database(self):
        """Create tables if they don't exist"""
        with self._lock, self._conn:
            self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                data_source TEXT NOT NULL,
                mode TEXT NOT NULL,
                status TEXT NOT NULL,
                config_json TEXT NOT NULL,
                initial_balance REAL NOT NULL,
                current_balance REAL NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS trades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id INTEGER NOT NULL REFERENCES sessions(id),
                side TEXT NOT NULL,
                status TEXT NOT NULL,
                entry_price REAL NOT NULL,
                entry_time INTEGER NOT NULL,
                size REAL NOT NULL,
                size_usd REAL NOT NULL,
                risk_amount REAL,
                stop_loss REAL NOT NULL,
                take_profit REAL NOT NULL,
                entry_zone TEXT,
                entry_reason TEXT,
                fast_ma_at_entry REAL,
                slow_ma_at_entry REAL,
                atr_at_entry REAL,
                signal_json TEXT,
                exit_price REAL,
                exit_time INTEGER,
                exit_zone TEXT,
                exit_reason TEXT,
                pnl_usd REAL,
                pnl_percent REAL,
                r_multiple REAL
            );
            CREATE INDEX IF NOT EXISTS idx_trades_session ON trades(session_id, status);

            CREATE TABLE IF NOT EXISTS candles (
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                open REAL NOT NULL,
                high REAL NOT NULL,
                low REAL NOT NULL,
                close REAL NOT NULL,
                volume REAL NOT NULL,
                PRIMARY KEY (symbol, timeframe, timestamp)
            );

            CREATE TABLE IF NOT EXISTS session_snapshots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id INTEGER NOT NULL REFERENCES sessions(id),
                created_at TEXT NOT NULL,
                balance REAL NOT NULL,
                total_pnl REAL,
                total_trades INTEGER,
                open_trades INTEGER,
                win_count INTEGER,
                loss_count INTEGER,
                win_rate REAL,
                profit_factor TEXT,
                max_drawdown REAL,
                max_drawdown_percent REAL,
                avg_r_multiple REAL,
                return_percent REAL
            );

            CREATE TABLE IF NOT EXISTS backtests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                status TEXT NOT NULL,
                error_message TEXT,
                config_json TEXT NOT NULL,
                metrics_json TEXT NOT NULL,
                equity_curve_json TEXT NOT NULL,
                total_trades INTEGER,
                win_rate REAL,
                total_pnl REAL,
                final_balance REAL,
                profit_factor TEXT,
                sharpe_ratio REAL,
                execution_time_ms REAL,
                candles_processed INTEGER,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS backtest_trades (
                backtest_id INTEGER NOT NULL REFERENCES backtests(id),
                trade_number INTEGER NOT NULL,
                side TEXT NOT NULL,
                entry_price REAL, entry_time INTEGER, entry_zone TEXT, entry_reason TEXT,
                exit_price REAL, exit_time INTEGER, exit_zone TEXT, exit_reason TEXT,
                size REAL, size_usd REAL, stop_loss REAL, take_profit REAL,
                pnl_usd REAL, pnl_percent REAL, r_multiple REAL,
                running_balance REAL, running_pnl REAL, drawdown REAL,
                fast_ma_at_entry REAL, slow_ma_at_entry REAL, atr_at_entry REAL,
                PRIMARY KEY (backtest_id, trade_number)
            );
            """)

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            with self._lock, self._conn:
                return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error: {e}") from e

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error: {e}") from e

    def close(self):
        with self._lock:
            self._conn.close()
        logger.debug(f"Repository closed: {self.db_path}")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_or_create_session(self, session: SessionConfig) -> int:
        """Resume the active session with this name, or create it"""
        rows = self._query(
            "SELECT id FROM sessions WHERE name = ? AND status = ? ORDER BY id DESC LIMIT 1",
            (session.name, SESSION_ACTIVE),
        )
        if rows:
            session_id = rows[0]['id']
            logger.info(f"Session resumed: {session_id} ({session.name})")
            return session_id

        bankroll = session.strategy.bankroll_usd
        cursor = self._execute(
            """INSERT INTO sessions (name, symbol, timeframe, data_source, mode, status, config_json,
                                     initial_balance, current_balance, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (session.name, session.symbol, session.timeframe, session.data_source,
             'paper' if session.paper_trading else 'live', SESSION_ACTIVE,
             json.dumps(session.to_dict()), bankroll, bankroll, _now(), _now()),
        )
        logger.info(f"Session created: {cursor.lastrowid} ({session.name})")
        return cursor.lastrowid

    def get_session(self, session_id: int) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return dict(rows[0]) if rows else None

    def load_session_balance(self, session_id: int) -> Optional[float]:
        session = self.get_session(session_id)
        return session['current_balance'] if session else None

    def update_session_balance(self, session_id: int, balance: float):
        self._execute(
            "UPDATE sessions SET current_balance = ?, updated_at = ? WHERE id = ?",
            (balance, _now(), session_id),
        )

    def end_session(self, session_id: int):
        self._execute(
            "UPDATE sessions SET status = ?, updated_at = ? WHERE id = ?",
            (SESSION_ENDED, _now(), session_id),
        )

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def record_trade_open(self, session_id: int, position: Position,
                          risk_amount: Optional[float] = None,
                          signal: Optional[Dict[str, Any]] = None) -> int:
        cursor = self._execute(
            """INSERT INTO trades (session_id, side, status, entry_price, entry_time, size, size_usd,
                                   risk_amount, stop_loss, take_profit, entry_zone, entry_reason,
                                   fast_ma_at_entry, slow_ma_at_entry, atr_at_entry, signal_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (session_id, position.side.value, TRADE_OPEN, position.entry_price, position.entry_time,
             position.size, position.size_usd, _real(risk_amount), position.stop_loss,
             position.take_profit, position.entry_zone.value, position.entry_reason,
             _real(position.fast_ma_at_entry), _real(position.slow_ma_at_entry),
             _real(position.atr_at_entry), json.dumps(signal) if signal else None),
        )
        return cursor.lastrowid

    def record_trade_close(self, trade_id: int, trade: ClosedTrade):
        self._execute(
            """UPDATE trades SET status = ?, exit_price = ?, exit_time = ?, exit_zone = ?, exit_reason = ?,
                                 pnl_usd = ?, pnl_percent = ?, r_multiple = ?
               WHERE id = ?""",
            (_closed_status(trade.exit_reason), trade.exit_price, trade.exit_time, trade.exit_zone.value,
             trade.exit_reason, trade.pnl_usd, trade.pnl_percent, trade.r_multiple, trade_id),
        )

    def load_open_trade(self, session_id: int) -> Optional[Tuple[int, Position]]:
        """Most recent open trade of the session as (trade id, Position)"""
        rows = self._query(
            "SELECT * FROM trades WHERE session_id = ? AND status = ? ORDER BY id DESC LIMIT 1",
            (session_id, TRADE_OPEN),
        )
        if not rows:
            return None

        row = rows[0]
        position = Position(
            side=Side(row['side']),
            size=row['size'],
            size_usd=row['size_usd'],
            entry_price=row['entry_price'],
            stop_loss=row['stop_loss'],
            take_profit=row['take_profit'],
            entry_time=row['entry_time'],
            entry_zone=Zone(row['entry_zone']) if row['entry_zone'] else Zone.EQUILIBRIUM,
            entry_reason=row['entry_reason'] or '',
            fast_ma_at_entry=row['fast_ma_at_entry'] if row['fast_ma_at_entry'] is not None else float('nan'),
            slow_ma_at_entry=row['slow_ma_at_entry'] if row['slow_ma_at_entry'] is not None else float('nan'),
            atr_at_entry=row['atr_at_entry'] if row['atr_at_entry'] is not None else float('nan'),
        )
        return row['id'], position

    def count_closed_trades(self, session_id: int) -> int:
        rows = self._query(
            "SELECT COUNT(*) AS n FROM trades WHERE session_id = ? AND status != ?",
            (session_id, TRADE_OPEN),
        )
        return rows[0]['n']

    def get_session_trades(self, session_id: int) -> List[Dict[str, Any]]:
        rows = self._query("SELECT * FROM trades WHERE session_id = ? ORDER BY id", (session_id,))
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Candles
    # ------------------------------------------------------------------

    def save_candles(self, symbol: str, timeframe: str, candles: Sequence[Candle]) -> int:
        """Insert candles, ignoring ones already stored; returns the number inserted"""
        try:
            with self._lock, self._conn:
                before = self._conn.total_changes
                self._conn.executemany(
                    """INSERT OR IGNORE INTO candles (symbol, timeframe, timestamp, open, high, low, close, volume)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    [(symbol, timeframe, c.timestamp, c.open, c.high, c.low, c.close, c.volume) for c in candles],
                )
                return self._conn.total_changes - before
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save candles: {e}") from e

    def get_candles(self, symbol: str, timeframe: str,
                    start: Optional[int] = None, end: Optional[int] = None,
                    limit: Optional[int] = None) -> List[Candle]:
        """Stored candles in ascending order; with a limit, the newest `limit`"""
        sql = "SELECT * FROM candles WHERE symbol = ? AND timeframe = ?"
        params: List[Any] = [symbol, timeframe]
        if start is not None:
            sql += " AND timestamp >= ?"
            params.append(start)
        if end is not None:
            sql += " AND timestamp <= ?"
            params.append(end)
        sql += " ORDER BY timestamp DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        rows = self._query(sql, params)
        return [
            Candle(r['timestamp'], r['open'], r['high'], r['low'], r['close'], r['volume'])
            for r in reversed(rows)
        ]

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def create_session_snapshot(self, session_id: int, balance: float, metrics, open_trades: int = 0) -> int:
        """
        Store a point-in-time summary of a session

        Args:
            session_id: Session row id
            balance: Current balance
            metrics: PerformanceMetrics of the session so far
            open_trades: Number of open positions (0 or 1)
        """
        cursor = self._execute(
            """INSERT INTO session_snapshots (session_id, created_at, balance, total_pnl, total_trades,
                                              open_trades, win_count, loss_count, win_rate, profit_factor,
                                              max_drawdown, max_drawdown_percent, avg_r_multiple, return_percent)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (session_id, _now(), balance, metrics.total_pnl, metrics.total_trades, open_trades,
             metrics.win_count, metrics.loss_count, metrics.win_rate, str(metrics.profit_factor.to_json()),
             metrics.max_drawdown, metrics.max_drawdown_percent, metrics.avg_r_multiple,
             metrics.return_percent),
        )
        return cursor.lastrowid

    def get_snapshots(self, session_id: int) -> List[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM session_snapshots WHERE session_id = ? ORDER BY id", (session_id,)
        )
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Backtests
    # ------------------------------------------------------------------

    def save_backtest(self, result, batch_size: int = BACKTEST_TRADE_BATCH_SIZE) -> int:
        """
        Store a BacktestResult; trades are written in batches of `batch_size`

        Returns:
            Backtest row id
        """
        metrics = result.metrics
        cursor = self._execute(
            """INSERT INTO backtests (symbol, timeframe, status, error_message, config_json, metrics_json,
                                      equity_curve_json, total_trades, win_rate, total_pnl, final_balance,
                                      profit_factor, sharpe_ratio, execution_time_ms, candles_processed,
                                      created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (result.symbol, result.timeframe, result.status, result.error_message,
             json.dumps(result.config.to_dict()), json.dumps(metrics.to_dict()),
             json.dumps([p.to_dict() for p in result.equity_curve]),
             metrics.total_trades, metrics.win_rate, metrics.total_pnl, metrics.final_balance,
             str(metrics.profit_factor.to_json()), metrics.sharpe_ratio, result.execution_time_ms,
             result.candles_processed, _now()),
        )
        backtest_id = cursor.lastrowid

        trades = list(result.trades)
        for i in range(0, len(trades), batch_size):
            batch = trades[i:i + batch_size]
            try:
                with self._lock, self._conn:
                    self._conn.executemany(
                        """INSERT INTO backtest_trades VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                                                               ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        [self._backtest_trade_row(backtest_id, t) for t in batch],
                    )
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to save backtest trades: {e}") from e

        logger.info(f"Backtest {backtest_id} saved ({len(trades)} trades)")
        return backtest_id

    @staticmethod
    def _backtest_trade_row(backtest_id: int, t: ClosedTrade) -> Tuple:
        return (
            backtest_id, t.trade_number, t.side.value,
            t.entry_price, t.entry_time, t.entry_zone.value, t.entry_reason,
            t.exit_price, t.exit_time, t.exit_zone.value, t.exit_reason,
            t.size, t.size_usd, t.stop_loss, t.take_profit,
            t.pnl_usd, t.pnl_percent, t.r_multiple,
            t.running_balance, t.running_pnl, t.drawdown,
            _real(t.fast_ma_at_entry), _real(t.slow_ma_at_entry), _real(t.atr_at_entry),
        )

    def get_backtest(self, backtest_id: int) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM backtests WHERE id = ?", (backtest_id,))
        if not rows:
            return None
        backtest = dict(rows[0])
        backtest['trades'] = [
            dict(r) for r in self._query(
                "SELECT * FROM backtest_trades WHERE backtest_id = ? ORDER BY trade_number", (backtest_id,)
            )
        ]
        return backtest
