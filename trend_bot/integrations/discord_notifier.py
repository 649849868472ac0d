"""
Discord Webhook Integration - Send trade notifications to a Discord channel
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from trend_bot.models import ClosedTrade, Position, Side, EXIT_STOP_LOSS, EXIT_TAKE_PROFIT

# Discord embed colors
COLOR_GREEN = 5763719
COLOR_RED = 15548997


def _side_label(side: Side) -> str:
    return "🟢 LONG" if side is Side.LONG else "🔴 SHORT"


def _signed_money(amount: float) -> str:
    return f"+${amount:.2f}" if amount >= 0 else f"-${abs(amount):.2f}"


class DiscordNotifier:
    """Send trade events to a Discord webhook (best effort)"""

    def __init__(self, webhook_url: Optional[str], session: Optional[requests.Session] = None, timeout: int = 10):
        """
        Args:
            webhook_url: Discord webhook URL; notifications are disabled without one
            session: Optional requests session (shared connection pool)
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self.enabled = bool(webhook_url)

        if self.enabled:
            logger.info("✅ Discord notifier initialized")
        else:
            logger.debug("Discord notifier disabled (no webhook URL)")

    def send_embed(self, embed: Dict[str, Any]) -> bool:
        """Post one embed; returns False (and logs) on any failure"""
        if not self.enabled:
            return False

        embed.setdefault('timestamp', datetime.now(timezone.utc).isoformat())
        try:
            response = self._session.post(self.webhook_url, json={'embeds': [embed]}, timeout=self.timeout)
            if not response.ok:
                logger.error(f"Discord webhook failed: {response.status_code}")
                return False
            return True
        except requests.RequestException as e:
            logger.error(f"Discord webhook error: {e}")
            return False

    def notify_trade_opened(self, bot_name: str, position: Position, risk_usd: float, leverage: float) -> bool:
        is_long = position.side is Side.LONG
        embed = {
            'title': "🔔 Trade Opened",
            'color': COLOR_GREEN if is_long else COLOR_RED,
            'fields': [
                {'name': "Bot", 'value': bot_name, 'inline': False},
                {'name': "Side", 'value': _side_label(position.side), 'inline': True},
                {'name': "Leverage", 'value': f"{leverage:g}x", 'inline': True},
                {'name': "Entry Price", 'value': f"${position.entry_price:.2f}", 'inline': True},
                {'name': "Position Size", 'value': f"${position.size_usd:.2f}", 'inline': True},
                {'name': "Stop Loss", 'value': f"${position.stop_loss:.2f}", 'inline': True},
                {'name': "Take Profit", 'value': f"${position.take_profit:.2f}", 'inline': True},
                {'name': "Risk", 'value': f"${risk_usd:.2f}", 'inline': True},
            ],
        }
        return self.send_embed(embed)

    def notify_trade_closed(self, bot_name: str, trade: ClosedTrade, balance: float) -> bool:
        is_win = trade.pnl_usd >= 0
        if trade.exit_reason == EXIT_TAKE_PROFIT:
            outcome = "🎯 Take Profit"
        elif trade.exit_reason == EXIT_STOP_LOSS:
            outcome = "🛑 Stop Loss"
        else:
            outcome = "📊 Signal Exit"

        percent_sign = "+" if is_win else ""
        embed = {
            'title': "🔔 Trade Closed",
            'color': COLOR_GREEN if is_win else COLOR_RED,
            'fields': [
                {'name': "Bot", 'value': bot_name, 'inline': False},
                {'name': "Outcome", 'value': outcome, 'inline': True},
                {'name': "Side", 'value': _side_label(trade.side), 'inline': True},
                {'name': "Entry", 'value': f"${trade.entry_price:.2f}", 'inline': True},
                {'name': "Exit", 'value': f"${trade.exit_price:.2f}", 'inline': True},
                {'name': "P&L", 'value': _signed_money(trade.pnl_usd), 'inline': True},
                {'name': "Return", 'value': f"{percent_sign}{trade.pnl_percent:.2f}%", 'inline': True},
                {'name': "Balance", 'value': f"${balance:.2f}", 'inline': False},
            ],
        }
        return self.send_embed(embed)

    def notify_summary(self, bots: List[Dict[str, Any]]) -> bool:
        """
        Summary across sessions

        Args:
            bots: Dicts with name, balance, initial_balance, wins, losses
        """
        total_balance = sum(b['balance'] for b in bots)
        total_initial = sum(b['initial_balance'] for b in bots)
        total_return = ((total_balance - total_initial) / total_initial) * 100 if total_initial > 0 else 0.0

        lines = []
        for b in bots:
            perf = ((b['balance'] - b['initial_balance']) / b['initial_balance']) * 100 if b['initial_balance'] > 0 else 0.0
            lines.append(
                f"**{b['name']}**\nBalance: ${b['balance']:.2f} ({perf:+.2f}%)\n{b['wins']}W/{b['losses']}L"
            )

        embed = {
            'title': "📊 Session Summary",
            'color': COLOR_GREEN if total_balance >= total_initial else COLOR_RED,
            'fields': [
                {'name': "Total Balance", 'value': f"${total_balance:.2f}", 'inline': True},
                {'name': "Total Return", 'value': f"{total_return:+.2f}%", 'inline': True},
                {'name': "Bot Performance", 'value': "\n\n".join(lines) or "No data", 'inline': False},
            ],
        }
        return self.send_embed(embed)
