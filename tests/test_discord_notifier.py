import requests

from trend_bot.integrations.discord_notifier import COLOR_GREEN, COLOR_RED, DiscordNotifier
from trend_bot.models import ClosedTrade, Position, Side, Zone


class FakeResponse:
    def __init__(self, ok=True, status_code=204):
        self.ok = ok
        self.status_code = status_code


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.response


def _position(side=Side.LONG):
    return Position(side=side, size=100, size_usd=5000.0, entry_price=50000.0, stop_loss=49500.0,
                    take_profit=51000.0, entry_time=0, entry_zone=Zone.DISCOUNT, entry_reason="crossover")


def _trade(pnl, reason):
    return ClosedTrade(
        trade_number=1, side=Side.SHORT, entry_price=100.0, entry_time=0, entry_zone=Zone.PREMIUM,
        entry_reason="crossover", exit_price=99.0, exit_time=1, exit_zone=Zone.DISCOUNT, exit_reason=reason,
        size=1, size_usd=100.0, stop_loss=101.0, take_profit=98.0, pnl_usd=pnl, pnl_percent=pnl,
        r_multiple=pnl, running_balance=10000.0 + pnl, running_pnl=pnl, drawdown=0.0,
        fast_ma_at_entry=0.0, slow_ma_at_entry=0.0, atr_at_entry=0.0,
    )


def test_disabled_without_webhook():
    session = FakeSession()
    notifier = DiscordNotifier(None, session=session)
    assert not notifier.enabled
    assert notifier.notify_trade_opened("BTC 5m", _position(), 100.0, 40) is False
    assert session.posts == []


def test_trade_opened_embed():
    session = FakeSession()
    notifier = DiscordNotifier("https://discord.test/webhook", session=session)
    assert notifier.notify_trade_opened("BTC 5m", _position(), 100.0, 40)

    url, payload, timeout = session.posts[0]
    embed = payload['embeds'][0]
    assert url == "https://discord.test/webhook"
    assert timeout == 10
    assert embed['color'] == COLOR_GREEN
    fields = {f['name']: f['value'] for f in embed['fields']}
    assert fields['Leverage'] == "40x"
    assert fields['Stop Loss'] == "$49500.00"
    assert 'timestamp' in embed


def test_trade_closed_outcomes():
    session = FakeSession()
    notifier = DiscordNotifier("https://discord.test/webhook", session=session)
    notifier.notify_trade_closed("Gold 5m", _trade(1.0, "tp"), 10001.0)
    notifier.notify_trade_closed("Gold 5m", _trade(-1.0, "sl"), 9999.0)
    notifier.notify_trade_closed("Gold 5m", _trade(-1.0, "zone_change"), 9998.0)

    embeds = [payload['embeds'][0] for _, payload, _ in session.posts]
    outcomes = [{f['name']: f['value'] for f in e['fields']}['Outcome'] for e in embeds]
    assert outcomes == ["🎯 Take Profit", "🛑 Stop Loss", "📊 Signal Exit"]
    assert [e['color'] for e in embeds] == [COLOR_GREEN, COLOR_RED, COLOR_RED]


def test_failures_are_swallowed():
    failing = DiscordNotifier("https://discord.test/webhook",
                              session=FakeSession(error=requests.ConnectionError("down")))
    assert failing.notify_trade_opened("BTC 5m", _position(), 1.0, 1) is False

    rejected = DiscordNotifier("https://discord.test/webhook",
                               session=FakeSession(response=FakeResponse(ok=False, status_code=400)))
    assert rejected.send_embed({'title': 'x'}) is False


def test_summary():
    session = FakeSession()
    notifier = DiscordNotifier("https://discord.test/webhook", session=session)
    notifier.notify_summary([
        {'name': 'BTC 5m', 'balance': 11000.0, 'initial_balance': 10000.0, 'wins': 3, 'losses': 1},
        {'name': 'Gold 5m', 'balance': 9500.0, 'initial_balance': 10000.0, 'wins': 1, 'losses': 2},
    ])
    fields = {f['name']: f['value'] for f in session.posts[0][1]['embeds'][0]['fields']}
    assert fields['Total Balance'] == "$20500.00"
    assert fields['Total Return'] == "+2.50%"
    assert "BTC 5m" in fields['Bot Performance']
