from .bot import LiveTradingBot
from .runner import SessionRunner, select_sessions

__all__ = [
    'LiveTradingBot',
    'SessionRunner',
    'select_sessions',
]
