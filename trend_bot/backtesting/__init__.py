from .engine import Backtester, BacktestResult, STATUS_COMPLETED, STATUS_FAILED

__all__ = ['Backtester', 'BacktestResult', 'STATUS_COMPLETED', 'STATUS_FAILED']
