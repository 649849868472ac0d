from .generator import SignalGenerator, MarketAnalysis, ATR_PERIOD

__all__ = ['SignalGenerator', 'MarketAnalysis', 'ATR_PERIOD']
