"""
Trend Strategy Bot
Swing-range premium/discount zones + moving-average crossover strategy,
run either as a historical backtest or as an incremental paper-trading session.
"""

__version__ = "1.0.0"
