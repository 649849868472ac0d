"""
Error taxonomy shared by the engine, drivers and adapters
"""


class TrendBotError(Exception):
    """Base class for all trend_bot errors"""


class ConfigurationError(TrendBotError):
    """Invalid configuration, unsupported timeframe or insufficient warm-up data"""


class DataSourceError(TrendBotError):
    """Market data could not be fetched or parsed (transient)"""


class PersistenceError(TrendBotError):
    """Storage operation failed"""
