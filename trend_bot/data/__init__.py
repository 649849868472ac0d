from .sources import (
    CandleSource,
    HttpCandleSource,
    HyperliquidCandleSource,
    MexcCandleSource,
    TwelveDataCandleSource,
    YahooCandleSource,
    CsvCandleSource,
    StaticCandleSource,
    create_candle_source,
    create_http_session,
)
from .frames import candles_to_frame, frame_to_candles

__all__ = [
    'CandleSource',
    'HttpCandleSource',
    'HyperliquidCandleSource',
    'MexcCandleSource',
    'TwelveDataCandleSource',
    'YahooCandleSource',
    'CsvCandleSource',
    'StaticCandleSource',
    'create_candle_source',
    'create_http_session',
    'candles_to_frame',
    'frame_to_candles',
]
