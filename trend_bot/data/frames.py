"""
Conversions between Candle lists and pandas DataFrames
"""

from typing import Dict, List, Sequence

import pandas as pd

from trend_bot.models import Candle

OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """
    Candles -> DataFrame indexed by UTC datetime

    Columns: timestamp (epoch ms), open, high, low, close, volume
    """
    frame = pd.DataFrame(
        [(c.timestamp, c.open, c.high, c.low, c.close, c.volume) for c in candles],
        columns=['timestamp'] + OHLCV_COLUMNS,
    )
    frame.index = pd.to_datetime(frame['timestamp'], unit='ms', utc=True)
    frame.index.name = 'datetime'
    return frame


def _standardize_columns(frame: pd.DataFrame) -> Dict[str, str]:
    mapping = {}
    for col in frame.columns:
        key = str(col).strip().strip('<>').lower()
        if key in ('vol', 'tickvol', 'tick_volume'):
            key = 'volume'
        if key in OHLCV_COLUMNS and key not in mapping.values():
            mapping[col] = key
    return mapping


def frame_to_candles(frame: pd.DataFrame) -> List[Candle]:
    """
    DataFrame -> Candles (ascending, one candle per timestamp)

    Accepts either a `timestamp` column in epoch ms or a DatetimeIndex
    (e.g. yfinance output with Open/High/Low/Close/Volume columns).
    Rows with a missing price are dropped.
    """
    if frame is None or frame.empty:
        return []

    data = frame.rename(columns=_standardize_columns(frame))
    missing = [c for c in OHLCV_COLUMNS[:4] if c not in data.columns]
    if missing:
        raise ValueError(f"Missing price columns: {missing}")
    if 'volume' not in data.columns:
        data = data.assign(volume=0.0)

    if 'timestamp' in data.columns:
        timestamps = data['timestamp'].astype('int64')
    else:
        index = pd.DatetimeIndex(data.index)
        if index.tz is None:
            index = index.tz_localize('UTC')
        epoch_ms = (index - pd.Timestamp(0, tz='UTC')) // pd.Timedelta(milliseconds=1)
        timestamps = pd.Series(epoch_ms, index=data.index)

    data = data.assign(timestamp=timestamps.values)[['timestamp'] + OHLCV_COLUMNS]
    data = data.dropna(subset=OHLCV_COLUMNS[:4])
    data = data.drop_duplicates(subset='timestamp', keep='last').sort_values('timestamp')

    return [
        Candle(
            timestamp=int(row.timestamp),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume) if pd.notna(row.volume) else 0.0,
        )
        for row in data.itertuples(index=False)
    ]
