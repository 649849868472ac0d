"""
Market data sources
Every source exposes get_candles(symbol, timeframe, limit) returning
ascending candles without duplicate timestamps. The variant is chosen once,
by name, through create_candle_source.
"""

import math
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import requests
import yfinance as yf
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from trend_bot.config.settings import interval_ms, validate_timeframe
from trend_bot.data.frames import frame_to_candles
from trend_bot.exceptions import ConfigurationError, DataSourceError
from trend_bot.models import Candle
from trend_bot.utils.helpers import to_epoch_ms


def create_http_session(user_agent: str = "trend-bot/1.0") -> requests.Session:
    """HTTP session with connection pooling and retry on transient errors"""
    session = requests.Session()

    # Retry strategy: exponential backoff for transient errors
    retry_strategy = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["POST", "GET"]
    )

    adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({'User-Agent': user_agent})

    return session


def _dedupe_sorted(candles: List[Candle]) -> List[Candle]:
    by_timestamp = {c.timestamp: c for c in candles}
    return [by_timestamp[ts] for ts in sorted(by_timestamp)]


class CandleSource(ABC):
    """Market data capability shared by the batch and streaming drivers"""

    name = "abstract"

    @abstractmethod
    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        """
        Fetch the latest candles

        Args:
            symbol: Instrument in the session's notation (e.g. BTC_USDT, XAU/USD)
            timeframe: Timeframe code (Min1 .. Day1)
            limit: Maximum number of candles returned (newest kept)

        Returns:
            Candles oldest first

        Raises:
            DataSourceError: fetch or parse failure
        """

    def close(self):
        pass


class HttpCandleSource(CandleSource):
    """Base for REST adapters sharing one retrying requests.Session"""

    timeout = 10

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session or create_http_session()

    def _request_json(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise DataSourceError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"{self.name} returned invalid JSON") from e

    def close(self):
        self._session.close()


class HyperliquidCandleSource(HttpCandleSource):
    """Hyperliquid public info endpoint (candleSnapshot)"""

    name = "hyperliquid"
    BASE_URL = "https://api.hyperliquid.xyz/info"

    INTERVALS = {
        'Min1': '1m',
        'Min5': '5m',
        'Min15': '15m',
        'Min30': '30m',
        'Min60': '1h',
        'Hour4': '4h',
        'Day1': '1d',
    }

    @staticmethod
    def normalize_symbol(symbol: str) -> str:
        """BTC_USDT / BTC-PERP -> BTC"""
        for suffix in ('_USDT', '_USDC', '-PERP', '-SPOT'):
            symbol = symbol.replace(suffix, '')
        return symbol

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        step = interval_ms(timeframe)

        coin = self.normalize_symbol(symbol)
        end_time = int(time.time() * 1000)
        start_time = end_time - limit * step

        payload = {
            "type": "candleSnapshot",
            "req": {
                "coin": coin,
                "interval": self.INTERVALS[timeframe],
                "startTime": start_time,
                "endTime": end_time,
            },
        }
        data = self._request_json("POST", self.BASE_URL, json=payload)
        if not isinstance(data, list):
            raise DataSourceError(f"Unexpected Hyperliquid candle response: {data}")

        try:
            candles = [
                Candle(
                    timestamp=int(c['t']),
                    open=float(c['o']),
                    high=float(c['h']),
                    low=float(c['l']),
                    close=float(c['c']),
                    volume=float(c.get('v', 0) or 0),
                )
                for c in data
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed Hyperliquid candle: {e}") from e

        return _dedupe_sorted(candles)[-limit:]


class MexcCandleSource(HttpCandleSource):
    """MEXC futures public kline endpoint (no authentication)"""

    name = "mexc"
    BASE_URL = "https://contract.mexc.com"

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        validate_timeframe(timeframe)
        url = f"{self.BASE_URL}/api/v1/contract/kline/{symbol}"
        data = self._request_json("GET", url, params={'interval': timeframe})

        if not isinstance(data, dict) or not data.get('success'):
            code, msg = (data.get('code'), data.get('msg')) if isinstance(data, dict) else (None, data)
            raise DataSourceError(f"MEXC API Error: {code} - {msg}")

        payload = data.get('data')
        try:
            if isinstance(payload, list):
                rows = payload
            elif isinstance(payload, dict) and payload.get('time'):
                # Columnar arrays -> rows
                rows = [
                    {
                        'time': t,
                        'open': payload['open'][i],
                        'high': payload['high'][i],
                        'low': payload['low'][i],
                        'close': payload['close'][i],
                        'vol': payload['vol'][i],
                    }
                    for i, t in enumerate(payload['time'])
                ]
            else:
                rows = []

            candles = [
                Candle(
                    timestamp=int(row['time']) * 1000,
                    open=float(row['open']),
                    high=float(row['high']),
                    low=float(row['low']),
                    close=float(row['close']),
                    volume=float(row.get('vol', 0) or 0),
                )
                for row in rows
            ]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed MEXC kline data: {e}") from e

        return _dedupe_sorted(candles)[-limit:]


class TwelveDataCandleSource(HttpCandleSource):
    """Twelve Data time_series (forex / metals)"""

    name = "twelvedata"
    BASE_URL = "https://api.twelvedata.com/time_series"
    MAX_OUTPUT_SIZE = 5000

    INTERVALS = {
        'Min1': '1min',
        'Min5': '5min',
        'Min15': '15min',
        'Min30': '30min',
        'Min60': '1h',
        'Hour4': '4h',
        'Day1': '1day',
    }

    def __init__(self, api_key: Optional[str], session: Optional[requests.Session] = None):
        if not api_key:
            raise ConfigurationError("TWELVEDATA_API_KEY is required for the twelvedata source")
        super().__init__(session)
        self.api_key = api_key

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        validate_timeframe(timeframe)
        params = {
            'symbol': symbol,
            'interval': self.INTERVALS[timeframe],
            'outputsize': min(limit, self.MAX_OUTPUT_SIZE),
            'timezone': 'UTC',
            'apikey': self.api_key,
        }
        data = self._request_json("GET", self.BASE_URL, params=params)

        if not isinstance(data, dict):
            raise DataSourceError(f"Unexpected Twelve Data response: {data}")
        if data.get('status') == 'error':
            raise DataSourceError(f"Twelve Data error: {data.get('message', 'unknown error')}")

        try:
            # Newest first in the response
            candles = [
                Candle(
                    timestamp=to_epoch_ms(row['datetime']),
                    open=float(row['open']),
                    high=float(row['high']),
                    low=float(row['low']),
                    close=float(row['close']),
                    volume=float(row.get('volume', 0) or 0),
                )
                for row in reversed(data.get('values', []))
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed Twelve Data values: {e}") from e

        return _dedupe_sorted(candles)[-limit:]


class YahooCandleSource(CandleSource):
    """Yahoo Finance via yfinance (backtests and research; intraday history is limited)"""

    name = "yahoo"

    SYMBOL_MAPPING = {
        'BTC_USDT': 'BTC-USD',
        'ETH_USDT': 'ETH-USD',
        'XAU/USD': 'GC=F',
    }

    INTERVALS = {
        'Min1': '1m',
        'Min5': '5m',
        'Min15': '15m',
        'Min30': '30m',
        'Min60': '60m',
        'Hour4': '60m',             # resampled to 4h
        'Day1': '1d',
    }

    # Maximum intraday lookback Yahoo serves per interval
    MAX_LOOKBACK_DAYS = {
        '1m': 7,
        '5m': 59,
        '15m': 59,
        '30m': 59,
        '60m': 729,
    }

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        validate_timeframe(timeframe)
        ticker_symbol = self.SYMBOL_MAPPING.get(symbol, symbol)
        interval = self.INTERVALS[timeframe]

        days = math.ceil(limit * interval_ms(timeframe) / 86_400_000) + 2
        days = min(days, self.MAX_LOOKBACK_DAYS.get(interval, days))
        start = datetime.now(timezone.utc) - timedelta(days=days)

        try:
            data = yf.Ticker(ticker_symbol).history(start=start, interval=interval)
        except Exception as e:
            raise DataSourceError(f"Yahoo Finance error for {ticker_symbol}: {e}") from e

        if data is None or data.empty:
            raise DataSourceError(f"No data received for {ticker_symbol}")

        if timeframe == 'Hour4':
            data = data.resample('4h').agg({
                'Open': 'first', 'High': 'max', 'Low': 'min', 'Close': 'last', 'Volume': 'sum',
            }).dropna(subset=['Close'])

        logger.debug(f"Fetched {len(data)} records for {ticker_symbol}")
        return frame_to_candles(data)[-limit:]


class CsvCandleSource(CandleSource):
    """
    Historical candles from a CSV file

    Supported layouts:
        timestamp,open,high,low,close[,volume]   (epoch s/ms or date strings)
        date,open,high,low,close[,volume]
        MT5 export: <DATE>\\t<TIME>\\t<OPEN>\\t<HIGH>\\t<LOW>\\t<CLOSE>\\t<TICKVOL>...
    """

    name = "csv"

    def __init__(self, path: str):
        self.path = path
        self._candles: Optional[List[Candle]] = None

    def load(self) -> List[Candle]:
        if self._candles is None:
            self._candles = self._read()
            logger.info(f"Loaded {len(self._candles)} candles from {self.path}")
        return self._candles

    def _read(self) -> List[Candle]:
        try:
            frame = pd.read_csv(self.path, sep=None, engine='python')
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise DataSourceError(f"Cannot read {self.path}: {e}") from e

        frame.columns = [str(c).strip().strip('<>').lower() for c in frame.columns]

        if 'date' in frame.columns and 'time' in frame.columns:
            stamps = frame['date'].astype(str).str.replace('.', '-', regex=False) + ' ' + frame['time'].astype(str)
            frame = frame.drop(columns=['date', 'time'])
        else:
            time_col = next((c for c in ('timestamp', 'time', 'datetime', 'date') if c in frame.columns), None)
            if time_col is None:
                raise DataSourceError(f"{self.path}: no timestamp/date column found")
            stamps = frame[time_col]
            frame = frame.drop(columns=[time_col])

        try:
            if pd.api.types.is_numeric_dtype(stamps):
                timestamps = [to_epoch_ms(float(v)) for v in stamps]
            else:
                timestamps = [to_epoch_ms(str(v)) for v in stamps]
            frame = frame.assign(timestamp=timestamps)
            return frame_to_candles(frame)
        except ValueError as e:
            raise DataSourceError(f"{self.path}: {e}") from e

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        return self.load()[-limit:]


class StaticCandleSource(CandleSource):
    """In-memory candles (tests, replays); `extend` simulates newly closed candles"""

    name = "static"

    def __init__(self, candles: Optional[Sequence[Candle]] = None):
        self.candles: List[Candle] = list(candles or [])

    def extend(self, candles: Sequence[Candle]):
        self.candles.extend(candles)

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        return list(self.candles[-limit:])


SOURCES: Dict[str, type] = {
    'hyperliquid': HyperliquidCandleSource,
    'mexc': MexcCandleSource,
    'twelvedata': TwelveDataCandleSource,
    'yahoo': YahooCandleSource,
    'csv': CsvCandleSource,
    'static': StaticCandleSource,
}


def create_candle_source(name: str, **kwargs) -> CandleSource:
    """
    Resolve a data source by name

    Args:
        name: hyperliquid | mexc | twelvedata | yahoo | csv | static
        **kwargs: Constructor arguments of the chosen source
            (api_key for twelvedata, path for csv, candles for static)

    Raises:
        ConfigurationError: unknown source name or missing arguments
    """
    source_cls = SOURCES.get(name.lower())
    if source_cls is None:
        raise ConfigurationError(f"Unknown data source: {name}. Supported: {', '.join(SOURCES)}")
    try:
        return source_cls(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid arguments for data source {name}: {e}") from e
