import pandas as pd
import pytest
import requests

from trend_bot.config.settings import TIMEFRAME_MS
from trend_bot.data import sources
from trend_bot.data.sources import (
    CsvCandleSource,
    HyperliquidCandleSource,
    MexcCandleSource,
    StaticCandleSource,
    TwelveDataCandleSource,
    YahooCandleSource,
    create_candle_source,
)
from trend_bot.exceptions import ConfigurationError, DataSourceError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, payload, status_code=200):
        self.response = FakeResponse(payload, status_code)
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs))
        return self.response

    def close(self):
        pass


def test_hyperliquid_parses_and_sorts():
    payload = [
        {'t': 2000, 'o': '2', 'h': '3', 'l': '1', 'c': '2.5', 'v': '10'},
        {'t': 1000, 'o': '1', 'h': '2', 'l': '0.5', 'c': '1.5', 'v': '5'},
    ]
    session = FakeSession(payload)
    candles = HyperliquidCandleSource(session=session).get_candles("BTC_USDT", "Min5", 100)

    assert [c.timestamp for c in candles] == [1000, 2000]
    assert candles[1].close == 2.5
    method, _, kwargs = session.requests[0]
    assert method == "POST"
    assert kwargs['json']['type'] == "candleSnapshot"
    assert kwargs['json']['req']['coin'] == "BTC"
    assert kwargs['json']['req']['interval'] == "5m"


def test_hyperliquid_uses_shared_timeframe_table():
    session = FakeSession([])
    source = HyperliquidCandleSource(session=session)
    with pytest.raises(ConfigurationError):
        source.get_candles("BTC", "Hour1", 10)
    assert session.requests == []
    assert set(HyperliquidCandleSource.INTERVALS) == set(TIMEFRAME_MS)


def test_hyperliquid_unexpected_payload():
    with pytest.raises(DataSourceError):
        HyperliquidCandleSource(session=FakeSession({'error': 'bad'})).get_candles("BTC", "Min5", 10)


def test_http_errors_become_data_source_errors():
    with pytest.raises(DataSourceError):
        HyperliquidCandleSource(session=FakeSession([], status_code=500)).get_candles("BTC", "Min5", 10)
    with pytest.raises(DataSourceError):
        MexcCandleSource(session=FakeSession(ValueError("no json"))).get_candles("BTC_USDT", "Min5", 10)


def test_mexc_columnar_payload_in_seconds():
    payload = {
        'success': True,
        'data': {
            'time': [1700000000, 1700000300],
            'open': [1, 2], 'high': [2, 3], 'low': [0.5, 1.5], 'close': [1.5, 2.5], 'vol': [10, 20],
        },
    }
    session = FakeSession(payload)
    candles = MexcCandleSource(session=session).get_candles("BTC_USDT", "Min5", 1)

    assert len(candles) == 1
    assert candles[0].timestamp == 1700000300 * 1000
    assert session.requests[0][2]['params'] == {'interval': 'Min5'}


def test_mexc_api_error():
    session = FakeSession({'success': False, 'code': 510, 'msg': 'rate limited'})
    with pytest.raises(DataSourceError, match="510"):
        MexcCandleSource(session=session).get_candles("BTC_USDT", "Min5", 10)


def test_twelvedata_reverses_newest_first():
    payload = {
        'status': 'ok',
        'values': [
            {'datetime': '2024-01-01 00:05:00', 'open': '2', 'high': '3', 'low': '1', 'close': '2.5'},
            {'datetime': '2024-01-01 00:00:00', 'open': '1', 'high': '2', 'low': '0.5', 'close': '1.5'},
        ],
    }
    session = FakeSession(payload)
    candles = TwelveDataCandleSource("key", session=session).get_candles("XAU/USD", "Min5", 10)

    assert [c.close for c in candles] == [1.5, 2.5]
    assert candles[0].timestamp == 1_704_067_200_000
    params = session.requests[0][2]['params']
    assert params['interval'] == '5min'
    assert params['outputsize'] == 10


def test_twelvedata_error_status_and_missing_key():
    session = FakeSession({'status': 'error', 'message': 'invalid symbol'})
    with pytest.raises(DataSourceError, match="invalid symbol"):
        TwelveDataCandleSource("key", session=session).get_candles("XXX", "Min5", 10)
    with pytest.raises(ConfigurationError):
        TwelveDataCandleSource(None)


def test_yahoo_uses_symbol_mapping(monkeypatch):
    index = pd.date_range("2024-01-01", periods=3, freq="5min", tz="UTC")
    frame = pd.DataFrame({'Open': [1, 2, 3], 'High': [2, 3, 4], 'Low': [0, 1, 2],
                          'Close': [1.5, 2.5, 3.5], 'Volume': [10, 10, 10]}, index=index)
    requested = []

    class FakeTicker:
        def __init__(self, symbol):
            requested.append(symbol)

        def history(self, start=None, interval=None):
            return frame

    monkeypatch.setattr(sources.yf, "Ticker", FakeTicker)
    candles = YahooCandleSource().get_candles("BTC_USDT", "Min5", 2)

    assert requested == ["BTC-USD"]
    assert [c.close for c in candles] == [2.5, 3.5]
    assert candles[-1].timestamp == 1_704_067_200_000 + 10 * 60 * 1000


def test_yahoo_empty_frame(monkeypatch):
    class EmptyTicker:
        def __init__(self, symbol):
            pass

        def history(self, start=None, interval=None):
            return pd.DataFrame()

    monkeypatch.setattr(sources.yf, "Ticker", EmptyTicker)
    with pytest.raises(DataSourceError):
        YahooCandleSource().get_candles("GC=F", "Min15", 10)


def test_csv_with_timestamp_column(tmp_path):
    path = tmp_path / "candles.csv"
    path.write_text(
        "timestamp,open,high,low,close,volume\n"
        "1704067500000,2,3,1,2.5,20\n"
        "1704067200000,1,2,0.5,1.5,10\n"
        "1704067200000,1,2,0.5,1.6,10\n"
    )
    source = CsvCandleSource(str(path))
    candles = source.load()

    assert [c.timestamp for c in candles] == [1704067200000, 1704067500000]
    assert candles[0].close == 1.6
    assert source.get_candles("ANY", "Min5", 1) == candles[-1:]


def test_csv_mt5_export(tmp_path):
    path = tmp_path / "XAUUSD_M5.csv"
    path.write_text(
        "<DATE>\t<TIME>\t<OPEN>\t<HIGH>\t<LOW>\t<CLOSE>\t<TICKVOL>\t<SPREAD>\n"
        "2024.01.01\t00:00:00\t2060.1\t2061.0\t2059.5\t2060.5\t120\t20\n"
        "2024.01.01\t00:05:00\t2060.5\t2062.0\t2060.0\t2061.8\t140\t20\n"
    )
    candles = CsvCandleSource(str(path)).load()

    assert len(candles) == 2
    assert candles[0].timestamp == 1_704_067_200_000
    assert candles[1].close == 2061.8
    assert candles[1].volume == 140


def test_csv_missing_file():
    with pytest.raises(DataSourceError):
        CsvCandleSource("/nonexistent/candles.csv").load()


def test_create_candle_source(candle_factory):
    source = create_candle_source("static", candles=candle_factory([1, 2, 3]))
    assert isinstance(source, StaticCandleSource)
    assert [c.close for c in source.get_candles("X", "Min5", 2)] == [2, 3]

    with pytest.raises(ConfigurationError):
        create_candle_source("binance")
    with pytest.raises(ConfigurationError):
        create_candle_source("csv")
