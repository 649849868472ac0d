"""
Technical indicators module for the trend strategy
Implements SMA, EMA, True Range, ATR, Standard Deviation, Pivot High/Low,
VWAP, RSI and ADX over ordered numeric sequences.

Every function is stateless: it recomputes over the full series supplied and
returns a numpy array of the same length, with NaN where the warm-up window
is not yet available.
"""

from typing import Dict, Sequence, Union

import numpy as np
import pandas as pd

Series = Union[Sequence[float], np.ndarray, pd.Series]


def _as_array(data: Series) -> np.ndarray:
    if isinstance(data, pd.Series):
        return data.to_numpy(dtype=float)
    return np.asarray(data, dtype=float)


class TechnicalIndicators:
    """Class containing all technical indicator calculations"""

    @staticmethod
    def sma(data: Series, period: int) -> np.ndarray:
        """
        Simple Moving Average

        Args:
            data: Price series (typically Close prices)
            period: Number of trailing samples averaged

        Returns:
            SMA array, NaN for the first period-1 values
        """
        values = _as_array(data)
        return pd.Series(values).rolling(window=period, min_periods=period).mean().to_numpy()

    @staticmethod
    def ema(data: Series, period: int) -> np.ndarray:
        """
        Exponential Moving Average

        The first value is the first sample, values before the seed index use a
        growing-window mean, the seed (index period-1) is the SMA of the first
        `period` samples, and after that the usual recurrence applies:
            ema[i] = (x[i] - ema[i-1]) * 2/(period+1) + ema[i-1]

        The warm-up approximation shifts crossover timing compared to a
        textbook EMA, so do not change it without re-validating strategies.
        """
        values = _as_array(data)
        n = len(values)
        result = np.full(n, np.nan)
        multiplier = 2.0 / (period + 1)

        for i in range(n):
            if i == 0:
                result[i] = values[0]
            elif i < period - 1:
                result[i] = values[:i + 1].sum() / (i + 1)
            elif i == period - 1:
                result[i] = values[i - period + 1:i + 1].sum() / period
            else:
                result[i] = (values[i] - result[i - 1]) * multiplier + result[i - 1]

        return result

    @staticmethod
    def true_range(highs: Series, lows: Series, closes: Series) -> np.ndarray:
        """
        True Range = max(high-low, |high-prevClose|, |low-prevClose|)
        The first bar has no previous close and uses high-low.
        """
        high = _as_array(highs)
        low = _as_array(lows)
        close = _as_array(closes)
        if len(high) == 0:
            return np.array([], dtype=float)

        tr1 = high - low
        prev_close = np.concatenate(([close[0]], close[:-1]))
        tr2 = np.abs(high - prev_close)
        tr3 = np.abs(low - prev_close)

        true_range = np.maximum(tr1, np.maximum(tr2, tr3))
        true_range[0] = tr1[0]
        return true_range

    @staticmethod
    def atr(highs: Series, lows: Series, closes: Series, period: int = 14) -> np.ndarray:
        """
        Average True Range (ATR)
        Simple moving average of the true range.
        """
        true_range = TechnicalIndicators.true_range(highs, lows, closes)
        return TechnicalIndicators.sma(true_range, period)

    @staticmethod
    def stdev(data: Series, period: int) -> np.ndarray:
        """Rolling population standard deviation"""
        values = _as_array(data)
        return pd.Series(values).rolling(window=period, min_periods=period).std(ddof=0).to_numpy()

    @staticmethod
    def pivot_high(highs: Series, left_bars: int, right_bars: int) -> np.ndarray:
        """
        Pivot High - Swing High Detection
        A bar is a pivot if its high is strictly greater than every high within
        `left_bars` before and `right_bars` after it.

        Returns:
            The pivot high at pivot bars, NaN elsewhere
        """
        values = _as_array(highs)
        n = len(values)
        result = np.full(n, np.nan)

        for i in range(left_bars, n - right_bars):
            window = np.concatenate((values[i - left_bars:i], values[i + 1:i + right_bars + 1]))
            if window.size == 0 or np.all(window < values[i]):
                result[i] = values[i]

        return result

    @staticmethod
    def pivot_low(lows: Series, left_bars: int, right_bars: int) -> np.ndarray:
        """
        Pivot Low - Swing Low Detection
        Mirror of pivot_high on lows.
        """
        values = _as_array(lows)
        n = len(values)
        result = np.full(n, np.nan)

        for i in range(left_bars, n - right_bars):
            window = np.concatenate((values[i - left_bars:i], values[i + 1:i + right_bars + 1]))
            if window.size == 0 or np.all(window > values[i]):
                result[i] = values[i]

        return result

    @staticmethod
    def vwap(highs: Series, lows: Series, closes: Series, volumes: Series) -> np.ndarray:
        """
        Volume Weighted Average Price
        Cumulative over the whole series (no session reset); falls back to the
        typical price while cumulative volume is zero.
        """
        high = _as_array(highs)
        low = _as_array(lows)
        close = _as_array(closes)
        volume = _as_array(volumes)

        typical_price = (high + low + close) / 3
        cumulative_tpv = np.cumsum(typical_price * volume)
        cumulative_volume = np.cumsum(volume)

        with np.errstate(divide='ignore', invalid='ignore'):
            vwap = cumulative_tpv / cumulative_volume
        return np.where(cumulative_volume > 0, vwap, typical_price)

    @staticmethod
    def rsi(closes: Series, period: int = 14) -> np.ndarray:
        """
        Relative Strength Index

        Neutral 50 until `period` changes are available; the first value uses
        plain average gain/loss, later values rebuild the previous average gain
        from the previous RSI and apply Wilder-style smoothing.
        """
        values = _as_array(closes)
        n = len(values)
        result = np.full(n, 50.0)
        if n == 0:
            return result

        change = np.diff(values, prepend=values[0])
        gains = np.where(change > 0, change, 0.0)
        losses = np.where(change < 0, -change, 0.0)

        for i in range(period, n):
            if i == 0:
                continue
            if i == period:
                avg_gain = gains[1:period + 1].sum() / period
                avg_loss = losses[1:period + 1].sum() / period
            else:
                prev_rsi = result[i - 1]
                if prev_rsi >= 100:
                    result[i] = 100.0
                    continue
                prev_avg_gain = (100 / (100 - prev_rsi) - 1) * (period - 1)
                prev_avg_loss = period - 1
                avg_gain = (prev_avg_gain * (period - 1) + gains[i]) / period
                avg_loss = (prev_avg_loss * (period - 1) + losses[i]) / period

            if avg_loss == 0:
                result[i] = 100.0
            else:
                rs = avg_gain / avg_loss
                result[i] = 100 - 100 / (1 + rs)

        return result

    @staticmethod
    def adx(highs: Series, lows: Series, closes: Series, period: int = 14) -> Dict[str, np.ndarray]:
        """
        ADX (Average Directional Index) - trend strength

        Directional movement and true range are smoothed with `ema`,
        DX = |+DI - -DI| / (+DI + -DI) * 100 and ADX is the EMA of DX.

        Returns:
            Dictionary with 'adx', 'plus_di' and 'minus_di' arrays
        """
        high = _as_array(highs)
        low = _as_array(lows)
        n = len(high)
        if n == 0:
            empty = np.array([], dtype=float)
            return {'adx': empty, 'plus_di': empty, 'minus_di': empty}

        up_move = np.concatenate(([0.0], high[1:] - high[:-1]))
        down_move = np.concatenate(([0.0], low[:-1] - low[1:]))

        plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
        minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

        tr = TechnicalIndicators.true_range(high, low, closes)
        smoothed_tr = TechnicalIndicators.ema(tr, period)
        smoothed_plus = TechnicalIndicators.ema(plus_dm, period)
        smoothed_minus = TechnicalIndicators.ema(minus_dm, period)

        with np.errstate(divide='ignore', invalid='ignore'):
            plus_di = np.where(smoothed_tr > 0, smoothed_plus / smoothed_tr * 100, 0.0)
            minus_di = np.where(smoothed_tr > 0, smoothed_minus / smoothed_tr * 100, 0.0)
            di_sum = plus_di + minus_di
            dx = np.where(di_sum > 0, np.abs(plus_di - minus_di) / di_sum * 100, 0.0)

        return {
            'adx': TechnicalIndicators.ema(dx, period),
            'plus_di': plus_di,
            'minus_di': minus_di,
        }
