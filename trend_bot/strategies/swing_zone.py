"""
Swing point tracking and premium/discount zone classification

A swing high is the candle `swing_length` bars back from the newest candle
when no other candle within +/- swing_length of it has a high >= its high
(swing low: no low <= its low). Only the latest swing of each polarity is kept;
together they define the range whose midpoint splits premium from discount.
"""

from typing import Optional, Sequence, Tuple

from loguru import logger

from trend_bot.models import Candle, EngineState, SwingPoint, Zone


def classify_zone(range_high: Optional[float], range_low: Optional[float], close: float) -> Zone:
    """
    Classify the latest close against the range midpoint

    Args:
        range_high: Price of the latest swing high (None until confirmed)
        range_low: Price of the latest swing low (None until confirmed)
        close: Latest close

    Returns:
        PREMIUM above the midpoint, DISCOUNT below, EQUILIBRIUM on it or
        while the range is not yet known
    """
    if range_high is None or range_low is None:
        return Zone.EQUILIBRIUM

    equilibrium = range_low + (range_high - range_low) * 0.5
    if close > equilibrium:
        return Zone.PREMIUM
    if close < equilibrium:
        return Zone.DISCOUNT
    return Zone.EQUILIBRIUM


class SwingTracker:
    """Maintains the latest confirmed swing high/low on an EngineState"""

    def __init__(self, swing_length: int, state: EngineState):
        self.swing_length = swing_length
        self.state = state

    def update(self, candles: Sequence[Candle]) -> Tuple[Optional[SwingPoint], Optional[SwingPoint]]:
        """
        Evaluate the pivot candidate for the newest candle (single O(window) pass)

        Returns:
            (new swing high or None, new swing low or None)
        """
        length = self.swing_length
        if len(candles) < length * 2 + 1:
            return None, None

        pivot_index = len(candles) - 1 - length
        pivot = candles[pivot_index]

        is_swing_high = True
        is_swing_low = True
        for i in range(pivot_index - length, pivot_index + length + 1):
            if i == pivot_index:
                continue
            if candles[i].high >= pivot.high:
                is_swing_high = False
            if candles[i].low <= pivot.low:
                is_swing_low = False

        new_high = None
        new_low = None
        if is_swing_high:
            new_high = SwingPoint(price=pivot.high, timestamp=pivot.timestamp, index=pivot_index)
            self.state.last_swing_high = new_high
            logger.debug(f"[Swing] New swing HIGH: {pivot.high}")
        if is_swing_low:
            new_low = SwingPoint(price=pivot.low, timestamp=pivot.timestamp, index=pivot_index)
            self.state.last_swing_low = new_low
            logger.debug(f"[Swing] New swing LOW: {pivot.low}")

        self._update_range()
        return new_high, new_low

    def _update_range(self):
        if self.state.last_swing_high is None or self.state.last_swing_low is None:
            return
        self.state.range_high = self.state.last_swing_high.price
        self.state.range_low = self.state.last_swing_low.price

    @property
    def equilibrium(self) -> Optional[float]:
        if self.state.range_high is None or self.state.range_low is None:
            return None
        return self.state.range_low + (self.state.range_high - self.state.range_low) * 0.5

    def zone(self, close: float) -> Zone:
        return classify_zone(self.state.range_high, self.state.range_low, close)
