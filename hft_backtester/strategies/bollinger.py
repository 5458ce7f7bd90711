"""
Bollinger Bands mean-reversion strategy.

Buys below the lower band, sells above the upper band, and exits toward the
moving average.
"""

from collections import deque
from typing import Deque, Optional, Tuple

import numpy as np

from hft_backtester.exceptions import DataValidationError
from hft_backtester.strategies.base import Action, Signal, Strategy


class BollingerBandsStrategy(Strategy):
    """
    Bollinger Bands over a rolling window of prices.

    Once ``period`` prices have been seen, each call computes the simple
    moving average and the population standard deviation of the window and
    sets the bands at ``sma ± std_dev * sigma``. Decisions are taken against
    the bands that include the current price, checked in this order:

    - price below lower band: BUY
    - price above upper band: SELL
    - price at or above SMA: EXIT_LONG
    - price at or below SMA: EXIT_SHORT

    Until the window is full every call returns HOLD.

    Attributes:
        period: Window length in samples
        std_dev: Band width in standard deviations

    Example:
        >>> strategy = BollingerBandsStrategy(period=3, std_dev=1.0)
        >>> [strategy.signal(p).action.value for p in (10.0, 10.0, 10.0)]
        ['HOLD', 'HOLD', 'EXIT_LONG']
    """

    name = "bollinger"

    def __init__(self, period: int = 100, std_dev: float = 1.0):
        if period < 1:
            raise DataValidationError(
                "Bollinger period must be at least 1",
                field="period",
                value=period,
                expected=">= 1",
            )
        if std_dev <= 0:
            raise DataValidationError(
                "Bollinger standard deviation multiplier must be positive",
                field="std_dev",
                value=std_dev,
                expected="> 0",
            )

        self.period = int(period)
        self.std_dev = float(std_dev)
        self._prices: Deque[float] = deque(maxlen=self.period)
        self._bands: Optional[Tuple[float, float, float]] = None

    @property
    def bands(self) -> Optional[Tuple[float, float, float]]:
        """Latest (lower, sma, upper), or None before the window fills."""
        return self._bands

    @property
    def is_ready(self) -> bool:
        return self._bands is not None

    def update(self, price: float) -> None:
        """Push a price into the window and refresh the bands."""
        self._prices.append(price)

        if len(self._prices) < self.period:
            return

        window = np.fromiter(self._prices, dtype=float, count=len(self._prices))
        sma = float(window.mean())
        sigma = float(window.std())  # ddof=0: population deviation
        self._bands = (sma - self.std_dev * sigma, sma, sma + self.std_dev * sigma)

    def signal(self, price: float) -> Signal:
        self.update(price)

        if self._bands is None:
            return Signal(Action.HOLD, price)

        lower, sma, upper = self._bands

        if price < lower:
            action = Action.BUY
        elif price > upper:
            action = Action.SELL
        elif price >= sma:
            action = Action.EXIT_LONG
        elif price <= sma:
            action = Action.EXIT_SHORT
        else:
            action = Action.HOLD

        return Signal(action, price)

    def reset(self) -> None:
        self._prices.clear()
        self._bands = None

    def __repr__(self) -> str:
        return f"BollingerBandsStrategy(period={self.period}, std_dev={self.std_dev})"
