"""
Trade identifier generation.

Identifiers are derived from a nanosecond clock and are strictly increasing
per generator, even when two calls land on the same clock tick.
"""

import threading
import time
from typing import Callable


class TradeIdGenerator:
    """
    Thread-safe monotonic trade id source.

    Each generator owns its own counter, so separate backtest runs can use
    separate generators (or share one across threads) without touching any
    module-level state.

    Args:
        clock: Callable returning an integer timestamp (defaults to time.time_ns)
        prefix: String prepended to the numeric id

    Example:
        >>> gen = TradeIdGenerator(clock=lambda: 1000)
        >>> gen.next_id(), gen.next_id()
        ('trade_1000', 'trade_1001')
    """

    def __init__(
        self,
        clock: Callable[[], int] = time.time_ns,
        prefix: str = "trade_",
    ):
        self._clock = clock
        self._prefix = prefix
        self._lock = threading.Lock()
        self._last_id = 0

    @property
    def last_id(self) -> int:
        """Numeric part of the most recently issued id (0 before the first)."""
        return self._last_id

    def next_id(self) -> str:
        """Issue the next identifier."""
        with self._lock:
            current = int(self._clock())
            if current <= self._last_id:
                current = self._last_id + 1
            self._last_id = current
        return f"{self._prefix}{current}"
