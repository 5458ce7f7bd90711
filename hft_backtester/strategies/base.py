"""
Strategy capability used by the backtest engine.

A strategy consumes one price at a time and answers with an action. Calls
are not idempotent: every call advances the strategy's internal window.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Action(Enum):
    """Trading decision emitted by a strategy."""

    BUY = "BUY"
    SELL = "SELL"
    EXIT_LONG = "EXIT_LONG"
    EXIT_SHORT = "EXIT_SHORT"
    HOLD = "HOLD"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Signal:
    """Action plus the price it was decided on."""

    action: Action
    price: float


class Strategy(ABC):
    """
    Abstract base class for signal generators.

    Subclasses keep whatever rolling state they need and update it inside
    ``signal``.
    """

    name: str = "base"

    @abstractmethod
    def signal(self, price: float) -> Signal:
        """
        Feed the next price and get a decision for it.

        Args:
            price: Latest observed price

        Returns:
            Signal for this price
        """
        pass

    def reset(self) -> None:
        """Drop any rolling state so the strategy can be reused for a new run."""
        pass
