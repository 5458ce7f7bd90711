"""
Position ledger for backtesting.

Holds the Position type and the fill algebra that keeps a signed quantity
and a weighted-average entry price per instrument, including long/short
flips and full closes.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

import structlog

from hft_backtester.exceptions import DataValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Position:
    """
    Open position in one instrument.

    A position never has a zero quantity: a fill that nets to zero removes
    the position instead.

    Attributes:
        symbol: Instrument identifier (e.g., "BTCUSDT")
        quantity: Signed quantity, positive for long, negative for short
        avg_entry_price: Weighted-average entry price of the open quantity
        open_time: Time the current direction was established
    """

    symbol: str
    quantity: float
    avg_entry_price: float
    open_time: datetime

    @property
    def is_long(self) -> bool:
        return self.quantity > 0

    @property
    def is_short(self) -> bool:
        return self.quantity < 0

    @property
    def cost_basis(self) -> float:
        """Entry value of the open quantity (always non-negative)."""
        return abs(self.quantity) * self.avg_entry_price

    def market_value(self, price: float) -> float:
        """Signed mark-to-market value; negative for shorts."""
        return self.quantity * price

    def unrealized_pnl(self, price: float) -> float:
        """Profit/loss of the open quantity if closed at ``price``."""
        return (price - self.avg_entry_price) * self.quantity

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "qty": self.quantity,
            "avg_entry_price": self.avg_entry_price,
            "open_time": self.open_time.isoformat(),
        }

    def __str__(self) -> str:
        side = "LONG" if self.is_long else "SHORT"
        return (
            f"{self.symbol} {side} {abs(self.quantity):.6f} "
            f"@ avg {self.avg_entry_price:.6f}"
        )


def _same_sign(a: float, b: float) -> bool:
    return (a > 0 and b > 0) or (a < 0 and b < 0)


def apply_fill(
    position: Optional[Position],
    symbol: str,
    quantity: float,
    price: float,
    timestamp: datetime,
    is_buy: bool,
) -> Optional[Position]:
    """
    Apply a fill to an existing position (or to no position).

    Args:
        position: Current position, or None if flat
        symbol: Instrument of the fill
        quantity: Fill size, a positive magnitude
        price: Fill price
        timestamp: Fill time
        is_buy: True for a buy (+quantity), False for a sell (-quantity)

    Returns:
        The resulting position, or None when the fill closes it exactly.

    Raises:
        DataValidationError: If quantity is not positive

    Note:
        A fill that reduces or flips the position bases the remaining quantity
        at the fill price; only same-direction fills blend the average.
    """
    if quantity <= 0:
        raise DataValidationError(
            "Fill quantity must be positive",
            field="quantity",
            value=quantity,
            expected="> 0",
        )

    delta = quantity if is_buy else -quantity

    if position is None:
        logger.debug("position_opened", symbol=symbol, qty=delta, price=price)
        return Position(
            symbol=symbol,
            quantity=delta,
            avg_entry_price=price,
            open_time=timestamp,
        )

    new_qty = position.quantity + delta

    if new_qty == 0:
        logger.debug("position_closed", symbol=symbol, price=price)
        return None

    if _same_sign(new_qty, position.quantity):
        if _same_sign(delta, position.quantity):
            # Extending: blend the cost basis by magnitude
            new_avg = (
                position.avg_entry_price * abs(position.quantity) + price * quantity
            ) / abs(new_qty)
            return replace(position, quantity=new_qty, avg_entry_price=new_avg)
        # Reducing: the remainder is re-based at the fill price
        return replace(position, quantity=new_qty, avg_entry_price=price)

    logger.debug(
        "position_flipped",
        symbol=symbol,
        old_qty=position.quantity,
        new_qty=new_qty,
        price=price,
    )
    return Position(
        symbol=symbol,
        quantity=new_qty,
        avg_entry_price=price,
        open_time=timestamp,
    )
