"""
Simulated portfolio for backtesting.

This module provides the order and trade records, the cash/position
portfolio, and the manager that applies orders to it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

import structlog

from hft_backtester.backtesting.commission import CommissionCalculator
from hft_backtester.backtesting.ids import TradeIdGenerator
from hft_backtester.backtesting.ledger import Position, apply_fill
from hft_backtester.exceptions import DataValidationError, InsufficientFundsError

logger = structlog.get_logger(__name__)


class TradeDirection(Enum):
    """Direction of a trade."""

    BUY = "BUY"
    SELL = "SELL"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Order:
    """
    Instruction to trade, built by the engine and consumed by the manager.

    Attributes:
        symbol: Instrument to trade
        quantity: Positive quantity to trade
        price: Execution price
        direction: BUY or SELL
        timestamp: Execution time
    """

    symbol: str
    quantity: float
    price: float
    direction: TradeDirection
    timestamp: datetime

    def __post_init__(self):
        if self.quantity <= 0:
            raise DataValidationError(
                "Order quantity must be positive",
                field="quantity",
                value=self.quantity,
                expected="> 0",
            )

    @property
    def is_buy(self) -> bool:
        return self.direction == TradeDirection.BUY

    @property
    def notional(self) -> float:
        return self.price * self.quantity


@dataclass(frozen=True)
class Trade:
    """
    Represents a single trade execution.

    Attributes:
        trade_id: Unique identifier
        symbol: Instrument traded
        price: Execution price
        quantity: Quantity traded (positive)
        timestamp: Execution time
        direction: BUY or SELL
        commission: Commission charged on this fill
    """

    trade_id: str
    symbol: str
    price: float
    quantity: float
    timestamp: datetime
    direction: TradeDirection
    commission: float = 0.0

    @property
    def is_buy(self) -> bool:
        return self.direction == TradeDirection.BUY

    @property
    def value(self) -> float:
        """Notional value (quantity * price)."""
        return self.quantity * self.price

    @property
    def total_cost(self) -> float:
        """Cash impact magnitude: cost for buys, proceeds for sells."""
        if self.is_buy:
            return self.value + self.commission
        else:
            return self.value - self.commission

    def to_dict(self) -> dict:
        return {
            "id": self.trade_id,
            "price": self.price,
            "qty": self.quantity,
            "time": self.timestamp.isoformat(),
            "is_buy": self.is_buy,
            "commission": self.commission,
        }

    def __str__(self) -> str:
        """String representation of trade."""
        return (
            f"{self.direction.value} {self.quantity:.6f} {self.symbol} @ "
            f"{self.price:.6f} on {self.timestamp.isoformat()}"
        )


@dataclass
class Portfolio:
    """
    Cash plus open positions.

    ``equity`` is only as fresh as the last mark-to-market; it is recomputed
    by PortfolioManager.update_equity whenever new prices arrive.
    """

    cash: float
    positions: Dict[str, Position] = field(default_factory=dict)
    equity: float = 0.0

    def position_quantity(self, symbol: str) -> float:
        """Signed quantity held in ``symbol`` (0.0 when flat)."""
        position = self.positions.get(symbol)
        return position.quantity if position else 0.0


class TradeExecutor:
    """
    Turns orders into trade records.

    Computes the commission and stamps a fresh id; does not touch any
    portfolio.
    """

    def __init__(
        self,
        commission_rate: float,
        id_generator: Optional[TradeIdGenerator] = None,
    ):
        self.commission_calculator = CommissionCalculator(commission_rate)
        self.id_generator = id_generator or TradeIdGenerator()

    def commission_for(self, order: Order) -> float:
        return self.commission_calculator.calculate_commission(order.price, order.quantity)

    def execute_trade(self, order: Order, commission: Optional[float] = None) -> Trade:
        """Build the trade record for ``order``."""
        if commission is None:
            commission = self.commission_for(order)

        return Trade(
            trade_id=self.id_generator.next_id(),
            symbol=order.symbol,
            price=order.price,
            quantity=order.quantity,
            timestamp=order.timestamp,
            direction=order.direction,
            commission=commission,
        )


class PortfolioManager:
    """
    Applies orders to a portfolio.

    Buys are checked for affordability before anything changes; sells are
    never checked, so selling through zero opens a short without any margin
    requirement.

    Example:
        >>> manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)
        >>> order = Order("BTCUSDT", 5.0, 10.0, TradeDirection.BUY, datetime(2025, 9, 20))
        >>> trade = manager.execute_order(order)
        >>> round(manager.get_portfolio().cash, 6)
        49.975
    """

    def __init__(
        self,
        initial_cash: float,
        commission_rate: float,
        id_generator: Optional[TradeIdGenerator] = None,
    ):
        self.portfolio = Portfolio(cash=initial_cash, equity=initial_cash)
        self.executor = TradeExecutor(commission_rate, id_generator)

    def get_portfolio(self) -> Portfolio:
        return self.portfolio

    def get_position(self, symbol: str) -> Optional[Position]:
        return self.portfolio.positions.get(symbol)

    def update_equity(self, current_prices: Dict[str, float]) -> float:
        """
        Recompute equity from cash and the given marks.

        Positions without a price in ``current_prices`` contribute nothing.
        That undervalues (or, for shorts, overvalues) the portfolio for this
        mark only; it is not treated as an error.

        Returns:
            The new equity value
        """
        equity = self.portfolio.cash

        for symbol, position in self.portfolio.positions.items():
            price = current_prices.get(symbol)
            if price is None:
                logger.debug("mark_price_missing", symbol=symbol)
                continue
            equity += position.market_value(price)

        self.portfolio.equity = equity
        return equity

    def execute_order(self, order: Order) -> Trade:
        """
        Execute an order against the portfolio.

        Args:
            order: Order to apply

        Returns:
            The resulting trade

        Raises:
            InsufficientFundsError: If a buy costs more than the available cash
        """
        commission = self.executor.commission_for(order)

        if order.is_buy:
            required = order.notional + commission
            if self.portfolio.cash < required:
                raise InsufficientFundsError(
                    available=self.portfolio.cash,
                    required=required,
                )

        trade = self.executor.execute_trade(order, commission)

        if order.is_buy:
            self.portfolio.cash -= order.notional + commission
        else:
            self.portfolio.cash += order.notional - commission

        self._update_position(order)

        logger.debug(
            "order_executed",
            trade_id=trade.trade_id,
            direction=str(trade.direction),
            qty=trade.quantity,
            price=trade.price,
            commission=commission,
            cash=self.portfolio.cash,
        )
        return trade

    def _update_position(self, order: Order) -> None:
        positions = self.portfolio.positions
        updated = apply_fill(
            positions.get(order.symbol),
            symbol=order.symbol,
            quantity=order.quantity,
            price=order.price,
            timestamp=order.timestamp,
            is_buy=order.is_buy,
        )

        if updated is None:
            positions.pop(order.symbol, None)
        else:
            positions[order.symbol] = updated

    def __str__(self) -> str:
        """String representation of portfolio."""
        return (
            f"Portfolio Equity: {self.portfolio.equity:,.4f} "
            f"(Cash: {self.portfolio.cash:,.4f}, "
            f"Positions: {len(self.portfolio.positions)})"
        )
