"""
Backtesting engine for the HFT backtester.

This module replays a price series through a strategy, turns its signals
into orders against a simulated portfolio, and collects the trade log and
equity curve.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pandas as pd

from hft_backtester.backtesting.ids import TradeIdGenerator
from hft_backtester.backtesting.ledger import Position
from hft_backtester.backtesting.portfolio import (
    Order,
    PortfolioManager,
    Trade,
    TradeDirection,
)
from hft_backtester.exceptions import DataValidationError, InsufficientFundsError
from hft_backtester.strategies.base import Action, Strategy

logger = logging.getLogger(__name__)


DEFAULT_INITIAL_CASH = 100.0
DEFAULT_COMMISSION_RATE = 0.0005
DEFAULT_POSITION_SIZE = 50.0
DEFAULT_SYMBOL = "BTCUSDT"


@dataclass(frozen=True)
class PricePoint:
    """Price sample; ``time`` is milliseconds since the epoch."""

    time: int
    price: float

    def to_dict(self) -> dict:
        return {"time": self.time, "price": self.price}


@dataclass(frozen=True)
class EquityPoint:
    """Equity sample; ``time`` is milliseconds since the epoch."""

    time: int
    equity: float

    def to_dict(self) -> dict:
        return {"time": self.time, "equity": self.equity}


def ms_to_datetime(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


@dataclass
class BacktestConfig:
    """
    Configuration for backtesting.

    Attributes:
        initial_cash: Starting cash balance
        commission_rate: Commission rate as a fraction (0.0005 = 0.05%)
        position_size: Cash budget spent per entry, in currency units
        symbol: The single instrument traded in a run
        include_price_data: Echo the input series in the result
    """

    initial_cash: float = DEFAULT_INITIAL_CASH
    commission_rate: float = DEFAULT_COMMISSION_RATE
    position_size: float = DEFAULT_POSITION_SIZE
    symbol: str = DEFAULT_SYMBOL
    include_price_data: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if self.initial_cash <= 0:
            raise DataValidationError(
                "Initial cash must be positive",
                field="initial_cash",
                value=self.initial_cash,
                expected="> 0",
            )

        if self.commission_rate < 0:
            raise DataValidationError(
                "Commission rate cannot be negative",
                field="commission_rate",
                value=self.commission_rate,
                expected=">= 0",
            )

        if self.position_size <= 0:
            raise DataValidationError(
                "Position size must be positive",
                field="position_size",
                value=self.position_size,
                expected="> 0",
            )

        if not self.symbol:
            raise DataValidationError(
                "Symbol cannot be empty",
                field="symbol",
                value=self.symbol,
                expected="non-empty string",
            )

    @classmethod
    def from_settings(cls, settings) -> "BacktestConfig":
        """Build from the environment-driven ``Config``."""
        return cls(
            initial_cash=settings.initial_cash,
            commission_rate=settings.commission_rate,
            position_size=settings.position_size,
            symbol=settings.symbol,
        )

    @classmethod
    def from_percent_commission(
        cls,
        initial_cash: float = 0.0,
        position_size: float = 0.0,
        commission_pct: float = 0.0,
        **kwargs,
    ) -> "BacktestConfig":
        """
        Build from request-style inputs.

        The commission is given in percent (0.05 means 0.05%). Non-positive
        values fall back to the defaults instead of failing validation.
        """
        if initial_cash <= 0:
            initial_cash = DEFAULT_INITIAL_CASH
        if position_size <= 0:
            position_size = DEFAULT_POSITION_SIZE
        if commission_pct <= 0:
            commission_rate = DEFAULT_COMMISSION_RATE
        else:
            commission_rate = commission_pct / 100.0

        return cls(
            initial_cash=initial_cash,
            commission_rate=commission_rate,
            position_size=position_size,
            **kwargs,
        )


@dataclass
class BacktestResult:
    """
    Results from a backtest run.

    Attributes:
        trades: Executed trades in execution order
        start_time: Wall-clock start of the run (UTC)
        end_time: Wall-clock end of the run (UTC)
        final_equity: Equity at the last mark-to-market
        equity_curve: One equity sample per input price
        config: Configuration used for the run
        final_cash: Cash balance after the last order
        open_positions: Positions still open at the end
        price_data: The input series, when echoed
    """

    trades: List[Trade]
    start_time: datetime
    end_time: datetime
    final_equity: float
    equity_curve: List[EquityPoint]
    config: BacktestConfig
    final_cash: float = 0.0
    open_positions: Dict[str, Position] = field(default_factory=dict)
    price_data: Optional[List[PricePoint]] = None

    @property
    def duration(self) -> float:
        """Run time in seconds."""
        return (self.end_time - self.start_time).total_seconds()

    def total_return(self) -> float:
        """Total return as percentage of initial cash."""
        initial = self.config.initial_cash
        return ((self.final_equity - initial) / initial) * 100

    def total_commission(self) -> float:
        """Calculate total commissions paid."""
        return sum(trade.commission for trade in self.trades)

    def equity_series(self) -> pd.Series:
        """Equity curve as a Series indexed by UTC timestamp."""
        if not self.equity_curve:
            return pd.Series(dtype=float, name="equity")

        return pd.Series(
            [p.equity for p in self.equity_curve],
            index=pd.to_datetime([p.time for p in self.equity_curve], unit="ms", utc=True),
            name="equity",
        )

    def max_drawdown(self) -> float:
        """Largest peak-to-trough equity decline, in percent (positive number)."""
        equity = self.equity_series()
        if equity.empty:
            return 0.0

        running_max = equity.cummax()
        drawdown = (equity - running_max) / running_max * 100
        return float(-drawdown.min())

    def trade_log(self) -> pd.DataFrame:
        """
        Get trade history as DataFrame.

        Returns:
            DataFrame indexed by trade time
        """
        columns = ["id", "direction", "qty", "price", "value", "commission", "total_cost"]
        if not self.trades:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(
            [
                {
                    "time": t.timestamp,
                    "id": t.trade_id,
                    "direction": t.direction.value,
                    "qty": t.quantity,
                    "price": t.price,
                    "value": t.value,
                    "commission": t.commission,
                    "total_cost": t.total_cost,
                }
                for t in self.trades
            ]
        )
        df.set_index("time", inplace=True)
        return df

    def to_dict(self) -> dict:
        """JSON-ready payload for presentation layers."""
        payload = {
            "trades": [t.to_dict() for t in self.trades],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "initial_cash": self.config.initial_cash,
            "final_equity": self.final_equity,
            "equity_curve": [p.to_dict() for p in self.equity_curve],
        }
        if self.price_data is not None:
            payload["price_data"] = [p.to_dict() for p in self.price_data]
        return payload

    def summary(self) -> str:
        """Generate a text summary of backtest results."""
        buys = sum(1 for t in self.trades if t.is_buy)
        lines = [
            "=" * 60,
            f"Backtest Results: {self.config.symbol}",
            f"Run: {self.start_time.isoformat()} ({self.duration:.3f}s)",
            "=" * 60,
            "",
            "PERFORMANCE",
            "-" * 60,
            f"Total Return:       {self.total_return():>14.4f}%",
            f"Max Drawdown:       {self.max_drawdown():>14.4f}%",
            "",
            "TRADE STATISTICS",
            "-" * 60,
            f"Total Trades:       {len(self.trades):>14}",
            f"Buy Trades:         {buys:>14}",
            f"Sell Trades:        {len(self.trades) - buys:>14}",
            "",
            "PORTFOLIO",
            "-" * 60,
            f"Initial Cash:       {self.config.initial_cash:>14,.4f}",
            f"Final Equity:       {self.final_equity:>14,.4f}",
            f"Final Cash:         {self.final_cash:>14,.4f}",
            f"Open Positions:     {len(self.open_positions):>14}",
            f"Total Commissions:  {self.total_commission():>14,.4f}",
            "=" * 60,
        ]
        return "\n".join(lines)


class BacktestEngine:
    """
    Core backtesting engine.

    Each call to ``run`` replays a price series strictly in order against a
    fresh portfolio:

    1. mark the portfolio to the sample price and record an equity point
    2. ask the strategy for a signal
    3. turn the signal into an order if the current position allows it
    4. execute the order; a buy that cannot be afforded is skipped

    Without a strategy every sample is a buy of ``position_size`` worth.

    Example:
        >>> engine = BacktestEngine(BacktestConfig(initial_cash=100.0))
        >>> points = [PricePoint(1_700_000_000_000, 10.0)]
        >>> result = engine.run(points)
        >>> len(result.trades)
        1
    """

    def __init__(
        self,
        config: Optional[BacktestConfig] = None,
        id_generator: Optional[TradeIdGenerator] = None,
    ):
        """
        Initialize the backtest engine.

        Args:
            config: Backtest configuration (uses defaults if not provided)
            id_generator: Trade id source shared by this engine's runs
        """
        self.config = config or BacktestConfig()
        self.id_generator = id_generator or TradeIdGenerator()

        logger.info(
            f"BacktestEngine initialized with {self.config.initial_cash:,.2f} "
            f"initial cash, position size {self.config.position_size:,.2f}"
        )

    def run(
        self,
        data: Sequence[PricePoint],
        strategy: Optional[Strategy] = None,
    ) -> BacktestResult:
        """
        Run a backtest over ``data``.

        Args:
            data: Price samples in ascending time order (not re-checked)
            strategy: Signal source; None buys at every sample

        Returns:
            BacktestResult with trades, equity curve and timing
        """
        start_time = datetime.now(timezone.utc)
        symbol = self.config.symbol
        manager = PortfolioManager(
            initial_cash=self.config.initial_cash,
            commission_rate=self.config.commission_rate,
            id_generator=self.id_generator,
        )
        portfolio = manager.get_portfolio()

        trades: List[Trade] = []
        equity_curve: List[EquityPoint] = []
        rejected = 0

        for point in data:
            equity = manager.update_equity({symbol: point.price})
            equity_curve.append(EquityPoint(time=point.time, equity=equity))

            if strategy is not None:
                action = strategy.signal(point.price).action
            else:
                action = None

            order = self._build_order(
                action=action,
                point=point,
                current_qty=portfolio.position_quantity(symbol),
                cash=portfolio.cash,
            )
            if order is None:
                continue

            try:
                trade = manager.execute_order(order)
            except InsufficientFundsError as e:
                rejected += 1
                logger.debug(f"Order skipped at {point.time}: {e}")
                continue

            trades.append(trade)

        result = BacktestResult(
            trades=trades,
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            final_equity=portfolio.equity,
            equity_curve=equity_curve,
            config=self.config,
            final_cash=portfolio.cash,
            open_positions=dict(portfolio.positions),
            price_data=list(data) if self.config.include_price_data else None,
        )

        logger.info(
            f"Simulation complete: {len(data)} samples, {len(trades)} trades, "
            f"{rejected} rejected, final equity {result.final_equity:,.4f}"
        )

        return result

    def _build_order(
        self,
        action: Optional[Action],
        point: PricePoint,
        current_qty: float,
        cash: float,
    ) -> Optional[Order]:
        """
        Decide whether a signal is actionable and build its order.

        ``action=None`` means no strategy was supplied.
        """
        if point.price <= 0:
            return None

        quantity = None
        direction = None

        if action is None:
            quantity = self.config.position_size / point.price
            direction = TradeDirection.BUY
        elif action == Action.BUY:
            if current_qty <= 0 and cash >= self.config.position_size:
                quantity = self.config.position_size / point.price
                direction = TradeDirection.BUY
        elif action in (Action.SELL, Action.EXIT_LONG):
            if current_qty > 0:
                quantity = current_qty
                direction = TradeDirection.SELL
        elif action == Action.EXIT_SHORT:
            if current_qty < 0:
                quantity = -current_qty
                direction = TradeDirection.BUY

        if quantity is None:
            return None

        return Order(
            symbol=self.config.symbol,
            quantity=quantity,
            price=point.price,
            direction=direction,
            timestamp=ms_to_datetime(point.time),
        )

    def run_multiple(
        self,
        data: Sequence[PricePoint],
        strategies: Dict[str, Optional[Strategy]],
    ) -> Dict[str, BacktestResult]:
        """
        Run the same series through several strategies.

        Each run gets its own portfolio; strategies are reset before use.

        Args:
            data: Price samples in ascending time order
            strategies: Mapping of label to strategy (None for buy-every-sample)

        Returns:
            Dictionary mapping label to BacktestResult
        """
        logger.info(f"Running backtests for {len(strategies)} strategies")

        results = {}
        for name, strategy in strategies.items():
            if strategy is not None:
                strategy.reset()
            results[name] = self.run(data, strategy)
            logger.info(f"Completed backtest for {name}")

        return results
