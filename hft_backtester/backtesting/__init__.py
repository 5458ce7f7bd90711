"""
Backtesting framework for the HFT backtester.

This module replays historical trade prices through a strategy and keeps a
cash/position ledger that produces an equity curve and a trade log.

Main Components:
    - BacktestEngine: Replays a price series and routes signals to orders
    - PortfolioManager: Applies orders to cash and positions
    - CommissionCalculator: Fixed-rate commission model
    - apply_fill: Signed-quantity, weighted-average position algebra
    - TradeDataLoader: Reads exchange trade dumps into price series
    - BacktestReport: Summaries, exports and HTML charts

Example:
    >>> from hft_backtester.backtesting import BacktestEngine, BacktestConfig, TradeDataLoader
    >>> from hft_backtester.strategies import BollingerBandsStrategy
    >>>
    >>> points = TradeDataLoader().load_trades_by_hour("14")
    >>> engine = BacktestEngine(BacktestConfig(initial_cash=100, position_size=50))
    >>> result = engine.run(points, BollingerBandsStrategy(period=100, std_dev=1.0))
    >>> print(result.summary())
"""

# Importing the config module sets up stdlib logging and structlog
import hft_backtester.config  # noqa: F401
from hft_backtester.backtesting.commission import CommissionCalculator
from hft_backtester.backtesting.data_loader import DataLoaderConfig, HourInfo, TradeDataLoader
from hft_backtester.backtesting.engine import (
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
    EquityPoint,
    PricePoint,
)
from hft_backtester.backtesting.ids import TradeIdGenerator
from hft_backtester.backtesting.ledger import Position, apply_fill
from hft_backtester.backtesting.portfolio import (
    Order,
    Portfolio,
    PortfolioManager,
    Trade,
    TradeDirection,
    TradeExecutor,
)
from hft_backtester.backtesting.reports import BacktestReport

__all__ = [
    "BacktestEngine",
    "BacktestConfig",
    "BacktestResult",
    "EquityPoint",
    "PricePoint",
    "CommissionCalculator",
    "TradeIdGenerator",
    "Position",
    "apply_fill",
    "Order",
    "Portfolio",
    "PortfolioManager",
    "Trade",
    "TradeDirection",
    "TradeExecutor",
    "DataLoaderConfig",
    "HourInfo",
    "TradeDataLoader",
    "BacktestReport",
]

__version__ = "1.0.0"
