"""
Trading strategies for the backtester.

Example:
    >>> from hft_backtester.strategies import create_strategy
    >>> strategy = create_strategy("bollinger", {"period": 20, "std_dev": 2.0})
    >>> strategy.signal(101.5)
    Signal(action=<Action.HOLD: 'HOLD'>, price=101.5)
"""

from typing import Any, Dict, Optional

from hft_backtester.exceptions import UnknownStrategyError
from hft_backtester.strategies.base import Action, Signal, Strategy
from hft_backtester.strategies.bollinger import BollingerBandsStrategy

STRATEGIES = {
    BollingerBandsStrategy.name: BollingerBandsStrategy,
}

_NO_STRATEGY = {"", "none"}


def create_strategy(
    name: Optional[str],
    params: Optional[Dict[str, Any]] = None,
) -> Optional[Strategy]:
    """
    Build a strategy by name.

    Args:
        name: Strategy name ("bollinger"); None, "" or "none" select no strategy
        params: Strategy parameters. Bollinger accepts ``period`` and
            ``std_dev`` (``stdDev`` is accepted as an alias).

    Returns:
        A new strategy instance, or None when no strategy was requested

    Raises:
        UnknownStrategyError: If the name is not registered
    """
    if name is None or name.strip().lower() in _NO_STRATEGY:
        return None

    key = name.strip().lower()
    if key not in STRATEGIES:
        raise UnknownStrategyError(key, available=sorted(STRATEGIES))

    params = dict(params or {})
    if key == BollingerBandsStrategy.name:
        period = params.get("period", 100)
        std_dev = params.get("std_dev", params.get("stdDev", 1.0))
        return BollingerBandsStrategy(period=int(period), std_dev=float(std_dev))

    return STRATEGIES[key](**params)


__all__ = [
    "Action",
    "Signal",
    "Strategy",
    "BollingerBandsStrategy",
    "STRATEGIES",
    "create_strategy",
]
