"""
Commission model for simulated fills.

A fixed-rate fee on notional: ``fee = price * quantity * rate``.
"""

from hft_backtester.exceptions import DataValidationError


class CommissionCalculator:
    """
    Computes trading commissions at a fixed rate.

    Attributes:
        rate: Commission rate as a fraction (0.0005 = 0.05%)

    Example:
        >>> calc = CommissionCalculator(0.0005)
        >>> calc.calculate_commission(10.0, 5.0)
        0.025
    """

    def __init__(self, rate: float):
        if rate < 0:
            raise DataValidationError(
                "Commission rate cannot be negative",
                field="commission_rate",
                value=rate,
                expected=">= 0",
            )
        self.rate = rate

    def calculate_commission(self, price: float, quantity: float) -> float:
        """Commission for a single fill."""
        return price * quantity * self.rate

    def calculate_total_commission(
        self,
        entry_price: float,
        exit_price: float,
        quantity: float,
    ) -> float:
        """Round-trip commission: entry leg plus exit leg."""
        entry_commission = self.calculate_commission(entry_price, quantity)
        exit_commission = self.calculate_commission(exit_price, quantity)
        return entry_commission + exit_commission

    def __repr__(self) -> str:
        return f"CommissionCalculator(rate={self.rate})"
