"""
Custom exception hierarchy for the HFT backtester.

Exception Hierarchy:
    BacktesterError (base)
    ├── DataError
    │   ├── DataFetchError
    │   ├── DataValidationError
    │   └── DataParsingError
    ├── ExecutionError
    │   └── InsufficientFundsError
    ├── StrategyError
    │   └── UnknownStrategyError
    └── ConfigurationError

Only InsufficientFundsError is expected during a normal run: the simulation
driver treats it as "no trade for this sample" and keeps going.
"""

from typing import Any, Dict, Optional


class BacktesterError(Exception):
    """
    Base exception for all backtester errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (symbol, field, amounts, etc.)
        cause: Original exception if this wraps another error
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with details."""
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} [{detail_str}]"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {self.cause})"
        return msg


# =============================================================================
# Data-Related Exceptions
# =============================================================================

class DataError(BacktesterError):
    """Base exception for all data-related errors."""
    pass


class DataFetchError(DataError):
    """
    Raised when price data cannot be read from its source.

    Examples:
        - Trade file missing or unreadable
        - Empty file without a header row
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source
        super().__init__(message, details=details, **kwargs)


class DataValidationError(DataError):
    """
    Raised when a value fails validation checks.

    Examples:
        - Non-positive initial cash or position size
        - Negative commission rate
        - Missing required columns in a trade file
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)


class DataParsingError(DataError):
    """
    Raised when raw input cannot be parsed into the expected format.

    Examples:
        - Hour filter that is not a two-digit hour
        - CSV that pandas cannot tokenize at all
    """

    def __init__(
        self,
        message: str,
        raw_data: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if raw_data:
            # Truncate raw data to prevent huge error messages
            details["raw_data"] = raw_data[:200] + "..." if len(raw_data) > 200 else raw_data
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Execution Exceptions
# =============================================================================

class ExecutionError(BacktesterError):
    """Base exception for order execution errors."""
    pass


class InsufficientFundsError(ExecutionError):
    """
    Raised when a buy order costs more than the available cash.

    The portfolio is left untouched when this is raised.

    Attributes:
        available: Cash available at the time of the order
        required: Notional plus commission the order needed
    """

    def __init__(
        self,
        available: float,
        required: float,
        **kwargs
    ):
        self.available = available
        self.required = required
        details = kwargs.pop("details", {})
        details["available"] = f"{available:.2f}"
        details["required"] = f"{required:.2f}"
        super().__init__("Insufficient funds", details=details, **kwargs)


# =============================================================================
# Strategy Exceptions
# =============================================================================

class StrategyError(BacktesterError):
    """Base exception for strategy errors."""
    pass


class UnknownStrategyError(StrategyError):
    """Raised when a strategy name does not match any known strategy."""

    def __init__(
        self,
        name: str,
        available: Optional[list] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["name"] = name
        if available:
            details["available"] = available
        super().__init__(f"Unknown strategy: {name}", details=details, **kwargs)


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(BacktesterError):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Environment variable that cannot be converted to a number
        - Unknown log level
    """

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if setting:
            details["setting"] = setting
        super().__init__(message, details=details, **kwargs)
