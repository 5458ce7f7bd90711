from dataclasses import dataclass
from pathlib import Path
import os
from dotenv import load_dotenv
import logging
import sys
from typing import Optional
import structlog

from hft_backtester.exceptions import ConfigurationError

# Load environment variables early
load_dotenv()

# Step 1: Configure stdlib logging to use stderr
logging.basicConfig(
    format='%(asctime)s [%(levelname)-8s] %(message)s',
    stream=sys.stderr,
    level=logging.INFO,
    force=True
)

# Step 2: Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.KeyValueRenderer(key_order=['timestamp', 'level', 'event']),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = logging.getLogger(__name__)


def _get_env_float(var: str, default: str) -> float:
    """Read a float environment variable, failing loudly on garbage."""
    raw = os.environ.get(var, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {var} is not a number",
            setting=var,
            details={"value": raw},
            cause=e,
        ) from e


def _get_env_int(var: str, default: str) -> int:
    """Read an integer environment variable, failing loudly on garbage."""
    raw = os.environ.get(var, default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {var} is not an integer",
            setting=var,
            details={"value": raw},
            cause=e,
        ) from e


@dataclass
class Config:
    """Configuration for the backtester, read from the environment."""

    trades_file: Path = Path(os.environ.get("TRADES_FILE", "./upload/trades/STBLUSDT-trades-2025-09-20.csv"))
    results_dir: Path = Path(os.environ.get("RESULTS_DIR", "./results"))

    symbol: str = os.environ.get("BACKTEST_SYMBOL", "BTCUSDT")
    initial_cash: float = _get_env_float("BACKTEST_INITIAL_CASH", "100")
    # Fraction, not percent: 0.0005 is 5 basis points
    commission_rate: float = _get_env_float("BACKTEST_COMMISSION_RATE", "0.0005")
    position_size: float = _get_env_float("BACKTEST_POSITION_SIZE", "50")

    default_point_limit: int = _get_env_int("DEFAULT_POINT_LIMIT", "1000")
    hour_point_limit: int = _get_env_int("HOUR_POINT_LIMIT", "10000")

    bollinger_period: int = _get_env_int("BOLLINGER_PERIOD", "100")
    bollinger_std_dev: float = _get_env_float("BOLLINGER_STD_DEV", "1.0")

    log_level: str = os.environ.get("LOG_LEVEL", "INFO")

    def __post_init__(self):
        log_level = getattr(logging, self.log_level.upper(), None)
        if not isinstance(log_level, int):
            raise ConfigurationError(
                f"Unknown log level: {self.log_level}",
                setting="LOG_LEVEL",
            )

        # Set logging level
        logging.getLogger().setLevel(log_level)
        for name in logging.root.manager.loggerDict:
            logging.getLogger(name).setLevel(log_level)


def get_config(log_level: Optional[str] = None) -> Config:
    """Build a fresh Config, optionally overriding the log level."""
    if log_level:
        return Config(log_level=log_level)
    return Config()


config = Config()
