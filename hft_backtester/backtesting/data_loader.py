"""
Trade-file loader for backtesting.

This module reads exchange trade dumps (CSV with a header row and the
columns ``id, price, qty, quote_qty, time, is_buyer_maker``) into price
series for the engine.

Parsing is lenient: a row whose price or time is not numeric is dropped and
counted, and the rest of the file still loads.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from hft_backtester.backtesting.engine import PricePoint
from hft_backtester.exceptions import DataFetchError, DataParsingError, DataValidationError

logger = logging.getLogger(__name__)

TRADE_COLUMNS = ["id", "price", "qty", "quote_qty", "time", "is_buyer_maker"]
REQUIRED_COLUMNS = ["price", "time"]


@dataclass
class DataLoaderConfig:
    """Configuration for the trade-file loader."""

    trades_file: Path = field(
        default_factory=lambda: Path("upload/trades/STBLUSDT-trades-2025-09-20.csv")
    )
    cache_enabled: bool = True
    default_limit: int = 1000
    hour_limit: int = 10000


@dataclass(frozen=True)
class HourInfo:
    """Number of trades recorded in one hour of the day (UTC)."""

    hour: str
    count: int

    def to_dict(self) -> dict:
        return {"hour": self.hour, "count": self.count}


class TradeDataLoader:
    """
    Loads and caches trade data for backtesting.

    Attributes:
        config: Loader configuration
        _cache: Parsed frames keyed by resolved file path

    Example:
        >>> loader = TradeDataLoader(DataLoaderConfig(trades_file=Path("trades.csv")))
        >>> points = loader.load_trades_by_hour("14")
        >>> hours = loader.get_available_hours()
    """

    def __init__(self, config: Optional[DataLoaderConfig] = None):
        """
        Initialize the trade data loader.

        Args:
            config: Optional configuration, uses defaults if not provided
        """
        self.config = config or DataLoaderConfig()
        self._cache: Dict[str, pd.DataFrame] = {}
        self.last_skipped_rows = 0

        logger.info(
            f"TradeDataLoader initialized for {self.config.trades_file} "
            f"(cache_enabled={self.config.cache_enabled})"
        )

    @classmethod
    def from_settings(cls, settings) -> "TradeDataLoader":
        """Build from the environment-driven ``Config``."""
        return cls(
            DataLoaderConfig(
                trades_file=Path(settings.trades_file),
                default_limit=settings.default_point_limit,
                hour_limit=settings.hour_point_limit,
            )
        )

    def load_frame(self) -> pd.DataFrame:
        """
        Load the trade file as a DataFrame with ``time`` (int ms), ``price``
        and ``hour`` ("00".."23", UTC) columns, in file order.

        Raises:
            DataFetchError: If the file cannot be read
            DataValidationError: If required columns are missing
        """
        path = Path(self.config.trades_file)
        cache_key = str(path.resolve())

        if self.config.cache_enabled and cache_key in self._cache:
            logger.debug(f"Loading {path} from memory cache")
            return self._cache[cache_key]

        raw = self._read_csv(path)
        frame = self._normalize(raw, path)

        if self.config.cache_enabled:
            self._cache[cache_key] = frame

        return frame

    def load_trades(self, limit: Optional[int] = None) -> List[PricePoint]:
        """
        Load the first ``limit`` valid trades as price points.

        Args:
            limit: Maximum number of points; 0 loads everything

        Returns:
            Price points in file order
        """
        if limit is None:
            limit = self.config.default_limit

        frame = self.load_frame()
        if limit > 0:
            frame = frame.head(limit)

        return self.to_price_points(frame)

    def load_trades_by_hour(self, hour: str, limit: Optional[int] = None) -> List[PricePoint]:
        """
        Load trades from one hour of the day.

        The first ``limit`` matching trades are all kept; past that only
        every second matching trade is kept, which roughly halves the tail
        of a busy hour.

        Args:
            hour: Two-digit UTC hour ("00".."23")
            limit: Number of matches kept before sampling starts; 0 disables sampling

        Returns:
            Price points in file order

        Raises:
            DataParsingError: If ``hour`` is not a valid hour
        """
        hour = self._normalize_hour(hour)
        if limit is None:
            limit = self.config.hour_limit

        frame = self.load_frame()
        matched = frame[frame["hour"] == hour]

        if limit > 0 and len(matched) > limit:
            ordinal = pd.Series(range(1, len(matched) + 1), index=matched.index)
            keep = (ordinal <= limit) | (ordinal % 2 == 0)
            logger.info(
                f"Sampling hour {hour}: {len(matched)} trades, keeping {int(keep.sum())}"
            )
            matched = matched[keep]

        return self.to_price_points(matched)

    def get_available_hours(self) -> List[HourInfo]:
        """
        Count trades per hour of the day.

        Returns:
            HourInfo entries sorted by hour
        """
        frame = self.load_frame()
        counts = frame.groupby("hour").size().sort_index()
        return [HourInfo(hour=str(hour), count=int(count)) for hour, count in counts.items()]

    def clear_cache(self) -> None:
        """Clear cached frames."""
        self._cache.clear()
        logger.info("Cleared cached trade data")

    @staticmethod
    def to_price_points(frame: pd.DataFrame) -> List[PricePoint]:
        return [
            PricePoint(time=int(t), price=float(p))
            for t, p in zip(frame["time"], frame["price"])
        ]

    def _read_csv(self, path: Path) -> pd.DataFrame:
        if not path.exists():
            raise DataFetchError(
                f"Trade file not found: {path}",
                source=str(path),
            )

        try:
            return pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                on_bad_lines="skip",
            )
        except pd.errors.EmptyDataError as e:
            raise DataFetchError(
                f"Trade file is empty: {path}",
                source=str(path),
                cause=e,
            ) from e
        except pd.errors.ParserError as e:
            raise DataParsingError(
                f"Trade file could not be parsed: {path}",
                expected_type="CSV",
                cause=e,
            ) from e

    def _normalize(self, raw: pd.DataFrame, path: Path) -> pd.DataFrame:
        raw.columns = [str(c).strip().lower() for c in raw.columns]

        missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
        if missing:
            raise DataValidationError(
                f"Missing required columns in {path.name}",
                field="columns",
                value=missing,
                expected=str(TRADE_COLUMNS),
            )

        price = pd.to_numeric(raw["price"].str.strip(), errors="coerce")
        time = pd.to_numeric(raw["time"].str.strip(), errors="coerce")

        valid = price.notna() & time.notna()
        skipped = int((~valid).sum())
        self.last_skipped_rows = skipped
        if skipped:
            logger.warning(f"Skipped {skipped} malformed rows in {path.name}")

        frame = pd.DataFrame(
            {
                "time": time[valid].astype("int64"),
                "price": price[valid].astype(float),
            }
        ).reset_index(drop=True)

        frame["hour"] = pd.to_datetime(frame["time"], unit="ms", utc=True).dt.strftime("%H")

        logger.info(f"Loaded {len(frame)} trades from {path.name}")
        return frame

    @staticmethod
    def _normalize_hour(hour: str) -> str:
        text = str(hour).strip()
        if not text.isdigit() or not 0 <= int(text) <= 23:
            raise DataParsingError(
                "Hour must be an integer between 00 and 23",
                raw_data=text,
                expected_type="hour",
            )
        return f"{int(text):02d}"
