"""
Example demonstrating the tick backtester.

This script shows how to:
1. Load a trade dump and inspect which hours it covers
2. Run a Bollinger Bands backtest over one hour
3. Compare band widths against the buy-every-sample baseline
4. Export reports
"""

import logging
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd

from hft_backtester.backtesting import (
    BacktestConfig,
    BacktestEngine,
    BacktestReport,
    DataLoaderConfig,
    TradeDataLoader,
)
from hft_backtester.strategies import BollingerBandsStrategy

logger = logging.getLogger(__name__)


def write_synthetic_trades(path: Path, n: int = 20_000, seed: int = 7) -> Path:
    """
    Write a random-walk trade dump in the exchange CSV layout.

    Prices hover around 1.0 like a stablecoin pair; trades are spread over
    three UTC hours.
    """
    rng = np.random.default_rng(seed)
    start = pd.Timestamp("2025-09-20 13:00", tz="UTC").value // 1_000_000

    prices = 1.0 + np.cumsum(rng.normal(0, 0.0002, n))
    times = start + np.sort(rng.integers(0, 3 * 3600 * 1000, n))
    qty = rng.uniform(1, 500, n).round(2)

    frame = pd.DataFrame(
        {
            "id": np.arange(1, n + 1),
            "price": prices.round(6),
            "qty": qty,
            "quote_qty": (prices * qty).round(6),
            "time": times,
            "is_buyer_maker": rng.random(n) < 0.5,
        }
    )
    frame.to_csv(path, index=False)
    return path


def run_single_backtest(loader: TradeDataLoader, output_dir: Path):
    """Run one Bollinger backtest over the 14:00 hour."""
    logger.info("=" * 60)
    logger.info("EXAMPLE 1: Bollinger Bands over one hour")
    logger.info("=" * 60)

    for info in loader.get_available_hours():
        print(f"  {info.hour}:00  {info.count:>6} trades")

    points = loader.load_trades_by_hour("14", limit=5000)

    config = BacktestConfig(
        initial_cash=100.0,
        position_size=50.0,
        commission_rate=0.0005,  # 5 bp
        symbol="STBLUSDT",
    )
    engine = BacktestEngine(config=config)
    result = engine.run(points, BollingerBandsStrategy(period=100, std_dev=1.0))

    report = BacktestReport(result)
    print("\n" + report.generate_summary())

    report.export_results(str(output_dir / "bollinger_14h"), format="json")
    report.export_results(str(output_dir / "bollinger_14h"), format="csv")
    report.generate_report_html(str(output_dir / "bollinger_14h"))


def compare_band_widths(loader: TradeDataLoader):
    """Run several band widths and the baseline on the same series."""
    logger.info("\n" + "=" * 60)
    logger.info("EXAMPLE 2: Comparing band widths")
    logger.info("=" * 60)

    points = loader.load_trades(limit=0)
    engine = BacktestEngine(BacktestConfig(symbol="STBLUSDT"))

    results = engine.run_multiple(
        points,
        {
            "baseline": None,
            "bb_1.0": BollingerBandsStrategy(period=100, std_dev=1.0),
            "bb_2.0": BollingerBandsStrategy(period=100, std_dev=2.0),
            "bb_3.0": BollingerBandsStrategy(period=100, std_dev=3.0),
        },
    )

    comparison = pd.DataFrame(
        [
            {
                "strategy": name,
                "trades": len(result.trades),
                "final_equity": result.final_equity,
                "return_pct": result.total_return(),
                "max_drawdown_pct": result.max_drawdown(),
                "commission": result.total_commission(),
            }
            for name, result in results.items()
        ]
    )

    print("\n" + "=" * 60)
    print("COMPARISON OF STRATEGIES")
    print("=" * 60)
    print(comparison.to_string(index=False))


def main():
    """Run all examples."""
    workdir = Path(tempfile.mkdtemp(prefix="hft_backtest_"))
    trades_file = write_synthetic_trades(workdir / "STBLUSDT-trades.csv")
    loader = TradeDataLoader(DataLoaderConfig(trades_file=trades_file))

    try:
        run_single_backtest(loader, workdir / "results")
        compare_band_widths(loader)

        logger.info("\n" + "=" * 60)
        logger.info(f"All examples completed; output in {workdir}")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"Error running examples: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
