"""
Backtesting report generation.

This module turns a BacktestResult into text summaries, DataFrames, JSON/CSV
exports, and a standalone HTML report with an interactive chart.
"""

import html
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from hft_backtester.backtesting.engine import BacktestResult

logger = logging.getLogger(__name__)


@dataclass
class BacktestReport:
    """
    Generate reports from backtest results.

    Example:
        >>> report = BacktestReport(result)
        >>> print(report.generate_summary())
        >>> report.export_results("results/run_1", format="json")
        >>> report.generate_report_html("results/run_1")
    """

    result: BacktestResult

    def generate_summary(self, detailed: bool = True) -> str:
        """
        Generate a text summary of backtest results.

        Args:
            detailed: If True, include detailed trade statistics

        Returns:
            Formatted text summary
        """
        summary = self.result.summary()

        if detailed:
            summary = f"{summary}\n\n{self._generate_detailed_section()}"

        return summary

    def _generate_detailed_section(self) -> str:
        """Generate detailed statistics section."""
        trades = self.result.trade_log()

        if trades.empty:
            return "No trades executed during backtest run."

        buy_trades = trades[trades["direction"] == "BUY"]
        sell_trades = trades[trades["direction"] == "SELL"]

        lines = [
            "DETAILED TRADE ANALYSIS",
            "-" * 60,
            f"Buy Orders:         {len(buy_trades):>14}",
            f"Sell Orders:        {len(sell_trades):>14}",
        ]

        if len(buy_trades) > 0:
            lines.append(f"Avg Buy Price:      {buy_trades['price'].mean():>14,.6f}")

        if len(sell_trades) > 0:
            lines.append(f"Avg Sell Price:     {sell_trades['price'].mean():>14,.6f}")

        total_volume = trades["value"].sum()
        lines.extend(
            [
                f"Total Volume:       {total_volume:>14,.4f}",
                f"Avg Trade Size:     {total_volume / len(trades):>14,.4f}",
            ]
        )

        if self.result.open_positions:
            lines.extend(["", "OPEN POSITIONS", "-" * 60])
            lines.extend(str(p) for p in self.result.open_positions.values())

        return "\n".join(lines)

    def generate_equity_curve(self) -> pd.DataFrame:
        """
        Generate equity curve data for plotting.

        Returns:
            DataFrame with columns: equity, drawdown_pct (indexed by time)
        """
        equity = self.result.equity_series()
        running_max = equity.cummax()
        drawdown = ((equity - running_max) / running_max) * 100

        return pd.DataFrame({"equity": equity, "drawdown_pct": drawdown})

    def generate_trade_log(self) -> pd.DataFrame:
        """
        Trade log with cumulative commission and the cash change of each fill.

        Returns:
            DataFrame indexed by trade time
        """
        trades = self.result.trade_log()
        if trades.empty:
            return trades

        trades = trades.copy()
        trades["cash_change"] = trades["total_cost"].where(
            trades["direction"] == "SELL", -trades["total_cost"]
        )
        trades["cumulative_commission"] = trades["commission"].cumsum()
        return trades

    def export_results(
        self,
        output_path: str,
        format: str = "json",
        include_trades: bool = True,
    ) -> Path:
        """
        Export backtest results to file.

        Args:
            output_path: Base output path (without extension)
            format: Export format ('json' or 'csv')
            include_trades: Whether to include trade log

        Returns:
            Path to exported file (or directory for CSV)

        Raises:
            ValueError: If format is not supported
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if format == "json":
            return self._export_json(output_path, include_trades)
        elif format == "csv":
            return self._export_csv(output_path, include_trades)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _export_json(self, output_path: Path, include_trades: bool) -> Path:
        """Export results to JSON."""
        output_file = output_path.with_suffix(".json")

        data = self.result.to_dict()
        data["metadata"] = self._metadata()
        if not include_trades:
            data.pop("trades", None)

        with open(output_file, "w") as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Exported results to {output_file}")
        return output_file

    def _export_csv(self, output_path: Path, include_trades: bool) -> Path:
        """Export results to CSV."""
        output_dir = output_path.parent / output_path.stem
        output_dir.mkdir(parents=True, exist_ok=True)

        self.generate_equity_curve().to_csv(output_dir / "equity_curve.csv")
        pd.DataFrame([self._metadata()]).to_csv(output_dir / "metadata.csv", index=False)

        if include_trades and self.result.trades:
            self.generate_trade_log().to_csv(output_dir / "trades.csv")

        logger.info(f"Exported results to {output_dir}")
        return output_dir

    def _metadata(self) -> Dict:
        config = self.result.config
        return {
            "symbol": config.symbol,
            "initial_cash": config.initial_cash,
            "commission_rate": config.commission_rate,
            "position_size": config.position_size,
            "final_equity": self.result.final_equity,
            "final_cash": self.result.final_cash,
            "total_return_pct": self.result.total_return(),
            "max_drawdown_pct": self.result.max_drawdown(),
            "total_commission": self.result.total_commission(),
            "total_trades": len(self.result.trades),
        }

    def build_figure(self) -> go.Figure:
        """
        Price with trade markers on top, equity curve below.

        Price is only drawn when the result carries the echoed series.
        """
        fig = make_subplots(
            rows=2,
            cols=1,
            shared_xaxes=True,
            vertical_spacing=0.05,
            row_heights=[0.65, 0.35],
            subplot_titles=("Price", "Equity"),
        )

        if self.result.price_data:
            fig.add_trace(
                go.Scattergl(
                    x=pd.to_datetime([p.time for p in self.result.price_data], unit="ms", utc=True),
                    y=[p.price for p in self.result.price_data],
                    mode="lines",
                    name="Price",
                    line=dict(color="#2962ff", width=1),
                ),
                row=1,
                col=1,
            )

        for is_buy, name, color, symbol in (
            (True, "Buy", "#26a69a", "triangle-up"),
            (False, "Sell", "#ef5350", "triangle-down"),
        ):
            fills = [t for t in self.result.trades if t.is_buy == is_buy]
            if not fills:
                continue
            fig.add_trace(
                go.Scatter(
                    x=[t.timestamp for t in fills],
                    y=[t.price for t in fills],
                    mode="markers",
                    name=name,
                    marker=dict(color=color, symbol=symbol, size=9),
                ),
                row=1,
                col=1,
            )

        equity = self.result.equity_series()
        fig.add_trace(
            go.Scattergl(
                x=equity.index,
                y=equity.values,
                mode="lines",
                name="Equity",
                line=dict(color="#ff9800", width=1.5),
            ),
            row=2,
            col=1,
        )

        fig.update_layout(
            title=f"{self.result.config.symbol} Backtest",
            hovermode="x unified",
            template="plotly_white",
            height=700,
        )
        return fig

    def generate_report_html(self, output_path: str) -> Path:
        """
        Generate a standalone HTML report with summary and chart.

        Args:
            output_path: Output file path

        Returns:
            Path to generated HTML file
        """
        output_file = Path(output_path).with_suffix(".html")
        output_file.parent.mkdir(parents=True, exist_ok=True)

        chart = self.build_figure().to_html(full_html=False, include_plotlyjs="cdn")
        summary = html.escape(self.generate_summary())

        html_content = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Backtest Report - {html.escape(self.result.config.symbol)}</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 20px; background-color: #f5f5f5; }}
        .container {{ max-width: 1200px; margin: 0 auto; background-color: white; padding: 20px; }}
        pre {{ background-color: #f9f9f9; border-left: 3px solid #4CAF50; padding: 10px; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Backtest Report: {html.escape(self.result.config.symbol)}</h1>
        {chart}
        <h2>Summary</h2>
        <pre>{summary}</pre>
    </div>
</body>
</html>
"""

        with open(output_file, "w") as f:
            f.write(html_content)

        logger.info(f"Generated HTML report: {output_file}")
        return output_file
