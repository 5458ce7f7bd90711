import json
from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.markup import escape
from rich.table import Table

from hft_backtester.backtesting import (
    BacktestConfig,
    BacktestEngine,
    BacktestReport,
    TradeDataLoader,
)
from hft_backtester.config import get_config
from hft_backtester.exceptions import BacktesterError
from hft_backtester.strategies import create_strategy

app = typer.Typer(help="HFT Backtester CLI")


def _settings(trades_file: Optional[Path], log_level: Optional[str]):
    settings = get_config(log_level)
    if trades_file is not None:
        settings.trades_file = trades_file
    return settings


@app.command()
def hours(
    trades_file: Optional[Path] = typer.Option(None, "--trades-file", "-f", help="Trade CSV to read"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """
    List the hours of the day present in the trade file.
    """
    loader = TradeDataLoader.from_settings(_settings(trades_file, log_level))

    try:
        available = loader.get_available_hours()
    except BacktesterError as e:
        print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=str(loader.config.trades_file))
    table.add_column("Hour")
    table.add_column("Trades", justify="right")
    for info in available:
        table.add_row(f"{info.hour}:00", str(info.count))

    print(table)


@app.command()
def run(
    trades_file: Optional[Path] = typer.Option(None, "--trades-file", "-f", help="Trade CSV to read"),
    hour: Optional[str] = typer.Option(None, "--hour", help="Only replay this UTC hour (00-23)"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Point limit (0 = no limit)"),
    strategy: str = typer.Option("bollinger", "--strategy", "-s", help="'bollinger' or 'none'"),
    period: Optional[int] = typer.Option(None, "--period", help="Bollinger window length"),
    std_dev: Optional[float] = typer.Option(None, "--std-dev", help="Bollinger band width"),
    initial_cash: Optional[float] = typer.Option(None, "--initial-cash"),
    position_size: Optional[float] = typer.Option(None, "--position-size"),
    commission_rate: Optional[float] = typer.Option(None, "--commission-rate", help="Fraction, e.g. 0.0005"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result payload as JSON"),
    html_report: Optional[Path] = typer.Option(None, "--html", help="Write an HTML report with charts"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """
    Replay the trade file through a strategy and print the results.
    """
    settings = _settings(trades_file, log_level)
    loader = TradeDataLoader.from_settings(settings)

    try:
        if hour:
            points = loader.load_trades_by_hour(hour, limit)
        else:
            points = loader.load_trades(limit)
    except BacktesterError as e:
        print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    if not points:
        print("[red]No price data to replay[/red]")
        raise typer.Exit(code=1)

    try:
        base = BacktestConfig.from_settings(settings)
        config = BacktestConfig(
            initial_cash=initial_cash if initial_cash is not None else base.initial_cash,
            commission_rate=commission_rate if commission_rate is not None else base.commission_rate,
            position_size=position_size if position_size is not None else base.position_size,
            symbol=base.symbol,
        )
        chosen = create_strategy(
            strategy,
            {
                "period": period if period is not None else settings.bollinger_period,
                "std_dev": std_dev if std_dev is not None else settings.bollinger_std_dev,
            },
        )
    except BacktesterError as e:
        print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    print(f"[green]Replaying {len(points)} points with strategy '{strategy}'[/green]")
    result = BacktestEngine(config).run(points, chosen)
    report = BacktestReport(result)
    print(escape(report.generate_summary()))

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result.to_dict(), indent=2, default=str))
        print(f"[blue]Wrote {output}[/blue]")

    if html_report is not None:
        path = report.generate_report_html(str(html_report))
        print(f"[blue]Wrote {path}[/blue]")


if __name__ == "__main__":
    app()
