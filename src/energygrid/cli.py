"""CLI entry point using Typer."""

import logging
import sys

import structlog
import typer
from rich.console import Console
from rich.table import Table

from energygrid.config import load_settings
from energygrid.errors import ConfigurationError
from energygrid.jobs.aggregate import RunResult, run_aggregation
from energygrid.shutdown import ShutdownFlag

app = typer.Typer(
    name="energygrid",
    help="EnergyGrid - Rate-limited telemetry aggregation for inverter fleets.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def configure_logging(level: str = "info") -> None:
    """Configure structured logging to stderr at the requested level."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if level == "debug" else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _print_summary(result: RunResult) -> None:
    table = Table(title="Aggregation Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Records fetched", f"{len(result.records)}/{result.total_devices}")
    table.add_row("Batches succeeded", str(result.succeeded))
    table.add_row("Batches failed", str(result.failed))
    table.add_row("Success rate", f"{result.success_rate:.2f}%")
    table.add_row("Time elapsed", f"{result.duration_seconds:.2f}s")
    if result.interrupted:
        table.add_row("Stopped early", f"{result.total_batches - result.processed_batches} batches skipped")
    console.print(table)

    for label in result.failed_ranges:
        console.print(f"[red]Failed batch:[/red] {label}")


@app.command()
def run(
    save: bool = typer.Option(False, "--save", "-s", help="Save results to a timestamped JSON file"),
    sample: int = typer.Option(3, "--sample", min=0, help="Number of sample records to print"),
    output_dir: str | None = typer.Option(None, "--output-dir", help="Directory for saved results"),
) -> None:
    """Fetch telemetry for all devices and print a sample of the results."""
    overrides = {"output_dir": output_dir} if output_dir else {}
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)

    configure_logging(settings.log_level)
    shutdown = ShutdownFlag()
    shutdown.install_signal_handlers()

    console.print("[bold blue]Starting EnergyGrid telemetry aggregation...[/bold blue]")
    try:
        result = run_aggregation(persist=save, settings=settings, shutdown=shutdown)
    except Exception as e:
        console.print(f"[bold red]Fatal error:[/bold red] {e}")
        raise typer.Exit(1)

    _print_summary(result)

    if sample and result.records:
        console.print(f"\n[bold]Sample data (first {min(sample, len(result.records))} records):[/bold]")
        console.print_json(data=result.records[:sample])

    if save:
        if result.saved_path:
            console.print(f"[green]Results saved:[/green] {result.saved_path}")
        else:
            console.print("[yellow]Nothing saved.[/yellow]")

    if result.interrupted:
        console.print("[yellow]Stopped early after shutdown request.[/yellow]")
