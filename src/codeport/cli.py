"""Command-line interface for Codeport."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from codeport.core import (
    CodeportError,
    RunOptions,
    RunPlan,
    RunSummary,
    estimate_cost,
    plan,
    run,
)
from codeport.core.cost import CostEstimate
from codeport.core.output import OutputFormat, RunMetadata, RunReport, create_handler
from codeport.core.progress import CurrentCostColumn, FailedUnitsColumn, format_cost
from codeport.utils.logging import configure_logging, get_logger

app = typer.Typer(
    name="codeport",
    help="A CLI tool for translating source trees between programming languages using LLMs",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)
logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        from codeport import __version__

        console.print(f"Codeport version: {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version information and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Set the logging level.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output logs in JSON format.",
    ),
) -> None:
    """Codeport - translate source trees between programming languages using LLMs."""
    try:
        configure_logging(level=log_level, json=json_logs)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level")


def display_plan(run_plan: RunPlan, estimate: CostEstimate) -> None:
    """Display a dry-run plan in a rich format."""
    table = Table(title="Translation Plan", show_header=False)
    table.add_column("Metric", style="bold blue")
    table.add_column("Value")

    table.add_row("Files", f"{run_plan.total_units:,}")
    table.add_row("Requests", f"{run_plan.total_requests:,}")
    table.add_row("Estimated Tokens", f"{estimate.estimated_tokens:,}")
    if estimate.estimated_cost is not None:
        table.add_row("Estimated Cost", format_cost(estimate.estimated_cost))
        table.add_row("Cost Level", estimate.cost_level.value.title())
    table.add_row(
        "Estimated Time",
        f"{estimate.estimated_time / 60:.1f} minutes" if estimate.estimated_time > 60 else "<1 minute",
    )

    console.print(table)

    if estimate.warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for warning in estimate.warnings:
            console.print(f"• {warning}")


def display_summary(summary: RunSummary) -> None:
    """Display run statistics in a rich format."""
    table = Table(title="Translation Summary", show_header=False)
    table.add_column("Metric", style="bold blue")
    table.add_column("Value")

    table.add_row("Files", f"{summary.total_units:,}")
    table.add_row("Succeeded", f"{summary.succeeded:,}")
    table.add_row("Failed", f"{len(summary.failed):,}")
    table.add_row("Tokens Used", f"{summary.tokens_used:,}")
    table.add_row("Cost", format_cost(summary.cost))
    table.add_row("Time Taken", f"{summary.time_taken:.1f} seconds")

    console.print("\n", table)


async def run_until_interrupted(
    source: Path,
    destination: Path,
    api_key: str,
    options: RunOptions,
    progress: Progress,
) -> RunSummary:
    """Run the pipeline, turning the first Ctrl+C into a cooperative cancel."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handles_signal = True
    except (NotImplementedError, RuntimeError):
        # No signal handlers on Windows event loops or outside the main thread
        handles_signal = False

    try:
        return await run(
            source,
            destination,
            api_key,
            options,
            progress=progress,
            cancel_event=cancel_event,
        )
    finally:
        if handles_signal:
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def translate(
    source: Path = typer.Argument(
        ...,
        help="Source file or directory.",
        exists=True,
        file_okay=True,
        dir_okay=True,
        resolve_path=True,
    ),
    destination: Path = typer.Argument(
        ...,
        help="Destination directory.",
        file_okay=False,
        resolve_path=True,
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        "-k",
        envvar="OPENAI_API_KEY",
        help="API key for the completion service.",
        show_default=False,
    ),
    source_language: str = typer.Option(
        "java",
        "--from",
        "-f",
        help="Source language (e.g., 'java', 'python').",
    ),
    target_language: str = typer.Option(
        "php",
        "--to",
        "-t",
        help="Target language (e.g., 'php', 'kotlin').",
    ),
    model: str = typer.Option(
        "gpt-4o-mini",
        "--model",
        "-m",
        help="LiteLLM model to use (e.g., 'gpt-4o-mini', 'anthropic/claude-3-5-sonnet-20240620').",
    ),
    concurrency: int = typer.Option(
        4,
        "--concurrency",
        "-c",
        help="Number of files translated at once.",
    ),
    timeout: float = typer.Option(
        60.0,
        "--timeout",
        help="Timeout for a single request attempt in seconds.",
    ),
    max_attempts: int = typer.Option(
        3,
        "--max-attempts",
        help="Maximum attempts per request, including the first.",
    ),
    chunk_size: int = typer.Option(
        16_000,
        "--chunk-size",
        help="Files larger than this many bytes are translated in parts.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be translated and the estimated cost, then exit.",
    ),
    report_file: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Write a run report to this file.",
    ),
    report_format: OutputFormat = typer.Option(
        OutputFormat.TEXT,
        "--format",
        "-F",
        help="Report format (text or json).",
    ),
) -> None:
    """Translate a source file or directory tree using LLMs."""
    try:
        options = RunOptions(
            source_language=source_language,
            target_language=target_language,
            model_name=model,
            concurrency=concurrency,
            timeout=timeout,
            max_attempts=max_attempts,
            chunk_size=chunk_size,
        )
    except ValidationError as e:
        err_console.print(f"[red]Invalid options:[/red]\n{escape(str(e))}")
        raise typer.Exit(1)

    if dry_run:
        try:
            run_plan = asyncio.run(plan(source, destination, options))
        except CodeportError as e:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        display_plan(run_plan, estimate_cost(run_plan, options.model_name, options.concurrency))
        return

    if not api_key:
        err_console.print("[red]Error: No API key. Pass --api-key or set OPENAI_API_KEY.[/red]")
        raise typer.Exit(1)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            FailedUnitsColumn(),
            CurrentCostColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            summary = asyncio.run(
                run_until_interrupted(source, destination, api_key, options, progress)
            )
    except CodeportError as e:
        logger.error("Run aborted", error=str(e), kind=type(e).__name__)
        err_console.print(f"[red]Error: {type(e).__name__}: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Run failed")
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    display_summary(summary)

    if report_file:
        report = RunReport(
            metadata=RunMetadata(
                source_language=options.source_language,
                target_language=options.target_language,
                model_name=options.model_name,
                source_path=source,
                destination_path=destination,
            ),
            summary=summary,
        )
        create_handler(report_format).write(report, report_file)

    if not summary.ok:
        err_console.print(f"\n[red]{len(summary.failed)} file(s) failed:[/red]")
        for failed in summary.failed:
            err_console.print(
                f"{failed.path}: {failed.reason}",
                markup=False,
                highlight=False,
                soft_wrap=True,
            )
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
