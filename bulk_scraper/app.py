"""Typer CLI entrypoint for bulk_scraper."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigLocator, ConfigRepository, RunConfig
from .engine import DiscoveryResult
from .errors import CheckpointError, SourceUnreachableError
from .logging_conf import run_logger
from .orchestrator import BulkScraper, RunSummary

T = TypeVar("T")

app = typer.Typer(
    help="Resumable bulk URL collection and article scraping.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="YAML or JSON run configuration.")
TargetOption = typer.Option(None, "--target", help="Number of URLs to collect.")
BatchSizeOption = typer.Option(None, "--batch-size", help="Keys per batch.")
ConcurrencyOption = typer.Option(None, "--concurrency", help="Concurrent fetches within a batch.")
RetriesOption = typer.Option(None, "--retries", help="Attempts per key.")
TimeoutOption = typer.Option(None, "--timeout", help="Per-attempt timeout in seconds.")
FormatOption = typer.Option(None, "--format", "-f", help="Export format: json, csv or both.")
HeadlessOption = typer.Option(None, "--headless/--headed", help="Run the browser headless.")
ResumeOption = typer.Option(None, "--resume/--no-resume", help="Resume from existing checkpoints.")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")
ProgressOption = typer.Option(True, "--progress/--no-progress", help="Show a progress bar.")


def load_config(config_path: Optional[Path], **overrides: Any) -> tuple[ConfigLocator, RunConfig]:
    locator = ConfigLocator()
    repository = ConfigRepository(locator)
    try:
        config = repository.load(config_path)
        config = repository.apply_overrides(config, **overrides)
    except (FileNotFoundError, ValueError) as exc:
        # pydantic's ValidationError is a ValueError subclass.
        message = str(exc) if not isinstance(exc, ValidationError) else exc.errors()[0]["msg"]
        raise typer.BadParameter(message) from exc
    return locator, config


def build_scraper(locator: ConfigLocator, config: RunConfig, verbose: bool, progress: bool) -> BulkScraper:
    logger = run_logger(config.export.output_prefix, log_dir=locator.logs_dir, verbose=verbose)
    return BulkScraper(config, locator.project_root, logger=logger, progress_enabled=progress)


def _install_stop_handler(loop: asyncio.AbstractEventLoop, scraper: BulkScraper) -> bool:
    """First Ctrl-C asks for a graceful stop; a second one interrupts as usual."""

    def on_interrupt() -> None:
        loop.remove_signal_handler(signal.SIGINT)
        console.print("[yellow]Stopping after in-flight work; press Ctrl-C again to abort.[/yellow]")
        scraper.request_stop()

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _run(scraper: BulkScraper, operation: Callable[[BulkScraper], Awaitable[T]]) -> T:
    async def runner() -> T:
        _install_stop_handler(asyncio.get_running_loop(), scraper)
        try:
            return await operation(scraper)
        finally:
            await scraper.close()

    try:
        return asyncio.run(runner())
    except SourceUnreachableError as exc:
        console.print(f"[red]Collection failed:[/red] {exc}")
        console.print(f"Partial results kept: {exc.result.total_collected} URLs")
        raise typer.Exit(code=2) from exc
    except CheckpointError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=3) from exc


def _render_summary(summary: RunSummary, title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Collected", str(summary.collected))
    table.add_row("Succeeded", f"[green]{summary.succeeded}[/green]")
    table.add_row("Failed", f"[red]{summary.failed}[/red]")
    for kind, path in summary.export_paths.items():
        table.add_row(f"Export ({kind})", str(path))
    return table


def _render_collection(result: DiscoveryResult) -> Table:
    table = Table(title="URL collection", box=box.SIMPLE_HEAVY)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Collected", str(result.total_collected))
    table.add_row("New this run", str(result.new_keys))
    table.add_row("Steps", str(result.steps))
    return table


@app.command("collect", help="Collect item URLs from the listing source.")
def collect(
    config: Optional[Path] = ConfigOption,
    target: Optional[int] = TargetOption,
    headless: Optional[bool] = HeadlessOption,
    resume: Optional[bool] = ResumeOption,
    verbose: bool = VerboseOption,
) -> None:
    locator, run_config = load_config(
        config, target_count=target, headless=headless, resume_from_file=resume
    )
    scraper = build_scraper(locator, run_config, verbose, progress=False)
    result = _run(scraper, lambda s: s.collect_urls())
    console.print(_render_collection(result))


@app.command("scrape", help="Collect URLs, scrape every article and export the results.")
def scrape(
    config: Optional[Path] = ConfigOption,
    target: Optional[int] = TargetOption,
    batch_size: Optional[int] = BatchSizeOption,
    concurrency: Optional[int] = ConcurrencyOption,
    retries: Optional[int] = RetriesOption,
    timeout: Optional[float] = TimeoutOption,
    export_format: Optional[str] = FormatOption,
    headless: Optional[bool] = HeadlessOption,
    resume: Optional[bool] = ResumeOption,
    verbose: bool = VerboseOption,
    progress: bool = ProgressOption,
) -> None:
    locator, run_config = load_config(
        config,
        target_count=target,
        batch_size=batch_size,
        concurrency=concurrency,
        retries=retries,
        timeout=timeout,
        export_format=export_format,
        headless=headless,
        resume_from_file=resume,
    )
    scraper = build_scraper(locator, run_config, verbose, progress)
    summary = _run(scraper, lambda s: s.run_full_pipeline())
    console.print(_render_summary(summary, "Bulk scrape"))


@app.command("scrape-file", help="Scrape the URLs listed in a keys or failed-keys JSON file.")
def scrape_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with URLs."),
    config: Optional[Path] = ConfigOption,
    batch_size: Optional[int] = BatchSizeOption,
    concurrency: Optional[int] = ConcurrencyOption,
    retries: Optional[int] = RetriesOption,
    timeout: Optional[float] = TimeoutOption,
    export_format: Optional[str] = FormatOption,
    headless: Optional[bool] = HeadlessOption,
    resume: Optional[bool] = ResumeOption,
    verbose: bool = VerboseOption,
    progress: bool = ProgressOption,
) -> None:
    locator, run_config = load_config(
        config,
        batch_size=batch_size,
        concurrency=concurrency,
        retries=retries,
        timeout=timeout,
        export_format=export_format,
        headless=headless,
        resume_from_file=resume,
    )
    scraper = build_scraper(locator, run_config, verbose, progress)
    summary = _run(scraper, lambda s: s.scrape_from_file(path))
    console.print(_render_summary(summary, "Scrape from file"))


@app.command("retry-failed", help="Retry failed URLs with more attempts and a longer timeout.")
def retry_failed(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="failed_urls_*.json file."),
    config: Optional[Path] = ConfigOption,
    batch_size: Optional[int] = BatchSizeOption,
    export_format: Optional[str] = FormatOption,
    headless: Optional[bool] = HeadlessOption,
    verbose: bool = VerboseOption,
    progress: bool = ProgressOption,
) -> None:
    locator, run_config = load_config(
        config, batch_size=batch_size, export_format=export_format, headless=headless
    )
    scraper = build_scraper(locator, run_config, verbose, progress)
    summary = _run(scraper, lambda s: s.retry_failed_urls(path))
    console.print(_render_summary(summary, "Retry failed URLs"))
    console.print(f"Recovered {summary.succeeded}/{len(summary.results)} URLs")


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
