# listing_watch/cli/runner.py

"""Headless CLI commands built on the async orchestrator."""

import asyncio
import logging
import signal

from rich.console import Console
from rich.table import Table

from listing_watch.config.config_store import ConfigStore
from listing_watch.errors import ListingWatchError
from listing_watch.extractors.factory import validate_site_config
from listing_watch.models.listing import ListingRecord
from listing_watch.services.change_detector import ChangeDetector
from listing_watch.services.run_scheduler import RunScheduler, frequency_seconds
from listing_watch.services.search_orchestrator import (
    SearchOrchestrator,
    SearchRunResult,
)

logger = logging.getLogger("listing_watch.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)


def _price_text(record: ListingRecord) -> str:
    value = record.price_value
    return f"{value:,}" if value is not None else "N/A"


def _print_results(result: SearchRunResult) -> None:
    """Render a Rich table of one search run's listings to stdout."""
    table = Table(
        title=f"{result.search_name}: {result.total_results} listings",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Status", justify="center")
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Location")
    table.add_column("Site", style="magenta")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, record in enumerate(result.results, 1):
        if record.is_new:
            status = "[green]NEW[/green]"
        elif record.is_changed:
            status = "[yellow]CHANGED[/yellow]"
        else:
            status = ""
        table.add_row(
            str(idx),
            status,
            record.title[:60],
            _price_text(record),
            record.location or "-",
            record.site_name,
            record.detail_url,
        )

    Console().print(table)


def _print_site_summary(result: SearchRunResult) -> None:
    for run in result.site_runs:
        if run.ok:
            _err.print(
                f"[green]✓ {run.site_name}: {len(run.results)} listings"
                f" ({run.new_count} new, {run.changed_count} changed,"
                f" {run.excluded_count} filtered)[/green]"
            )
            if run.export_path is not None:
                _err.print(f"[dim]Saved {run.site_name} → {run.export_path}[/dim]")
        else:
            _err.print(f"[red]✗ {run.site_name}: {run.error}[/red]")


async def run_search_cli(
    search_name: str,
    site_name: str | None = None,
    config_store: ConfigStore | None = None,
) -> int:
    """Run one search and return an exit code (0=ok, 1=fail)."""
    config_store = config_store or ConfigStore()
    orchestrator = SearchOrchestrator(config_store)

    target = f"{search_name} ({site_name})" if site_name else search_name
    _err.print(f"[bold]Running search:[/bold] {target}")
    try:
        result = await orchestrator.run_search(search_name, site_name)
    except ListingWatchError as exc:
        logger.error("Search failed: %s", exc)
        _err.print(f"[red]{exc}[/red]")
        return 1

    if result.skipped:
        _err.print(f"[yellow]Search '{search_name}' skipped (disabled).[/yellow]")
        return 0

    _print_site_summary(result)
    if not result.results:
        _err.print("[yellow]No listings found.[/yellow]")
        return 1 if result.failures else 0

    _print_results(result)
    return 0


async def run_all_cli(config_store: ConfigStore | None = None) -> int:
    """Run every enabled search once."""
    config_store = config_store or ConfigStore()
    orchestrator = SearchOrchestrator(config_store)

    _err.print("[bold]Running all enabled searches...[/bold]")
    results = await orchestrator.run_all_enabled_searches()
    for result in results:
        _err.print(
            f"[bold]{result.search_name}[/bold]: "
            f"{result.total_results} listings"
        )
        _print_site_summary(result)
    _err.print(f"[green]✓ Completed {len(results)} search(es)[/green]")
    return 0


async def run_continuous(config_store: ConfigStore | None = None) -> int:
    """Start the scheduler and block until SIGINT/SIGTERM."""
    scheduler = RunScheduler(config_store or ConfigStore())
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    await scheduler.start()
    status = scheduler.get_status()
    _err.print(
        f"[bold]Scheduler running[/bold] with "
        f"{len(status['scheduled_searches'])} search(es). Ctrl+C to stop."
    )
    for name, next_run in status["next_runs"].items():
        _err.print(f"[dim]  {name}: next run {next_run}[/dim]")

    await stop_event.wait()
    _err.print("[bold]Shutting down...[/bold]")
    scheduler.stop()
    await scheduler.wait_for_runs()
    return 0


def list_searches(config_store: ConfigStore | None = None) -> int:
    """Print every configured search as a table."""
    config_store = (config_store or ConfigStore()).load()

    table = Table(title="Configured Searches", title_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Enabled", justify="center")
    table.add_column("Frequency")
    table.add_column("Sites", style="magenta")
    table.add_column("Description", style="dim")

    for search in config_store.searches.values():
        sites = ", ".join(
            s.site_name if s.enabled else f"[dim]{s.site_name}[/dim]"
            for s in search.sites.values()
        )
        table.add_row(
            search.name,
            "[green]yes[/green]" if search.enabled else "[red]no[/red]",
            f"{search.run_frequency} ({frequency_seconds(search.run_frequency)}s)",
            sites,
            search.description,
        )

    Console().print(table)
    return 0


def show_summary(
    search_name: str,
    hours: float,
    detector: ChangeDetector | None = None,
) -> int:
    """Print the change summary for one search."""
    detector = detector or ChangeDetector()
    detector.store.load()
    summary = detector.summarize(search_name, hours)

    _err.print(
        f"[bold]{search_name}[/bold]: {summary.total_listings} tracked, "
        f"{summary.new_listings} new and {summary.changed_listings} "
        f"changed in the last {hours:g}h"
    )

    table = Table(title="Recent Changes", show_lines=True, title_style="bold cyan")
    table.add_column("Title", max_width=50)
    table.add_column("Field", style="bold")
    table.add_column("Previous", style="red")
    table.add_column("Current", style="green")
    table.add_column("When", style="dim")

    for recent in summary.recent_changes:
        for change in recent.changes:
            table.add_row(
                recent.title[:50],
                change.field,
                str(change.previous_value),
                str(change.current_value),
                change.timestamp.strftime("%Y-%m-%d %H:%M"),
            )

    Console().print(table)
    return 0


def run_cleanup(
    retention_days: int,
    detector: ChangeDetector | None = None,
) -> int:
    """Drop history entries idle for longer than *retention_days*."""
    detector = detector or ChangeDetector()
    detector.store.load()
    removed = detector.cleanup(retention_days)
    _err.print(
        f"[green]✓ Removed {removed} entr{'y' if removed == 1 else 'ies'}"
        f" older than {retention_days} days[/green]"
    )
    return 0


def validate_sites(config_store: ConfigStore | None = None) -> int:
    """Validate every site document; non-zero exit if any is invalid."""
    config_store = (config_store or ConfigStore()).load()

    table = Table(title="Site Configurations", show_lines=True, title_style="bold cyan")
    table.add_column("Site", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Problems", style="dim")

    any_invalid = False
    for key, site_config in sorted(config_store.site_configs.items()):
        result = validate_site_config(site_config)
        if result.is_valid:
            status = "[green]OK[/green]"
        else:
            status = "[red]INVALID[/red]"
            any_invalid = True
        problems = [f"error: {e}" for e in result.errors]
        problems += [f"warning: {w}" for w in result.warnings]
        table.add_row(key, status, "\n".join(problems) or "-")

    Console().print(table)
    return 1 if any_invalid else 0
