import asyncio
from datetime import datetime, timedelta, timezone

import typer
from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from probewatch.config import settings
from probewatch.core.exceptions import ProbewatchError
from probewatch.services.grouping import format_duration

console = Console()
cli_app = typer.Typer(name="probewatch", help="Uptime and downtime reports from Prometheus probe metrics")


def _run_async(coro):
    """Run async code from sync CLI context."""
    return asyncio.run(coro)


def _resolve(hours: int, start: datetime | None, end: datetime | None) -> tuple[datetime, datetime]:
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(hours=hours)
    return start, end


def _with_services(fn):
    """Build backend and services, run ``fn(downtime, targets)``, then close the client."""
    from probewatch.main import build_backend
    from probewatch.services.downtime import DowntimeService
    from probewatch.services.targets import TargetService

    async def _go():
        backend = build_backend(settings)
        try:
            return await fn(DowntimeService(backend, settings), TargetService(backend, settings))
        finally:
            await backend.close()

    try:
        return _run_async(_go())
    except ProbewatchError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(code=1)


def _fmt(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S")


@cli_app.command("targets")
def list_targets():
    """List probed targets known to Prometheus."""
    targets = _with_services(lambda _, svc: svc.discover_targets())

    if not targets:
        console.print("[dim]No targets found.[/dim]")
        return
    for target in targets:
        console.print(target)


@cli_app.command("status")
def status():
    """Show the latest probe result for every target."""
    states = _with_services(lambda _, svc: svc.get_current_status())

    table = Table(title="Current Status")
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    for state in sorted(states, key=lambda s: s.target):
        table.add_row(state.target, "[green]up[/green]" if state.up else "[red]down[/red]")
    console.print(table)


@cli_app.command("downtime")
def downtime(
    target: str = typer.Argument(help="Target instance label"),
    hours: int = typer.Option(24, "--hours", help="Look back this many hours (ignored with --start)"),
    start: datetime = typer.Option(None, "--start", help="Range start"),
    end: datetime = typer.Option(None, "--end", help="Range end (default: now)"),
    min_minutes: float = typer.Option(None, "--min-minutes", help="Leave out downtimes this short from the summary"),
):
    """Print downtime periods and uptime for one target."""
    range_start, range_end = _resolve(hours, start, end)
    min_duration = timedelta(minutes=min_minutes) if min_minutes is not None else None

    async def _query(svc, _):
        return await svc.get_downtime_summary(target, range_start, range_end, min_duration=min_duration)

    intervals, summary = _with_services(_query)

    table = Table(title=f"Downtime for {target}")
    table.add_column("Start", style="cyan")
    table.add_column("End")
    table.add_column("Duration", style="red")
    for interval in intervals:
        table.add_row(_fmt(interval.start), _fmt(interval.end), format_duration(interval.duration))
    console.print(table)
    console.print(
        f"Uptime: [bold]{summary.uptime_percent:.3f}%[/bold]  "
        f"Downtime: {format_duration(summary.downtime_total)}  Events: {summary.event_count}"
    )


@cli_app.command("group-downtime")
def group_downtime(
    targets: list[str] = typer.Argument(help="Target instance labels"),
    hours: int = typer.Option(24, "--hours", help="Look back this many hours (ignored with --start)"),
    start: datetime = typer.Option(None, "--start", help="Range start"),
    end: datetime = typer.Option(None, "--end", help="Range end (default: now)"),
):
    """Print downtime periods for several targets, newest first."""
    range_start, range_end = _resolve(hours, start, end)

    async def _query(svc, _):
        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Fetching", total=None)

            def on_progress(completed: int, total: int, message: str) -> None:
                progress.update(task, completed=completed, total=total, description=message)

            return await svc.collect_group_downtime(targets, range_start, range_end, on_progress=on_progress)

    result = _with_services(_query)

    table = Table(title="Group Downtime")
    table.add_column("Target", style="cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Duration", style="red")
    for interval in result.intervals:
        table.add_row(interval.target, _fmt(interval.start), _fmt(interval.end), format_duration(interval.duration))
    console.print(table)

    for failure in result.failures:
        console.print(f"[yellow]Incomplete data:[/yellow] {failure.message}")


@cli_app.command("uptime")
def uptime(
    target: str = typer.Argument(help="Target instance label"),
    hours: int = typer.Option(24, "--hours", help="Look back this many hours"),
    sampled: bool = typer.Option(False, "--sampled", help="Average the 1m-smoothed probe series instead"),
):
    """Print the backend-computed uptime percentage for one target."""
    range_start, range_end = _resolve(hours, None, None)
    if sampled:
        pct = _with_services(lambda _, svc: svc.get_target_uptime(target, range_start, range_end))
    else:
        pct = _with_services(lambda svc, _: svc.get_uptime_percentage(target, range_start, range_end))
    console.print(f"{target}: [bold]{pct:.3f}%[/bold] over the last {hours}h")


@cli_app.command("check")
def check():
    """Test the connection to Prometheus."""
    _with_services(lambda _, svc: svc.test_connection())
    console.print(f"[bold green]Connected[/bold green] to {settings.prometheus_base_url}")


if __name__ == "__main__":
    cli_app()
