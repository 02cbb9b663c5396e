"""Command-line interface for the sales tracker."""

import asyncio
import functools
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import ConfigModel, get_config, load_config
from .loader import fetch_initial_tasks
from .metrics import compute_roi
from .ranking import filter_tasks
from .services.analytics import SalesAnalyzer
from .services.export import write_csv
from .storage import TaskStorage
from .store import TaskPayload, TaskStore
from .task import Priority, Task, TaskStatus
from .utils.validation import TaskValidationError, validate_task_payload

logger = logging.getLogger(__name__)

console = Console()

PRIORITY_CHOICES = [p.value for p in Priority]
STATUS_CHOICES = [s.value for s in TaskStatus]
SHORT_ID_LENGTH = 8


def setup_logging(level: str, verbose: bool = False) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def open_store(config: ConfigModel) -> Tuple[TaskStore, TaskStorage]:
    """Build the task store from persisted tasks, loading initial data on first run."""
    storage = TaskStorage.from_config(config)
    options = dict(
        last_deleted=storage.load_last_deleted(),
        seed_count=config.seed_count,
        activity_limit=config.activity_limit,
    )

    if storage.has_tasks():
        store = TaskStore(tasks=storage.load_tasks(), **options)
    else:
        loader = functools.partial(
            fetch_initial_tasks, config.initial_source, timeout=config.request_timeout
        )
        store = TaskStore(loader=loader, **options)
        asyncio.run(store.load())
        if store.error:
            console.print(f"[yellow]⚠️  Could not load initial tasks: {store.error}[/yellow]")
        else:
            storage.save_tasks(store.tasks)

    storage.attach(store)
    return store, storage


def resolve_task(store: TaskStore, task_id: str) -> Task:
    """Find a task by full id or unique id prefix, exiting on failure."""
    exact = store.get(task_id)
    if exact is not None:
        return exact

    matches = [t for t in store.tasks if t.id.startswith(task_id)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[red]❌ Task with ID {task_id} not found[/red]")
    else:
        console.print(f"[red]❌ ID prefix {task_id} matches {len(matches)} tasks, use more characters[/red]")
    sys.exit(1)


def format_roi(roi: Optional[float]) -> str:
    return "—" if roi is None else f"{roi:,.2f}"


def format_money(value: float) -> str:
    return f"${value:,.2f}"


def _store(ctx) -> TaskStore:
    return ctx.obj["store"]


@click.group(invoke_without_command=True)
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config, verbose):
    """Sales Tracker - rank sales tasks by ROI and report on the pipeline."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    if config:
        cfg = load_config(Path(config))
    else:
        cfg = get_config()

    setup_logging(cfg.log_level, verbose)
    if cfg.no_color:
        console.no_color = True

    ctx.obj['config'] = cfg
    ctx.obj['store'], ctx.obj['storage'] = open_store(cfg)

    # If no command provided, show the ranked list
    if ctx.invoked_subcommand is None:
        ctx.invoke(list_tasks)


@main.command("list")
@click.option("--status", type=click.Choice(STATUS_CHOICES), help="Filter by status")
@click.option("--priority", type=click.Choice(PRIORITY_CHOICES), help="Filter by priority")
@click.option("--search", "-s", help="Match text in title or notes")
@click.option("--limit", "-l", type=int, default=50, help="Limit number of results")
@click.pass_context
def list_tasks(ctx, status=None, priority=None, search=None, limit=50):
    """List tasks ranked by ROI."""
    store = _store(ctx)
    ranked = filter_tasks(store.derived_sorted, status=status, priority=priority, search=search)

    if not ranked:
        console.print("[yellow]No tasks match the specified filters.[/yellow]")
        return

    table = Table(title=f"Tasks ranked by ROI ({len(ranked)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Revenue", justify="right")
    table.add_column("Hours", justify="right")
    table.add_column("ROI", justify="right", style="bold")
    table.add_column("Priority")
    table.add_column("Status")

    priority_colors = {Priority.HIGH: "red", Priority.MEDIUM: "yellow", Priority.LOW: "dim"}
    for rank, task in enumerate(ranked[:limit] if limit else ranked, start=1):
        color = priority_colors.get(task.priority, "white")
        table.add_row(
            str(rank),
            task.id[:SHORT_ID_LENGTH],
            task.title,
            format_money(task.revenue),
            f"{task.time_taken:g}",
            format_roi(task.roi),
            f"[{color}]{task.priority.value}[/{color}]",
            task.status.value,
        )

    console.print(table)


@main.command()
@click.argument("task_id")
@click.pass_context
def show(ctx, task_id):
    """Show one task."""
    task = resolve_task(_store(ctx), task_id)

    lines = [
        f"[bold]ID:[/bold] {task.id}",
        f"[bold]Revenue:[/bold] {format_money(task.revenue)}",
        f"[bold]Time taken:[/bold] {task.time_taken:g}h",
        f"[bold]ROI:[/bold] {format_roi(compute_roi(task.revenue, task.time_taken))}",
        f"[bold]Priority:[/bold] {task.priority.value}",
        f"[bold]Status:[/bold] {task.status.value}",
        f"[bold]Created:[/bold] {task.created_at:%Y-%m-%d %H:%M}",
    ]
    if task.completed_at:
        lines.append(f"[bold]Completed:[/bold] {task.completed_at:%Y-%m-%d %H:%M}")
    if task.notes:
        lines.append(f"[bold]Notes:[/bold] {task.notes}")

    console.print(Panel("\n".join(lines), title=task.title))


@main.command()
@click.argument("title")
@click.option("--revenue", "-r", type=float, default=0.0, help="Revenue earned")
@click.option("--time", "-t", "time_taken", type=float, default=1.0, help="Hours spent")
@click.option("--priority", "-p", type=click.Choice(PRIORITY_CHOICES), default="Medium", help="Task priority")
@click.option("--status", type=click.Choice(STATUS_CHOICES), default="Todo", help="Task status")
@click.option("--notes", "-n", help="Free-form notes")
@click.pass_context
def add(ctx, title, revenue, time_taken, priority, status, notes):
    """Add a new task."""
    store = _store(ctx)
    try:
        title = validate_task_payload(title, revenue, time_taken, [t.title for t in store.tasks])
    except TaskValidationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    task = store.add(TaskPayload(
        title=title,
        revenue=revenue,
        time_taken=time_taken,
        priority=Priority(priority),
        status=TaskStatus(status),
        notes=(notes or "").strip() or None,
    ))
    console.print(f"[green]✅ Added task {task.id[:SHORT_ID_LENGTH]}: {task.title}[/green]")


@main.command()
@click.argument("task_id")
@click.option("--title", help="New title")
@click.option("--revenue", "-r", type=float, help="Revenue earned")
@click.option("--time", "-t", "time_taken", type=float, help="Hours spent")
@click.option("--priority", "-p", type=click.Choice(PRIORITY_CHOICES), help="Task priority")
@click.option("--status", type=click.Choice(STATUS_CHOICES), help="Task status")
@click.option("--notes", "-n", help="Free-form notes (empty string clears)")
@click.pass_context
def edit(ctx, task_id, title, revenue, time_taken, priority, status, notes):
    """Edit an existing task."""
    store = _store(ctx)
    task = resolve_task(store, task_id)

    try:
        cleaned_title = validate_task_payload(
            title if title is not None else task.title,
            revenue if revenue is not None else task.revenue,
            time_taken if time_taken is not None else task.time_taken,
            [t.title for t in store.tasks],
            current_title=task.title,
        )
    except TaskValidationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    patch = {}
    if title is not None:
        patch["title"] = cleaned_title
    if revenue is not None:
        patch["revenue"] = revenue
    if time_taken is not None:
        patch["time_taken"] = time_taken
    if priority is not None:
        patch["priority"] = priority
    if status is not None:
        patch["status"] = status
    if notes is not None:
        patch["notes"] = notes.strip() or None

    if not patch:
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    updated = store.update(task.id, patch)
    console.print(f"[green]✅ Updated task {updated.id[:SHORT_ID_LENGTH]}: {updated.title}[/green]")


@main.command()
@click.argument("task_id")
@click.pass_context
def done(ctx, task_id):
    """Mark a task as Done."""
    store = _store(ctx)
    task = resolve_task(store, task_id)
    store.update(task.id, {"status": TaskStatus.DONE})
    console.print(f"[green]✅ Completed task {task.id[:SHORT_ID_LENGTH]}: {task.title}[/green]")


@main.command()
@click.argument("task_id")
@click.pass_context
def delete(ctx, task_id):
    """Delete a task (restorable with undo)."""
    store = _store(ctx)
    task = resolve_task(store, task_id)
    store.delete(task.id)
    console.print(f"[green]🗑️  Deleted task {task.id[:SHORT_ID_LENGTH]}: {task.title}[/green]")
    console.print("[dim]Run 'sales-tracker undo' to restore it.[/dim]")


@main.command()
@click.pass_context
def undo(ctx):
    """Restore the most recently deleted task."""
    restored = _store(ctx).undo_delete()
    if restored is None:
        console.print("[yellow]Nothing to undo.[/yellow]")
        return
    console.print(f"[green]↩️  Restored task {restored.id[:SHORT_ID_LENGTH]}: {restored.title}[/green]")


@main.command("dismiss-undo")
@click.pass_context
def dismiss_undo(ctx):
    """Forget the most recently deleted task."""
    _store(ctx).clear_last_deleted()
    console.print("[dim]Undo dismissed.[/dim]")


@main.command()
@click.pass_context
def metrics(ctx):
    """Show summary metrics."""
    m = _store(ctx).metrics

    table = Table(title="Sales Metrics", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Total revenue", format_money(m.total_revenue))
    table.add_row("Total time taken", f"{m.total_time_taken:g}h")
    table.add_row("Time efficiency", f"{m.time_efficiency_pct:.1f}%")
    table.add_row("Revenue per hour", format_money(m.revenue_per_hour))
    table.add_row("Average ROI", f"{m.average_roi:,.2f}")
    table.add_row("Performance grade", m.performance_grade.value)

    console.print(table)


@main.command()
@click.option("--horizon", type=int, help="Forecast horizon in weeks")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def analytics(ctx, horizon, as_json):
    """Show pipeline analytics."""
    cfg = ctx.obj['config']
    analyzer = SalesAnalyzer(horizon_weeks=cfg.forecast_horizon_weeks)
    report = analyzer.analyze(_store(ctx).tasks, horizon_weeks=horizon)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    funnel = report.funnel
    console.print(Panel(
        f"Todo: {funnel.todo}  In Progress: {funnel.in_progress}  Done: {funnel.done}\n"
        f"Started: {funnel.conversion_todo_to_in_progress:.0%}  "
        f"Closed: {funnel.conversion_in_progress_to_done:.0%}\n"
        f"Weighted pipeline: {format_money(report.weighted_pipeline)}",
        title="Funnel",
    ))

    velocity = Table(title="Velocity (days to close)")
    velocity.add_column("Priority")
    velocity.add_column("Average", justify="right")
    velocity.add_column("Median", justify="right")
    for priority, stats in report.velocity.items():
        velocity.add_row(priority.value, f"{stats.avg_days:.1f}", f"{stats.median_days:g}")
    console.print(velocity)

    weekly = Table(title="Weekly throughput")
    weekly.add_column("Week")
    weekly.add_column("Closed", justify="right")
    weekly.add_column("Revenue", justify="right")
    for week in report.throughput:
        weekly.add_row(week.week, str(week.count), format_money(week.revenue))
    for point in report.forecast:
        weekly.add_row(f"[cyan]{point.week}[/cyan]", "", f"[cyan]{format_money(point.revenue)}[/cyan]")
    console.print(weekly)

    cohorts = Table(title="Revenue by creation week")
    cohorts.add_column("Week")
    cohorts.add_column("Priority")
    cohorts.add_column("Revenue", justify="right")
    for cohort in report.cohorts:
        cohorts.add_row(cohort.week, cohort.priority.value, format_money(cohort.revenue))
    console.print(cohorts)


@main.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def export(ctx, path):
    """Export tasks to a CSV file."""
    store = _store(ctx)
    try:
        written = write_csv(path, store.tasks)
    except OSError as e:
        console.print(f"[red]❌ Export failed: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]✅ Exported {len(store.tasks)} tasks to {written}[/green]")


if __name__ == "__main__":
    main()
