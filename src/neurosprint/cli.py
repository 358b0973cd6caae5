"""Typer CLI for neurosprint."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from neurosprint.codec import backup_filename, validate_week_document
from neurosprint.models import (
    STRUCTURE_OPTIONS,
    DayOfWeek,
    ProjectCategory,
    WeeklyReflection,
    date_for_day,
    is_valid_start_time,
    month_key_for,
    next_week_start,
)
from neurosprint.persistence import DB_ENV_VAR, StateFile, StateFileError
from neurosprint.sprints import MonthWeek, project_month, project_weeks, week_stats
from neurosprint.store import WeekStore

app = typer.Typer(
    name="neurosprint",
    help="Weekly planner: a Monday-Sunday grid of Foundation, Drive, Joy and Reflection tasks.",
    no_args_is_help=True,
)
console = Console()

_db_path: Path | None = None

PROJECT_STYLES = {
    ProjectCategory.FOUNDATION: "green",
    ProjectCategory.DRIVE: "magenta",
    ProjectCategory.JOY: "yellow",
    ProjectCategory.REFLECTION: "dark_orange",
}


@app.callback()
def main(
    db: Annotated[
        Optional[Path],
        typer.Option("--db", envvar=DB_ENV_VAR, help="State file (default: neurosprint-planner.json)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every store change")] = False,
) -> None:
    global _db_path
    _db_path = db
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _open_store() -> WeekStore:
    try:
        return StateFile(_db_path).open()
    except StateFileError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and title."""
    try:
        store = StateFile(_db_path).load()
    except (OSError, ValueError):
        return []

    q = incomplete.lower()
    return [
        f"{t.title} ({t.id})"
        for t in store.current_week.tasks
        if q in t.id.lower() or q in t.title.lower()
    ]


def _parse_task_id(task_id_arg: str) -> str:
    """Extracts the ID if the user used the autocompleted 'Title (ID)' format."""
    if "(" in task_id_arg and task_id_arg.endswith(")"):
        return task_id_arg.split("(")[-1].strip(")")
    return task_id_arg.strip()


def _require_task(store: WeekStore, task_id_arg: str) -> str:
    try:
        task_id = store.resolve_task_id(_parse_task_id(task_id_arg))
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if task_id is None:
        console.print(f"[red]Task {task_id_arg} not found in week {store.current_week.week_start}.[/red]")
        raise typer.Exit(1)
    return task_id


def _parse_day(value: str) -> DayOfWeek:
    try:
        return DayOfWeek(value)
    except ValueError:
        valid = ", ".join(d.value for d in DayOfWeek)
        console.print(f"[red]Invalid day '{value}'. Use: {valid}[/red]")
        raise typer.Exit(1)


def _parse_project(value: str) -> ProjectCategory:
    try:
        return ProjectCategory(value)
    except ValueError:
        valid = ", ".join(f"{p.value} ({p.display_name})" for p in ProjectCategory)
        console.print(f"[red]Invalid project '{value}'. Use: {valid}[/red]")
        raise typer.Exit(1)


def _check_start_time(value: str | None) -> str | None:
    if value and not is_valid_start_time(value):
        console.print(f"[red]Invalid start time '{value}', expected HH:MM (24h).[/red]")
        raise typer.Exit(1)
    return value or None


def _fmt_minutes(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60:02d}m"


# ---------------------------------------------------------------------------
# Week view
# ---------------------------------------------------------------------------


@app.command()
def week(
    ids: Annotated[bool, typer.Option("--ids", help="Show full task ids")] = False,
) -> None:
    """Show the current week's grid and statistics."""
    store = _open_store()
    wk = store.current_week

    table = Table(title=f"Week of {wk.week_start}  (option {wk.structure_option})", show_lines=True)
    for day in DayOfWeek:
        table.add_column(f"{day.value} {date_for_day(wk.week_start, day).strftime('%d.%m')}")

    cells = []
    for day in DayOfWeek:
        lines = []
        for t in store.tasks_for_day(day):
            mark = "[dim]✓[/dim] " if t.completed else ""
            at = f"{t.start_time} " if t.start_time else ""
            tid = t.id if ids else t.id[:6]
            style = PROJECT_STYLES[t.project]
            title = f"[strike]{t.title}[/strike]" if t.completed else t.title
            lines.append(f"{mark}[{style}]{t.project.value}[/{style}] {at}{title} ({t.duration}m) [dim]{tid}[/dim]")
        cells.append("\n".join(lines) or "[dim]-[/dim]")
    table.add_row(*cells)
    console.print(table)
    _print_stats(store)


def _print_stats(store: WeekStore) -> None:
    stats = week_stats(store.current_week, store.config.default_budget_hours)
    budget_style = "bold red" if stats.over_budget else "green"
    bar_len = 20
    filled = int(bar_len * stats.budget_pct / 100)
    bar = f"[{budget_style}]{'█' * filled}[/{budget_style}]{'░' * (bar_len - filled)}"

    console.print(f"\n  Budget:   {bar} {_fmt_minutes(stats.planned_minutes)} / {stats.budget_hours}h")
    console.print(
        f"  Done:     {stats.completed_tasks}/{stats.total_tasks} tasks, "
        f"{_fmt_minutes(stats.completed_minutes)} ({stats.completion_pct}%)"
    )
    for p in ProjectCategory:
        style = PROJECT_STYLES[p]
        target = stats.target_by_project.get(p, 0)
        console.print(
            f"  [{style}]{p.display_name:<11}[/{style}] {_fmt_minutes(stats.minutes_by_project[p])}"
            f"  [dim](preset {_fmt_minutes(target)})[/dim]"
        )
    console.print()


@app.command()
def show(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Show all details for a single task."""
    store = _open_store()
    t = store.find_task(_require_task(store, task_id))

    console.print(f"\n[bold]{t.id}[/bold]  {t.title}")
    console.print(f"  Project:    {t.project.display_name} ({t.project.value})")
    console.print(f"  Day:        {t.day.value} {date_for_day(store.current_week.week_start, t.day).isoformat()}")
    console.print(f"  Position:   {t.order}")
    console.print(f"  Duration:   {t.duration}m")
    if t.start_time:
        console.print(f"  Starts at:  {t.start_time}")
    console.print(f"  Completed:  {'yes' if t.completed else 'no'}")
    console.print()


# ---------------------------------------------------------------------------
# Task commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    title: str,
    day: Annotated[str, typer.Option("--day", "-d", help="Day code: MON..SUN")],
    project: Annotated[str, typer.Option("--project", "-p", help="F (Foundation), D (Drive), J (Joy), R (Reflection)")],
    duration: Annotated[int, typer.Option("--duration", "-m", min=1, help="Duration in minutes")],
    at: Annotated[Optional[str], typer.Option("--at", help="Start time HH:MM")] = None,
) -> None:
    """Add a task to the end of a day."""
    title = title.strip()
    if not title:
        console.print("[red]Title must not be empty.[/red]")
        raise typer.Exit(1)
    d = _parse_day(day)
    p = _parse_project(project)
    start_time = _check_start_time(at)

    store = _open_store()
    t = store.add_task(project=p, title=title, duration=duration, day=d, start_time=start_time)
    console.print(f"[green]Added '{title}' to {d.value} as {t.id[:8]}[/green]")


@app.command()
def edit(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    title: Annotated[Optional[str], typer.Option(help="New title")] = None,
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="New project code")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-m", min=1, help="New duration in minutes")] = None,
    at: Annotated[Optional[str], typer.Option("--at", help="New start time HH:MM")] = None,
    no_time: Annotated[bool, typer.Option("--no-time", help="Clear the start time")] = False,
    day: Annotated[Optional[str], typer.Option("--day", "-d", help="Move to the end of another day")] = None,
) -> None:
    """Update fields of an existing task."""
    changes: dict = {}
    if title is not None:
        if not title.strip():
            console.print("[red]Title must not be empty.[/red]")
            raise typer.Exit(1)
        changes["title"] = title.strip()
    if project is not None:
        changes["project"] = _parse_project(project)
    if duration is not None:
        changes["duration"] = duration
    if at is not None:
        changes["start_time"] = _check_start_time(at)
    if no_time:
        changes["start_time"] = None
    if day is not None:
        changes["day"] = _parse_day(day)

    store = _open_store()
    tid = _require_task(store, task_id)
    if not changes:
        console.print("[yellow]Nothing to update.[/yellow]")
        return
    store.update_task(tid, **changes)
    console.print(f"[green]Updated {tid[:8]}.[/green]")


@app.command()
def delete(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Delete a task."""
    store = _open_store()
    tid = _require_task(store, task_id)
    store.delete_task(tid)
    console.print(f"[green]Deleted {tid[:8]}.[/green]")


@app.command()
def move(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    day: Annotated[str, typer.Argument(help="Destination day MON..SUN")],
    position: Annotated[Optional[int], typer.Argument(min=0, help="0-based slot (default: end of day)")] = None,
) -> None:
    """Move a task to a day, at a position within that day."""
    d = _parse_day(day)
    store = _open_store()
    tid = _require_task(store, task_id)
    store.move_task(tid, d, store.order_for_slot(tid, d, position))
    slot = [t.id for t in store.tasks_for_day(d)].index(tid)
    console.print(f"[green]Moved {tid[:8]} to {d.value} #{slot}.[/green]")


@app.command("dup")
def duplicate(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    day: Annotated[Optional[str], typer.Argument(help="Target day (default: same day)")] = None,
) -> None:
    """Copy a task to the end of a day."""
    d = _parse_day(day) if day else None
    store = _open_store()
    tid = _require_task(store, task_id)
    t = store.duplicate_task(tid, d)
    console.print(f"[green]Copied to {t.day.value} as {t.id[:8]}.[/green]")


@app.command()
def done(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Toggle a task between done and not done."""
    store = _open_store()
    tid = _require_task(store, task_id)
    t = store.toggle_task_complete(tid)
    state = "done" if t.completed else "not done"
    console.print(f"[green]{t.title}: {state}.[/green]")


@app.command()
def reorder(
    day: Annotated[str, typer.Argument(help="Day MON..SUN")],
    task_ids: Annotated[list[str], typer.Argument(help="Every task of the day, in the new order")],
) -> None:
    """Set the order of all tasks in one day."""
    d = _parse_day(day)
    store = _open_store()
    resolved = [_require_task(store, tid) for tid in task_ids]
    current = {t.id for t in store.tasks_for_day(d)}
    if set(resolved) != current or len(resolved) != len(current):
        console.print(f"[red]List every task of {d.value} exactly once ({len(current)} task(s)).[/red]")
        raise typer.Exit(1)
    store.reorder_tasks_in_day(d, resolved)
    console.print(f"[green]Reordered {d.value}.[/green]")


# ---------------------------------------------------------------------------
# Week settings
# ---------------------------------------------------------------------------


@app.command()
def option(value: Annotated[int, typer.Argument(min=1, max=5, help="Structure preset 1-5")]) -> None:
    """Select the week's time-allocation preset."""
    store = _open_store()
    store.set_structure_option(value)
    console.print(f"[green]Week {store.current_week.week_start} uses option {value}.[/green]")


@app.command()
def options() -> None:
    """Show the structure presets (minutes per day)."""
    for number, days in STRUCTURE_OPTIONS.items():
        table = Table(title=f"Option {number}")
        table.add_column("Day")
        for p in ProjectCategory:
            table.add_column(p.display_name, justify="right")
        table.add_column("Total", justify="right")
        for day, s in days.items():
            table.add_row(day.value, *(str(s.minutes_for(p)) for p in ProjectCategory), str(s.total))
        console.print(table)


@app.command()
def budget(
    hours: Annotated[Optional[int], typer.Argument(min=1, help="Weekly budget in hours")] = None,
    reset: Annotated[bool, typer.Option("--reset", help="Use the default budget again")] = False,
) -> None:
    """Show or set the weekly time budget."""
    store = _open_store()
    if reset:
        store.set_budget_hours(None)
    elif hours is not None:
        store.set_budget_hours(hours)
    hrs = store.current_week.effective_budget_hours(store.config.default_budget_hours)
    console.print(f"Budget for week {store.current_week.week_start}: [bold]{hrs}h[/bold]")


@app.command()
def reflect(
    done_foundation: Annotated[Optional[str], typer.Option(help="What got done: Foundation")] = None,
    done_drive: Annotated[Optional[str], typer.Option(help="What got done: Drive")] = None,
    done_joy: Annotated[Optional[str], typer.Option(help="What got done: Joy")] = None,
    missed_foundation: Annotated[Optional[str], typer.Option(help="What didn't: Foundation")] = None,
    missed_drive: Annotated[Optional[str], typer.Option(help="What didn't: Drive")] = None,
    missed_joy: Annotated[Optional[str], typer.Option(help="What didn't: Joy")] = None,
    adjustments: Annotated[Optional[str], typer.Option(help="Adjustments for next week")] = None,
    commit: Annotated[Optional[bool], typer.Option("--commit/--draft", help="Mark the report saved or back to draft")] = None,
) -> None:
    """Show or edit the weekly reflection."""
    store = _open_store()
    current = store.current_week.reflection
    given = {
        ("done", "foundation"): done_foundation,
        ("done", "drive"): done_drive,
        ("done", "joy"): done_joy,
        ("not_done", "foundation"): missed_foundation,
        ("not_done", "drive"): missed_drive,
        ("not_done", "joy"): missed_joy,
    }

    if any(v is not None for v in given.values()) or adjustments is not None or commit is not None:
        updated = WeeklyReflection(
            done=dict(current.done),
            not_done=dict(current.not_done),
            adjustments=current.adjustments if adjustments is None else adjustments,
            saved=current.saved if commit is None else commit,
        )
        for (section, key), value in given.items():
            if value is not None:
                getattr(updated, section)[key] = value
        store.save_reflection(updated)
        current = updated
        console.print("[green]Reflection saved.[/green]")

    status = "[green]saved[/green]" if current.saved else "[yellow]draft[/yellow]"
    console.print(f"\n[bold underline]Reflection, week of {store.current_week.week_start}[/bold underline] ({status})\n")
    for p in ProjectCategory:
        key = p.reflection_key
        if key is None:
            continue
        console.print(f"  [bold]{p.display_name}[/bold]")
        console.print(f"    Done:     {current.done[key] or '-'}")
        console.print(f"    Not done: {current.not_done[key] or '-'}")
    console.print(f"  [bold]Adjustments[/bold]\n    {current.adjustments or '-'}\n")


@app.command()
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
) -> None:
    """Remove all tasks and the reflection from the current week."""
    store = _open_store()
    if not yes:
        typer.confirm(f"Clear week {store.current_week.week_start}?", abort=True)
    store.clear_current_week()
    console.print(f"[green]Cleared week {store.current_week.week_start}.[/green]")


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


@app.command()
def goto(date_str: Annotated[str, typer.Argument(metavar="DATE", help="Any date in the target week (YYYY-MM-DD)")]) -> None:
    """Open the week containing DATE."""
    store = _open_store()
    try:
        wk = store.go_to_week(date_str)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Now on week {wk.week_start} ({len(wk.tasks)} task(s)).[/green]")


@app.command("next-week")
def next_week() -> None:
    """Archive this week and start the following one."""
    store = _open_store()
    wk = store.create_new_week()
    console.print(f"[green]Now on week {wk.week_start} (option {wk.structure_option}).[/green]")


@app.command("prev-week")
def prev_week() -> None:
    """Open the previous week."""
    store = _open_store()
    wk = store.go_to_week(next_week_start(store.current_week.week_start, -1))
    console.print(f"[green]Now on week {wk.week_start} ({len(wk.tasks)} task(s)).[/green]")


@app.command()
def month(
    month_key: Annotated[Optional[str], typer.Argument(metavar="YYYY-MM", help="Month (default: current week's)")] = None,
    sprint_weeks: Annotated[Optional[int], typer.Option(min=1, help="Weeks per sprint for this month")] = None,
    integration_every: Annotated[Optional[int], typer.Option(min=1, help="Sprints between integration weeks")] = None,
    run: Annotated[bool, typer.Option("--run", help="Show 8 weeks around the current week instead")] = False,
) -> None:
    """Sprint / integration overview of a month."""
    store = _open_store()
    key = month_key or month_key_for(store.current_week.week_start)
    try:
        if sprint_weeks is not None or integration_every is not None:
            store.set_month_settings(key, sprint_weeks=sprint_weeks, integration_every=integration_every)
        settings = store.get_month_settings(key)
        rows = project_weeks(store) if run else project_month(store, key)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    title = "Sprint overview" if run else f"{key}: {settings.sprint_weeks}-week sprints, integration every {settings.integration_every}"
    _print_month(rows, title)


def _print_month(rows: list[MonthWeek], title: str) -> None:
    table = Table(title=title)
    table.add_column("Week")
    table.add_column("Label")
    table.add_column("Tasks", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Time", justify="right")
    for r in rows:
        style = "bold" if r.is_current else None
        label_style = "cyan" if r.classification.is_integration else "magenta"
        table.add_row(
            f"{r.week_start} – {r.end_date.isoformat()}" + (" ←" if r.is_current else ""),
            f"[{label_style}]{r.classification.label}[/{label_style}]",
            str(r.stats.total_tasks),
            f"{r.stats.task_completion_pct}%",
            f"{r.stats.planned_minutes // 60}h",
            style=style,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Import / export
# ---------------------------------------------------------------------------


def _read_input(file: str) -> str:
    if file == "-":
        return sys.stdin.read()
    path = Path(file)
    if not path.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@app.command("export")
def export_week(
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to file instead of stdout")] = None,
) -> None:
    """Export the current week's plan (no ids or completion) as JSON."""
    store = _open_store()
    text = store.export_current_week()
    if output is None:
        typer.echo(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    console.print(f"[green]Exported {len(store.current_week.tasks)} task(s) to {output}[/green]")


@app.command("import")
def import_plan(
    file: Annotated[str, typer.Argument(help="JSON file path, or - for stdin")],
    replace: Annotated[bool, typer.Option("--replace", help="Clear the week before importing")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview changes without saving")] = False,
) -> None:
    """Import a week plan (e.g. generated by an AI assistant).

    The JSON needs a "tasks" array; each task needs "day", "project", "title"
    and "duration" (minutes), and may have "startTime" (HH:MM).

        {"weekStart": "2026-01-12", "option": 1, "tasks": [

            {"day": "MON", "project": "F", "title": "Walk", "duration": 25, "startTime": "10:00"}

        ]}
    """
    raw_text = _read_input(file)

    if dry_run:
        result = validate_week_document(raw_text)
        if not result:
            console.print(f"[red]{result.error}[/red]")
            raise typer.Exit(1)
        console.print("\n[bold]Dry run — no changes saved[/bold]\n")
        console.print(f"[green]Would add {len(result.value.tasks)} task(s):[/green]")
        for t in result.value.tasks:
            at = f" {t.start_time}" if t.start_time else ""
            console.print(f"  {t.day.value}{at}  [{t.project.value}] {t.title}  ({t.duration}m)")
        console.print()
        return

    store = _open_store()
    result = store.import_from_json(raw_text, replace_existing=replace)
    if not result:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(1)
    console.print(
        f"[green]Imported {len(result.value)} task(s) into week {store.current_week.week_start}.[/green]"
    )


@app.command()
def backup(
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Backup file (default: dated file name)")] = None,
) -> None:
    """Write a full backup of every week and month setting."""
    store = _open_store()
    path = output or Path(backup_filename())
    path.write_text(store.export_all_data() + "\n", encoding="utf-8")
    console.print(f"[green]Backed up {len(store.weeks) + 1} week(s) to {path}[/green]")


@app.command()
def restore(
    file: Annotated[str, typer.Argument(help="Backup file, or - for stdin")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
) -> None:
    """Replace all planner data with a backup."""
    raw_text = _read_input(file)
    store = _open_store()
    if not yes:
        typer.confirm("Replace ALL planner data with this backup?", abort=True)
    result = store.import_all_data(raw_text)
    if not result:
        console.print(f"[red]Restore failed: {result.error}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Restored {len(store.weeks) + 1} week(s). Current week: {store.current_week.week_start}[/green]")


if __name__ == "__main__":
    app()
