"""MCP server for neurosprint — lets AI assistants read and plan the week."""

from __future__ import annotations

import json
import logging
import sys

from mcp.server.fastmcp import FastMCP

from neurosprint.models import DayOfWeek, Task, WeeklyReflection, date_for_day, is_valid_start_time
from neurosprint.persistence import StateFile
from neurosprint.sprints import project_month, week_stats
from neurosprint.store import WeekStore

mcp = FastMCP(
    "neurosprint",
    instructions="""\
neurosprint is a weekly planner. A week runs Monday (MON) to Sunday (SUN); each \
task belongs to one day column and one of four projects:

- **F — Foundation**: health, sleep, body, basic upkeep.
- **D — Drive**: the main ambitious work.
- **J — Joy**: play, rest, things done purely for fun.
- **R — Reflection**: the weekly review itself.

Tasks have a duration in minutes and an optional start time (HH:MM). Within a \
day, tasks are ordered by position (0 = first). The week has a time budget in \
hours (default 10) and a structure option 1-5 selecting a preset split of \
minutes per project.

Typical workflow:
1. get_week to see the current plan and its stats
2. import_plan to lay out a whole week at once (preferred for generating plans)
3. add_task / update_task / move_task / delete_task for small edits
4. toggle_task as things get done
5. save_reflection at the end of the week, then new_week

Task ids are returned by get_week; a unique prefix of an id is accepted.\
""",
)


def _get_store() -> WeekStore:
    return StateFile().open()


def _task_to_dict(t: Task, week_start: str) -> dict:
    d = {
        "id": t.id,
        "day": t.day.value,
        "date": date_for_day(week_start, t.day).isoformat(),
        "position": t.order,
        "project": t.project.value,
        "title": t.title,
        "duration": t.duration,
        "completed": t.completed,
    }
    if t.start_time:
        d["startTime"] = t.start_time
    return d


def _resolve(store: WeekStore, task_id: str) -> str | None:
    try:
        return store.resolve_task_id(task_id)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def get_week() -> str:
    """Get the current week: tasks per day in order, structure option, budget and reflection."""
    store = _get_store()
    wk = store.current_week
    result = {
        "weekStart": wk.week_start,
        "option": wk.structure_option,
        "budgetHours": wk.effective_budget_hours(store.config.default_budget_hours),
        "days": {
            day.value: [_task_to_dict(t, wk.week_start) for t in store.tasks_for_day(day)]
            for day in DayOfWeek
        },
        "reflection": wk.reflection.to_dict(),
    }
    return json.dumps(result, indent=2, ensure_ascii=False)


@mcp.tool()
def get_stats() -> str:
    """Planned vs completed minutes, per-project totals and budget usage for the current week."""
    store = _get_store()
    stats = week_stats(store.current_week, store.config.default_budget_hours)
    return json.dumps(stats.to_dict(), indent=2)


@mcp.tool()
def export_week() -> str:
    """Export the current week as a plan document (same format import_plan accepts)."""
    return _get_store().export_current_week()


@mcp.tool()
def get_month(month: str | None = None) -> str:
    """Sprint/integration overview of a month.

    Args:
        month: Month as YYYY-MM (default: the current week's month)
    """
    store = _get_store()
    key = month or store.current_week.week_start[:7]
    try:
        rows = project_month(store, key)
    except ValueError as e:
        return f"Error: {e}"
    settings = store.get_month_settings(key)
    result = {
        "month": key,
        "sprintWeeks": settings.sprint_weeks,
        "integrationEvery": settings.integration_every,
        "weeks": [
            {
                "weekStart": r.week_start,
                "label": r.classification.label,
                "kind": r.classification.kind.value,
                "sprint": r.classification.sprint,
                "isCurrent": r.is_current,
                "tasks": r.stats.total_tasks,
                "completedTasks": r.stats.completed_tasks,
                "plannedMinutes": r.stats.planned_minutes,
            }
            for r in rows
        ],
    }
    return json.dumps(result, indent=2)


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def add_task(day: str, project: str, title: str, duration: int, start_time: str | None = None) -> str:
    """Add a task to the end of a day.

    Args:
        day: MON, TUE, WED, THU, FRI, SAT or SUN
        project: F, D, J or R
        title: Task title
        duration: Minutes
        start_time: Optional start time HH:MM
    """
    if not title.strip():
        return "Error: title must not be empty."
    if duration < 1:
        return "Error: duration must be at least 1 minute."
    if start_time and not is_valid_start_time(start_time):
        return f"Error: start_time must be HH:MM, got '{start_time}'."
    store = _get_store()
    try:
        t = store.add_task(project=project, title=title.strip(), duration=duration, day=day, start_time=start_time)
    except ValueError as e:
        return f"Error: {e}"
    return f"Added '{t.title}' to {t.day.value} as {t.id}"


@mcp.tool()
def update_task(
    task_id: str,
    title: str | None = None,
    project: str | None = None,
    duration: int | None = None,
    start_time: str | None = None,
    day: str | None = None,
) -> str:
    """Update fields of a task. Only provided fields change. A new day appends the task there.

    Args:
        task_id: Task id (or unique prefix)
        title: New title
        project: New project code F/D/J/R
        duration: New duration in minutes
        start_time: New start time HH:MM, or "" to clear it
        day: New day MON..SUN
    """
    store = _get_store()
    tid = _resolve(store, task_id)
    if tid is None:
        return f"Error: task {task_id} not found."
    changes = {
        k: v
        for k, v in {"title": title, "project": project, "duration": duration, "start_time": start_time, "day": day}.items()
        if v is not None
    }
    try:
        store.update_task(tid, **changes)
    except ValueError as e:
        return f"Error: {e}"
    return f"Updated {tid}."


@mcp.tool()
def delete_task(task_id: str) -> str:
    """Delete a task.

    Args:
        task_id: Task id (or unique prefix)
    """
    store = _get_store()
    tid = _resolve(store, task_id)
    if tid is None or not store.delete_task(tid):
        return f"Error: task {task_id} not found."
    return f"Deleted {tid}."


@mcp.tool()
def move_task(task_id: str, day: str, position: int | None = None) -> str:
    """Move a task to a day at a 0-based position (default: end of that day).

    Args:
        task_id: Task id (or unique prefix)
        day: Destination day MON..SUN
        position: Slot within the day; tasks at or after it shift down
    """
    store = _get_store()
    tid = _resolve(store, task_id)
    if tid is None:
        return f"Error: task {task_id} not found."
    try:
        target = DayOfWeek(day)
        store.move_task(tid, target, store.order_for_slot(tid, target, position))
    except ValueError as e:
        return f"Error: {e}"
    slot = [t.id for t in store.tasks_for_day(target)].index(tid)
    return f"Moved {tid} to {target.value} #{slot}."


@mcp.tool()
def toggle_task(task_id: str) -> str:
    """Mark a task done, or not done if it already was.

    Args:
        task_id: Task id (or unique prefix)
    """
    store = _get_store()
    tid = _resolve(store, task_id)
    t = store.toggle_task_complete(tid) if tid else None
    if t is None:
        return f"Error: task {task_id} not found."
    return f"{t.title}: {'done' if t.completed else 'not done'}."


@mcp.tool()
def reorder_day(day: str, task_ids: list[str]) -> str:
    """Set the order of every task in a day.

    Args:
        day: MON..SUN
        task_ids: All task ids of that day, first to last
    """
    store = _get_store()
    try:
        target = DayOfWeek(day)
    except ValueError as e:
        return f"Error: {e}"
    resolved = [_resolve(store, tid) for tid in task_ids]
    members = {t.id for t in store.tasks_for_day(target)}
    if None in resolved or set(resolved) != members or len(resolved) != len(members):
        return f"Error: task_ids must list every task of {target.value} exactly once."
    store.reorder_tasks_in_day(target, resolved)
    return f"Reordered {target.value}."


@mcp.tool()
def set_option(option: int) -> str:
    """Select the week's structure preset (1-5)."""
    store = _get_store()
    try:
        store.set_structure_option(option)
    except ValueError as e:
        return f"Error: {e}"
    return f"Week {store.current_week.week_start} uses option {option}."


@mcp.tool()
def set_budget(hours: int) -> str:
    """Set the weekly time budget in whole hours (at least 1)."""
    store = _get_store()
    store.set_budget_hours(max(1, int(hours)))
    return f"Budget set to {store.current_week.budget_hours}h."


@mcp.tool()
def save_reflection(
    done_foundation: str = "",
    done_drive: str = "",
    done_joy: str = "",
    not_done_foundation: str = "",
    not_done_drive: str = "",
    not_done_joy: str = "",
    adjustments: str = "",
    saved: bool = True,
) -> str:
    """Replace the current week's reflection with the given text.

    Args:
        done_foundation: What got done for Foundation
        done_drive: What got done for Drive
        done_joy: What got done for Joy
        not_done_foundation: What didn't get done for Foundation
        not_done_drive: What didn't get done for Drive
        not_done_joy: What didn't get done for Joy
        adjustments: Changes for next week
        saved: False to keep it as a draft
    """
    store = _get_store()
    store.save_reflection(
        WeeklyReflection(
            done={"foundation": done_foundation, "drive": done_drive, "joy": done_joy},
            not_done={"foundation": not_done_foundation, "drive": not_done_drive, "joy": not_done_joy},
            adjustments=adjustments,
            saved=saved,
        )
    )
    return f"Reflection for {store.current_week.week_start} saved."


@mcp.tool()
def go_to_week(date: str) -> str:
    """Open the week containing a date (YYYY-MM-DD), creating it if needed."""
    store = _get_store()
    try:
        wk = store.go_to_week(date)
    except ValueError as e:
        return f"Error: {e}"
    return f"Now on week {wk.week_start} ({len(wk.tasks)} tasks)."


@mcp.tool()
def new_week() -> str:
    """Archive the current week and move on to the next one (keeps the structure option)."""
    store = _get_store()
    wk = store.create_new_week()
    return f"Now on week {wk.week_start} (option {wk.structure_option})."


@mcp.tool()
def import_plan(plan: dict, replace: bool = False) -> str:
    """Add a whole week plan to the current week.

    Args:
        plan: {"weekStart": "YYYY-MM-DD", "option": 1-5, "tasks": [{"day": "MON", "project": "F", "title": "Walk", "duration": 25, "startTime": "10:00"}]}. weekStart and option are optional.
        replace: True to clear the week's existing tasks first
    """
    store = _get_store()
    result = store.import_from_json(plan, replace_existing=replace)
    if not result:
        return f"Error: {result.error}"
    return f"Imported {len(result.value)} task(s) into week {store.current_week.week_start}."


@mcp.tool()
def set_month_settings(month: str, sprint_weeks: int | None = None, integration_every: int | None = None) -> str:
    """Change the sprint cadence of a month.

    Args:
        month: YYYY-MM
        sprint_weeks: Weeks per sprint
        integration_every: Sprints between integration weeks
    """
    store = _get_store()
    try:
        s = store.set_month_settings(month, sprint_weeks=sprint_weeks, integration_every=integration_every)
    except ValueError as e:
        return f"Error: {e}"
    return f"{month}: {s.sprint_weeks}-week sprints, integration every {s.integration_every}."


def main():
    """Entry point for the MCP server."""
    # stdout carries the protocol
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
