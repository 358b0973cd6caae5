"""JSON wire formats: single-week plan export/import and full backups."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from neurosprint.models import (
    DayOfWeek,
    MonthSettings,
    ProjectCategory,
    WeekPlan,
    is_valid_start_time,
    parse_week_start,
    validate_month_key,
)

if TYPE_CHECKING:
    from neurosprint.store import WeekStore

REQUIRED_TASK_FIELDS = ("day", "project", "title", "duration")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking untrusted input: a value on success, a reason on failure."""

    ok: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> ValidationResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> ValidationResult:
        return cls(ok=False, error=error)

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class PlannedTask:
    """One task entry of a single-week plan document."""

    day: DayOfWeek
    project: ProjectCategory
    title: str
    duration: int
    start_time: str | None = None

    def to_dict(self) -> dict:
        d = {
            "day": self.day.value,
            "project": self.project.value,
            "title": self.title,
            "duration": self.duration,
        }
        if self.start_time:
            d["startTime"] = self.start_time
        return d


@dataclass
class WeekDocument:
    """A validated single-week plan document."""

    tasks: list[PlannedTask] = field(default_factory=list)
    week_start: str | None = None
    option: int | None = None


@dataclass
class Snapshot:
    """A validated full-store backup."""

    current_week: WeekPlan
    weeks: list[WeekPlan]
    month_settings: dict[str, MonthSettings]


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def week_to_export(week: WeekPlan) -> dict:
    """Plan-only view of a week: no ids, orders or completion flags."""
    tasks = []
    for day in DayOfWeek:
        for t in week.tasks_for_day(day):
            tasks.append(PlannedTask(t.day, t.project, t.title, t.duration, t.start_time).to_dict())
    return {
        "weekStart": week.week_start,
        "option": week.structure_option,
        "tasks": tasks,
    }


def export_week(week: WeekPlan) -> str:
    return json.dumps(week_to_export(week), indent=2, ensure_ascii=False)


def snapshot_to_dict(store: WeekStore) -> dict:
    return {
        "currentWeek": store.current_week.to_dict(),
        "weeks": [w.to_dict() for w in store.weeks],
        "monthSettings": {k: s.to_dict() for k, s in sorted(store.month_settings.items())},
    }


def snapshot(store: WeekStore) -> str:
    return json.dumps(snapshot_to_dict(store), indent=2, ensure_ascii=False)


def backup_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"neurosprint-backup-{today.isoformat()}.json"


# ---------------------------------------------------------------------------
# Import validation
# ---------------------------------------------------------------------------


def _load_json(doc: Any) -> ValidationResult:
    if isinstance(doc, (str, bytes)):
        try:
            return ValidationResult.success(json.loads(doc))
        except json.JSONDecodeError as e:
            return ValidationResult.failure(f"Invalid JSON: {e}")
    return ValidationResult.success(doc)


def _validate_task_entry(i: int, entry: Any) -> ValidationResult:
    if not isinstance(entry, dict):
        return ValidationResult.failure(f"Task at index {i} is not an object.")

    for name in REQUIRED_TASK_FIELDS:
        value = entry.get(name)
        if not value or (isinstance(value, str) and not value.strip()):
            return ValidationResult.failure(f'Task at index {i} missing required "{name}" field.')

    try:
        day = DayOfWeek(entry["day"])
    except ValueError:
        valid = ", ".join(d.value for d in DayOfWeek)
        return ValidationResult.failure(f"Task at index {i}: invalid day '{entry['day']}'. Use: {valid}")
    try:
        project = ProjectCategory(entry["project"])
    except ValueError:
        valid = ", ".join(p.value for p in ProjectCategory)
        return ValidationResult.failure(f"Task at index {i}: invalid project '{entry['project']}'. Use: {valid}")

    duration = entry["duration"]
    if isinstance(duration, bool) or not isinstance(duration, (int, float)) or not math.isfinite(duration) or duration != int(duration) or duration < 1:
        return ValidationResult.failure(f"Task at index {i}: duration must be a positive whole number of minutes.")

    start_time = entry.get("startTime") or None
    if start_time is not None and (not isinstance(start_time, str) or not is_valid_start_time(start_time)):
        return ValidationResult.failure(f"Task at index {i}: startTime must be HH:MM, got '{start_time}'.")

    title = entry["title"]
    if not isinstance(title, str):
        return ValidationResult.failure(f"Task at index {i}: title must be a string.")

    return ValidationResult.success(PlannedTask(day, project, title.strip(), int(duration), start_time))


def validate_week_document(doc: Any) -> ValidationResult:
    """Check a single-week plan (dict or JSON text) before it touches the store."""
    loaded = _load_json(doc)
    if not loaded:
        return loaded
    data = loaded.value

    if not isinstance(data, dict):
        return ValidationResult.failure("Plan must be a JSON object.")
    if "tasks" not in data or not isinstance(data["tasks"], list):
        return ValidationResult.failure('Plan must have a "tasks" array.')

    tasks: list[PlannedTask] = []
    for i, entry in enumerate(data["tasks"]):
        result = _validate_task_entry(i, entry)
        if not result:
            return result
        tasks.append(result.value)

    week_start = None
    if data.get("weekStart"):
        try:
            week_start = parse_week_start(str(data["weekStart"]))
        except ValueError as e:
            return ValidationResult.failure(str(e))

    option = None
    if data.get("option"):
        option = data["option"]
        if isinstance(option, bool) or option not in range(1, 6):
            return ValidationResult.failure(f'"option" must be 1-5, got {option!r}.')
        option = int(option)

    return ValidationResult.success(WeekDocument(tasks=tasks, week_start=week_start, option=option))


def parse_snapshot(text: str | bytes | dict) -> ValidationResult:
    """Parse a full backup. Any structural problem fails the whole document."""
    loaded = _load_json(text)
    if not loaded:
        return loaded
    data = loaded.value

    if not isinstance(data, dict) or not isinstance(data.get("currentWeek"), dict) or not isinstance(data.get("weeks"), list):
        return ValidationResult.failure('Backup must have a "currentWeek" object and a "weeks" array.')
    raw_settings = data.get("monthSettings") or {}
    if not isinstance(raw_settings, dict):
        return ValidationResult.failure('"monthSettings" must be an object.')

    try:
        current = WeekPlan.from_dict(data["currentWeek"])
        weeks = [WeekPlan.from_dict(w) for w in data["weeks"]]
        settings = {validate_month_key(k): MonthSettings.from_dict(v) for k, v in raw_settings.items()}
    except (KeyError, TypeError, ValueError, OverflowError, AttributeError) as e:
        return ValidationResult.failure(f"Backup is malformed: {e!r}")

    seen = {current.week_start}
    for w in weeks:
        if w.week_start in seen:
            return ValidationResult.failure(f"Backup contains week {w.week_start} more than once.")
        seen.add(w.week_start)

    task_ids = [t.id for w in [current, *weeks] for t in w.tasks]
    if len(task_ids) != len(set(task_ids)):
        return ValidationResult.failure("Backup contains duplicate task ids.")

    return ValidationResult.success(Snapshot(current_week=current, weeks=weeks, month_settings=settings))
