"""The week store: current week, archive of other weeks, month settings.

Every mutation runs to completion and then notifies subscribers (the
persistence backend among them). Unknown task ids are ignored rather than
treated as errors, since a caller may hold an id from a stale view.

Ordering within a day: ``add_task``, ``move_task`` (destination day),
``reorder_tasks_in_day`` and imports keep orders dense and zero-based.
``delete_task`` and moving a task out of a day leave gaps; orders stay
strictly increasing and are never renumbered behind the caller's back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import date

from neurosprint import codec
from neurosprint.models import (
    DayOfWeek,
    MonthSettings,
    PlannerConfig,
    ProjectCategory,
    Task,
    WeeklyReflection,
    WeekPlan,
    new_id,
    next_week_start,
    parse_week_start,
    validate_month_key,
    validate_structure_option,
)

logger = logging.getLogger(__name__)

Listener = Callable[["WeekStore"], None]

UPDATABLE_FIELDS = frozenset({"project", "title", "duration", "start_time", "completed", "day"})


class WeekStore:
    """Owns the current WeekPlan, the archive of other weeks and month settings."""

    def __init__(
        self,
        current_week: WeekPlan | None = None,
        weeks: Iterable[WeekPlan] | None = None,
        month_settings: dict[str, MonthSettings] | None = None,
        config: PlannerConfig | None = None,
        today: date | None = None,
    ):
        self.config = config or PlannerConfig()
        if current_week is None:
            current_week = WeekPlan.empty(
                parse_week_start(today or date.today()),
                structure_option=self.config.default_structure_option,
            )
        self.current_week = current_week
        self.weeks: list[WeekPlan] = [w for w in (weeks or []) if w.week_start != current_week.week_start]
        self.month_settings: dict[str, MonthSettings] = dict(month_settings or {})
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener(store)* after every successful mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self, action: str) -> None:
        logger.debug("store changed: %s", action)
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_task(self, task_id: str) -> Task | None:
        for t in self.current_week.tasks:
            if t.id == task_id:
                return t
        return None

    def resolve_task_id(self, prefix: str) -> str | None:
        """Return the id of the single current-week task starting with *prefix*."""
        prefix = prefix.strip()
        if not prefix:
            return None
        if self.find_task(prefix):
            return prefix
        matches = [t.id for t in self.current_week.tasks if t.id.startswith(prefix)]
        if len(matches) > 1:
            raise ValueError(f"Task id prefix '{prefix}' is ambiguous ({len(matches)} matches)")
        return matches[0] if matches else None

    def tasks_for_day(self, day: DayOfWeek) -> list[Task]:
        return self.current_week.tasks_for_day(day)

    def order_for_slot(self, task_id: str, day: DayOfWeek | str, slot: int | None = None) -> int:
        """Translate a 0-based display slot in *day* into a ``move_task`` order.

        Slots count the day's other tasks in sorted order, so gaps left by
        deletes and the task's own current position don't skew the result.
        ``None`` or a slot past the end means last.
        """
        others = [t for t in self.tasks_for_day(DayOfWeek(day)) if t.id != task_id]
        if slot is not None and slot < 0:
            raise ValueError(f"slot must be non-negative, got {slot}")
        if slot is not None and slot < len(others):
            return others[slot].order
        return max((t.order for t in others), default=-1) + 1

    def week_for(self, week_start: str) -> WeekPlan | None:
        if self.current_week.week_start == week_start:
            return self.current_week
        return next((w for w in self.weeks if w.week_start == week_start), None)

    def all_weeks(self) -> list[WeekPlan]:
        return sorted([*self.weeks, self.current_week], key=lambda w: w.week_start)

    # ------------------------------------------------------------------
    # Task mutations
    # ------------------------------------------------------------------

    def add_task(
        self,
        project: ProjectCategory | str,
        title: str,
        duration: int,
        day: DayOfWeek | str,
        start_time: str | None = None,
        completed: bool = False,
    ) -> Task:
        """Append a task to the end of its day."""
        task = self._new_task(project, title, duration, day, start_time, completed)
        self.current_week.tasks.append(task)
        self._changed(f"add {task.id}")
        return task

    def _new_task(self, project, title, duration, day, start_time=None, completed=False) -> Task:
        day = DayOfWeek(day)
        return Task(
            id=new_id(),
            project=ProjectCategory(project),
            title=title,
            duration=duration,
            day=day,
            order=sum(1 for t in self.current_week.tasks if t.day == day),
            start_time=start_time or None,
            completed=completed,
        )

    def update_task(self, task_id: str, **changes) -> Task | None:
        """Replace the given fields of a task. A new ``day`` appends it there."""
        if "id" in changes or "order" in changes:
            raise ValueError("id and order cannot be updated; use move_task or reorder_tasks_in_day")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        task = self.find_task(task_id)
        if task is None:
            logger.info("update_task: %s not found, ignoring", task_id)
            return None

        if "project" in changes:
            changes["project"] = ProjectCategory(changes["project"])
        new_day = DayOfWeek(changes.pop("day")) if "day" in changes else task.day
        if "start_time" in changes:
            changes["start_time"] = changes["start_time"] or None

        for name, value in changes.items():
            setattr(task, name, value)

        if new_day != task.day:
            self._move(task, new_day, sum(1 for t in self.current_week.tasks if t.day == new_day))
        self._changed(f"update {task_id}")
        return task

    def delete_task(self, task_id: str) -> bool:
        task = self.find_task(task_id)
        if task is None:
            logger.info("delete_task: %s not found, ignoring", task_id)
            return False
        self.current_week.tasks.remove(task)
        self._changed(f"delete {task_id}")
        return True

    def move_task(self, task_id: str, new_day: DayOfWeek | str, new_order: int) -> Task | None:
        """Put a task into *new_day* at position *new_order*, shifting later tasks down."""
        if new_order < 0:
            raise ValueError(f"new_order must be non-negative, got {new_order}")
        new_day = DayOfWeek(new_day)
        task = self.find_task(task_id)
        if task is None:
            logger.info("move_task: %s not found, ignoring", task_id)
            return None
        self._move(task, new_day, new_order)
        self._changed(f"move {task_id} -> {new_day}:{new_order}")
        return task

    def _move(self, task: Task, new_day: DayOfWeek, new_order: int) -> None:
        for other in self.current_week.tasks:
            if other is not task and other.day == new_day and other.order >= new_order:
                other.order += 1
        task.day = new_day
        task.order = new_order

    def duplicate_task(self, task_id: str, day: DayOfWeek | str | None = None) -> Task | None:
        """Copy a task (uncompleted) to the end of *day*, or of its own day."""
        source = self.find_task(task_id)
        if source is None:
            logger.info("duplicate_task: %s not found, ignoring", task_id)
            return None
        return self.add_task(
            project=source.project,
            title=source.title,
            duration=source.duration,
            day=day if day is not None else source.day,
            start_time=source.start_time,
        )

    def toggle_task_complete(self, task_id: str) -> Task | None:
        task = self.find_task(task_id)
        if task is None:
            logger.info("toggle_task_complete: %s not found, ignoring", task_id)
            return None
        task.completed = not task.completed
        self._changed(f"toggle {task_id}")
        return task

    def reorder_tasks_in_day(self, day: DayOfWeek | str, ordered_ids: list[str]) -> None:
        """Set each listed task's order to its index. Callers pass the full day."""
        day = DayOfWeek(day)
        positions = {tid: i for i, tid in enumerate(ordered_ids)}
        for task in self.current_week.tasks:
            if task.day == day and task.id in positions:
                task.order = positions[task.id]
        self._changed(f"reorder {day}")

    # ------------------------------------------------------------------
    # Week fields
    # ------------------------------------------------------------------

    def set_structure_option(self, option: int) -> None:
        self.current_week.structure_option = validate_structure_option(option)
        self._changed(f"option {option}")

    def set_budget_hours(self, hours: int | None) -> None:
        self.current_week.budget_hours = hours
        self._changed(f"budget {hours}")

    def save_reflection(self, reflection: WeeklyReflection) -> None:
        self.current_week.reflection = reflection
        self._changed("reflection")

    def clear_current_week(self) -> None:
        self.current_week.tasks = []
        self.current_week.reflection = WeeklyReflection()
        self._changed("clear")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _archive_current(self) -> None:
        outgoing = self.current_week
        self.weeks = [w for w in self.weeks if w.week_start != outgoing.week_start]
        self.weeks.append(outgoing)

    def _open(self, week_start: str, structure_option: int) -> WeekPlan:
        """Remove *week_start* from the archive and return it, or a new empty week."""
        for i, w in enumerate(self.weeks):
            if w.week_start == week_start:
                return self.weeks.pop(i)
        return WeekPlan.empty(week_start, structure_option=structure_option)

    def go_to_week(self, week_start: str | date) -> WeekPlan:
        """Archive the current week and make *week_start* current."""
        target = parse_week_start(week_start)
        self._archive_current()
        self.current_week = self._open(target, self.config.default_structure_option)
        self._changed(f"goto {target}")
        return self.current_week

    def create_new_week(self) -> WeekPlan:
        """Move on to the following week, carrying the structure option forward."""
        target = next_week_start(self.current_week.week_start)
        option = self.current_week.structure_option
        self._archive_current()
        self.current_week = self._open(target, option)
        self._changed(f"new week {target}")
        return self.current_week

    # ------------------------------------------------------------------
    # Month settings
    # ------------------------------------------------------------------

    def get_month_settings(self, month_key: str) -> MonthSettings:
        validate_month_key(month_key)
        stored = self.month_settings.get(month_key)
        if stored is not None:
            return replace(stored)
        return MonthSettings(
            sprint_weeks=self.config.default_sprint_weeks,
            integration_every=self.config.default_integration_every,
        )

    def set_month_settings(
        self,
        month_key: str,
        sprint_weeks: int | None = None,
        integration_every: int | None = None,
    ) -> MonthSettings:
        merged = self.get_month_settings(month_key)
        if sprint_weeks is not None:
            merged.sprint_weeks = sprint_weeks
        if integration_every is not None:
            merged.integration_every = integration_every
        # re-run the positivity check on the merged value before storing it
        merged = MonthSettings(merged.sprint_weeks, merged.integration_every)
        self.month_settings[month_key] = merged
        self._changed(f"month settings {month_key}")
        return replace(merged)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_current_week(self) -> str:
        return codec.export_week(self.current_week)

    def export_all_data(self) -> str:
        return codec.snapshot(self)

    def import_from_json(self, doc, replace_existing: bool = False) -> codec.ValidationResult:
        """Validate a plan document and append its tasks to the current week.

        Nothing changes unless the whole document is valid. Imported tasks get
        fresh ids, start uncompleted and are ordered per day within the batch.
        """
        result = codec.validate_week_document(doc)
        if not result:
            logger.warning("import rejected: %s", result.error)
            return result
        plan: codec.WeekDocument = result.value

        per_day: dict[DayOfWeek, int] = {}
        imported: list[Task] = []
        for entry in plan.tasks:
            order = per_day.get(entry.day, 0)
            per_day[entry.day] = order + 1
            imported.append(
                Task(
                    id=new_id(),
                    project=entry.project,
                    title=entry.title,
                    duration=entry.duration,
                    day=entry.day,
                    order=order,
                    start_time=entry.start_time,
                )
            )

        week = self.current_week
        if replace_existing:
            week.tasks = []
            week.reflection = WeeklyReflection()
        if plan.week_start and plan.week_start != week.week_start:
            if any(w.week_start == plan.week_start for w in self.weeks):
                logger.warning("import: current week now replaces archived week %s", plan.week_start)
            week.week_start = plan.week_start
            # one WeekPlan per week_start
            self.weeks = [w for w in self.weeks if w.week_start != week.week_start]
        if plan.option:
            week.structure_option = plan.option
        week.tasks.extend(imported)
        self._changed(f"import {len(imported)} tasks")
        return codec.ValidationResult.success(imported)

    def import_all_data(self, text) -> codec.ValidationResult:
        """Replace the entire state with a full backup, or change nothing."""
        result = codec.parse_snapshot(text)
        if not result:
            logger.warning("backup restore rejected: %s", result.error)
            return result
        snap: codec.Snapshot = result.value
        self.current_week = snap.current_week
        self.weeks = snap.weeks
        self.month_settings = snap.month_settings
        self._changed("restore backup")
        return codec.ValidationResult.success(True)
