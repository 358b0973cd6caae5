"""Sprint/integration labelling of week runs, and per-week statistics."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, timedelta

from neurosprint.models import (
    DEFAULT_BUDGET_HOURS,
    MonthSettings,
    ProjectCategory,
    WeekPlan,
    month_key_for,
    next_week_start,
    parse_week_start,
    structure_targets,
    validate_month_key,
)
from neurosprint.store import WeekStore


class WeekKind(enum.StrEnum):
    SPRINT = "sprint"
    INTEGRATION = "integration"


@dataclass(frozen=True)
class WeekClassification:
    """Where a week sits in the sprint cycle.

    A cycle is ``integration_every`` sprints of ``sprint_weeks`` weeks each,
    followed by a single integration week. Sprint fields are None for
    integration weeks.
    """

    kind: WeekKind
    cycle: int
    position_in_cycle: int
    sprint: int | None = None
    sprint_in_cycle: int | None = None
    week_in_sprint: int | None = None

    @property
    def is_integration(self) -> bool:
        return self.kind is WeekKind.INTEGRATION

    @property
    def label(self) -> str:
        if self.is_integration:
            return "Integration"
        return f"Sprint {self.sprint} · week {self.week_in_sprint}"


def classify_week(index: int, settings: MonthSettings) -> WeekClassification:
    """Classify the week *index* weeks after the anchor of a run."""
    if index < 0:
        raise ValueError(f"Week index must be non-negative, got {index}")
    length = settings.cycle_length
    cycle_index, pos = divmod(index, length)
    if pos == length - 1:
        return WeekClassification(kind=WeekKind.INTEGRATION, cycle=cycle_index + 1, position_in_cycle=pos)
    sprint_in_cycle = pos // settings.sprint_weeks + 1
    return WeekClassification(
        kind=WeekKind.SPRINT,
        cycle=cycle_index + 1,
        position_in_cycle=pos,
        sprint=cycle_index * settings.integration_every + sprint_in_cycle,
        sprint_in_cycle=sprint_in_cycle,
        week_in_sprint=pos % settings.sprint_weeks + 1,
    )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass
class WeekStats:
    """Planned vs completed time for one week."""

    total_tasks: int = 0
    completed_tasks: int = 0
    planned_minutes: int = 0
    completed_minutes: int = 0
    budget_hours: int = DEFAULT_BUDGET_HOURS
    minutes_by_project: dict[ProjectCategory, int] = field(default_factory=dict)
    target_by_project: dict[ProjectCategory, int] = field(default_factory=dict)

    @property
    def budget_minutes(self) -> int:
        return self.budget_hours * 60

    @property
    def over_budget(self) -> bool:
        return self.planned_minutes > self.budget_minutes

    @property
    def completion_pct(self) -> int:
        if not self.planned_minutes:
            return 0
        return round(self.completed_minutes / self.planned_minutes * 100)

    @property
    def task_completion_pct(self) -> int:
        if not self.total_tasks:
            return 0
        return round(self.completed_tasks / self.total_tasks * 100)

    @property
    def budget_pct(self) -> int:
        if self.budget_minutes <= 0:
            return 100
        return min(100, round(self.planned_minutes / self.budget_minutes * 100))

    def to_dict(self) -> dict:
        return {
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "planned_minutes": self.planned_minutes,
            "completed_minutes": self.completed_minutes,
            "budget_hours": self.budget_hours,
            "over_budget": self.over_budget,
            "completion_pct": self.completion_pct,
            "minutes_by_project": {p.value: m for p, m in self.minutes_by_project.items()},
            "target_by_project": {p.value: m for p, m in self.target_by_project.items()},
        }


def week_stats(week: WeekPlan | None, default_budget_hours: int = DEFAULT_BUDGET_HOURS) -> WeekStats:
    """Statistics for *week*; a missing week yields zeroes."""
    if week is None:
        return WeekStats(
            budget_hours=default_budget_hours,
            minutes_by_project={p: 0 for p in ProjectCategory},
        )
    done = [t for t in week.tasks if t.completed]
    return WeekStats(
        total_tasks=len(week.tasks),
        completed_tasks=len(done),
        planned_minutes=sum(t.duration for t in week.tasks),
        completed_minutes=sum(t.duration for t in done),
        budget_hours=week.effective_budget_hours(default_budget_hours),
        minutes_by_project={p: sum(t.duration for t in week.tasks if t.project == p) for p in ProjectCategory},
        target_by_project=structure_targets(week.structure_option),
    )


# ---------------------------------------------------------------------------
# Month / run projection
# ---------------------------------------------------------------------------


@dataclass
class MonthWeek:
    """One row of a month or run overview."""

    week_start: str
    classification: WeekClassification
    stats: WeekStats
    is_current: bool = False
    exists: bool = False

    @property
    def end_date(self) -> date:
        return date.fromisoformat(self.week_start) + timedelta(days=6)


def month_week_starts(month_key: str) -> list[str]:
    """Mondays falling inside the month ``YYYY-MM``."""
    validate_month_key(month_key)
    year, month = (int(x) for x in month_key.split("-"))
    first = date(year, month, 1)
    monday = first + timedelta(days=(7 - first.weekday()) % 7)
    starts = []
    while monday.month == month:
        starts.append(monday.isoformat())
        monday += timedelta(weeks=1)
    return starts


def _project(store: WeekStore, week_starts: list[str], settings: MonthSettings) -> list[MonthWeek]:
    rows = []
    for i, ws in enumerate(week_starts):
        week = store.week_for(ws)
        rows.append(
            MonthWeek(
                week_start=ws,
                classification=classify_week(i, settings),
                stats=week_stats(week, store.config.default_budget_hours),
                is_current=ws == store.current_week.week_start,
                exists=week is not None,
            )
        )
    return rows


def project_month(store: WeekStore, month_key: str) -> list[MonthWeek]:
    """Classify every week starting in *month_key*, anchored at its first Monday."""
    return _project(store, month_week_starts(month_key), store.get_month_settings(month_key))


def project_weeks(store: WeekStore, around: str | None = None, before: int = 2, count: int = 8) -> list[MonthWeek]:
    """Classify a contiguous run of *count* weeks starting *before* weeks ahead of *around*.

    The run uses the settings of the month its first week falls in.
    """
    anchor = parse_week_start(around) if around else store.current_week.week_start
    first = next_week_start(anchor, -before)
    starts = [next_week_start(first, i) for i in range(count)]
    return _project(store, starts, store.get_month_settings(month_key_for(first)))
