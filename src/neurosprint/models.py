"""Week plan model: tasks, reflections, categories and days."""

from __future__ import annotations

import enum
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta

DEFAULT_BUDGET_HOURS = 10
STRUCTURE_OPTION_RANGE = range(1, 6)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def new_id() -> str:
    return str(uuid.uuid4())


class ProjectCategory(enum.StrEnum):
    FOUNDATION = "F"
    DRIVE = "D"
    JOY = "J"
    REFLECTION = "R"

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        key = value.strip()
        for member in cls:
            if key.upper() == member.value or key.lower() == member.name.lower():
                return member
        return _LEGACY_PROJECT_CODES.get(key)

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def reflection_key(self) -> str | None:
        """Key of this category in a WeeklyReflection, or None for Reflection."""
        if self is ProjectCategory.REFLECTION:
            return None
        return self.name.lower()


_LEGACY_PROJECT_CODES = {
    "Ф": ProjectCategory.FOUNDATION,
    "Д": ProjectCategory.DRIVE,
    "К": ProjectCategory.JOY,
    "Р": ProjectCategory.REFLECTION,
}


class DayOfWeek(enum.StrEnum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        key = value.strip()
        for member in cls:
            if key.upper() in (member.value, _FULL_DAY_NAMES[member.value]):
                return member
        return _LEGACY_DAY_CODES.get(key.upper())

    @property
    def offset(self) -> int:
        """Offset from Monday (0..6)."""
        return list(DayOfWeek).index(self)


_FULL_DAY_NAMES = {
    "MON": "MONDAY",
    "TUE": "TUESDAY",
    "WED": "WEDNESDAY",
    "THU": "THURSDAY",
    "FRI": "FRIDAY",
    "SAT": "SATURDAY",
    "SUN": "SUNDAY",
}

_LEGACY_DAY_CODES = {
    "ПН": DayOfWeek.MON,
    "ВТ": DayOfWeek.TUE,
    "СР": DayOfWeek.WED,
    "ЧТ": DayOfWeek.THU,
    "ПТ": DayOfWeek.FRI,
    "СБ": DayOfWeek.SAT,
    "ВС": DayOfWeek.SUN,
}


# ---------------------------------------------------------------------------
# Week date helpers
# ---------------------------------------------------------------------------


def week_start_for(d: date) -> date:
    """Monday of the calendar week containing *d*."""
    return d - timedelta(days=d.weekday())


def parse_week_start(value: str | date) -> str:
    """Parse an ISO date (or date) and snap it to its Monday, as ISO text."""
    if isinstance(value, date):
        d = value
    else:
        try:
            d = date.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from None
    return week_start_for(d).isoformat()


def next_week_start(week_start: str, weeks: int = 1) -> str:
    return (date.fromisoformat(week_start) + timedelta(weeks=weeks)).isoformat()


def date_for_day(week_start: str, day: DayOfWeek) -> date:
    return date.fromisoformat(week_start) + timedelta(days=day.offset)


def month_key_for(week_start: str) -> str:
    return week_start[:7]


def validate_month_key(month_key: str) -> str:
    if not isinstance(month_key, str) or not _MONTH_KEY_RE.match(month_key):
        raise ValueError(f"Invalid month '{month_key}', expected YYYY-MM")
    return month_key


def is_valid_start_time(value: str) -> bool:
    return bool(_TIME_RE.match(value))


# ---------------------------------------------------------------------------
# Structure presets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DayStructure:
    """Planned minutes per category for one day of a preset."""

    foundation: int = 0
    drive: int = 0
    joy: int = 0
    reflection: int = 0

    def minutes_for(self, project: ProjectCategory) -> int:
        return getattr(self, project.name.lower())

    @property
    def total(self) -> int:
        return self.foundation + self.drive + self.joy + self.reflection


def _weekdays(weekday: DayStructure, sat: DayStructure, sun: DayStructure) -> dict[DayOfWeek, DayStructure]:
    days = {d: weekday for d in list(DayOfWeek)[:5]}
    days[DayOfWeek.SAT] = sat
    days[DayOfWeek.SUN] = sun
    return days


_REST = DayStructure()

# Option descriptions mirror the planning presets the weekly grid offers.
STRUCTURE_OPTIONS: dict[int, dict[DayOfWeek, DayStructure]] = {
    # 90 min a day, Saturday for joy, Sunday foundation + reflection
    1: _weekdays(DayStructure(25, 50, 15), DayStructure(joy=90), DayStructure(foundation=60, reflection=30)),
    # 45 min weekdays + 3h weekend
    2: _weekdays(DayStructure(10, 30, 5), DayStructure(joy=180), DayStructure(foundation=150, reflection=30)),
    # 60 min weekdays + 2.5h weekend
    3: _weekdays(DayStructure(10, 45, 5), DayStructure(joy=150), DayStructure(foundation=120, reflection=30)),
    # 2.5h on four days
    4: {
        DayOfWeek.MON: DayStructure(60, 75, 15),
        DayOfWeek.TUE: _REST,
        DayOfWeek.WED: DayStructure(60, 75, 15),
        DayOfWeek.THU: _REST,
        DayOfWeek.FRI: DayStructure(60, 75, 15),
        DayOfWeek.SAT: _REST,
        DayOfWeek.SUN: DayStructure(foundation=120, reflection=30),
    },
    # 3h on three days
    5: {
        DayOfWeek.MON: DayStructure(60, 90, 30),
        DayOfWeek.TUE: _REST,
        DayOfWeek.WED: DayStructure(60, 90, 30),
        DayOfWeek.THU: _REST,
        DayOfWeek.FRI: _REST,
        DayOfWeek.SAT: _REST,
        DayOfWeek.SUN: DayStructure(foundation=60, joy=90, reflection=30),
    },
}


def structure_targets(option: int) -> dict[ProjectCategory, int]:
    """Weekly target minutes per category for a structure option."""
    days = STRUCTURE_OPTIONS.get(option)
    if days is None:
        return {p: 0 for p in ProjectCategory}
    return {p: sum(s.minutes_for(p) for s in days.values()) for p in ProjectCategory}


def validate_structure_option(option: int) -> int:
    if option not in STRUCTURE_OPTION_RANGE:
        raise ValueError(f"Structure option must be 1-5, got {option}")
    return option


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass
class PlannerConfig:
    """Defaults applied when a week or month has no explicit setting."""

    default_budget_hours: int = DEFAULT_BUDGET_HOURS
    default_sprint_weeks: int = 4
    default_integration_every: int = 1
    default_structure_option: int = 1


@dataclass
class Task:
    """A single schedulable task in one day column."""

    id: str
    project: ProjectCategory
    title: str
    duration: int  # minutes
    day: DayOfWeek
    order: int = 0
    start_time: str | None = None  # "HH:MM", None means any time
    completed: bool = False

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "project": self.project.value,
            "title": self.title,
            "duration": self.duration,
            "day": self.day.value,
            "completed": self.completed,
            "order": self.order,
        }
        if self.start_time is not None:
            d["startTime"] = self.start_time
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Task:
        return cls(
            id=d["id"],
            project=ProjectCategory(d["project"]),
            title=d["title"],
            duration=int(d["duration"]),
            day=DayOfWeek(d["day"]),
            order=int(d.get("order", 0)),
            start_time=d.get("startTime") or None,
            completed=bool(d.get("completed", False)),
        )


def _empty_self_report() -> dict[str, str]:
    return {"foundation": "", "drive": "", "joy": ""}


@dataclass
class WeeklyReflection:
    """End-of-week journal. Reflection itself is not a self-reported bucket."""

    done: dict[str, str] = field(default_factory=_empty_self_report)
    not_done: dict[str, str] = field(default_factory=_empty_self_report)
    adjustments: str = ""
    saved: bool = False

    def __post_init__(self) -> None:
        self.done = _normalize_report(self.done)
        self.not_done = _normalize_report(self.not_done)

    @property
    def is_empty(self) -> bool:
        return not (any(self.done.values()) or any(self.not_done.values()) or self.adjustments)

    def to_dict(self) -> dict:
        return {
            "done": dict(self.done),
            "notDone": dict(self.not_done),
            "adjustments": self.adjustments,
            "saved": self.saved,
        }

    @classmethod
    def from_dict(cls, d: dict) -> WeeklyReflection:
        return cls(
            done=d.get("done", {}),
            not_done=d.get("notDone", {}),
            adjustments=d.get("adjustments", ""),
            saved=bool(d.get("saved", False)),
        )


def _normalize_report(report: dict) -> dict[str, str]:
    unknown = set(report) - {"foundation", "drive", "joy"}
    if unknown:
        raise ValueError(f"Unknown reflection keys: {', '.join(sorted(unknown))}")
    base = _empty_self_report()
    base.update({k: str(v) for k, v in report.items()})
    return base


@dataclass
class WeekPlan:
    """All tasks and the reflection for one Monday-to-Sunday week."""

    id: str
    week_start: str  # ISO date of the Monday
    structure_option: int = 1
    tasks: list[Task] = field(default_factory=list)
    reflection: WeeklyReflection = field(default_factory=WeeklyReflection)
    budget_hours: int | None = None

    @classmethod
    def empty(cls, week_start: str, structure_option: int = 1) -> WeekPlan:
        return cls(id=new_id(), week_start=week_start, structure_option=structure_option)

    def tasks_for_day(self, day: DayOfWeek) -> list[Task]:
        return sorted((t for t in self.tasks if t.day == day), key=lambda t: t.order)

    def effective_budget_hours(self, default: int = DEFAULT_BUDGET_HOURS) -> int:
        return self.budget_hours if self.budget_hours is not None else default

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "weekStart": self.week_start,
            "structureOption": self.structure_option,
            "tasks": [t.to_dict() for t in self.tasks],
            "reflection": self.reflection.to_dict(),
        }
        if self.budget_hours is not None:
            d["budgetHours"] = self.budget_hours
        return d

    @classmethod
    def from_dict(cls, d: dict) -> WeekPlan:
        budget = d.get("budgetHours")
        return cls(
            id=d["id"],
            week_start=parse_week_start(d["weekStart"]),
            structure_option=validate_structure_option(int(d.get("structureOption", 1))),
            tasks=[Task.from_dict(t) for t in d.get("tasks", [])],
            reflection=WeeklyReflection.from_dict(d.get("reflection") or {}),
            budget_hours=int(budget) if budget is not None else None,
        )


@dataclass
class MonthSettings:
    """Sprint cadence for one calendar month."""

    sprint_weeks: int = 4
    integration_every: int = 1

    def __post_init__(self) -> None:
        if self.sprint_weeks < 1 or self.integration_every < 1:
            raise ValueError("sprint_weeks and integration_every must be positive")

    @property
    def cycle_length(self) -> int:
        return self.sprint_weeks * self.integration_every + 1

    def to_dict(self) -> dict:
        return {"sprintWeeks": self.sprint_weeks, "integrationEvery": self.integration_every}

    @classmethod
    def from_dict(cls, d: dict) -> MonthSettings:
        return cls(
            sprint_weeks=int(d.get("sprintWeeks", 4)),
            integration_every=int(d.get("integrationEvery", 1)),
        )
