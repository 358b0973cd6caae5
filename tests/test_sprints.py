from datetime import date

import pytest

from neurosprint.models import MonthSettings, ProjectCategory
from neurosprint.sprints import (
    WeekKind,
    classify_week,
    month_week_starts,
    project_month,
    project_weeks,
    week_stats,
)
from neurosprint.store import WeekStore


def test_classify_three_week_sprints():
    settings = MonthSettings(sprint_weeks=3, integration_every=1)
    labels = [classify_week(i, settings) for i in range(5)]

    assert [(c.kind, c.cycle, c.sprint, c.week_in_sprint) for c in labels[:3]] == [
        (WeekKind.SPRINT, 1, 1, 1),
        (WeekKind.SPRINT, 1, 1, 2),
        (WeekKind.SPRINT, 1, 1, 3),
    ]
    assert labels[3].is_integration
    assert labels[3].sprint is None
    assert labels[3].label == "Integration"
    assert (labels[4].kind, labels[4].cycle, labels[4].sprint_in_cycle, labels[4].week_in_sprint) == (
        WeekKind.SPRINT,
        2,
        1,
        1,
    )
    assert labels[4].sprint == 2


def test_classify_several_sprints_per_integration():
    settings = MonthSettings(sprint_weeks=2, integration_every=2)  # cycle of 5
    got = [(c.sprint, c.week_in_sprint) for c in (classify_week(i, settings) for i in range(6))]
    assert got == [(1, 1), (1, 2), (2, 1), (2, 2), (None, None), (3, 1)]


def test_classify_is_pure():
    settings = MonthSettings(sprint_weeks=4, integration_every=1)
    assert classify_week(7, settings) == classify_week(7, settings)
    assert classify_week(7, settings).label == "Sprint 2 · week 3"
    with pytest.raises(ValueError):
        classify_week(-1, settings)


def test_month_week_starts():
    # March 2026 starts on a Sunday
    assert month_week_starts("2026-03") == ["2026-03-02", "2026-03-09", "2026-03-16", "2026-03-23", "2026-03-30"]
    assert month_week_starts("2026-02") == ["2026-02-02", "2026-02-09", "2026-02-16", "2026-02-23"]


def test_project_month_uses_month_settings_and_week_data():
    store = WeekStore(today=date(2026, 3, 10))
    a = store.add_task("D", "Ship", 120, "MON")
    store.toggle_task_complete(a.id)
    store.add_task("F", "Walk", 30, "TUE")
    store.set_month_settings("2026-03", sprint_weeks=2)

    rows = project_month(store, "2026-03")

    assert [r.week_start for r in rows][:2] == ["2026-03-02", "2026-03-09"]
    assert [r.classification.label for r in rows] == [
        "Sprint 1 · week 1",
        "Sprint 1 · week 2",
        "Integration",
        "Sprint 2 · week 1",
        "Sprint 2 · week 2",
    ]
    current = rows[1]
    assert current.is_current and current.exists
    assert (current.stats.total_tasks, current.stats.completed_tasks, current.stats.planned_minutes) == (2, 1, 150)
    assert not rows[0].exists
    assert rows[0].stats.total_tasks == 0


def test_projection_does_not_depend_on_current_week():
    one = WeekStore(today=date(2026, 3, 3))
    other = WeekStore(today=date(2026, 3, 25))
    labels_one = [r.classification for r in project_month(one, "2026-03")]
    labels_other = [r.classification for r in project_month(other, "2026-03")]
    assert labels_one == labels_other
    assert one.weeks == [] and one.month_settings == {}


def test_project_weeks_runs_around_current():
    store = WeekStore(today=date(2026, 3, 18))
    rows = project_weeks(store)
    assert len(rows) == 8
    assert rows[0].week_start == "2026-03-02"
    assert rows[2].is_current
    assert sum(r.is_current for r in rows) == 1


def test_week_stats():
    store = WeekStore(today=date(2026, 2, 25))
    store.add_task("F", "Walk", 60, "MON")
    b = store.add_task("D", "Write", 90, "TUE")
    store.add_task("D", "Edit", 30, "TUE")
    store.toggle_task_complete(b.id)
    store.set_budget_hours(2)

    stats = week_stats(store.current_week)

    assert stats.total_tasks == 3
    assert stats.completed_tasks == 1
    assert stats.planned_minutes == 180
    assert stats.completed_minutes == 90
    assert stats.completion_pct == 50
    assert stats.over_budget
    assert stats.budget_pct == 100
    assert stats.minutes_by_project[ProjectCategory.DRIVE] == 120
    assert stats.minutes_by_project[ProjectCategory.JOY] == 0
    assert stats.target_by_project[ProjectCategory.REFLECTION] == 30


def test_week_stats_empty():
    stats = week_stats(None, default_budget_hours=8)
    assert stats.completion_pct == 0
    assert stats.budget_hours == 8
    assert not stats.over_budget
