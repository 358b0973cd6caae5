from datetime import date

import pytest

from neurosprint.models import DayOfWeek, PlannerConfig, ProjectCategory, WeeklyReflection
from neurosprint.store import WeekStore

MON, TUE, WED = DayOfWeek.MON, DayOfWeek.TUE, DayOfWeek.WED


def _store(**kwargs) -> WeekStore:
    # Wednesday 2026-02-25 -> week of Monday 2026-02-23
    return WeekStore(today=date(2026, 2, 25), **kwargs)


def _add(store, title, day=MON, project="F", duration=30, **kwargs):
    return store.add_task(project=project, title=title, duration=duration, day=day, **kwargs)


def _ids(store, day):
    return [t.id for t in store.tasks_for_day(day)]


def _orders(store, day):
    return [t.order for t in store.tasks_for_day(day)]


def test_new_store_starts_on_this_week():
    store = _store()
    assert store.current_week.week_start == "2026-02-23"
    assert store.current_week.tasks == []
    assert store.current_week.reflection.is_empty
    assert store.weeks == []


def test_add_task_appends_dense_orders():
    store = _store()
    for i in range(5):
        _add(store, f"task {i}")
    _add(store, "other day", day=TUE)
    assert _orders(store, MON) == [0, 1, 2, 3, 4]
    assert _orders(store, TUE) == [0]


def test_add_task_assigns_unique_ids_and_defaults():
    store = _store()
    a = _add(store, "a", start_time="07:15")
    b = _add(store, "b")
    assert a.id != b.id
    assert a.completed is False
    assert a.project is ProjectCategory.FOUNDATION
    assert a.start_time == "07:15"


def test_move_task_to_other_day_inserts_at_position():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")
    d = _add(store, "d", day=TUE)

    moved = store.move_task(d.id, MON, 1)

    assert moved.day is MON
    assert _ids(store, MON) == [a.id, d.id, b.id, c.id]
    assert _orders(store, MON) == [0, 1, 2, 3]
    assert _ids(store, TUE) == []


def test_move_task_past_end_appends_without_collision():
    store = _store()
    a, b = _add(store, "a"), _add(store, "b")
    c = _add(store, "c", day=WED)

    store.move_task(c.id, MON, 10)

    assert _ids(store, MON) == [a.id, b.id, c.id]
    orders = _orders(store, MON)
    assert len(set(orders)) == len(orders)


def test_move_task_leaves_gap_in_source_day():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")
    store.move_task(b.id, TUE, 0)
    # gaps are tolerated: strictly increasing, not renumbered
    assert _orders(store, MON) == [0, 2]
    assert _ids(store, MON) == [a.id, c.id]


def test_order_for_slot_within_same_day():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")

    store.move_task(a.id, MON, store.order_for_slot(a.id, MON, 2))
    assert _ids(store, MON) == [b.id, c.id, a.id]

    store.move_task(a.id, MON, store.order_for_slot(a.id, MON, 1))
    assert _ids(store, MON) == [b.id, a.id, c.id]

    store.move_task(c.id, MON, store.order_for_slot(c.id, MON, 0))
    assert _ids(store, MON) == [c.id, b.id, a.id]


def test_order_for_slot_into_day_with_gap():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")
    x = _add(store, "x", day=TUE)
    store.delete_task(b.id)

    store.move_task(x.id, MON, store.order_for_slot(x.id, MON, 2))
    assert _ids(store, MON) == [a.id, c.id, x.id]

    store.move_task(x.id, MON, store.order_for_slot(x.id, MON, 1))
    assert _ids(store, MON) == [a.id, x.id, c.id]


def test_order_for_slot_defaults_to_end():
    store = _store()
    a, b = _add(store, "a"), _add(store, "b")
    assert store.order_for_slot(a.id, TUE) == 0
    assert store.order_for_slot(a.id, MON) == b.order + 1
    assert store.order_for_slot(a.id, MON, 9) == b.order + 1
    with pytest.raises(ValueError):
        store.order_for_slot(a.id, MON, -1)


def test_move_task_unknown_id_is_noop():
    store = _store()
    a = _add(store, "a")
    before = [t.to_dict() for t in store.current_week.tasks]
    assert store.move_task("missing", TUE, 0) is None
    assert [t.to_dict() for t in store.current_week.tasks] == before
    assert store.find_task(a.id).day is MON


def test_move_task_rejects_negative_order():
    store = _store()
    a = _add(store, "a")
    with pytest.raises(ValueError):
        store.move_task(a.id, TUE, -1)
    assert store.find_task(a.id).day is MON


def test_delete_task_keeps_gap():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")
    assert store.delete_task(b.id) is True
    assert _ids(store, MON) == [a.id, c.id]
    assert _orders(store, MON) == [0, 2]


def test_delete_missing_task_changes_nothing():
    store = _store()
    _add(store, "a")
    _add(store, "b", day=TUE)
    before = [t.to_dict() for t in store.current_week.tasks]
    calls = []
    store.subscribe(calls.append)

    assert store.delete_task("no-such-id") is False
    assert [t.to_dict() for t in store.current_week.tasks] == before
    assert calls == []


def test_update_task_replaces_fields():
    store = _store()
    a = _add(store, "a")
    store.update_task(a.id, title="renamed", duration=45, project="J", start_time="18:00")
    t = store.find_task(a.id)
    assert (t.title, t.duration, t.project, t.start_time) == ("renamed", 45, ProjectCategory.JOY, "18:00")
    store.update_task(a.id, start_time="")
    assert t.start_time is None


def test_update_task_day_change_appends_to_new_day():
    store = _store()
    a = _add(store, "a")
    x, y = _add(store, "x", day=TUE), _add(store, "y", day=TUE)
    store.update_task(a.id, day="TUE")
    assert _ids(store, TUE) == [x.id, y.id, a.id]
    assert _orders(store, TUE) == [0, 1, 2]


def test_update_task_rejects_id_order_and_unknown_fields():
    store = _store()
    a = _add(store, "a")
    with pytest.raises(ValueError):
        store.update_task(a.id, order=3)
    with pytest.raises(ValueError):
        store.update_task(a.id, id="other")
    with pytest.raises(ValueError):
        store.update_task(a.id, colour="red")
    assert store.update_task("missing", title="x") is None


def test_toggle_task_complete():
    store = _store()
    a = _add(store, "a")
    assert store.toggle_task_complete(a.id).completed is True
    assert store.toggle_task_complete(a.id).completed is False
    assert store.find_task(a.id).order == 0
    assert store.toggle_task_complete("missing") is None


def test_reorder_tasks_in_day_follows_permutation():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")
    store.reorder_tasks_in_day(MON, [c.id, a.id, b.id])
    assert _ids(store, MON) == [c.id, a.id, b.id]
    assert _orders(store, MON) == [0, 1, 2]


def test_reorder_leaves_unlisted_tasks_alone():
    store = _store()
    a, b, c = (_add(store, n) for n in "abc")
    other = _add(store, "other", day=TUE)
    store.reorder_tasks_in_day(MON, [b.id, a.id, other.id])
    assert store.find_task(c.id).order == 2
    assert store.find_task(other.id).order == 0
    assert store.find_task(b.id).order == 0
    assert store.find_task(a.id).order == 1


def test_duplicate_task():
    store = _store()
    a = _add(store, "a", project="D", duration=50, start_time="10:00")
    store.toggle_task_complete(a.id)

    same_day = store.duplicate_task(a.id)
    other_day = store.duplicate_task(a.id, "WED")

    assert same_day.id != a.id
    assert (same_day.day, same_day.order, same_day.completed) == (MON, 1, False)
    assert (other_day.day, other_day.order) == (WED, 0)
    assert other_day.title == "a" and other_day.start_time == "10:00"
    assert store.duplicate_task("missing") is None


def test_week_fields():
    store = _store()
    store.set_structure_option(4)
    store.set_budget_hours(15)
    assert store.current_week.structure_option == 4
    assert store.current_week.budget_hours == 15
    store.set_budget_hours(None)
    assert store.current_week.effective_budget_hours() == 10
    with pytest.raises(ValueError):
        store.set_structure_option(6)


def test_save_reflection_replaces_wholesale():
    store = _store()
    store.save_reflection(WeeklyReflection(done={"drive": "demo"}, adjustments="less"))
    store.save_reflection(WeeklyReflection(not_done={"joy": "concert"}, saved=True))
    r = store.current_week.reflection
    assert r.done["drive"] == ""
    assert r.not_done["joy"] == "concert"
    assert r.adjustments == ""
    assert r.saved is True


def test_clear_current_week_keeps_identity():
    store = _store()
    store.set_structure_option(2)
    _add(store, "a")
    store.save_reflection(WeeklyReflection(adjustments="x", saved=True))
    week_id = store.current_week.id

    store.clear_current_week()

    wk = store.current_week
    assert wk.tasks == []
    assert wk.reflection == WeeklyReflection()
    assert (wk.id, wk.week_start, wk.structure_option) == (week_id, "2026-02-23", 2)


def test_go_to_week_round_trip_preserves_tasks():
    store = _store()
    a, b = _add(store, "a"), _add(store, "b", day=TUE)
    before = [t.to_dict() for t in store.current_week.tasks]

    store.go_to_week("2026-03-02")
    _add(store, "next week task")
    store.go_to_week("2026-03-09")
    store.go_to_week("2026-02-23")

    assert [t.to_dict() for t in store.current_week.tasks] == before
    assert store.week_for("2026-03-02").tasks[0].title == "next week task"


def test_go_to_week_archive_excludes_current():
    store = _store()
    store.go_to_week("2026-03-05")  # a Thursday
    assert store.current_week.week_start == "2026-03-02"
    assert [w.week_start for w in store.weeks] == ["2026-02-23"]

    store.go_to_week("2026-02-23")
    assert [w.week_start for w in store.weeks] == ["2026-03-02"]
    starts = [w.week_start for w in store.all_weeks()]
    assert starts == ["2026-02-23", "2026-03-02"]


def test_go_to_same_week_is_harmless():
    store = _store()
    a = _add(store, "a")
    week_id = store.current_week.id
    store.go_to_week("2026-02-24")
    assert store.current_week.id == week_id
    assert store.find_task(a.id) is not None
    assert store.weeks == []


def test_create_new_week_carries_structure_option_only():
    store = _store()
    store.set_structure_option(3)
    store.set_budget_hours(20)
    _add(store, "a")

    wk = store.create_new_week()

    assert wk.week_start == "2026-03-02"
    assert wk.structure_option == 3
    assert wk.budget_hours is None
    assert wk.tasks == []
    assert [w.week_start for w in store.weeks] == ["2026-02-23"]
    assert len(store.weeks[0].tasks) == 1


def test_create_new_week_opens_existing_next_week():
    store = _store()
    store.go_to_week("2026-03-02")
    kept = _add(store, "planned ahead")
    store.go_to_week("2026-02-23")

    wk = store.create_new_week()

    assert wk.week_start == "2026-03-02"
    assert [t.id for t in wk.tasks] == [kept.id]
    assert [w.week_start for w in store.weeks] == ["2026-02-23"]


def test_month_settings_default_not_persisted():
    store = _store(config=PlannerConfig(default_sprint_weeks=3))
    s = store.get_month_settings("2026-03")
    assert (s.sprint_weeks, s.integration_every) == (3, 1)
    assert store.month_settings == {}

    store.set_month_settings("2026-03", integration_every=2)
    store.set_month_settings("2026-03", sprint_weeks=2)
    s = store.get_month_settings("2026-03")
    assert (s.sprint_weeks, s.integration_every) == (2, 2)


def test_month_settings_validation():
    store = _store()
    with pytest.raises(ValueError):
        store.set_month_settings("2026-03", sprint_weeks=0)
    with pytest.raises(ValueError):
        store.get_month_settings("March")
    assert store.month_settings == {}


def test_subscribers_called_after_each_mutation():
    store = _store()
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(len(s.current_week.tasks)))

    a = _add(store, "a")
    store.toggle_task_complete(a.id)
    store.delete_task(a.id)
    unsubscribe()
    _add(store, "b")

    assert seen == [1, 1, 0]


def test_resolve_task_id_by_prefix():
    store = _store()
    a = _add(store, "a")
    assert store.resolve_task_id(a.id) == a.id
    assert store.resolve_task_id(a.id[:8]) == a.id
    assert store.resolve_task_id("zzzz") is None
