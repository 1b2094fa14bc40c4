"""Tests for the engine reducer: day rollover, reload, complete and skip."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from habitloop.engine.selector import select_current
from habitloop.engine.state import Complete, EngineState, Reload, Skip, Tick, reduce

from factories import make_definition, make_entry

UTC = ZoneInfo("UTC")


def _now(hour, minute=0, day=1):
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


def _loaded(definitions, now, logs=None):
    logs = logs if logs is not None else {d.id: [] for d in definitions}
    return reduce(EngineState(time_zone="UTC"), Reload(definitions=definitions, logs=logs, now=now))


def test_reducer_does_not_mutate_input():
    defn = make_definition(1, schedule={1: ["07:00"]})
    state = _loaded([defn], _now(8))

    after = reduce(state, Complete(definition_id=1, hhmm="07:00", completed_at=_now(8)))

    assert state.completed_occurrences == frozenset()
    assert after.completed_occurrences == frozenset({(1, "07:00")})


def test_unknown_event_is_rejected():
    with pytest.raises(TypeError):
        reduce(EngineState(), object())


def test_tick_within_day_keeps_completions():
    defn = make_definition(1, schedule={1: ["07:00"]})
    state = _loaded([defn], _now(8))
    state = reduce(state, Complete(definition_id=1, hhmm="07:00", completed_at=_now(8)))

    state = reduce(state, Tick(now=_now(23, 59)))
    assert (1, "07:00") in state.completed_occurrences


def test_midnight_clears_completions_and_releases_new_day():
    # Monday and Tuesday 07:00
    defn = make_definition(1, schedule={1: ["07:00"], 2: ["07:00"]})
    state = _loaded([defn], _now(8))
    state = reduce(state, Complete(definition_id=1, hhmm="07:00", completed_at=_now(8)))
    assert select_current(state) is None

    state = reduce(state, Tick(now=_now(0, 0, day=2)))
    assert state.completed_occurrences == frozenset()
    assert state.today.isoformat() == "2024-01-02"
    assert select_current(state) is None

    state = reduce(state, Tick(now=_now(7, 0, day=2)))
    assert select_current(state).hhmm == "07:00"


def test_reload_is_idempotent():
    defn = make_definition(1, schedule={1: ["07:00", "12:00"]}, categories=["X", "Y"])
    logs = {1: [make_entry(1, 1, datetime(2024, 1, 1, 7, 5, tzinfo=timezone.utc), category="X")]}
    event = Reload(definitions=[defn], logs=logs, now=_now(13))

    once = reduce(EngineState(time_zone="UTC"), event)
    twice = reduce(once, event)

    assert once.completed_occurrences == twice.completed_occurrences == frozenset({(1, "07:00")})
    assert once.category_pointer == twice.category_pointer == {1: 1}
    assert once.last_completed_at == twice.last_completed_at


def test_reload_keeps_local_skips_for_the_day():
    defn = make_definition(1, schedule={1: ["07:00"]})
    state = _loaded([defn], _now(8))
    state = reduce(state, Skip(definition_id=1, hhmm="07:00"))

    state = reduce(state, Reload(definitions=[defn], logs={1: []}, now=_now(8, 30)))
    assert (1, "07:00") in state.completed_occurrences


def test_reload_drops_inactive_definitions():
    active = make_definition(1)
    inactive = make_definition(2, is_active=False)
    state = _loaded([active, inactive], _now(8))
    assert [d.id for d in state.definitions] == [1]


def test_failed_fetch_keeps_previous_pointer_and_forgets_last_completion():
    defn = make_definition(1, categories=["X", "Y", "Z"])
    state = _loaded([defn], _now(8), logs={1: [make_entry(1, 1, _now(7), category="X")]})
    assert state.category_pointer[1] == 1
    assert 1 in state.last_completed_at

    state = reduce(state, Reload(definitions=[defn], logs={1: None}, now=_now(9)))

    assert state.category_pointer[1] == 1
    assert 1 not in state.last_completed_at
    # Still selectable
    assert select_current(state).definition_id == 1


def test_complete_unscheduled_advances_cursor_and_starvation():
    p = make_definition(1)
    q = make_definition(2)
    state = _loaded([p, q], _now(9))
    assert select_current(state).definition_id == 1

    state = reduce(state, Complete(definition_id=1, completed_at=_now(9)))

    assert state.unscheduled_cursor == 1
    assert state.last_completed_at[1] == _now(9)
    # Q is now the only never-completed loop and ranks first; cursor 1 wraps to P
    assert select_current(state).definition_id == 1


def test_complete_for_unknown_definition_is_ignored():
    state = _loaded([make_definition(1)], _now(9))
    assert reduce(state, Complete(definition_id=99, completed_at=_now(9))) == state


def test_round_robin_categories_cycle():
    defn = make_definition(1, schedule={1: ["07:00", "08:00", "09:00", "10:00"]}, categories=["X", "Y", "Z"])
    state = _loaded([defn], _now(11))

    labels = []
    for hhmm in ("07:00", "08:00", "09:00", "10:00"):
        labels.append(defn.categories[state.category_pointer[1]])
        state = reduce(state, Complete(definition_id=1, hhmm=hhmm, completed_at=_now(11)))

    assert labels == ["X", "Y", "Z", "X"]


def test_skip_unscheduled_moves_cursor_without_completion():
    state = _loaded([make_definition(1), make_definition(2)], _now(9))

    state = reduce(state, Skip(definition_id=1))

    assert state.unscheduled_cursor == 1
    assert state.last_completed_at == {}
    assert select_current(state).definition_id == 2


def test_skip_scheduled_only_affects_today():
    defn = make_definition(1, schedule={1: ["07:00"], 2: ["07:00"]})
    state = _loaded([defn], _now(8))
    state = reduce(state, Skip(definition_id=1, hhmm="07:00"))
    assert select_current(state) is None

    state = reduce(state, Tick(now=_now(7, 0, day=2)))
    assert select_current(state).hhmm == "07:00"


def test_reload_with_lagging_log_keeps_advanced_pointer():
    defn = make_definition(1, categories=["X", "Y", "Z"])
    state = _loaded([defn], _now(9))
    state = reduce(state, Complete(definition_id=1, completed_at=_now(9), category="X"))
    assert state.category_pointer[1] == 1

    # The write is not in the fetched log yet
    state = reduce(state, Reload(definitions=[defn], logs={1: []}, now=_now(9, 1)))

    assert state.category_pointer[1] == 1


def test_reload_with_newer_log_entry_takes_log_pointer():
    defn = make_definition(1, categories=["X", "Y", "Z"])
    state = _loaded([defn], _now(9))
    state = reduce(state, Complete(definition_id=1, completed_at=_now(9), category="X"))

    # Another client logged "Y" afterwards
    logs = {1: [make_entry(1, 1, _now(9), category="X"), make_entry(2, 1, _now(9, 30), category="Y")]}
    state = reduce(state, Reload(definitions=[defn], logs=logs, now=_now(9, 31)))

    assert state.category_pointer[1] == 2


def test_complete_pointer_follows_attached_category():
    defn = make_definition(1, categories=["X", "Y", "Z"])
    state = _loaded([defn], _now(9))

    state = reduce(state, Complete(definition_id=1, completed_at=_now(9), category="Z"))

    assert state.category_pointer[1] == 0


def test_unknown_time_zone_is_rejected():
    with pytest.raises(ValueError):
        EngineState(time_zone="Mars/Olympus")
