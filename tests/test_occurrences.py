"""Tests for occurrence generation and release."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from habitloop.engine.occurrences import day_of_week, generate_occurrences, scheduled_at
from habitloop.engine.release import is_released, released_occurrences

from factories import make_definition

UTC = ZoneInfo("UTC")
MONDAY = date(2024, 1, 1)


def test_day_of_week_uses_sunday_zero():
    assert day_of_week(date(2023, 12, 31)) == 0  # Sunday
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2024, 1, 6)) == 6  # Saturday


def test_one_occurrence_per_time_today():
    defn = make_definition(1, schedule={1: ["07:00", "12:30"], 2: ["09:00"]})

    occs = generate_occurrences([defn], MONDAY, UTC)

    assert [o.hhmm for o in occs] == ["07:00", "12:30"]
    assert occs[0].scheduled_at == datetime(2024, 1, 1, 7, 0, tzinfo=UTC)
    assert occs[0].key == (1, "07:00")
    assert occs[0].priority == 1


def test_no_entry_for_today_generates_nothing():
    defn = make_definition(1, schedule={3: ["07:00"]})
    assert generate_occurrences([defn], MONDAY, UTC) == []


def test_unscheduled_and_inactive_definitions_are_skipped():
    loop = make_definition(1, schedule={1: []})
    inactive = make_definition(2, schedule={1: ["07:00"]}, is_active=False)
    assert loop.is_unscheduled
    assert generate_occurrences([loop, inactive], MONDAY, UTC) == []


def test_scheduled_at_without_zone_is_naive():
    assert scheduled_at(MONDAY, "08:05") == datetime.combine(MONDAY, time(8, 5))


def test_release_is_inclusive_at_trigger_minute():
    defn = make_definition(1, schedule={1: ["07:00"]})
    occ = generate_occurrences([defn], MONDAY, UTC)[0]

    assert not is_released(occ, datetime(2024, 1, 1, 6, 59, tzinfo=UTC))
    assert is_released(occ, datetime(2024, 1, 1, 7, 0, tzinfo=UTC))


def test_released_set_grows_monotonically():
    defn = make_definition(1, schedule={1: ["07:00", "09:00", "18:00"]})
    occs = generate_occurrences([defn], MONDAY, UTC)

    counts = [
        len(released_occurrences(occs, datetime(2024, 1, 1, h, 0, tzinfo=UTC)))
        for h in (6, 7, 8, 9, 20)
    ]
    assert counts == [0, 1, 1, 2, 3]
