"""Tests for completion reconciliation and category rotation."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from habitloop.engine.rotation import advance_pointer, clamp_pointer, current_category, initial_pointer
from habitloop.engine.tracker import completed_slots, count_today, most_recent_completion, reconcile

from factories import make_definition, make_entry

UTC = ZoneInfo("UTC")
MONDAY = date(2024, 1, 1)


def _at(day, hour, minute=0):
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


class TestCountBasedSlots:
    def test_count_marks_earliest_times(self):
        defn = make_definition(1, schedule={1: ["18:00", "07:00", "12:00"]})
        assert completed_slots(defn, 2, MONDAY) == ["07:00", "12:00"]

    def test_count_beyond_slots_marks_all(self):
        defn = make_definition(1, schedule={1: ["07:00"]})
        assert completed_slots(defn, 5, MONDAY) == ["07:00"]

    def test_zero_count_marks_nothing(self):
        defn = make_definition(1, schedule={1: ["07:00"]})
        assert completed_slots(defn, 0, MONDAY) == []

    def test_count_today_ignores_other_days(self):
        entries = [
            make_entry(1, 1, _at(1, 8)),
            make_entry(2, 1, _at(1, 23, 59)),
            make_entry(3, 1, datetime(2023, 12, 31, 23, 0, tzinfo=timezone.utc)),
        ]
        assert count_today(entries, MONDAY, UTC) == 2

    def test_count_today_uses_local_date(self):
        # 03:00 UTC on Jan 1 is still Dec 31 in New York
        entries = [make_entry(1, 1, _at(1, 3))]
        assert count_today(entries, MONDAY, ZoneInfo("America/New_York")) == 0

    def test_naive_log_timestamps_are_utc(self):
        entry = make_entry(1, 1, datetime(2024, 1, 1, 8, 0))
        assert entry.created_at.tzinfo is not None
        assert count_today([entry], MONDAY, UTC) == 1


class TestReconcile:
    def test_reconcile_scheduled_and_unscheduled(self):
        scheduled = make_definition(1, schedule={1: ["07:00", "12:00"]})
        loop = make_definition(2)
        logs = {
            1: [make_entry(1, 1, _at(1, 12, 30))],
            2: [make_entry(2, 2, _at(1, 9)), make_entry(3, 2, datetime(2023, 12, 25, 9, tzinfo=timezone.utc))],
        }

        result = reconcile([scheduled, loop], logs, MONDAY, UTC)

        # Late completion still satisfies the earliest slot
        assert result.completed_occurrences == frozenset({(1, "07:00")})
        assert result.by_definition[2].today_count == 1
        assert result.by_definition[2].completed_slots == []
        assert result.last_completed_at[2] == _at(1, 9)

    def test_failed_fetch_degrades_to_never(self):
        defn = make_definition(1, schedule={1: ["07:00"]})

        result = reconcile([defn], {1: None}, MONDAY, UTC)

        item = result.by_definition[1]
        assert item.fetch_failed
        assert item.today_count == 0
        assert item.last_completed_at is None
        assert result.failed_definition_ids == [1]

    def test_missing_log_is_treated_as_failed(self):
        defn = make_definition(1)
        result = reconcile([defn], {}, MONDAY, UTC)
        assert result.failed_definition_ids == [1]

    def test_most_recent_completion_none_when_empty(self):
        assert most_recent_completion([], UTC) is None


class TestCategoryRotation:
    def test_pointer_follows_most_recent_categorized_entry(self):
        entries = [
            make_entry(1, 1, _at(1, 8), category="Y"),
            make_entry(2, 1, _at(1, 9), category=None),
            make_entry(3, 1, datetime(2023, 12, 30, 9, tzinfo=timezone.utc), category="Z"),
        ]
        assert initial_pointer(["X", "Y", "Z"], entries) == 2

    def test_pointer_wraps_after_last_label(self):
        entries = [make_entry(1, 1, _at(1, 8), category="Z")]
        assert initial_pointer(["X", "Y", "Z"], entries) == 0

    def test_unknown_or_missing_label_starts_at_zero(self):
        assert initial_pointer(["X", "Y"], []) == 0
        assert initial_pointer(["X", "Y"], [make_entry(1, 1, _at(1, 8), category="Q")]) == 0

    def test_empty_categories_have_no_pointer(self):
        assert initial_pointer([], [make_entry(1, 1, _at(1, 8), category="X")]) is None
        assert current_category([], None) is None
        assert advance_pointer([], 3) is None

    def test_advance_and_clamp(self):
        cats = ["X", "Y", "Z"]
        assert advance_pointer(cats, 2) == 0
        assert current_category(cats, 1) == "Y"
        assert clamp_pointer(["X", "Y"], 2) == 0
