"""
Analytics engine tests.

All inputs are built in memory; the engine never touches storage.
"""

import datetime as dt

import pytest
from pydantic import ValidationError

from aura.analytics import (
    DateRange,
    compute_analytics,
    month_to_date,
    ratio_percent,
    round_half_up,
)
from aura.models.records import (
    Expense,
    MoodRecord,
    NoteRecord,
    Priority,
    Task,
    VaultSnapshot,
)


MAY_1 = dt.date(2024, 5, 1)
MAY_31 = dt.date(2024, 5, 31)


def _local_ms(*args) -> int:
    """Epoch milliseconds for a local wall-clock time."""
    return int(dt.datetime(*args).timestamp() * 1000)


def _expense(expense_id, amount, category, day) -> Expense:
    return Expense(id=expense_id, entry_id="e", amount=amount, category=category, date=day)


def _task(task_id, completed, category="Personal", day=MAY_1, priority=Priority.MEDIUM) -> Task:
    return Task(
        id=task_id,
        title=task_id,
        completed=completed,
        category=category,
        priority=priority,
        date=day,
        created_at=1,
    )


def _mood(mood_id, sentiment, created_at) -> MoodRecord:
    return MoodRecord(
        id=mood_id,
        entry_id="e",
        sentiment=sentiment,
        sentence="",
        created_at=created_at,
    )


class TestSpending:

    def test_total_spend_counts_only_expenses_in_range(self):
        snapshot = VaultSnapshot(expenses=[
            _expense("a", 100, "Food", MAY_1),
            _expense("b", 50, "Transport", dt.date(2024, 5, 15)),
            _expense("c", 25, "Food", MAY_31),
            _expense("d", 999, "Food", dt.date(2024, 6, 1)),
            _expense("e", 999, "Food", dt.date(2024, 4, 30)),
        ])

        report = compute_analytics(snapshot, MAY_1, MAY_31)

        assert report.total_spend == 175
        assert report.expense_count == 3
        assert report.category_breakdown == {"Food": 125, "Transport": 50}
        assert report.top_category == "Food"

    def test_daily_average(self):
        snapshot = VaultSnapshot(expenses=[_expense("a", 100, "Food", MAY_1)])

        report = compute_analytics(snapshot, MAY_1, dt.date(2024, 5, 4))

        assert report.daily_average == 25.0

    def test_empty_range(self):
        report = compute_analytics(VaultSnapshot(), MAY_1, MAY_31)

        assert report.total_spend == 0
        assert report.category_breakdown == {}
        assert report.top_category is None
        assert report.efficiency == 0


class TestTasks:

    def test_efficiency_ignores_reminders(self):
        tasks = [
            _task("t1", True),
            _task("t2", False),
            _task("t3", False),
            _task("r1", False, category="Reminder"),
        ]

        report = compute_analytics(VaultSnapshot(tasks=tasks), MAY_1, MAY_31)
        assert report.efficiency == 33

        tasks[3] = _task("r1", True, category="Reminder")
        report = compute_analytics(VaultSnapshot(tasks=tasks), MAY_1, MAY_31)
        assert report.efficiency == 33
        assert report.alert_count == 1

    def test_only_reminders_means_zero_efficiency(self):
        tasks = [_task("r1", True, category="Reminder")]

        report = compute_analytics(VaultSnapshot(tasks=tasks), MAY_1, MAY_31)

        assert report.efficiency == 0
        assert report.task_stats.total == 0

    def test_task_stats(self):
        tasks = [
            _task("t1", True),
            _task("t2", False, priority=Priority.HIGH),
            _task("r1", False, category="Reminder", priority=Priority.HIGH),
            _task("old", False, day=dt.date(2024, 4, 1)),
        ]

        report = compute_analytics(VaultSnapshot(tasks=tasks), MAY_1, MAY_31)

        assert report.task_stats.total == 2
        assert report.task_stats.completed == 1
        assert report.task_stats.open_high_priority == 2
        assert report.efficiency == 50


class TestMoodsAndNotes:

    def test_moods_are_placed_by_local_creation_time(self):
        moods = [
            _mood("m1", "Happy", _local_ms(2024, 5, 1, 0, 0, 0)),
            _mood("m2", "Happy", _local_ms(2024, 5, 31, 23, 59, 59)),
            _mood("m3", "Sad", _local_ms(2024, 5, 10, 12)),
            _mood("m4", "Sad", _local_ms(2024, 6, 1, 0, 0, 0)),
            _mood("m5", "Sad", _local_ms(2024, 4, 30, 23, 59, 59)),
        ]

        report = compute_analytics(VaultSnapshot(moods=moods), MAY_1, MAY_31)

        assert report.mood_counts == {"Happy": 2, "Sad": 1}

    def test_note_count(self):
        notes = [
            NoteRecord(id="n1", entry_id="e", text="a", date=MAY_1, created_at=1),
            NoteRecord(id="n2", entry_id="e", text="b", date=dt.date(2024, 6, 2), created_at=1),
        ]

        report = compute_analytics(VaultSnapshot(notes=notes), MAY_1, MAY_31)

        assert report.note_count == 1


class TestRounding:

    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.49) == 2

    def test_ratio_percent(self):
        assert ratio_percent(1, 3) == 33
        assert ratio_percent(2, 3) == 67
        assert ratio_percent(1, 8) == 13
        assert ratio_percent(5, 0) == 0


class TestDateRange:

    def test_boundaries_are_local_and_inclusive(self):
        date_range = DateRange(date_from=MAY_1, date_to=MAY_1)

        assert date_range.days == 1
        assert date_range.contains_day(MAY_1)
        assert date_range.contains_epoch_ms(_local_ms(2024, 5, 1, 23, 59, 59))
        assert not date_range.contains_epoch_ms(_local_ms(2024, 5, 2, 0, 0, 0))

    def test_reversed_range_is_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(date_from=MAY_31, date_to=MAY_1)

    def test_describe(self):
        assert DateRange(date_from=MAY_1, date_to=MAY_31).describe() == "in May 2024"
        assert DateRange(date_from=MAY_1, date_to=MAY_1).describe() == "on 01 May 2024"

    def test_month_to_date(self):
        date_range = month_to_date(dt.date(2024, 5, 17))

        assert date_range.date_from == MAY_1
        assert date_range.date_to == dt.date(2024, 5, 17)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
