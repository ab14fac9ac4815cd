"""
Analytics Engine

DESIGN DECISION: Analytics are a pure recomputation over collections the
caller already loaded. No storage access, no caching, no clock reads
(except in the `month_to_date` convenience helper). Same input, same
report.

Date ranges are inclusive and LOCAL: a range [from, to] covers from local
midnight on `from` through 23:59:59.999 on `to`. Comparing against UTC
instead would shift captures made late in the evening into the next day.
"""

import datetime as dt
import math
from collections import Counter, defaultdict
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from aura.models.records import Priority, Task, VaultSnapshot


_END_OF_DAY = dt.time(23, 59, 59, 999000)


class DateRange(BaseModel):
    """An inclusive range of local calendar days."""

    date_from: dt.date
    date_to: dt.date

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.date_to < self.date_from:
            raise ValueError("Range end cannot be before range start")
        return self

    @property
    def start(self) -> dt.datetime:
        """Local midnight at the start of `date_from`."""
        return dt.datetime.combine(self.date_from, dt.time.min)

    @property
    def end(self) -> dt.datetime:
        """23:59:59.999 local on `date_to`."""
        return dt.datetime.combine(self.date_to, _END_OF_DAY)

    @property
    def days(self) -> int:
        return (self.date_to - self.date_from).days + 1

    def contains_day(self, day: dt.date) -> bool:
        return self.start <= dt.datetime.combine(day, dt.time.min) <= self.end

    def contains_epoch_ms(self, epoch_ms: int) -> bool:
        return self.start <= dt.datetime.fromtimestamp(epoch_ms / 1000) <= self.end

    def describe(self) -> str:
        """Human-readable form of the range."""
        date_from, date_to = self.date_from, self.date_to
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.month == date_to.month and date_from.year == date_to.year:
            if date_from.day == 1:
                return f"in {date_from.strftime('%B %Y')}"
            return f"from {date_from.strftime('%d')} to {date_to.strftime('%d %b %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%d %b')} to {date_to.strftime('%d %b %Y')}"
        return f"from {date_from.strftime('%d %b %Y')} to {date_to.strftime('%d %b %Y')}"


class TaskStats(BaseModel):
    """Task counts behind the efficiency ratio."""

    total: int = Field(default=0, ge=0, description="Non-reminder tasks")
    completed: int = Field(default=0, ge=0, description="Completed non-reminder tasks")
    open_high_priority: int = Field(default=0, ge=0, description="Open high-priority tasks, reminders included")


class AnalyticsReport(BaseModel):
    """Everything the insights screen shows for one date range."""

    date_range: DateRange
    range_description: str

    # Spending
    total_spend: float = 0.0
    expense_count: int = 0
    daily_average: float = 0.0
    category_breakdown: dict[str, float] = Field(default_factory=dict)
    top_category: Optional[str] = None

    # Moods
    mood_counts: dict[str, int] = Field(default_factory=dict)

    # Tasks
    efficiency: int = Field(default=0, ge=0, le=100)
    task_stats: TaskStats = Field(default_factory=TaskStats)
    alert_count: int = Field(default=0, ge=0, description="Reminder tasks in range")

    # Notes
    note_count: int = 0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() would go to even)."""
    return int(math.floor(value + 0.5))


def ratio_percent(numerator: int, denominator: int) -> int:
    """Whole-number percentage; 0 when there is nothing to divide by."""
    if denominator <= 0:
        return 0
    return round_half_up(100 * numerator / denominator)


def month_to_date(today: Optional[dt.date] = None) -> DateRange:
    """From the first of the current month through today."""
    today = today or dt.date.today()
    return DateRange(date_from=today.replace(day=1), date_to=today)


def compute_analytics(
    snapshot: VaultSnapshot,
    date_from: dt.date,
    date_to: dt.date,
) -> AnalyticsReport:
    """
    Compute spend, mood and task figures for an inclusive local date range.

    Expenses, tasks and notes are placed by their `date`; moods by
    `createdAt`. Reminder tasks (category "Reminder") count as alerts and
    are left out of the efficiency ratio.
    """
    date_range = DateRange(date_from=date_from, date_to=date_to)

    # Spending
    expenses = [e for e in snapshot.expenses if date_range.contains_day(e.date)]
    breakdown: dict[str, float] = defaultdict(float)
    for expense in expenses:
        breakdown[expense.category] += expense.amount
    total_spend = sum(e.amount for e in expenses)
    top_category = max(breakdown, key=breakdown.get) if breakdown else None

    # Moods
    mood_counts = Counter(
        m.sentiment for m in snapshot.moods
        if date_range.contains_epoch_ms(m.created_at)
    )

    # Tasks
    tasks: list[Task] = [t for t in snapshot.tasks if date_range.contains_day(t.date)]
    reminders = [t for t in tasks if t.is_reminder]
    regular = [t for t in tasks if not t.is_reminder]
    completed = sum(1 for t in regular if t.completed)
    task_stats = TaskStats(
        total=len(regular),
        completed=completed,
        open_high_priority=sum(
            1 for t in tasks if t.priority is Priority.HIGH and not t.completed
        ),
    )

    return AnalyticsReport(
        date_range=date_range,
        range_description=date_range.describe(),
        total_spend=total_spend,
        expense_count=len(expenses),
        daily_average=round(total_spend / date_range.days, 2),
        category_breakdown=dict(breakdown),
        top_category=top_category,
        mood_counts=dict(mood_counts),
        efficiency=ratio_percent(completed, len(regular)),
        task_stats=task_stats,
        alert_count=len(reminders),
        note_count=sum(1 for n in snapshot.notes if date_range.contains_day(n.date)),
    )
