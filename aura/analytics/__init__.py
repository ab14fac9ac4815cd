"""Analytics over loaded vault collections."""

from aura.analytics.engine import (
    AnalyticsReport,
    DateRange,
    TaskStats,
    compute_analytics,
    month_to_date,
    ratio_percent,
    round_half_up,
)

__all__ = [
    "AnalyticsReport",
    "DateRange",
    "TaskStats",
    "compute_analytics",
    "month_to_date",
    "ratio_percent",
    "round_half_up",
]
