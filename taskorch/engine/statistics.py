"""Task statistics over a period for taskorch."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field

from taskorch.models.task import Priority, Task, TaskStatus


class StatisticsPeriod(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    THIS_YEAR = "this_year"
    CUSTOM = "custom"


class TaskStatistics(BaseModel):
    """Aggregates over non-archived tasks created inside a period."""

    period_start: datetime
    period_end: datetime
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    high_priority_tasks: int = 0
    average_completion_time_sec: float = 0.0
    productivity_score: float = Field(0.0, ge=0.0, le=1.0)

    @property
    def completion_rate(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return self.completed_tasks / self.total_tasks

    @property
    def overdue_rate(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return self.overdue_tasks / self.total_tasks


_HIGH_PRIORITIES = (Priority.HIGH, Priority.URGENT)


def period_range(
    period: StatisticsPeriod,
    now: datetime,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Resolve a period to [start, end). Weeks start on Monday."""
    period = StatisticsPeriod(period)
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == StatisticsPeriod.TODAY:
        return day, day + timedelta(days=1)
    if period == StatisticsPeriod.THIS_WEEK:
        week_start = day - timedelta(days=day.weekday())
        return week_start, week_start + timedelta(weeks=1)
    if period == StatisticsPeriod.THIS_MONTH:
        month_start = day.replace(day=1)
        return month_start, month_start + relativedelta(months=1)
    if period == StatisticsPeriod.THIS_YEAR:
        year_start = day.replace(month=1, day=1)
        return year_start, year_start + relativedelta(years=1)

    if start is None or end is None:
        raise ValueError("custom period requires start and end")
    if end < start:
        raise ValueError("custom period end must not be before start")
    return start, end


def _productivity_score(tasks: List[Task], now: datetime) -> float:
    if not tasks:
        return 0.0
    total = float(len(tasks))
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    overdue = [t for t in tasks if t.is_overdue(now)]
    high_priority_completed = [t for t in completed if t.priority in _HIGH_PRIORITIES]

    score = (
        (len(completed) / total) * 0.6
        + (len(high_priority_completed) / total) * 0.3
        - (len(overdue) / total) * 0.1
    )
    return min(1.0, max(0.0, score))


def compute_statistics(
    tasks: Iterable[Task],
    start: datetime,
    end: datetime,
    now: datetime,
) -> TaskStatistics:
    in_period = [
        t for t in tasks
        if not t.is_archived and start <= t.created_at < end
    ]
    completed = [t for t in in_period if t.status == TaskStatus.COMPLETED]
    durations = [t.actual_duration_sec for t in completed if t.actual_duration_sec is not None]

    return TaskStatistics(
        period_start=start,
        period_end=end,
        total_tasks=len(in_period),
        completed_tasks=len(completed),
        overdue_tasks=sum(1 for t in in_period if t.is_overdue(now)),
        high_priority_tasks=sum(1 for t in in_period if t.priority in _HIGH_PRIORITIES),
        average_completion_time_sec=(sum(durations) / len(durations)) if durations else 0.0,
        productivity_score=_productivity_score(in_period, now),
    )
