"""Recurrence pattern model for taskorch.

A pattern is a small value object; the arithmetic that turns it into concrete
dates lives in `taskorch.engine.recurrence`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskorch.models.dates import to_naive_utc


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    WEEKDAYS = "weekdays"  # next Monday-Friday, interval ignored
    CUSTOM = "custom"  # every `interval` days


class RecurringPattern(BaseModel):
    """Frequency rule with optional end date and occurrence cap."""

    model_config = ConfigDict(frozen=True)

    frequency: RecurrenceFrequency
    interval: int = Field(1, ge=1, description="Every N units (days/weeks/months/years)")
    end_date: Optional[datetime] = Field(
        None, description="No occurrence is generated after this moment"
    )
    max_occurrences: Optional[int] = Field(
        None, ge=1, description="Total number of tasks in the series, including the first"
    )

    @field_validator("end_date")
    @classmethod
    def _naive_utc(cls, v):
        return to_naive_utc(v)

    def next_date(self, after: datetime) -> Optional[datetime]:
        """Next occurrence after `after`, or None once the end condition is met."""
        from taskorch.engine.recurrence import next_occurrence

        return next_occurrence(self, after)
