"""Points and multiplier data models for taskorch."""

import math
import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from taskorch.models.dates import to_naive_utc


class PointsSource(str, Enum):
    """What earned the points."""
    HABIT_COMPLETED = "habit_completed"
    TASK_COMPLETED = "task_completed"
    GOAL_ACHIEVED = "goal_achieved"
    STREAK_MILESTONE = "streak_milestone"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    LEVEL_UP = "level_up"
    CHALLENGE_COMPLETED = "challenge_completed"
    DAILY_LOGIN = "daily_login"
    WEEKLY_GOAL = "weekly_goal"
    MONTHLY_GOAL = "monthly_goal"
    SPECIAL_EVENT = "special_event"
    BONUS = "bonus"

    @property
    def base_points(self) -> int:
        """Source-type weight used as the first factor of every award."""
        return _SOURCE_WEIGHTS[self]


_SOURCE_WEIGHTS = {
    PointsSource.HABIT_COMPLETED: 10,
    PointsSource.TASK_COMPLETED: 15,
    PointsSource.GOAL_ACHIEVED: 50,
    PointsSource.STREAK_MILESTONE: 25,
    PointsSource.ACHIEVEMENT_UNLOCKED: 100,
    PointsSource.LEVEL_UP: 200,
    PointsSource.CHALLENGE_COMPLETED: 75,
    PointsSource.DAILY_LOGIN: 5,
    PointsSource.WEEKLY_GOAL: 100,
    PointsSource.MONTHLY_GOAL: 300,
    PointsSource.SPECIAL_EVENT: 150,
    PointsSource.BONUS: 20,
}


class TimeOfDayPeriod(str, Enum):
    """Hour-of-day buckets (24h clock)."""
    EARLY_MORNING = "early_morning"  # 6-9
    MORNING = "morning"  # 9-12
    AFTERNOON = "afternoon"  # 12-18
    EVENING = "evening"  # 18-21
    NIGHT = "night"  # 21-24
    LATE_NIGHT = "late_night"  # 0-6


class LevelMultiplier(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["level"] = "level"
    factor: float


class StreakMultiplier(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["streak"] = "streak"
    days: int
    bonus: int = 0


class TimeOfDayMultiplier(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["time_of_day"] = "time_of_day"
    period: TimeOfDayPeriod
    bonus: int = 0


class ConsistencyMultiplier(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["consistency"] = "consistency"
    rate: float
    bonus: int = 0


class SpecialMultiplier(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["special"] = "special"
    factor: float
    bonus: int = 0


PointsMultiplier = Annotated[
    Union[
        LevelMultiplier,
        StreakMultiplier,
        TimeOfDayMultiplier,
        ConsistencyMultiplier,
        SpecialMultiplier,
    ],
    Field(discriminator="kind"),
]


class PointsHistory(BaseModel):
    """Immutable ledger entry. Created once per award, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Ledger entry id")
    user_id: str = Field(..., description="User who earned the points")
    amount: int = Field(..., description="Awarded points before multiplier and bonus")
    source: PointsSource = Field(..., description="What earned the points")
    source_id: Optional[str] = Field(None, description="Id of the habit/task/goal that earned them")
    reason: str = Field(..., description="Human-readable reason")
    multiplier: float = Field(1.0, description="Multiplier recorded with the award")
    bonus_points: int = Field(0, description="Flat bonus recorded with the award")
    earned_at: datetime = Field(default_factory=datetime.utcnow, description="Award timestamp")

    @field_validator("earned_at")
    @classmethod
    def _naive_utc(cls, v):
        return to_naive_utc(v)

    @computed_field
    @property
    def total_points(self) -> int:
        return math.floor(self.amount * self.multiplier) + self.bonus_points


class PointsBreakdown(BaseModel):
    """Points per source over a period."""

    source: PointsSource
    points: int
    percentage: float = 0.0
