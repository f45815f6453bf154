"""Points and XP scoring for taskorch.

Implements the tiered, multiplicative points model. Every function here is
pure and deterministic: the same inputs always produce the same outputs, and
nothing reads the wall clock. Callers that want a time-of-day multiplier pass
`now` explicitly.

Tier tables are half-open `[lower, next_lower)` ranges; the top tier of each
table is closed-ended.
"""

import bisect
import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from taskorch.models.constants import (
    CONSISTENCY_WINDOW_DAYS,
    LEVEL_BONUS_PER_LEVEL,
    LEVEL_FACTOR_PER_LEVEL,
    MIN_POINTS,
    XP_PER_POINT,
)
from taskorch.models.points import (
    ConsistencyMultiplier,
    LevelMultiplier,
    PointsMultiplier,
    PointsSource,
    SpecialMultiplier,
    StreakMultiplier,
    TimeOfDayMultiplier,
    TimeOfDayPeriod,
)

logger = logging.getLogger(__name__)


# (lower bound, factor, flat bonus), ascending by lower bound
STREAK_TIERS: Tuple[Tuple[int, float, int], ...] = (
    (0, 1.0, 0),
    (7, 1.2, 10),
    (14, 1.5, 25),
    (30, 2.0, 50),
    (60, 2.5, 100),
    (100, 3.0, 200),
    (200, 4.0, 500),
    (365, 5.0, 1000),
)

CONSISTENCY_TIERS: Tuple[Tuple[float, float, int], ...] = (
    (0.0, 1.0, 0),
    (0.5, 1.1, 0),
    (0.7, 1.2, 10),
    (0.8, 1.3, 20),
    (0.9, 1.5, 50),
    (0.95, 2.0, 100),
)
CONSISTENCY_MAX_RATE = 1.0

# (first hour, period), ascending; each period runs until the next entry's hour
_HOUR_PERIODS: Tuple[Tuple[int, TimeOfDayPeriod], ...] = (
    (0, TimeOfDayPeriod.LATE_NIGHT),
    (6, TimeOfDayPeriod.EARLY_MORNING),
    (9, TimeOfDayPeriod.MORNING),
    (12, TimeOfDayPeriod.AFTERNOON),
    (18, TimeOfDayPeriod.EVENING),
    (21, TimeOfDayPeriod.NIGHT),
)

TIME_OF_DAY_TIERS = {
    TimeOfDayPeriod.EARLY_MORNING: (1.3, 5),
    TimeOfDayPeriod.MORNING: (1.1, 2),
    TimeOfDayPeriod.AFTERNOON: (1.0, 0),
    TimeOfDayPeriod.EVENING: (1.1, 2),
    TimeOfDayPeriod.NIGHT: (1.2, 3),
    TimeOfDayPeriod.LATE_NIGHT: (1.5, 10),
}

NEUTRAL_TIER = (1.0, 0)


class PointsCalculation(NamedTuple):
    """Intermediate values of one points computation."""
    base: int
    factor: float
    bonus: int
    points: int


def _lookup(tiers: Sequence[tuple], value) -> Tuple[float, int]:
    lowers = [t[0] for t in tiers]
    idx = bisect.bisect_right(lowers, value) - 1
    _, factor, bonus = tiers[idx]
    return factor, bonus


def streak_tier(days: int) -> Tuple[float, int]:
    """Get (factor, bonus) for a streak length in days.

    Args:
        days: Current streak length

    Returns:
        Factor/bonus pair; negative lengths are neutral
    """
    if days < 0:
        return NEUTRAL_TIER
    return _lookup(STREAK_TIERS, days)


def consistency_tier(rate: float) -> Tuple[float, int]:
    """Get (factor, bonus) for a completion rate in [0, 1].

    Args:
        rate: Share of active days in the trailing window

    Returns:
        Factor/bonus pair; rates outside [0, 1] are neutral
    """
    if rate < 0.0 or rate > CONSISTENCY_MAX_RATE:
        return NEUTRAL_TIER
    return _lookup(CONSISTENCY_TIERS, rate)


def level_factor(level: int) -> float:
    return 1.0 + level * LEVEL_FACTOR_PER_LEVEL


def level_bonus(level: int) -> int:
    return level * LEVEL_BONUS_PER_LEVEL


def time_of_day_period(hour: int) -> TimeOfDayPeriod:
    """Map an hour of the 24h clock to its period."""
    if not 0 <= hour < 24:
        raise ValueError(f"hour must be in [0, 24), got {hour}")
    idx = bisect.bisect_right([h for h, _ in _HOUR_PERIODS], hour) - 1
    return _HOUR_PERIODS[idx][1]


def time_of_day_tier(period: TimeOfDayPeriod) -> Tuple[float, int]:
    return TIME_OF_DAY_TIERS[TimeOfDayPeriod(period)]


def multiplier_factor(multiplier: PointsMultiplier) -> float:
    """Factor component of a multiplier effect."""
    if isinstance(multiplier, (LevelMultiplier, SpecialMultiplier)):
        return multiplier.factor
    if isinstance(multiplier, StreakMultiplier):
        return streak_tier(multiplier.days)[0]
    if isinstance(multiplier, TimeOfDayMultiplier):
        return time_of_day_tier(multiplier.period)[0]
    if isinstance(multiplier, ConsistencyMultiplier):
        return consistency_tier(multiplier.rate)[0]
    raise TypeError(f"Unknown multiplier type: {type(multiplier).__name__}")


def fold_multipliers(multipliers: Iterable[PointsMultiplier]) -> Tuple[float, int]:
    """Compose multipliers: factors multiply, flat bonuses add.

    Level multipliers carry no flat bonus; the level bonus is added separately
    by `calculate_points`.
    """
    total_factor = 1.0
    bonus = 0
    for multiplier in multipliers:
        total_factor *= multiplier_factor(multiplier)
        if not isinstance(multiplier, LevelMultiplier):
            bonus += multiplier.bonus
    return total_factor, bonus


def calculate_points(
    source_weight: int,
    base_value: int,
    multipliers: Iterable[PointsMultiplier],
    user_level: int,
) -> PointsCalculation:
    """Compute points and keep the intermediate values."""
    base = source_weight * base_value
    total_factor, bonus = fold_multipliers(multipliers)
    bonus += level_bonus(user_level)
    points = max(MIN_POINTS, math.floor(base * total_factor) + bonus)

    logger.debug(f"Points calculation: base={base}, multiplier={total_factor}, bonus={bonus}, final={points}")
    return PointsCalculation(base=base, factor=total_factor, bonus=bonus, points=points)


def compute_points(
    source_weight: int,
    base_value: int,
    multipliers: Iterable[PointsMultiplier],
    user_level: int,
) -> int:
    """Compute the points for one award (always >= 1).

    Args:
        source_weight: Weight of the source type (see `PointsSource.base_points`)
        base_value: Quantity being rewarded
        multipliers: Multiplier effects to fold
        user_level: Current user level; adds `level * 2` flat bonus

    Returns:
        floor(source_weight * base_value * factor) + bonus, minimum 1
    """
    return calculate_points(source_weight, base_value, multipliers, user_level).points


def compute_xp(
    source_weight: int,
    base_value: int,
    multipliers: Iterable[PointsMultiplier],
    user_level: int,
) -> int:
    """XP is always twice the points of the same award."""
    return compute_points(source_weight, base_value, multipliers, user_level) * XP_PER_POINT


def points_for_source(
    source: PointsSource,
    base_value: int,
    multipliers: Iterable[PointsMultiplier] = (),
    user_level: int = 0,
) -> int:
    return compute_points(PointsSource(source).base_points, base_value, multipliers, user_level)


def xp_for_source(
    source: PointsSource,
    base_value: int,
    multipliers: Iterable[PointsMultiplier] = (),
    user_level: int = 0,
) -> int:
    return compute_xp(PointsSource(source).base_points, base_value, multipliers, user_level)


def derive_multipliers(
    *,
    level: Optional[int] = None,
    streak_days: Iterable[int] = (),
    consistency_rate: Optional[float] = None,
    now: Optional[datetime] = None,
) -> List[PointsMultiplier]:
    """Assemble the multiplier set from raw signals.

    - level: a level multiplier whenever the level is known
    - streak_days: one streak multiplier per streak above the base tier
    - now: a time-of-day multiplier only when its factor exceeds 1.0
    - consistency_rate: a consistency multiplier only when its factor exceeds 1.0
    """
    multipliers: List[PointsMultiplier] = []

    if level is not None:
        multipliers.append(LevelMultiplier(factor=level_factor(level)))

    for days in streak_days:
        factor, bonus = streak_tier(days)
        if factor > 1.0:
            multipliers.append(StreakMultiplier(days=days, bonus=bonus))

    if now is not None:
        period = time_of_day_period(now.hour)
        factor, bonus = time_of_day_tier(period)
        if factor > 1.0:
            multipliers.append(TimeOfDayMultiplier(period=period, bonus=bonus))

    if consistency_rate is not None:
        factor, bonus = consistency_tier(consistency_rate)
        if factor > 1.0:
            multipliers.append(ConsistencyMultiplier(rate=consistency_rate, bonus=bonus))

    return multipliers


def consistency_rate(active_days: int, window_days: int = CONSISTENCY_WINDOW_DAYS) -> float:
    """Share of active days in the window."""
    if window_days <= 0:
        raise ValueError("window_days must be positive")
    return active_days / float(window_days)


def consistency_rate_from_timestamps(
    timestamps: Iterable[datetime],
    now: datetime,
    window_days: int = CONSISTENCY_WINDOW_DAYS,
) -> float:
    """Count distinct active calendar days among the last `window_days` dates up to `now`."""
    first_day = now.date() - timedelta(days=window_days - 1)
    days = {ts.date() for ts in timestamps if ts <= now and ts.date() >= first_day}
    return consistency_rate(len(days), window_days)
