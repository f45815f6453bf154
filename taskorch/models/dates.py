"""Datetime normalization shared by the models.

Timestamps are stored and compared as naive UTC, the convention of
`datetime.utcnow` and of the SQLAlchemy `DateTime` columns.
"""

from datetime import datetime, timezone
from typing import Optional


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a timezone-aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
