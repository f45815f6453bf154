"""Repository for the append-only points ledger."""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from taskorch.database.models import PointsHistoryDB
from taskorch.engine.scoring import calculate_points, consistency_rate_from_timestamps
from taskorch.errors import DataOperationError
from taskorch.models.constants import CONSISTENCY_WINDOW_DAYS
from taskorch.models.dates import to_naive_utc
from taskorch.models.points import PointsBreakdown, PointsHistory, PointsMultiplier, PointsSource

logger = logging.getLogger(__name__)


class PointsRepository:
    """Repository for PointsHistory database operations.

    Entries are only ever inserted; there is no update or delete.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(self, entry: PointsHistory) -> PointsHistory:
        """Append a ready-made ledger entry."""
        try:
            entry_db = PointsHistoryDB.from_pydantic(entry)
            self.db.add(entry_db)
            self.db.commit()
            self.db.refresh(entry_db)
            logger.debug(f"Recorded {entry.total_points} points for user {entry.user_id} ({entry.source.value})")
            return entry_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record points entry {entry.id}: {type(e).__name__}: {str(e)}")
            raise DataOperationError(f"Failed to record points entry {entry.id}: {str(e)}") from e

    def award(
        self,
        user_id: str,
        source: PointsSource,
        base_value: int,
        *,
        multipliers: Iterable[PointsMultiplier] = (),
        user_level: int = 0,
        source_id: Optional[str] = None,
        reason: Optional[str] = None,
        earned_at: Optional[datetime] = None,
    ) -> PointsHistory:
        """Score an award and append it to the ledger.

        The entry stores the weighted base as `amount`, the folded factor as
        `multiplier` and the remaining flat points as `bonus_points`, so that
        `entry.total_points` equals the scored points.
        """
        source = PointsSource(source)
        calc = calculate_points(source.base_points, base_value, multipliers, user_level)
        entry = PointsHistory(
            user_id=user_id,
            amount=calc.base,
            source=source,
            source_id=source_id,
            reason=reason or source.value.replace("_", " "),
            multiplier=calc.factor,
            bonus_points=calc.points - math.floor(calc.base * calc.factor),
            earned_at=earned_at or datetime.utcnow(),
        )
        return self.record(entry)

    def history(self, user_id: str, limit: Optional[int] = None) -> List[PointsHistory]:
        """Get ledger entries for a user, newest first."""
        q = self.db.query(PointsHistoryDB).filter(
            PointsHistoryDB.user_id == user_id
        ).order_by(desc(PointsHistoryDB.earned_at))
        if limit is not None:
            q = q.limit(limit)
        return [row.to_pydantic() for row in q.all()]

    def _entries_between(self, user_id: str, start: Optional[datetime], end: Optional[datetime]) -> List[PointsHistory]:
        q = self.db.query(PointsHistoryDB).filter(PointsHistoryDB.user_id == user_id)
        start, end = to_naive_utc(start), to_naive_utc(end)
        if start is not None:
            q = q.filter(PointsHistoryDB.earned_at >= start)
        if end is not None:
            q = q.filter(PointsHistoryDB.earned_at < end)
        return [row.to_pydantic() for row in q.all()]

    def total(self, user_id: str) -> int:
        """Sum of `total_points` over the user's whole ledger."""
        return sum(entry.total_points for entry in self._entries_between(user_id, None, None))

    def breakdown(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[PointsBreakdown]:
        """Points per source in [start, end), largest first. Percentages are 0-100."""
        per_source: Dict[PointsSource, int] = defaultdict(int)
        for entry in self._entries_between(user_id, start, end):
            per_source[entry.source] += entry.total_points

        grand_total = sum(per_source.values())
        rows = [
            PointsBreakdown(
                source=source,
                points=points,
                percentage=(points / grand_total * 100.0) if grand_total > 0 else 0.0,
            )
            for source, points in per_source.items()
        ]
        return sorted(rows, key=lambda r: (-r.points, r.source.value))

    def consistency_rate(
        self,
        user_id: str,
        now: datetime,
        window_days: int = CONSISTENCY_WINDOW_DAYS,
    ) -> float:
        """Share of days in the trailing window with at least one award."""
        now = to_naive_utc(now)
        entries = self._entries_between(user_id, now - timedelta(days=window_days), None)
        return consistency_rate_from_timestamps((e.earned_at for e in entries), now, window_days)
