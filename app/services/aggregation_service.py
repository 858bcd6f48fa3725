"""
Measurement Aggregation Service
Weekly summary, N-day daily aggregates and all-time statistics for a user.

Every aggregate groups on UTC calendar days regardless of the caller's
timezone; only timestamps in the results are localized, by the controllers.
Local-day queries go through ``day_window`` instead.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, distinct
from datetime import timedelta
from typing import List, Optional
import logging

from app.core.config import settings
from app.models.device import Device
from app.models.measurement import Measurement
from app.schemas.measurement_schemas import (
    AllTimeStats, DailyAggregate, DateRange, RecordedValue, VitalStats, WeeklySummary
)
from app.utils.timezone_utils import start_of_utc_day, utc_now

logger = logging.getLogger(__name__)


def _round1(value) -> float:
    return round(float(value), 1)


class AggregationService:
    """Read-only statistics over a user's measurements"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _window_start(self, days: int):
        """UTC midnight ``days`` days ago"""
        return start_of_utc_day(utc_now() - timedelta(days=days))

    async def weekly_summary(self, user_id: str) -> Optional[WeeklySummary]:
        """
        Stats over the trailing 7 days. Returns None when there are no readings;
        the caller decides what an empty week looks like.
        """
        since = self._window_start(7)

        stmt = select(
            func.count(Measurement.id).label("total"),
            func.avg(Measurement.heart_rate).label("avg_hr"),
            func.min(Measurement.heart_rate).label("min_hr"),
            func.max(Measurement.heart_rate).label("max_hr"),
            func.avg(Measurement.spo2).label("avg_spo2"),
            func.min(Measurement.spo2).label("min_spo2"),
            func.max(Measurement.spo2).label("max_spo2"),
            func.min(Measurement.timestamp).label("first"),
            func.max(Measurement.timestamp).label("last"),
        ).where(
            Measurement.user_id == user_id,
            Measurement.timestamp >= since
        )
        row = (await self.db.execute(stmt)).one()

        if not row.total:
            return None

        return WeeklySummary(
            average_heart_rate=float(row.avg_hr),
            min_heart_rate=row.min_hr,
            max_heart_rate=row.max_hr,
            average_spo2=float(row.avg_spo2),
            min_spo2=row.min_spo2,
            max_spo2=row.max_spo2,
            total_measurements=row.total,
            first_measurement=row.first,
            last_measurement=row.last,
            date_range=DateRange(
                start=row.first.date().isoformat(),
                end=row.last.date().isoformat()
            )
        )

    async def daily_aggregates(self, user_id: str, days: int = 7) -> List[DailyAggregate]:
        """One entry per UTC day with data over the trailing ``days`` days, oldest first."""
        since = self._window_start(days)
        day = func.date(Measurement.timestamp).label("day")

        stmt = (
            select(
                day,
                func.avg(Measurement.heart_rate).label("avg_hr"),
                func.min(Measurement.heart_rate).label("min_hr"),
                func.max(Measurement.heart_rate).label("max_hr"),
                func.avg(Measurement.spo2).label("avg_spo2"),
                func.count(Measurement.id).label("count"),
            )
            .where(Measurement.user_id == user_id)
            .where(Measurement.timestamp >= since)
            .group_by(day)
            .order_by(day)
        )
        rows = (await self.db.execute(stmt)).all()

        # date() comes back as a date on PostgreSQL and a string on SQLite
        return [
            DailyAggregate(
                date=str(row.day),
                average_heart_rate=_round1(row.avg_hr),
                min_heart_rate=row.min_hr,
                max_heart_rate=row.max_hr,
                average_spo2=_round1(row.avg_spo2),
                count=row.count
            )
            for row in rows
        ]

    async def all_time_stats(self, user_id: str) -> AllTimeStats:
        """Lifetime stats, including the record-setting readings by value."""
        stmt = select(
            func.count(Measurement.id).label("total"),
            func.avg(Measurement.heart_rate).label("avg_hr"),
            func.min(Measurement.heart_rate).label("min_hr"),
            func.max(Measurement.heart_rate).label("max_hr"),
            func.avg(Measurement.spo2).label("avg_spo2"),
            func.min(Measurement.spo2).label("min_spo2"),
            func.max(Measurement.spo2).label("max_spo2"),
            func.min(Measurement.timestamp).label("first"),
            func.max(Measurement.timestamp).label("last"),
        ).where(Measurement.user_id == user_id)
        row = (await self.db.execute(stmt)).one()

        if not row.total:
            empty = VitalStats(overall_average=0, overall_min=0, overall_max=0)
            return AllTimeStats(
                total_measurements=0,
                heart_rate=empty,
                spo2=empty,
                days_tracked=0
            )

        days_tracked = await self.db.execute(
            select(func.count(distinct(func.date(Measurement.timestamp))))
            .where(Measurement.user_id == user_id)
        )

        return AllTimeStats(
            total_measurements=row.total,
            first_measurement=row.first,
            last_measurement=row.last,
            heart_rate=VitalStats(
                overall_average=_round1(row.avg_hr),
                overall_min=row.min_hr,
                overall_max=row.max_hr,
                lowest_recorded=await self._extreme(user_id, Measurement.heart_rate, lowest=True),
                highest_recorded=await self._extreme(user_id, Measurement.heart_rate, lowest=False),
            ),
            spo2=VitalStats(
                overall_average=_round1(row.avg_spo2),
                overall_min=row.min_spo2,
                overall_max=row.max_spo2,
                lowest_recorded=await self._extreme(user_id, Measurement.spo2, lowest=True),
                highest_recorded=await self._extreme(user_id, Measurement.spo2, lowest=False),
            ),
            days_tracked=days_tracked.scalar() or 0
        )

    async def _extreme(self, user_id: str, column, lowest: bool) -> Optional[RecordedValue]:
        """The single reading with the lowest/highest value; earliest wins a tie."""
        ordering = column.asc() if lowest else column.desc()
        result = await self.db.execute(
            select(column.label("value"), Measurement.timestamp)
            .where(Measurement.user_id == user_id)
            .order_by(ordering, Measurement.timestamp.asc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        return RecordedValue(value=row.value, timestamp=row.timestamp)

    async def user_timezone_hint(self, user_id: str) -> str:
        """Timezone of the user's oldest device, or the app default."""
        result = await self.db.execute(
            select(Device.timezone)
            .where(Device.user_id == user_id)
            .order_by(Device.created_at.asc())
            .limit(1)
        )
        timezone = result.scalar_one_or_none()
        return timezone or settings.DEFAULT_TIMEZONE
