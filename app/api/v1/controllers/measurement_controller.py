"""
Measurement Controller
Handles request/response logic for measurement endpoints
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import timedelta
from typing import Dict, Optional

from app.exceptions.errors import ApplicationException, UpstreamFailureError
from app.schemas.context_schemas import DeviceContext, UserContext
from app.schemas.measurement_schemas import (
    AllTimeStats, MeasurementCreate, MeasurementFilters, MeasurementOut, RecordedValue
)
from app.services.aggregation_service import AggregationService
from app.services.measurement_service import MeasurementService
from app.utils.timezone_utils import format_in_timezone, utc_now
from app.core.logger import get_logger

logger = get_logger("measurement_controller")


def _envelope(data: Dict) -> Dict:
    return {"success": True, "data": data}


def _recorded(value: Optional[RecordedValue], timezone: str) -> Optional[Dict]:
    if value is None:
        return None
    return {"value": value.value, "timestamp": format_in_timezone(value.timestamp, timezone)}


def _empty_weekly_summary() -> Dict:
    today = utc_now().date()
    return {
        "average_heart_rate": 0,
        "min_heart_rate": 0,
        "max_heart_rate": 0,
        "average_spo2": 0,
        "min_spo2": 0,
        "max_spo2": 0,
        "total_measurements": 0,
        "date_range": {
            "start": (today - timedelta(days=7)).isoformat(),
            "end": today.isoformat(),
        },
    }


class MeasurementController:
    """Controller for measurement ingestion and reporting."""

    @staticmethod
    async def submit_measurement(
        db: AsyncSession,
        device: DeviceContext,
        payload: MeasurementCreate,
        idempotency_key: Optional[str] = None
    ) -> Dict:
        """Store a reading sent by an authenticated device."""
        try:
            service = MeasurementService(db)
            measurement = await service.ingest(device, payload, idempotency_key)
            return _envelope({"measurement": MeasurementOut(**measurement).model_dump(mode="json")})

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error storing measurement for device {device.device_id}: {e}")
            raise UpstreamFailureError("Failed to store measurement")

    @staticmethod
    async def get_user_measurements(
        db: AsyncSession,
        user: UserContext,
        filters: MeasurementFilters
    ) -> Dict:
        """Paginated readings with timestamps in the caller's timezone."""
        try:
            service = MeasurementService(db)
            return _envelope(await service.list_measurements(user.user_id, filters))

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error listing measurements for user {user.user_id}: {e}")
            raise UpstreamFailureError("Failed to fetch measurements")

    @staticmethod
    async def get_daily_measurements(
        db: AsyncSession,
        user: UserContext,
        date: str,
        timezone: Optional[str] = None
    ) -> Dict:
        """Readings for one local calendar day."""
        try:
            service = MeasurementService(db)
            return _envelope(await service.daily_measurements(user.user_id, date, timezone))

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error fetching daily measurements for user {user.user_id}: {e}")
            raise UpstreamFailureError("Failed to fetch daily measurements")

    @staticmethod
    async def get_weekly_summary(db: AsyncSession, user: UserContext) -> Dict:
        """Trailing 7-day summary, zero-filled when there is no data."""
        try:
            summary = await AggregationService(db).weekly_summary(user.user_id)

            if summary is None:
                return _envelope({"summary": _empty_weekly_summary()})

            return _envelope({
                "summary": {
                    "average_heart_rate": round(summary.average_heart_rate, 1),
                    "min_heart_rate": summary.min_heart_rate,
                    "max_heart_rate": summary.max_heart_rate,
                    "average_spo2": round(summary.average_spo2, 1),
                    "min_spo2": summary.min_spo2,
                    "max_spo2": summary.max_spo2,
                    "total_measurements": summary.total_measurements,
                    "date_range": summary.date_range.model_dump(),
                }
            })

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error computing weekly summary for user {user.user_id}: {e}")
            raise UpstreamFailureError("Failed to compute weekly summary")

    @staticmethod
    async def get_daily_aggregates(db: AsyncSession, user: UserContext, days: int = 7) -> Dict:
        """Per-UTC-day aggregates over the last N days."""
        try:
            aggregates = await AggregationService(db).daily_aggregates(user.user_id, days)
            return _envelope({
                "aggregates": [a.model_dump() for a in aggregates],
                "days": days,
            })

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error computing daily aggregates for user {user.user_id}: {e}")
            raise UpstreamFailureError("Failed to compute daily aggregates")

    @staticmethod
    async def get_all_time_stats(
        db: AsyncSession,
        user: UserContext,
        timezone: Optional[str] = None
    ) -> Dict:
        """Lifetime stats with record readings, timestamps localized."""
        try:
            service = AggregationService(db)
            stats: AllTimeStats = await service.all_time_stats(user.user_id)
            timezone = timezone or await service.user_timezone_hint(user.user_id)

            def vital(block):
                return {
                    "overall_average": block.overall_average,
                    "overall_min": block.overall_min,
                    "overall_max": block.overall_max,
                    "lowest_recorded": _recorded(block.lowest_recorded, timezone),
                    "highest_recorded": _recorded(block.highest_recorded, timezone),
                }

            return _envelope({
                "timezone": timezone,
                "stats": {
                    "total_measurements": stats.total_measurements,
                    "first_measurement": format_in_timezone(stats.first_measurement, timezone) if stats.first_measurement else None,
                    "last_measurement": format_in_timezone(stats.last_measurement, timezone) if stats.last_measurement else None,
                    "heart_rate": vital(stats.heart_rate),
                    "spo2": vital(stats.spo2),
                    "days_tracked": stats.days_tracked,
                },
            })

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error computing all-time stats for user {user.user_id}: {e}")
            raise UpstreamFailureError("Failed to compute all-time stats")

    @staticmethod
    async def get_device_measurements(
        db: AsyncSession,
        user: UserContext,
        device_id: str,
        limit: int = 100
    ) -> Dict:
        """Recent readings of one owned device."""
        try:
            measurements = await MeasurementService(db).device_measurements(user.user_id, device_id, limit)
            return _envelope({
                "device_id": device_id,
                "measurements": measurements,
                "count": len(measurements),
            })

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error fetching measurements of device {device_id}: {e}")
            raise UpstreamFailureError("Failed to fetch device measurements")
