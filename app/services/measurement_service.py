"""
Measurement Service
Ingestion of device readings and the per-user read paths over them.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from datetime import timedelta
from typing import Dict, List, Optional, Tuple
import hashlib
import logging
import math

from app.enums import IdempotencyStatus, MeasurementQuality
from app.exceptions.errors import DeviceIdMismatchError, InvalidInputError, NotFoundError
from app.models.device import Device
from app.models.idempotency_key import IdempotencyKey
from app.models.measurement import Measurement
from app.schemas.context_schemas import DeviceContext
from app.schemas.measurement_schemas import MeasurementCreate, MeasurementFilters
from app.services.aggregation_service import AggregationService
from app.utils.timezone_utils import day_window, format_in_timezone, to_utc_iso, utc_now

logger = logging.getLogger(__name__)

INGEST_ENDPOINT = "POST /measurements"
IDEMPOTENCY_TTL = timedelta(hours=24)


def _hash_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _public(measurement: Measurement) -> Dict:
    data = measurement.to_public_dict()
    data["timestamp"] = to_utc_iso(measurement.timestamp)
    return data


def _localized(measurement: Measurement, timezone: str) -> Dict:
    created_at = measurement.created_at
    return {
        "id": measurement.id,
        "device_id": measurement.device_id,
        "heart_rate": measurement.heart_rate,
        "spo2": measurement.spo2,
        "timestamp": format_in_timezone(measurement.timestamp, timezone),
        "quality": measurement.quality,
        "confidence": measurement.confidence,
        "created_at": format_in_timezone(created_at, timezone) if created_at else None,
    }


class MeasurementService:
    """Service for storing and reading heart rate / SpO2 measurements"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def ingest(
        self,
        device: DeviceContext,
        payload: MeasurementCreate,
        idempotency_key: Optional[str] = None
    ) -> Dict:
        """
        Validate and store one reading from an authenticated device.

        Returns the public projection (no user_id). A repeated idempotency key
        from the same device returns the reading stored the first time.
        """
        if not payload.device_id or payload.heart_rate is None or payload.spo2 is None:
            raise InvalidInputError("Device ID, heart rate, and SpO2 are required")

        if payload.device_id != device.device_id:
            logger.warning(f"Device {device.device_id} submitted a reading for {payload.device_id}")
            raise DeviceIdMismatchError()

        key_record = None
        if idempotency_key:
            key_record, replayed = await self._find_replay(device, idempotency_key)
            if replayed is not None:
                logger.info(f"Idempotent replay for device {device.device_id}, measurement {replayed.id}")
                return _public(replayed)

        # Range checks run in the model's validators, before anything is added
        measurement = Measurement(
            user_id=device.user_id,
            device_id=payload.device_id,
            heart_rate=payload.heart_rate,
            spo2=payload.spo2,
            timestamp=payload.timestamp or utc_now(),
            quality=(payload.quality or MeasurementQuality.GOOD).value,
            confidence=payload.confidence if payload.confidence is not None else 1.0,
        )
        self.db.add(measurement)
        await self.db.flush()

        if idempotency_key:
            expires_at = utc_now() + IDEMPOTENCY_TTL
            if key_record is None:
                key_record = IdempotencyKey(
                    user_id=device.user_id,
                    device_id=device.device_id,
                    endpoint=INGEST_ENDPOINT,
                    key_hash=_hash_key(idempotency_key),
                )
                self.db.add(key_record)
            key_record.status = IdempotencyStatus.COMPLETED.value
            key_record.resource_id = measurement.id
            key_record.expires_at = expires_at

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent retry committed the same key first
            if not idempotency_key:
                raise
            await self.db.rollback()
            _, replayed = await self._find_replay(device, idempotency_key)
            if replayed is None:
                raise
            logger.info(f"Idempotent replay after key conflict for device {device.device_id}, measurement {replayed.id}")
            return _public(replayed)

        logger.info(f"Stored measurement {measurement.id} from device {device.device_id}")
        return _public(measurement)

    async def _find_replay(self, device: DeviceContext, key: str) -> Tuple[Optional[IdempotencyKey], Optional[Measurement]]:
        """Existing key record (if any) and the measurement it still points at."""
        result = await self.db.execute(
            select(IdempotencyKey).where(
                IdempotencyKey.user_id == device.user_id,
                IdempotencyKey.device_id == device.device_id,
                IdempotencyKey.endpoint == INGEST_ENDPOINT,
                IdempotencyKey.key_hash == _hash_key(key)
            )
        )
        record = result.scalars().first()
        if record is None or not record.resource_id:
            return record, None

        if record.expires_at is not None and record.expires_at < utc_now():
            return record, None

        measurement = await self.db.get(Measurement, record.resource_id)
        return record, measurement

    async def list_measurements(self, user_id: str, filters: MeasurementFilters) -> Dict:
        """Newest-first page of a user's readings, timestamps in the requested timezone."""
        timezone = filters.timezone or await AggregationService(self.db).user_timezone_hint(user_id)

        conditions = [Measurement.user_id == user_id]
        if filters.start_date:
            conditions.append(Measurement.timestamp >= filters.start_date)
        if filters.end_date:
            conditions.append(Measurement.timestamp <= filters.end_date)
        if filters.device_id:
            conditions.append(Measurement.device_id == filters.device_id)

        result = await self.db.execute(
            select(Measurement)
            .where(*conditions)
            .order_by(Measurement.timestamp.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        measurements = result.scalars().all()

        total = (await self.db.execute(
            select(func.count(Measurement.id)).where(*conditions)
        )).scalar() or 0

        return {
            "measurements": [_localized(m, timezone) for m in measurements],
            "timezone": timezone,
            "pagination": {
                "total": total,
                "page": filters.page,
                "limit": filters.limit,
                "pages": math.ceil(total / filters.limit),
            },
        }

    async def daily_measurements(self, user_id: str, date: str, timezone: Optional[str] = None) -> Dict:
        """All readings inside one local calendar day, oldest first."""
        if not date:
            raise InvalidInputError("Date parameter is required")

        timezone = timezone or await AggregationService(self.db).user_timezone_hint(user_id)
        window = day_window(date, timezone)

        result = await self.db.execute(
            select(Measurement)
            .where(
                Measurement.user_id == user_id,
                Measurement.timestamp >= window.start_utc,
                Measurement.timestamp <= window.end_utc
            )
            .order_by(Measurement.timestamp.asc())
        )
        measurements = result.scalars().all()

        return {
            "date": date,
            "timezone": timezone,
            "measurements": [_localized(m, timezone) for m in measurements],
            "count": len(measurements),
        }

    async def device_measurements(self, user_id: str, device_id: str, limit: int = 100) -> List[Dict]:
        """Most recent readings of one of the user's devices."""
        owned = await self.db.execute(
            select(Device.id).where(Device.device_id == device_id, Device.user_id == user_id)
        )
        if owned.scalar_one_or_none() is None:
            raise NotFoundError("Device not found or access denied")

        result = await self.db.execute(
            select(Measurement)
            .where(Measurement.device_id == device_id)
            .order_by(Measurement.timestamp.desc())
            .limit(limit)
        )
        return [{**_public(m), "device_id": m.device_id} for m in result.scalars().all()]

    async def delete_for_user(self, user_id: str) -> int:
        """Remove every reading and idempotency record of a deleted account."""
        result = await self.db.execute(delete(Measurement).where(Measurement.user_id == user_id))
        await self.db.execute(delete(IdempotencyKey).where(IdempotencyKey.user_id == user_id))
        await self.db.commit()

        logger.info(f"Deleted {result.rowcount} measurements for user {user_id}")
        return result.rowcount
