"""
Device Service
Owned-device management and the sampling configuration the firmware polls.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import delete
from typing import Dict, List
import logging

from app.exceptions.errors import InvalidInputError, NotFoundError
from app.models.device import Device
from app.models.idempotency_key import IdempotencyKey
from app.models.measurement import Measurement
from app.schemas.device_schemas import DeviceConfigOut, DeviceConfigUpdate, DeviceUpdate
from app.utils.timezone_utils import resolve_offset_hours, to_utc_iso

logger = logging.getLogger(__name__)


def _device_dict(device: Device) -> Dict:
    return {
        "id": device.id,
        "device_id": device.device_id,
        "name": device.name,
        "status": device.status,
        "config": device.config_dict(),
        "last_seen": to_utc_iso(device.last_seen) if device.last_seen else None,
        "created_at": to_utc_iso(device.created_at) if device.created_at else None,
        "updated_at": to_utc_iso(device.updated_at) if device.updated_at else None,
    }


class DeviceService:
    """Service for device lookups and config updates"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_devices(self, user_id: str) -> List[Dict]:
        result = await self.db.execute(
            select(Device)
            .where(Device.user_id == user_id)
            .order_by(Device.created_at.desc())
        )
        return [_device_dict(d) for d in result.scalars().all()]

    async def get_owned_device(self, user_id: str, device_id: str) -> Device:
        result = await self.db.execute(
            select(Device).where(Device.device_id == device_id, Device.user_id == user_id)
        )
        device = result.scalar_one_or_none()
        if device is None:
            raise NotFoundError("Device not found")
        return device

    async def get_device(self, device_id: str) -> Device:
        result = await self.db.execute(select(Device).where(Device.device_id == device_id))
        device = result.scalar_one_or_none()
        if device is None:
            raise NotFoundError("Device not found")
        return device

    @staticmethod
    def get_config(device: Device) -> DeviceConfigOut:
        """Stored config plus the zone's current UTC offset, so firmware needs no tz database."""
        return DeviceConfigOut(
            **device.config_dict(),
            timezone_offset=resolve_offset_hours(device.timezone)
        )

    async def update_config(self, user_id: str, device_id: str, update: DeviceConfigUpdate) -> DeviceConfigOut:
        """Apply a partial config update to one of the user's devices."""
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise InvalidInputError("No valid configuration parameters provided")

        device = await self.get_owned_device(user_id, device_id)
        for field, value in changes.items():
            setattr(device, field, value)

        await self.db.commit()

        logger.info(f"Updated config of device {device_id}: {sorted(changes)}")
        return self.get_config(device)

    async def get_device_details(self, user_id: str, device_id: str) -> Dict:
        return _device_dict(await self.get_owned_device(user_id, device_id))

    async def update_device(self, user_id: str, device_id: str, update: DeviceUpdate) -> Dict:
        """Rename a device or change its status."""
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise InvalidInputError("No valid device fields provided")

        device = await self.get_owned_device(user_id, device_id)
        if "name" in changes:
            device.name = changes["name"]
        if "status" in changes:
            device.status = changes["status"].value

        await self.db.commit()

        logger.info(f"Updated device {device_id}: {sorted(changes)}")
        return _device_dict(device)

    async def delete_device(self, user_id: str, device_id: str) -> int:
        """
        Remove one of the user's devices.

        Its measurements and idempotency keys go with it, since measurements
        reference the device. Returns the number of measurements removed.
        """
        device = await self.get_owned_device(user_id, device_id)

        result = await self.db.execute(delete(Measurement).where(Measurement.device_id == device_id))
        await self.db.execute(
            delete(IdempotencyKey).where(
                IdempotencyKey.user_id == user_id,
                IdempotencyKey.device_id == device_id
            )
        )
        await self.db.delete(device)
        await self.db.commit()

        logger.info(f"Deleted device {device_id} and {result.rowcount} measurements")
        return result.rowcount
