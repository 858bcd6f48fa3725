"""
API key authentication for IoT devices.
"""
import hashlib
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.database.connection import get_db
from app.enums import DeviceStatus
from app.exceptions.errors import UnauthorizedError
from app.models.device import Device
from app.schemas.context_schemas import DeviceContext
from app.utils.timezone_utils import utc_now
from app.core.logger import get_logger

logger = get_logger("device_auth")

API_KEY_HEADER = "X-API-Key"


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


async def authenticate_device(db: AsyncSession, api_key: Optional[str]) -> DeviceContext:
    """Resolve an API key to its active device and stamp last_seen"""
    if not api_key:
        raise UnauthorizedError("API key required")

    result = await db.execute(
        select(Device).where(Device.api_key_hash == hash_api_key(api_key))
    )
    device = result.scalar_one_or_none()
    if device is None:
        logger.warning("Rejected unknown device API key")
        raise UnauthorizedError("Invalid API key")

    if device.status != DeviceStatus.ACTIVE.value:
        raise UnauthorizedError(f"Device {device.device_id} is {device.status}")

    device.last_seen = utc_now()
    await db.commit()

    return DeviceContext(device_id=device.device_id, user_id=device.user_id, name=device.name)


async def get_device_context(
    x_api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
    db: AsyncSession = Depends(get_db)
) -> DeviceContext:
    """FastAPI dependency for device-authenticated routes"""
    return await authenticate_device(db, x_api_key)
