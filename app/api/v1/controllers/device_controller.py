"""
Device Controller
Handles request/response logic for device listing and configuration
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict

from app.exceptions.errors import ApplicationException, UpstreamFailureError
from app.schemas.context_schemas import DeviceContext, UserContext
from app.schemas.device_schemas import DeviceConfigUpdate, DeviceUpdate
from app.services.device_service import DeviceService
from app.core.logger import get_logger

logger = get_logger("device_controller")


class DeviceController:
    """Controller for device operations."""

    @staticmethod
    async def list_devices(db: AsyncSession, user: UserContext) -> Dict:
        try:
            devices = await DeviceService(db).list_devices(user.user_id)
            return {"success": True, "data": {"devices": devices, "count": len(devices)}}

        except SQLAlchemyError as e:
            logger.error(f"Error listing devices for user {user.user_id}: {e}")
            raise UpstreamFailureError("Failed to fetch devices")

    @staticmethod
    async def get_config(db: AsyncSession, user: UserContext, device_id: str) -> Dict:
        """Config of one of the user's devices."""
        try:
            service = DeviceService(db)
            device = await service.get_owned_device(user.user_id, device_id)
            return {"success": True, "data": {"config": service.get_config(device).model_dump()}}

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error fetching config of device {device_id}: {e}")
            raise UpstreamFailureError("Failed to fetch device config")

    @staticmethod
    async def get_own_config(db: AsyncSession, device: DeviceContext) -> Dict:
        """Config requested by the device itself."""
        try:
            service = DeviceService(db)
            record = await service.get_device(device.device_id)
            return {"success": True, "data": {"config": service.get_config(record).model_dump()}}

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error fetching config for device {device.device_id}: {e}")
            raise UpstreamFailureError("Failed to fetch device config")

    @staticmethod
    async def update_config(
        db: AsyncSession,
        user: UserContext,
        device_id: str,
        payload: DeviceConfigUpdate
    ) -> Dict:
        try:
            config = await DeviceService(db).update_config(user.user_id, device_id, payload)
            return {"success": True, "data": {"config": config.model_dump()}}

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating config of device {device_id}: {e}")
            raise UpstreamFailureError("Failed to update device config")

    @staticmethod
    async def get_device(db: AsyncSession, user: UserContext, device_id: str) -> Dict:
        try:
            device = await DeviceService(db).get_device_details(user.user_id, device_id)
            return {"success": True, "data": {"device": device}}

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error fetching device {device_id}: {e}")
            raise UpstreamFailureError("Failed to fetch device")

    @staticmethod
    async def update_device(
        db: AsyncSession,
        user: UserContext,
        device_id: str,
        payload: DeviceUpdate
    ) -> Dict:
        """Rename a device or change its status."""
        try:
            device = await DeviceService(db).update_device(user.user_id, device_id, payload)
            return {"success": True, "data": {"device": device}}

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating device {device_id}: {e}")
            raise UpstreamFailureError("Failed to update device")

    @staticmethod
    async def delete_device(db: AsyncSession, user: UserContext, device_id: str) -> None:
        """Delete a device together with its measurements."""
        try:
            await DeviceService(db).delete_device(user.user_id, device_id)

        except ApplicationException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error deleting device {device_id}: {e}")
            raise UpstreamFailureError("Failed to delete device")
