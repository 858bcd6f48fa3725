"""
Device Routes
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.middlewares.clerk_auth import get_user_context
from app.middlewares.device_auth import get_device_context
from app.schemas.context_schemas import DeviceContext, UserContext
from app.schemas.device_schemas import DeviceConfigUpdate, DeviceUpdate
from app.schemas.measurement_schemas import ApiResponse
from app.api.v1.controllers.device_controller import DeviceController

router = APIRouter(tags=["Devices"])


@router.get("/devices", response_model=ApiResponse)
async def list_devices(
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """Devices registered to the authenticated user."""
    return await DeviceController.list_devices(db, user)


@router.get("/devices/{device_id}", response_model=ApiResponse)
async def get_device(
    device_id: str,
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """Details of one of your devices."""
    return await DeviceController.get_device(db, user, device_id)


@router.put("/devices/{device_id}", response_model=ApiResponse)
async def update_device(
    device_id: str,
    payload: DeviceUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """
    Update device details

    - **name**: display name
    - **status**: active, inactive or error (only active devices can submit readings)
    """
    return await DeviceController.update_device(db, user, device_id, payload)


@router.delete("/devices/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_device(
    device_id: str,
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """Delete a device and all of its measurements."""
    await DeviceController.delete_device(db, user, device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/devices/{device_id}/config", response_model=ApiResponse)
async def get_device_config(
    device_id: str,
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """Sampling config plus the timezone's current UTC offset."""
    return await DeviceController.get_config(db, user, device_id)


@router.put("/devices/{device_id}/config", response_model=ApiResponse)
async def update_device_config(
    device_id: str,
    payload: DeviceConfigUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """
    Update sampling config

    - **measurement_frequency**: 900-14400 seconds
    - **active_start_time** / **active_end_time**: HH:MM
    - **timezone**: IANA name
    """
    return await DeviceController.update_config(db, user, device_id, payload)


@router.get("/device/config", response_model=ApiResponse)
async def get_own_device_config(
    db: AsyncSession = Depends(get_db),
    device: DeviceContext = Depends(get_device_context)
):
    """Config poll used by the firmware (X-API-Key auth)."""
    return await DeviceController.get_own_config(db, device)
