"""
Measurement Routes
Device ingestion plus the dashboard's read endpoints
"""
from fastapi import APIRouter, Depends, Header, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional

from app.database.connection import get_db
from app.middlewares.clerk_auth import get_user_context
from app.middlewares.device_auth import get_device_context
from app.schemas.context_schemas import DeviceContext, UserContext
from app.schemas.measurement_schemas import ApiResponse, MeasurementCreate, MeasurementFilters
from app.api.v1.controllers.measurement_controller import MeasurementController

router = APIRouter(prefix="/measurements", tags=["Measurements"])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def submit_measurement(
    payload: MeasurementCreate,
    db: AsyncSession = Depends(get_db),
    device: DeviceContext = Depends(get_device_context),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key")
):
    """
    Submit a reading from an IoT device (X-API-Key auth).

    - **deviceId**: must match the device the API key belongs to
    - **heartRate** / **spO2**: 40-200 bpm / 70-100 %
    - **timestamp**: optional, defaults to server time
    """
    return await MeasurementController.submit_measurement(db, device, payload, idempotency_key)


@router.get("", response_model=ApiResponse)
async def get_user_measurements(
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    device_id: Optional[str] = Query(None, alias="deviceId"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    timezone: Optional[str] = Query(None, description="IANA timezone for returned timestamps")
):
    """Paginated measurements, newest first."""
    filters = MeasurementFilters(
        start_date=start_date,
        end_date=end_date,
        device_id=device_id,
        page=page,
        limit=limit,
        timezone=timezone
    )
    return await MeasurementController.get_user_measurements(db, user, filters)


@router.get("/weekly/summary", response_model=ApiResponse)
async def get_weekly_summary(
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context)
):
    """Average, min and max heart rate / SpO2 over the last 7 days."""
    return await MeasurementController.get_weekly_summary(db, user)


@router.get("/daily-aggregates", response_model=ApiResponse)
async def get_daily_aggregates(
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context),
    days: int = Query(7, ge=1, le=365, description="Number of trailing days")
):
    """Per-day aggregates (UTC days) for the last N days."""
    return await MeasurementController.get_daily_aggregates(db, user, days)


@router.get("/all-time", response_model=ApiResponse)
async def get_all_time_stats(
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context),
    timezone: Optional[str] = Query(None, description="IANA timezone for returned timestamps")
):
    """Lifetime statistics including the lowest and highest recorded readings."""
    return await MeasurementController.get_all_time_stats(db, user, timezone)


@router.get("/daily/{date}", response_model=ApiResponse)
async def get_daily_measurements(
    date: str = Path(..., description="Local calendar date, YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context),
    timezone: Optional[str] = Query(None, description="IANA timezone; defaults to the first device's")
):
    """Every reading inside one local day of the given timezone."""
    return await MeasurementController.get_daily_measurements(db, user, date, timezone)


@router.get("/device/{device_id}", response_model=ApiResponse)
async def get_device_measurements(
    device_id: str,
    db: AsyncSession = Depends(get_db),
    user: UserContext = Depends(get_user_context),
    limit: int = Query(100, ge=1, le=1000)
):
    """Most recent readings of one of your devices."""
    return await MeasurementController.get_device_measurements(db, user, device_id, limit)
