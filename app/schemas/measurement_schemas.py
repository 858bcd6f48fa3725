"""
Measurement API Schemas
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from app.enums import MeasurementQuality
from app.utils.timezone_utils import to_naive_utc


class MeasurementCreate(BaseModel):
    """Reading submitted by a device. deviceId, heartRate and spO2 are required."""
    device_id: Optional[str] = Field(None, alias="deviceId", description="Device identifier, must match the API key's device")
    heart_rate: Optional[int] = Field(None, alias="heartRate", description="Heart rate in beats per minute (40-200)")
    spo2: Optional[int] = Field(None, alias="spO2", description="Blood oxygen saturation percent (70-100)")
    timestamp: Optional[datetime] = Field(None, description="When measured; server time if omitted")
    quality: Optional[MeasurementQuality] = Field(None, description="good, fair or poor (default good)")
    confidence: Optional[float] = Field(None, description="Sensor confidence 0-1 (default 1.0)")

    @field_validator("timestamp")
    @classmethod
    def convert_to_naive_utc(cls, v):
        if v is not None:
            return to_naive_utc(v)
        return v

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "deviceId": "ht-esp32-0001",
                "heartRate": 72,
                "spO2": 98,
                "timestamp": "2025-11-20T14:30:00.000Z",
                "quality": "good",
                "confidence": 0.95
            }
        }


class MeasurementOut(BaseModel):
    """Public projection of a stored measurement"""
    id: str
    heart_rate: int
    spo2: int
    timestamp: str
    quality: MeasurementQuality
    confidence: float


class MeasurementFilters(BaseModel):
    """Filters for listing a user's measurements"""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    device_id: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(100, ge=1, le=1000)
    timezone: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def convert_to_naive_utc(cls, v):
        if v is not None:
            return to_naive_utc(v)
        return v


class DateRange(BaseModel):
    start: Optional[str]
    end: Optional[str]


class WeeklySummary(BaseModel):
    """Trailing 7-day statistics across all of a user's devices. Averages are unrounded."""
    average_heart_rate: float
    min_heart_rate: int
    max_heart_rate: int
    average_spo2: float
    min_spo2: int
    max_spo2: int
    total_measurements: int
    first_measurement: Optional[datetime] = None
    last_measurement: Optional[datetime] = None
    date_range: DateRange


class DailyAggregate(BaseModel):
    """One UTC calendar day of measurements"""
    date: str  # YYYY-MM-DD, UTC
    average_heart_rate: float
    min_heart_rate: int
    max_heart_rate: int
    average_spo2: float
    count: int


class RecordedValue(BaseModel):
    value: int
    timestamp: datetime


class VitalStats(BaseModel):
    overall_average: float
    overall_min: int
    overall_max: int
    lowest_recorded: Optional[RecordedValue] = None
    highest_recorded: Optional[RecordedValue] = None


class AllTimeStats(BaseModel):
    """Lifetime statistics for one user"""
    total_measurements: int
    first_measurement: Optional[datetime] = None
    last_measurement: Optional[datetime] = None
    heart_rate: VitalStats
    spo2: VitalStats
    days_tracked: int


class ApiResponse(BaseModel):
    """Standard response envelope"""
    success: bool
    data: dict

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "data": {
                    "measurement": {
                        "id": "cl9ebqhxk00008eqf3q5k8h4p",
                        "heart_rate": 72,
                        "spo2": 98,
                        "timestamp": "2025-11-20T14:30:00.000Z",
                        "quality": "good",
                        "confidence": 0.95
                    }
                }
            }
        }
