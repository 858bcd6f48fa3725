"""
Device API Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional

from app.enums import DeviceStatus

TIME_OF_DAY_REGEX = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"


class DeviceConfigUpdate(BaseModel):
    """Partial config update; frequency is 15 min to 4 hours"""
    measurement_frequency: Optional[int] = Field(None, ge=900, le=14400, description="Seconds between readings")
    active_start_time: Optional[str] = Field(None, pattern=TIME_OF_DAY_REGEX, description="HH:MM, 24-hour local time")
    active_end_time: Optional[str] = Field(None, pattern=TIME_OF_DAY_REGEX, description="HH:MM, 24-hour local time")
    timezone: Optional[str] = Field(None, min_length=1, description="IANA timezone, e.g. America/Phoenix")

    class Config:
        json_schema_extra = {
            "example": {
                "measurement_frequency": 1800,
                "active_start_time": "06:00",
                "active_end_time": "22:00",
                "timezone": "America/Phoenix"
            }
        }


class DeviceUpdate(BaseModel):
    """Rename a device or change its status; an inactive device is refused by API key auth"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[DeviceStatus] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Bedside sensor",
                "status": "inactive"
            }
        }


class DeviceConfigOut(BaseModel):
    measurement_frequency: int
    active_start_time: str
    active_end_time: str
    timezone: str
    timezone_offset: float  # hours from UTC right now, DST included
