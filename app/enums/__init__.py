"""
Shared enums for the application.
"""

from .measurement_enums import (
    MeasurementQuality,
    DeviceStatus,
    ErrorCode,
    IdempotencyStatus
)

__all__ = [
    "MeasurementQuality",
    "DeviceStatus",
    "ErrorCode",
    "IdempotencyStatus"
]
