"""
Measurement and device enums.
"""

from enum import Enum


class MeasurementQuality(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class DeviceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class IdempotencyStatus(str, Enum):
    ACCEPTED = "accepted"
    COMPLETED = "completed"


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    DEVICE_ID_MISMATCH = "DEVICE_ID_MISMATCH"
    NOT_FOUND = "NOT_FOUND"
    RANGE_VIOLATION = "RANGE_VIOLATION"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    UNAUTHORIZED = "UNAUTHORIZED"
