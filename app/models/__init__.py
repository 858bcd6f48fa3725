"""
Models package for the application.
"""

from .user import User
from .device import Device
from .measurement import Measurement
from .idempotency_key import IdempotencyKey

__all__ = [
    "User",
    "Device",
    "Measurement",
    "IdempotencyKey",
]
