"""
API v1 routes package.
"""

from .measurement_routes import router as measurement_router
from .device_routes import router as device_router
from .webhook_routes import router as webhook_router

__all__ = [
    "measurement_router",
    "device_router",
    "webhook_router"
]
