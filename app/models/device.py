import re

from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Index
from sqlalchemy.orm import relationship, validates
from app.core.config import settings
from app.database.base import Base
from app.enums import DeviceStatus
from app.exceptions.errors import InvalidInputError, RangeViolationError
from app.utils.timezone_utils import utc_now
import cuid

# Storage-level bounds; the config-update request schema is stricter (900s minimum)
MIN_MEASUREMENT_FREQUENCY = 30
MAX_MEASUREMENT_FREQUENCY = 14400
DEFAULT_MEASUREMENT_FREQUENCY = 1800

TIME_OF_DAY_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")


class Device(Base):
    """
    A heart-rate / SpO2 sensor registered to a user. The config columns are what
    the firmware polls for its sampling schedule.
    """
    __tablename__ = "devices"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    device_id = Column(String(64), unique=True, nullable=False, index=True)  # id flashed on the device
    user_id = Column(String(25), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    status = Column(String(16), nullable=False, default=DeviceStatus.ACTIVE.value, index=True)
    api_key_hash = Column(String(64), unique=True, nullable=True)  # sha256 hex

    measurement_frequency = Column(Integer, nullable=False, default=DEFAULT_MEASUREMENT_FREQUENCY)  # seconds
    active_start_time = Column(String(5), nullable=False, default="06:00")
    active_end_time = Column(String(5), nullable=False, default="22:00")
    timezone = Column(String(64), nullable=False, default=lambda: settings.DEVICE_DEFAULT_TIMEZONE)

    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    user = relationship("User", back_populates="devices")

    __table_args__ = (
        Index("ix_device_user_created", "user_id", "created_at"),
    )

    @validates("measurement_frequency")
    def validate_measurement_frequency(self, key, value):
        if value is not None and not MIN_MEASUREMENT_FREQUENCY <= value <= MAX_MEASUREMENT_FREQUENCY:
            raise RangeViolationError(key, value, MIN_MEASUREMENT_FREQUENCY, MAX_MEASUREMENT_FREQUENCY)
        return value

    @validates("active_start_time", "active_end_time")
    def validate_time_of_day(self, key, value):
        if value is not None and not TIME_OF_DAY_PATTERN.match(value):
            raise InvalidInputError(f"{key} must be in HH:MM format")
        return value

    def config_dict(self):
        return {
            "measurement_frequency": self.measurement_frequency,
            "active_start_time": self.active_start_time,
            "active_end_time": self.active_end_time,
            "timezone": self.timezone,
        }
