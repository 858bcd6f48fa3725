from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Float, CheckConstraint, Index
from sqlalchemy.orm import relationship, validates
from app.database.base import Base
from app.enums import MeasurementQuality
from app.exceptions.errors import InvalidInputError, RangeViolationError
from app.utils.timezone_utils import utc_now
import cuid

HEART_RATE_MIN = 40
HEART_RATE_MAX = 200
SPO2_MIN = 70
SPO2_MAX = 100
CONFIDENCE_MIN = 0.0
CONFIDENCE_MAX = 1.0


class Measurement(Base):
    """
    A single heart rate + SpO2 reading.
    Units: bpm, percent. Timestamps are naive UTC.
    """
    __tablename__ = "measurements"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(String(25), ForeignKey("users.id"), nullable=False, index=True)
    device_id = Column(String(64), ForeignKey("devices.device_id"), nullable=False, index=True)

    heart_rate = Column(Integer, nullable=False)
    spo2 = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)  # when measured
    quality = Column(String(8), nullable=False, default=MeasurementQuality.GOOD.value)
    confidence = Column(Float, nullable=False, default=1.0)

    created_at = Column(DateTime, default=utc_now, nullable=False)

    user = relationship("User", back_populates="measurements")

    __table_args__ = (
        CheckConstraint(f"heart_rate BETWEEN {HEART_RATE_MIN} AND {HEART_RATE_MAX}", name="ck_measurement_heart_rate"),
        CheckConstraint(f"spo2 BETWEEN {SPO2_MIN} AND {SPO2_MAX}", name="ck_measurement_spo2"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_measurement_confidence"),
        Index("ix_measurement_user_time", "user_id", "timestamp"),
        Index("ix_measurement_device_time", "device_id", "timestamp"),
        Index("ix_measurement_user_device_time", "user_id", "device_id", "timestamp"),
    )

    @validates("heart_rate")
    def validate_heart_rate(self, key, value):
        if value is None or not HEART_RATE_MIN <= value <= HEART_RATE_MAX:
            raise RangeViolationError("heart_rate", value, HEART_RATE_MIN, HEART_RATE_MAX)
        return value

    @validates("spo2")
    def validate_spo2(self, key, value):
        if value is None or not SPO2_MIN <= value <= SPO2_MAX:
            raise RangeViolationError("spo2", value, SPO2_MIN, SPO2_MAX)
        return value

    @validates("confidence")
    def validate_confidence(self, key, value):
        if value is not None and not CONFIDENCE_MIN <= value <= CONFIDENCE_MAX:
            raise RangeViolationError("confidence", value, CONFIDENCE_MIN, CONFIDENCE_MAX)
        return value

    @validates("quality")
    def validate_quality(self, key, value):
        allowed = [q.value for q in MeasurementQuality]
        if value not in allowed:
            raise InvalidInputError(f"quality must be one of: {allowed}")
        return value

    def to_public_dict(self):
        return {
            "id": self.id,
            "heart_rate": self.heart_rate,
            "spo2": self.spo2,
            "timestamp": self.timestamp,
            "quality": self.quality,
            "confidence": self.confidence,
        }
