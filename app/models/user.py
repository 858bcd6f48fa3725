from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from app.database.base import Base
from app.utils.timezone_utils import utc_now
import cuid


class User(Base):
    """Local mirror of an authenticated Clerk user."""

    __tablename__ = "users"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    email = Column(String(255), unique=True, index=True, nullable=True)
    clerk_id = Column(String(255), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True)
    is_deleted = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    devices = relationship("Device", back_populates="user")
    measurements = relationship("Measurement", back_populates="user")
