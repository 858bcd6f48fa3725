from sqlalchemy import Column, String, ForeignKey, DateTime, UniqueConstraint, Index
from app.database.base import Base
from app.enums import IdempotencyStatus
from app.utils.timezone_utils import utc_now
import cuid


class IdempotencyKey(Base):
    """
    Remembers the client key of an ingestion so device retries don't write the
    same reading twice.
    """
    __tablename__ = "idempotency_keys"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(String(25), ForeignKey("users.id"), nullable=False, index=True)
    device_id = Column(String(64), nullable=False)  # client keys are scoped per device
    endpoint = Column(String(128), nullable=False)
    key_hash = Column(String(64), nullable=False)  # sha256 of client key
    status = Column(String(24), nullable=False, default=IdempotencyStatus.ACCEPTED.value)
    resource_id = Column(String(25), nullable=True)  # measurement created under this key
    created_at = Column(DateTime, default=utc_now)
    expires_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "device_id", "endpoint", "key_hash", name="uq_idem_user_device_endpoint_key"),
        Index("ix_idem_user_endpoint", "user_id", "endpoint"),
    )
