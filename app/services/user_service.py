"""
User Service
Account lifecycle events pushed by Clerk.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional
import logging

from app.models.user import User
from app.services.measurement_service import MeasurementService

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def remove_account(self, clerk_id: str) -> Optional[int]:
        """
        Soft-delete the local user and purge their measurements.

        Returns the number of measurements removed, or None when the Clerk user
        never signed in here.
        """
        result = await self.db.execute(select(User).where(User.clerk_id == clerk_id))
        user = result.scalar_one_or_none()
        if user is None:
            logger.info(f"No local user for Clerk ID {clerk_id}, nothing to remove")
            return None

        user.is_deleted = True
        user.is_active = False

        # delete_for_user commits both the purge and the flag change
        removed = await MeasurementService(self.db).delete_for_user(user.id)
        logger.info(f"Removed account {user.id} (Clerk ID: {clerk_id})")
        return removed
