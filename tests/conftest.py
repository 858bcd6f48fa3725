"""Shared fixtures: an in-memory SQLite database per test."""

import asyncio
import os

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(__file__), ".logs"))

from app.database.base import Base
from app.models import Device, User


@pytest.fixture
def run_db():
    """
    Run ``fn(session)`` against a fresh schema and return its result.

    Each call gets its own engine.
    """
    def runner(fn):
        async def main():
            engine = create_async_engine(
                "sqlite+aiosqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            try:
                async with session_factory() as session:
                    return await fn(session)
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return runner


async def make_user(session, clerk_id="user_clerk_1", email=None):
    user = User(clerk_id=clerk_id, email=email)
    session.add(user)
    await session.commit()
    return user


async def make_device(session, user, device_id="ht-0001", timezone="America/New_York", created_at=None, **kwargs):
    device = Device(
        device_id=device_id,
        user_id=user.id,
        name=kwargs.pop("name", "Wrist sensor"),
        timezone=timezone,
        **kwargs,
    )
    if created_at is not None:
        device.created_at = created_at
    session.add(device)
    await session.commit()
    return device
