from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import AsyncAdaptedQueuePool
from app.core.config import settings
from app.core.logger import get_logger

logger = get_logger("database")

# Determine SSL requirement based on environment
ssl_config = {} if settings.IS_DEVELOPMENT else {"ssl": "require"}

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    connect_args={
        **ssl_config,
        "server_settings": {
            "application_name": "heart_track_backend",
            "jit": "off",
        },
        "command_timeout": 30,
    },
    poolclass=AsyncAdaptedQueuePool,
    pool_size=10,
    max_overflow=20,
    pool_timeout=30,
    pool_recycle=1800,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)

async def get_db():
    """Dependency for getting a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

