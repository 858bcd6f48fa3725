import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.exceptions.handlers import (
    application_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from app.exceptions.errors import ApplicationException
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from app.core.config import settings
from app.database.base import Base
from app.database.connection import engine

from app.api.v1.routes import measurement_router, device_router, webhook_router
from app.middlewares.clerk_auth import ClerkAuthMiddleware, whitelisted_routes

from app.core.logger import get_logger

logger = get_logger("heart-track-backend")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Heart Track API is starting...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Application database tables ensured.")
    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise

    yield

    await engine.dispose()
    logger.info("Heart Track API is shutting down...")


app = FastAPI(
    title="Heart Track API",
    version="1.0.0",
    lifespan=lifespan,
    description="""
    Heart rate and SpO2 telemetry API.

    ## Authentication

    **Devices** send their API key in the `X-API-Key` header.

    **Dashboard users** send a Clerk JWT:
    ```
    Authorization: Bearer <your-jwt-token>
    ```

    ## Timezones

    Read endpoints accept an IANA `timezone` query parameter; timestamps are
    returned as local time with offset. Weekly and daily aggregates are always
    grouped by UTC day.
    """,
)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    ClerkAuthMiddleware,
    whitelisted_routes=whitelisted_routes
)

app.include_router(measurement_router, prefix="/api/v1")
app.include_router(device_router, prefix="/api/v1")
app.include_router(webhook_router, prefix="/api/v1")

@app.get("/", include_in_schema=False)
async def root():
    return {
        "message": "Heart Track API",
        "docs": "/docs",
        "development_mode": settings.IS_DEVELOPMENT,
        "version": "1.0.0"
    }


# Exception handlers
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        limit_concurrency=20,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30
    )
