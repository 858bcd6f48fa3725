from typing import List
from fastapi import Request, HTTPException, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from sqlalchemy.future import select
from clerk_backend_api import Clerk
from clerk_backend_api.security.types import AuthenticateRequestOptions
from httpx import Request as HttpxRequest
from app.core.config import settings
from app.database import AsyncSessionLocal
from app.middlewares.device_auth import API_KEY_HEADER
from app.models.user import User
from app.schemas.context_schemas import UserContext
from app.core.logger import get_logger

logger = get_logger("clerk_auth_middleware")

whitelisted_routes = [
    "/docs", "/openapi.json", "/redoc", "/favicon.ico",
    "/api/v1/webhooks",
]

class ClerkAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, whitelisted_routes: List[str] = None):
        super().__init__(app)
        self.clerk_sdk = Clerk(bearer_auth=settings.CLERK_SECRET_KEY)
        self.whitelisted_routes = whitelisted_routes or []

    def _is_whitelisted(self, path: str) -> bool:
        """Check if the route is whitelisted (public)"""
        for route in self.whitelisted_routes:
            if path.startswith(route):
                return True
        return False

    async def _get_or_create_user(self, clerk_user_id: str) -> User:
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(User).where(User.clerk_id == clerk_user_id)
            )
            user = result.scalar_one_or_none()
            if user:
                return user

            clerk_user = self.clerk_sdk.users.get(user_id=clerk_user_id)
            email = clerk_user.email_addresses[0].email_address if clerk_user.email_addresses else None

            user = User(clerk_id=clerk_user_id, email=email, is_active=True, is_deleted=False)
            db.add(user)
            await db.commit()
            await db.refresh(user)
            logger.info(f"Created local user {user.id} (Clerk ID: {clerk_user_id})")
            return user

    async def dispatch(self, request: Request, call_next):
        """Verifies Clerk JWT tokens for dashboard requests"""

        if request.url.path == "/" or self._is_whitelisted(request.url.path):
            return await call_next(request)

        # Skip authentication for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        # Device requests authenticate with an API key in the route dependency
        if request.headers.get(API_KEY_HEADER):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            logger.warning(f"Missing or invalid Authorization header for: {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Missing or invalid authorization token", "code": "UNAUTHORIZED"}
            )

        try:
            httpx_request = HttpxRequest(
                method=request.method,
                url=str(request.url),
                headers=dict(request.headers)
            )
            request_state = self.clerk_sdk.authenticate_request(
                httpx_request,
                AuthenticateRequestOptions()
            )

            if not request_state.is_signed_in:
                logger.warning(f"Invalid Clerk token: {request_state.reason}")
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"error": "Invalid authentication token", "code": "UNAUTHORIZED"}
                )

            clerk_user_id = request_state.payload.get("sub") if request_state.payload else None
            if not clerk_user_id:
                logger.warning("No user_id in token payload")
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"error": "Invalid token payload", "code": "UNAUTHORIZED"}
                )

            user = await self._get_or_create_user(clerk_user_id)
            if user.is_deleted or not user.is_active:
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"error": "Account disabled", "code": "UNAUTHORIZED"}
                )

            request.state.user = user
        except Exception as e:
            logger.error(f"Authentication error: {e}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Authentication failed", "code": "UNAUTHORIZED"}
            )

        return await call_next(request)


async def get_user_context(request: Request) -> UserContext:
    """FastAPI dependency: the authenticated user as an explicit context"""
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated"
        )
    return UserContext(user_id=user.id, email=user.email)
