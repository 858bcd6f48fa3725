"""
Webhook Routes
Clerk account events, signed with Svix headers.
"""
import base64
import binascii
import hashlib
import hmac
import json
import time

from fastapi import APIRouter, Depends, Request, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.database.connection import get_db
from app.services.user_service import UserService
from app.core.logger import get_logger

logger = get_logger("webhook_routes")
router = APIRouter(tags=["Webhooks"])

# Reject deliveries whose timestamp is further than this from now, in seconds
SIGNATURE_TOLERANCE = 300


def verify_svix_signature(secret: str, msg_id: str, timestamp: str, body: bytes, signatures: str) -> bool:
    """Check ``body`` against a ``svix-signature`` header (``v1,<base64> ...``)."""
    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError):
        return False
    if abs(time.time() - sent_at) > SIGNATURE_TOLERANCE:
        return False

    try:
        key = base64.b64decode(secret.split("_", 1)[1] if secret.startswith("whsec_") else secret)
    except binascii.Error:
        logger.error("CLERK_WEBHOOK_SECRET is not valid base64, check the configuration")
        return False

    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + body
    expected = base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode("utf-8")

    for candidate in (signatures or "").split():
        version, _, signature = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(expected, signature):
            return True
    return False


async def verify_clerk_webhook(request: Request) -> dict:
    """Verify the Clerk webhook signature and return the payload"""
    body = await request.body()

    if settings.CLERK_WEBHOOK_SECRET:
        valid = verify_svix_signature(
            settings.CLERK_WEBHOOK_SECRET,
            request.headers.get("svix-id", ""),
            request.headers.get("svix-timestamp", ""),
            body,
            request.headers.get("svix-signature", ""),
        )
        if not valid:
            logger.warning("Rejected Clerk webhook with a bad signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature"
            )
    elif not settings.IS_DEVELOPMENT:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Webhook secret not configured"
        )

    try:
        return json.loads(body)
    except ValueError as e:
        logger.error(f"Failed to parse webhook payload: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload"
        )


@router.post("/webhooks/clerk")
async def clerk_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Clerk webhooks for user events.
    Events: user.deleted (account and its measurements are removed)
    """
    payload = await verify_clerk_webhook(request)
    event_type = payload.get("type")
    data = payload.get("data") or {}

    logger.info(f"Received Clerk webhook: {event_type}")

    if event_type == "user.deleted" and data.get("id"):
        removed = await UserService(db).remove_account(data["id"])
        return {"status": "success", "measurements_removed": removed or 0}

    logger.info(f"No handler for webhook event {event_type}; skipping.")
    return {"status": "success"}
