"""
DarkMode Backend — Stripe Webhook Receiver
============================================

What:  POST /api/webhooks/stripe.
How:   The raw body is read unparsed, since the signature covers the exact
       bytes. WebhookService verifies, de-duplicates by event id, applies the
       event and records the outcome.

Responses:
    200  processed, or a duplicate of an already processed event
    400  missing or invalid Stripe-Signature (nothing is recorded)
    409  the same event is being processed by a concurrent delivery
    500  the handler failed; the error is stored and Stripe will retry
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.subscription import WebhookAck
from app.services.webhook_service import webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post(
    "/stripe",
    response_model=WebhookAck,
    responses={
        400: {"description": "Signature verification failed", "model": ErrorResponse},
        409: {"description": "Concurrent delivery in progress", "model": ErrorResponse},
        500: {"description": "Processing failed; Stripe will retry", "model": ErrorResponse},
    },
    summary="Stripe event receiver",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db_session),
) -> WebhookAck:
    payload = await request.body()
    result = await webhook_service.handle(db, payload, stripe_signature)
    return WebhookAck(duplicate=result.duplicate)
