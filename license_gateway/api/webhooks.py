"""Stripe webhook endpoint.

Implements:
- POST /api/stripe-webhook - Verified Stripe event delivery
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from license_gateway.dependencies import get_webhook_ingestor
from license_gateway.logging_config import get_logger
from license_gateway.models import WebhookAck
from license_gateway.services.webhook_ingestor import WebhookIngestor

logger = get_logger(__name__)
router = APIRouter(tags=["Webhooks"], prefix="/api")


@router.post("/stripe-webhook", response_model=WebhookAck, summary="Receive Stripe events")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    ingestor: WebhookIngestor = Depends(get_webhook_ingestor),
) -> WebhookAck:
    """Verify and process one Stripe event.

    The raw body is verified before it is parsed. Verified events are always
    acknowledged.

    Raises:
        400: Missing or invalid signature
        500: Webhook secret not configured
    """
    payload = await request.body()
    result = await run_in_threadpool(ingestor.ingest, payload, stripe_signature)

    if not result.accepted:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_signature",
                "message": "Webhook signature verification failed",
                "details": result.error,
            },
        )

    return WebhookAck()
