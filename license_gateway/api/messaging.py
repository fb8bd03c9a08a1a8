"""Email relay and chat proxy endpoints.

Implements:
- POST /api/send-email - Send an email through Resend (logged when unconfigured)
- POST /api/chat - Proxy a chat-completion request upstream
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from license_gateway.dependencies import get_chat_proxy, get_email_sender
from license_gateway.logging_config import get_logger, mask_email
from license_gateway.models import ChatRequest, SendEmailRequest, SendEmailResponse
from license_gateway.services.chat_proxy import ChatProxy, ChatUpstreamError
from license_gateway.services.email_sender import EmailDeliveryError, ResendEmailSender

logger = get_logger(__name__)
router = APIRouter(tags=["Messaging"], prefix="/api")


@router.post(
    "/send-email",
    response_model=SendEmailResponse,
    response_model_exclude_none=True,
    summary="Send an email",
)
async def send_email(
    request: SendEmailRequest,
    sender: ResendEmailSender = Depends(get_email_sender),
) -> SendEmailResponse:
    """Send one email.

    Raises:
        400: Missing recipient or subject
        500: Email provider failure
    """
    logger.info("send_email_request", to=mask_email(request.to), subject=request.subject)
    try:
        delivery = await run_in_threadpool(
            sender.send, request.to, request.subject, request.html, request.text
        )
    except EmailDeliveryError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error": "email_delivery_failed",
                "message": "Failed to send email",
                "details": str(e),
            },
        )

    return SendEmailResponse(message=delivery.message, emailId=delivery.email_id)


@router.post("/chat", summary="Proxy a chat completion")
async def chat(
    request: ChatRequest,
    proxy: ChatProxy = Depends(get_chat_proxy),
) -> dict[str, Any]:
    """Forward messages to the chat-completion API and return its JSON.

    Raises:
        400: Missing messages array
        401: Upstream rejected the API key
        429: Upstream rate limit
        500: API key not configured, or upstream failure
    """
    messages = [m.model_dump(exclude_none=True) for m in request.messages]
    try:
        return await proxy.complete(messages, model=request.model, temperature=request.temperature)
    except ChatUpstreamError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": "upstream_error", "message": e.message},
        )
