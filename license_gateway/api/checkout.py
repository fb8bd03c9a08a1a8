"""Checkout endpoints.

Implements:
- POST /api/create-checkout - Hosted checkout session for the configured plan
- POST /api/get-session - Resolve a checkout session into its subscription
- POST /api/create-payment-intent - Incomplete subscription for embedded payment
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from license_gateway.dependencies import get_checkout_service, get_clock
from license_gateway.logging_config import bind_context, get_logger, mask_email, short_id
from license_gateway.models import (
    CheckoutResponse,
    CreateCheckoutRequest,
    CreatePaymentIntentRequest,
    GetSessionRequest,
    LicenseResponse,
    PaymentIntentResponse,
)
from license_gateway.models.api_response import license_response
from license_gateway.services.checkout_service import CheckoutService, SessionState
from license_gateway.services.clock import Clock
from license_gateway.services.license_verifier import describe_subscription

logger = get_logger(__name__)
router = APIRouter(tags=["Checkout"], prefix="/api")


@router.post("/create-checkout", response_model=CheckoutResponse, summary="Create checkout session")
def create_checkout(
    request: CreateCheckoutRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Create a subscription-mode checkout session.

    Raises:
        500: Stripe keys not configured, or Stripe failure
    """
    logger.info("create_checkout_request", email=mask_email(request.email))
    session = checkout.create_session(email=request.email, return_url=request.returnUrl)
    return CheckoutResponse(
        sessionId=session.session_id,
        url=session.redirect_url,
        publishableKey=session.publishable_key,
    )


@router.post(
    "/get-session",
    response_model=LicenseResponse,
    response_model_exclude_none=True,
    summary="Resolve a checkout session",
)
def get_session(
    request: GetSessionRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
    clock: Clock = Depends(get_clock),
):
    """Resolve a completed checkout session into a license check.

    Safe to poll: a session whose subscription does not exist yet answers
    202 with ``status: pending``.

    Raises:
        400: Missing session id
        404: Unknown session
        500: Stripe failure
    """
    now = clock.now()
    bind_context(session_id=short_id(request.sessionId))
    resolution = checkout.resolve_session(request.sessionId)

    if resolution.state == SessionState.NOT_FOUND:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "not_found",
                "message": f"Session '{request.sessionId}' not found",
            },
        )

    if resolution.state == SessionState.PENDING:
        return JSONResponse(
            status_code=202,
            content={"valid": False, "status": "pending", "sessionId": resolution.session_id},
        )

    bind_context(subscription_id=short_id(resolution.subscription.id))
    result = describe_subscription(resolution.subscription, now)
    return license_response(result, email=resolution.email)


@router.post(
    "/create-payment-intent",
    response_model=PaymentIntentResponse,
    summary="Create subscription for embedded payment",
)
def create_payment_intent(
    request: CreatePaymentIntentRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> PaymentIntentResponse:
    """Create an incomplete subscription and return its client secret.

    Raises:
        500: Stripe keys not configured, or Stripe failure
    """
    logger.info("create_payment_intent_request", email=mask_email(request.email))
    embedded = checkout.create_embedded_subscription(email=request.email)
    return PaymentIntentResponse(
        clientSecret=embedded.client_secret,
        subscriptionId=embedded.subscription_id,
        customerId=embedded.customer_id,
        publishableKey=embedded.publishable_key,
        priceId=embedded.price_id,
    )
