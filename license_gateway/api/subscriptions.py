"""Subscription lifecycle and license endpoints.

Implements:
- POST /api/cancel-subscription - Cancel, reactivate, or cancel with auto-refund
- POST /api/process-refund - Refund inside the refund window and cancel
- POST /api/verify-license - Check a license key (subscription id or email)
- POST /api/confirm-subscription - Check a subscription id after payment

Domain errors propagate to the exception handlers registered in main.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from license_gateway.dependencies import (
    get_checkout_service,
    get_clock,
    get_license_verifier,
    get_orchestrator,
)
from license_gateway.logging_config import bind_context, get_logger, mask_email, short_id
from license_gateway.models import (
    CancelSubscriptionRequest,
    ConfirmSubscriptionRequest,
    LicenseResponse,
    LifecycleOutcome,
    LifecycleResponse,
    OutcomeKind,
    RefundRequest,
    RefundResponse,
    VerifyLicenseRequest,
)
from license_gateway.models.api_response import license_response
from license_gateway.repositories.stripe_gateway import SubscriptionNotFoundError
from license_gateway.services.checkout_service import CheckoutService
from license_gateway.services.clock import Clock
from license_gateway.services.license_verifier import LicenseVerifier
from license_gateway.services.lifecycle_orchestrator import LifecycleOrchestrator
from license_gateway.utils.money import minor_to_major

logger = get_logger(__name__)
router = APIRouter(tags=["Subscriptions"], prefix="/api")

OUTCOME_MESSAGES = {
    OutcomeKind.REACTIVATED: "Subscription reactivated successfully",
    OutcomeKind.CANCELED_AT_PERIOD_END: "Subscription will be cancelled at the end of the current period",
    OutcomeKind.CANCELED_IMMEDIATELY_WITH_REFUND: "Subscription cancelled and refunded successfully",
    OutcomeKind.CANCELED_IMMEDIATELY_NO_CHARGE: "Trial subscription cancelled",
}


def _refund_major(outcome: LifecycleOutcome) -> float:
    return float(minor_to_major(outcome.refund.amount, outcome.refund.currency))


@router.post(
    "/cancel-subscription",
    response_model=LifecycleResponse,
    response_model_exclude_none=True,
    summary="Cancel or reactivate a subscription",
)
def cancel_subscription(
    request: CancelSubscriptionRequest,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
    clock: Clock = Depends(get_clock),
) -> LifecycleResponse:
    """Cancel at period end, reactivate, or cancel immediately with a refund.

    With ``autoRefund`` inside the refund window, trials are canceled
    immediately without a charge and paid subscriptions are refunded and then
    canceled. Outside the window, or when the refund fails, the subscription
    is canceled at period end instead.

    Raises:
        400: Missing identifier or unknown action
        404: Subscription not found
        409: Subscription already canceled
        500: Stripe failure
    """
    now = clock.now()
    lifecycle_request = request.to_lifecycle_request()
    logger.info(
        "cancel_subscription_request",
        identifier_kind=lifecycle_request.identifier_kind.value,
        subscription_id=short_id(lifecycle_request.subscription_id),
        email=mask_email(lifecycle_request.email),
        action=lifecycle_request.action.value,
        auto_refund=lifecycle_request.auto_refund,
    )

    outcome = orchestrator.execute(lifecycle_request, now)
    subscription = outcome.subscription
    bind_context(subscription_id=short_id(subscription.id))

    response = LifecycleResponse(
        outcome=outcome.kind.value,
        message=OUTCOME_MESSAGES[outcome.kind],
        subscriptionId=subscription.id,
    )
    if outcome.canceled_immediately:
        response.cancelled = True
        response.refunded = outcome.refunded
        if outcome.refunded:
            response.refundAmount = _refund_major(outcome)
    else:
        response.cancelAtPeriodEnd = subscription.cancel_at_period_end
        response.currentPeriodEnd = subscription.current_period_end_epoch
        if lifecycle_request.auto_refund:
            response.refunded = False

    logger.info("cancel_subscription_success", outcome=outcome.kind.value, refunded=outcome.refunded)
    return response


@router.post(
    "/process-refund",
    response_model=RefundResponse,
    response_model_exclude_none=True,
    summary="Refund and cancel a subscription",
)
def process_refund(
    request: RefundRequest,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
    clock: Clock = Depends(get_clock),
) -> RefundResponse:
    """Refund the latest charge and cancel immediately.

    Trials are canceled without a refund.

    Raises:
        400: Missing identifier, or refund window expired
        404: Subscription or refundable charge not found
        409: Subscription already canceled
        500: Stripe failure
    """
    now = clock.now()
    logger.info(
        "process_refund_request",
        subscription_id=short_id(request.subscriptionId),
        email=mask_email(request.email),
    )

    outcome = orchestrator.refund(now, subscription_id=request.subscriptionId, email=request.email)
    bind_context(subscription_id=short_id(outcome.subscription.id))

    if not outcome.refunded:
        return RefundResponse(
            outcome=outcome.kind.value,
            message=OUTCOME_MESSAGES[outcome.kind],
            subscriptionId=outcome.subscription.id,
            cancelled=True,
        )

    refund = outcome.refund
    logger.info("process_refund_success", refund_id=refund.id, amount=refund.amount)
    return RefundResponse(
        outcome=outcome.kind.value,
        message="Refund processed successfully",
        subscriptionId=outcome.subscription.id,
        refundId=refund.id,
        amount=_refund_major(outcome),
        currency=refund.currency.upper(),
        cancelled=True,
    )


@router.post(
    "/verify-license",
    response_model=LicenseResponse,
    response_model_exclude_none=True,
    summary="Verify a license key",
)
def verify_license(
    request: VerifyLicenseRequest,
    verifier: LicenseVerifier = Depends(get_license_verifier),
    clock: Clock = Depends(get_clock),
):
    """Check whether a license key currently grants access.

    The key is a subscription id or the purchasing email. A known but
    inactive subscription answers 200 with ``valid: false``.

    Raises:
        400: Missing license key
        404: Key matches no subscription
        500: Stripe failure
    """
    now = clock.now()
    try:
        result = verifier.check(request.licenseKey, now)
    except SubscriptionNotFoundError:
        logger.info("license_key_not_found", license_key=short_id(request.licenseKey))
        return JSONResponse(
            status_code=404,
            content={
                "valid": False,
                "error": "not_found",
                "message": "License key not found or subscription not active",
            },
        )

    bind_context(subscription_id=short_id(result.subscription_id))
    return license_response(result)


@router.post(
    "/confirm-subscription",
    response_model=LicenseResponse,
    response_model_exclude_none=True,
    summary="Confirm a subscription after payment",
)
def confirm_subscription(
    request: ConfirmSubscriptionRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
    clock: Clock = Depends(get_clock),
) -> LicenseResponse:
    """Check a subscription id returned by the embedded payment flow.

    Raises:
        400: Missing subscription id
        404: Subscription not found
        500: Stripe failure
    """
    now = clock.now()
    bind_context(subscription_id=short_id(request.subscriptionId))
    result = checkout.confirm_subscription(request.subscriptionId, now)
    return license_response(result)
