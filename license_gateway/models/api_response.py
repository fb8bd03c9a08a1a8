"""API response models.

Field names are the external JSON contract, hence camelCase. Optional fields
that do not apply to an outcome are omitted from the serialized body.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from .subscription import LicenseCheckResult


class LifecycleResponse(BaseModel):
    """Response for POST /api/cancel-subscription."""

    success: bool = True
    outcome: str = Field(..., description="Machine-readable outcome kind")
    message: str = Field(..., description="Human-readable summary")
    subscriptionId: str
    cancelAtPeriodEnd: Optional[bool] = None
    currentPeriodEnd: Optional[int] = Field(None, description="Epoch seconds")
    refunded: Optional[bool] = None
    refundAmount: Optional[float] = Field(None, description="Refunded amount in major units (4.99)")
    cancelled: Optional[bool] = Field(None, description="Set when the subscription ended immediately")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "outcome": "canceled_immediately_with_refund",
                "message": "Subscription cancelled and refunded successfully",
                "subscriptionId": "sub_1Nx...",
                "refunded": True,
                "refundAmount": 4.99,
            }
        }


class RefundResponse(BaseModel):
    """Response for POST /api/process-refund."""

    success: bool = True
    outcome: str
    message: str
    subscriptionId: str
    refundId: Optional[str] = None
    amount: Optional[float] = Field(None, description="Refunded amount in major units")
    currency: Optional[str] = Field(None, description="3-letter uppercase currency code")
    cancelled: Optional[bool] = None


class LicenseResponse(BaseModel):
    """Response for license, confirmation and session checks."""

    valid: bool
    subscriptionId: Optional[str] = None
    customerId: Optional[str] = None
    status: Optional[str] = None
    expiryDate: Optional[str] = Field(None, description="ISO 8601")
    currentPeriodEnd: Optional[int] = Field(None, description="Epoch seconds")
    cancelAtPeriodEnd: Optional[bool] = None
    trialEnd: Optional[int] = Field(None, description="Epoch seconds, null outside trials")
    error: Optional[str] = None
    email: Optional[str] = Field(None, description="Checkout email (get-session only)")
    sessionId: Optional[str] = Field(None, description="Pending session id (get-session only)")


class CheckoutResponse(BaseModel):
    """Response for POST /api/create-checkout."""

    sessionId: str
    url: Optional[str]
    publishableKey: Optional[str]


class PaymentIntentResponse(BaseModel):
    """Response for POST /api/create-payment-intent."""

    clientSecret: Optional[str]
    subscriptionId: str
    customerId: str
    publishableKey: Optional[str]
    priceId: str


class WebhookAck(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True


class SendEmailResponse(BaseModel):
    """Response for POST /api/send-email."""

    success: bool = True
    message: str
    emailId: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body used by every endpoint."""

    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable message")
    details: Optional[Any] = Field(None, description="Diagnostic detail for operators")


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 with a trailing Z, the format JavaScript clients parse natively."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def license_response(result: LicenseCheckResult, **extra: Any) -> LicenseResponse:
    """Build the wire response for a license check."""
    return LicenseResponse(
        valid=result.valid,
        subscriptionId=result.subscription_id,
        customerId=result.customer_id,
        status=result.status.value if result.status else None,
        expiryDate=iso_utc(result.expiry_date),
        currentPeriodEnd=result.current_period_end,
        cancelAtPeriodEnd=result.cancel_at_period_end,
        trialEnd=result.trial_end,
        error=result.error,
        **extra,
    )
