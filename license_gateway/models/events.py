"""Event models - admin notifications and Stripe webhook results."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .subscription import LifecycleAction, OutcomeKind, SubscriptionStatus


class NotificationAction(str, Enum):
    """What the notification reports. Refund requests are not a LifecycleAction."""

    CANCEL = LifecycleAction.CANCEL.value
    REACTIVATE = LifecycleAction.REACTIVATE.value
    REFUND = "refund"


class LifecycleEvent(BaseModel):
    """Administrative summary of one lifecycle outcome."""

    action: NotificationAction = Field(..., description="Requested action")
    outcome: OutcomeKind = Field(..., description="Terminal outcome")
    subscription_id: str = Field(..., description="Stripe subscription id")
    customer: str = Field(..., description="Customer email when supplied, customer id otherwise")
    status: SubscriptionStatus = Field(..., description="Subscription status after the action")
    current_period_end: datetime = Field(..., description="End of the current billing period")
    occurred_at: datetime = Field(..., description="Request-processing instant")
    reason: Optional[str] = Field(None, description="Cancellation reason given by the customer")
    refund_id: Optional[str] = None
    refund_amount: Optional[int] = Field(None, description="Refunded amount in minor units")
    refund_currency: Optional[str] = None
    days_since_purchase: Optional[float] = None
    fallback_reason: Optional[str] = None
    error: Optional[str] = Field(None, description="Failure message when the operation did not complete")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "action": "cancel",
                "outcome": "canceled_immediately_with_refund",
                "subscription_id": "sub_1Nx...",
                "customer": "jane@example.com",
                "status": "canceled",
                "current_period_end": "2026-10-14T12:00:00Z",
                "occurred_at": "2026-10-17T09:30:00Z",
                "refund_id": "re_3Ny...",
                "refund_amount": 499,
                "refund_currency": "gbp",
                "days_since_purchase": 3.1,
            }
        },
    )


class WebhookEventType(str, Enum):
    """Stripe event types with dedicated handling."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class WebhookResult(BaseModel):
    """Result of ingesting one webhook delivery."""

    model_config = ConfigDict(frozen=True)

    accepted: bool = Field(..., description="Signature verified; the delivery is acknowledged")
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    handled: bool = Field(default=False, description="Event type had a dedicated handler")
    error: Optional[str] = Field(None, description="Verification error for rejected deliveries")
