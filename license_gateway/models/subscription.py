"""Subscription, customer, invoice and refund models.

Snapshots of Stripe objects plus the transient lifecycle request/outcome
values. Nothing here is persisted; every value is rebuilt from Stripe on
each request.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


def _from_epoch(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _object_id(value: Any) -> Optional[str]:
    """Return the id of a Stripe reference that may be expanded or a bare id."""
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


class SubscriptionStatus(str, Enum):
    """Subscription status values matching Stripe."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"  # Terminal
    UNPAID = "unpaid"
    PAUSED = "paused"


ENTITLED_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


class LifecycleAction(str, Enum):
    """Actions a caller may request on a subscription."""

    CANCEL = "cancel"
    REACTIVATE = "reactivate"


class IdentifierKind(str, Enum):
    """How the caller identified the subscription."""

    SUBSCRIPTION_ID = "subscription_id"
    EMAIL = "email"


class OutcomeKind(str, Enum):
    """Terminal outcomes of a lifecycle operation."""

    REACTIVATED = "reactivated"
    CANCELED_AT_PERIOD_END = "canceled_at_period_end"
    CANCELED_IMMEDIATELY_WITH_REFUND = "canceled_immediately_with_refund"
    CANCELED_IMMEDIATELY_NO_CHARGE = "canceled_immediately_no_charge"
    FAILED = "failed"
    REFUNDED_CANCEL_FAILED = "refunded_cancel_failed"  # Refund issued, cancellation failed


class Customer(BaseModel):
    """Stripe customer snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stripe customer id (cus_...)")
    email: Optional[str] = Field(None, description="Customer email as stored by Stripe")

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> "Customer":
        return cls(id=obj["id"], email=obj.get("email"))


class Subscription(BaseModel):
    """Stripe subscription snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stripe subscription id (sub_...)")
    status: SubscriptionStatus = Field(..., description="Current Stripe status")
    customer_id: str = Field(..., description="Owning customer id")
    created_at: datetime = Field(..., description="Creation instant (UTC)")
    current_period_end: datetime = Field(..., description="End of the current billing period (UTC)")
    cancel_at_period_end: bool = Field(default=False, description="Scheduled to stop renewing")
    trial_end: Optional[datetime] = Field(None, description="Trial end (UTC), if any")

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> "Subscription":
        """Build a snapshot from a Stripe subscription object or dict."""
        return cls(
            id=obj["id"],
            status=SubscriptionStatus(obj["status"]),
            customer_id=_object_id(obj["customer"]),
            created_at=_from_epoch(obj["created"]),
            current_period_end=_from_epoch(obj["current_period_end"]),
            cancel_at_period_end=bool(obj.get("cancel_at_period_end", False)),
            trial_end=_from_epoch(obj.get("trial_end")),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status == SubscriptionStatus.CANCELED

    @property
    def is_trialing(self) -> bool:
        return self.status == SubscriptionStatus.TRIALING

    @property
    def current_period_end_epoch(self) -> int:
        return int(self.current_period_end.timestamp())

    @property
    def trial_end_epoch(self) -> Optional[int]:
        return int(self.trial_end.timestamp()) if self.trial_end else None


class Invoice(BaseModel):
    """The paid invoice a refund would be issued against."""

    model_config = ConfigDict(frozen=True)

    id: str
    charge_id: Optional[str] = Field(None, description="Charge that paid the invoice")
    amount_paid: int = Field(default=0, description="Amount paid in minor units")
    currency: str = Field(default="gbp")
    charge_refunded: bool = Field(default=False, description="Charge already fully refunded")

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> "Invoice":
        charge = obj.get("charge")
        refunded = False
        if charge is not None and not isinstance(charge, str):
            refunded = bool(charge.get("refunded", False))
        return cls(
            id=obj["id"],
            charge_id=_object_id(charge),
            amount_paid=int(obj.get("amount_paid") or 0),
            currency=obj.get("currency") or "gbp",
            charge_refunded=refunded,
        )

    @property
    def is_refundable(self) -> bool:
        return self.charge_id is not None and not self.charge_refunded


class RefundRecord(BaseModel):
    """A refund created by this service. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stripe refund id (re_...)")
    amount: int = Field(..., description="Refunded amount in minor units")
    currency: str = Field(..., description="ISO 4217 currency code")
    reason: Optional[str] = Field(None, description="Stripe refund reason")
    charge_id: str = Field(..., description="Refunded charge id")

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> "RefundRecord":
        return cls(
            id=obj["id"],
            amount=int(obj["amount"]),
            currency=obj["currency"],
            reason=obj.get("reason"),
            charge_id=_object_id(obj["charge"]),
        )


class LifecycleRequest(BaseModel):
    """One cancel/reactivate request. Exists for a single orchestration call."""

    model_config = ConfigDict(frozen=True)

    identifier_kind: IdentifierKind
    identifier: str
    action: LifecycleAction = LifecycleAction.CANCEL
    auto_refund: bool = False
    reason: Optional[str] = None

    @property
    def email(self) -> Optional[str]:
        return self.identifier if self.identifier_kind == IdentifierKind.EMAIL else None

    @property
    def subscription_id(self) -> Optional[str]:
        return self.identifier if self.identifier_kind == IdentifierKind.SUBSCRIPTION_ID else None


class LifecycleOutcome(BaseModel):
    """Terminal outcome of a lifecycle operation."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    subscription: Subscription
    refund: Optional[RefundRecord] = None
    days_since_purchase: Optional[float] = None
    fallback_reason: Optional[str] = Field(
        None, description="Why an auto-refund request ended as a period-end cancellation"
    )
    error: Optional[str] = Field(None, description="Failure message for failed outcomes")

    @property
    def refunded(self) -> bool:
        return self.refund is not None

    @property
    def canceled_immediately(self) -> bool:
        return self.kind in (
            OutcomeKind.CANCELED_IMMEDIATELY_WITH_REFUND,
            OutcomeKind.CANCELED_IMMEDIATELY_NO_CHARGE,
        )


class LicenseCheckResult(BaseModel):
    """Derived entitlement check. Recomputed on every request."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    status: Optional[SubscriptionStatus] = None
    expiry_date: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None
    current_period_end: Optional[int] = None
    trial_end: Optional[int] = None
    error: Optional[str] = None
