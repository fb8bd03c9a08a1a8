"""API request models.

Field names are the external JSON contract used by the browser extension,
hence camelCase.
"""

from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from .subscription import IdentifierKind, LifecycleAction, LifecycleRequest


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
RequiredText = Annotated[str, BeforeValidator(_blank_to_none)]


class SubscriptionIdentifier(BaseModel):
    """Subscription id or email; at least one is required."""

    subscriptionId: OptionalText = Field(None, description="Stripe subscription id (sub_...)")
    email: OptionalText = Field(None, description="Customer email")

    @model_validator(mode="after")
    def _require_identifier(self) -> "SubscriptionIdentifier":
        if not self.subscriptionId and not self.email:
            raise ValueError("Subscription ID or email required")
        return self

    @property
    def identifier_kind(self) -> IdentifierKind:
        """Explicit subscription id wins when both are supplied."""
        if self.subscriptionId:
            return IdentifierKind.SUBSCRIPTION_ID
        return IdentifierKind.EMAIL

    @property
    def identifier(self) -> str:
        return self.subscriptionId or self.email


class CancelSubscriptionRequest(SubscriptionIdentifier):
    """Request to cancel or reactivate a subscription."""

    action: Optional[LifecycleAction] = Field(
        None, description="'cancel' (default) or 'reactivate'; other values are rejected"
    )
    autoRefund: bool = Field(default=False, description="Refund and cancel immediately when inside the refund window")
    reason: OptionalText = Field(None, description="Free-text cancellation reason")

    def to_lifecycle_request(self) -> LifecycleRequest:
        return LifecycleRequest(
            identifier_kind=self.identifier_kind,
            identifier=self.identifier,
            action=self.action or LifecycleAction.CANCEL,
            auto_refund=self.autoRefund,
            reason=self.reason,
        )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "jane@example.com",
                "autoRefund": True,
                "reason": "Not using it",
            }
        }
    )


class RefundRequest(SubscriptionIdentifier):
    """Request an explicit refund inside the refund window."""

    model_config = ConfigDict(json_schema_extra={"example": {"subscriptionId": "sub_1Nx..."}})


class VerifyLicenseRequest(BaseModel):
    """License check; the key is a subscription id or an account email."""

    licenseKey: str = Field(..., description="Subscription id or email")

    @field_validator("licenseKey", mode="before")
    @classmethod
    def _require_key(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is None:
            raise ValueError("License key required")
        return value


class ConfirmSubscriptionRequest(BaseModel):
    """Confirm a subscription after payment."""

    subscriptionId: RequiredText = Field(..., min_length=1, description="Stripe subscription id")


class CreateCheckoutRequest(BaseModel):
    """Create a hosted checkout session."""

    email: OptionalText = Field(None, description="Prefill and reuse the customer for this email")
    returnUrl: OptionalText = Field(None, description="Where the cancel button returns to")


class GetSessionRequest(BaseModel):
    """Resolve a checkout session into a subscription."""

    sessionId: RequiredText = Field(..., min_length=1, description="Checkout session id (cs_...)")


class CreatePaymentIntentRequest(BaseModel):
    """Create an incomplete subscription for embedded payment."""

    email: OptionalText = None


class SendEmailRequest(BaseModel):
    """Relay one email through the configured sender."""

    to: str = Field(..., min_length=3, description="Recipient address")
    subject: str = Field(..., min_length=1)
    html: Optional[str] = None
    text: Optional[str] = None

    @field_validator("to")
    @classmethod
    def _looks_like_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("Recipient must be an email address")
        return value


class ChatMessage(BaseModel):
    """One chat-completion message, passed through unchanged."""

    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = None


class ChatRequest(BaseModel):
    """Chat-completion proxy request."""

    messages: list[ChatMessage] = Field(..., description="Messages array, forwarded as-is")
    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
