"""Service settings models.

Models from settings.yaml configuration plus the secrets resolved from the
environment. All settings objects are frozen once constructed.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from license_gateway.utils.billing_period import validate_billing_period


def _check_period(value: Optional[str]) -> Optional[str]:
    if value is not None and not validate_billing_period(value):
        raise ValueError(f"Invalid ISO 8601 period: '{value}' (expected P[n]D, P[n]W, P[n]M or P[n]Y)")
    return value


class PlanDefinition(BaseModel):
    """The single recurring plan sold through checkout."""

    id: str = Field(default="yearly", description="Internal plan identifier")
    name: str = Field(default="Yearly Subscription", description="Product name shown at checkout")
    description: str = Field(
        default="Unlock every premium feature for one year",
        description="Product description shown at checkout",
    )
    unit_amount: int = Field(default=499, description="Price in minor currency units (499 = 4.99)")
    currency: str = Field(default="gbp", description="ISO 4217 currency code (lowercase for Stripe)")
    billing_period: str = Field(default="P1Y", description="ISO 8601 duration (e.g., P1Y, P1M)")
    trial_period: Optional[str] = Field(default="P3D", description="ISO 8601 trial duration (e.g., P3D)")
    price_id: Optional[str] = Field(
        None, description="Existing Stripe price id; inline price_data is used when unset"
    )

    @field_validator("billing_period", "trial_period")
    @classmethod
    def check_periods(cls, value: Optional[str]) -> Optional[str]:
        return _check_period(value)

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "yearly",
                "name": "Yearly Subscription",
                "description": "Unlock every premium feature for one year",
                "unit_amount": 499,
                "currency": "gbp",
                "billing_period": "P1Y",
                "trial_period": "P3D",
                "price_id": None,
            }
        },
    )


class StripeConfig(BaseModel):
    """Stripe connection settings (non-secret part)."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["live", "test"] = Field(default="live", description="Which key set to use")
    api_version: str = Field(
        default="2024-06-20",
        description="Pinned Stripe API version; invoice.charge and subscription.current_period_end rely on it",
    )
    max_network_retries: int = Field(default=0, ge=0, description="SDK-level retries per provider call")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Deadline for each Stripe HTTP call")


class StripeCredentials(BaseModel):
    """Secrets for the active Stripe mode, resolved from the environment."""

    model_config = ConfigDict(frozen=True)

    secret_key: Optional[str] = None
    publishable_key: Optional[str] = None
    webhook_secret: Optional[str] = None


class RefundConfig(BaseModel):
    """Refund window and refund metadata."""

    model_config = ConfigDict(frozen=True)

    window: str = Field(default="P7D", description="ISO 8601 refund window measured from subscription creation")
    reason: str = Field(default="requested_by_customer", description="Stripe refund reason")

    @field_validator("window")
    @classmethod
    def check_window(cls, value: str) -> str:
        return _check_period(value)


class CheckoutConfig(BaseModel):
    """Checkout session URLs and metadata."""

    model_config = ConfigDict(frozen=True)

    success_url: str = Field(
        default="https://example.com/success.html?session_id={CHECKOUT_SESSION_ID}&success=true",
        description="Hosted success page; Stripe substitutes {CHECKOUT_SESSION_ID}",
    )
    cancel_url: str = Field(default="https://chrome.google.com/webstore", description="Fallback cancel URL")
    payment_method_types: tuple[str, ...] = Field(default=("card",))
    metadata: dict[str, str] = Field(default_factory=dict, description="Metadata attached to sessions and customers")


class NotificationConfig(BaseModel):
    """Administrative email notification settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Send admin emails for lifecycle outcomes")
    recipient: str = Field(default="admin@example.com", description="Admin mailbox")
    sender: str = Field(default="License Gateway <noreply@resend.dev>", description="From header")
    subject_prefix: str = Field(default="[License Gateway]", description="Prefix for every subject line")
    resend_api_url: str = Field(default="https://api.resend.com/emails")
    resend_api_key: Optional[str] = Field(None, description="Resend API key; emails are only logged when unset")
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=2, ge=1, description="Background delivery threads")


class ChatConfig(BaseModel):
    """Chat-completion proxy settings."""

    model_config = ConfigDict(frozen=True)

    api_url: str = Field(default="https://api.openai.com/v1/chat/completions")
    api_key: Optional[str] = None
    default_model: str = Field(default="gpt-4o-mini")
    default_temperature: float = Field(default=0.8)
    timeout_seconds: float = Field(default=60.0, gt=0)


class GatewaySettings(BaseModel):
    """Complete service configuration."""

    model_config = ConfigDict(frozen=True)

    stripe: StripeConfig = Field(default_factory=StripeConfig)
    credentials: StripeCredentials = Field(default_factory=StripeCredentials)
    plan: PlanDefinition = Field(default_factory=PlanDefinition)
    refunds: RefundConfig = Field(default_factory=RefundConfig)
    checkout: CheckoutConfig = Field(default_factory=CheckoutConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    @property
    def test_mode(self) -> bool:
        return self.stripe.mode == "test"
