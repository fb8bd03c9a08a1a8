"""Pydantic models for API requests, responses, and domain objects."""

# Settings models
from .settings import (
    ChatConfig,
    CheckoutConfig,
    GatewaySettings,
    NotificationConfig,
    PlanDefinition,
    RefundConfig,
    StripeConfig,
    StripeCredentials,
)

# Subscription models
from .subscription import (
    ENTITLED_STATUSES,
    Customer,
    IdentifierKind,
    Invoice,
    LicenseCheckResult,
    LifecycleAction,
    LifecycleOutcome,
    LifecycleRequest,
    OutcomeKind,
    RefundRecord,
    Subscription,
    SubscriptionStatus,
)

# Event models
from .events import (
    LifecycleEvent,
    NotificationAction,
    WebhookEventType,
    WebhookResult,
)

# API request models
from .api_request import (
    CancelSubscriptionRequest,
    ChatRequest,
    ConfirmSubscriptionRequest,
    CreateCheckoutRequest,
    CreatePaymentIntentRequest,
    GetSessionRequest,
    RefundRequest,
    SendEmailRequest,
    VerifyLicenseRequest,
)

# API response models
from .api_response import (
    CheckoutResponse,
    ErrorResponse,
    LicenseResponse,
    LifecycleResponse,
    PaymentIntentResponse,
    RefundResponse,
    SendEmailResponse,
    WebhookAck,
)

__all__ = [
    # Settings
    "ChatConfig",
    "CheckoutConfig",
    "GatewaySettings",
    "NotificationConfig",
    "PlanDefinition",
    "RefundConfig",
    "StripeConfig",
    "StripeCredentials",
    # Subscription
    "ENTITLED_STATUSES",
    "Customer",
    "IdentifierKind",
    "Invoice",
    "LicenseCheckResult",
    "LifecycleAction",
    "LifecycleOutcome",
    "LifecycleRequest",
    "OutcomeKind",
    "RefundRecord",
    "Subscription",
    "SubscriptionStatus",
    # Events
    "LifecycleEvent",
    "NotificationAction",
    "WebhookEventType",
    "WebhookResult",
    # API requests
    "CancelSubscriptionRequest",
    "ChatRequest",
    "ConfirmSubscriptionRequest",
    "CreateCheckoutRequest",
    "CreatePaymentIntentRequest",
    "GetSessionRequest",
    "RefundRequest",
    "SendEmailRequest",
    "VerifyLicenseRequest",
    # API responses
    "CheckoutResponse",
    "ErrorResponse",
    "LicenseResponse",
    "LifecycleResponse",
    "PaymentIntentResponse",
    "RefundResponse",
    "SendEmailResponse",
    "WebhookAck",
]
