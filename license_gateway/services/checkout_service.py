"""Checkout and session bootstrap.

Responsibilities:
- Create hosted checkout sessions for the configured plan
- Create incomplete subscriptions for the embedded payment flow
- Resolve a completed checkout session into its subscription
- Confirm a subscription id after payment
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from license_gateway.config import ConfigurationError
from license_gateway.logging_config import get_logger, mask_email, short_id
from license_gateway.models.settings import GatewaySettings
from license_gateway.models.subscription import Customer, LicenseCheckResult, Subscription
from license_gateway.repositories.stripe_gateway import (
    ProviderError,
    StripeGateway,
    SubscriptionNotFoundError,
)
from license_gateway.services.license_verifier import describe_subscription
from license_gateway.utils.billing_period import billing_period_to_recurring, period_to_whole_days

logger = get_logger(__name__)


class CheckoutSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    redirect_url: Optional[str]
    publishable_key: str


class SessionState(str, Enum):
    RESOLVED = "resolved"
    PENDING = "pending"
    NOT_FOUND = "not_found"


class SessionResolution(BaseModel):
    """What a checkout session currently points at."""

    model_config = ConfigDict(frozen=True)

    state: SessionState
    session_id: str
    subscription: Optional[Subscription] = None
    email: Optional[str] = None


class EmbeddedSubscription(BaseModel):
    """Incomplete subscription awaiting payment in the embedded form."""

    model_config = ConfigDict(frozen=True)

    client_secret: str
    subscription_id: str
    customer_id: str
    publishable_key: str
    price_id: str


class CheckoutService:
    """Creates and resolves checkout sessions for the single configured plan."""

    def __init__(self, gateway: StripeGateway, settings: GatewaySettings):
        self._gateway = gateway
        self._settings = settings
        self._plan = settings.plan

    def _publishable_key(self) -> str:
        key = self._settings.credentials.publishable_key
        if not key:
            key_name = "TEST_STRIPE_PUBLISHABLE_KEY" if self._settings.test_mode else "STRIPE_PUBLISHABLE_KEY"
            raise ConfigurationError(f"{key_name} environment variable not set")
        return key

    def _find_or_create_customer(self, email: Optional[str]) -> Customer:
        if email:
            existing = self._gateway.find_customers_by_email(email.strip())
            if existing:
                logger.debug("customer_reused", customer_id=existing[0].id, email=mask_email(email))
                return existing[0]
        customer = self._gateway.create_customer(
            email.strip() if email else None,
            metadata=dict(self._settings.checkout.metadata),
        )
        logger.info("customer_created", customer_id=customer.id, email=mask_email(email))
        return customer

    def _line_item(self) -> dict[str, Any]:
        if self._plan.price_id:
            return {"price": self._plan.price_id, "quantity": 1}
        return {
            "price_data": {
                "currency": self._plan.currency,
                "product_data": {
                    "name": self._plan.name,
                    "description": self._plan.description,
                },
                "unit_amount": self._plan.unit_amount,
                "recurring": billing_period_to_recurring(self._plan.billing_period),
            },
            "quantity": 1,
        }

    def create_session(self, email: Optional[str] = None, return_url: Optional[str] = None) -> CheckoutSession:
        """Create a subscription-mode hosted checkout session.

        Args:
            email: Customer email; an existing customer with this email is reused
            return_url: Where the cancel button leads (defaults to configured cancel URL)

        Returns:
            CheckoutSession with the redirect URL and publishable key

        Raises:
            ConfigurationError: If the publishable key is missing
            ProviderError: If Stripe fails
        """
        publishable_key = self._publishable_key()
        checkout = self._settings.checkout

        params: dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": list(checkout.payment_method_types),
            "line_items": [self._line_item()],
            "success_url": checkout.success_url,
            "cancel_url": return_url or checkout.cancel_url,
            "metadata": {**checkout.metadata, "userEmail": email or ""},
        }
        if self._plan.trial_period:
            params["subscription_data"] = {
                "trial_period_days": period_to_whole_days(self._plan.trial_period)
            }
        if email:
            params["customer"] = self._find_or_create_customer(email).id

        session = self._gateway.create_checkout_session(**params)
        logger.info(
            "checkout_session_created",
            session_id=short_id(session["id"]),
            email=mask_email(email),
            plan=self._plan.id,
        )
        return CheckoutSession(
            session_id=session["id"],
            redirect_url=session.get("url"),
            publishable_key=publishable_key,
        )

    def resolve_session(self, session_id: str) -> SessionResolution:
        """Resolve a checkout session into its subscription.

        Read-only and safe to poll. A session whose subscription has not been
        created yet is ``pending``; an unknown session id is ``not_found``.
        """
        try:
            session = self._gateway.retrieve_checkout_session(session_id)
        except SubscriptionNotFoundError:
            logger.info("checkout_session_not_found", session_id=short_id(session_id))
            return SessionResolution(state=SessionState.NOT_FOUND, session_id=session_id)

        details = session.get("customer_details") or {}
        email = session.get("customer_email") or details.get("email")

        ref = session.get("subscription")
        if not ref:
            logger.info(
                "checkout_session_pending",
                session_id=short_id(session_id),
                status=session.get("status"),
            )
            return SessionResolution(state=SessionState.PENDING, session_id=session_id, email=email)

        if isinstance(ref, str):
            subscription = self._gateway.retrieve_subscription(ref)
        else:
            subscription = Subscription.from_stripe(ref)

        logger.info(
            "checkout_session_resolved",
            session_id=short_id(session_id),
            subscription_id=short_id(subscription.id),
            status=subscription.status.value,
        )
        return SessionResolution(
            state=SessionState.RESOLVED,
            session_id=session_id,
            subscription=subscription,
            email=email,
        )

    def create_embedded_subscription(self, email: Optional[str] = None) -> EmbeddedSubscription:
        """Create an incomplete subscription and return its payment intent secret.

        Raises:
            ConfigurationError: If the publishable key is missing
            ProviderError: If Stripe fails or returns no payment intent
        """
        publishable_key = self._publishable_key()
        customer = self._find_or_create_customer(email)

        if self._plan.price_id:
            price = self._gateway.retrieve_price(self._plan.price_id)
        else:
            price = self._gateway.create_price(
                currency=self._plan.currency,
                unit_amount=self._plan.unit_amount,
                recurring=billing_period_to_recurring(self._plan.billing_period),
                product_data={"name": self._plan.name},
            )

        subscription = self._gateway.create_incomplete_subscription(customer.id, price["id"])
        invoice = subscription.get("latest_invoice") or {}
        payment_intent = invoice.get("payment_intent") if not isinstance(invoice, str) else None
        if not payment_intent or isinstance(payment_intent, str):
            raise ProviderError(
                "Subscription was created without an expandable payment intent",
                operation="create_subscription",
            )

        logger.info(
            "embedded_subscription_created",
            subscription_id=short_id(subscription["id"]),
            customer_id=customer.id,
            price_id=price["id"],
        )
        return EmbeddedSubscription(
            client_secret=payment_intent["client_secret"],
            subscription_id=subscription["id"],
            customer_id=customer.id,
            publishable_key=publishable_key,
            price_id=price["id"],
        )

    def confirm_subscription(self, subscription_id: str, now: datetime) -> LicenseCheckResult:
        """Check one subscription id after payment.

        Raises:
            SubscriptionNotFoundError: If the id is unknown
        """
        subscription = self._gateway.retrieve_subscription(subscription_id.strip())
        result = describe_subscription(subscription, now)
        logger.info(
            "subscription_confirmed",
            subscription_id=short_id(subscription.id),
            valid=result.valid,
            status=subscription.status.value,
        )
        return result
