"""Stripe gateway - the only place that talks to the payment provider.

Stripe is the single source of truth: every read here is a fresh provider
call and nothing is cached between requests. Provider failures are raised as
ProviderError; lookups of unknown objects as SubscriptionNotFoundError.
"""

from typing import Any, Callable, Optional

import stripe

from license_gateway.config import ConfigurationError
from license_gateway.logging_config import get_logger, mask_email
from license_gateway.models.settings import GatewaySettings
from license_gateway.models.subscription import (
    Customer,
    Invoice,
    RefundRecord,
    Subscription,
)

logger = get_logger(__name__)

LIST_PAGE_SIZE = 100


class SubscriptionNotFoundError(Exception):
    """Raised when a subscription, customer or session does not exist."""

    pass


class ProviderError(Exception):
    """Raised when a Stripe call fails for a reason other than not-found."""

    def __init__(self, message: str, operation: str, stripe_code: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.stripe_code = stripe_code


class WebhookSignatureError(Exception):
    """Raised when a webhook payload fails signature verification."""

    pass


def _is_missing(error: stripe.StripeError) -> bool:
    return isinstance(error, stripe.InvalidRequestError) and (
        error.code == "resource_missing" or error.http_status == 404
    )


class StripeGateway:
    """Thin typed wrapper around the Stripe SDK.

    Every call passes the configured API key and pinned API version
    explicitly, so two gateways built from different settings never share
    credentials through SDK globals.
    """

    def __init__(self, settings: GatewaySettings):
        """Initialize the gateway.

        Args:
            settings: Service settings with the resolved Stripe credentials

        Raises:
            ConfigurationError: If no Stripe secret key is configured
        """
        if not settings.credentials.secret_key:
            key_name = "TEST_STRIPE_SECRET_KEY" if settings.test_mode else "STRIPE_SECRET_KEY"
            raise ConfigurationError(f"{key_name} environment variable not set")

        self._settings = settings
        self._api_key = settings.credentials.secret_key
        self._api_version = settings.stripe.api_version
        stripe.max_network_retries = settings.stripe.max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=settings.stripe.timeout_seconds)

        logger.info(
            "stripe_gateway_initialized",
            mode=settings.stripe.mode,
            api_version=self._api_version,
            timeout_seconds=settings.stripe.timeout_seconds,
        )

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Invoke a Stripe SDK function with credentials and error translation."""
        try:
            return fn(*args, api_key=self._api_key, stripe_version=self._api_version, **kwargs)
        except stripe.StripeError as e:
            if _is_missing(e):
                raise SubscriptionNotFoundError(f"{operation}: {e.user_message or str(e)}") from e
            logger.error(
                "stripe_call_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                stripe_code=getattr(e, "code", None),
            )
            raise ProviderError(str(e), operation=operation, stripe_code=getattr(e, "code", None)) from e

    # Subscriptions

    def retrieve_subscription(self, subscription_id: str) -> Subscription:
        """Get subscription by id.

        Raises:
            SubscriptionNotFoundError: If the id is unknown or malformed
            ProviderError: On any other Stripe failure
        """
        obj = self._call("retrieve_subscription", stripe.Subscription.retrieve, subscription_id)
        return Subscription.from_stripe(obj)

    def list_subscriptions(self, customer_id: str) -> list[Subscription]:
        """List a customer's non-canceled subscriptions, most recent first."""
        page = self._call(
            "list_subscriptions",
            stripe.Subscription.list,
            customer=customer_id,
            limit=LIST_PAGE_SIZE,
        )
        return [Subscription.from_stripe(obj) for obj in page["data"]]

    def set_cancel_at_period_end(self, subscription_id: str, cancel_at_period_end: bool) -> Subscription:
        """Schedule (True) or unschedule (False) cancellation at period end."""
        obj = self._call(
            "update_subscription",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=cancel_at_period_end,
        )
        return Subscription.from_stripe(obj)

    def cancel_immediately(self, subscription_id: str) -> Subscription:
        """End the subscription now. Access is lost immediately."""
        obj = self._call("cancel_subscription", stripe.Subscription.cancel, subscription_id)
        return Subscription.from_stripe(obj)

    # Customers

    def find_customers_by_email(self, email: str) -> list[Customer]:
        """List customers whose stored email is exactly ``email`` (case-sensitive on Stripe's side)."""
        page = self._call(
            "list_customers",
            stripe.Customer.list,
            email=email,
            limit=LIST_PAGE_SIZE,
        )
        customers = [Customer.from_stripe(obj) for obj in page["data"]]
        logger.debug("customers_listed", email=mask_email(email), count=len(customers))
        return customers

    def create_customer(self, email: Optional[str], metadata: Optional[dict[str, str]] = None) -> Customer:
        params: dict[str, Any] = {"metadata": metadata or {}}
        if email:
            params["email"] = email
        obj = self._call("create_customer", stripe.Customer.create, **params)
        return Customer.from_stripe(obj)

    # Invoices and refunds

    def latest_paid_invoice(self, subscription_id: str) -> Optional[Invoice]:
        """Fresh lookup of the most recent paid invoice, with its charge expanded."""
        page = self._call(
            "list_invoices",
            stripe.Invoice.list,
            subscription=subscription_id,
            status="paid",
            limit=1,
            expand=["data.charge"],
        )
        if not page["data"]:
            return None
        return Invoice.from_stripe(page["data"][0])

    def refund_charge(
        self,
        charge_id: str,
        reason: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> RefundRecord:
        """Refund a charge in full.

        The idempotency key is derived from the charge, so a repeated request
        for the same charge returns the original refund instead of a second one.
        """
        obj = self._call(
            "create_refund",
            stripe.Refund.create,
            charge=charge_id,
            reason=reason,
            metadata=metadata or {},
            idempotency_key=f"refund-{charge_id}",
        )
        return RefundRecord.from_stripe(obj)

    # Checkout

    def create_checkout_session(self, **params: Any) -> Any:
        return self._call("create_checkout_session", stripe.checkout.Session.create, **params)

    def retrieve_checkout_session(self, session_id: str) -> Any:
        """Get a checkout session with its subscription expanded.

        Raises:
            SubscriptionNotFoundError: If the session id is unknown
        """
        return self._call(
            "retrieve_checkout_session",
            stripe.checkout.Session.retrieve,
            session_id,
            expand=["subscription"],
        )

    def retrieve_price(self, price_id: str) -> Any:
        return self._call("retrieve_price", stripe.Price.retrieve, price_id)

    def create_price(self, **params: Any) -> Any:
        return self._call("create_price", stripe.Price.create, **params)

    def create_incomplete_subscription(self, customer_id: str, price_id: str) -> Any:
        """Create a subscription awaiting its first payment (embedded payment flow)."""
        return self._call(
            "create_subscription",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
        )

    # Webhooks

    def construct_webhook_event(self, payload: bytes, signature_header: Optional[str]) -> Any:
        """Verify a webhook signature and parse the event.

        Raises:
            ConfigurationError: If no webhook secret is configured
            WebhookSignatureError: If the signature is missing or invalid
        """
        secret = self._settings.credentials.webhook_secret
        if not secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET environment variable not set")
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            return stripe.Webhook.construct_event(payload, signature_header, secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
        except ValueError as e:
            # Payload that is not valid JSON
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

    def describe(self) -> dict[str, str]:
        return {"stripe_mode": self._settings.stripe.mode, "api_version": self._api_version}
