"""Shared fixtures: an in-memory Stripe gateway, settings and a fixed clock."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from license_gateway.models.settings import (
    GatewaySettings,
    NotificationConfig,
    StripeCredentials,
)
from license_gateway.models.subscription import (
    Customer,
    Invoice,
    RefundRecord,
    Subscription,
    SubscriptionStatus,
)
from license_gateway.repositories.stripe_gateway import (
    ProviderError,
    SubscriptionNotFoundError,
    WebhookSignatureError,
)
from license_gateway.services.clock import FixedClock

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


def make_subscription(
    subscription_id: str = "sub_1",
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    customer_id: str = "cus_1",
    created_ago: timedelta = timedelta(days=3),
    cancel_at_period_end: bool = False,
    period_end_in: timedelta = timedelta(days=362),
    trial_end: Optional[datetime] = None,
) -> Subscription:
    return Subscription(
        id=subscription_id,
        status=status,
        customer_id=customer_id,
        created_at=NOW - created_ago,
        current_period_end=NOW + period_end_in,
        cancel_at_period_end=cancel_at_period_end,
        trial_end=trial_end,
    )


class FakeStripeGateway:
    """In-memory stand-in for StripeGateway.

    Records every provider call in ``calls`` so tests can assert ordering, and
    raises ProviderError for operations listed in ``failures``.
    """

    def __init__(self):
        self.subscriptions: dict[str, Subscription] = {}
        self.customers: dict[str, Customer] = {}
        self.customer_subscriptions: dict[str, list[str]] = {}
        self.invoices: dict[str, Invoice] = {}
        self.refunds: list[RefundRecord] = []
        self.sessions: dict[str, dict[str, Any]] = {}
        self.events: dict[str, dict[str, Any]] = {}
        self.failures: dict[str, str] = {}
        self.calls: list[tuple[str, Any]] = []
        self._counter = 0

    # Test setup helpers

    def add_subscription(self, subscription: Subscription, email: Optional[str] = None) -> Subscription:
        self.subscriptions[subscription.id] = subscription
        if email is not None and subscription.customer_id not in self.customers:
            self.customers[subscription.customer_id] = Customer(id=subscription.customer_id, email=email)
        self.customer_subscriptions.setdefault(subscription.customer_id, []).append(subscription.id)
        return subscription

    def add_paid_invoice(
        self,
        subscription_id: str,
        charge_id: Optional[str] = "ch_1",
        amount_paid: int = 499,
        currency: str = "gbp",
        charge_refunded: bool = False,
    ) -> Invoice:
        invoice = Invoice(
            id=f"in_{subscription_id}",
            charge_id=charge_id,
            amount_paid=amount_paid,
            currency=currency,
            charge_refunded=charge_refunded,
        )
        self.invoices[subscription_id] = invoice
        return invoice

    def fail(self, operation: str, message: str = "Stripe is unavailable") -> None:
        self.failures[operation] = message

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _record(self, operation: str, arg: Any = None) -> None:
        self.calls.append((operation, arg))
        if operation in self.failures:
            raise ProviderError(self.failures[operation], operation=operation, stripe_code="api_error")

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    # StripeGateway interface

    def retrieve_subscription(self, subscription_id: str) -> Subscription:
        self._record("retrieve_subscription", subscription_id)
        if subscription_id not in self.subscriptions:
            raise SubscriptionNotFoundError(f"No such subscription: '{subscription_id}'")
        return self.subscriptions[subscription_id]

    def list_subscriptions(self, customer_id: str) -> list[Subscription]:
        self._record("list_subscriptions", customer_id)
        return [self.subscriptions[sid] for sid in self.customer_subscriptions.get(customer_id, [])]

    def set_cancel_at_period_end(self, subscription_id: str, cancel_at_period_end: bool) -> Subscription:
        self._record("update_subscription", (subscription_id, cancel_at_period_end))
        updated = self.subscriptions[subscription_id].model_copy(
            update={"cancel_at_period_end": cancel_at_period_end}
        )
        self.subscriptions[subscription_id] = updated
        return updated

    def cancel_immediately(self, subscription_id: str) -> Subscription:
        self._record("cancel_subscription", subscription_id)
        updated = self.subscriptions[subscription_id].model_copy(
            update={"status": SubscriptionStatus.CANCELED}
        )
        self.subscriptions[subscription_id] = updated
        return updated

    def find_customers_by_email(self, email: str) -> list[Customer]:
        self._record("list_customers", email)
        # Stripe matches the stored email exactly
        return [c for c in self.customers.values() if c.email == email]

    def create_customer(self, email: Optional[str], metadata: Optional[dict[str, str]] = None) -> Customer:
        self._record("create_customer", email)
        customer = Customer(id=self._next_id("cus_new"), email=email)
        self.customers[customer.id] = customer
        return customer

    def latest_paid_invoice(self, subscription_id: str) -> Optional[Invoice]:
        self._record("list_invoices", subscription_id)
        return self.invoices.get(subscription_id)

    def refund_charge(self, charge_id: str, reason: str, metadata: Optional[dict[str, str]] = None) -> RefundRecord:
        self._record("create_refund", charge_id)
        invoice = next(i for i in self.invoices.values() if i.charge_id == charge_id)
        refund = RefundRecord(
            id=self._next_id("re"),
            amount=invoice.amount_paid,
            currency=invoice.currency,
            reason=reason,
            charge_id=charge_id,
        )
        self.refunds.append(refund)
        return refund

    def create_checkout_session(self, **params: Any) -> dict[str, Any]:
        self._record("create_checkout_session", params)
        session_id = self._next_id("cs_test")
        session = {"id": session_id, "url": f"https://checkout.stripe.com/c/pay/{session_id}", **params}
        self.sessions[session_id] = session
        return session

    def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        self._record("retrieve_checkout_session", session_id)
        if session_id not in self.sessions:
            raise SubscriptionNotFoundError(f"No such checkout.session: '{session_id}'")
        return self.sessions[session_id]

    def retrieve_price(self, price_id: str) -> dict[str, Any]:
        self._record("retrieve_price", price_id)
        return {"id": price_id}

    def create_price(self, **params: Any) -> dict[str, Any]:
        self._record("create_price", params)
        return {"id": self._next_id("price"), **params}

    def create_incomplete_subscription(self, customer_id: str, price_id: str) -> dict[str, Any]:
        self._record("create_subscription", (customer_id, price_id))
        subscription_id = self._next_id("sub_new")
        return {
            "id": subscription_id,
            "customer": customer_id,
            "status": "incomplete",
            "latest_invoice": {
                "id": self._next_id("in"),
                "payment_intent": {"id": "pi_1", "client_secret": "pi_1_secret_abc"},
            },
        }

    def construct_webhook_event(self, payload: bytes, signature_header: Optional[str]) -> dict[str, Any]:
        self._record("construct_webhook_event", signature_header)
        if signature_header not in self.events:
            raise WebhookSignatureError("No signatures found matching the expected signature for payload")
        return self.events[signature_header]

    def describe(self) -> dict[str, str]:
        return {"stripe_mode": "test", "api_version": "2024-06-20"}


class RecordingDispatcher:
    """Notification dispatcher that keeps events instead of emailing them."""

    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)
        return None

    def shutdown(self, wait: bool = True) -> None:
        pass


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def gateway() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        credentials=StripeCredentials(
            secret_key="sk_test_123",
            publishable_key="pk_test_123",
            webhook_secret="whsec_123",
        ),
        notifications=NotificationConfig(recipient="admin@example.com"),
    )


@pytest.fixture
def subscription_factory():
    """Build Subscription snapshots relative to NOW."""
    return make_subscription
