"""Unit tests for NotificationDispatcher and email rendering."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from license_gateway.models.events import LifecycleEvent, NotificationAction
from license_gateway.models.settings import NotificationConfig
from license_gateway.models.subscription import OutcomeKind, SubscriptionStatus
from license_gateway.services.email_sender import EmailDelivery, EmailDeliveryError
from license_gateway.services.notification_dispatcher import (
    NotificationDispatcher,
    render_event,
)


@pytest.fixture
def config():
    return NotificationConfig(recipient="owner@example.com", subject_prefix="[Test]")


@pytest.fixture
def refund_event(now):
    return LifecycleEvent(
        action=NotificationAction.CANCEL,
        outcome=OutcomeKind.CANCELED_IMMEDIATELY_WITH_REFUND,
        subscription_id="sub_1",
        customer="jane@example.com",
        status=SubscriptionStatus.CANCELED,
        current_period_end=now + timedelta(days=362),
        occurred_at=now,
        refund_id="re_1",
        refund_amount=499,
        refund_currency="gbp",
        days_since_purchase=3.2,
    )


@pytest.fixture
def period_end_event(now):
    return LifecycleEvent(
        action=NotificationAction.CANCEL,
        outcome=OutcomeKind.CANCELED_AT_PERIOD_END,
        subscription_id="sub_2",
        customer="cus_2",
        status=SubscriptionStatus.ACTIVE,
        current_period_end=now + timedelta(days=100),
        occurred_at=now,
        reason="<b>too expensive</b>",
    )


class TestRenderEvent:
    def test_refund_email(self, refund_event, config):
        email = render_event(refund_event, config)

        assert email.to == "owner@example.com"
        assert email.subject == "[Test] Subscription Cancelled & Refunded - £4.99"
        assert "re_1" in email.html
        assert "jane@example.com" in email.html
        assert "sub_1" in email.html
        assert "<strong>Days Since Purchase:</strong> 3" in email.html

    def test_refunded_but_not_cancelled_email(self, refund_event, config):
        event = refund_event.model_copy(
            update={
                "outcome": OutcomeKind.REFUNDED_CANCEL_FAILED,
                "status": SubscriptionStatus.ACTIVE,
                "error": "Stripe is unavailable",
            }
        )

        email = render_event(event, config)

        assert email.subject == "[Test] ACTION REQUIRED: Refunded £4.99 but Cancellation Failed"
        assert "re_1" in email.html
        assert "Stripe is unavailable" in email.html

    def test_failed_operation_email(self, period_end_event, config):
        event = period_end_event.model_copy(
            update={"outcome": OutcomeKind.FAILED, "error": "Subscription sub_2 is already canceled"}
        )

        email = render_event(event, config)

        assert email.subject == "[Test] Subscription Cancel Failed"
        assert "Subscription sub_2 is already canceled" in email.html

    def test_period_end_email_escapes_reason(self, period_end_event, config):
        email = render_event(period_end_event, config)

        assert email.subject == "[Test] Subscription Cancellation Request"
        assert "&lt;b&gt;too expensive&lt;/b&gt;" in email.html
        assert "At period end" in email.html

    def test_fallback_reason_included(self, period_end_event, config):
        event = period_end_event.model_copy(update={"fallback_reason": "Refund failed: card_declined"})

        assert "card_declined" in render_event(event, config).html

    def test_reactivated_email(self, period_end_event, config):
        event = period_end_event.model_copy(
            update={"action": NotificationAction.REACTIVATE, "outcome": OutcomeKind.REACTIVATED}
        )

        assert render_event(event, config).subject == "[Test] Subscription Reactivated"


class TestNotificationDispatcher:
    def test_notify_delivers_in_background(self, refund_event, config):
        sender = MagicMock()
        sender.configured = True
        delivered = threading.Event()

        def send(to, subject, html=None):
            delivered.set()
            return EmailDelivery(delivered=True, message="sent", email_id="em_1")

        sender.send.side_effect = send
        dispatcher = NotificationDispatcher(config, sender=sender)

        future = dispatcher.notify(refund_event)

        assert future.result(timeout=5) == "em_1"
        assert delivered.is_set()
        to, subject = sender.send.call_args.args
        assert to == "owner@example.com"
        assert "£4.99" in subject
        dispatcher.shutdown()

    def test_notify_does_not_wait_for_delivery(self, refund_event, config):
        sender = MagicMock()
        release = threading.Event()
        sender.send.side_effect = lambda *a, **k: release.wait(5) and EmailDelivery(delivered=True, message="ok")
        dispatcher = NotificationDispatcher(config, sender=sender)

        future = dispatcher.notify(refund_event)

        assert not future.done()
        release.set()
        dispatcher.shutdown(wait=True)
        assert future.done()

    def test_delivery_failure_is_contained(self, refund_event, config):
        sender = MagicMock()
        sender.send.side_effect = EmailDeliveryError("Resend API error: 500", status_code=500)
        dispatcher = NotificationDispatcher(config, sender=sender)

        future = dispatcher.notify(refund_event)
        dispatcher.shutdown(wait=True)

        assert isinstance(future.exception(), EmailDeliveryError)

    def test_disabled_dispatcher_sends_nothing(self, refund_event):
        sender = MagicMock()
        dispatcher = NotificationDispatcher(NotificationConfig(enabled=False), sender=sender)

        assert dispatcher.notify(refund_event) is None
        sender.send.assert_not_called()

    def test_shutdown_is_idempotent(self, config):
        dispatcher = NotificationDispatcher(config, sender=MagicMock())

        dispatcher.shutdown()
        dispatcher.shutdown()
