"""Unit tests for WebhookIngestor."""

from unittest.mock import MagicMock

import pytest

from license_gateway.services.checkout_service import CheckoutService
from license_gateway.services.webhook_ingestor import WebhookIngestor


@pytest.fixture
def checkout(gateway, settings):
    return CheckoutService(gateway, settings)


@pytest.fixture
def ingestor(gateway, checkout):
    return WebhookIngestor(gateway, checkout)


def event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


class TestSignatureVerification:
    def test_invalid_signature_rejected_without_inspection(self, gateway, settings):
        checkout = MagicMock(spec=CheckoutService)
        ingestor = WebhookIngestor(gateway, checkout)

        result = ingestor.ingest(b'{"type": "checkout.session.completed"}', "t=1,v1=bad")

        assert result.accepted is False
        assert result.error
        assert result.event_type is None
        assert gateway.call_names() == ["construct_webhook_event"]
        checkout.resolve_session.assert_not_called()

    def test_missing_signature_rejected(self, ingestor):
        assert ingestor.ingest(b"{}", None).accepted is False


class TestEventDispatch:
    def test_checkout_completed_resolves_session(self, ingestor, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory("sub_paid"))
        gateway.sessions["cs_1"] = {"id": "cs_1", "mode": "subscription", "subscription": "sub_paid"}
        gateway.events["sig_ok"] = event(
            "evt_1", "checkout.session.completed", gateway.sessions["cs_1"]
        )

        result = ingestor.ingest(b"payload", "sig_ok")

        assert result.accepted is True
        assert result.handled is True
        assert result.event_id == "evt_1"
        assert "retrieve_checkout_session" in gateway.call_names()
        assert ("retrieve_subscription", "sub_paid") in gateway.calls

    def test_payment_mode_checkout_not_resolved(self, ingestor, gateway):
        gateway.events["sig_ok"] = event(
            "evt_2", "checkout.session.completed", {"id": "cs_2", "mode": "payment", "subscription": None}
        )

        result = ingestor.ingest(b"payload", "sig_ok")

        assert result.accepted is True
        assert "retrieve_checkout_session" not in gateway.call_names()

    @pytest.mark.parametrize("event_type", ["customer.subscription.updated", "customer.subscription.deleted"])
    def test_subscription_changes_observed(self, ingestor, gateway, event_type):
        gateway.events["sig_ok"] = event("evt_3", event_type, {"id": "sub_1", "status": "canceled"})

        result = ingestor.ingest(b"payload", "sig_ok")

        assert result.accepted is True
        assert result.handled is True
        assert result.event_type == event_type

    def test_unknown_event_acknowledged(self, ingestor, gateway):
        gateway.events["sig_ok"] = event("evt_4", "invoice.paid", {"id": "in_1"})

        result = ingestor.ingest(b"payload", "sig_ok")

        assert result.accepted is True
        assert result.handled is False

    def test_processing_failure_still_acknowledged(self, ingestor, gateway):
        gateway.sessions["cs_1"] = {"id": "cs_1", "mode": "subscription", "subscription": "sub_x"}
        gateway.events["sig_ok"] = event("evt_5", "checkout.session.completed", gateway.sessions["cs_1"])
        gateway.fail("retrieve_subscription")

        result = ingestor.ingest(b"payload", "sig_ok")

        assert result.accepted is True
        assert result.error is None
