"""Unit tests for SubscriptionLocator."""

from unittest.mock import patch

import pytest
import stripe

from license_gateway.models.subscription import SubscriptionStatus
from license_gateway.repositories.stripe_gateway import (
    ProviderError,
    StripeGateway,
    SubscriptionNotFoundError,
)
from license_gateway.services.subscription_locator import SubscriptionLocator, normalize_email


@pytest.fixture
def locator(gateway):
    return SubscriptionLocator(gateway)


class TestLocateById:
    def test_found(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory("sub_abc"))

        assert locator.locate(subscription_id="sub_abc").id == "sub_abc"

    def test_id_wins_over_email(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory("sub_abc"))

        subscription = locator.locate(subscription_id="sub_abc", email="someone@example.com")

        assert subscription.id == "sub_abc"
        assert "list_customers" not in gateway.call_names()

    def test_unknown_id(self, locator):
        with pytest.raises(SubscriptionNotFoundError):
            locator.locate(subscription_id="sub_nope")

    def test_no_identifier(self, locator):
        with pytest.raises(ValueError):
            locator.locate()

    def test_provider_failure_on_id_is_not_found(self, locator, gateway):
        gateway.fail("retrieve_subscription", "Connection reset")

        with pytest.raises(SubscriptionNotFoundError) as exc_info:
            locator.locate(subscription_id="sub_1")

        assert isinstance(exc_info.value.__cause__, ProviderError)


class TestLocateByEmail:
    def test_case_insensitive_and_trimmed(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory(), email="jane@example.com")

        subscription = locator.locate(email="  JANE@Example.COM ")

        assert subscription.id == "sub_1"

    def test_stored_mixed_case_email(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory(), email="Jane@Example.com")

        assert locator.locate(email="Jane@Example.com").id == "sub_1"

    def test_queries_both_forms_once(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory(), email="jane@example.com")

        locator.locate(email="Jane@example.com")

        queried = [arg for name, arg in gateway.calls if name == "list_customers"]
        assert queried == ["Jane@example.com", "jane@example.com"]

    def test_lowercase_input_queried_once(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory(), email="jane@example.com")

        locator.locate(email="jane@example.com")

        assert gateway.call_names().count("list_customers") == 1

    def test_first_entitled_subscription_wins(self, locator, gateway, subscription_factory):
        gateway.add_subscription(
            subscription_factory("sub_old", status=SubscriptionStatus.CANCELED), email="jane@example.com"
        )
        gateway.add_subscription(subscription_factory("sub_trial", status=SubscriptionStatus.TRIALING))
        gateway.add_subscription(subscription_factory("sub_active"))

        assert locator.locate(email="jane@example.com").id == "sub_trial"

    def test_searches_every_matching_customer(self, locator, gateway, subscription_factory):
        gateway.add_subscription(
            subscription_factory("sub_a", customer_id="cus_a", status=SubscriptionStatus.PAST_DUE),
            email="jane@example.com",
        )
        gateway.add_subscription(
            subscription_factory("sub_b", customer_id="cus_b"),
            email="jane@example.com",
        )

        assert locator.locate(email="jane@example.com").id == "sub_b"

    def test_unknown_customer(self, locator):
        with pytest.raises(SubscriptionNotFoundError, match="Customer not found"):
            locator.locate(email="nobody@example.com")

    def test_customer_without_active_subscription(self, locator, gateway, subscription_factory):
        gateway.add_subscription(
            subscription_factory(status=SubscriptionStatus.CANCELED), email="jane@example.com"
        )

        with pytest.raises(SubscriptionNotFoundError, match="No active subscription"):
            locator.locate(email="jane@example.com")

    def test_provider_failure_is_not_not_found(self, locator, gateway):
        gateway.fail("list_customers")

        with pytest.raises(ProviderError):
            locator.locate(email="jane@example.com")


class TestLocateLicenseKey:
    def test_email_key_after_failed_id_lookup(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory(), email="jane@example.com")

        assert locator.locate_license_key("jane@example.com").id == "sub_1"
        assert gateway.call_names()[:2] == ["retrieve_subscription", "list_customers"]

    def test_provider_failure_on_id_falls_back_to_email(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory(), email="jane@example.com")
        gateway.fail("retrieve_subscription", "Invalid string: jane@example.com")

        assert locator.locate_license_key("jane@example.com").id == "sub_1"

    def test_subscription_id_key(self, locator, gateway, subscription_factory):
        gateway.add_subscription(subscription_factory("sub_key"))

        assert locator.locate_license_key(" sub_key ").id == "sub_key"

    def test_falls_back_to_email_lookup(self, locator, gateway):
        with pytest.raises(SubscriptionNotFoundError):
            locator.locate_license_key("not-a-subscription")

        assert gateway.call_names() == ["retrieve_subscription", "list_customers"]


def test_normalize_email():
    assert normalize_email("  Jane@Example.COM ") == "jane@example.com"


class TestLocateThroughStripe:
    """Id lookups against the real gateway with the SDK patched."""

    @pytest.fixture
    def stripe_locator(self, settings):
        return SubscriptionLocator(StripeGateway(settings))

    def test_malformed_id_is_not_found(self, stripe_locator):
        error = stripe.InvalidRequestError(
            "Invalid string: sub_☃", "id", code="parameter_invalid_string", http_status=400
        )
        with patch("stripe.Subscription.retrieve", side_effect=error):
            with pytest.raises(SubscriptionNotFoundError):
                stripe_locator.locate(subscription_id="sub_☃")

    def test_connection_error_is_not_found(self, stripe_locator):
        with patch("stripe.Subscription.retrieve", side_effect=stripe.APIConnectionError("conn reset")):
            with pytest.raises(SubscriptionNotFoundError):
                stripe_locator.locate(subscription_id="sub_1")
