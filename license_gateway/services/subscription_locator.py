"""Subscription lookup by subscription id or customer email.

Read-only. Resolves an identifier to exactly one Stripe subscription or
raises SubscriptionNotFoundError.
"""

from typing import Optional

from license_gateway.logging_config import get_logger, mask_email, short_id
from license_gateway.models.subscription import ENTITLED_STATUSES, Customer, Subscription
from license_gateway.repositories.stripe_gateway import (
    ProviderError,
    StripeGateway,
    SubscriptionNotFoundError,
)

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class SubscriptionLocator:
    """Finds the subscription a caller refers to."""

    def __init__(self, gateway: StripeGateway):
        self._gateway = gateway

    def locate(
        self,
        subscription_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Subscription:
        """Locate one subscription.

        A subscription id wins over an email when both are given.

        Args:
            subscription_id: Stripe subscription id
            email: Customer email (trimmed, compared case-insensitively)

        Returns:
            The located subscription

        Raises:
            SubscriptionNotFoundError: If nothing matches, or the id lookup fails for any reason
            ProviderError: If Stripe fails while listing customers or subscriptions
            ValueError: If neither identifier is given
        """
        if subscription_id:
            return self._by_id(subscription_id)
        if email:
            return self._by_email(email)
        raise ValueError("Subscription ID or email required")

    def locate_license_key(self, license_key: str) -> Subscription:
        """Locate by a license key, which is either a subscription id or an email.

        Every key is tried as a subscription id first and then as an email,
        whatever made the id lookup fail.
        """
        key = license_key.strip()
        try:
            return self._by_id(key)
        except SubscriptionNotFoundError:
            logger.debug("license_key_not_a_subscription_id", license_key=short_id(key))
            return self._by_email(key)

    def _by_id(self, subscription_id: str) -> Subscription:
        """Retrieve by id. Any failure, including a malformed id, is not-found."""
        try:
            subscription = self._gateway.retrieve_subscription(subscription_id.strip())
        except ProviderError as e:
            logger.warning(
                "subscription_lookup_failed",
                subscription_id=short_id(subscription_id),
                operation=e.operation,
                stripe_code=e.stripe_code,
                error=str(e),
            )
            raise SubscriptionNotFoundError(f"Subscription not found: {subscription_id}") from e
        logger.debug(
            "subscription_located",
            subscription_id=short_id(subscription.id),
            status=subscription.status.value,
            via="subscription_id",
        )
        return subscription

    def _by_email(self, email: str) -> Subscription:
        customers = self._customers_for_email(email)
        if not customers:
            logger.info("customer_not_found", email=mask_email(email))
            raise SubscriptionNotFoundError("Customer not found")

        for customer in customers:
            for subscription in self._gateway.list_subscriptions(customer.id):
                if subscription.status in ENTITLED_STATUSES:
                    logger.debug(
                        "subscription_located",
                        subscription_id=short_id(subscription.id),
                        status=subscription.status.value,
                        via="email",
                    )
                    return subscription

        logger.info(
            "no_active_subscription_for_email",
            email=mask_email(email),
            customers=len(customers),
        )
        raise SubscriptionNotFoundError("No active subscription found")

    def _customers_for_email(self, email: str) -> list[Customer]:
        """Customers whose email equals ``email`` ignoring case and surrounding whitespace.

        Stripe's email filter is case-sensitive, so both the trimmed input and
        its lower-cased form are queried and merged in provider order.
        """
        trimmed = email.strip()
        wanted = normalize_email(email)

        seen: dict[str, Customer] = {}
        for candidate in dict.fromkeys((trimmed, wanted)):
            for customer in self._gateway.find_customers_by_email(candidate):
                seen.setdefault(customer.id, customer)

        return [c for c in seen.values() if c.email and normalize_email(c.email) == wanted]
