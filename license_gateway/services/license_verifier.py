"""License verification: does a license key grant access right now?"""

from datetime import datetime

from license_gateway.logging_config import get_logger, short_id
from license_gateway.models.subscription import (
    ENTITLED_STATUSES,
    LicenseCheckResult,
    Subscription,
)
from license_gateway.services.subscription_locator import SubscriptionLocator

logger = get_logger(__name__)


def describe_subscription(subscription: Subscription, now: datetime) -> LicenseCheckResult:
    """Derive the entitlement for a subscription at ``now``.

    Only active and trialing subscriptions whose current period has not ended
    are valid. Non-entitled results still carry the status so callers can tell
    a canceled subscription from an unknown key.
    """
    if subscription.status not in ENTITLED_STATUSES:
        return LicenseCheckResult(
            valid=False,
            status=subscription.status,
            subscription_id=subscription.id,
            customer_id=subscription.customer_id,
            error="Subscription is not active",
        )

    if subscription.current_period_end < now:
        return LicenseCheckResult(
            valid=False,
            status=subscription.status,
            subscription_id=subscription.id,
            expiry_date=subscription.current_period_end,
            error="Subscription has expired",
        )

    return LicenseCheckResult(
        valid=True,
        status=subscription.status,
        expiry_date=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
        subscription_id=subscription.id,
        customer_id=subscription.customer_id,
        current_period_end=subscription.current_period_end_epoch,
        trial_end=subscription.trial_end_epoch,
    )


class LicenseVerifier:
    """Checks license keys against Stripe. Stateless; every check is fresh."""

    def __init__(self, locator: SubscriptionLocator):
        self._locator = locator

    def check(self, license_key: str, now: datetime) -> LicenseCheckResult:
        """Verify a license key.

        Args:
            license_key: Subscription id or customer email
            now: Request-processing instant

        Returns:
            LicenseCheckResult

        Raises:
            SubscriptionNotFoundError: If the key matches no subscription
            ProviderError: If Stripe fails
        """
        subscription = self._locator.locate_license_key(license_key)
        result = describe_subscription(subscription, now)
        logger.info(
            "license_checked",
            subscription_id=short_id(subscription.id),
            valid=result.valid,
            status=subscription.status.value,
        )
        return result
