"""Refund window policy.

Pure decision: is a subscription still inside its refund window? No I/O;
the caller supplies ``now``.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from license_gateway.models.subscription import Subscription
from license_gateway.utils.billing_period import billing_period_to_timedelta

DEFAULT_REFUND_WINDOW = timedelta(days=7)
ONE_DAY = timedelta(days=1)


class RefundEligibility(BaseModel):
    """Result of evaluating the refund window."""

    model_config = ConfigDict(frozen=True)

    eligible: bool
    days_since_purchase: float


def refund_window_from_period(period: str) -> timedelta:
    """Build the window from an ISO 8601 duration such as ``P7D``."""
    return billing_period_to_timedelta(period)


def is_refund_eligible(
    subscription: Subscription,
    now: datetime,
    window: timedelta = DEFAULT_REFUND_WINDOW,
) -> RefundEligibility:
    """Evaluate the refund window for a subscription.

    The boundary is inclusive: a subscription created exactly ``window``
    before ``now`` is eligible. The comparison is done on timedeltas, not on
    the rounded day count, so it is exact to the microsecond.

    Args:
        subscription: Subscription snapshot
        now: Request-processing instant (timezone-aware)
        window: Refund window length

    Returns:
        RefundEligibility with the fractional days since purchase
    """
    elapsed = now - subscription.created_at
    return RefundEligibility(
        eligible=elapsed <= window,
        days_since_purchase=elapsed / ONE_DAY,
    )
