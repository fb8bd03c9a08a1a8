"""State change logging for subscriptions and refunds.

Tracks provider-side transitions with before/after values for auditing.
Stripe holds the state; these log lines are the only local trace of what
this service changed.
"""

from typing import Any, Optional

from license_gateway.logging_config import get_logger, short_id

logger = get_logger(__name__)


def log_cancel_flag_change(
    subscription_id: str,
    old_value: bool,
    new_value: bool,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a cancel_at_period_end change.

    Args:
        subscription_id: Stripe subscription id
        old_value: Previous cancel_at_period_end
        new_value: New cancel_at_period_end
        reason: Reason for change
        **extra_context: Additional context (customer_id, period end, etc.)
    """
    logger.info(
        "cancel_at_period_end_changed",
        subscription_id=short_id(subscription_id),
        old_value=old_value,
        new_value=new_value,
        reason=reason,
        **extra_context,
    )


def log_subscription_state_change(
    subscription_id: str,
    old_status: Any,
    new_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log subscription status change.

    Args:
        subscription_id: Stripe subscription id
        old_status: Previous status value
        new_status: New status value
        reason: Reason for state change
        **extra_context: Additional context
    """
    logger.info(
        "subscription_state_changed",
        subscription_id=short_id(subscription_id),
        old_status=str(old_status),
        new_status=str(new_status),
        reason=reason,
        **extra_context,
    )


def log_refund_issued(
    subscription_id: str,
    refund_id: str,
    charge_id: str,
    amount: int,
    currency: str,
    **extra_context: Any,
) -> None:
    """Log a refund created against a subscription's charge."""
    logger.info(
        "refund_issued",
        subscription_id=short_id(subscription_id),
        refund_id=refund_id,
        charge_id=charge_id,
        amount=amount,
        currency=currency,
        **extra_context,
    )


def log_refund_fallback(
    subscription_id: str,
    fallback_reason: str,
    **extra_context: Any,
) -> None:
    """Log an auto-refund request that degraded to a period-end cancellation."""
    logger.warning(
        "refund_fallback_to_period_end",
        subscription_id=short_id(subscription_id),
        fallback_reason=fallback_reason,
        **extra_context,
    )
