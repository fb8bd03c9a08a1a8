"""Utility functions and helpers for the gateway."""

from license_gateway.utils.billing_period import (
    billing_period_to_recurring,
    billing_period_to_timedelta,
    parse_billing_period,
    period_to_whole_days,
    validate_billing_period,
)
from license_gateway.utils.money import format_amount, minor_to_major

__all__ = [
    # Billing period parsing
    "parse_billing_period",
    "billing_period_to_timedelta",
    "billing_period_to_recurring",
    "period_to_whole_days",
    "validate_billing_period",
    # Money
    "minor_to_major",
    "format_amount",
]
