"""Billing period parsing utilities.

Parses the ISO 8601 duration strings used in settings.yaml (plan billing
period, trial period, refund window) and converts them to milliseconds,
timedeltas, or Stripe recurring intervals.
"""

import re
from datetime import timedelta

# Milliseconds in common time units
MILLIS_PER_SECOND = 1000
MILLIS_PER_MINUTE = 60 * MILLIS_PER_SECOND
MILLIS_PER_HOUR = 60 * MILLIS_PER_MINUTE
MILLIS_PER_DAY = 24 * MILLIS_PER_HOUR
MILLIS_PER_WEEK = 7 * MILLIS_PER_DAY
MILLIS_PER_MONTH = 30 * MILLIS_PER_DAY  # Standard approximation for billing
MILLIS_PER_YEAR = 365 * MILLIS_PER_DAY  # Standard approximation for billing

_PERIOD_PATTERN = re.compile(r"^(\d+)?([DWMY])$")

_STRIPE_INTERVALS = {"D": "day", "W": "week", "M": "month", "Y": "year"}


def _split_period(period: str) -> tuple[int, str]:
    """Validate a period string and return (number, unit)."""
    if not period or not isinstance(period, str):
        raise ValueError("Period must be a non-empty string")

    period = period.strip().upper()

    if not period.startswith("P"):
        raise ValueError(f"Invalid period format: '{period}'. Must start with 'P'")

    duration_str = period[1:]

    if not duration_str:
        raise ValueError(f"Invalid period format: '{period}'. No duration specified")

    match = _PERIOD_PATTERN.match(duration_str)
    if not match:
        raise ValueError(
            f"Unsupported period format: '{period}'. "
            "Supported formats: P[n]D, P[n]W, P[n]M, P[n]Y"
        )

    number_str, unit = match.groups()
    number = int(number_str) if number_str else 1

    if number <= 0:
        raise ValueError(f"Period number must be positive, got: {number}")

    return number, unit


def parse_billing_period(period: str) -> int:
    """Parse ISO 8601 duration string to milliseconds.

    Supports:
    - P[n]D - days (e.g., P7D = 7 days)
    - P[n]W - weeks (e.g., P1W = 1 week)
    - P[n]M - months (e.g., P1M = 1 month = 30 days)
    - P[n]Y - years (e.g., P1Y = 1 year = 365 days)

    Args:
        period: ISO 8601 duration string (e.g., "P1M", "P1Y", "P7D")

    Returns:
        Duration in milliseconds

    Raises:
        ValueError: If the period string is invalid or unsupported

    Examples:
        >>> parse_billing_period("P7D")
        604800000
    """
    number, unit = _split_period(period)

    if unit == "D":
        return number * MILLIS_PER_DAY
    elif unit == "W":
        return number * MILLIS_PER_WEEK
    elif unit == "M":
        return number * MILLIS_PER_MONTH
    else:
        return number * MILLIS_PER_YEAR


def billing_period_to_timedelta(period: str) -> timedelta:
    """Convert ISO 8601 duration string to Python timedelta.

    Examples:
        >>> billing_period_to_timedelta("P7D")
        datetime.timedelta(days=7)
    """
    return timedelta(milliseconds=parse_billing_period(period))


def billing_period_to_recurring(period: str) -> dict[str, object]:
    """Convert a billing period to Stripe's ``recurring`` price parameter.

    Examples:
        >>> billing_period_to_recurring("P1Y")
        {'interval': 'year', 'interval_count': 1}

        >>> billing_period_to_recurring("P3M")
        {'interval': 'month', 'interval_count': 3}
    """
    number, unit = _split_period(period)
    return {"interval": _STRIPE_INTERVALS[unit], "interval_count": number}


def period_to_whole_days(period: str) -> int:
    """Convert a period to whole days (Stripe's trial_period_days).

    Raises:
        ValueError: If the period is not a whole number of days
    """
    millis = parse_billing_period(period)
    if millis % MILLIS_PER_DAY:
        raise ValueError(f"Period '{period}' is not a whole number of days")
    return millis // MILLIS_PER_DAY


def validate_billing_period(period: str) -> bool:
    """Validate that a string is a valid billing period format."""
    try:
        parse_billing_period(period)
        return True
    except (ValueError, TypeError):
        return False
