"""Tests for billing period parsing utilities."""

from datetime import timedelta

import pytest

from license_gateway.utils.billing_period import (
    MILLIS_PER_DAY,
    MILLIS_PER_MONTH,
    MILLIS_PER_WEEK,
    MILLIS_PER_YEAR,
    billing_period_to_recurring,
    billing_period_to_timedelta,
    parse_billing_period,
    period_to_whole_days,
    validate_billing_period,
)


class TestParseBillingPeriod:
    """Test parse_billing_period function."""

    @pytest.mark.parametrize(
        "period,expected",
        [
            ("P1D", MILLIS_PER_DAY),
            ("P7D", 7 * MILLIS_PER_DAY),
            ("P2W", 2 * MILLIS_PER_WEEK),
            ("P1M", MILLIS_PER_MONTH),
            ("P1Y", MILLIS_PER_YEAR),
        ],
    )
    def test_supported_units(self, period, expected):
        assert parse_billing_period(period) == expected

    def test_case_and_whitespace_insensitive(self):
        assert parse_billing_period(" p7d ") == 7 * MILLIS_PER_DAY

    def test_number_defaults_to_one(self):
        assert parse_billing_period("PY") == MILLIS_PER_YEAR

    @pytest.mark.parametrize("period", ["", "1Y", "P", "P1H", "P0D", "P1Y2M"])
    def test_invalid_periods(self, period):
        with pytest.raises(ValueError):
            parse_billing_period(period)


class TestConversions:
    def test_to_timedelta(self):
        assert billing_period_to_timedelta("P7D") == timedelta(days=7)

    def test_to_stripe_recurring(self):
        assert billing_period_to_recurring("P1Y") == {"interval": "year", "interval_count": 1}
        assert billing_period_to_recurring("P3M") == {"interval": "month", "interval_count": 3}

    def test_whole_days(self):
        assert period_to_whole_days("P3D") == 3
        assert period_to_whole_days("P2W") == 14

    def test_validate(self):
        assert validate_billing_period("P1M") is True
        assert validate_billing_period("monthly") is False
        assert validate_billing_period(None) is False
