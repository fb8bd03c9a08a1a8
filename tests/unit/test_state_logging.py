"""Tests for subscription and refund state logging."""

from unittest.mock import patch

from license_gateway.models.subscription import SubscriptionStatus
from license_gateway.state_logger import (
    log_cancel_flag_change,
    log_refund_fallback,
    log_refund_issued,
    log_subscription_state_change,
)


@patch("license_gateway.state_logger.logger")
def test_cancel_flag_change(mock_logger):
    log_cancel_flag_change("sub_1", old_value=False, new_value=True, reason="Too expensive")

    mock_logger.info.assert_called_once_with(
        "cancel_at_period_end_changed",
        subscription_id="sub_1",
        old_value=False,
        new_value=True,
        reason="Too expensive",
    )


@patch("license_gateway.state_logger.logger")
def test_state_change_truncates_long_ids(mock_logger):
    long_id = "sub_" + "x" * 40

    log_subscription_state_change(long_id, SubscriptionStatus.ACTIVE.value, SubscriptionStatus.CANCELED.value)

    kwargs = mock_logger.info.call_args.kwargs
    assert kwargs["subscription_id"].endswith("...")
    assert kwargs["old_status"] == "active"
    assert kwargs["new_status"] == "canceled"


@patch("license_gateway.state_logger.logger")
def test_refund_issued(mock_logger):
    log_refund_issued("sub_1", refund_id="re_1", charge_id="ch_1", amount=499, currency="gbp")

    assert mock_logger.info.call_args.args == ("refund_issued",)
    assert mock_logger.info.call_args.kwargs["amount"] == 499


@patch("license_gateway.state_logger.logger")
def test_refund_fallback_is_a_warning(mock_logger):
    log_refund_fallback("sub_1", fallback_reason="card_declined", operation="create_refund")

    mock_logger.warning.assert_called_once()
    assert mock_logger.warning.call_args.kwargs["operation"] == "create_refund"
