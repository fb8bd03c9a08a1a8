"""Subscription lifecycle orchestration.

Responsibilities:
- Cancel at period end, reactivate, and cancel immediately with refund
- Apply the refund window and trial rules
- Order provider calls so that a refund always precedes the immediate cancel
- Demote a failed auto-refund to a period-end cancellation
- Hand every outcome of a located subscription, failures included, to the
  notification dispatcher exactly once
"""

from datetime import datetime
from typing import Optional, Union

from license_gateway.logging_config import get_logger, short_id
from license_gateway.models.events import LifecycleEvent, NotificationAction
from license_gateway.models.settings import GatewaySettings
from license_gateway.models.subscription import (
    LifecycleAction,
    LifecycleOutcome,
    LifecycleRequest,
    OutcomeKind,
    RefundRecord,
    Subscription,
)
from license_gateway.repositories.stripe_gateway import ProviderError, StripeGateway
from license_gateway.services.notification_dispatcher import NotificationDispatcher
from license_gateway.services.refund_policy import (
    RefundEligibility,
    is_refund_eligible,
    refund_window_from_period,
)
from license_gateway.services.subscription_locator import SubscriptionLocator
from license_gateway.state_logger import (
    log_cancel_flag_change,
    log_refund_fallback,
    log_refund_issued,
    log_subscription_state_change,
)

logger = get_logger(__name__)


class LifecycleError(Exception):
    """Base exception for lifecycle errors."""

    pass


class InvalidSubscriptionStateError(LifecycleError):
    """Raised when an operation is invalid for the current subscription state."""

    pass


class RefundWindowExpiredError(LifecycleError):
    """Raised when an explicit refund is requested outside the refund window."""

    def __init__(self, days_since_purchase: float):
        super().__init__(
            f"Refund window has expired ({days_since_purchase:.1f} days since purchase)"
        )
        self.days_since_purchase = days_since_purchase


class NoRefundableChargeError(LifecycleError):
    """Raised when an explicit refund finds no paid, unrefunded charge."""

    pass


class CancelAfterRefundError(ProviderError):
    """Raised when the refund was issued but the immediate cancellation failed."""

    def __init__(self, cause: ProviderError, refund: RefundRecord):
        super().__init__(str(cause), operation=cause.operation, stripe_code=cause.stripe_code)
        self.refund = refund


class LifecycleOrchestrator:
    """Drives cancel, reactivate and refund operations against Stripe.

    Holds no state between calls. ``now`` is supplied by the caller so one
    request evaluates every rule against the same instant.
    """

    def __init__(
        self,
        gateway: StripeGateway,
        dispatcher: NotificationDispatcher,
        settings: GatewaySettings,
        locator: Optional[SubscriptionLocator] = None,
    ):
        """Initialize the orchestrator.

        Args:
            gateway: Stripe gateway
            dispatcher: Notification dispatcher for admin emails
            settings: Service settings (refund window and reason)
            locator: Subscription locator (defaults to one over ``gateway``)
        """
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._locator = locator or SubscriptionLocator(gateway)
        self._refund_window = refund_window_from_period(settings.refunds.window)
        self._refund_reason = settings.refunds.reason

    # Public operations

    def execute(self, request: LifecycleRequest, now: datetime) -> LifecycleOutcome:
        """Execute a cancel or reactivate request.

        Args:
            request: Lifecycle request
            now: Request-processing instant

        Returns:
            LifecycleOutcome describing what happened

        Raises:
            SubscriptionNotFoundError: If the identifier matches nothing
            InvalidSubscriptionStateError: If the subscription is already canceled
            CancelAfterRefundError: If the auto-refund was issued but the cancel failed
            ProviderError: If a required Stripe write fails
        """
        subscription = self._locator.locate(
            subscription_id=request.subscription_id,
            email=request.email,
        )
        logger.info(
            "lifecycle_request",
            subscription_id=short_id(subscription.id),
            action=request.action.value,
            auto_refund=request.auto_refund,
            status=subscription.status.value,
        )

        try:
            self._ensure_not_terminal(subscription, request.action.value)
            if request.action == LifecycleAction.REACTIVATE:
                outcome = self._reactivate(subscription)
            elif request.auto_refund:
                outcome = self._cancel_with_auto_refund(subscription, now, request.reason)
            else:
                outcome = self._cancel_at_period_end(subscription, request.reason)
        except (LifecycleError, ProviderError) as e:
            self._notify(request.action, request.email, request.reason, self._failure(subscription, e), now)
            raise

        self._notify(request.action, request.email, request.reason, outcome, now)
        return outcome

    def refund(
        self,
        now: datetime,
        subscription_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LifecycleOutcome:
        """Refund the latest charge and cancel immediately.

        Unlike an auto-refund cancellation there is no fallback: the caller
        asked for the refund itself, so every failure is reported.

        Args:
            now: Request-processing instant
            subscription_id: Stripe subscription id
            email: Customer email

        Returns:
            LifecycleOutcome of kind canceled_immediately_with_refund, or
            canceled_immediately_no_charge for trials

        Raises:
            SubscriptionNotFoundError: If the identifier matches nothing
            InvalidSubscriptionStateError: If the subscription is already canceled
            RefundWindowExpiredError: If the refund window has passed
            NoRefundableChargeError: If there is no paid, unrefunded charge
            CancelAfterRefundError: If the refund was issued but the cancel failed
            ProviderError: If a Stripe call fails
        """
        subscription = self._locator.locate(subscription_id=subscription_id, email=email)
        try:
            outcome = self._refund_and_cancel(subscription, now)
        except (LifecycleError, ProviderError) as e:
            self._notify(NotificationAction.REFUND, email, None, self._failure(subscription, e), now)
            raise

        self._notify(NotificationAction.REFUND, email, None, outcome, now)
        return outcome

    # Outcome builders

    def _refund_and_cancel(self, subscription: Subscription, now: datetime) -> LifecycleOutcome:
        self._ensure_not_terminal(subscription, "refund")

        eligibility = is_refund_eligible(subscription, now, self._refund_window)
        if not eligibility.eligible:
            logger.info(
                "refund_window_expired",
                subscription_id=short_id(subscription.id),
                days_since_purchase=round(eligibility.days_since_purchase, 3),
            )
            raise RefundWindowExpiredError(eligibility.days_since_purchase)

        if subscription.is_trialing:
            outcome = self._cancel_trial(subscription, eligibility, reason="refund_requested_during_trial")
        else:
            invoice = self._gateway.latest_paid_invoice(subscription.id)
            if invoice is None or not invoice.is_refundable:
                logger.info(
                    "no_refundable_charge",
                    subscription_id=short_id(subscription.id),
                    invoice_id=invoice.id if invoice else None,
                    charge_refunded=invoice.charge_refunded if invoice else None,
                )
                raise NoRefundableChargeError("No paid invoice found")
            refund = self._issue_refund(subscription, invoice.charge_id)
            outcome = self._cancel_after_refund(subscription, refund, eligibility)

        return outcome

    def _reactivate(self, subscription: Subscription) -> LifecycleOutcome:
        if not subscription.cancel_at_period_end:
            logger.info(
                "reactivate_noop",
                subscription_id=short_id(subscription.id),
                message="cancel_at_period_end already clear",
            )
            return LifecycleOutcome(kind=OutcomeKind.REACTIVATED, subscription=subscription)

        updated = self._gateway.set_cancel_at_period_end(subscription.id, False)
        log_cancel_flag_change(
            subscription.id,
            old_value=True,
            new_value=updated.cancel_at_period_end,
            reason="reactivated",
        )
        return LifecycleOutcome(kind=OutcomeKind.REACTIVATED, subscription=updated)

    def _cancel_at_period_end(
        self,
        subscription: Subscription,
        reason: Optional[str],
        eligibility: Optional[RefundEligibility] = None,
        fallback_reason: Optional[str] = None,
    ) -> LifecycleOutcome:
        if subscription.cancel_at_period_end:
            updated = subscription
        else:
            updated = self._gateway.set_cancel_at_period_end(subscription.id, True)
            log_cancel_flag_change(
                subscription.id,
                old_value=False,
                new_value=updated.cancel_at_period_end,
                reason=reason or "customer_request",
                current_period_end=updated.current_period_end.isoformat(),
            )

        return LifecycleOutcome(
            kind=OutcomeKind.CANCELED_AT_PERIOD_END,
            subscription=updated,
            days_since_purchase=eligibility.days_since_purchase if eligibility else None,
            fallback_reason=fallback_reason,
        )

    def _cancel_with_auto_refund(
        self,
        subscription: Subscription,
        now: datetime,
        reason: Optional[str],
    ) -> LifecycleOutcome:
        eligibility = is_refund_eligible(subscription, now, self._refund_window)
        logger.info(
            "refund_window_evaluated",
            subscription_id=short_id(subscription.id),
            eligible=eligibility.eligible,
            days_since_purchase=round(eligibility.days_since_purchase, 3),
        )

        if not eligibility.eligible:
            return self._cancel_at_period_end(subscription, reason, eligibility)

        if subscription.is_trialing:
            return self._cancel_trial(subscription, eligibility, reason=reason or "canceled_during_trial")

        try:
            invoice = self._gateway.latest_paid_invoice(subscription.id)
            if invoice is None or not invoice.is_refundable:
                logger.info(
                    "auto_refund_skipped",
                    subscription_id=short_id(subscription.id),
                    invoice_id=invoice.id if invoice else None,
                    charge_refunded=invoice.charge_refunded if invoice else None,
                )
                return self._cancel_at_period_end(subscription, reason, eligibility)
            refund = self._issue_refund(subscription, invoice.charge_id)
        except ProviderError as e:
            log_refund_fallback(subscription.id, fallback_reason=str(e), operation=e.operation)
            return self._cancel_at_period_end(
                subscription,
                reason,
                eligibility,
                fallback_reason=f"Refund failed: {e}",
            )

        return self._cancel_after_refund(subscription, refund, eligibility)

    def _cancel_trial(
        self,
        subscription: Subscription,
        eligibility: RefundEligibility,
        reason: str,
    ) -> LifecycleOutcome:
        updated = self._gateway.cancel_immediately(subscription.id)
        log_subscription_state_change(
            subscription.id,
            old_status=subscription.status.value,
            new_status=updated.status.value,
            reason=reason,
        )
        return LifecycleOutcome(
            kind=OutcomeKind.CANCELED_IMMEDIATELY_NO_CHARGE,
            subscription=updated,
            days_since_purchase=eligibility.days_since_purchase,
        )

    def _issue_refund(self, subscription: Subscription, charge_id: str) -> RefundRecord:
        refund = self._gateway.refund_charge(
            charge_id,
            reason=self._refund_reason,
            metadata={"subscription_id": subscription.id},
        )
        log_refund_issued(
            subscription.id,
            refund_id=refund.id,
            charge_id=charge_id,
            amount=refund.amount,
            currency=refund.currency,
        )
        return refund

    def _cancel_after_refund(
        self,
        subscription: Subscription,
        refund: RefundRecord,
        eligibility: RefundEligibility,
    ) -> LifecycleOutcome:
        # The refund is already issued; a failure here propagates and a retry
        # reuses the same refund through the charge-scoped idempotency key.
        try:
            updated = self._gateway.cancel_immediately(subscription.id)
        except ProviderError as e:
            logger.error(
                "cancel_after_refund_failed",
                subscription_id=short_id(subscription.id),
                refund_id=refund.id,
                error=str(e),
            )
            raise CancelAfterRefundError(e, refund) from e
        log_subscription_state_change(
            subscription.id,
            old_status=subscription.status.value,
            new_status=updated.status.value,
            reason="refunded",
            refund_id=refund.id,
        )
        return LifecycleOutcome(
            kind=OutcomeKind.CANCELED_IMMEDIATELY_WITH_REFUND,
            subscription=updated,
            refund=refund,
            days_since_purchase=eligibility.days_since_purchase,
        )

    # Helpers

    def _ensure_not_terminal(self, subscription: Subscription, operation: str) -> None:
        if subscription.is_terminal:
            logger.info(
                "operation_rejected_terminal_subscription",
                subscription_id=short_id(subscription.id),
                operation=operation,
            )
            raise InvalidSubscriptionStateError(
                f"Subscription {subscription.id} is already canceled"
            )

    def _failure(self, subscription: Subscription, error: Exception) -> LifecycleOutcome:
        """Outcome reported to the admin when an operation stops with an error."""
        if isinstance(error, CancelAfterRefundError):
            return LifecycleOutcome(
                kind=OutcomeKind.REFUNDED_CANCEL_FAILED,
                subscription=subscription,
                refund=error.refund,
                error=str(error),
            )
        return LifecycleOutcome(
            kind=OutcomeKind.FAILED,
            subscription=subscription,
            days_since_purchase=getattr(error, "days_since_purchase", None),
            error=str(error),
        )

    def _notify(
        self,
        action: Union[LifecycleAction, NotificationAction],
        email: Optional[str],
        reason: Optional[str],
        outcome: LifecycleOutcome,
        now: datetime,
    ) -> None:
        """Hand the outcome to the dispatcher. Never fails the operation."""
        subscription = outcome.subscription
        refund = outcome.refund
        try:
            event = LifecycleEvent(
                action=NotificationAction(action.value),
                outcome=outcome.kind,
                subscription_id=subscription.id,
                customer=email or subscription.customer_id,
                status=subscription.status,
                current_period_end=subscription.current_period_end,
                occurred_at=now,
                reason=reason,
                refund_id=refund.id if refund else None,
                refund_amount=refund.amount if refund else None,
                refund_currency=refund.currency if refund else None,
                days_since_purchase=outcome.days_since_purchase,
                fallback_reason=outcome.fallback_reason,
                error=outcome.error,
            )
            self._dispatcher.notify(event)
        except Exception as e:
            logger.error(
                "notification_enqueue_failed",
                subscription_id=short_id(subscription.id),
                outcome=outcome.kind.value,
                error=str(e),
                exc_info=True,
            )
