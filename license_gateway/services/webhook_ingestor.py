"""Stripe webhook ingestion.

Verifies the signature of each delivery before anything in it is read, then
dispatches by event type. Once a delivery is verified it is always
acknowledged, even when processing it fails, so Stripe does not retry events
this service has already seen.
"""

from typing import Any, Callable, Optional

from license_gateway.logging_config import get_logger, short_id
from license_gateway.models.events import WebhookEventType, WebhookResult
from license_gateway.repositories.stripe_gateway import StripeGateway, WebhookSignatureError
from license_gateway.services.checkout_service import CheckoutService, SessionState

logger = get_logger(__name__)


class WebhookIngestor:
    """Verifies and dispatches Stripe webhook events."""

    def __init__(self, gateway: StripeGateway, checkout: CheckoutService):
        self._gateway = gateway
        self._checkout = checkout
        self._handlers: dict[str, Callable[[Any], None]] = {
            WebhookEventType.CHECKOUT_SESSION_COMPLETED.value: self._on_checkout_completed,
            WebhookEventType.SUBSCRIPTION_UPDATED.value: self._on_subscription_changed,
            WebhookEventType.SUBSCRIPTION_DELETED.value: self._on_subscription_changed,
        }

    def ingest(self, payload: bytes, signature_header: Optional[str]) -> WebhookResult:
        """Verify and process one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature_header: Value of the Stripe-Signature header

        Returns:
            WebhookResult; ``accepted`` is False only when verification failed

        Raises:
            ConfigurationError: If no webhook secret is configured
        """
        try:
            event = self._gateway.construct_webhook_event(payload, signature_header)
        except WebhookSignatureError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            return WebhookResult(accepted=False, error=str(e))

        event_id = event.get("id")
        event_type = event.get("type")
        handler = self._handlers.get(event_type)

        logger.info("webhook_received", event_id=event_id, event_type=event_type, handled=handler is not None)

        if handler is None:
            logger.info("webhook_event_ignored", event_id=event_id, event_type=event_type)
            return WebhookResult(accepted=True, event_id=event_id, event_type=event_type, handled=False)

        try:
            handler(event["data"]["object"])
        except Exception as e:
            logger.error(
                "webhook_processing_failed",
                event_id=event_id,
                event_type=event_type,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

        return WebhookResult(accepted=True, event_id=event_id, event_type=event_type, handled=True)

    def _on_checkout_completed(self, session: Any) -> None:
        if session.get("mode") != "subscription" or not session.get("subscription"):
            logger.info("checkout_completed_without_subscription", session_id=short_id(session.get("id")))
            return

        resolution = self._checkout.resolve_session(session["id"])
        if resolution.state != SessionState.RESOLVED:
            logger.warning(
                "checkout_completed_unresolved",
                session_id=short_id(session["id"]),
                state=resolution.state.value,
            )
            return

        subscription = resolution.subscription
        logger.info(
            "subscription_created",
            subscription_id=short_id(subscription.id),
            customer_id=subscription.customer_id,
            status=subscription.status.value,
            current_period_end=subscription.current_period_end_epoch,
        )

    def _on_subscription_changed(self, subscription: Any) -> None:
        logger.info(
            "subscription_changed",
            subscription_id=short_id(subscription.get("id")),
            status=subscription.get("status"),
            cancel_at_period_end=subscription.get("cancel_at_period_end"),
        )
