"""Administrative notifications for lifecycle outcomes.

Responsibilities:
- Render one admin email per lifecycle outcome, failures included
- Deliver it on a background thread pool so requests never wait on email
- Log delivery failures; never propagate them
- Drain pending deliveries at shutdown
"""

import html
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from threading import RLock
from typing import Optional

from license_gateway.logging_config import get_logger, short_id
from license_gateway.models.events import LifecycleEvent, NotificationAction
from license_gateway.models.settings import NotificationConfig
from license_gateway.models.subscription import OutcomeKind
from license_gateway.services.email_sender import ResendEmailSender
from license_gateway.utils.money import format_amount

logger = get_logger(__name__)


class RenderedEmail:
    """Subject and body of one notification."""

    __slots__ = ("to", "subject", "html")

    def __init__(self, to: str, subject: str, html_body: str):
        self.to = to
        self.subject = subject
        self.html = html_body


def _fmt_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def _row(label: str, value: object) -> str:
    return f"<p><strong>{label}:</strong> {html.escape(str(value))}</p>"


def render_event(event: LifecycleEvent, config: NotificationConfig) -> RenderedEmail:
    """Render the admin email for an event.

    Args:
        event: Lifecycle event
        config: Notification settings (recipient and subject prefix)

    Returns:
        RenderedEmail ready to hand to the sender
    """
    rows = [
        _row("Customer", event.customer),
        _row("Subscription ID", event.subscription_id),
    ]

    if event.outcome == OutcomeKind.REACTIVATED:
        title = "Subscription Reactivated"
        rows += [
            _row("Status", f"{event.status.value} (reactivated)"),
            _row("Current Period End", _fmt_time(event.current_period_end)),
        ]
    elif event.outcome == OutcomeKind.CANCELED_IMMEDIATELY_WITH_REFUND:
        amount = format_amount(event.refund_amount or 0, event.refund_currency or "gbp")
        title = f"Subscription Cancelled & Refunded - {amount}"
        rows += [
            _row("Refund Amount", amount),
            _row("Refund ID", event.refund_id),
        ]
        if event.days_since_purchase is not None:
            rows.append(_row("Days Since Purchase", int(event.days_since_purchase)))
        rows.append(_row("Cancelled", _fmt_time(event.occurred_at)))
    elif event.outcome == OutcomeKind.CANCELED_IMMEDIATELY_NO_CHARGE:
        title = "Trial Subscription Cancelled"
        rows += [
            _row("Status", event.status.value),
            _row("Cancelled", _fmt_time(event.occurred_at)),
            _row("Cancellation Type", "Immediate (trial, nothing charged)"),
        ]
    elif event.outcome == OutcomeKind.REFUNDED_CANCEL_FAILED:
        amount = format_amount(event.refund_amount or 0, event.refund_currency or "gbp")
        title = f"ACTION REQUIRED: Refunded {amount} but Cancellation Failed"
        rows += [
            _row("Refund Amount", amount),
            _row("Refund ID", event.refund_id),
            _row("Status", f"{event.status.value} (still active in Stripe)"),
            _row("Error", event.error),
        ]
    elif event.outcome == OutcomeKind.FAILED:
        title = f"Subscription {event.action.value.capitalize()} Failed"
        rows += [
            _row("Status", event.status.value),
            _row("Error", event.error or "Unknown error"),
        ]
        if event.days_since_purchase is not None:
            rows.append(_row("Days Since Purchase", int(event.days_since_purchase)))
    else:
        title = "Subscription Cancellation Request"
        rows += [
            _row("Status", event.status.value),
            _row("Current Period End", _fmt_time(event.current_period_end)),
            _row("Reason", event.reason or "Not provided"),
            _row("Cancellation Type", "At period end (customer retains access until expiry)"),
        ]
        if event.fallback_reason:
            rows.append(_row("Automatic Refund", f"Not issued ({event.fallback_reason})"))

    if event.action == NotificationAction.REFUND:
        rows.append(_row("Requested Via", "Refund request"))

    body = f"<h2>{html.escape(title)}</h2>\n" + "\n".join(rows)
    return RenderedEmail(
        to=config.recipient,
        subject=f"{config.subject_prefix} {title}",
        html_body=body,
    )


class NotificationDispatcher:
    """Delivers lifecycle notifications in the background.

    ``notify`` returns as soon as the delivery is queued. Thread-safe.
    """

    def __init__(self, config: NotificationConfig, sender: Optional[ResendEmailSender] = None):
        """Initialize the dispatcher.

        Args:
            config: Notification settings
            sender: Email sender (defaults to a Resend sender built from ``config``)
        """
        self._lock = RLock()
        self._config = config
        self._sender = sender or ResendEmailSender(config)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._enabled = config.enabled

        if not self._enabled:
            logger.info("notification_dispatcher_disabled", message="Admin notifications are disabled in config")
        else:
            logger.info(
                "notification_dispatcher_initialized",
                recipient_configured=bool(config.recipient),
                resend_configured=self._sender.configured,
                max_workers=config.max_workers,
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.max_workers,
                    thread_name_prefix="notify",
                )
            return self._executor

    def notify(self, event: LifecycleEvent) -> Optional[Future]:
        """Queue a notification and return immediately.

        Args:
            event: Lifecycle event to report

        Returns:
            The delivery future, or None when notifications are disabled
        """
        if not self._enabled:
            logger.debug("notification_skipped", subscription_id=short_id(event.subscription_id))
            return None

        future = self._get_executor().submit(self._deliver, event)
        future.add_done_callback(lambda f: self._on_done(f, event))
        logger.debug(
            "notification_queued",
            subscription_id=short_id(event.subscription_id),
            outcome=event.outcome.value,
        )
        return future

    def _deliver(self, event: LifecycleEvent) -> Optional[str]:
        rendered = render_event(event, self._config)
        delivery = self._sender.send(rendered.to, rendered.subject, html=rendered.html)
        return delivery.email_id

    @staticmethod
    def _on_done(future: Future, event: LifecycleEvent) -> None:
        error = future.exception()
        if error is not None:
            logger.error(
                "notification_failed",
                subscription_id=short_id(event.subscription_id),
                outcome=event.outcome.value,
                error=str(error),
                error_type=type(error).__name__,
            )
            return
        logger.info(
            "notification_sent",
            subscription_id=short_id(event.subscription_id),
            outcome=event.outcome.value,
            email_id=future.result(),
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and, by default, wait for queued deliveries."""
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None
                logger.info("notification_dispatcher_shutdown", waited=wait)


_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher(config: Optional[NotificationConfig] = None) -> NotificationDispatcher:
    """Get the global notification dispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        if config is None:
            from license_gateway.config import get_config

            config = get_config().settings.notifications
        _dispatcher = NotificationDispatcher(config)
    return _dispatcher


def reset_notification_dispatcher() -> None:
    """Shut down and forget the global dispatcher (useful for testing)."""
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.shutdown(wait=True)
    _dispatcher = None
