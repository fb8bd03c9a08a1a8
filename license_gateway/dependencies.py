"""FastAPI dependency providers.

Every route receives its collaborators through these providers so tests can
swap any of them with ``app.dependency_overrides``.
"""

from threading import Lock
from typing import Optional

from fastapi import Depends

from license_gateway.config import get_config
from license_gateway.models.settings import GatewaySettings
from license_gateway.repositories.stripe_gateway import StripeGateway
from license_gateway.services import notification_dispatcher
from license_gateway.services.chat_proxy import ChatProxy
from license_gateway.services.checkout_service import CheckoutService
from license_gateway.services.clock import Clock
from license_gateway.services.clock import get_clock as _get_clock
from license_gateway.services.email_sender import ResendEmailSender
from license_gateway.services.license_verifier import LicenseVerifier
from license_gateway.services.lifecycle_orchestrator import LifecycleOrchestrator
from license_gateway.services.notification_dispatcher import NotificationDispatcher
from license_gateway.services.subscription_locator import SubscriptionLocator
from license_gateway.services.webhook_ingestor import WebhookIngestor

_gateway: Optional[StripeGateway] = None
_gateway_lock = Lock()


def get_settings() -> GatewaySettings:
    return get_config().settings


def get_clock() -> Clock:
    return _get_clock()


def get_stripe_gateway(settings: GatewaySettings = Depends(get_settings)) -> StripeGateway:
    """Shared gateway, built on first use.

    Raises ConfigurationError when no Stripe secret key is configured, which
    the API reports as a server configuration error.
    """
    global _gateway
    with _gateway_lock:
        if _gateway is None:
            _gateway = StripeGateway(settings)
        return _gateway


def reset_stripe_gateway() -> None:
    """Forget the shared gateway (useful for testing)."""
    global _gateway
    with _gateway_lock:
        _gateway = None


def get_notification_dispatcher(
    settings: GatewaySettings = Depends(get_settings),
) -> NotificationDispatcher:
    return notification_dispatcher.get_notification_dispatcher(settings.notifications)


def get_locator(gateway: StripeGateway = Depends(get_stripe_gateway)) -> SubscriptionLocator:
    return SubscriptionLocator(gateway)


def get_orchestrator(
    gateway: StripeGateway = Depends(get_stripe_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    locator: SubscriptionLocator = Depends(get_locator),
    settings: GatewaySettings = Depends(get_settings),
) -> LifecycleOrchestrator:
    return LifecycleOrchestrator(gateway, dispatcher, settings, locator=locator)


def get_license_verifier(locator: SubscriptionLocator = Depends(get_locator)) -> LicenseVerifier:
    return LicenseVerifier(locator)


def get_checkout_service(
    gateway: StripeGateway = Depends(get_stripe_gateway),
    settings: GatewaySettings = Depends(get_settings),
) -> CheckoutService:
    return CheckoutService(gateway, settings)


def get_webhook_ingestor(
    gateway: StripeGateway = Depends(get_stripe_gateway),
    checkout: CheckoutService = Depends(get_checkout_service),
) -> WebhookIngestor:
    return WebhookIngestor(gateway, checkout)


def get_email_sender(settings: GatewaySettings = Depends(get_settings)) -> ResendEmailSender:
    return ResendEmailSender(settings.notifications)


def get_chat_proxy(settings: GatewaySettings = Depends(get_settings)) -> ChatProxy:
    return ChatProxy(settings.chat)
