"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from license_gateway.config import ConfigurationError, get_config
from license_gateway.logging_config import configure_logging, get_logger
from license_gateway.middleware import ContextMiddleware, RequestLoggingMiddleware
from license_gateway.models import ErrorResponse
from license_gateway.repositories.stripe_gateway import ProviderError, SubscriptionNotFoundError
from license_gateway.services.lifecycle_orchestrator import (
    InvalidSubscriptionStateError,
    NoRefundableChargeError,
    RefundWindowExpiredError,
)

logger = get_logger(__name__)

VERSION = "0.1.0"


def error_body(error: str, message: str, details=None) -> dict:
    return ErrorResponse(error=error, message=message, details=details).model_dump(exclude_none=True)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    msg = str(errors[0].get("msg", "Invalid request"))
    return msg.removeprefix("Value error, ")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Handles startup and shutdown events.
    """
    logger.info("gateway_starting", version=VERSION)

    try:
        try:
            settings = get_config().settings
            logger.info(
                "configuration_loaded",
                stripe_mode=settings.stripe.mode,
                stripe_key_configured=bool(settings.credentials.secret_key),
                notifications_enabled=settings.notifications.enabled,
            )
        except ConfigurationError as e:
            # Endpoints report the problem per request
            logger.error("configuration_invalid", error=str(e))

        logger.info("gateway_started", status="ready")
        yield
    finally:
        logger.info("gateway_shutting_down")
        from license_gateway.services.notification_dispatcher import reset_notification_dispatcher

        reset_notification_dispatcher()
        logger.info("gateway_stopped")


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain exceptions into the JSON error body once, at the edge."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            content = exc.detail
        elif exc.status_code == 405:
            content = error_body("method_not_allowed", "Method not allowed")
        elif exc.status_code == 404:
            content = error_body("not_found", str(exc.detail))
        else:
            content = error_body("http_error", str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        logger.info("request_invalid", path=request.url.path, errors=len(details))
        return JSONResponse(
            status_code=400,
            content=error_body("invalid_request", _validation_message(exc), details),
        )

    @app.exception_handler(SubscriptionNotFoundError)
    async def not_found_handler(request: Request, exc: SubscriptionNotFoundError) -> JSONResponse:
        logger.info("subscription_not_found", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=404, content=error_body("not_found", "Subscription not found", str(exc)))

    @app.exception_handler(InvalidSubscriptionStateError)
    async def invalid_state_handler(request: Request, exc: InvalidSubscriptionStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content=error_body("invalid_state", str(exc)))

    @app.exception_handler(RefundWindowExpiredError)
    async def refund_window_handler(request: Request, exc: RefundWindowExpiredError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=error_body(
                "refund_window_expired",
                "Refund window expired",
                f"Refunds are only available within the refund window. "
                f"Your subscription was created {int(exc.days_since_purchase)} days ago.",
            ),
        )

    @app.exception_handler(NoRefundableChargeError)
    async def no_charge_handler(request: Request, exc: NoRefundableChargeError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=error_body("no_refundable_charge", "No payment found to refund", str(exc)),
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error(
            "provider_error",
            path=request.url.path,
            operation=exc.operation,
            stripe_code=exc.stripe_code,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=error_body("provider_error", "Payment provider error", str(exc)),
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("server_configuration_error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content=error_body("server_configuration_error", "Server configuration error", str(exc)),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=error_body("internal_server_error", "An unexpected error occurred"),
        )


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    app = FastAPI(
        title="License Gateway",
        description="Subscription lifecycle, refunds and license checks backed by Stripe",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Browser extensions call from arbitrary origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Stripe-Signature"],
    )

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(ContextMiddleware)

    register_exception_handlers(app)

    from license_gateway.api.checkout import router as checkout_router
    from license_gateway.api.messaging import router as messaging_router
    from license_gateway.api.subscriptions import router as subscriptions_router
    from license_gateway.api.webhooks import router as webhooks_router

    app.include_router(subscriptions_router)
    app.include_router(checkout_router)
    app.include_router(webhooks_router)
    app.include_router(messaging_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Service status."""
        return {
            "service": "license-gateway",
            "status": "running",
            "version": VERSION,
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Detailed health check."""
        try:
            settings = get_config().settings
        except ConfigurationError:
            return {"status": "degraded", "config": "invalid"}

        return {
            "status": "healthy",
            "config": "loaded",
            "stripe_mode": settings.stripe.mode,
            "stripe": "configured" if settings.credentials.secret_key else "missing_secret_key",
            "notifications": "enabled" if settings.notifications.enabled else "disabled",
        }

    logger.info("app_created", endpoints=len(app.routes))
    return app


app = create_app()
