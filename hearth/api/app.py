"""
FastAPI application for the Hearth platform.

Accounts, sessions, role-based access and the audit trail, plus the
notification and payment features built on top of them.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hearth.api import notifications, payments, security, users, webhooks
from hearth.auth.audit import AuditLog
from hearth.auth.credentials import CredentialStore
from hearth.auth.middleware import RouteGuardMiddleware, SecurityMiddleware
from hearth.auth.routes import router as auth_router
from hearth.auth.security import FailedLoginTracker
from hearth.auth.sessions import SessionIssuer
from hearth.config import Settings, get_settings
from hearth.core.exceptions import HearthError
from hearth.integrations.oauth import OAuthManager
from hearth.integrations.payments import PaymentGateway
from hearth.integrations.sentry import capture_exception, init_sentry
from hearth.services.notification import NotificationService
from hearth.services.payments import PaymentService, WebhookDispatcher
from hearth.storage import StorageProvider, create_local_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings: Settings = app.state.settings

    # Initialize error tracking (Sentry)
    init_sentry(settings)

    logger.info(f"Hearth API starting in {settings.environment} mode")

    yield

    logger.info("Hearth API shutting down")


# =============================================================================
# Error handling
# =============================================================================


async def hearth_error_handler(request: Request, exc: HearthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    capture_exception(exc, path=request.url.path, method=request.method)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: StorageProvider | None = None,
    payment_gateway: PaymentGateway | None = None,
) -> FastAPI:
    """
    Build the application.

    Services are created here, not in the lifespan, so the app is usable
    as soon as this returns.
    """
    settings = settings or get_settings()
    storage = storage or create_local_storage()
    gateway = payment_gateway or PaymentGateway(settings)

    app = FastAPI(
        title="Hearth API",
        description="Accounts, roles, notifications and payments",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Services
    audit = AuditLog(storage.metadata)
    credentials = CredentialStore(storage.metadata)
    notification_service = NotificationService(storage.metadata, audit)
    payment_service = PaymentService(storage.metadata, audit, credentials, gateway)

    app.state.settings = settings
    app.state.storage = storage
    app.state.audit = audit
    app.state.credentials = credentials
    app.state.sessions = SessionIssuer(credentials, audit, settings)
    app.state.login_tracker = FailedLoginTracker(
        storage.cache,
        window_seconds=settings.failed_login_window_seconds,
        max_attempts=settings.failed_login_max_attempts,
    )
    app.state.oauth = OAuthManager(storage.cache, settings)
    app.state.notifications = notification_service
    app.state.payments = payment_service
    app.state.webhooks = WebhookDispatcher(payment_service, notification_service, gateway)

    # Middleware (last added runs first)
    app.add_middleware(RouteGuardMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityMiddleware)

    app.add_exception_handler(HearthError, hearth_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(users.router)
    app.include_router(notifications.router)
    app.include_router(payments.router)
    app.include_router(webhooks.router)
    app.include_router(security.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "hearth-api"}

    return app


app = create_app()
