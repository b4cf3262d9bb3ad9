"""
Service dependencies.

Services are built once in ``create_app()`` and hung off ``app.state``;
these accessors hand them to route handlers.
"""

from __future__ import annotations

from fastapi import Request

from hearth.auth.audit import AuditLog
from hearth.auth.credentials import CredentialStore
from hearth.auth.security import FailedLoginTracker
from hearth.auth.sessions import SessionIssuer
from hearth.integrations.oauth import OAuthManager
from hearth.services.notification import NotificationService
from hearth.services.payments import PaymentService, WebhookDispatcher


def get_sessions(request: Request) -> SessionIssuer:
    return request.app.state.sessions


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_audit(request: Request) -> AuditLog:
    return request.app.state.audit


def get_login_tracker(request: Request) -> FailedLoginTracker:
    return request.app.state.login_tracker


def get_oauth(request: Request) -> OAuthManager:
    return request.app.state.oauth


def get_notifications(request: Request) -> NotificationService:
    return request.app.state.notifications


def get_payments(request: Request) -> PaymentService:
    return request.app.state.payments


def get_webhooks(request: Request) -> WebhookDispatcher:
    return request.app.state.webhooks
