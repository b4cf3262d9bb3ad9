"""
HTTP middleware.

SecurityMiddleware runs first: it turns blocked IPs away and stamps every
response with security headers and a request id. RouteGuardMiddleware then
applies the route-level policy (session required outside the public
allow-list, role prefixes such as /admin).

Both are raw ASGI, so the request body stream is never wrapped, and both
answer with JSON directly: errors raised this far out are not seen by the
app's exception handlers.
"""

from __future__ import annotations

import logging
import uuid

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from hearth.auth.capabilities import route_capability
from hearth.auth.policies import DenyReason, authorize, is_public
from hearth.auth.security import SECURITY_HEADERS, client_ip
from hearth.core.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)


class SecurityMiddleware:
    """Blocked-IP rejection, security headers, request ids."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        request_id = str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in SECURITY_HEADERS.items():
                    headers.setdefault(key, value)
                headers["X-Request-ID"] = request_id
            await send(message)

        tracker = request.app.state.login_tracker
        ip = client_ip(request, request.app.state.settings.trusted_proxies_list)
        if await tracker.is_blocked(ip):
            response = JSONResponse({"detail": "Access denied"}, status_code=403)
            await response(scope, receive, send_with_headers)
            return

        await self.app(scope, receive, send_with_headers)


class RouteGuardMiddleware:
    """Route-level authorization for every non-public path."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        path = request.url.path

        # CORS preflight carries no credentials
        if request.method == "OPTIONS" or is_public(path):
            await self.app(scope, receive, send)
            return

        ctx = None
        scheme, _, token = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            try:
                ctx = request.app.state.sessions.verify_session(token.strip())
            except UnauthenticatedError as e:
                logger.debug(f"Rejected session on {path}: {e.details}")
                response = JSONResponse({"detail": e.message}, status_code=e.status_code)
                await response(scope, receive, send)
                return

        decision = authorize(ctx, route_capability(path))
        if not decision:
            status = 401 if decision.reason == DenyReason.UNAUTHENTICATED else 403
            logger.info(f"Route guard denied {request.method} {path}: {decision.message}")
            response = JSONResponse({"detail": decision.message}, status_code=status)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
