# =============================================================================
# OAuth sign-in
# =============================================================================
#
# Google is the only provider wired up. To enable it:
#   1. Create an OAuth 2.0 Client ID (Web application) in the Google console
#   2. Authorized redirect URI: <frontend>/auth/oauth/google/callback
#   3. Set GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET
#
# The frontend receives ?code=...&state=... on that page and posts both to
# POST /auth/oauth/google/callback. Only an email the provider reports as
# verified is trusted for account linking.
#
# =============================================================================

from __future__ import annotations

import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from hearth.config import Settings, get_settings
from hearth.storage.base import CacheStorage

logger = logging.getLogger(__name__)

STATE_KEY = "oauth_state:{state}"


class OAuthUserInfo(BaseModel):
    """Identity asserted by a provider after a successful sign-in."""

    provider: str
    provider_user_id: str
    email: str
    name: str
    picture_url: str | None = None
    email_verified: bool = False


class OAuthError(Exception):
    """The provider rejected the code or returned something unusable."""


# =============================================================================
# Providers
# =============================================================================


class GoogleOAuth:
    """Authorization-code flow against Google's v2 endpoints."""

    name = "google"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    userinfo_endpoint = "https://www.googleapis.com/oauth2/v2/userinfo"
    scope = "openid email profile"

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport

    @property
    def client_id(self) -> str:
        return self.settings.google_oauth_client_id

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.google_oauth_client_id and self.settings.google_oauth_client_secret)

    @property
    def redirect_uri(self) -> str:
        base = self.settings.oauth_redirect_base
        if not base:
            origins = self.settings.cors_origins_list
            base = origins[0] if origins else "http://localhost:3000"
        return f"{base.rstrip('/')}/auth/oauth/{self.name}/callback"

    def authorize_url(self, state: str) -> str:
        if not self.is_configured:
            raise OAuthError(f"{self.name} sign-in is not configured")

        query = urlencode({
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
            "prompt": "select_account",
        })
        return f"{self.authorize_endpoint}?{query}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=10.0)

    async def _fetch_json(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict[str, Any]:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request to {url} failed: {e}")
            raise OAuthError(f"Could not reach {self.name}") from e

        if response.status_code != 200:
            logger.error(f"{self.name} returned {response.status_code} for {url}: {response.text}")
            raise OAuthError(f"{self.name} rejected the sign-in ({response.status_code})")
        return response.json()

    async def authenticate(self, code: str) -> OAuthUserInfo:
        """Trade an authorization code for the signed-in user's identity."""
        if not self.is_configured:
            raise OAuthError(f"{self.name} sign-in is not configured")

        async with self._client() as client:
            tokens = await self._fetch_json(client, "POST", self.token_endpoint, data={
                "client_id": self.client_id,
                "client_secret": self.settings.google_oauth_client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            })
            if "access_token" not in tokens:
                raise OAuthError(f"{self.name} returned no access token")

            profile = await self._fetch_json(
                client,
                "GET",
                self.userinfo_endpoint,
                headers={"Authorization": f"Bearer {tokens['access_token']}"},
            )

        email = profile.get("email")
        if not email:
            raise OAuthError("Provider did not return an email address")

        return OAuthUserInfo(
            provider=self.name,
            provider_user_id=str(profile["id"]),
            email=email,
            name=profile.get("name") or email.split("@")[0],
            picture_url=profile.get("picture"),
            email_verified=bool(profile.get("verified_email")),
        )


# =============================================================================
# Manager
# =============================================================================


class OAuthManager:
    """
    Provider registry plus the one-time ``state`` values that tie a
    callback to the authorize request that started it.

    States live in the cache with a TTL and are consumed on first use.
    """

    def __init__(
        self,
        cache: CacheStorage,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache
        self.providers: dict[str, GoogleOAuth] = {
            "google": GoogleOAuth(self.settings, transport),
        }

    def get_available_providers(self) -> list[str]:
        return [name for name, provider in self.providers.items() if provider.is_configured]

    def _provider(self, provider: str) -> GoogleOAuth:
        if provider not in self.providers:
            raise OAuthError(f"Unknown provider: {provider}")
        return self.providers[provider]

    async def get_authorize_url(self, provider: str) -> str:
        oauth = self._provider(provider)
        state = secrets.token_urlsafe(24)
        url = oauth.authorize_url(state)
        await self.cache.set(
            STATE_KEY.format(state=state), provider, ttl=self.settings.oauth_state_ttl_seconds
        )
        return url

    async def validate_state(self, state: str) -> str | None:
        """Consume a state value. Returns the provider it was issued for."""
        key = STATE_KEY.format(state=state)
        provider = await self.cache.get(key)
        if provider is not None:
            await self.cache.delete(key)
        return provider

    async def authenticate(self, provider: str, code: str) -> OAuthUserInfo:
        return await self._provider(provider).authenticate(code)
