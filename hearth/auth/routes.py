# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /auth/register     - Create account
#   POST /auth/login        - Get a session token
#   POST /auth/logout       - Record logout (client discards the token)
#   GET  /auth/me           - Get current user
#
# OAuth:
#   GET  /auth/providers                  - List available OAuth providers
#   GET  /auth/oauth/{provider}/authorize - Get OAuth redirect URL
#   POST /auth/oauth/{provider}/callback  - Complete OAuth flow
#
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr

from hearth.api.deps import get_credentials, get_login_tracker, get_oauth, get_sessions
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore
from hearth.auth.policies import require_auth
from hearth.auth.security import FailedLoginTracker, client_ip
from hearth.auth.sessions import SessionIssuer, SessionToken, UserCreate
from hearth.core.exceptions import ForbiddenError, InvalidCredentialsError
from hearth.core.models import UserResponse
from hearth.integrations.oauth import OAuthError, OAuthManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(SessionToken):
    user: UserResponse


class OAuthCallbackRequest(BaseModel):
    code: str
    state: str


# =============================================================================
# Public Endpoints
# =============================================================================

@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    data: UserCreate,
    sessions: SessionIssuer = Depends(get_sessions),
):
    """
    Create a new password account.

    Does not sign the user in; call /auth/login afterwards.
    """
    user = await sessions.register(data)
    return user.to_response()


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    request: Request,
    sessions: SessionIssuer = Depends(get_sessions),
    credentials: CredentialStore = Depends(get_credentials),
    tracker: FailedLoginTracker = Depends(get_login_tracker),
):
    """
    Authenticate and get a session token.

    Failed attempts count against the caller's IP.
    """
    ip = client_ip(request, request.app.state.settings.trusted_proxies_list)
    if await tracker.is_blocked(ip):
        raise ForbiddenError()

    try:
        ctx = await sessions.authenticate(data.email, data.password)
    except InvalidCredentialsError:
        await tracker.track_failure(ip)
        raise

    await tracker.clear(ip)
    token = await sessions.issue_session(ctx)
    user = await credentials.get_or_raise(ctx.user_id)

    return LoginResponse(**token.model_dump(), user=user.to_response())


@router.get("/providers")
async def list_oauth_providers(oauth: OAuthManager = Depends(get_oauth)):
    """
    List available OAuth providers.

    Only returns providers that are properly configured.
    """
    return {"providers": oauth.get_available_providers()}


@router.get("/oauth/{provider}/authorize")
async def oauth_authorize(provider: str, oauth: OAuthManager = Depends(get_oauth)):
    """
    Get the OAuth authorization URL.

    Redirect the user to this URL to start the OAuth flow.
    """
    if provider not in oauth.get_available_providers():
        raise HTTPException(
            status_code=400,
            detail=f"Provider '{provider}' not available",
        )

    try:
        return {"authorize_url": await oauth.get_authorize_url(provider)}
    except OAuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/oauth/{provider}/callback", response_model=LoginResponse)
async def oauth_callback(
    provider: str,
    data: OAuthCallbackRequest,
    sessions: SessionIssuer = Depends(get_sessions),
    oauth: OAuthManager = Depends(get_oauth),
):
    """
    Complete the OAuth flow.

    Exchanges the authorization code for the provider's user info, then
    finds or creates the matching account and issues a session.
    """
    # Validate state (CSRF protection)
    if await oauth.validate_state(data.state) != provider:
        raise HTTPException(status_code=400, detail="Invalid state parameter")

    try:
        info = await oauth.authenticate(provider, data.code)
        user, token = await sessions.sign_in_with_oauth(info)
    except OAuthError as e:
        logger.warning(f"OAuth sign-in via {provider} failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return LoginResponse(**token.model_dump(), user=user.to_response())


# =============================================================================
# Protected Endpoints
# =============================================================================

@router.post("/logout")
async def logout(
    ctx: AuthContext = Depends(require_auth()),
    sessions: SessionIssuer = Depends(get_sessions),
):
    """
    Logout. The client should discard its token.
    """
    await sessions.revoke(ctx)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_current_user(
    ctx: AuthContext = Depends(require_auth()),
    credentials: CredentialStore = Depends(get_credentials),
):
    """
    Get the current authenticated user.
    """
    user = await credentials.get_or_raise(ctx.user_id)
    return user.to_response()
