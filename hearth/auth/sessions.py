# =============================================================================
# Session Issuer
# =============================================================================
#
# Turns a verified identity into a bearer token and back:
#   - Registration and password hashing (bcrypt)
#   - Credential authentication
#   - Session token creation / validation (signed JWT, HS256)
#   - OAuth sign-in with account linking by email
#
# Sessions are stateless. The role is copied into the token at issuance and
# trusted until the token expires; there is no server-side revocation.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
import jwt
from pydantic import BaseModel, EmailStr, Field, field_validator

from hearth.auth.audit import AuditLog
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore
from hearth.config import Settings, get_settings
from hearth.core.exceptions import (
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
)
from hearth.core.models import AuditAction, Role, User
from hearth.core.utils import generate_id, utc_now
from hearth.integrations.oauth import OAuthError, OAuthUserInfo

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


# =============================================================================
# Models
# =============================================================================


class UserCreate(BaseModel):
    """User registration data."""

    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.PARENT

    @field_validator("role")
    @classmethod
    def role_is_self_assignable(cls, role: Role) -> Role:
        if role == Role.ADMIN:
            raise ValueError("ADMIN cannot be self-assigned")
        return role


class SessionToken(BaseModel):
    """Bearer token handed to the client."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    expires_at: datetime


class TokenPayload(BaseModel):
    """Decoded session claims."""

    sub: str  # user_id
    role: Role
    email: str | None = None
    name: str | None = None
    exp: datetime
    iat: datetime
    jti: str
    type: str


# =============================================================================
# Password Hashing
# =============================================================================


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt."""
    rounds = rounds or get_settings().bcrypt_rounds
    return bcrypt.hashpw(_encode_password(password), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash (constant-time)."""
    try:
        return bcrypt.checkpw(_encode_password(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache
def _dummy_hash(rounds: int) -> str:
    """A hash to compare against when there is no real one."""
    return hash_password(generate_id("dummy"), rounds)


# =============================================================================
# Session Issuer
# =============================================================================


class SessionIssuer:
    """Authenticates users and issues / verifies session tokens."""

    def __init__(
        self,
        credentials: CredentialStore,
        audit: AuditLog,
        settings: Settings | None = None,
    ):
        self.credentials = credentials
        self.audit = audit
        self.settings = settings or get_settings()

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(self, data: UserCreate, method: str = "email") -> User:
        """
        Create a password account.

        Raises:
            DuplicateEmailError: Email already registered (any letter case)
        """
        user = await self.credentials.create(User(
            email=data.email,
            name=data.name,
            password_hash=hash_password(data.password, self.settings.bcrypt_rounds),
            role=data.role,
        ))

        await self.audit.record(
            user.id,
            AuditAction.REGISTER,
            detail={"registrationMethod": method, "timestamp": utc_now().isoformat()},
        )
        return user

    # =========================================================================
    # Authentication
    # =========================================================================

    async def authenticate(self, email: str, password: str) -> AuthContext:
        """
        Check an email/password pair.

        Unknown email, OAuth-only account and wrong password all raise the
        same error after the same amount of bcrypt work.

        Raises:
            InvalidCredentialsError
        """
        user = await self.credentials.find_by_email(email)

        if user is None or not user.has_password:
            verify_password(password, _dummy_hash(self.settings.bcrypt_rounds))
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        return AuthContext.from_user(user)

    async def sign_in_with_oauth(self, info: OAuthUserInfo) -> tuple[User, SessionToken]:
        """
        Find or create the account for a provider-confirmed email and
        issue a session for it.

        An existing account with the same email is linked, whatever
        provider created it, so an address the provider has not verified
        is refused outright.

        Raises:
            OAuthError: The provider did not confirm the email
        """
        if not info.email_verified:
            logger.warning(f"Refused {info.provider} sign-in with unverified email {info.email}")
            raise OAuthError("Email address not verified by provider")

        user = await self.credentials.find_by_email(info.email)

        if user is None:
            user = await self.credentials.create(User(
                email=info.email,
                name=info.name,
                image=info.picture_url,
                email_verified=info.email_verified,
                google_id=info.provider_user_id if info.provider == "google" else None,
            ))
            await self.audit.record(
                user.id,
                AuditAction.REGISTER,
                detail={"registrationMethod": info.provider, "timestamp": utc_now().isoformat()},
            )
        elif info.provider == "google" and not user.google_id:
            user = await self.credentials.update(user.id, {"google_id": info.provider_user_id})

        token = await self.issue_session(AuthContext.from_user(user), provider=info.provider)
        return user, token

    # =========================================================================
    # Tokens
    # =========================================================================

    async def issue_session(self, ctx: AuthContext, provider: str = "credentials") -> SessionToken:
        """
        Sign a session token for an authenticated identity.

        Side effects: stamps the user's last login and records LOGIN.
        """
        now = utc_now()
        lifetime = timedelta(minutes=self.settings.session_expire_minutes)
        expire = now + lifetime

        payload = {
            "sub": ctx.user_id,
            "role": ctx.role.value,
            "email": ctx.email,
            "name": ctx.name,
            "exp": expire,
            "iat": now,
            "type": "access",
            "jti": generate_id("tok"),
        }
        token = jwt.encode(payload, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm)

        await self.credentials.update(ctx.user_id, {"last_login_at": now})
        await self.audit.record(
            ctx.user_id,
            AuditAction.LOGIN,
            detail={"provider": provider, "timestamp": now.isoformat()},
        )

        logger.info(f"Session issued for {ctx.user_id} via {provider}")
        return SessionToken(
            access_token=token,
            expires_in=int(lifetime.total_seconds()),
            expires_at=expire,
        )

    def decode_token(self, token: str) -> TokenPayload:
        """
        Decode and validate a session token.

        Raises:
            TokenExpiredError: Token has expired
            TokenInvalidError: Bad signature, wrong type or malformed claims
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(details=str(e))

        if payload.get("type") != "access":
            raise TokenInvalidError(details=f"Expected access token, got {payload.get('type')}")

        try:
            return TokenPayload(
                sub=payload["sub"],
                role=payload.get("role"),
                email=payload.get("email"),
                name=payload.get("name"),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                type=payload["type"],
                jti=payload.get("jti", ""),
            )
        except ValueError as e:
            raise TokenInvalidError(details=f"Invalid session claims: {e}")

    def verify_session(self, token: str) -> AuthContext:
        """
        Validate a token and return the identity it asserts.

        The role comes from the token, not from storage.
        """
        payload = self.decode_token(token)
        return AuthContext(
            user_id=payload.sub,
            email=payload.email,
            name=payload.name,
            role=payload.role,
            session_id=payload.jti,
            expires_at=payload.exp,
        )

    async def revoke(self, ctx: AuthContext) -> None:
        """
        Record a logout.

        Tokens are stateless: the client discards it and it stays valid
        until expiry. This only writes the audit trail.
        """
        await self.audit.record(
            ctx.user_id,
            AuditAction.LOGOUT,
            detail={"sessionId": ctx.session_id, "timestamp": utc_now().isoformat()},
        )
