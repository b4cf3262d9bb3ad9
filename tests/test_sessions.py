"""
Tests for password hashing, authentication and session tokens.
"""

from datetime import timedelta

import jwt
import pytest
from pydantic import ValidationError as PydanticValidationError

from hearth.auth.context import AuthContext
from hearth.auth.sessions import UserCreate, hash_password, verify_password
from hearth.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
)
from hearth.core.models import AuditAction, Role, User
from hearth.core.utils import utc_now
from hearth.integrations.oauth import OAuthError, OAuthUserInfo

PASSWORD = "s3cure-passw0rd"


def signup(email: str = "alice@example.com", role: Role = Role.PARENT) -> UserCreate:
    return UserCreate(name="Alice", email=email, password=PASSWORD, role=role)


# =============================================================================
# Password hashing
# =============================================================================


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password(PASSWORD, rounds=4)

        assert hashed != PASSWORD
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("wrong-password", hashed)

    def test_garbage_hash_does_not_raise(self):
        assert not verify_password(PASSWORD, "not-a-bcrypt-hash")


# =============================================================================
# Registration
# =============================================================================


class TestRegister:
    def test_admin_cannot_self_assign(self):
        with pytest.raises(PydanticValidationError):
            signup(role=Role.ADMIN)

    def test_short_password_rejected(self):
        with pytest.raises(PydanticValidationError):
            UserCreate(name="Alice", email="alice@example.com", password="short")

    @pytest.mark.asyncio
    async def test_register_audits(self, sessions, audit):
        user = await sessions.register(signup())

        assert user.has_password
        assert user.role == Role.PARENT

        entries = await audit.entries(actor_id=user.id, action=AuditAction.REGISTER)
        assert len(entries) == 1
        assert entries[0].detail["registrationMethod"] == "email"

    @pytest.mark.asyncio
    async def test_register_duplicate_case_insensitive(self, sessions):
        await sessions.register(signup("alice@example.com"))

        with pytest.raises(DuplicateEmailError):
            await sessions.register(signup("ALICE@example.com"))


# =============================================================================
# Authentication
# =============================================================================


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, sessions):
        user = await sessions.register(signup())

        ctx = await sessions.authenticate("Alice@Example.com", PASSWORD)

        assert ctx.user_id == user.id
        assert ctx.role == Role.PARENT

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, sessions):
        await sessions.register(signup())

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await sessions.authenticate("alice@example.com", "not-the-password")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await sessions.authenticate("nobody@example.com", PASSWORD)

        assert type(wrong_password.value) is type(unknown_email.value)
        assert wrong_password.value.message == unknown_email.value.message
        assert wrong_password.value.status_code == unknown_email.value.status_code

    @pytest.mark.asyncio
    async def test_oauth_only_account_cannot_use_password(self, sessions, credentials):
        await credentials.create(User(email="oauth@example.com", name="OAuth User"))

        with pytest.raises(InvalidCredentialsError):
            await sessions.authenticate("oauth@example.com", PASSWORD)


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:
    @pytest.mark.asyncio
    async def test_issue_session_records_one_login(self, sessions, credentials, audit):
        user = await sessions.register(signup())
        started = utc_now()

        ctx = await sessions.authenticate(user.email, PASSWORD)
        token = await sessions.issue_session(ctx)

        assert token.token_type == "bearer"
        assert token.expires_in == 30 * 60

        logins = await audit.entries(actor_id=user.id, action=AuditAction.LOGIN)
        assert len(logins) == 1
        assert logins[0].detail["provider"] == "credentials"

        stored = await credentials.get(user.id)
        assert stored.last_login_at >= started

    @pytest.mark.asyncio
    async def test_verify_round_trip(self, sessions):
        user = await sessions.register(signup(role=Role.SUPPORTER))
        token = await sessions.issue_session(AuthContext.from_user(user))

        ctx = sessions.verify_session(token.access_token)

        assert ctx.user_id == user.id
        assert ctx.role == Role.SUPPORTER
        assert ctx.email == user.email
        assert ctx.session_id

    def test_expired_token(self, sessions, settings):
        now = utc_now()
        token = jwt.encode(
            {
                "sub": "user_1",
                "role": "PARENT",
                "type": "access",
                "iat": now - timedelta(hours=2),
                "exp": now - timedelta(hours=1),
            },
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenExpiredError):
            sessions.verify_session(token)

    def test_wrong_secret(self, sessions):
        now = utc_now()
        token = jwt.encode(
            {"sub": "user_1", "role": "ADMIN", "type": "access", "iat": now, "exp": now + timedelta(minutes=5)},
            "some-other-secret-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(TokenInvalidError):
            sessions.verify_session(token)

    def test_wrong_token_type(self, sessions, settings):
        now = utc_now()
        token = jwt.encode(
            {"sub": "user_1", "role": "PARENT", "type": "refresh", "iat": now, "exp": now + timedelta(minutes=5)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenInvalidError):
            sessions.verify_session(token)

    def test_garbage_token(self, sessions):
        with pytest.raises(TokenInvalidError):
            sessions.verify_session("not.a.token")

    @pytest.mark.asyncio
    async def test_role_is_snapshotted(self, sessions, credentials):
        user = await sessions.register(signup())
        token = await sessions.issue_session(AuthContext.from_user(user))

        await credentials.update(user.id, {"role": Role.ADMIN})

        # Still the role from sign-in until the token expires
        assert sessions.verify_session(token.access_token).role == Role.PARENT

    @pytest.mark.asyncio
    async def test_revoke_records_logout(self, sessions, audit):
        user = await sessions.register(signup())
        token = await sessions.issue_session(AuthContext.from_user(user))

        await sessions.revoke(sessions.verify_session(token.access_token))

        logouts = await audit.entries(actor_id=user.id, action=AuditAction.LOGOUT)
        assert len(logouts) == 1


# =============================================================================
# OAuth sign-in
# =============================================================================


def google_info(email: str = "gwen@example.com", verified: bool = True) -> OAuthUserInfo:
    return OAuthUserInfo(
        provider="google",
        provider_user_id="g-123",
        email=email,
        name="Gwen",
        picture_url="https://example.com/gwen.png",
        email_verified=verified,
    )


class TestOAuthSignIn:
    @pytest.mark.asyncio
    async def test_creates_account(self, sessions, audit):
        user, token = await sessions.sign_in_with_oauth(google_info())

        assert user.google_id == "g-123"
        assert not user.has_password
        assert user.role == Role.PARENT
        assert token.access_token

        registered = await audit.entries(actor_id=user.id, action=AuditAction.REGISTER)
        assert registered[0].detail["registrationMethod"] == "google"
        logins = await audit.entries(actor_id=user.id, action=AuditAction.LOGIN)
        assert logins[0].detail["provider"] == "google"

    @pytest.mark.asyncio
    async def test_links_existing_account(self, sessions):
        existing = await sessions.register(signup("gwen@example.com"))

        user, _ = await sessions.sign_in_with_oauth(google_info("GWEN@example.com"))

        assert user.id == existing.id
        assert user.google_id == "g-123"
        assert user.has_password

    @pytest.mark.asyncio
    async def test_unverified_email_refused(self, sessions, credentials, audit):
        admin = await credentials.create(User(email="boss@example.com", name="Boss", role=Role.ADMIN))

        with pytest.raises(OAuthError):
            await sessions.sign_in_with_oauth(google_info("boss@example.com", verified=False))

        stored = await credentials.get(admin.id)
        assert stored.google_id is None
        assert await audit.entries(actor_id=admin.id, action=AuditAction.LOGIN) == []
