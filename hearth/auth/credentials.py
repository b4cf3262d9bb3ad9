"""
Credential store - users, their password hashes, roles and status.

Emails are normalized before every lookup and write. Uniqueness is held by
a separate email index collection whose keys are normalized emails; the
index entry is inserted first, so two concurrent registrations for the
same address cannot both succeed.
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic

from hearth.core.exceptions import DuplicateEmailError, UserNotFoundError, ValidationError
from hearth.core.models import Role, User, UserStatus
from hearth.core.utils import utc_now
from hearth.storage.base import Collections, DuplicateKeyError, MetadataStorage

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """User persistence over MetadataStorage."""

    def __init__(self, metadata: MetadataStorage):
        self.metadata = metadata

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, user_id: str) -> User | None:
        data = await self.metadata.get(Collections.USERS, user_id)
        return User.model_validate(data) if data else None

    async def get_or_raise(self, user_id: str) -> User:
        user = await self.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def find_by_email(self, email: str) -> User | None:
        index = await self.metadata.get(Collections.USER_EMAILS, normalize_email(email))
        if not index:
            return None
        return await self.get(index["user_id"])

    async def list_users(
        self,
        role: Role | None = None,
        status: UserStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[User], int]:
        """
        List users, newest first.

        ``search`` matches name or email, case-insensitively.
        Returns (users on this page, total matches).
        """
        filters: dict[str, Any] = {}
        if role:
            filters["role"] = role.value
        if status:
            filters["status"] = status.value

        docs = await self.metadata.query(
            Collections.USERS, filters, limit=None, order_by="-created_at"
        )

        if search:
            needle = search.lower()
            docs = [
                doc for doc in docs
                if needle in doc.get("name", "").lower() or needle in doc.get("email", "").lower()
            ]

        start = (page - 1) * limit
        users = [User.model_validate(doc) for doc in docs[start:start + limit]]
        return users, len(docs)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, user: User) -> User:
        """
        Persist a new user. ``user.password_hash`` must already be hashed.

        Raises:
            DuplicateEmailError: An account with this email exists
        """
        user = user.model_copy(update={"email": normalize_email(user.email)})

        try:
            await self.metadata.insert(
                Collections.USER_EMAILS, user.email, {"user_id": user.id}
            )
        except DuplicateKeyError:
            raise DuplicateEmailError(user.email)

        await self.metadata.save(Collections.USERS, user.id, user.model_dump(mode="json"))
        logger.info(f"Created user {user.id} ({user.role.value})")
        return user

    async def update(self, user_id: str, fields: dict[str, Any]) -> User:
        """
        Apply a partial update.

        Raises:
            UserNotFoundError: No such user
            DuplicateEmailError: The new email belongs to another account
            ValidationError: A field value is not acceptable for a user
        """
        user = await self.get_or_raise(user_id)
        changes = dict(fields)
        if changes.get("email") is not None:
            changes["email"] = normalize_email(changes["email"])

        # Validate enums/types before anything is written
        try:
            updated = User.model_validate(
                {**user.model_dump(), **changes, "id": user.id, "updated_at": utc_now()}
            )
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid user update: {problems}", details=e.errors())

        if updated.email != user.email:
            try:
                await self.metadata.insert(
                    Collections.USER_EMAILS, updated.email, {"user_id": user.id}
                )
            except DuplicateKeyError:
                raise DuplicateEmailError(updated.email)
            await self.metadata.delete(Collections.USER_EMAILS, user.email)

        await self.metadata.update(
            Collections.USERS,
            user_id,
            updated.model_dump(mode="json", exclude={"id"}),
        )
        return updated

    async def delete(self, user_id: str) -> None:
        """
        Remove a user and release their email.

        Raises:
            UserNotFoundError: No such user
        """
        user = await self.get_or_raise(user_id)
        await self.metadata.delete(Collections.USERS, user_id)
        await self.metadata.delete(Collections.USER_EMAILS, user.email)
        logger.info(f"Deleted user {user_id}")
