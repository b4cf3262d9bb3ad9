"""
Tests for the credential store.

Emails are unique regardless of letter case, also under concurrent
registration.
"""

import asyncio

import pytest

from hearth.auth.credentials import normalize_email
from hearth.core.exceptions import DuplicateEmailError, UserNotFoundError, ValidationError
from hearth.core.models import Role, User, UserStatus


def make(email: str, name: str = "Someone", **kwargs) -> User:
    return User(email=email, name=name, **kwargs)


# =============================================================================
# Email normalization
# =============================================================================


class TestNormalizeEmail:
    def test_lowercases_and_strips(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"


# =============================================================================
# Create / lookup
# =============================================================================


class TestCreate:
    @pytest.mark.asyncio
    async def test_stores_normalized_email(self, credentials):
        user = await credentials.create(make("Alice@Example.com"))

        assert user.email == "alice@example.com"
        found = await credentials.find_by_email("ALICE@example.com")
        assert found is not None
        assert found.id == user.id

    @pytest.mark.asyncio
    async def test_case_variant_is_duplicate(self, credentials):
        await credentials.create(make("alice@example.com"))

        with pytest.raises(DuplicateEmailError):
            await credentials.create(make("ALICE@EXAMPLE.COM"))

    @pytest.mark.asyncio
    async def test_concurrent_registrations_one_wins(self, credentials):
        results = await asyncio.gather(
            credentials.create(make("race@example.com")),
            credentials.create(make("Race@Example.com")),
            return_exceptions=True,
        )

        created = [r for r in results if isinstance(r, User)]
        failed = [r for r in results if isinstance(r, DuplicateEmailError)]
        assert len(created) == 1
        assert len(failed) == 1

        users, total = await credentials.list_users()
        assert total == 1

    @pytest.mark.asyncio
    async def test_find_unknown_email(self, credentials):
        assert await credentials.find_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_get_or_raise(self, credentials):
        with pytest.raises(UserNotFoundError):
            await credentials.get_or_raise("user_missing")


# =============================================================================
# Update / delete
# =============================================================================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update(self, credentials):
        user = await credentials.create(make("bob@example.com", name="Bob"))

        updated = await credentials.update(user.id, {"name": "Robert", "phone_number": "555-0100"})

        assert updated.name == "Robert"
        assert updated.phone_number == "555-0100"
        assert updated.email == "bob@example.com"
        stored = await credentials.get(user.id)
        assert stored.name == "Robert"

    @pytest.mark.asyncio
    async def test_email_change_moves_index(self, credentials):
        user = await credentials.create(make("old@example.com"))

        await credentials.update(user.id, {"email": "New@Example.com"})

        assert await credentials.find_by_email("old@example.com") is None
        assert (await credentials.find_by_email("new@example.com")).id == user.id
        # Old address is free again
        await credentials.create(make("old@example.com"))

    @pytest.mark.asyncio
    async def test_email_change_to_taken_address(self, credentials):
        await credentials.create(make("taken@example.com"))
        user = await credentials.create(make("mine@example.com"))

        with pytest.raises(DuplicateEmailError):
            await credentials.update(user.id, {"email": "TAKEN@example.com"})

        assert (await credentials.get(user.id)).email == "mine@example.com"

    @pytest.mark.asyncio
    async def test_invalid_role_rejected_before_write(self, credentials):
        user = await credentials.create(make("carol@example.com"))

        with pytest.raises(ValidationError) as exc_info:
            await credentials.update(user.id, {"role": "OVERLORD"})

        assert exc_info.value.status_code == 400
        assert "role" in exc_info.value.message
        assert (await credentials.get(user.id)).role == Role.PARENT

    @pytest.mark.asyncio
    async def test_null_name_rejected(self, credentials):
        user = await credentials.create(make("dana@example.com", name="Dana"))

        with pytest.raises(ValidationError):
            await credentials.update(user.id, {"name": None})

        assert (await credentials.get(user.id)).name == "Dana"

    @pytest.mark.asyncio
    async def test_update_missing_user(self, credentials):
        with pytest.raises(UserNotFoundError):
            await credentials.update("user_missing", {"name": "Nobody"})

    @pytest.mark.asyncio
    async def test_delete_releases_email(self, credentials):
        user = await credentials.create(make("gone@example.com"))

        await credentials.delete(user.id)

        assert await credentials.get(user.id) is None
        assert await credentials.find_by_email("gone@example.com") is None
        await credentials.create(make("gone@example.com"))


# =============================================================================
# Listing
# =============================================================================


class TestListUsers:
    @pytest.mark.asyncio
    async def test_filters_and_search(self, credentials):
        await credentials.create(make("p1@example.com", name="Pat Parent"))
        await credentials.create(make("c1@example.com", name="Chris Child", role=Role.CHILD))
        await credentials.create(make(
            "s1@example.com", name="Sam Supporter", role=Role.SUPPORTER, status=UserStatus.SUSPENDED
        ))

        children, total = await credentials.list_users(role=Role.CHILD)
        assert total == 1
        assert children[0].name == "Chris Child"

        suspended, total = await credentials.list_users(status=UserStatus.SUSPENDED)
        assert [u.email for u in suspended] == ["s1@example.com"]

        found, total = await credentials.list_users(search="PAT")
        assert total == 1
        found, total = await credentials.list_users(search="example.com")
        assert total == 3

    @pytest.mark.asyncio
    async def test_pagination(self, credentials):
        for i in range(5):
            await credentials.create(make(f"user{i}@example.com"))

        page1, total = await credentials.list_users(page=1, limit=2)
        page3, _ = await credentials.list_users(page=3, limit=2)

        assert total == 5
        assert len(page1) == 2
        assert len(page3) == 1
