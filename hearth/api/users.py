# =============================================================================
# User Administration Routes
# =============================================================================
#
# Endpoints:
#   GET    /users       - List users (admin)
#   GET    /users/{id}  - Get a user (self or admin)
#   PATCH  /users/{id}  - Update a user (self for profile fields, admin for all)
#   DELETE /users/{id}  - Delete a user (admin, never self)
#
# =============================================================================

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator

from hearth.api.deps import get_audit, get_credentials
from hearth.auth import capabilities
from hearth.auth.audit import AuditLog
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore
from hearth.auth.policies import enforce, get_auth_context, require
from hearth.core.exceptions import ValidationError
from hearth.core.models import AuditAction, Role, UserResponse, UserStatus

router = APIRouter(prefix="/users", tags=["users"])


# =============================================================================
# Request/Response Models
# =============================================================================

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class UserList(BaseModel):
    users: list[UserResponse]
    pagination: Pagination


class UserUpdate(BaseModel):
    """Partial update. Only fields that are sent are changed."""

    name: str | None = Field(default=None, min_length=2, max_length=100)
    phone_number: str | None = None
    role: Role | None = None
    status: UserStatus | None = None

    @model_validator(mode="after")
    def reject_nulls(self) -> UserUpdate:
        # phone_number may be cleared; the rest can only be replaced
        for field in ("name", "role", "status"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=UserList)
async def list_users(
    role: Role | None = None,
    status: UserStatus | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    ctx: AuthContext = Depends(require(capabilities.list_users())),
    credentials: CredentialStore = Depends(get_credentials),
):
    users, total = await credentials.list_users(role, status, search, page, limit)
    return UserList(
        users=[user.to_response() for user in users],
        pagination=Pagination.of(page, limit, total),
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    ctx: AuthContext | None = Depends(get_auth_context),
    credentials: CredentialStore = Depends(get_credentials),
):
    enforce(ctx, capabilities.read_user(user_id))
    user = await credentials.get_or_raise(user_id)
    return user.to_response()


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    ctx: AuthContext | None = Depends(get_auth_context),
    credentials: CredentialStore = Depends(get_credentials),
    audit: AuditLog = Depends(get_audit),
):
    """
    Update a user.

    Anyone may edit their own name and phone number. Role and status
    changes need ADMIN, on any record including one's own.
    """
    changes = data.model_dump(exclude_unset=True)
    ctx = enforce(ctx, capabilities.update_user(user_id, set(changes)))

    if not changes:
        raise ValidationError("No fields to update")

    user = await credentials.update(user_id, changes)

    await audit.record(
        ctx.user_id,
        AuditAction.USER_UPDATED,
        resource_type="user",
        detail={"targetUserId": user_id, "updatedFields": sorted(changes)},
    )
    return user.to_response()


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    ctx: AuthContext | None = Depends(get_auth_context),
    credentials: CredentialStore = Depends(get_credentials),
    audit: AuditLog = Depends(get_audit),
):
    ctx = enforce(ctx, capabilities.delete_user(user_id))

    await credentials.delete(user_id)

    await audit.record(
        ctx.user_id,
        AuditAction.USER_DELETED,
        resource_type="user",
        detail={"deletedUserId": user_id},
    )
    return {"message": "User deleted successfully"}
