"""
User feature routes.

Listing is narrowed by the caller's data scope; single-user routes go through
the access gate.
"""
from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status

from app.features.audit.sink import AuditSink
from app.features.hierarchy.dependencies import (
    client_ip,
    get_accessible_user,
    get_audit_sink,
    get_data_scope,
)
from app.features.hierarchy.scope import Collection, DataScope
from app.features.users.models import User
from app.features.users.schemas import UserResponse, UserUpdate
from app.features.users.dependencies import get_current_user, get_user_directory
from app.features.users.directory import UserDirectory


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.get("/", response_model=list[UserResponse])
async def list_users(
    scope: Annotated[DataScope, Depends(get_data_scope)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
    skip: int = 0,
    limit: int = 50
):
    """List users visible to the current user."""
    return await users.find(scope.for_collection(Collection.USER), skip=skip, limit=limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    target: Annotated[User, Depends(get_accessible_user)]
):
    """Get a user the current user may access."""
    return target


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    update_data: UserUpdate,
    background_tasks: BackgroundTasks,
    request: Request,
    target: Annotated[User, Depends(get_accessible_user)],
    current_user: Annotated[User, Depends(get_current_user)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Update profile fields of a user the current user may access."""
    changes = update_data.model_dump(exclude_unset=True, exclude_none=True)
    before = {key: getattr(target, key) for key in changes}

    await users.update(target, changes)

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "USER_UPDATE",
        "User",
        before=before,
        after=changes,
        origin=client_ip(request),
    )
    return target


@router.delete("/{user_id}")
async def deactivate_user(
    background_tasks: BackgroundTasks,
    request: Request,
    target: Annotated[User, Depends(get_accessible_user)],
    current_user: Annotated[User, Depends(get_current_user)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Deactivate a user account; users are never hard-deleted."""
    # Prevent self-deactivation
    if target.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    previous_status = target.status
    await users.update(target, {"status": "suspended"})

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "USER_DEACTIVATE",
        "User",
        before={"id": target.id, "status": previous_status},
        after={"id": target.id, "status": "suspended"},
        origin=client_ip(request),
    )
    return {"message": "User deactivated successfully"}
