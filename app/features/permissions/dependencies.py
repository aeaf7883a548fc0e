"""
FastAPI dependencies for resource/action permission checks.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.checker import PermissionChecker
from app.features.permissions.store import PermissionStore
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


def get_permission_checker(db: Annotated[AsyncSession, Depends(get_db)]) -> PermissionChecker:
    return PermissionChecker(PermissionStore(db))


def require_permission(resource: str, action: str):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.get("/dashboard")
        async def dashboard(
            user: User = Depends(require_permission("dashboard", "view"))
        ):
            # User has permission to view the dashboard
            pass

    Raises:
        HTTPException: 403 if user doesn't have permission
    """
    async def permission_dependency(
        current_user: Annotated[User, Depends(get_current_user)],
        checker: Annotated[PermissionChecker, Depends(get_permission_checker)],
    ) -> User:
        if not await checker.has_permission(current_user, resource, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action} on {resource}"
            )

        return current_user

    return permission_dependency

