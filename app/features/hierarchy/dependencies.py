"""
FastAPI dependencies for hierarchy checks.

Implements:
- Minimum access level and organization type guards
- Delegated authority guard (capability granted and not expired)
- Single-target user access guard
- Wiring of the delegation manager and audit sink
"""
from typing import Annotated, Iterable, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import get_db, get_session_factory
from app.features.audit.sink import AuditSink
from app.features.hierarchy.access import can_access
from app.features.hierarchy.levels import AccessLevel, OrganizationType, meets_level, rank
from app.features.hierarchy.schemas import Capability
from app.features.hierarchy.scope import DataScope, resolve_scope
from app.features.hierarchy.service import DelegationManager
from app.features.hierarchy.store import DelegationLogStore
from app.features.users.dependencies import get_current_user, get_user_directory
from app.features.users.directory import UserDirectory
from app.features.users.models import User
from app.utils import get_logger, utcnow


log = get_logger(__name__)


def get_delegation_manager(
    db: Annotated[AsyncSession, Depends(get_db)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
) -> DelegationManager:
    return DelegationManager(users, DelegationLogStore(db))


def get_audit_sink(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AuditSink:
    return AuditSink(session_factory)


def get_data_scope(current_user: Annotated[User, Depends(get_current_user)]) -> DataScope:
    return resolve_scope(current_user)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def require_hierarchy_level(required: AccessLevel):
    """
    FastAPI dependency requiring at least the given access level.

    Usage:
        @router.post("/delegate")
        async def delegate(user: User = Depends(require_hierarchy_level(AccessLevel.DIRECTORATE))):
            ...
    """
    async def level_dependency(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if not meets_level(current_user.access_level, required):
            log.info(
                "User %s (%s, rank %d) below required level %s",
                current_user.id, current_user.access_level, rank(current_user.access_level), required.value
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient hierarchy level: requires {required.value}, current {current_user.access_level}"
            )
        return current_user

    return level_dependency


def require_organization_type(allowed: Iterable[OrganizationType]):
    """FastAPI dependency restricting a route to users of the given organization types."""
    allowed_values = {OrganizationType(value).value for value in allowed}

    async def organization_type_dependency(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if current_user.organization_type not in allowed_values:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access restricted to organization types {sorted(allowed_values)}"
            )
        return current_user

    return organization_type_dependency


def require_delegated_authority(capability: Capability, bypass_level: Optional[AccessLevel] = None):
    """
    FastAPI dependency requiring an unexpired delegated capability.

    Users at bypass_level or above pass without a delegation.

    Usage:
        @router.post("/teams/{team_id}/members")
        async def add_member(
            user: User = Depends(require_delegated_authority("can_manage_teams", AccessLevel.DIRECTORATE))
        ):
            ...
    """
    async def delegation_dependency(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if bypass_level is not None and meets_level(current_user.access_level, bypass_level):
            return current_user
        if not current_user.delegated_authority.allows(capability, utcnow()):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Delegated authority required: {capability}"
            )
        return current_user

    return delegation_dependency


async def get_accessible_user(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
) -> User:
    """Load the target user of a route and check the current user may act on it."""
    target = await users.get(user_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Target user not found")

    if not can_access(current_user, target):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this user"
        )
    return target
