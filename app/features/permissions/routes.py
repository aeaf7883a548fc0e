"""
Permission management API routes.

Provides endpoints for managing permissions, roles and their assignments,
and for checking the current user's effective permissions.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request, BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.features.audit.sink import AuditSink
from app.features.hierarchy.dependencies import (
    client_ip,
    get_accessible_user,
    get_audit_sink,
    get_data_scope,
    require_hierarchy_level,
)
from app.features.hierarchy.filters import apply_scope
from app.features.hierarchy.levels import AccessLevel
from app.features.hierarchy.scope import Collection, DataScope
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.checker import PermissionChecker
from app.features.permissions.models import Permission, Role, normalize_key
from app.features.permissions.schemas import (
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleWithPermissions,
    AssignRoleToUser,
    AssignPermissionToRole,
    PermissionCheckRequest,
    PermissionCheckResponse,
    UserPermissionsResponse,
)
from app.features.permissions.dependencies import get_permission_checker, require_permission
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

SuperAdmin = Annotated[User, Depends(require_hierarchy_level(AccessLevel.SUPER_ADMIN))]


async def _get_role(db: AsyncSession, role_id: str) -> Role:
    role = await db.get(Role, role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


async def _get_permission(db: AsyncSession, permission_id: str) -> Permission:
    permission = await db.get(Permission, permission_id)
    if not permission:
        raise HTTPException(status_code=404, detail="Permission not found")
    return permission


# ============================================================================
# Current User
# ============================================================================

@router.get("/me", response_model=UserPermissionsResponse)
async def get_my_permissions(
    current_user: Annotated[User, Depends(get_current_user)],
    checker: Annotated[PermissionChecker, Depends(get_permission_checker)],
):
    """Effective permission names of the current user."""
    return UserPermissionsResponse(
        user_id=current_user.id,
        access_level=current_user.access_level,
        roles=sorted(role.name for role in current_user.roles),
        permissions=await checker.compute_effective_permissions(current_user),
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check: PermissionCheckRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    checker: Annotated[PermissionChecker, Depends(get_permission_checker)],
):
    """Check whether the current user may perform action on resource."""
    allowed = await checker.has_permission(current_user, check.resource, check.action)
    return PermissionCheckResponse(allowed=allowed, resource=check.resource, action=check.action)


# ============================================================================
# Permission Routes
# ============================================================================

@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: SuperAdmin,
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Create a new permission (super admin only)."""
    try:
        db_permission = Permission(**permission.model_dump())
        db.add(db_permission)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Permission {permission.action} on {permission.resource} already exists"
        )

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "PERMISSION_CREATE",
        "Permission",
        after=permission.model_dump(),
        origin=client_ip(request),
    )
    return db_permission


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    current_user: Annotated[User, Depends(get_current_user)],
    skip: int = 0,
    limit: int = 100,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List all permissions with optional filtering."""
    stmt = select(Permission)

    if resource:
        stmt = stmt.where(Permission.resource == normalize_key(resource))
    if action:
        stmt = stmt.where(Permission.action == normalize_key(action))

    stmt = stmt.order_by(Permission.resource, Permission.action).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/permissions/{permission_id}", response_model=PermissionResponse)
async def get_permission(
    permission_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Get a specific permission by ID."""
    return await _get_permission(db, permission_id)


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: SuperAdmin,
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Delete a permission (super admin only)."""
    db_permission = await _get_permission(db, permission_id)
    before = {"name": db_permission.name, "resource": db_permission.resource, "action": db_permission.action}

    await db.delete(db_permission)
    await db.commit()

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "PERMISSION_DELETE",
        "Permission",
        before=before,
        origin=client_ip(request),
    )


# ============================================================================
# Role Routes
# ============================================================================

@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: SuperAdmin,
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Create a new role (super admin only)."""
    try:
        values = role.model_dump()
        values["type"] = role.type.value if role.type else None
        db_role = Role(**values, created_by_id=current_user.id)
        db.add(db_role)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "ROLE_CREATE",
        "Role",
        after=role.model_dump(),
        origin=client_ip(request),
    )
    return db_role


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    scope: Annotated[DataScope, Depends(get_data_scope)],
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """List roles visible to the current user."""
    role_filter = scope.for_collection(Collection.ROLE)
    if role_filter.deny_all:
        return []

    stmt = apply_scope(select(Role), Role, role_filter)
    stmt = stmt.order_by(Role.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/roles/{role_id}", response_model=RoleWithPermissions)
async def get_role(
    role_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Get a role with its permissions."""
    return await _get_role(db, role_id)


@router.post("/roles/{role_id}/permissions", response_model=RoleWithPermissions)
async def assign_permission_to_role(
    role_id: str,
    assignment: AssignPermissionToRole,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: SuperAdmin,
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Link a permission to a role (super admin only)."""
    role = await _get_role(db, role_id)
    permission = await _get_permission(db, assignment.permission_id)

    if permission.id not in {p.id for p in role.permissions}:
        role.permissions.append(permission)
        await db.commit()
        log.info(f"Permission {permission.name} linked to role {role.name}")

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "ROLE_PERMISSION_ASSIGN",
        "Role",
        after={"role_id": role.id, "permission_id": permission.id},
        origin=client_ip(request),
    )
    return role


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=RoleWithPermissions)
async def remove_permission_from_role(
    role_id: str,
    permission_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: SuperAdmin,
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Unlink a permission from a role (super admin only)."""
    role = await _get_role(db, role_id)

    remaining = [p for p in role.permissions if p.id != permission_id]
    if len(remaining) == len(role.permissions):
        raise HTTPException(status_code=404, detail="Permission not assigned to role")

    role.permissions = remaining
    await db.commit()

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "ROLE_PERMISSION_REMOVE",
        "Role",
        before={"role_id": role.id, "permission_id": permission_id},
        origin=client_ip(request),
    )
    return role


# ============================================================================
# User Role Assignment
# ============================================================================

@router.post("/users/{user_id}/roles", response_model=UserPermissionsResponse)
async def assign_role_to_user(
    assignment: AssignRoleToUser,
    background_tasks: BackgroundTasks,
    request: Request,
    target: Annotated[User, Depends(get_accessible_user)],
    current_user: Annotated[User, Depends(require_permission("role", "assign"))],
    checker: Annotated[PermissionChecker, Depends(get_permission_checker)],
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Grant a role to a user the current user may access."""
    role = await _get_role(db, assignment.role_id)

    if role.id not in target.role_ids:
        target.roles.append(role)
        await db.commit()
        log.info(f"Role {role.name} granted to user {target.id} by {current_user.id}")

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "USER_ROLE_ASSIGN",
        "User",
        after={"user_id": target.id, "role_id": role.id},
        origin=client_ip(request),
    )
    return UserPermissionsResponse(
        user_id=target.id,
        access_level=target.access_level,
        roles=sorted(r.name for r in target.roles),
        permissions=await checker.compute_effective_permissions(target),
    )


@router.delete("/users/{user_id}/roles/{role_id}", response_model=UserPermissionsResponse)
async def remove_role_from_user(
    role_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    target: Annotated[User, Depends(get_accessible_user)],
    current_user: Annotated[User, Depends(require_permission("role", "assign"))],
    checker: Annotated[PermissionChecker, Depends(get_permission_checker)],
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Withdraw a role from a user the current user may access."""
    if role_id not in target.role_ids:
        raise HTTPException(status_code=404, detail="Role not assigned to user")

    target.roles = [r for r in target.roles if r.id != role_id]
    await db.commit()

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "USER_ROLE_REMOVE",
        "User",
        before={"user_id": target.id, "role_id": role_id},
        origin=client_ip(request),
    )
    return UserPermissionsResponse(
        user_id=target.id,
        access_level=target.access_level,
        roles=sorted(r.name for r in target.roles),
        permissions=await checker.compute_effective_permissions(target),
    )
