"""
Role/permission lookups.
"""
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import StoreError
from app.features.permissions.models import Permission, normalize_key, role_permissions


class PermissionStore:
    """Read access to permissions and the role_permissions join."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_permission(self, resource: str, action: str) -> Optional[Permission]:
        stmt = select(Permission).where(
            Permission.resource == normalize_key(resource),
            Permission.action == normalize_key(action),
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to look up permission {action} on {resource}") from e
        return result.scalars().first()

    async def has_link(self, role_ids: Sequence[str], permission_id: str) -> bool:
        """True if any of role_ids is linked to permission_id."""
        if not role_ids:
            return False
        stmt = select(role_permissions.c.role_id).where(
            role_permissions.c.role_id.in_(list(role_ids)),
            role_permissions.c.permission_id == permission_id,
        ).limit(1)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError("Failed to look up role permissions") from e
        return result.first() is not None

    async def find_permissions_for_roles(self, role_ids: Sequence[str]) -> List[Permission]:
        """Distinct permissions linked to any of role_ids."""
        if not role_ids:
            return []
        stmt = (
            select(Permission)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id.in_(list(role_ids)))
            .distinct()
            .order_by(Permission.name)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError("Failed to load role permissions") from e
        return list(result.scalars().all())
