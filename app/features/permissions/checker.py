"""
Resource/action permission checks.

Independent of hierarchy rank except for super_admin, which holds every
permission. Anything missing (no roles, no Permission record) denies.
"""
from typing import Iterable, List, Tuple

from app.features.hierarchy.levels import AccessLevel
from app.features.permissions.models import Permission
from app.features.permissions.store import PermissionStore
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


class PermissionChecker:
    """
    Usage:
        checker = PermissionChecker(PermissionStore(db))
        if await checker.has_permission(user, "dashboard", "view"):
            ...
    """

    def __init__(self, store: PermissionStore):
        self.store = store

    async def has_permission(self, user: User, resource: str, action: str) -> bool:
        """Check if user may perform action on resource."""
        if user.access_level == AccessLevel.SUPER_ADMIN:
            log.debug(f"User {user.id} is super_admin - granted permission {action} on {resource}")
            return True

        role_ids = user.role_ids
        if not role_ids:
            log.debug(f"User {user.id} has no roles - denied permission {action} on {resource}")
            return False

        permission = await self.store.find_permission(resource, action)
        if permission is None:
            log.debug(f"Permission {action} on {resource} is not defined - denied for user {user.id}")
            return False

        if await self.store.has_link(role_ids, permission.id):
            log.debug(f"User {user.id} granted permission {action} on {resource}")
            return True

        log.debug(f"User {user.id} denied permission {action} on {resource}")
        return False

    async def has_any_permission(self, user: User, permissions: Iterable[Tuple[str, str]]) -> bool:
        """True if user holds at least one of the (resource, action) pairs."""
        for resource, action in permissions:
            if await self.has_permission(user, resource, action):
                return True
        return False

    async def get_user_permissions(self, user: User) -> List[Permission]:
        """Permission records reachable through the user's roles."""
        return await self.store.find_permissions_for_roles(user.role_ids)

    async def compute_effective_permissions(self, user: User) -> List[str]:
        """Sorted, deduplicated permission names across all of the user's roles."""
        permissions = await self.get_user_permissions(user)
        return sorted({permission.name for permission in permissions})
