"""
User directory backed by the SQLAlchemy session.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, StoreError
from app.features.hierarchy.filters import apply_scope
from app.features.hierarchy.scope import ScopeFilter
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


class UserDirectory:
    """Fetch, update and filter users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        try:
            result = await self.db.execute(
                select(User).where(User.id == user_id).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load user {user_id}") from e
        return result.scalar_one_or_none()

    async def update(self, user: User, values: Optional[Dict[str, Any]] = None) -> User:
        """Apply values (if any) and persist the user."""
        # rollback expires the instance
        user_id = user.id
        for key, value in (values or {}).items():
            setattr(user, key, value)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            log.info("Update of user %s rejected: %s", user_id, e.orig)
            raise ConflictError("User update conflicts with an existing user") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to update user {user_id}") from e
        return user

    async def find(
        self,
        scope_filter: ScopeFilter,
        *criteria,
        exclude_id: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[User]:
        """Users visible under scope_filter, optionally narrowed by extra SQL criteria."""
        if scope_filter.deny_all:
            return []
        stmt = apply_scope(select(User), User, scope_filter)
        if criteria:
            stmt = stmt.where(*criteria)
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        stmt = stmt.order_by(User.fullname).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError("Failed to query users") from e
        return list(result.scalars().all())

    async def find_where(self, *criteria, exclude_id: Optional[str] = None) -> List[User]:
        return await self.find(ScopeFilter.everything(), *criteria, exclude_id=exclude_id)

