"""
Delegation log persistence.
"""
from typing import Any, Dict, List
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import StoreError
from app.features.hierarchy.models import DelegationLog


class DelegationLogStore:
    """Create, find and bulk-update delegation logs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, entry: DelegationLog) -> DelegationLog:
        self.db.add(entry)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to record delegation") from e
        return entry

    async def find(self, *criteria, newest_first: bool = False) -> List[DelegationLog]:
        stmt = select(DelegationLog).where(*criteria)
        if newest_first:
            stmt = stmt.order_by(DelegationLog.start_date.desc(), DelegationLog.id.desc())
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError("Failed to query delegation logs") from e
        return list(result.scalars().all())

    async def update_many(self, criteria: list, values: Dict[str, Any]) -> int:
        """
        Update every log matching criteria; returns the number of rows changed.

        The criteria are re-evaluated by the database at write time, so a row
        that changed state in the meantime is left alone.
        """
        stmt = (
            update(DelegationLog)
            .where(*criteria)
            .values(**values)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to update delegation logs") from e
        return result.rowcount
