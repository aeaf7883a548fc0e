"""
Expire lapsed delegations.

Meant to run from cron; safe to run repeatedly and next to the
POST /hierarchy/check-expired-delegations endpoint.

Usage:
    uv run python -m scripts.sweep_expired_delegations
"""
import asyncio

from app.core.database.engine import get_db, init_db
from app.features.hierarchy.service import DelegationManager
from app.features.hierarchy.store import DelegationLogStore
from app.features.users.directory import UserDirectory
from app.utils import get_logger


log = get_logger(__name__)


async def main():
    """Run one sweep over the active delegation logs."""
    log.info("Starting delegation sweep...")

    await init_db()

    async for db in get_db():
        try:
            manager = DelegationManager(UserDirectory(db), DelegationLogStore(db))
            expired = await manager.sweep_expired()
            log.info(f"Delegation sweep completed: {expired} delegation(s) expired")
        except Exception as e:
            log.error(f"Error sweeping delegations: {e}", exc_info=True)
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
