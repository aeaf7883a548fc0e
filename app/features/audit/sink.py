"""
Fire-and-forget audit sink.
"""
from typing import Any, Optional
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.audit.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


class AuditSink:
    """
    Appends audit entries in a session of its own.

    A failing write never reaches the caller: the error is logged and dropped,
    and the caller's session is untouched.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        actor_id: Optional[str],
        action: str,
        resource: str,
        before: Optional[Any] = None,
        after: Optional[Any] = None,
        origin: Optional[str] = None,
    ) -> None:
        try:
            async with self.session_factory() as session:
                session.add(AuditLog(
                    user_id=actor_id,
                    action=action,
                    resource=resource,
                    before=jsonable_encoder(before) if before is not None else None,
                    after=jsonable_encoder(after) if after is not None else None,
                    origin=origin,
                ))
                await session.commit()
        except Exception:
            log.exception("Failed to write audit entry %s on %s by %s", action, resource, actor_id)
            return

        log.info("Audit: user=%s action=%s resource=%s", actor_id, action, resource)
