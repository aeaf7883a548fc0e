from datetime import datetime, timezone

from sqlalchemy import select

from app.features.audit.models import AuditLog
from app.features.audit.sink import AuditSink


async def test_record_writes_entry(session_factory, db):
    sink = AuditSink(session_factory)
    when = datetime(2025, 3, 1, tzinfo=timezone.utc)

    await sink.record("u1", "DELEGATION_CREATE", "Hierarchy", after={"end_date": when}, origin="127.0.0.1")

    [entry] = (await db.execute(select(AuditLog))).scalars().all()
    assert entry.user_id == "u1"
    assert entry.action == "DELEGATION_CREATE"
    assert entry.resource == "Hierarchy"
    assert entry.before is None
    assert entry.after == {"end_date": when.isoformat()}
    assert entry.origin == "127.0.0.1"


async def test_record_swallows_store_failures(caplog):
    def broken_factory():
        raise RuntimeError("database is gone")

    # must not raise
    await AuditSink(broken_factory).record("u1", "USER_UPDATE", "User")

    assert "Failed to write audit entry USER_UPDATE" in caplog.text
