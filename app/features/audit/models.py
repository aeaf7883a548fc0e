"""
Audit log model.

Write-only from the application's point of view: entries are appended by
AuditSink and never read back through the API.
"""
from typing import Any, Dict
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class AuditLog(Base, TimestampMixin):
    """
    Tracks who did what to which resource, with before/after snapshots.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor; kept as a plain id so entries outlive their users
    user_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    before: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    after: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Client IP address
    origin: Mapped[str | None] = mapped_column(String(45), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource})>"
