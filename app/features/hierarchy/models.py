"""
Delegation history model.

The log is historical; the delegatee's live fields on User are the source of
truth for the authority currently in force.
"""
import enum
from datetime import datetime
from sqlalchemy import String, ForeignKey, Boolean, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class DelegationStatus(str, enum.Enum):
    """Status of a delegation grant."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class DelegationLog(Base, TimestampMixin):
    """
    Audit record of one delegation grant.

    active -> revoked (explicit revoke or superseded by a new grant)
    active -> expired (sweep after end_date)
    """
    __tablename__ = "delegation_logs"
    __table_args__ = (
        Index("ix_delegation_logs_pair_status", "delegator_id", "delegatee_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    delegator_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delegatee_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Authority snapshot at grant time
    can_manage_teams: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_manage_departments: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_approve_reports: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DelegationStatus.ACTIVE.value, index=True
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<DelegationLog(id={self.id}, delegator={self.delegator_id}, "
            f"delegatee={self.delegatee_id}, status={self.status})>"
        )
