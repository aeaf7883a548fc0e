"""
Organization containment models.

Organization -> Sector (head office only) -> Department -> Team -> User membership.
"""
from sqlalchemy import String, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, CreatedByMixin, generate_ulid


class Organization(Base, TimestampMixin, CreatedByMixin):
    """
    Organization model: the head office or one of its branches.

    Branches point back at their head office through head_office_id.
    """
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # head_office | branch
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    parent_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )

    branch_code: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    head_office_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r}, type={self.type})>"


class Sector(Base, TimestampMixin, CreatedByMixin):
    """Sector grouping departments inside a head-office organization."""
    __tablename__ = "sectors"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<Sector(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"


class Department(Base, TimestampMixin, CreatedByMixin):
    """
    Department of an organization.

    sector_id is null for branch departments.
    """
    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sector_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("sectors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"


class Team(Base, TimestampMixin, CreatedByMixin):
    """
    Team inside a department.

    organization_id is denormalized from the department and must always match it.
    Members are the users whose team_id points here.
    """
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    department_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # users -> teams already references this table, so no FK back to users here
    team_leader_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r}, department_id={self.department_id})>"
