"""
User model with ULID primary keys and hierarchy placement.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey, Table, Column, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, CreatedByMixin, generate_ulid
from app.features.hierarchy.levels import AccessLevel, OrganizationType
from app.features.organizations.models import Department, Team
from app.features.permissions.models import Role, user_roles
from app.features.hierarchy.schemas import DelegatedAuthority


# Departments a user administers outside strict containment (deputies, directorates)
user_managed_departments = Table(
    "user_managed_departments",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("department_id", String(26), ForeignKey("departments.id", ondelete="CASCADE"), primary_key=True),
)

# Teams a user leads
user_managed_teams = Table(
    "user_managed_teams",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("team_id", String(26), ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base, TimestampMixin, CreatedByMixin):
    """
    User model: identity plus placement in the organizational hierarchy.

    access_level is stored as a plain string so that values outside AccessLevel
    (e.g. "public" for self-registered users) survive and rank 0.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # User information
    fullname: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(30), unique=True, nullable=True)
    # pending | active | suspended
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    # Hierarchy placement
    access_level: Mapped[str] = mapped_column(String(32), nullable=False, default=AccessLevel.EXPERT.value, index=True)
    organization_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=OrganizationType.BRANCH.value
    )
    organization_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sector_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("sectors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    department_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    team_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )
    reports_to_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Delegation tracking
    delegated_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    can_manage_teams: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_manage_departments: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_approve_reports: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    delegation_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    managed_departments: Mapped[list[Department]] = relationship(
        Department,
        secondary=user_managed_departments,
        lazy="selectin",
    )

    managed_teams: Mapped[list[Team]] = relationship(
        Team,
        secondary=user_managed_teams,
        lazy="selectin",
    )

    roles: Mapped[list[Role]] = relationship(
        Role,
        secondary=user_roles,
        lazy="selectin",
    )

    @property
    def managed_department_ids(self) -> set[str]:
        return {department.id for department in self.managed_departments}

    @property
    def managed_team_ids(self) -> set[str]:
        return {team.id for team in self.managed_teams}

    @property
    def role_ids(self) -> list[str]:
        return [role.id for role in self.roles]

    @property
    def delegated_authority(self) -> DelegatedAuthority:
        return DelegatedAuthority(
            can_manage_teams=bool(self.can_manage_teams),
            can_manage_departments=bool(self.can_manage_departments),
            can_approve_reports=bool(self.can_approve_reports),
            expires_at=self.delegation_expires_at,
        )

    def set_delegation(self, delegated_by_id: str | None, authority: DelegatedAuthority) -> None:
        """Overwrite the live delegation fields."""
        self.delegated_by_id = delegated_by_id
        self.can_manage_teams = authority.can_manage_teams
        self.can_manage_departments = authority.can_manage_departments
        self.can_approve_reports = authority.can_approve_reports
        self.delegation_expires_at = authority.expires_at

    def clear_delegation(self) -> None:
        self.set_delegation(None, DelegatedAuthority())

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, access_level={self.access_level})>"
