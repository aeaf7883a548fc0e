"""
Team membership management.

Team and User rows are written one after the other, not in one transaction;
a failure between the two writes leaves them out of step until the next
membership change.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorityError, NotFoundError, StoreError, ValidationError
from app.features.hierarchy.filters import apply_scope
from app.features.hierarchy.levels import AccessLevel
from app.features.hierarchy.scope import ScopeFilter
from app.features.organizations.models import Department, Team
from app.features.users.directory import UserDirectory
from app.features.users.models import User, user_managed_teams
from app.utils import get_logger


log = get_logger(__name__)


TEAM_CREATOR_LEVELS = (
    AccessLevel.SUPER_ADMIN,
    AccessLevel.MANAGER,
    AccessLevel.DEPUTY,
    AccessLevel.DIRECTORATE,
    AccessLevel.BRANCH_ADMIN,
)

TEAM_UPDATABLE_FIELDS = ("name", "description", "status")


@dataclass
class Membership:
    team: Team
    user: User


class TeamService:
    """Create teams and move users in and out of them."""

    def __init__(self, db: AsyncSession, users: UserDirectory):
        self.db = db
        self.users = users

    async def create_team(self, data: Dict[str, Any], creator_id: str) -> Team:
        """
        Create a team under an existing department.

        The team's organization is always taken from its department.
        """
        creator = await self.users.get(creator_id)
        if creator is None:
            raise NotFoundError("Creator not found")

        if creator.access_level not in TEAM_CREATOR_LEVELS:
            raise AuthorityError("Insufficient authority to create teams")

        if not data.get("department_id"):
            raise ValidationError("Department is required")
        department = await self.db.get(Department, data["department_id"])
        if department is None:
            raise NotFoundError("Department not found")

        values = {key: value for key, value in data.items() if key != "organization_id"}
        team = Team(**values, organization_id=department.organization_id, created_by_id=creator.id)
        self.db.add(team)
        await self._commit("create team")

        log.info("User %s created team %s in department %s", creator.id, team.id, department.id)
        return team

    async def get_team(self, team_id: str) -> Team:
        team = await self.db.get(Team, team_id) if team_id else None
        if team is None:
            raise NotFoundError("Team not found")
        return team

    async def assign_team_leader(self, team_id: str, user_id: str) -> Membership:
        """Make user the team's leader; the previous leader stops managing the team."""
        team = await self.get_team(team_id)
        user = await self._require_user(user_id)

        if user.access_level != AccessLevel.TEAM_LEADER:
            raise ValidationError("User must have team_leader access level")

        previous_id = team.team_leader_id
        if previous_id and previous_id != user.id:
            await self._execute(
                delete(user_managed_teams).where(
                    user_managed_teams.c.user_id == previous_id,
                    user_managed_teams.c.team_id == team.id,
                ),
                "release previous team leader",
            )

        team.team_leader_id = user.id
        await self._commit("assign team leader")

        if team.id not in user.managed_team_ids:
            user.managed_teams.append(team)
        user.team_id = team.id
        await self.users.update(user)

        log.info("User %s leads team %s (previously %s)", user.id, team.id, previous_id)
        return Membership(team=team, user=user)

    async def add_member(self, team_id: str, user_id: str) -> Membership:
        team = await self.get_team(team_id)
        user = await self._require_user(user_id)

        await self.users.update(user, {"team_id": team.id})
        log.info("User %s joined team %s", user.id, team.id)
        return Membership(team=team, user=user)

    async def remove_member(self, team_id: str, user_id: str) -> Membership:
        """Remove user from the team; a user in another team is left as is."""
        team = await self.get_team(team_id)
        user = await self._require_user(user_id)

        if user.team_id == team.id:
            await self.users.update(user, {"team_id": None})
            log.info("User %s left team %s", user.id, team.id)
        return Membership(team=team, user=user)

    async def list_members(self, team_id: str) -> List[User]:
        team = await self.get_team(team_id)
        return await self.users.find_where(User.team_id == team.id)

    async def update_team(self, team_id: str, values: Dict[str, Any]) -> Team:
        team = await self.get_team(team_id)
        for key in TEAM_UPDATABLE_FIELDS:
            if values.get(key) is not None:
                setattr(team, key, values[key])
        await self._commit("update team")
        return team

    async def deactivate_team(self, team_id: str) -> Team:
        """Soft delete: mark inactive and detach members and leaders."""
        team = await self.get_team(team_id)
        team.status = "inactive"
        await self._commit("deactivate team")

        await self._execute(
            update(User).where(User.team_id == team.id).values(team_id=None),
            "detach team members",
        )
        await self._execute(
            delete(user_managed_teams).where(user_managed_teams.c.team_id == team.id),
            "detach team leaders",
        )
        log.info("Team %s deactivated", team.id)
        return team

    async def _require_user(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _execute(self, stmt, what: str) -> None:
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to {what}") from e

    async def _commit(self, what: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"Failed to {what}") from e


async def find_teams(
    db: AsyncSession,
    *criteria,
    scope_filter: Optional[ScopeFilter] = None,
    active_only: bool = True,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[Team]:
    """Teams matching criteria, narrowed by scope_filter when given; inactive teams only on request."""
    stmt = select(Team)
    if scope_filter is not None:
        if scope_filter.deny_all:
            return []
        stmt = apply_scope(stmt, Team, scope_filter)
    if criteria:
        stmt = stmt.where(*criteria)
    if active_only:
        stmt = stmt.where(Team.status == "active")
    stmt = stmt.order_by(Team.name).offset(skip)
    if limit is not None:
        stmt = stmt.limit(limit)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        raise StoreError("Failed to query teams") from e
    return list(result.scalars().all())
