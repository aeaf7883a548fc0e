"""
Organization-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.hierarchy.dependencies import get_data_scope, require_delegated_authority
from app.features.hierarchy.filters import apply_scope
from app.features.hierarchy.levels import AccessLevel
from app.features.hierarchy.scope import Collection, DataScope
from app.features.organizations.models import Team
from app.features.organizations.teams import TeamService
from app.features.users.dependencies import get_user_directory
from app.features.users.directory import UserDirectory


def get_team_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
) -> TeamService:
    return TeamService(db, users)


async def get_scoped_team(
    team_id: str,
    scope: Annotated[DataScope, Depends(get_data_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Team:
    """Get a team visible to the current user or raise 404."""
    stmt = apply_scope(select(Team), Team, scope.for_collection(Collection.TEAM)).where(Team.id == team_id)
    team = (await db.execute(stmt)).scalar_one_or_none()
    if team is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Team not found"
        )
    return team


# Directorate and above, or anyone with an unexpired can_manage_teams delegation
require_team_manager = require_delegated_authority("can_manage_teams", AccessLevel.DIRECTORATE)
