"""
Organization structure routes.

Every listing is narrowed by the caller's data scope. Team writes go through
TeamService; its AccessControlError subclasses are turned into responses by
the application's exception handler.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.sink import AuditSink
from app.features.hierarchy.dependencies import (
    client_ip,
    get_audit_sink,
    get_data_scope,
    require_hierarchy_level,
    require_organization_type,
)
from app.features.hierarchy.filters import apply_scope
from app.features.hierarchy.levels import AccessLevel, OrganizationType
from app.features.hierarchy.schemas import UserSummary
from app.features.hierarchy.scope import Collection, DataScope
from app.features.organizations.dependencies import get_scoped_team, get_team_service, require_team_manager
from app.features.organizations.models import Organization, Sector, Department, Team
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationResponse,
    SectorCreate,
    SectorResponse,
    DepartmentCreate,
    DepartmentResponse,
    TeamCreate,
    TeamUpdate,
    TeamResponse,
    TeamMemberRequest,
    MembershipResponse,
)
from app.features.organizations.teams import Membership, TeamService, find_teams
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["organizations"])


async def _scoped_list(db: AsyncSession, model, scope: DataScope, collection: Collection, *criteria, skip=0, limit=100):
    scope_filter = scope.for_collection(collection)
    if scope_filter.deny_all:
        return []
    stmt = apply_scope(select(model), model, scope_filter).where(*criteria)
    stmt = stmt.order_by(model.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


def _membership_response(membership: Membership) -> MembershipResponse:
    return MembershipResponse(
        team=TeamResponse.model_validate(membership.team),
        user=UserSummary.model_validate(membership.user),
    )


# ============================================================================
# Organizations
# ============================================================================

@router.post("/", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    admin: Annotated[User, Depends(require_hierarchy_level(AccessLevel.SUPER_ADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Create a head office or branch (super admin only)."""
    if org_data.type == OrganizationType.BRANCH and not org_data.head_office_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Branches must reference their head office"
        )

    values = org_data.model_dump()
    values["type"] = org_data.type.value
    new_org = Organization(**values, created_by_id=admin.id)
    db.add(new_org)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization with this branch code already exists"
        )

    background_tasks.add_task(
        audit.record,
        admin.id,
        "ORGANIZATION_CREATE",
        "Organization",
        after=org_data.model_dump(),
        origin=client_ip(request),
    )
    return new_org


@router.get("/", response_model=list[OrganizationResponse])
async def list_organizations(
    scope: Annotated[DataScope, Depends(get_data_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100
):
    """List organizations visible to the current user."""
    return await _scoped_list(db, Organization, scope, Collection.ORGANIZATION, skip=skip, limit=limit)


# ============================================================================
# Sectors & Departments
# ============================================================================

@router.post(
    "/sectors",
    response_model=SectorResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_organization_type([OrganizationType.HEAD_OFFICE]))],
)
async def create_sector(
    data: SectorCreate,
    current_user: Annotated[User, Depends(require_hierarchy_level(AccessLevel.MANAGER))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a sector in a head-office organization (manager and above)."""
    organization = await db.get(Organization, data.organization_id)
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    if organization.type != OrganizationType.HEAD_OFFICE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Sectors exist only in the head office"
        )

    sector = Sector(**data.model_dump(), created_by_id=current_user.id)
    db.add(sector)
    await db.commit()
    log.info("User %s created sector %s", current_user.id, sector.id)
    return sector


@router.get("/sectors", response_model=list[SectorResponse])
async def list_sectors(
    scope: Annotated[DataScope, Depends(get_data_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: Optional[str] = None
):
    """List sectors visible to the current user."""
    criteria = [Sector.organization_id == organization_id] if organization_id else []
    return await _scoped_list(db, Sector, scope, Collection.SECTOR, *criteria)


@router.post("/departments", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    current_user: Annotated[User, Depends(require_hierarchy_level(AccessLevel.MANAGER))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a department (manager and above)."""
    if await db.get(Organization, data.organization_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    if data.sector_id:
        sector = await db.get(Sector, data.sector_id)
        if sector is None or sector.organization_id != data.organization_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Sector does not belong to this organization"
            )

    department = Department(**data.model_dump(), created_by_id=current_user.id)
    db.add(department)
    await db.commit()
    log.info("User %s created department %s", current_user.id, department.id)
    return department


@router.get("/departments", response_model=list[DepartmentResponse])
async def list_departments(
    scope: Annotated[DataScope, Depends(get_data_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: Optional[str] = None,
    sector_id: Optional[str] = None
):
    """List departments visible to the current user."""
    criteria = []
    if organization_id:
        criteria.append(Department.organization_id == organization_id)
    if sector_id:
        criteria.append(Department.sector_id == sector_id)
    return await _scoped_list(db, Department, scope, Collection.DEPARTMENT, *criteria)


# ============================================================================
# Teams
# ============================================================================

@router.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    data: TeamCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    teams: Annotated[TeamService, Depends(get_team_service)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Create a team under a department."""
    team = await teams.create_team(data.model_dump(), current_user.id)

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "TEAM_CREATE",
        "Team",
        after={"id": team.id, **data.model_dump()},
        origin=client_ip(request),
    )
    return team


@router.get("/teams", response_model=list[TeamResponse])
async def list_teams(
    scope: Annotated[DataScope, Depends(get_data_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
    department_id: Optional[str] = None,
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 100
):
    """List teams visible to the current user."""
    criteria = [Team.department_id == department_id] if department_id else []
    return await find_teams(
        db,
        *criteria,
        scope_filter=scope.for_collection(Collection.TEAM),
        active_only=not include_inactive,
        skip=skip,
        limit=limit,
    )


@router.get("/teams/{team_id}", response_model=TeamResponse)
async def get_team(team: Annotated[Team, Depends(get_scoped_team)]):
    """Get a team visible to the current user."""
    return team


@router.get("/teams/{team_id}/members", response_model=list[UserSummary])
async def list_team_members(
    team: Annotated[Team, Depends(get_scoped_team)],
    teams: Annotated[TeamService, Depends(get_team_service)],
):
    """Users whose team is team_id."""
    return await teams.list_members(team.id)


@router.patch("/teams/{team_id}", response_model=TeamResponse)
async def update_team(
    update_data: TeamUpdate,
    team: Annotated[Team, Depends(get_scoped_team)],
    current_user: Annotated[User, Depends(require_team_manager)],
    teams: Annotated[TeamService, Depends(get_team_service)],
):
    """Update a team's name, description or status."""
    return await teams.update_team(team.id, update_data.model_dump(exclude_unset=True))


@router.delete("/teams/{team_id}", response_model=TeamResponse)
async def deactivate_team(
    background_tasks: BackgroundTasks,
    request: Request,
    team: Annotated[Team, Depends(get_scoped_team)],
    current_user: Annotated[User, Depends(require_team_manager)],
    teams: Annotated[TeamService, Depends(get_team_service)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Deactivate a team and detach its members and leader."""
    team = await teams.deactivate_team(team.id)

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "TEAM_DEACTIVATE",
        "Team",
        before={"id": team.id, "status": "active"},
        after={"id": team.id, "status": team.status},
        origin=client_ip(request),
    )
    return team


@router.put("/teams/{team_id}/leader", response_model=MembershipResponse)
async def assign_team_leader(
    body: TeamMemberRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    team: Annotated[Team, Depends(get_scoped_team)],
    current_user: Annotated[User, Depends(require_team_manager)],
    teams: Annotated[TeamService, Depends(get_team_service)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Make a team_leader user the team's leader."""
    previous_leader_id = team.team_leader_id
    membership = await teams.assign_team_leader(team.id, body.user_id)

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "TEAM_LEADER_ASSIGN",
        "Team",
        before={"team_leader_id": previous_leader_id},
        after={"team_leader_id": membership.user.id},
        origin=client_ip(request),
    )
    return _membership_response(membership)


@router.post("/teams/{team_id}/members", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def add_team_member(
    body: TeamMemberRequest,
    team: Annotated[Team, Depends(get_scoped_team)],
    current_user: Annotated[User, Depends(require_team_manager)],
    teams: Annotated[TeamService, Depends(get_team_service)],
):
    """Add a user to a team."""
    return _membership_response(await teams.add_member(team.id, body.user_id))


@router.delete("/teams/{team_id}/members/{user_id}", response_model=MembershipResponse)
async def remove_team_member(
    user_id: str,
    team: Annotated[Team, Depends(get_scoped_team)],
    current_user: Annotated[User, Depends(require_team_manager)],
    teams: Annotated[TeamService, Depends(get_team_service)],
):
    """Remove a user from a team."""
    return _membership_response(await teams.remove_member(team.id, user_id))
