"""
Scope filters compiled to SQL and run against the database.
"""
from sqlalchemy import select

from app.features.hierarchy.filters import apply_scope, to_clause
from app.features.hierarchy.levels import AccessLevel, OrganizationType
from app.features.hierarchy.scope import Collection, ScopeFilter, resolve_scope
from app.features.hierarchy.service import DelegationManager
from app.features.hierarchy.store import DelegationLogStore
from app.features.organizations.models import Department, Team
from app.features.users.directory import UserDirectory
from app.features.users.models import User


async def visible(db, model, user):
    scope_filter = resolve_scope(user).for_collection(
        {User: Collection.USER, Department: Collection.DEPARTMENT, Team: Collection.TEAM}[model]
    )
    result = await db.execute(apply_scope(select(model), model, scope_filter))
    return {row.id for row in result.scalars().all()}


async def test_manager_and_directorate_in_head_office(db, make_org, make_department, make_user):
    org = await make_org()
    d1 = await make_department(org, "D1")
    d2 = await make_department(org, "D2")
    boss = await make_user(AccessLevel.MANAGER, organization=org)
    directorate = await make_user(AccessLevel.DIRECTORATE, organization=org, managed_departments=[d1])
    in_d1 = await make_user(organization=org, department_id=d1.id)
    in_d2 = await make_user(organization=org, department_id=d2.id)

    assert resolve_scope(boss).unrestricted

    department_filter = resolve_scope(directorate).for_collection(Collection.DEPARTMENT)
    assert department_filter.as_dict() == {"id": d1.id}
    assert await visible(db, Department, directorate) == {d1.id}

    users = await visible(db, User, directorate)
    assert in_d1.id in users
    assert in_d2.id not in users


async def test_sector_lead_sees_teams_of_sector_departments(
    db, make_org, make_sector, make_department, make_team, make_user
):
    org = await make_org()
    s1 = await make_sector(org, "S1")
    s2 = await make_sector(org, "S2")
    inside = await make_team(await make_department(org, "Inside", sector=s1))
    outside = await make_team(await make_department(org, "Outside", sector=s2))
    lead = await make_user(AccessLevel.SECTOR_LEAD, organization=org, sector_id=s1.id)

    teams = await visible(db, Team, lead)
    assert inside.id in teams
    assert outside.id not in teams


async def test_team_leader_sees_departments_of_led_teams(db, make_org, make_department, make_team, make_user):
    org = await make_org()
    d1 = await make_department(org, "D1")
    d2 = await make_department(org, "D2")
    t1 = await make_team(d1)
    await make_team(d2)
    leader = await make_user(AccessLevel.TEAM_LEADER, organization=org, managed_teams=[t1])

    assert await visible(db, Department, leader) == {d1.id}
    assert await visible(db, Team, leader) == {t1.id}


async def test_expert_sees_only_created_records(db, make_org, make_department, make_user):
    org = await make_org()
    expert = await make_user(organization=org)
    mine = await make_user(organization=org, created_by_id=expert.id)
    await make_user(organization=org)

    assert await visible(db, User, expert) == {mine.id}


async def test_branch_admin_limited_to_branch(db, make_org, make_user):
    head = await make_org()
    branch = await make_org("Branch", OrganizationType.BRANCH, head_office_id=head.id, branch_code="BR-1")
    admin = await make_user(AccessLevel.BRANCH_ADMIN, organization=branch)
    colleague = await make_user(organization=branch)
    stranger = await make_user(organization=head)

    users = await visible(db, User, admin)
    assert colleague.id in users
    assert stranger.id not in users


async def test_deny_all_matches_no_rows(db, make_user):
    await make_user()
    result = await db.execute(select(User).where(to_clause(User, ScopeFilter.nothing())))
    assert result.scalars().all() == []


async def test_get_subordinates_excludes_self_and_experts_have_none(db, make_org, make_department, make_user):
    org = await make_org()
    department = await make_department(org)
    directorate = await make_user(AccessLevel.DIRECTORATE, organization=org, department_id=department.id)
    expert = await make_user(organization=org, department_id=department.id)
    manager = DelegationManager(UserDirectory(db), DelegationLogStore(db))

    assert [u.id for u in await manager.get_subordinates(directorate.id)] == [expert.id]
    assert await manager.get_subordinates(expert.id) == []
