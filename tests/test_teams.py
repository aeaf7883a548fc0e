import pytest
from sqlalchemy import select

from app.core.errors import AuthorityError, NotFoundError, ValidationError
from app.features.hierarchy.levels import AccessLevel
from app.features.hierarchy.scope import ScopeFilter
from app.features.organizations.models import Team
from app.features.organizations.teams import TeamService, find_teams
from app.features.users.directory import UserDirectory
from app.features.users.models import user_managed_teams


@pytest.fixture
def teams(db):
    return TeamService(db, UserDirectory(db))


@pytest.fixture
async def department(make_org, make_department):
    org = await make_org()
    return await make_department(org)


async def led_team_ids(db, user_id):
    result = await db.execute(
        select(user_managed_teams.c.team_id).where(user_managed_teams.c.user_id == user_id)
    )
    return set(result.scalars().all())


async def test_create_team_copies_department_organization(teams, department, make_user):
    creator = await make_user(AccessLevel.DIRECTORATE)
    team = await teams.create_team(
        {"name": "Alpha", "department_id": department.id, "organization_id": "spoofed"}, creator.id
    )
    assert team.organization_id == department.organization_id
    assert team.created_by_id == creator.id
    assert team.status == "active"


async def test_create_team_checks_creator_and_department(teams, department, make_user):
    leader = await make_user(AccessLevel.TEAM_LEADER)
    manager = await make_user(AccessLevel.MANAGER)
    with pytest.raises(AuthorityError):
        await teams.create_team({"name": "Alpha", "department_id": department.id}, leader.id)
    with pytest.raises(NotFoundError):
        await teams.create_team({"name": "Alpha", "department_id": "missing"}, manager.id)
    with pytest.raises(ValidationError):
        await teams.create_team({"name": "Alpha"}, manager.id)
    with pytest.raises(NotFoundError):
        await teams.create_team({"name": "Alpha", "department_id": department.id}, "missing")


async def test_assign_team_leader_moves_leadership(teams, department, make_team, make_user, db):
    team = await make_team(department)
    first = await make_user(AccessLevel.TEAM_LEADER)
    second = await make_user(AccessLevel.TEAM_LEADER)

    membership = await teams.assign_team_leader(team.id, first.id)
    assert membership.team.team_leader_id == first.id
    assert membership.user.team_id == team.id
    assert await led_team_ids(db, first.id) == {team.id}

    await teams.assign_team_leader(team.id, second.id)
    assert (await teams.get_team(team.id)).team_leader_id == second.id
    assert await led_team_ids(db, first.id) == set()
    assert await led_team_ids(db, second.id) == {team.id}


async def test_assign_team_leader_requires_team_leader_level(teams, department, make_team, make_user):
    team = await make_team(department)
    expert = await make_user(AccessLevel.EXPERT)
    with pytest.raises(ValidationError):
        await teams.assign_team_leader(team.id, expert.id)
    with pytest.raises(NotFoundError):
        await teams.assign_team_leader("missing", expert.id)


async def test_add_and_remove_member(teams, department, make_team, make_user):
    team = await make_team(department)
    other = await make_team(department, name="Other")
    user = await make_user()

    await teams.add_member(team.id, user.id)
    assert [member.id for member in await teams.list_members(team.id)] == [user.id]

    # removing from a team the user is not in leaves them where they are
    await teams.remove_member(other.id, user.id)
    assert (await teams.users.get(user.id)).team_id == team.id

    await teams.remove_member(team.id, user.id)
    assert await teams.list_members(team.id) == []


async def test_update_team_only_touches_known_fields(teams, department, make_team):
    team = await make_team(department)
    updated = await teams.update_team(team.id, {"name": "Renamed", "department_id": "elsewhere", "description": None})
    assert updated.name == "Renamed"
    assert updated.department_id == department.id


async def test_deactivate_team_detaches_users(teams, department, make_team, make_user, db):
    team = await make_team(department)
    leader = await make_user(AccessLevel.TEAM_LEADER)
    member = await make_user()
    await teams.assign_team_leader(team.id, leader.id)
    await teams.add_member(team.id, member.id)

    deactivated = await teams.deactivate_team(team.id)

    assert deactivated.status == "inactive"
    assert await teams.list_members(team.id) == []
    assert await led_team_ids(db, leader.id) == set()
    assert await find_teams(db, active_only=True) == []
    assert [t.id for t in await find_teams(db, active_only=False)] == [team.id]


async def test_find_teams_narrows_by_scope_and_department(db, make_org, make_department, make_team):
    org = await make_org()
    d1 = await make_department(org, "D1")
    d2 = await make_department(org, "D2")
    alpha = await make_team(d1, "Alpha")
    beta = await make_team(d1, "Beta")
    gamma = await make_team(d2, "Gamma")

    in_d1 = ScopeFilter.field_in("department_id", [d1.id])
    assert [t.id for t in await find_teams(db, scope_filter=in_d1)] == [alpha.id, beta.id]
    assert [t.id for t in await find_teams(db, Team.name == "Beta", scope_filter=in_d1)] == [beta.id]
    assert await find_teams(db, scope_filter=ScopeFilter.nothing()) == []
    assert [t.id for t in await find_teams(db, skip=1, limit=1)] == [beta.id]
    assert gamma.id in {t.id for t in await find_teams(db)}
