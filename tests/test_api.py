"""
HTTP-level checks through the FastAPI app with the database swapped out.
"""
import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from app.core import config
from app.core.database.engine import get_db, get_session_factory
from app.features.hierarchy.levels import AccessLevel, OrganizationType
from app.main import app


def auth(user):
    token = jwt.encode({"id": user.id}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_requests_without_token_are_rejected(client):
    response = await client.get("/hierarchy/scope")
    assert response.status_code in (401, 403)


async def test_inactive_user_is_rejected(client, make_user):
    user = await make_user(status="suspended")
    response = await client.get("/users/me", headers=auth(user))
    assert response.status_code == 401


async def test_scope_of_expert(client, make_user):
    expert = await make_user()
    response = await client.get("/hierarchy/scope", headers=auth(expert))
    assert response.status_code == 200
    body = response.json()
    assert body["access_level"] == "expert"
    assert body["filters"]["user"] == {"created_by_id": expert.id}


async def test_delegate_and_revoke(client, make_user):
    directorate = await make_user(AccessLevel.DIRECTORATE)
    leader = await make_user(AccessLevel.TEAM_LEADER)

    response = await client.post(
        "/hierarchy/delegate",
        json={"delegatee_id": leader.id, "authority": {"can_manage_teams": True}, "reason": "Leave"},
        headers=auth(directorate),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["delegatee"]["delegated_by_id"] == directorate.id
    assert body["delegatee"]["delegated_authority"]["can_manage_teams"] is True
    assert body["log"]["status"] == "active"

    history = await client.get("/hierarchy/delegation-history", headers=auth(leader))
    assert [entry["delegator_id"] for entry in history.json()["delegated_to"]] == [directorate.id]

    response = await client.delete(f"/hierarchy/delegate/{leader.id}", headers=auth(directorate))
    assert response.status_code == 200
    assert response.json()["delegated_by_id"] is None


async def test_delegate_below_directorate_is_forbidden(client, make_user):
    leader = await make_user(AccessLevel.TEAM_LEADER)
    expert = await make_user()
    response = await client.post(
        "/hierarchy/delegate",
        json={"delegatee_id": expert.id, "authority": {"can_manage_teams": True}},
        headers=auth(leader),
    )
    assert response.status_code == 403


async def test_delegate_to_equal_rank_reports_authority_error(client, make_user):
    first = await make_user(AccessLevel.DIRECTORATE)
    second = await make_user(AccessLevel.DIRECTORATE)
    response = await client.post(
        "/hierarchy/delegate",
        json={"delegatee_id": second.id, "authority": {"can_manage_teams": True}},
        headers=auth(first),
    )
    assert response.status_code == 403
    assert "Cannot delegate" in response.json()["message"]


async def test_single_user_routes_go_through_access_gate(client, make_user, make_org):
    org = await make_org()
    expert = await make_user(organization=org)
    colleague = await make_user(organization=org)
    admin = await make_user(AccessLevel.SUPER_ADMIN)

    assert (await client.get(f"/users/{expert.id}", headers=auth(expert))).status_code == 200
    assert (await client.get(f"/users/{colleague.id}", headers=auth(expert))).status_code == 403
    assert (await client.get(f"/users/{colleague.id}", headers=auth(admin))).status_code == 200
    assert (await client.get("/users/missing", headers=auth(admin))).status_code == 404
    assert (await client.get(f"/hierarchy/access/{colleague.id}", headers=auth(expert))).status_code == 403


async def test_user_listing_is_scoped(client, make_user, make_org, make_department):
    org = await make_org()
    d1 = await make_department(org, "D1")
    d2 = await make_department(org, "D2")
    directorate = await make_user(AccessLevel.DIRECTORATE, organization=org, department_id=d1.id)
    inside = await make_user(organization=org, department_id=d1.id)
    await make_user(organization=org, department_id=d2.id)

    response = await client.get("/users/", headers=auth(directorate))
    assert response.status_code == 200
    assert {user["id"] for user in response.json()} == {directorate.id, inside.id}


async def test_permission_check(client, make_user, make_permission, make_role):
    view = await make_permission("dashboard", "view", "View Dashboard")
    user = await make_user(roles=[await make_role("viewer", [view])])

    response = await client.post("/permissions/check", json={"resource": "dashboard", "action": "view"}, headers=auth(user))
    assert response.json()["allowed"] is True

    response = await client.post("/permissions/check", json={"resource": "user", "action": "delete"}, headers=auth(user))
    assert response.json()["allowed"] is False

    me = await client.get("/permissions/me", headers=auth(user))
    assert me.json()["permissions"] == ["View Dashboard"]
    assert me.json()["roles"] == ["viewer"]


async def test_sweep_requires_super_admin(client, make_user):
    manager = await make_user(AccessLevel.MANAGER)
    admin = await make_user(AccessLevel.SUPER_ADMIN)

    assert (await client.post("/hierarchy/check-expired-delegations", headers=auth(manager))).status_code == 403
    response = await client.post("/hierarchy/check-expired-delegations", headers=auth(admin))
    assert response.status_code == 200
    assert response.json() == {"expired": 0}


async def test_team_membership_needs_rank_or_delegation(client, make_org, make_department, make_team, make_user):
    org = await make_org()
    department = await make_department(org)
    team = await make_team(department)
    directorate = await make_user(AccessLevel.DIRECTORATE, organization=org, department_id=department.id)
    leader = await make_user(AccessLevel.TEAM_LEADER, organization=org, department_id=department.id, team_id=team.id)
    member = await make_user(organization=org, department_id=department.id)

    url = f"/organizations/teams/{team.id}/members"
    response = await client.post(url, json={"user_id": member.id}, headers=auth(leader))
    assert response.status_code == 403

    await client.post(
        "/hierarchy/delegate",
        json={"delegatee_id": leader.id, "authority": {"can_manage_teams": True}},
        headers=auth(directorate),
    )
    response = await client.post(url, json={"user_id": member.id}, headers=auth(leader))
    assert response.status_code == 201
    assert response.json()["user"]["team_id"] == team.id

    members = await client.get(url, headers=auth(directorate))
    assert {user["id"] for user in members.json()} == {leader.id, member.id}


async def test_sectors_are_created_by_head_office_only(client, make_org, make_user):
    head = await make_org()
    branch = await make_org("Branch", OrganizationType.BRANCH, head_office_id=head.id)
    head_manager = await make_user(AccessLevel.MANAGER, organization=head)
    branch_manager = await make_user(AccessLevel.MANAGER, organization=branch)
    payload = {"name": "Operations", "organization_id": head.id}

    assert (await client.post("/organizations/sectors", json=payload, headers=auth(branch_manager))).status_code == 403

    response = await client.post("/organizations/sectors", json=payload, headers=auth(head_manager))
    assert response.status_code == 201
    sectors = await client.get("/organizations/sectors", headers=auth(head_manager))
    assert [sector["name"] for sector in sectors.json()] == ["Operations"]


async def test_patch_user_with_taken_email_conflicts(client, make_org, make_user):
    org = await make_org()
    admin = await make_user(AccessLevel.SUPER_ADMIN, organization=org)
    first = await make_user(organization=org, email="first@acme.com")
    second = await make_user(organization=org, email="second@acme.com")

    response = await client.patch(f"/users/{second.id}", json={"email": first.email}, headers=auth(admin))
    assert response.status_code == 409
    assert response.json() == {"message": "User update conflicts with an existing user"}

    response = await client.get(f"/users/{second.id}", headers=auth(admin))
    assert response.json()["email"] == "second@acme.com"

    response = await client.patch(f"/users/{second.id}", json={"fullname": "Second User"}, headers=auth(admin))
    assert response.status_code == 200
    assert response.json()["fullname"] == "Second User"


async def test_sector_lead_cannot_delegate(client, make_org, make_user):
    org = await make_org()
    lead = await make_user(AccessLevel.SECTOR_LEAD, organization=org)
    directorate = await make_user(AccessLevel.DIRECTORATE, organization=org)

    response = await client.post(
        "/hierarchy/delegate",
        json={"delegatee_id": directorate.id, "authority": {"can_manage_teams": True}},
        headers=auth(lead),
    )
    assert response.status_code == 403
