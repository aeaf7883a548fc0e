"""
Shared fixtures: a throwaway SQLite database per test plus entity factories.
"""
import pytest

from app.core.database.engine import build_engine, build_session_factory, init_db
from app.features.hierarchy.levels import AccessLevel, OrganizationType
from app.features.organizations.models import Organization, Sector, Department, Team
from app.features.permissions.models import Permission, Role
from app.features.users.directory import UserDirectory
from app.features.users.models import User


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _save(db, entity):
    db.add(entity)
    await db.commit()
    return entity


@pytest.fixture
def make_org(db):
    async def factory(name="Head Office", type=OrganizationType.HEAD_OFFICE, **kwargs):
        return await _save(db, Organization(name=name, type=type.value, **kwargs))
    return factory


@pytest.fixture
def make_sector(db):
    async def factory(organization, name="Sector"):
        return await _save(db, Sector(name=name, organization_id=organization.id))
    return factory


@pytest.fixture
def make_department(db):
    async def factory(organization, name="Department", sector=None):
        return await _save(db, Department(
            name=name,
            organization_id=organization.id,
            sector_id=sector.id if sector else None,
        ))
    return factory


@pytest.fixture
def make_team(db):
    async def factory(department, name="Team"):
        return await _save(db, Team(
            name=name,
            department_id=department.id,
            organization_id=department.organization_id,
        ))
    return factory


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def factory(level=AccessLevel.EXPERT, organization=None, **kwargs):
        counter["n"] += 1
        kwargs.setdefault("fullname", f"User {counter['n']:02d}")
        kwargs.setdefault("email", f"user{counter['n']}@example.org")
        kwargs.setdefault("status", "active")
        if organization is not None:
            kwargs.setdefault("organization_id", organization.id)
            kwargs.setdefault("organization_type", organization.type)
        level_value = level.value if isinstance(level, AccessLevel) else level
        user = await _save(db, User(access_level=level_value, **kwargs))
        # re-read so roles and managed sets are loaded, as for a request user
        return await UserDirectory(db).get(user.id)
    return factory


@pytest.fixture
def make_permission(db):
    async def factory(resource, action, name=None):
        return await _save(db, Permission(resource=resource, action=action, name=name or f"{resource}_{action}"))
    return factory


@pytest.fixture
def make_role(db):
    async def factory(name, permissions=(), type=None):
        return await _save(db, Role(name=name, type=type, permissions=list(permissions)))
    return factory
