"""
Data scope resolution.

Turns a user's position in the hierarchy into one declarative filter per
collection. Filters are plain values; `app.features.hierarchy.filters` compiles
them into SQLAlchemy clauses.

Rules are looked up per access level. Anything that cannot be resolved (unknown
level, missing organization, empty managed set) yields a filter that matches
nothing, never an unrestricted one.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from app.features.hierarchy.levels import AccessLevel, OrganizationType, parse_level
from app.utils import get_logger


log = get_logger(__name__)


class Collection(str, enum.Enum):
    """Collections a scope filter can be applied to."""
    ORGANIZATION = "organization"
    SECTOR = "sector"
    DEPARTMENT = "department"
    TEAM = "team"
    USER = "user"
    ROLE = "role"


class ScopedUser(Protocol):
    """Attributes the resolver and the access gate read from a user."""
    id: str
    access_level: str
    organization_type: str
    organization_id: Optional[str]
    sector_id: Optional[str]
    department_id: Optional[str]
    team_id: Optional[str]

    @property
    def managed_department_ids(self) -> set[str]: ...

    @property
    def managed_team_ids(self) -> set[str]: ...


# ============================================================================
# Filter values
# ============================================================================

@dataclass(frozen=True)
class FieldIn:
    """`field` must be one of `values`."""
    field: str
    values: frozenset

    def as_dict(self) -> Dict[str, Any]:
        values = sorted(self.values)
        if len(values) == 1:
            return {self.field: values[0]}
        return {self.field: {"$in": values}}


@dataclass(frozen=True)
class RelatedIn:
    """
    `field` must be one of the `column` values of `collection` records matching `condition`.

    e.g. teams whose department_id is the id of a department in sector S.
    """
    field: str
    collection: Collection
    column: str
    condition: FieldIn

    def as_dict(self) -> Dict[str, Any]:
        return {
            self.field: {
                "$in": {
                    "collection": self.collection.value,
                    "select": self.column,
                    "where": self.condition.as_dict(),
                }
            }
        }


Condition = FieldIn | RelatedIn


@dataclass(frozen=True)
class ScopeFilter:
    """
    A conjunction of conditions over one collection.

    No conditions and deny_all=False means unrestricted.
    """
    conditions: tuple = ()
    deny_all: bool = False

    @classmethod
    def everything(cls) -> "ScopeFilter":
        return cls()

    @classmethod
    def nothing(cls) -> "ScopeFilter":
        return cls(deny_all=True)

    @classmethod
    def where(cls, *conditions: Condition) -> "ScopeFilter":
        return cls(conditions=tuple(conditions))

    @classmethod
    def field_in(cls, field: str, values: Iterable[Optional[str]]) -> "ScopeFilter":
        """Filter on one field; no usable values means nothing matches."""
        present = frozenset(value for value in values if value)
        if not present:
            return cls.nothing()
        return cls.where(FieldIn(field, present))

    @property
    def unrestricted(self) -> bool:
        return not self.deny_all and not self.conditions

    def and_where(self, *conditions: Condition) -> "ScopeFilter":
        if self.deny_all:
            return self
        return ScopeFilter(conditions=self.conditions + tuple(conditions))

    def as_dict(self) -> Dict[str, Any]:
        """Document-style rendering, e.g. {"id": {"$in": ["d1", "d2"]}}."""
        if self.deny_all:
            return {"$nothing": True}
        rendered: Dict[str, Any] = {}
        for condition in self.conditions:
            rendered.update(condition.as_dict())
        return rendered


@dataclass(frozen=True)
class DataScope:
    """One filter per collection."""
    filters: Dict[Collection, ScopeFilter] = field(default_factory=dict)

    def for_collection(self, collection: Collection) -> ScopeFilter:
        # Collections a rule did not mention are closed
        return self.filters.get(collection, ScopeFilter.nothing())

    @property
    def unrestricted(self) -> bool:
        return all(self.for_collection(collection).unrestricted for collection in Collection)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {collection.value: self.for_collection(collection).as_dict() for collection in Collection}


# ============================================================================
# Rules
# ============================================================================

def _all(scope_filter: ScopeFilter) -> Dict[Collection, ScopeFilter]:
    return {collection: scope_filter for collection in Collection}


def _role_filter(user: ScopedUser) -> ScopeFilter:
    return ScopeFilter.field_in("type", [user.organization_type])


def _organization_scope(user: ScopedUser) -> DataScope:
    """Everything inside the user's own organization."""
    org = [user.organization_id]
    return DataScope({
        Collection.ORGANIZATION: ScopeFilter.field_in("id", org),
        Collection.SECTOR: ScopeFilter.field_in("organization_id", org),
        Collection.DEPARTMENT: ScopeFilter.field_in("organization_id", org),
        Collection.TEAM: ScopeFilter.field_in("organization_id", org),
        Collection.USER: ScopeFilter.field_in("organization_id", org),
        Collection.ROLE: _role_filter(user),
    })


def _departments_scope(user: ScopedUser, department_ids: Iterable[Optional[str]]) -> DataScope:
    """Departments, their teams and their users; containers limited to the own organization."""
    departments = list(department_ids)
    org = [user.organization_id]
    return DataScope({
        Collection.ORGANIZATION: ScopeFilter.field_in("id", org),
        Collection.SECTOR: ScopeFilter.field_in("organization_id", org),
        Collection.DEPARTMENT: ScopeFilter.field_in("id", departments),
        Collection.TEAM: ScopeFilter.field_in("department_id", departments),
        Collection.USER: ScopeFilter.field_in("department_id", departments),
        Collection.ROLE: _role_filter(user),
    })


def _super_admin(user: ScopedUser) -> DataScope:
    return DataScope(_all(ScopeFilter.everything()))


def _manager(user: ScopedUser) -> DataScope:
    if user.organization_type == OrganizationType.HEAD_OFFICE:
        return DataScope(_all(ScopeFilter.everything()))
    return _organization_scope(user)


def _deputy(user: ScopedUser) -> DataScope:
    return _departments_scope(user, user.managed_department_ids)


def _sector_lead(user: ScopedUser) -> DataScope:
    if user.organization_type != OrganizationType.HEAD_OFFICE or not user.sector_id:
        return DataScope(_all(ScopeFilter.nothing()))
    sector = [user.sector_id]
    in_sector = FieldIn("sector_id", frozenset(sector))
    return DataScope({
        Collection.ORGANIZATION: ScopeFilter.field_in("id", [user.organization_id]),
        Collection.SECTOR: ScopeFilter.field_in("id", sector),
        Collection.DEPARTMENT: ScopeFilter.field_in("sector_id", sector),
        Collection.TEAM: ScopeFilter.where(RelatedIn("department_id", Collection.DEPARTMENT, "id", in_sector)),
        Collection.USER: ScopeFilter.field_in("sector_id", sector),
        Collection.ROLE: _role_filter(user),
    })


def _branch_admin(user: ScopedUser) -> DataScope:
    return _organization_scope(user)


def _directorate(user: ScopedUser) -> DataScope:
    departments = user.managed_department_ids or {user.department_id}
    return _departments_scope(user, departments)


def _team_leader(user: ScopedUser) -> DataScope:
    teams = user.managed_team_ids or {user.team_id}
    team_filter = ScopeFilter.field_in("id", teams)
    if team_filter.deny_all:
        departments = ScopeFilter.nothing()
    else:
        departments = ScopeFilter.where(
            RelatedIn("id", Collection.TEAM, "department_id", team_filter.conditions[0])
        )
    org = [user.organization_id]
    return DataScope({
        Collection.ORGANIZATION: ScopeFilter.field_in("id", org),
        Collection.SECTOR: ScopeFilter.field_in("organization_id", org),
        Collection.DEPARTMENT: departments,
        Collection.TEAM: team_filter,
        Collection.USER: ScopeFilter.field_in("team_id", teams),
        Collection.ROLE: _role_filter(user),
    })


def _expert(user: ScopedUser) -> DataScope:
    return DataScope(_all(ScopeFilter.field_in("created_by_id", [user.id])))


SCOPE_RULES: Dict[AccessLevel, Callable[[ScopedUser], DataScope]] = {
    AccessLevel.SUPER_ADMIN: _super_admin,
    AccessLevel.MANAGER: _manager,
    AccessLevel.DEPUTY: _deputy,
    AccessLevel.SECTOR_LEAD: _sector_lead,
    AccessLevel.BRANCH_ADMIN: _branch_admin,
    AccessLevel.DIRECTORATE: _directorate,
    AccessLevel.TEAM_LEADER: _team_leader,
    AccessLevel.EXPERT: _expert,
}


def resolve_scope(user: ScopedUser) -> DataScope:
    """
    Compute the per-collection visibility of a user.

    Never raises for a restrictive state; an unknown access level sees nothing.
    """
    level = parse_level(user.access_level)
    if level is None:
        log.warning("Unknown access level %r for user %s, scope closed", user.access_level, user.id)
        return DataScope(_all(ScopeFilter.nothing()))
    return SCOPE_RULES[level](user)
