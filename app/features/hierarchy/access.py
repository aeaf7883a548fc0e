"""
Single-target access decisions between two users.

The rules mirror the scope rules, applied to one concrete target. They are
evaluated in order; the first rule whose level matches the actor and whose
condition holds allows access. Missing references never match.
"""
from typing import Callable, List, Optional, Tuple

from app.features.hierarchy.levels import AccessLevel, OrganizationType
from app.features.hierarchy.scope import ScopedUser
from app.utils import get_logger


log = get_logger(__name__)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return a is not None and b is not None and a == b


def _member(value: Optional[str], values: set[str]) -> bool:
    return value is not None and value in values


def _manager(actor: ScopedUser, target: ScopedUser) -> bool:
    return (
        actor.organization_type == OrganizationType.HEAD_OFFICE
        or _same(actor.organization_id, target.organization_id)
    )


def _deputy(actor: ScopedUser, target: ScopedUser) -> bool:
    return _member(target.department_id, actor.managed_department_ids)


def _sector_lead(actor: ScopedUser, target: ScopedUser) -> bool:
    return _same(actor.sector_id, target.sector_id)


def _branch_admin(actor: ScopedUser, target: ScopedUser) -> bool:
    return _same(actor.organization_id, target.organization_id)


def _directorate(actor: ScopedUser, target: ScopedUser) -> bool:
    return (
        _same(actor.department_id, target.department_id)
        or _member(target.department_id, actor.managed_department_ids)
    )


def _team_leader(actor: ScopedUser, target: ScopedUser) -> bool:
    return (
        _same(actor.team_id, target.team_id)
        or _member(target.team_id, actor.managed_team_ids)
    )


ACCESS_RULES: List[Tuple[AccessLevel, Callable[[ScopedUser, ScopedUser], bool]]] = [
    (AccessLevel.SUPER_ADMIN, lambda actor, target: True),
    (AccessLevel.MANAGER, _manager),
    (AccessLevel.DEPUTY, _deputy),
    (AccessLevel.SECTOR_LEAD, _sector_lead),
    (AccessLevel.BRANCH_ADMIN, _branch_admin),
    (AccessLevel.DIRECTORATE, _directorate),
    (AccessLevel.TEAM_LEADER, _team_leader),
]


def can_access(actor: ScopedUser, target: ScopedUser) -> bool:
    """Whether actor may view, update or delete target."""
    if actor is target or _same(actor.id, target.id):
        return True

    for level, rule in ACCESS_RULES:
        if actor.access_level == level and rule(actor, target):
            log.debug("User %s granted access to %s as %s", actor.id, target.id, level.value)
            return True

    log.debug("User %s denied access to %s (level %s)", actor.id, target.id, actor.access_level)
    return False
