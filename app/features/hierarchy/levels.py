"""
Access levels, organization types and the authority ranking between them.
"""
import enum


class AccessLevel(str, enum.Enum):
    """Position of a user in the organizational authority ladder."""
    SUPER_ADMIN = "super_admin"
    MANAGER = "manager"
    DEPUTY = "deputy"
    BRANCH_ADMIN = "branch_admin"
    SECTOR_LEAD = "sector_lead"
    DIRECTORATE = "directorate"
    TEAM_LEADER = "team_leader"
    EXPERT = "expert"


class OrganizationType(str, enum.Enum):
    """Whether an organization (and its users) belongs to the head office or a branch."""
    HEAD_OFFICE = "head_office"
    BRANCH = "branch"


# Higher number = more authority. sector_lead is scoped by sector but has no
# rank, so it neither delegates nor manages anyone.
HIERARCHY_LEVELS: dict[AccessLevel, int] = {
    AccessLevel.SUPER_ADMIN: 100,
    AccessLevel.MANAGER: 90,
    AccessLevel.DEPUTY: 80,
    AccessLevel.BRANCH_ADMIN: 75,
    AccessLevel.DIRECTORATE: 60,
    AccessLevel.TEAM_LEADER: 40,
    AccessLevel.EXPERT: 20,
}


def parse_level(value: str | AccessLevel | None) -> AccessLevel | None:
    """Return the AccessLevel for a stored value, or None if it is not a known level."""
    if value is None:
        return None
    try:
        return AccessLevel(value)
    except ValueError:
        return None


def rank(value: str | AccessLevel | None) -> int:
    """Numeric rank of an access level. Unknown and unranked levels rank 0."""
    return HIERARCHY_LEVELS.get(parse_level(value), 0)


def can_manage(manager_level: str | AccessLevel | None, target_level: str | AccessLevel | None) -> bool:
    """True if manager_level strictly outranks target_level."""
    return rank(manager_level) > rank(target_level)


def meets_level(value: str | AccessLevel | None, required: str | AccessLevel) -> bool:
    """True if value ranks at least as high as required."""
    return rank(value) >= rank(required)
