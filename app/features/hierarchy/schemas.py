"""
Pydantic schemas for hierarchy, delegation and scope.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.utils import as_utc


Capability = Literal["can_manage_teams", "can_manage_departments", "can_approve_reports"]


class DelegatedAuthority(BaseModel):
    """Narrow capabilities granted by delegation. Never a change of rank."""
    can_manage_teams: bool = False
    can_manage_departments: bool = False
    can_approve_reports: bool = False
    expires_at: Optional[datetime] = None

    def allows(self, capability: Capability, now: datetime) -> bool:
        """True if the capability is granted and has not expired at `now`."""
        if not getattr(self, capability):
            return False
        return self.expires_at is None or as_utc(self.expires_at) > as_utc(now)


class AuthorityGrant(BaseModel):
    """The three capabilities of a delegation request."""
    can_manage_teams: bool = False
    can_manage_departments: bool = False
    can_approve_reports: bool = False


# ============================================================================
# Requests
# ============================================================================

class DelegateRequest(BaseModel):
    """Schema for delegating authority to a lower-ranked user."""
    delegatee_id: str = Field(..., min_length=1, description="User receiving the authority")
    authority: AuthorityGrant
    reason: Optional[str] = Field(None, max_length=1000)
    end_date: Optional[datetime] = Field(None, description="When the delegation lapses")


class AssignReportingRequest(BaseModel):
    """Schema for setting a user's direct manager."""
    user_id: str = Field(..., min_length=1)
    manager_id: str = Field(..., min_length=1)


# ============================================================================
# Responses
# ============================================================================

class UserSummary(BaseModel):
    """Hierarchy-relevant view of a user."""
    id: str
    fullname: str
    email: str
    access_level: str
    organization_type: str
    organization_id: Optional[str] = None
    sector_id: Optional[str] = None
    department_id: Optional[str] = None
    team_id: Optional[str] = None
    reports_to_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserHierarchy(UserSummary):
    """A user with delegation state and managed entities."""
    delegated_by_id: Optional[str] = None
    delegated_authority: DelegatedAuthority
    managed_department_ids: List[str] = []
    managed_team_ids: List[str] = []


class DelegationLogResponse(BaseModel):
    id: str
    delegator_id: str
    delegatee_id: str
    can_manage_teams: bool
    can_manage_departments: bool
    can_approve_reports: bool
    reason: Optional[str]
    start_date: datetime
    end_date: Optional[datetime]
    status: str
    revoked_at: Optional[datetime]
    revoked_by_id: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class DelegationResult(BaseModel):
    delegatee: UserHierarchy
    log: DelegationLogResponse


class DelegationHistoryResponse(BaseModel):
    delegated_by: List[DelegationLogResponse] = []
    delegated_to: List[DelegationLogResponse] = []


class SubordinatesResponse(BaseModel):
    count: int
    data: List[UserSummary]


class MyHierarchyResponse(BaseModel):
    user: UserHierarchy
    subordinates: List[UserSummary] = []


class HierarchyChartResponse(BaseModel):
    user: UserSummary
    manager: Optional[UserSummary] = None
    peers: List[UserSummary] = []
    subordinates: List[UserSummary] = []


class SweepResponse(BaseModel):
    expired: int


class ScopeResponse(BaseModel):
    """Resolved per-collection filters in document form."""
    access_level: str
    filters: Dict[str, Dict[str, Any]]


class AccessCheckResponse(BaseModel):
    target_id: str
    allowed: bool
