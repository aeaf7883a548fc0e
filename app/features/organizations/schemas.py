"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.hierarchy.levels import OrganizationType
from app.features.hierarchy.schemas import UserSummary


# Organization Schemas
class OrganizationBase(BaseModel):
    """Base organization schema."""
    name: str = Field(..., min_length=1, max_length=255)
    type: OrganizationType
    branch_code: str | None = Field(None, max_length=50)
    head_office_id: str | None = None
    parent_id: str | None = None
    description: str | None = None


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization (super admin only)."""
    pass


class OrganizationResponse(OrganizationBase):
    """Schema for organization responses."""
    id: str
    status: str
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# Sector / Department Schemas
class SectorCreate(BaseModel):
    """Schema for creating a sector inside a head-office organization."""
    name: str = Field(..., min_length=1, max_length=255)
    organization_id: str
    description: str | None = None


class SectorResponse(SectorCreate):
    id: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DepartmentCreate(BaseModel):
    """Schema for creating a department; sector_id stays empty for branches."""
    name: str = Field(..., min_length=1, max_length=255)
    organization_id: str
    sector_id: str | None = None
    description: str | None = None


class DepartmentResponse(DepartmentCreate):
    id: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


# Team Schemas
class TeamCreate(BaseModel):
    """Schema for creating a team; its organization comes from the department."""
    name: str = Field(..., min_length=1, max_length=255)
    department_id: str
    description: str | None = None


class TeamUpdate(BaseModel):
    """Schema for updating team information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


class TeamResponse(BaseModel):
    """Schema for team responses."""
    id: str
    name: str
    description: str | None = None
    department_id: str
    organization_id: str
    team_leader_id: str | None = None
    status: str
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeamMemberRequest(BaseModel):
    """Schema naming the user to add to a team or make its leader."""
    user_id: str


class MembershipResponse(BaseModel):
    team: TeamResponse
    user: UserSummary
