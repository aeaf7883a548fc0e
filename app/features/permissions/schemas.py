"""
Pydantic schemas for permission management.

Request and response models for permissions, roles and their assignments.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.hierarchy.levels import OrganizationType
from app.features.permissions.models import normalize_key


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    resource: str = Field(..., min_length=1, max_length=100, description="Resource (e.g., 'dashboard', 'user')")
    action: str = Field(..., min_length=1, max_length=50, description="Action (e.g., 'view', 'create', 'delete')")


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""

    @field_validator('resource', 'action')
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_key(v)


class PermissionResponse(PermissionBase):
    """Schema for permission response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    type: Optional[OrganizationType] = Field(None, description="Organization type the role belongs to")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        return v


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignPermissionToRole(BaseModel):
    """Schema for linking a permission to a role."""
    permission_id: str = Field(..., description="Permission ID")


class AssignRoleToUser(BaseModel):
    """Schema for granting a role to a user."""
    role_id: str = Field(..., description="Role ID")


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking whether the current user holds a permission."""
    resource: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    allowed: bool
    resource: str
    action: str


class UserPermissionsResponse(BaseModel):
    """Effective permissions of a user."""
    user_id: str
    access_level: str
    roles: List[str]
    permissions: List[str]
