"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.hierarchy.schemas import UserHierarchy


class UserUpdate(BaseModel):
    """Schema for updating profile information."""
    fullname: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=30)


class UserResponse(UserHierarchy):
    """Schema for user responses."""
    phone: str | None = None
    status: str
    role_ids: list[str] = []
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
