from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ..core.clock import utc_now


class UserRole(str, Enum):
    """Roles granted to API accounts."""

    SUBMITTER = "submitter"
    REDACTOR = "redactor"
    PUBLISHER = "publisher"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    RESEARCHER = "researcher"
    NOTICE_VIEWER = "notice_viewer"


class UserBase(BaseModel):
    """Shared fields for user representations."""

    email: str = Field(..., max_length=255, description="Primary email of the account")
    full_name: Optional[str] = Field(default=None, max_length=160)
    roles: list[UserRole] = Field(default_factory=list)


class UserCreate(UserBase):
    """Payload accepted when provisioning an API account."""


class User(UserBase):
    """Persisted API account resolved from an authentication token."""

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True

    def has_any_role(self, roles: set[str]) -> bool:
        return any(role.value in roles for role in self.roles)
