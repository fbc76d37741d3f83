from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ..core.clock import utc_now


class EntityKind(str, Enum):
    """Whether a notice party is a person or an organization."""

    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class EntityBase(BaseModel):
    """Descriptive fields of a notice party."""

    name: str = Field(..., min_length=1, max_length=255)
    kind: EntityKind = EntityKind.INDIVIDUAL
    address_line_1: Optional[str] = Field(default=None, max_length=255)
    address_line_2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=255)
    state: Optional[str] = Field(default=None, max_length=255)
    zip: Optional[str] = Field(default=None, max_length=32)
    country_code: Optional[str] = Field(default=None, max_length=8)
    phone: Optional[str] = Field(default=None, max_length=64)
    email: Optional[str] = Field(default=None, max_length=255)
    url: Optional[str] = Field(default=None, max_length=1024)


class EntityCreate(EntityBase):
    """Inline attributes describing a party that does not exist yet."""

    user_id: Optional[UUID] = Field(
        default=None,
        description="Account this party is linked to, when created for a user",
    )


class Entity(EntityBase):
    """Persisted notice party."""

    id: UUID = Field(default_factory=uuid4)
    user_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True
