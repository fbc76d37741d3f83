"""SQLAlchemy ORM models backing the notice store."""

from .user import UserModel
from .entity import EntityModel
from .notice import (
    CopyrightedUrlModel,
    EntityNoticeRoleModel,
    FileUploadModel,
    InfringingUrlModel,
    NoticeModel,
    WorkModel,
)

__all__ = [
    "UserModel",
    "EntityModel",
    "NoticeModel",
    "WorkModel",
    "InfringingUrlModel",
    "CopyrightedUrlModel",
    "EntityNoticeRoleModel",
    "FileUploadModel",
]
