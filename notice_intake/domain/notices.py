from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.clock import utc_now
from .entities import Entity, EntityCreate


class NoticeType(str, Enum):
    """Closed set of notice categories accepted by the intake API."""

    DMCA = "DMCA"
    TRADEMARK = "Trademark"
    DEFAMATION = "Defamation"
    COURT_ORDER = "CourtOrder"
    LAW_ENFORCEMENT_REQUEST = "LawEnforcementRequest"
    PRIVATE_INFORMATION = "PrivateInformation"
    DATA_PROTECTION = "DataProtection"
    COUNTERFEIT = "Counterfeit"
    GOVERNMENT_REQUEST = "GovernmentRequest"
    COUNTER_NOTICE = "CounterNotice"
    OTHER = "Other"

    @classmethod
    def default(cls) -> "NoticeType":
        return cls.DMCA

    @classmethod
    def from_tag(cls, tag: str | None) -> "NoticeType":
        """Match a client supplied tag, falling back to the default type."""

        return cls.lookup(tag) or cls.default()

    @classmethod
    def lookup(cls, tag: str | None) -> "NoticeType | None":
        """Case-insensitive match ignoring spaces, hyphens and underscores."""

        if not tag:
            return None
        return _TYPES_BY_TAG.get(_normalise_tag(tag))

    @property
    def serialization_key(self) -> str:
        """Root key used when rendering a notice of this type."""

        return _SERIALIZATION_KEYS[self]


def _normalise_tag(tag: str) -> str:
    return re.sub(r"[\s_-]+", "", tag).lower()


_TYPES_BY_TAG = {_normalise_tag(member.value): member for member in NoticeType}

_SERIALIZATION_KEYS = {
    NoticeType.DMCA: "dmca",
    NoticeType.TRADEMARK: "trademark",
    NoticeType.DEFAMATION: "defamation",
    NoticeType.COURT_ORDER: "court_order",
    NoticeType.LAW_ENFORCEMENT_REQUEST: "law_enforcement_request",
    NoticeType.PRIVATE_INFORMATION: "private_information",
    NoticeType.DATA_PROTECTION: "data_protection",
    NoticeType.COUNTERFEIT: "counterfeit",
    NoticeType.GOVERNMENT_REQUEST: "government_request",
    NoticeType.COUNTER_NOTICE: "counter_notice",
    NoticeType.OTHER: "other",
}


class EntityRoleName(str, Enum):
    """Roles a party can hold on a notice."""

    RECIPIENT = "recipient"
    SENDER = "sender"
    SUBMITTER = "submitter"
    PRINCIPAL = "principal"
    ATTORNEY = "attorney"
    ISSUING_COURT = "issuing_court"
    PLAINTIFF = "plaintiff"
    DEFENDANT = "defendant"


class FileUploadKind(str, Enum):
    ORIGINAL = "original"
    SUPPORTING = "supporting"


# --- Submission payloads -------------------------------------------------


def _indexed_mapping_to_list(value: Any) -> Any:
    # Form encoders send nested collections as {"0": {...}, "1": {...}}.
    if isinstance(value, dict):
        try:
            return [value[key] for key in sorted(value, key=int)]
        except (TypeError, ValueError):
            return value
    return value


class _Submission(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UrlSubmission(_Submission):
    url: Optional[str] = None


class WorkSubmission(_Submission):
    description: Optional[str] = None
    kind: Optional[str] = Field(default=None, max_length=64)
    infringing_urls_attributes: list[UrlSubmission] = Field(default_factory=list)
    copyrighted_urls_attributes: list[UrlSubmission] = Field(default_factory=list)

    @field_validator("infringing_urls_attributes", "copyrighted_urls_attributes", mode="before")
    @classmethod
    def _coerce_urls(cls, value: Any) -> Any:
        return _indexed_mapping_to_list(value)


class EntityRoleSubmission(_Submission):
    name: Optional[str] = None
    entity_id: Optional[str] = None
    entity_attributes: Optional[dict[str, Any]] = None

    @field_validator("entity_id", mode="before")
    @classmethod
    def _stringify_entity_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class FileUploadSubmission(_Submission):
    kind: Optional[str] = None
    file: Optional[str] = None
    file_name: Optional[str] = Field(default=None, max_length=255)


class NoticeSubmission(_Submission):
    """Notice body as submitted by API callers."""

    title: Optional[str] = None
    type: Optional[str] = None
    subject: Optional[str] = Field(default=None, max_length=255)
    body: Optional[str] = None
    date_sent: Optional[date] = None
    date_received: Optional[date] = None
    source: Optional[str] = Field(default=None, max_length=255)
    action_taken: Optional[str] = Field(default=None, max_length=255)
    language: Optional[str] = Field(default=None, max_length=16)
    tag_list: list[str] = Field(default_factory=list)
    jurisdiction_list: list[str] = Field(default_factory=list)
    works_attributes: list[WorkSubmission] = Field(default_factory=list)
    entity_notice_roles_attributes: list[EntityRoleSubmission] = Field(default_factory=list)
    file_uploads_attributes: list[FileUploadSubmission] = Field(default_factory=list)

    @field_validator(
        "works_attributes",
        "entity_notice_roles_attributes",
        "file_uploads_attributes",
        mode="before",
    )
    @classmethod
    def _coerce_collections(cls, value: Any) -> Any:
        return _indexed_mapping_to_list(value)

    @field_validator("tag_list", "jurisdiction_list", mode="before")
    @classmethod
    def _split_comma_list(cls, value: Any) -> Any:
        value = _indexed_mapping_to_list(value)
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


# --- Unsaved notice graph --------------------------------------------------


class UrlDraft(BaseModel):
    url: str
    url_original: str


class WorkDraft(BaseModel):
    description: Optional[str] = None
    kind: Optional[str] = None
    infringing_urls: list[UrlDraft] = Field(default_factory=list)
    copyrighted_urls: list[UrlDraft] = Field(default_factory=list)


class RoleDraft(BaseModel):
    """A role bound either to an existing entity id or to a new entity."""

    name: EntityRoleName
    entity_id: Optional[UUID] = None
    entity: Optional[EntityCreate] = None


class FileUploadDraft(BaseModel):
    kind: FileUploadKind
    file_name: str
    content_type: str
    data: bytes = Field(repr=False)
    locator: Optional[str] = None


class NoticeGraph(BaseModel):
    """Everything a notice write touches, assembled before the transaction."""

    title: Optional[str] = None
    type: NoticeType
    subject: Optional[str] = None
    body: Optional[str] = None
    date_sent: Optional[date] = None
    date_received: Optional[date] = None
    source: Optional[str] = None
    action_taken: Optional[str] = None
    language: Optional[str] = None
    tag_list: list[str] = Field(default_factory=list)
    jurisdiction_list: list[str] = Field(default_factory=list)
    submitter_user_id: Optional[UUID] = None
    works: list[WorkDraft] = Field(default_factory=list)
    roles: list[RoleDraft] = Field(default_factory=list)
    file_uploads: list[FileUploadDraft] = Field(default_factory=list)

    def has_role(self, name: EntityRoleName) -> bool:
        return any(role.name == name for role in self.roles)


# --- Persisted notice --------------------------------------------------------


class NoticeUrl(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    url: str
    url_original: str

    class Config:
        from_attributes = True


class Work(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    description: Optional[str] = None
    kind: Optional[str] = None
    infringing_urls: list[NoticeUrl] = Field(default_factory=list)
    copyrighted_urls: list[NoticeUrl] = Field(default_factory=list)

    class Config:
        from_attributes = True


class EntityNoticeRole(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: EntityRoleName
    entity: Entity

    class Config:
        from_attributes = True


class FileUpload(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    kind: FileUploadKind
    file_name: str
    content_type: str
    size: int
    locator: str

    class Config:
        from_attributes = True


class Notice(BaseModel):
    """Stored notice together with its works, parties and attachments."""

    id: UUID = Field(default_factory=uuid4)
    title: str
    type: NoticeType = NoticeType.DMCA
    subject: Optional[str] = None
    body: Optional[str] = None
    date_sent: Optional[date] = None
    date_received: Optional[date] = None
    source: Optional[str] = None
    action_taken: Optional[str] = None
    language: Optional[str] = None
    tag_list: list[str] = Field(default_factory=list)
    jurisdiction_list: list[str] = Field(default_factory=list)
    submitter_user_id: Optional[UUID] = None
    works: list[Work] = Field(default_factory=list)
    entity_notice_roles: list[EntityNoticeRole] = Field(default_factory=list)
    file_uploads: list[FileUpload] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True

    def entity_for(self, role: EntityRoleName) -> Entity | None:
        for notice_role in self.entity_notice_roles:
            if notice_role.name == role:
                return notice_role.entity
        return None

    @property
    def recipient(self) -> Entity | None:
        return self.entity_for(EntityRoleName.RECIPIENT)

    @property
    def submitter(self) -> Entity | None:
        return self.entity_for(EntityRoleName.SUBMITTER)

    def uploads_of_kind(self, kind: FileUploadKind) -> list[FileUpload]:
        return [upload for upload in self.file_uploads if upload.kind == kind]

    def serialize(self, *, include_original_urls: bool = False) -> dict[str, Any]:
        """Render the notice under its type's root key.

        Submitted URL values are only shown to callers allowed to see them.
        """

        exclude = None
        if not include_original_urls:
            hidden = {"__all__": {"url_original"}}
            exclude = {
                "works": {"__all__": {"infringing_urls": hidden, "copyrighted_urls": hidden}}
            }
        return {self.type.serialization_key: self.model_dump(mode="json", exclude=exclude)}


# --- Responses ---------------------------------------------------------------


class NoticeCreatedResponse(BaseModel):
    id: UUID
    type: NoticeType
    title: str


class ValidationErrorResponse(BaseModel):
    errors: dict[str, list[str]]


class UnauthorizedResponse(BaseModel):
    documentation_link: str
