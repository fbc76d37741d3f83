"""SQLAlchemy models for notices and the records they own."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utc_now
from ..db.session import Base
from .entity import EntityModel


class NoticeModel(Base):
    """Takedown notices received through the API."""

    __tablename__ = "notices"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="DMCA")
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_sent: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_received: Mapped[date | None] = mapped_column(Date, nullable=True)
    source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action_taken: Mapped[str | None] = mapped_column(String(255), nullable=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    tag_list: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    jurisdiction_list: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    submitter_user_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    works = relationship(
        "WorkModel",
        back_populates="notice",
        cascade="all, delete-orphan",
        order_by="WorkModel.position",
    )
    entity_notice_roles = relationship(
        "EntityNoticeRoleModel",
        back_populates="notice",
        cascade="all, delete-orphan",
        order_by="EntityNoticeRoleModel.position",
    )
    file_uploads = relationship(
        "FileUploadModel",
        back_populates="notice",
        cascade="all, delete-orphan",
        order_by="FileUploadModel.position",
    )


class WorkModel(Base):
    __tablename__ = "works"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    notice_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[str | None] = mapped_column(String(64), nullable=True)

    notice = relationship("NoticeModel", back_populates="works")
    infringing_urls = relationship(
        "InfringingUrlModel",
        back_populates="work",
        cascade="all, delete-orphan",
        order_by="InfringingUrlModel.position",
    )
    copyrighted_urls = relationship(
        "CopyrightedUrlModel",
        back_populates="work",
        cascade="all, delete-orphan",
        order_by="CopyrightedUrlModel.position",
    )


class InfringingUrlModel(Base):
    __tablename__ = "infringing_urls"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    work_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("works.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    url: Mapped[str] = mapped_column(String(8192), nullable=False)
    url_original: Mapped[str] = mapped_column(Text, nullable=False)

    work = relationship("WorkModel", back_populates="infringing_urls")


class CopyrightedUrlModel(Base):
    __tablename__ = "copyrighted_urls"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    work_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("works.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    url: Mapped[str] = mapped_column(String(8192), nullable=False)
    url_original: Mapped[str] = mapped_column(Text, nullable=False)

    work = relationship("WorkModel", back_populates="copyrighted_urls")


class EntityNoticeRoleModel(Base):
    """Binds an entity to a notice under a role name."""

    __tablename__ = "entity_notice_roles"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    notice_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("entities.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(32), nullable=False)

    notice = relationship("NoticeModel", back_populates="entity_notice_roles")
    entity = relationship(EntityModel)


class FileUploadModel(Base):
    __tablename__ = "file_uploads"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    notice_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    locator: Mapped[str] = mapped_column(String(1024), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    notice = relationship("NoticeModel", back_populates="file_uploads")
