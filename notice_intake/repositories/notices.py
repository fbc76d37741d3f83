from __future__ import annotations

from typing import Protocol
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.entities import Entity
from ..domain.notices import (
    EntityNoticeRole,
    FileUpload,
    Notice,
    NoticeGraph,
    NoticeUrl,
    Work,
)
from ..models.notice import (
    CopyrightedUrlModel,
    EntityNoticeRoleModel,
    FileUploadModel,
    InfringingUrlModel,
    NoticeModel,
    WorkModel,
)
from ..services.errors import StorageFailure
from .entities import InMemoryEntitiesRepository, entity_model_from

logger = structlog.get_logger()

_NOTICE_FIELDS = (
    "title",
    "subject",
    "body",
    "date_sent",
    "date_received",
    "source",
    "action_taken",
    "language",
    "tag_list",
    "jurisdiction_list",
    "submitter_user_id",
)


class NoticesRepository(Protocol):
    async def save(self, graph: NoticeGraph) -> Notice:
        """Persist the whole graph in one transaction or raise StorageFailure."""
        ...

    async def get(self, notice_id: UUID) -> Notice | None: ...

    async def count(self) -> int: ...


class InMemoryNoticesRepository:
    """Ephemeral notice store sharing entities with an in-memory entity repository."""

    def __init__(self, entities: InMemoryEntitiesRepository) -> None:
        self._entities = entities
        self._notices: dict[UUID, Notice] = {}

    async def save(self, graph: NoticeGraph) -> Notice:
        if not graph.title:
            raise StorageFailure("title is required")
        roles: list[EntityNoticeRole] = []
        created: list[Entity] = []
        for role in graph.roles:
            if role.entity_id is not None:
                entity = await self._entities.get(role.entity_id)
                if entity is None:
                    raise StorageFailure(f"entity {role.entity_id} vanished before save")
            elif role.entity is not None:
                entity = Entity(**role.entity.model_dump())
                created.append(entity)
            else:
                raise StorageFailure(f"role {role.name.value} has no entity")
            roles.append(EntityNoticeRole(name=role.name, entity=entity))

        notice = Notice(
            type=graph.type,
            **{field: getattr(graph, field) for field in _NOTICE_FIELDS},
            works=[
                Work(
                    description=work.description,
                    kind=work.kind,
                    infringing_urls=[NoticeUrl(**url.model_dump()) for url in work.infringing_urls],
                    copyrighted_urls=[NoticeUrl(**url.model_dump()) for url in work.copyrighted_urls],
                )
                for work in graph.works
            ],
            entity_notice_roles=roles,
            file_uploads=[
                FileUpload(
                    kind=upload.kind,
                    file_name=upload.file_name,
                    content_type=upload.content_type,
                    size=len(upload.data),
                    locator=upload.locator or "",
                )
                for upload in graph.file_uploads
            ],
        )
        for entity in created:
            self._entities.add(entity)
        self._notices[notice.id] = notice
        return notice

    async def get(self, notice_id: UUID) -> Notice | None:
        return self._notices.get(notice_id)

    async def count(self) -> int:
        return len(self._notices)


class SqlAlchemyNoticesRepository:
    """Writes notice graphs with a single commit so they land all at once."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, graph: NoticeGraph) -> Notice:
        model = self._build_model(graph)
        self._session.add(model)
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("notices.save_failed", error=str(exc))
            raise StorageFailure("Unable to store notice") from exc
        notice = await self.get(model.id)
        if notice is None:  # pragma: no cover - committed row must be readable
            raise StorageFailure("Stored notice could not be reloaded")
        return notice

    async def get(self, notice_id: UUID) -> Notice | None:
        result = await self._session.execute(
            select(NoticeModel)
            .where(NoticeModel.id == notice_id)
            .options(
                selectinload(NoticeModel.works).selectinload(WorkModel.infringing_urls),
                selectinload(NoticeModel.works).selectinload(WorkModel.copyrighted_urls),
                selectinload(NoticeModel.entity_notice_roles).selectinload(
                    EntityNoticeRoleModel.entity
                ),
                selectinload(NoticeModel.file_uploads),
            )
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        return Notice.model_validate(model)

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(NoticeModel))
        return int(result.scalar_one())

    def _build_model(self, graph: NoticeGraph) -> NoticeModel:
        notice = NoticeModel(
            type=graph.type.value,
            **{field: getattr(graph, field) for field in _NOTICE_FIELDS},
        )
        notice.works = [
            WorkModel(
                position=position,
                description=work.description,
                kind=work.kind,
                infringing_urls=[
                    InfringingUrlModel(position=index, url=url.url, url_original=url.url_original)
                    for index, url in enumerate(work.infringing_urls)
                ],
                copyrighted_urls=[
                    CopyrightedUrlModel(position=index, url=url.url, url_original=url.url_original)
                    for index, url in enumerate(work.copyrighted_urls)
                ],
            )
            for position, work in enumerate(graph.works)
        ]
        roles = []
        for position, role in enumerate(graph.roles):
            role_model = EntityNoticeRoleModel(position=position, name=role.name.value)
            if role.entity_id is not None:
                role_model.entity_id = role.entity_id
            elif role.entity is not None:
                role_model.entity = entity_model_from(role.entity)
            roles.append(role_model)
        notice.entity_notice_roles = roles
        notice.file_uploads = [
            FileUploadModel(
                position=position,
                kind=upload.kind.value,
                file_name=upload.file_name,
                content_type=upload.content_type,
                size=len(upload.data),
                locator=upload.locator or "",
            )
            for position, upload in enumerate(graph.file_uploads)
        ]
        return notice
