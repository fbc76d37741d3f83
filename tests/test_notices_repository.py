"""Tests for the SQLAlchemy notice store."""

from uuid import uuid4

import pytest

from notice_intake.domain.entities import EntityCreate, EntityKind
from notice_intake.domain.notices import (
    EntityRoleName,
    FileUploadDraft,
    FileUploadKind,
    NoticeGraph,
    NoticeType,
    RoleDraft,
    UrlDraft,
    WorkDraft,
)
from notice_intake.domain.users import UserCreate
from notice_intake.repositories.entities import SqlAlchemyEntitiesRepository
from notice_intake.repositories.notices import SqlAlchemyNoticesRepository
from notice_intake.repositories.users import SqlAlchemyUsersRepository
from notice_intake.services.errors import StorageFailure


def sample_graph(**overrides) -> NoticeGraph:
    values = dict(
        title="Stored notice",
        type=NoticeType.DEFAMATION,
        works=[
            WorkDraft(
                description="Article",
                infringing_urls=[
                    UrlDraft(url="http://a.example/", url_original="http://a.example/http://b.example"),
                    UrlDraft(url="http://b.example", url_original="http://a.example/http://b.example"),
                ],
            )
        ],
        roles=[
            RoleDraft(
                name=EntityRoleName.RECIPIENT,
                entity=EntityCreate(name="Search Co", kind=EntityKind.ORGANIZATION),
            )
        ],
        file_uploads=[
            FileUploadDraft(
                kind=FileUploadKind.ORIGINAL,
                file_name="notice.txt",
                content_type="text/plain",
                data=b"hello",
                locator="/tmp/notice.txt",
            )
        ],
    )
    values.update(overrides)
    return NoticeGraph(**values)


async def test_graph_is_saved_and_reloaded(db_session):
    repo = SqlAlchemyNoticesRepository(db_session)

    notice = await repo.save(sample_graph())
    reloaded = await repo.get(notice.id)

    assert reloaded is not None
    assert reloaded.type == NoticeType.DEFAMATION
    assert [url.url for url in reloaded.works[0].infringing_urls] == [
        "http://a.example/",
        "http://b.example",
    ]
    assert reloaded.recipient.name == "Search Co"
    assert reloaded.file_uploads[0].size == 5
    assert await repo.count() == 1


async def test_roles_can_reference_existing_entities(db_session):
    entity = await SqlAlchemyEntitiesRepository(db_session).create(EntityCreate(name="Existing"))
    repo = SqlAlchemyNoticesRepository(db_session)

    notice = await repo.save(
        sample_graph(roles=[RoleDraft(name=EntityRoleName.RECIPIENT, entity_id=entity.id)])
    )

    assert notice.recipient.id == entity.id


async def test_failed_write_leaves_no_partial_notice(db_session):
    repo = SqlAlchemyNoticesRepository(db_session)
    graph = sample_graph(
        roles=[
            RoleDraft(name=EntityRoleName.SENDER, entity=EntityCreate(name="New Sender")),
            RoleDraft(name=EntityRoleName.RECIPIENT, entity_id=uuid4()),
        ]
    )

    with pytest.raises(StorageFailure):
        await repo.save(graph)

    assert await repo.count() == 0
    assert await repo.get(uuid4()) is None


async def test_entities_linked_to_a_user_are_listed(db_session):
    user = await SqlAlchemyUsersRepository(db_session).create(UserCreate(email="owner@example.com"))
    entities = SqlAlchemyEntitiesRepository(db_session)
    linked = await entities.create(EntityCreate(name="Linked", user_id=user.id))
    await entities.create(EntityCreate(name="Unlinked"))

    result = await entities.linked_to_user(user.id)

    assert [entity.id for entity in result] == [linked.id]
