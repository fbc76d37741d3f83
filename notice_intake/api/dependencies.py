from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..db import get_session
from ..domain.users import User
from ..repositories.entities import EntitiesRepository, SqlAlchemyEntitiesRepository
from ..repositories.notices import NoticesRepository, SqlAlchemyNoticesRepository
from ..repositories.users import SqlAlchemyUsersRepository, UsersRepository
from ..services.entities import EntityResolver
from ..services.file_uploads import FileAttachmentDecoder
from ..services.intake_gate import IntakeGate, JwtIdentityResolver
from ..services.notice_builder import NoticeBuilder
from ..services.storage import BlobStorage, DeferredBlobStorage, build_blob_storage

_blob_storage: BlobStorage | None = None

# Some clients send the header with underscores, which servers keep verbatim.
_TOKEN_HEADERS = ("x-authentication-token", "x_authentication_token")


async def get_users_repository(
    session: AsyncSession = Depends(get_session),
) -> UsersRepository:
    return SqlAlchemyUsersRepository(session)


async def get_entities_repository(
    session: AsyncSession = Depends(get_session),
) -> EntitiesRepository:
    return SqlAlchemyEntitiesRepository(session)


async def get_notices_repository(
    session: AsyncSession = Depends(get_session),
) -> NoticesRepository:
    return SqlAlchemyNoticesRepository(session)


async def get_blob_storage(settings: Settings = Depends(get_settings)) -> BlobStorage:
    global _blob_storage
    if _blob_storage is None:
        _blob_storage = DeferredBlobStorage(lambda: build_blob_storage(settings))
    return _blob_storage


async def get_header_token(request: Request) -> str | None:
    for header in _TOKEN_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


async def get_viewer(
    request: Request,
    header_token: str | None = Depends(get_header_token),
    users_repo: UsersRepository = Depends(get_users_repository),
) -> User | None:
    """Return the caller of a read request, or None when anonymous."""

    token = (header_token or "").strip()
    if not token:
        token = request.query_params.get("authentication_token", "").strip()
    if not token:
        return None
    return await JwtIdentityResolver(users_repo).resolve_token(token)


async def get_intake_gate(
    users_repo: UsersRepository = Depends(get_users_repository),
    settings: Settings = Depends(get_settings),
) -> IntakeGate:
    return IntakeGate(
        JwtIdentityResolver(users_repo),
        submit_roles=settings.submit_roles,
        restricted_notice_types=settings.restricted_notice_types,
    )


async def get_notice_builder(
    gate: IntakeGate = Depends(get_intake_gate),
    entities_repo: EntitiesRepository = Depends(get_entities_repository),
    notices_repo: NoticesRepository = Depends(get_notices_repository),
    storage: BlobStorage = Depends(get_blob_storage),
) -> NoticeBuilder:
    return NoticeBuilder(
        gate=gate,
        entity_resolver=EntityResolver(entities_repo),
        file_decoder=FileAttachmentDecoder(storage),
        notices=notices_repo,
    )
