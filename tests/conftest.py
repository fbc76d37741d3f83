"""Pytest configuration and fixtures for notice intake tests."""

import base64
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from notice_intake.api.dependencies import get_blob_storage
from notice_intake.core.security import create_access_token
from notice_intake.db import build_engine, get_session, init_db
from notice_intake.domain.users import User, UserCreate, UserRole
from notice_intake.main import create_app
from notice_intake.repositories.entities import InMemoryEntitiesRepository
from notice_intake.repositories.notices import InMemoryNoticesRepository
from notice_intake.repositories.users import SqlAlchemyUsersRepository
from notice_intake.services.entities import EntityResolver
from notice_intake.services.file_uploads import FileAttachmentDecoder
from notice_intake.services.intake_gate import IntakeGate
from notice_intake.services.notice_builder import NoticeBuilder
from notice_intake.services.storage import LocalBlobStorage


class StaticIdentities:
    """Token lookup backed by a plain dict."""

    def __init__(self, users_by_token: dict[str, User] | None = None) -> None:
        self.users_by_token = dict(users_by_token or {})

    async def resolve_token(self, token: str) -> User | None:
        return self.users_by_token.get(token)


def data_uri(data: bytes, media_type: str = "text/plain") -> str:
    """Encode ``data`` the way API clients attach files."""
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def token_for(user: User) -> str:
    return create_access_token({"sub": str(user.id)})


def minimal_notice(**overrides) -> dict:
    """Smallest notice body accepted by the API."""
    notice = {
        "title": "Infringing copies of my song",
        "works_attributes": [
            {
                "description": "My song",
                "infringing_urls_attributes": [{"url": "http://pirate.example.com/song.mp3"}],
            }
        ],
        "entity_notice_roles_attributes": [
            {"name": "recipient", "entity_attributes": {"name": "Hosting Co", "kind": "organization"}}
        ],
    }
    notice.update(overrides)
    return notice


@pytest.fixture
def blob_storage(tmp_path):
    """Local attachment storage rooted in a temporary directory."""
    return LocalBlobStorage(tmp_path / "media")


@pytest.fixture
def submitter_user():
    return User(email="submitter@example.com", roles=[UserRole.SUBMITTER])


@pytest.fixture
def researcher_user():
    return User(email="researcher@example.com", roles=[UserRole.RESEARCHER])


@pytest.fixture
def identities(submitter_user, researcher_user):
    return StaticIdentities({"submit-token": submitter_user, "research-token": researcher_user})


@pytest.fixture
def entities_repo():
    return InMemoryEntitiesRepository()


@pytest.fixture
def notices_repo(entities_repo):
    return InMemoryNoticesRepository(entities_repo)


@pytest.fixture
def gate(identities):
    return IntakeGate(identities, submit_roles=["submitter", "admin", "super_admin"])


@pytest.fixture
def builder(gate, entities_repo, notices_repo, blob_storage):
    """Notice builder wired to in-memory repositories."""
    return NoticeBuilder(
        gate=gate,
        entity_resolver=EntityResolver(entities_repo),
        file_decoder=FileAttachmentDecoder(blob_storage),
        notices=notices_repo,
    )


@pytest.fixture
async def db_engine(tmp_path):
    """Create a SQLite database file with every table for one test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'notices.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def create_user(session_factory, email: str, roles: list[UserRole]) -> User:
    async with session_factory() as session:
        return await SqlAlchemyUsersRepository(session).create(UserCreate(email=email, roles=roles))


@pytest.fixture
async def api_submitter(session_factory):
    """A persisted account allowed to submit notices."""
    return await create_user(session_factory, "api-submitter@example.com", [UserRole.SUBMITTER])


@pytest.fixture
async def client(session_factory, blob_storage):
    """HTTP client talking to an app bound to the test database."""
    app = create_app()

    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_blob_storage] = lambda: blob_storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        yield http


def notice_id_from(response) -> UUID:
    return UUID(response.json()["id"])
