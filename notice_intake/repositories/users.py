from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.users import User, UserCreate
from ..models.user import UserModel


class UsersRepository(Protocol):
    """Persistence interface for API accounts."""

    async def create(self, payload: UserCreate) -> User: ...

    async def get(self, user_id: UUID) -> User | None: ...


class InMemoryUsersRepository:
    """Simplistic in-memory repository used by service level tests."""

    def __init__(self) -> None:
        self._users: dict[UUID, User] = {}
        self._email_index: dict[str, UUID] = {}

    async def create(self, payload: UserCreate) -> User:
        normalized_email = payload.email.lower()
        if normalized_email in self._email_index:
            raise ValueError("user with email already exists")
        user = User(**payload.model_dump())
        self._users[user.id] = user
        self._email_index[normalized_email] = user.id
        return user

    async def get(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)


class SqlAlchemyUsersRepository:
    """SQLAlchemy-backed repository for API accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payload: UserCreate) -> User:
        model = UserModel(
            email=payload.email.lower(),
            full_name=payload.full_name,
            roles=[role.value for role in payload.roles],
        )
        self._session.add(model)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ValueError("user with email already exists") from exc
        await self._session.refresh(model)
        return User.model_validate(model)

    async def get(self, user_id: UUID) -> User | None:
        result = await self._session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        model = result.scalar_one_or_none()
        if not model:
            return None
        return User.model_validate(model)
