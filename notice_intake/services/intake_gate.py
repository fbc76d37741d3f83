"""Authentication and submit authorization ahead of notice assembly."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol
from uuid import UUID

import structlog
from jose import JWTError

from ..core.security import decode_access_token
from ..domain.notices import NoticeType
from ..domain.users import User
from ..repositories.users import UsersRepository
from .errors import Forbidden, Unauthorized

logger = structlog.get_logger()


class IdentityResolver(Protocol):
    async def resolve_token(self, token: str) -> User | None: ...


class JwtIdentityResolver:
    """Resolves signed API tokens whose subject is a user id."""

    def __init__(self, users: UsersRepository) -> None:
        self._users = users

    async def resolve_token(self, token: str) -> User | None:
        try:
            payload = decode_access_token(token)
        except JWTError:
            return None
        subject = payload.get("sub")
        if subject is None:
            return None
        try:
            user_id = UUID(str(subject))
        except ValueError:
            return None
        return await self._users.get(user_id)


class IntakeGate:
    """Decides whether a caller may submit a notice of a given type."""

    def __init__(
        self,
        identities: IdentityResolver,
        *,
        submit_roles: Iterable[str],
        restricted_notice_types: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._identities = identities
        self._submit_roles = {role.lower() for role in submit_roles}
        self._restricted: dict[NoticeType, set[str]] = {}
        for tag, roles in (restricted_notice_types or {}).items():
            notice_type = NoticeType.lookup(tag)
            if notice_type is None:
                logger.warning("intake_gate.unknown_restricted_type", tag=tag)
                continue
            self._restricted[notice_type] = {role.lower() for role in roles}

    async def authenticate(
        self, *, body_token: str | None, header_token: str | None
    ) -> User:
        token = (body_token or "").strip() or (header_token or "").strip()
        if not token:
            raise Unauthorized("Authentication token missing")
        user = await self._identities.resolve_token(token)
        if user is None:
            logger.info("intake_gate.unknown_token")
            raise Unauthorized("Authentication token invalid")
        return user

    def authorize(self, user: User, notice_type: NoticeType) -> None:
        if not user.has_any_role(self._submit_roles):
            logger.info("intake_gate.forbidden", user_id=str(user.id), reason="role")
            raise Forbidden("You are not allowed to submit notices")
        allowed = self._restricted.get(notice_type)
        if allowed is not None and not user.has_any_role(allowed):
            logger.info(
                "intake_gate.forbidden",
                user_id=str(user.id),
                reason="notice_type",
                notice_type=notice_type.value,
            )
            raise Forbidden(f"You are not allowed to submit {notice_type.value} notices")

    async def admit(
        self,
        *,
        body_token: str | None,
        header_token: str | None,
        type_tag: str | None,
    ) -> tuple[User, NoticeType]:
        """Authenticate, shape the notice type and authorize, in that order."""

        user = await self.authenticate(body_token=body_token, header_token=header_token)
        notice_type = NoticeType.from_tag(type_tag)
        self.authorize(user, notice_type)
        return user, notice_type
