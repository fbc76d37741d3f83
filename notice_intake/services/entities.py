"""Resolution of notice parties to existing, linked or new entities."""

from __future__ import annotations

from uuid import UUID

import structlog
from pydantic import ValidationError

from ..domain.entities import Entity, EntityCreate
from ..domain.notices import EntityRoleName, EntityRoleSubmission, RoleDraft
from ..domain.users import User
from ..repositories.entities import EntitiesRepository
from .errors import NotFound, ValidationFailed

logger = structlog.get_logger()

_ROLE_NAMES = ", ".join(role.value for role in EntityRoleName)


def pydantic_error_paths(exc: ValidationError, prefix: str = "") -> dict[str, list[str]]:
    """Flatten a pydantic error into dotted field paths."""

    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = ".".join(str(part) for part in error["loc"])
        field = f"{prefix}.{loc}" if prefix and loc else (prefix or loc or "base")
        errors.setdefault(field, []).append(error["msg"])
    return errors


class EntityResolver:
    """Maps role submissions onto entities the notice write can reference."""

    def __init__(self, entities: EntitiesRepository) -> None:
        self._entities = entities

    async def resolve(self, submission: EntityRoleSubmission) -> RoleDraft:
        """Return a role bound to an existing entity or a new unsaved one.

        Raises ``ValidationFailed`` for unusable role names or attributes and
        ``NotFound`` when ``entity_id`` references nothing. Field paths in the
        raised errors are relative to the role submission.
        """

        role_name = self._role_name(submission.name)

        if submission.entity_id:
            entity = await self._lookup(submission.entity_id)
            return RoleDraft(name=role_name, entity_id=entity.id)

        if submission.entity_attributes is not None:
            attributes = dict(submission.entity_attributes)
            attributes.pop("user_id", None)
            try:
                entity = EntityCreate.model_validate(attributes)
            except ValidationError as exc:
                raise ValidationFailed(pydantic_error_paths(exc, "entity_attributes")) from exc
            return RoleDraft(name=role_name, entity=entity)

        raise ValidationFailed(
            {"entity": ["must reference an existing entity or describe a new one"]}
        )

    async def linked_entity(self, user: User) -> Entity | None:
        """Return the caller's linked entity when exactly one exists."""

        linked = await self._entities.linked_to_user(user.id)
        if len(linked) != 1:
            if linked:
                logger.info("entities.ambiguous_link", user_id=str(user.id), linked=len(linked))
            return None
        return linked[0]

    async def default_roles(
        self, submitted_names: set[str], user: User | None
    ) -> list[RoleDraft]:
        """Roles to add on behalf of a caller with a linked entity.

        Only applies when the payload omits the submitter role. The linked
        entity then becomes the submitter, and also the recipient when that
        role is omitted too.
        """

        if user is None or EntityRoleName.SUBMITTER.value in submitted_names:
            return []
        missing = [EntityRoleName.SUBMITTER]
        if EntityRoleName.RECIPIENT.value not in submitted_names:
            missing.append(EntityRoleName.RECIPIENT)
        entity = await self.linked_entity(user)
        if entity is None:
            return []
        logger.info(
            "entities.defaulted_roles",
            user_id=str(user.id),
            entity_id=str(entity.id),
            roles=[role.value for role in missing],
        )
        return [RoleDraft(name=role, entity_id=entity.id) for role in missing]

    def _role_name(self, raw: str | None) -> EntityRoleName:
        if not raw or not raw.strip():
            raise ValidationFailed({"name": ["can't be blank"]})
        try:
            return EntityRoleName(raw.strip().lower())
        except ValueError as exc:
            raise ValidationFailed(
                {"name": [f"'{raw}' is not a recognized role ({_ROLE_NAMES})"]}
            ) from exc

    async def _lookup(self, raw_id: str) -> Entity:
        try:
            entity_id = UUID(str(raw_id))
        except ValueError as exc:
            raise NotFound(f"entity {raw_id} does not exist") from exc
        entity = await self._entities.get(entity_id)
        if entity is None:
            raise NotFound(f"entity {raw_id} does not exist")
        return entity
