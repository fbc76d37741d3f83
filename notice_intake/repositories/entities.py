from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.entities import Entity, EntityCreate
from ..models.entity import EntityModel


class EntitiesRepository(Protocol):
    async def create(self, payload: EntityCreate) -> Entity: ...

    async def get(self, entity_id: UUID) -> Entity | None: ...

    async def linked_to_user(self, user_id: UUID) -> list[Entity]: ...


class InMemoryEntitiesRepository:
    """Ephemeral entity store used alongside the in-memory notices repository."""

    def __init__(self) -> None:
        self._entities: dict[UUID, Entity] = {}

    async def create(self, payload: EntityCreate) -> Entity:
        return self.add(Entity(**payload.model_dump()))

    def add(self, entity: Entity) -> Entity:
        self._entities[entity.id] = entity
        return entity

    async def get(self, entity_id: UUID) -> Entity | None:
        return self._entities.get(entity_id)

    async def linked_to_user(self, user_id: UUID) -> list[Entity]:
        linked = [entity for entity in self._entities.values() if entity.user_id == user_id]
        linked.sort(key=lambda entity: entity.created_at)
        return linked

    def count(self) -> int:
        return len(self._entities)


def entity_model_from(payload: EntityCreate) -> EntityModel:
    data = payload.model_dump()
    data["kind"] = payload.kind.value
    return EntityModel(**data)


class SqlAlchemyEntitiesRepository:
    """Database-backed entity lookups for the entity resolver."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payload: EntityCreate) -> Entity:
        model = entity_model_from(payload)
        self._session.add(model)
        await self._session.flush()
        await self._session.commit()
        return Entity.model_validate(model)

    async def get(self, entity_id: UUID) -> Entity | None:
        model = await self._session.get(EntityModel, entity_id)
        if not model:
            return None
        return Entity.model_validate(model)

    async def linked_to_user(self, user_id: UUID) -> list[Entity]:
        result = await self._session.execute(
            select(EntityModel)
            .where(EntityModel.user_id == user_id)
            .order_by(EntityModel.created_at)
        )
        return [Entity.model_validate(row) for row in result.scalars().all()]
