"""Entity repository for the mirrored hub state."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.storage.entities import Entity


def split_entity_id(entity_id: str) -> tuple[str, str] | None:
    """Split ``domain.object_id``; None when either part is missing."""
    domain, _, object_id = entity_id.partition(".")
    if not domain or not object_id:
        return None
    return domain, object_id


class EntityRepository:
    """Repository for Entity rows.

    Entities are keyed by the hub's entity ID.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def get(self, entity_id: str) -> Entity | None:
        """Get entity by Home Assistant entity_id.

        Args:
            entity_id: HA entity ID (e.g., "light.living_room")

        Returns:
            Entity or None
        """
        result = await self.session.execute(select(Entity).where(Entity.entity_id == entity_id))
        return result.scalar_one_or_none()

    async def count(self) -> int:
        """Count stored entities."""
        result = await self.session.execute(select(func.count(Entity.entity_id)))
        return result.scalar() or 0

    async def upsert_from_state(self, state: dict[str, Any], source_id: str = "default") -> Entity | None:
        """Create or replace an entity from a hub state object.

        Args:
            state: A ``/api/states`` item (``entity_id`` plus ``attributes``)
            source_id: Hub instance the state came from

        Returns:
            The stored entity, or None if the entity ID is malformed.
        """
        entity_id = state.get("entity_id")
        parts = split_entity_id(entity_id) if isinstance(entity_id, str) else None
        if parts is None:
            return None
        domain, object_id = parts
        attributes = state.get("attributes") or {}

        values = {
            "source_id": source_id,
            "domain": domain,
            "object_id": object_id,
            "friendly_name": attributes.get("friendly_name") or None,
            "icon": attributes.get("icon") or None,
            "unit_of_measure": attributes.get("unit_of_measurement") or None,
            "area": attributes.get("area_id") or None,
            "is_enabled": True,
            "last_seen_at": datetime.now(UTC),
            "metadata_json": {
                "unique_id": attributes.get("unique_id"),
                "device_id": attributes.get("device_id"),
                "device_class": attributes.get("device_class"),
                "entity_category": attributes.get("entity_category"),
            },
        }

        existing = await self.get(entity_id)
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            await self.session.flush()
            return existing

        entity = Entity(entity_id=entity_id, **values)
        self.session.add(entity)
        await self.session.flush()
        return entity
