"""Entity sync: mirror the hub's live state into the entities table."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.dal.entities import EntityRepository
from hass_gateway.ha.rest import HARestClient

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Counts from one entity sync."""

    synced: int = 0
    errors: int = 0


class EntitySyncService:
    """Synchronizes hub states to the local entity store.

    Each entity is committed on its own so one bad row does not undo the
    rest of the sync.
    """

    def __init__(self, session: AsyncSession, rest_client: HARestClient, source_id: str = "default"):
        self.session = session
        self.rest = rest_client
        self.source_id = source_id
        self.entity_repo = EntityRepository(session)

    async def run(self) -> SyncResult:
        """Fetch all states and upsert one entity row per state.

        Raises:
            HAClientError: If the states cannot be fetched.
        """
        logger.debug("Syncing entities from Home Assistant to database")
        states = await self.rest.get_states()

        result = SyncResult()
        for state in states:
            entity_id = state.get("entity_id") if isinstance(state, dict) else None
            if not entity_id:
                continue
            try:
                stored = await self.entity_repo.upsert_from_state(state, source_id=self.source_id)
                if stored is None:
                    continue
                await self.session.commit()
                result.synced += 1
            except Exception as e:
                await self.session.rollback()
                logger.error("Failed to sync entity %s: %s", entity_id, e)
                result.errors += 1

        logger.info("Entity sync complete: %d synced, %d errors", result.synced, result.errors)
        return result


async def sync_entities_from_ha(session: AsyncSession, rest_client: HARestClient) -> SyncResult:
    """Convenience wrapper around :class:`EntitySyncService`."""
    return await EntitySyncService(session, rest_client).run()
