"""Per-entity steps of the brain sweep.

Each step owns its own transaction: it commits on success and rolls back
only its own work on failure, so an error in one step never undoes what an
earlier step or an earlier entity already stored.  Failures are reported
through :class:`StepResult` instead of being raised.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.brain.classify import classify_entity, decode_capabilities
from hass_gateway.brain.intents import generate_intents
from hass_gateway.brain.models import CapabilityValue, StepResult, UnbrainedEntity
from hass_gateway.dal.brain import MIN_ENABLED_INTENTS, BrainRepository

logger = logging.getLogger(__name__)


class BrainEngine:
    """Normalizes entities and tops up their intent candidates."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = BrainRepository(session)

    async def upsert_normalization(self, entity: UnbrainedEntity) -> StepResult[bool]:
        """Classify the entity and write its normalization row.

        Returns:
            ``StepResult(True)`` when the row was written.
        """
        classification = classify_entity(entity)
        try:
            written = await self.repo.upsert_normalization(entity.entity_id, classification)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("Normalization failed for %s: %s", entity.entity_id, e)
            return StepResult(False, e)

        logger.debug(
            "Normalized %s as %s (%.2f)",
            entity.entity_id,
            classification.canonical_type,
            classification.confidence,
        )
        return StepResult(written)

    async def load_capabilities(self, entity_id: str) -> dict[str, CapabilityValue | None]:
        """Decoded capability flags; empty when they cannot be read."""
        try:
            rows = await self.repo.load_capability_rows(entity_id)
        except Exception as e:
            await self.session.rollback()
            logger.warning("Could not load capabilities for %s: %s", entity_id, e)
            return {}
        return decode_capabilities(rows)

    async def ensure_intents(self, entity: UnbrainedEntity) -> StepResult[int]:
        """Generate and store intents for an entity that has too few.

        Entities that already hold enough enabled intents are left alone.
        Each intent is inserted and committed on its own; a failed insert is
        logged and skipped.

        Returns:
            The number of intents inserted, with the last error if any.
        """
        try:
            existing = await self.repo.count_enabled_intents(entity.entity_id)
        except Exception as e:
            await self.session.rollback()
            logger.error("Could not count intents for %s: %s", entity.entity_id, e)
            return StepResult(0, e)

        if existing >= MIN_ENABLED_INTENTS:
            return StepResult(0)

        caps = await self.load_capabilities(entity.entity_id)
        created = 0
        error: Exception | None = None
        for intent in generate_intents(entity, caps):
            try:
                await self.repo.insert_intent(entity.entity_id, intent)
                await self.session.commit()
                created += 1
            except Exception as e:
                await self.session.rollback()
                logger.error(
                    "Failed to insert intent %r for %s: %s", intent.label, entity.entity_id, e
                )
                error = e

        return StepResult(created, error)

    async def process(self, entity: UnbrainedEntity) -> dict[str, Any]:
        """Run both steps for one entity."""
        normalization = await self.upsert_normalization(entity)
        intents = await self.ensure_intents(entity)
        return {
            "normalized": normalization.value,
            "intents_created": intents.value,
            "failed": not (normalization.ok and intents.ok),
        }
