"""Brain repository: candidate selection, normalization upserts, intents, runs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import String, and_, cast, func, insert, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.brain.models import Classification, IntentSpec, UnbrainedEntity
from hass_gateway.storage.entities import (
    BrainRun,
    Entity,
    EntityCapability,
    EntityNormalization,
    IntentCandidate,
)

# Entities with fewer enabled intents than this are picked up by a sweep
MIN_ENABLED_INTENTS = 5


class BrainRepository:
    """Repository for the tables the brain sweep reads and writes.

    Methods do not commit; the caller owns transaction boundaries.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    def _unbrained_query(self):
        enabled_intent = and_(
            IntentCandidate.entity_id == Entity.entity_id,
            IntentCandidate.enabled.is_(True),
        )
        return (
            select(
                Entity.entity_id,
                Entity.domain,
                Entity.object_id,
                Entity.friendly_name,
            )
            .outerjoin(EntityNormalization, EntityNormalization.entity_id == Entity.entity_id)
            .outerjoin(IntentCandidate, enabled_intent)
            .group_by(
                Entity.entity_id,
                Entity.domain,
                Entity.object_id,
                Entity.friendly_name,
                EntityNormalization.entity_id,
            )
            .having(
                or_(
                    EntityNormalization.entity_id.is_(None),
                    func.count(IntentCandidate.id) < MIN_ENABLED_INTENTS,
                )
            )
        )

    async def select_unbrained(self) -> list[UnbrainedEntity]:
        """Find entities with no normalization row or too few enabled intents.

        Returns:
            Candidate entities ordered by entity ID.
        """
        result = await self.session.execute(self._unbrained_query().order_by(Entity.entity_id))
        return [
            UnbrainedEntity(
                entity_id=row.entity_id,
                domain=row.domain,
                object_id=row.object_id,
                friendly_name=row.friendly_name,
            )
            for row in result
        ]

    async def count_unbrained(self) -> int:
        """Count entities a sweep would pick up."""
        subquery = self._unbrained_query().subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return result.scalar() or 0

    def _dialect_insert(self, table: Any):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        dialect = getattr(getattr(self.session.bind, "dialect", None), "name", "sqlite")
        if dialect == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    async def upsert_normalization(self, entity_id: str, classification: Classification) -> bool:
        """Insert or replace the normalization row for an entity.

        On conflict every field is overwritten and ``updated_at`` refreshed.

        Returns:
            True if a row was written.
        """
        stmt = self._dialect_insert(EntityNormalization).values(
            entity_id=entity_id,
            canonical_type=classification.canonical_type,
            canonical_domain=classification.canonical_domain,
            confidence=classification.confidence,
            reasoning=classification.reasoning,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[EntityNormalization.entity_id],
            set_={
                "canonical_type": stmt.excluded.canonical_type,
                "canonical_domain": stmt.excluded.canonical_domain,
                "confidence": stmt.excluded.confidence,
                "reasoning": stmt.excluded.reasoning,
                "updated_at": func.now(),
            },
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def get_normalization(self, entity_id: str) -> EntityNormalization | None:
        result = await self.session.execute(
            select(EntityNormalization).where(EntityNormalization.entity_id == entity_id)
        )
        return result.scalar_one_or_none()

    async def count_enabled_intents(self, entity_id: str) -> int:
        """Count enabled intent candidates for one entity."""
        result = await self.session.execute(
            select(func.count(IntentCandidate.id)).where(
                IntentCandidate.entity_id == entity_id,
                IntentCandidate.enabled.is_(True),
            )
        )
        return result.scalar() or 0

    async def list_intents(self, entity_id: str) -> list[IntentCandidate]:
        result = await self.session.execute(
            select(IntentCandidate)
            .where(IntentCandidate.entity_id == entity_id)
            .order_by(IntentCandidate.id)
        )
        return list(result.scalars().all())

    async def insert_intent(self, entity_id: str, intent: IntentSpec) -> None:
        """Insert one enabled intent candidate."""
        await self.session.execute(
            insert(IntentCandidate).values(
                entity_id=entity_id,
                label=intent.label,
                intent_kind=str(intent.intent_kind),
                action_domain=intent.action_domain,
                action_service=intent.action_service,
                action_data_json=intent.action_data,
                requires_caps=intent.requires_caps or None,
                confidence=intent.confidence,
                enabled=True,
            )
        )

    async def load_capability_rows(self, entity_id: str) -> list[tuple[str, str | None]]:
        """Load raw ``(name, value)`` capability pairs for an entity.

        Numeric values are returned as text so one decoder handles both
        storage columns.
        """
        value = func.coalesce(EntityCapability.value_text, cast(EntityCapability.value_num, String))
        result = await self.session.execute(
            select(EntityCapability.name, value).where(EntityCapability.entity_id == entity_id)
        )
        return [(name, raw) for name, raw in result.all()]

    async def record_run(
        self,
        ran_at_utc: datetime,
        scanned: int,
        normalized: int,
        intents_created: int,
    ) -> BrainRun:
        """Append a BrainRun audit row."""
        run = BrainRun(
            ran_at_utc=ran_at_utc,
            scanned=scanned,
            normalized=normalized,
            intents_created=intents_created,
        )
        self.session.add(run)
        await self.session.flush()
        return run

    async def latest_run(self) -> BrainRun | None:
        result = await self.session.execute(
            select(BrainRun).order_by(BrainRun.ran_at_utc.desc(), BrainRun.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def status(self) -> dict[str, Any]:
        """Aggregate counts for the brain status report."""
        total = (await self.session.execute(select(func.count(Entity.entity_id)))).scalar() or 0
        normalized = (
            await self.session.execute(select(func.count(EntityNormalization.entity_id)))
        ).scalar() or 0
        intents = (
            await self.session.execute(
                select(func.count(IntentCandidate.id)).where(IntentCandidate.enabled.is_(True))
            )
        ).scalar() or 0
        unbrained = await self.count_unbrained()
        last_run = await self.latest_run()

        return {
            "entities": {
                "total": total,
                "normalized": normalized,
                "unbrained": unbrained,
            },
            "intents": {
                "total": intents,
                "averagePerEntity": round(intents / total, 2) if total else 0,
            },
            "lastRun": (
                {
                    "ranAt": last_run.ran_at_utc.isoformat() if last_run.ran_at_utc else None,
                    "scanned": last_run.scanned,
                    "normalized": last_run.normalized,
                    "intentsCreated": last_run.intents_created,
                }
                if last_run
                else None
            ),
        }
