"""Sweep orchestration.

A sweep selects every entity lacking a normalization row or enough enabled
intents, runs the engine on each one in turn, and appends a BrainRun audit
row with the totals.  Per-entity failures are logged and counted; only a
failure to select candidates aborts the sweep.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.brain.engine import BrainEngine
from hass_gateway.brain.models import SweepResult
from hass_gateway.dal.brain import BrainRepository
from hass_gateway.dal.entities import EntityRepository
from hass_gateway.dal.sync import SyncResult, sync_entities_from_ha
from hass_gateway.exceptions import HAClientError
from hass_gateway.ha.rest import HARestClient
from hass_gateway.settings import get_settings
from hass_gateway.storage import get_session

logger = logging.getLogger(__name__)
events = structlog.get_logger(__name__)


async def run_sweep(session: AsyncSession) -> SweepResult:
    """Run one brain sweep over the entity store.

    Raises:
        Exception: Only if the candidate query itself fails.
    """
    ran_at = datetime.now(UTC)
    repo = BrainRepository(session)
    engine = BrainEngine(session)

    candidates = await repo.select_unbrained()
    result = SweepResult(ran_at_utc=ran_at.isoformat(), scanned=len(candidates))
    logger.info("Brain sweep started: %d candidate(s)", len(candidates))

    for entity in candidates:
        outcome = await engine.process(entity)
        if outcome["normalized"]:
            result.normalized += 1
        result.intents_created += outcome["intents_created"]
        if outcome["failed"]:
            result.failures += 1

    try:
        await repo.record_run(
            ran_at_utc=ran_at,
            scanned=result.scanned,
            normalized=result.normalized,
            intents_created=result.intents_created,
        )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error("Failed to record brain run: %s", e)

    events.info(
        "brain_sweep_complete",
        scanned=result.scanned,
        normalized=result.normalized,
        intents_created=result.intents_created,
        failures=result.failures,
    )
    return result


async def run_brain_sweep(
    *,
    sync_first: bool = True,
    rest_client: HARestClient | None = None,
) -> dict[str, Any]:
    """On-demand sweep, syncing entities from the hub first when the store is sparse.

    The sync runs only when the hub is configured and fewer entities than
    ``brain_sync_threshold`` are stored.  A failed sync is logged and the sweep proceeds with what is
    stored.

    Returns:
        The sweep summary plus ``entitiesSynced`` and ``syncErrors``.
    """
    settings = get_settings()
    sync = SyncResult()

    async with get_session() as session:
        if (
            sync_first
            and settings.ha_configured
            and await EntityRepository(session).count() < settings.brain_sync_threshold
        ):
            owned = rest_client is None
            client = rest_client or HARestClient.from_settings(settings)
            try:
                sync = await sync_entities_from_ha(session, client)
            except HAClientError as e:
                logger.warning("Entity sync before sweep failed: %s", e)
            finally:
                if owned:
                    await client.close()

        result = await run_sweep(session)

    return {
        **result.to_dict(),
        "entitiesSynced": sync.synced,
        "syncErrors": sync.errors,
    }


async def brain_status() -> dict[str, Any]:
    """Counts and last-run summary for the status report."""
    async with get_session() as session:
        return await BrainRepository(session).status()
