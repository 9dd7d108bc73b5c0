"""APScheduler-based scheduler for the periodic brain sweep.

Uses APScheduler 3.x with AsyncIOScheduler and a single cron job whose
expression comes from ``settings.brain_sweep_cron``.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from hass_gateway.settings import get_settings

logger = logging.getLogger(__name__)

BRAIN_SWEEP_JOB_ID = "brain:sweep"


class SchedulerService:
    """Runs the brain sweep on a cron schedule.

    Lifecycle:
        scheduler = SchedulerService()
        await scheduler.start()    # Called in lifespan startup
        ...
        await scheduler.stop()     # Called in lifespan shutdown
    """

    _instance: SchedulerService | None = None

    def __init__(self) -> None:
        settings = get_settings()
        self._scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
        self._running = False

    @classmethod
    def get_instance(cls) -> SchedulerService | None:
        """Get the singleton scheduler instance (None if not started)."""
        return cls._instance

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler and register the sweep job."""
        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduler disabled via settings")
            return

        try:
            trigger = CronTrigger.from_crontab(
                settings.brain_sweep_cron,
                timezone=settings.scheduler_timezone,
            )
        except ValueError:
            logger.error("Invalid cron expression for brain sweep: %s", settings.brain_sweep_cron)
            return

        self._scheduler.add_job(
            _execute_brain_sweep,
            trigger=trigger,
            id=BRAIN_SWEEP_JOB_ID,
            replace_existing=True,
            name="brain:periodic_sweep",
            max_instances=1,
            misfire_grace_time=300,  # 5 min grace for misfires
        )
        self._scheduler.start()
        self._running = True
        SchedulerService._instance = self
        logger.info("Scheduler started, brain sweep scheduled: %s", settings.brain_sweep_cron)

    async def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            SchedulerService._instance = None
            logger.info("Scheduler stopped")


async def _execute_brain_sweep() -> None:
    """Run one scheduled brain sweep.

    Called by APScheduler when the cron job fires. Failures are logged;
    the next firing simply runs again.
    """
    from hass_gateway.brain.sweep import run_sweep
    from hass_gateway.storage import get_session

    logger.info("Scheduled brain sweep triggered")
    try:
        async with get_session() as session:
            result = await run_sweep(session)
        logger.info(
            "Scheduled brain sweep completed: scanned=%d, normalized=%d, intents=%d",
            result.scanned,
            result.normalized,
            result.intents_created,
        )
    except Exception as e:
        logger.exception("Scheduled brain sweep failed: %s", e)
