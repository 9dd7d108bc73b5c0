"""Scheduler package for the periodic brain sweep."""

from hass_gateway.scheduler.service import SchedulerService

__all__ = ["SchedulerService"]
