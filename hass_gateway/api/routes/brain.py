"""Brain sweep endpoints.

- ``GET|POST /brain/run``: on-demand sweep, syncing entities first when the
  store is sparse.
- ``GET /brain/status``: entity, intent and last-run counts.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.api.deps import get_db, get_rest_client
from hass_gateway.api.schemas import Envelope, ok
from hass_gateway.brain.sweep import run_brain_sweep
from hass_gateway.dal.brain import BrainRepository
from hass_gateway.ha.rest import HARestClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/brain", tags=["Brain"])


@router.api_route("/run", methods=["GET", "POST"], response_model=Envelope)
async def run_sweep(rest_client: HARestClient = Depends(get_rest_client)) -> Envelope:
    """Run a brain sweep now."""
    logger.debug("Manual brain sweep requested")
    result = await run_brain_sweep(rest_client=rest_client)
    return ok("brain sweep completed", result)


@router.get("/status", response_model=Envelope)
async def get_status(session: AsyncSession = Depends(get_db)) -> Envelope:
    """Report normalization coverage and the latest run."""
    status = await BrainRepository(session).status()
    return ok("brain status", status)
