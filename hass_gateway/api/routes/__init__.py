"""API route registration.

``api_router`` is mounted under ``/api/v1``; ``relay_router`` is mounted at
the root so clients connect to ``/ws/{instance_id}``.
"""

from fastapi import APIRouter

from hass_gateway.api.routes.brain import router as brain_router
from hass_gateway.api.routes.ha import router as ha_router
from hass_gateway.api.routes.relay import router as relay_router
from hass_gateway.api.routes.system import router as system_router

# Main API router
api_router = APIRouter()

api_router.include_router(system_router)
api_router.include_router(brain_router)
api_router.include_router(ha_router)

__all__ = ["api_router", "relay_router"]
