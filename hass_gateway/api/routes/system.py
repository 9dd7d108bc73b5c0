"""System health endpoint."""

import time

from fastapi import APIRouter, Request

from hass_gateway import __version__
from hass_gateway.api.schemas import HealthResponse
from hass_gateway.api.schemas.envelope import HomeAssistantHealth
from hass_gateway.settings import get_settings

router = APIRouter(tags=["System"])

# Track application start time for uptime calculation
_start_time: float = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Liveness check. Reports whether the hub is configured and the shared socket is up.",
)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe; does not contact the hub."""
    ws_client = getattr(request.app.state, "ws_client", None)
    return HealthResponse(
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 3),
        home_assistant=HomeAssistantHealth(
            configured=get_settings().ha_configured,
            websocket_connected=bool(ws_client and ws_client.is_connected),
        ),
    )
