"""Home Assistant passthrough endpoints over the shared WebSocket client.

Endpoints:
- GET  /ha/states                       : every entity state
- POST /ha/services/{domain}/{service}  : call a service
- POST /ha/events/subscribe             : subscribe to hub events
- POST /ha/ws                           : send a raw command
- GET  /ha/logs                         : recent logs with REST fallback
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from hass_gateway.api.deps import get_rest_client, get_ws_client, require_ha
from hass_gateway.api.schemas import Envelope, EventSubscribeRequest, ok
from hass_gateway.ha.logs import fetch_logs
from hass_gateway.ha.rest import HARestClient
from hass_gateway.ha.websocket import HAWebSocketClient, unwrap_result
from hass_gateway.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ha", tags=["Home Assistant"], dependencies=[Depends(require_ha)])


@router.get("/states", response_model=Envelope)
async def get_states(ws: HAWebSocketClient = Depends(get_ws_client)) -> Envelope:
    states = unwrap_result(await ws.get_states(), tool="get_states")
    return ok("states", states)


@router.post("/services/{domain}/{service}", response_model=Envelope)
async def call_service(
    domain: str,
    service: str,
    service_data: dict[str, Any] | None = Body(None),
    ws: HAWebSocketClient = Depends(get_ws_client),
) -> Envelope:
    """Call ``domain.service`` with an optional JSON body as service data."""
    logger.debug("Calling service %s.%s", domain, service)
    result = unwrap_result(
        await ws.call_service(domain, service, service_data),
        tool="call_service",
    )
    return ok("service called", result)


@router.post("/events/subscribe", response_model=Envelope)
async def subscribe_events(
    body: EventSubscribeRequest | None = None,
    ws: HAWebSocketClient = Depends(get_ws_client),
) -> Envelope:
    event_type = body.event_type if body else None
    response = await ws.subscribe_events(event_type)
    unwrap_result(response, tool="subscribe_events")
    logger.debug("Subscribed to hub events: %s", event_type or "all")
    return ok(
        "event subscription created",
        {
            "event_type": event_type or "all",
            "subscription_id": response.get("id", "unknown"),
        },
    )


@router.post("/ws", response_model=Envelope)
async def send_command(
    command: dict[str, Any] = Body(...),
    ws: HAWebSocketClient = Depends(get_ws_client),
) -> Envelope:
    """Send an arbitrary command; the full response message is returned."""
    command.pop("id", None)
    return ok("ws response", await ws.send(command))


@router.get("/logs", response_model=Envelope)
async def get_logs(
    ws: HAWebSocketClient = Depends(get_ws_client),
    rest: HARestClient = Depends(get_rest_client),
) -> Envelope:
    logs = await fetch_logs(ws, rest, timeout=get_settings().ha_log_timeout)
    return ok("logs", logs)
