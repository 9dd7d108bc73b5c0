"""Shared FastAPI dependencies.

Hub clients live on ``app.state`` and are created once per application.
"""

from collections.abc import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hass_gateway.ha.rest import HARestClient
from hass_gateway.ha.websocket import HAWebSocketClient
from hass_gateway.settings import get_settings
from hass_gateway.storage import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session scoped to a single request."""
    async with get_session() as session:
        yield session


def require_ha() -> None:
    """Reject hub routes when no hub URL and token are configured."""
    if not get_settings().ha_configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Home Assistant not configured.",
        )


def get_ws_client(request: Request) -> HAWebSocketClient:
    return request.app.state.ws_client


def get_rest_client(request: Request) -> HARestClient:
    return request.app.state.rest_client
