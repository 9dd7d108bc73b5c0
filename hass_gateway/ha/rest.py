"""Minimal Home Assistant REST client.

Covers the two REST calls the gateway needs besides the WebSocket API:
the state dump used by the entity sync and the plain-text error log used
as a fallback log source.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from hass_gateway.exceptions import HAClientError
from hass_gateway.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class HARestClient:
    """Async REST client with a lazily created, shared httpx.AsyncClient."""

    def __init__(
        self,
        ha_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.ha_url = ha_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> HARestClient:
        settings = settings or get_settings()
        return cls(
            settings.ha_url,
            settings.ha_token.get_secret_value(),
            timeout=settings.ha_request_timeout,
        )

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.ha_url,
                timeout=self._timeout,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release connections."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _get(self, path: str, tool: str) -> httpx.Response:
        try:
            response = await self._get_http_client().get(path)
        except httpx.HTTPError as exc:
            raise HAClientError(f"Request to {path} failed: {exc}", tool=tool) from exc
        if response.status_code >= 400:
            raise HAClientError(
                f"{path} returned HTTP {response.status_code}",
                tool=tool,
                status_code=response.status_code,
            )
        return response

    async def get_states(self) -> list[dict[str, Any]]:
        """Fetch every entity state (``GET /api/states``)."""
        response = await self._get("/api/states", tool="get_states")
        states = response.json()
        if not isinstance(states, list):
            raise HAClientError("Invalid states response from Home Assistant", tool="get_states")
        return states

    async def get_error_log(self) -> str:
        """Fetch the raw error log text (``GET /api/error_log``)."""
        response = await self._get("/api/error_log", tool="get_error_log")
        return response.text
