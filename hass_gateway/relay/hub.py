"""Per-instance fan-out bridge between downstream clients and one hub socket.

Every message the hub sends is broadcast raw to all attached clients, and
every message a client sends is forwarded upstream unchanged.  The relay does
not track message IDs; clients share the upstream session as-is.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

from starlette.websockets import WebSocket
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from hass_gateway.exceptions import HAConnectionError
from hass_gateway.ha.websocket import Connector, build_ws_url
from hass_gateway.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_LIVE_STATES = (State.CONNECTING, State.OPEN)


class HubRelay:
    """Multiplexes downstream client sockets onto one upstream hub socket.

    The upstream is opened lazily on first use and reopened on the next
    downstream activity after it closes.  Downstream clients stay attached
    across upstream reconnects.
    """

    def __init__(
        self,
        instance_id: str,
        ws_url: str,
        token: str,
        *,
        connect: Connector = ws_connect,
    ) -> None:
        self.instance_id = instance_id
        self._ws_url = ws_url
        self._token = token
        self._connect = connect

        self._clients: set[WebSocket] = set()
        self._upstream: Any | None = None
        self._pump: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def upstream_live(self) -> bool:
        return self._upstream is not None and self._upstream.state in _LIVE_STATES

    async def ensure_upstream(self) -> Any:
        """Return the live upstream socket, opening and authenticating it if needed.

        Raises:
            HAConnectionError: The upstream could not be opened.
        """
        async with self._lock:
            if self.upstream_live:
                return self._upstream

            try:
                upstream = await self._connect(self._ws_url)
            except Exception as exc:
                raise HAConnectionError(
                    f"Relay {self.instance_id} upstream connect failed: {exc}",
                    tool="relay_connect",
                ) from exc

            self._upstream = upstream
            self._pump = asyncio.create_task(self._pump_upstream(upstream))
            try:
                await upstream.send(json.dumps({"type": "auth", "access_token": self._token}))
            except Exception as exc:
                await self._discard_upstream(upstream)
                raise HAConnectionError(
                    f"Relay {self.instance_id} upstream auth failed: {exc}",
                    tool="relay_auth",
                ) from exc

            logger.info("Relay %s upstream opened: %s", self.instance_id, self._ws_url)
            return upstream

    async def _discard_upstream(self, upstream: Any) -> None:
        """Stop pumping and close an upstream that never finished opening."""
        pump = self._pump
        if self._upstream is upstream:
            self._upstream = None
            self._pump = None
        if pump is not None and not pump.done():
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        with contextlib.suppress(Exception):
            await upstream.close()

    async def _pump_upstream(self, upstream: Any) -> None:
        """Broadcast upstream messages until the upstream closes."""
        try:
            async for message in upstream:
                await self.broadcast(message)
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.warning("Relay %s upstream error: %s", self.instance_id, e)
        finally:
            if self._upstream is upstream:
                self._upstream = None
                self._pump = None
            logger.info("Relay %s upstream closed", self.instance_id)

    async def broadcast(self, message: str | bytes) -> None:
        """Send a raw message to every attached client, best-effort per client."""
        for client in list(self._clients):
            try:
                if isinstance(message, bytes):
                    await client.send_bytes(message)
                else:
                    await client.send_text(message)
            except Exception as e:
                logger.debug("Relay %s dropped message for a client: %s", self.instance_id, e)

    async def forward(self, message: str | bytes) -> None:
        """Send a client message upstream, dropping it if the upstream is unavailable."""
        try:
            upstream = await self.ensure_upstream()
            await upstream.send(message)
        except Exception as e:
            logger.debug("Relay %s dropped upstream message: %s", self.instance_id, e)

    async def attach(self, websocket: WebSocket) -> None:
        """Serve one accepted downstream socket until it disconnects."""
        self._clients.add(websocket)
        logger.debug("Relay %s client attached (%d total)", self.instance_id, len(self._clients))
        try:
            try:
                await self.ensure_upstream()
            except HAConnectionError as e:
                logger.warning("Relay %s upstream unavailable: %s", self.instance_id, e)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                data = message.get("text")
                if data is None:
                    data = message.get("bytes")
                if data is not None:
                    await self.forward(data)
        finally:
            self._clients.discard(websocket)
            logger.debug(
                "Relay %s client detached (%d remaining)", self.instance_id, len(self._clients)
            )

    async def close(self) -> None:
        """Close the upstream socket and forget attached clients."""
        upstream, pump = self._upstream, self._pump
        self._upstream = None
        self._pump = None
        self._clients.clear()
        if pump is not None and not pump.done():
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        if upstream is not None:
            with contextlib.suppress(Exception):
                await upstream.close()


class RelayRegistry:
    """One HubRelay per instance identifier, created on first use.

    Credentials come from ``settings.relay_instances[instance_id]`` when
    present, otherwise from the default ``ha_url``/``ha_token``.
    """

    def __init__(self, settings: Settings | None = None, *, connect: Connector = ws_connect):
        self._settings = settings
        self._connect = connect
        self._relays: dict[str, HubRelay] = {}

    def get(self, instance_id: str) -> HubRelay:
        relay = self._relays.get(instance_id)
        if relay is None:
            settings = self._settings or get_settings()
            instance = settings.relay_instances.get(instance_id)
            if instance is not None:
                ha_url, token = instance.ha_url, instance.ha_token.get_secret_value()
            else:
                ha_url, token = settings.ha_url, settings.ha_token.get_secret_value()
            relay = HubRelay(instance_id, build_ws_url(ha_url), token, connect=self._connect)
            self._relays[instance_id] = relay
        return relay

    async def close_all(self) -> None:
        relays = list(self._relays.values())
        self._relays.clear()
        for relay in relays:
            await relay.close()
