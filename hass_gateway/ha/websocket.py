"""Persistent Home Assistant WebSocket client.

Owns one authenticated duplex connection to the hub and correlates
responses to requests by message ID.  Any number of callers may share the
client: the first call opens the socket and authenticates, later calls
reuse it, and a call made after the socket went away opens a fresh one.

Lifecycle::

    Disconnected -> Connecting/Authenticating -> Ready -> Disconnected

When the socket closes or errors, every pending request is rejected with
the same :class:`HAConnectionError` and the client forgets the socket.
Failed requests are never retried; callers re-issue them.

Protocol reference:
    https://developers.home-assistant.io/docs/api/websocket
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from hass_gateway.exceptions import HAAuthError, HAClientError, HAConnectionError
from hass_gateway.settings import Settings, get_settings

__all__ = ["HAWebSocketClient", "build_ws_url", "unwrap_result"]

logger = logging.getLogger(__name__)

# Transport states in which an existing socket may be reused
_LIVE_STATES = (State.CONNECTING, State.OPEN)

Connector = Callable[[str], Awaitable[Any]]


def build_ws_url(ha_url: str) -> str:
    """Derive the WebSocket endpoint from the hub's HTTP URL.

    ``http://ha.local:8123`` becomes ``ws://ha.local:8123/api/websocket``.
    """
    return re.sub(r"^http", "ws", ha_url.rstrip("/")) + "/api/websocket"


def unwrap_result(response: dict[str, Any], tool: str | None = None) -> Any:
    """Return the ``result`` of a response, raising if the hub reported failure."""
    if response.get("success") is False:
        error = response.get("error") or {}
        raise HAClientError(
            error.get("message", "Unknown WebSocket command error"),
            tool=tool,
            details={"code": error.get("code")},
        )
    return response.get("result")


def _consume_exception(task: asyncio.Task[Any]) -> None:
    if not task.cancelled():
        task.exception()


class HAWebSocketClient:
    """Persistent, authenticated WebSocket connection to Home Assistant.

    Usage::

        client = HAWebSocketClient(build_ws_url(ha_url), token)
        response = await client.get_states()
        states = unwrap_result(response)
        await client.close()

    Args:
        ws_url: Full WebSocket URL, e.g. ``ws://ha.local:8123/api/websocket``.
        token: Long-lived access token sent in the auth message.
        connect: Coroutine factory opening the transport (``websockets``
                 ``connect`` by default).
    """

    def __init__(self, ws_url: str, token: str, *, connect: Connector = ws_connect) -> None:
        self._ws_url = ws_url
        self._token = token
        self._connect = connect

        self._socket: Any | None = None
        self._next_id = 1
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._auth_task: asyncio.Task[None] | None = None
        self._auth_ok: asyncio.Future[None] | None = None
        self._reader: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> HAWebSocketClient:
        """Build a client for the hub configured in settings."""
        settings = settings or get_settings()
        return cls(build_ws_url(settings.ha_url), settings.ha_token.get_secret_value())

    @property
    def ws_url(self) -> str:
        return self._ws_url

    @property
    def is_connected(self) -> bool:
        """True once authenticated and while the socket is open."""
        return (
            self._socket is not None
            and self._socket.state is State.OPEN
            and self._auth_ok is not None
            and self._auth_ok.done()
            and not self._auth_ok.exception()
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect and authenticate, or join the handshake already in flight.

        Returns once the hub acknowledged authentication with ``auth_ok``.

        Raises:
            HAConnectionError: The transport failed or closed before ``auth_ok``.
            HAAuthError: The hub rejected the token.
        """
        if self._auth_task is not None:
            if self._socket is None or self._socket.state in _LIVE_STATES:
                await asyncio.shield(self._auth_task)
                return
            # Socket died before its reader noticed
            self._teardown(HAConnectionError("socket closed", tool="ws_connect"))

        task = asyncio.create_task(self._open())
        task.add_done_callback(_consume_exception)
        self._auth_task = task
        await asyncio.shield(task)

    async def _open(self) -> None:
        """Open the transport, start the reader, and wait for ``auth_ok``."""
        try:
            socket = await self._connect(self._ws_url)
        except Exception as exc:
            error = HAConnectionError(f"WebSocket connect failed: {exc}", tool="ws_connect")
            self._teardown(error)
            raise error from exc

        auth_ok: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._socket = socket
        self._auth_ok = auth_ok
        self._reader = asyncio.create_task(self._read_loop(socket))

        try:
            await socket.send(json.dumps({"type": "auth", "access_token": self._token}))
        except Exception as exc:
            error = HAConnectionError(f"WebSocket auth send failed: {exc}", tool="ws_auth")
            if socket is self._socket:
                self._teardown(error)
            raise error from exc

        await auth_ok
        logger.info("WebSocket connected and authenticated: %s", self._ws_url)

    async def _read_loop(self, socket: Any) -> None:
        """Route inbound messages until the socket closes."""
        error: HAClientError = HAConnectionError("socket closed", tool="ws_reader")
        try:
            async for raw in socket:
                auth_error = self._dispatch(raw)
                if auth_error is not None:
                    error = auth_error
                    with contextlib.suppress(Exception):
                        await socket.close()
                    break
        except ConnectionClosed:
            pass
        except Exception as exc:
            error = HAConnectionError(f"WebSocket error: {exc}", tool="ws_reader")
        finally:
            if socket is self._socket:
                self._teardown(error)

    def _dispatch(self, raw: str | bytes) -> HAAuthError | None:
        """Handle one inbound message.

        Returns an HAAuthError when the hub rejected authentication.
        Unsolicited events and malformed JSON are ignored.
        """
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed WebSocket message")
            return None
        if not isinstance(msg, dict):
            return None

        msg_type = msg.get("type")
        if msg_type == "auth_ok":
            if self._auth_ok is not None and not self._auth_ok.done():
                self._auth_ok.set_result(None)
            return None
        if msg_type == "auth_invalid":
            return HAAuthError(msg.get("message") or "Authentication failed", tool="ws_auth")

        msg_id = msg.get("id")
        if isinstance(msg_id, int) and not isinstance(msg_id, bool):
            future = self._pending.pop(msg_id, None)
            if future is not None and not future.done():
                future.set_result(msg)
        return None

    def _teardown(self, error: HAClientError) -> None:
        """Forget the socket and reject everything waiting on it."""
        self._socket = None
        self._auth_task = None
        self._reader = None

        if self._auth_ok is not None and not self._auth_ok.done():
            self._auth_ok.set_exception(error)
        self._auth_ok = None

        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)
        if pending:
            logger.warning("Rejected %d pending request(s): %s", len(pending), error)

    async def close(self) -> None:
        """Close the connection and reject pending requests."""
        socket, reader, auth_task = self._socket, self._reader, self._auth_task
        self._teardown(HAConnectionError("client closed", tool="ws_close"))

        for task in (auth_task, reader):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, HAClientError):
                    await task
        if socket is not None:
            with contextlib.suppress(Exception):
                await socket.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def send(self, command: dict[str, Any]) -> dict[str, Any]:
        """Send a command and wait for the response carrying its ID.

        Args:
            command: HA command without ``id``, e.g. ``{"type": "get_states"}``.

        Returns:
            The full response message (``id``, ``type``, ``success``,
            ``result`` or ``error``).

        Raises:
            HAConnectionError: The connection failed before a response arrived.
            HAClientError: The message could not be transmitted.
        """
        await self.connect()

        msg_id = self._next_id
        self._next_id += 1

        socket = self._socket
        if socket is None:
            raise HAConnectionError("socket not connected", tool="ws_send")

        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        try:
            await socket.send(json.dumps({**command, "id": msg_id}))
        except Exception as exc:
            self._pending.pop(msg_id, None)
            if future.done():
                future.exception()
            raise HAClientError(f"Failed to send message: {exc}", tool="ws_send") from exc

        try:
            return await future
        finally:
            self._pending.pop(msg_id, None)

    async def call_service(
        self,
        domain: str,
        service: str,
        service_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """``call_service`` command."""
        command: dict[str, Any] = {"type": "call_service", "domain": domain, "service": service}
        if service_data is not None:
            command["service_data"] = service_data
        return await self.send(command)

    async def get_states(self) -> dict[str, Any]:
        return await self.send({"type": "get_states"})

    async def get_services(self) -> dict[str, Any]:
        return await self.send({"type": "get_services"})

    async def get_config(self) -> dict[str, Any]:
        return await self.send({"type": "get_config"})

    async def subscribe_events(self, event_type: str | None = None) -> dict[str, Any]:
        """``subscribe_events`` command; all events when no type is given."""
        command: dict[str, Any] = {"type": "subscribe_events"}
        if event_type:
            command["event_type"] = event_type
        return await self.send(command)

    async def get_logs(self) -> dict[str, Any]:
        """``system_log/list`` command: entries held by the hub's system log."""
        return await self.send({"type": "system_log/list"})

    async def get_error_logs(self) -> dict[str, Any]:
        """``system_log/list`` narrowed to entries logged at ERROR level."""
        response = await self.get_logs()
        entries = response.get("result")
        if response.get("success") is False or not isinstance(entries, list):
            return response
        errors = [e for e in entries if isinstance(e, dict) and e.get("level") == "ERROR"]
        return {**response, "result": errors}

