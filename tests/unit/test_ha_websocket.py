"""Tests for the persistent HA WebSocket client.

Covers authentication before the first command, ID correlation with
out-of-order responses, failure broadcast on socket loss, reconnection on
the next call, and the exact shapes of the convenience commands.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from hass_gateway.exceptions import HAAuthError, HAClientError, HAConnectionError
from hass_gateway.ha.websocket import HAWebSocketClient, build_ws_url, unwrap_result

WS_URL = "ws://homeassistant.local:8123/api/websocket"
TOKEN = "test-token-abc123"


@pytest.fixture
def client(fake_hub) -> HAWebSocketClient:
    return HAWebSocketClient(WS_URL, TOKEN, connect=fake_hub.connect)


def _result(msg_id: int, result: Any = None) -> dict[str, Any]:
    return {"id": msg_id, "type": "result", "success": True, "result": result}


# ---------------------------------------------------------------------------
# URL derivation
# ---------------------------------------------------------------------------


class TestBuildWsUrl:
    @pytest.mark.parametrize(
        ("http_url", "expected"),
        [
            ("http://homeassistant.local:8123", "ws://homeassistant.local:8123/api/websocket"),
            ("https://ha.example.com", "wss://ha.example.com/api/websocket"),
            ("http://10.0.0.5:8123/", "ws://10.0.0.5:8123/api/websocket"),
        ],
    )
    def test_scheme_and_path(self, http_url: str, expected: str) -> None:
        assert build_ws_url(http_url) == expected


# ---------------------------------------------------------------------------
# Connect / authenticate
# ---------------------------------------------------------------------------


class TestConnect:
    async def test_send_while_disconnected_authenticates_first(
        self, client, fake_hub, wait_until
    ) -> None:
        """Auth message carries the token, then the command goes out with id 1."""
        task = asyncio.create_task(client.send({"type": "get_states"}))
        await wait_until(lambda: fake_hub.sockets and len(fake_hub.socket.sent) == 2)

        sent = fake_hub.socket.sent_json
        assert sent[0] == {"type": "auth", "access_token": TOKEN}
        assert sent[1] == {"type": "get_states", "id": 1}
        assert fake_hub.urls == [WS_URL]

        states = [{"entity_id": "light.kitchen", "state": "on"}]
        fake_hub.socket.push(_result(1, states))
        response = await task

        assert response["id"] == 1
        assert response["result"] == states

    async def test_concurrent_callers_share_one_handshake(self, client, fake_hub) -> None:
        await asyncio.gather(client.connect(), client.connect(), client.connect())

        assert len(fake_hub.sockets) == 1
        assert [m["type"] for m in fake_hub.socket.sent_json] == ["auth"]
        assert client.is_connected

    async def test_connect_is_idempotent_when_open(self, client, fake_hub) -> None:
        await client.connect()
        await client.connect()

        assert len(fake_hub.sockets) == 1

    async def test_auth_invalid_rejects_connect(self, fake_hub, wait_until) -> None:
        fake_hub.auto_auth = False
        client = HAWebSocketClient(WS_URL, "bad-token", connect=fake_hub.connect)

        task = asyncio.create_task(client.connect())
        await wait_until(lambda: fake_hub.sockets and fake_hub.socket.sent)
        fake_hub.socket.push({"type": "auth_required", "ha_version": "2025.1.0"})
        fake_hub.socket.push({"type": "auth_invalid", "message": "Invalid access token"})

        with pytest.raises(HAAuthError, match="Invalid access token"):
            await task
        assert fake_hub.socket.closed
        assert not client.is_connected

    async def test_close_before_auth_ok_rejects_connect(self, fake_hub, wait_until) -> None:
        fake_hub.auto_auth = False
        client = HAWebSocketClient(WS_URL, TOKEN, connect=fake_hub.connect)

        task = asyncio.create_task(client.connect())
        await wait_until(lambda: fake_hub.sockets and fake_hub.socket.sent)
        fake_hub.socket.drop()

        with pytest.raises(HAConnectionError, match="socket closed"):
            await task

    async def test_transport_open_failure_then_recovery(self, client, fake_hub) -> None:
        fake_hub.connect_error = OSError("connection refused")

        with pytest.raises(HAConnectionError, match="connection refused"):
            await client.send({"type": "get_config"})

        fake_hub.connect_error = None
        await client.connect()
        assert client.is_connected


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


class TestCorrelation:
    async def test_out_of_order_responses_match_by_id(self, client, fake_hub, wait_until) -> None:
        tasks = [
            asyncio.create_task(client.send({"type": "get_states"})),
            asyncio.create_task(client.send({"type": "get_services"})),
            asyncio.create_task(client.send({"type": "get_config"})),
        ]
        await wait_until(lambda: client.pending_count == 3)

        by_type = {m["type"]: m["id"] for m in fake_hub.socket.sent_json[1:]}
        assert sorted(by_type.values()) == [1, 2, 3]

        for msg_type in ("get_config", "get_states", "get_services"):
            fake_hub.socket.push(_result(by_type[msg_type], msg_type))
        responses = await asyncio.gather(*tasks)

        assert [r["result"] for r in responses] == ["get_states", "get_services", "get_config"]
        assert client.pending_count == 0

    async def test_ids_are_monotonic(self, client, fake_hub, wait_until) -> None:
        for expected_id in (1, 2, 3):
            task = asyncio.create_task(client.send({"type": "ping"}))
            await wait_until(lambda: client.pending_count == 1)
            assert fake_hub.socket.sent_json[-1]["id"] == expected_id
            fake_hub.socket.push({"id": expected_id, "type": "pong"})
            await task

    async def test_unsolicited_and_malformed_messages_are_ignored(
        self, client, fake_hub, wait_until
    ) -> None:
        await client.connect()
        task = asyncio.create_task(client.send({"type": "get_config"}))
        await wait_until(lambda: client.pending_count == 1)

        fake_hub.socket.push("{not json")
        fake_hub.socket.push([1, 2, 3])
        fake_hub.socket.push({"type": "event", "event": {"event_type": "state_changed"}})
        fake_hub.socket.push(_result(99, "stale"))
        fake_hub.socket.push({"id": "1", "type": "result"})
        await asyncio.sleep(0)
        assert not task.done()

        fake_hub.socket.push(_result(1, {"version": "2025.1.0"}))
        response = await task
        assert response["result"] == {"version": "2025.1.0"}
        assert client.is_connected


# ---------------------------------------------------------------------------
# Failure semantics
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_socket_close_rejects_every_pending_request(
        self, client, fake_hub, wait_until
    ) -> None:
        tasks = [asyncio.create_task(client.send({"type": "get_states"})) for _ in range(3)]
        await wait_until(lambda: client.pending_count == 3)
        assert [m["id"] for m in fake_hub.socket.sent_json[1:]] == [1, 2, 3]

        fake_hub.socket.drop()
        errors = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(e, HAConnectionError) for e in errors)
        assert errors[0] is errors[1] is errors[2]
        assert "socket closed" in str(errors[0])
        assert client.pending_count == 0
        assert not client.is_connected

    async def test_next_send_after_close_reconnects(self, client, fake_hub, wait_until) -> None:
        await client.connect()
        fake_hub.socket.drop()
        await wait_until(lambda: not client.is_connected)

        task = asyncio.create_task(client.send({"type": "get_states"}))
        await wait_until(lambda: len(fake_hub.sockets) == 2 and len(fake_hub.socket.sent) == 2)

        assert fake_hub.socket.sent_json[0]["type"] == "auth"
        fake_hub.socket.push(_result(1, []))
        assert (await task)["result"] == []

    async def test_ids_continue_across_reconnect(self, client, fake_hub, wait_until) -> None:
        first = asyncio.create_task(client.send({"type": "get_states"}))
        await wait_until(lambda: client.pending_count == 1)
        fake_hub.socket.drop()
        with pytest.raises(HAConnectionError):
            await first

        second = asyncio.create_task(client.send({"type": "get_states"}))
        await wait_until(lambda: len(fake_hub.sockets) == 2 and client.pending_count == 1)
        assert fake_hub.socket.sent_json[-1]["id"] == 2

        fake_hub.socket.push(_result(2, []))
        await second

    async def test_transport_error_rejects_pending(self, client, fake_hub, wait_until) -> None:
        task = asyncio.create_task(client.send({"type": "get_states"}))
        await wait_until(lambda: client.pending_count == 1)

        fake_hub.socket.push(RuntimeError("reset by peer"))

        with pytest.raises(HAConnectionError, match="reset by peer"):
            await task

    async def test_send_failure_rejects_only_that_request(
        self, client, fake_hub, wait_until
    ) -> None:
        other = asyncio.create_task(client.send({"type": "get_config"}))
        await wait_until(lambda: client.pending_count == 1)

        fake_hub.socket.send_error = RuntimeError("buffer full")
        with pytest.raises(HAClientError, match="buffer full") as exc_info:
            await client.send({"type": "get_states"})

        assert not isinstance(exc_info.value, HAConnectionError)
        assert client.pending_count == 1
        assert client.is_connected

        fake_hub.socket.push(_result(1, "ok"))
        assert (await other)["result"] == "ok"

    async def test_close_rejects_pending_and_closes_socket(
        self, client, fake_hub, wait_until
    ) -> None:
        task = asyncio.create_task(client.send({"type": "get_states"}))
        await wait_until(lambda: client.pending_count == 1)
        socket = fake_hub.socket

        await client.close()

        with pytest.raises(HAConnectionError, match="client closed"):
            await task
        assert socket.closed
        assert not client.is_connected


# ---------------------------------------------------------------------------
# Convenience commands
# ---------------------------------------------------------------------------


class TestConvenienceCommands:
    @pytest.mark.parametrize(
        ("method", "args", "expected"),
        [
            (
                "call_service",
                ("light", "turn_on", {"entity_id": "light.kitchen", "brightness_pct": 50}),
                {
                    "type": "call_service",
                    "domain": "light",
                    "service": "turn_on",
                    "service_data": {"entity_id": "light.kitchen", "brightness_pct": 50},
                },
            ),
            (
                "call_service",
                ("homeassistant", "restart"),
                {"type": "call_service", "domain": "homeassistant", "service": "restart"},
            ),
            ("get_states", (), {"type": "get_states"}),
            ("get_services", (), {"type": "get_services"}),
            ("get_config", (), {"type": "get_config"}),
            ("subscribe_events", (), {"type": "subscribe_events"}),
            (
                "subscribe_events",
                ("state_changed",),
                {"type": "subscribe_events", "event_type": "state_changed"},
            ),
            ("get_logs", (), {"type": "system_log/list"}),
            ("get_error_logs", (), {"type": "system_log/list"}),
        ],
    )
    async def test_message_shape(
        self, client, fake_hub, wait_until, method: str, args: tuple, expected: dict
    ) -> None:
        task = asyncio.create_task(getattr(client, method)(*args))
        await wait_until(lambda: client.pending_count == 1)

        assert fake_hub.socket.sent_json[-1] == {**expected, "id": 1}

        fake_hub.socket.push(_result(1))
        await task

    async def test_error_logs_keep_only_error_entries(self, client, fake_hub, wait_until) -> None:
        entries = [
            {"name": "homeassistant.core", "level": "ERROR", "message": ["boom"]},
            {"name": "homeassistant.loader", "level": "WARNING", "message": ["slow"]},
            {"name": "custom.integration", "level": "ERROR", "message": ["bad config"]},
        ]
        task = asyncio.create_task(client.get_error_logs())
        await wait_until(lambda: client.pending_count == 1)

        fake_hub.socket.push(_result(1, entries))
        response = await task

        assert [e["name"] for e in response["result"]] == [
            "homeassistant.core",
            "custom.integration",
        ]
        assert response["success"] is True

    async def test_error_logs_pass_failures_through(self, client, fake_hub, wait_until) -> None:
        failure = {
            "id": 1,
            "type": "result",
            "success": False,
            "error": {"code": "unknown_command", "message": "Unknown command."},
        }
        task = asyncio.create_task(client.get_error_logs())
        await wait_until(lambda: client.pending_count == 1)

        fake_hub.socket.push(failure)

        assert await task == failure


class TestUnwrapResult:
    def test_returns_result(self) -> None:
        assert unwrap_result(_result(1, [1, 2])) == [1, 2]

    def test_failure_raises_with_hub_message(self) -> None:
        response = {
            "id": 3,
            "type": "result",
            "success": False,
            "error": {"code": "not_found", "message": "Service not found"},
        }
        with pytest.raises(HAClientError, match="Service not found") as exc_info:
            unwrap_result(response, tool="call_service")

        assert exc_info.value.tool == "call_service"
        assert exc_info.value.details == {"code": "not_found"}
