"""Shared test fixtures for hass-gateway.

Provides settings, an in-memory SQLite database with the full schema, and an
in-memory stand-in for the hub's WebSocket endpoint.
"""

import asyncio
import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from websockets.protocol import State

import hass_gateway.storage.entities  # noqa: F401 register models
from hass_gateway.settings import Settings
from hass_gateway.storage.entities import Entity, EntityCapability
from hass_gateway.storage.models import Base

TEST_TOKEN = "test-token-abc123"


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment="testing",  # Skip DB init and scheduler in tests
        debug=True,
        database_url="sqlite+aiosqlite://",
        ha_url="http://homeassistant.local:8123",
        ha_token=SecretStr(TEST_TOKEN),
        scheduler_enabled=False,
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Make every module's get_settings() return the test settings."""
    from hass_gateway import settings

    settings.get_settings.cache_clear()
    monkeypatch.setattr(settings, "get_settings", lambda: test_settings)
    for module in (
        "hass_gateway.api.deps",
        "hass_gateway.api.main",
        "hass_gateway.api.routes.ha",
        "hass_gateway.api.routes.system",
        "hass_gateway.brain.sweep",
        "hass_gateway.scheduler.service",
    ):
        monkeypatch.setattr(f"{module}.get_settings", lambda: test_settings)
    return test_settings


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def async_engine() -> AsyncGenerator[Any, None]:
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: Any) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_entity(db_session: AsyncSession) -> Callable[..., Any]:
    """Insert an entity row (and optional capability rows) and commit."""

    async def _add(
        entity_id: str,
        friendly_name: str | None = None,
        capabilities: dict[str, str | float] | None = None,
    ) -> Entity:
        domain, _, object_id = entity_id.partition(".")
        entity = Entity(
            entity_id=entity_id,
            domain=domain,
            object_id=object_id,
            friendly_name=friendly_name,
        )
        db_session.add(entity)
        for name, value in (capabilities or {}).items():
            if isinstance(value, str):
                db_session.add(EntityCapability(entity_id=entity_id, name=name, value_text=value))
            else:
                db_session.add(EntityCapability(entity_id=entity_id, name=name, value_num=value))
        await db_session.commit()
        return entity

    return _add


# =============================================================================
# FAKE HUB WEBSOCKET
# =============================================================================


class FakeSocket:
    """In-memory stand-in for a ``websockets`` client connection.

    Messages pushed with :meth:`push` are yielded by ``async for``; a pushed
    ``None`` ends iteration (remote close) and a pushed exception is raised.
    """

    def __init__(self, auto_auth: bool = True) -> None:
        self.state = State.OPEN
        self.sent: list[str] = []
        self.send_error: Exception | None = None
        self.closed = False
        self._auto_auth = auto_auth
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(m) for m in self.sent]

    async def send(self, message: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)
        if self._auto_auth and json.loads(message).get("type") == "auth":
            self.push({"type": "auth_ok", "ha_version": "2025.1.0"})

    def push(self, message: Any) -> None:
        if isinstance(message, dict | list):
            message = json.dumps(message)
        self._inbox.put_nowait(message)

    def drop(self) -> None:
        """Simulate the hub closing the connection."""
        self.state = State.CLOSED
        self._inbox.put_nowait(None)

    async def close(self) -> None:
        self.closed = True
        self.state = State.CLOSED
        self._inbox.put_nowait(None)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> Any:
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


class FakeHub:
    """Connector handing out one FakeSocket per connect call."""

    def __init__(self, auto_auth: bool = True) -> None:
        self.auto_auth = auto_auth
        self.sockets: list[FakeSocket] = []
        self.urls: list[str] = []
        self.connect_error: Exception | None = None

    @property
    def socket(self) -> FakeSocket:
        return self.sockets[-1]

    async def connect(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self.connect_error is not None:
            raise self.connect_error
        socket = FakeSocket(auto_auth=self.auto_auth)
        self.sockets.append(socket)
        return socket


@pytest.fixture
def fake_hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    """Yield to the event loop until a condition holds."""

    async def _wait(predicate: Callable[[], bool], attempts: int = 200) -> None:
        for _ in range(attempts):
            if predicate():
                return
            await asyncio.sleep(0)
        raise AssertionError("Condition not reached")

    return _wait
