"""Integration tests for the brain engine and sweep orchestration."""

from contextlib import asynccontextmanager
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy import func, select

from hass_gateway.brain.engine import BrainEngine
from hass_gateway.brain.intents import MAX_INTENTS, MIN_INTENTS
from hass_gateway.brain.models import UnbrainedEntity
from hass_gateway.brain.sweep import run_brain_sweep, run_sweep
from hass_gateway.dal.brain import BrainRepository
from hass_gateway.ha.rest import HARestClient
from hass_gateway.storage.entities import BrainRun, EntityNormalization, IntentCandidate

pytestmark = pytest.mark.integration

TEST_TOKEN = "test-token-abc123"


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar()


class TestBrainEngine:
    async def test_process_normalizes_and_creates_intents(self, db_session, add_entity):
        await add_entity("light.den", "Den", capabilities={"supports_brightness": 1})
        entity = UnbrainedEntity("light.den", "light", "den", "Den")

        outcome = await BrainEngine(db_session).process(entity)

        assert outcome["normalized"] is True
        assert outcome["failed"] is False
        assert MIN_INTENTS <= outcome["intents_created"] <= MAX_INTENTS
        labels = [i.label for i in await BrainRepository(db_session).list_intents("light.den")]
        assert "dim Den to 30%" in labels

    async def test_entity_with_enough_intents_is_left_alone(self, db_session, add_entity):
        await add_entity("lock.door")
        engine = BrainEngine(db_session)
        entity = UnbrainedEntity("lock.door", "lock", "door")

        first = await engine.ensure_intents(entity)
        second = await engine.ensure_intents(entity)

        assert first.value == 5
        assert second.value == 0
        assert second.ok
        assert await _count(db_session, IntentCandidate) == 5

    async def test_missing_capabilities_generate_base_set(self, db_session, add_entity):
        await add_entity("light.attic")

        result = await BrainEngine(db_session).ensure_intents(
            UnbrainedEntity("light.attic", "light", "attic")
        )

        assert result.value == 5

    async def test_failed_intent_insert_is_skipped(self, db_session, add_entity):
        await add_entity("switch.pump")
        engine = BrainEngine(db_session)
        original = engine.repo.insert_intent
        calls = 0

        async def flaky_insert(entity_id, intent):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise RuntimeError("constraint violated")
            await original(entity_id, intent)

        engine.repo.insert_intent = flaky_insert
        result = await engine.ensure_intents(UnbrainedEntity("switch.pump", "switch", "pump"))

        assert result.value == 5
        assert isinstance(result.error, RuntimeError)
        assert await _count(db_session, IntentCandidate) == 5


class TestRunSweep:
    async def test_switch_named_like_a_lamp(self, db_session, add_entity):
        await add_entity("switch.office_lamp", "Office Lamp")

        result = await run_sweep(db_session)

        assert (result.scanned, result.normalized, result.intents_created) == (1, 1, 6)
        row = await BrainRepository(db_session).get_normalization("switch.office_lamp")
        assert row.canonical_type == "light"
        assert row.canonical_domain == "switch"
        assert row.confidence == pytest.approx(0.95)

        intents = await BrainRepository(db_session).list_intents("switch.office_lamp")
        assert [i.label for i in intents] == [
            "turn on Office Lamp",
            "turn off Office Lamp",
            "toggle Office Lamp",
            "turn off Office Lamp in 15 minutes",
            "turn on Office Lamp at dusk daily",
            "check Office Lamp status",
        ]
        assert all(i.action_domain == "switch" for i in intents)
        assert all(i.action_data_json["entity_id"] == "switch.office_lamp" for i in intents)

    async def test_second_sweep_finds_nothing(self, db_session, add_entity):
        await add_entity("switch.office_lamp", "Office Lamp")
        await add_entity("sensor.humidity")

        await run_sweep(db_session)
        again = await run_sweep(db_session)

        assert (again.scanned, again.normalized, again.intents_created) == (0, 0, 0)
        assert await _count(db_session, BrainRun) == 2
        assert await _count(db_session, EntityNormalization) == 2

    async def test_empty_store_still_records_a_run(self, db_session):
        result = await run_sweep(db_session)

        assert result.scanned == 0
        latest = await BrainRepository(db_session).latest_run()
        assert latest is not None
        assert latest.scanned == 0

    async def test_one_failing_entity_does_not_stop_the_others(self, db_session, add_entity):
        for entity_id in ("switch.a", "switch.b", "switch.c"):
            await add_entity(entity_id)

        original = BrainRepository.upsert_normalization

        async def failing_for_b(self, entity_id, classification):
            if entity_id == "switch.b":
                raise RuntimeError("write refused")
            return await original(self, entity_id, classification)

        with patch.object(BrainRepository, "upsert_normalization", failing_for_b):
            result = await run_sweep(db_session)

        assert result.scanned == 3
        assert result.normalized == 2
        assert result.failures == 1
        # Intent generation still runs for the entity whose normalization failed
        assert result.intents_created == 18
        assert await BrainRepository(db_session).get_normalization("switch.b") is None
        assert await BrainRepository(db_session).get_normalization("switch.c") is not None

    async def test_candidate_query_failure_propagates(self, db_session):
        async def broken(self):
            raise RuntimeError("query failed")

        with patch.object(BrainRepository, "select_unbrained", broken):
            with pytest.raises(RuntimeError, match="query failed"):
                await run_sweep(db_session)

        assert await _count(db_session, BrainRun) == 0


class TestRunBrainSweep:
    @pytest.fixture
    def patched_session(self, session_factory):
        @asynccontextmanager
        async def _get_session():
            async with session_factory() as session:
                yield session

        with patch("hass_gateway.brain.sweep.get_session", _get_session):
            yield

    @staticmethod
    def _rest_client(states, calls):
        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            assert request.headers["Authorization"] == f"Bearer {TEST_TOKEN}"
            return httpx.Response(200, json=states)

        return HARestClient(
            "http://homeassistant.local:8123",
            TEST_TOKEN,
            transport=httpx.MockTransport(handler),
        )

    async def test_sparse_store_is_synced_first(self, mock_settings, patched_session):
        calls: list[str] = []
        rest = self._rest_client(
            [
                {"entity_id": "switch.office_lamp", "attributes": {"friendly_name": "Office Lamp"}},
                {"entity_id": "sensor.outdoor", "attributes": {}},
            ],
            calls,
        )

        result = await run_brain_sweep(rest_client=rest)
        await rest.close()

        assert calls == ["/api/states"]
        assert result["entitiesSynced"] == 2
        assert result["syncErrors"] == 0
        assert result["scanned"] == 2
        assert result["normalized"] == 2

    async def test_no_sync_when_disabled(self, mock_settings, patched_session):
        calls: list[str] = []
        rest = self._rest_client([], calls)

        result = await run_brain_sweep(sync_first=False, rest_client=rest)
        await rest.close()

        assert calls == []
        assert result["entitiesSynced"] == 0
        assert result["scanned"] == 0

    async def test_no_sync_when_store_is_populated(
        self, mock_settings, patched_session, add_entity
    ):
        mock_settings.brain_sync_threshold = 1
        await add_entity("switch.existing")
        calls: list[str] = []
        rest = self._rest_client([], calls)

        result = await run_brain_sweep(rest_client=rest)
        await rest.close()

        assert calls == []
        assert result["scanned"] == 1

    async def test_failed_sync_still_sweeps(self, mock_settings, patched_session, add_entity):
        await add_entity("switch.existing")
        rest = HARestClient(
            "http://homeassistant.local:8123",
            TEST_TOKEN,
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
        )

        result = await run_brain_sweep(rest_client=rest)
        await rest.close()

        assert result["entitiesSynced"] == 0
        assert result["scanned"] == 1
