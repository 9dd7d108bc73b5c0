"""Unit-test conftest: DB isolation safety net.

Resets the storage singletons before every unit test and replaces the
engine/session factories with guards, so code that reaches for the
configured database fails loudly instead of connecting.  Tests that need
SQL use the in-memory ``db_session`` fixture, which builds its own engine.
"""

from __future__ import annotations

import pytest

import hass_gateway.storage as _storage_mod


def _guarded(name: str):
    def _raise(settings=None):
        raise RuntimeError(
            f"Unit test attempted a real DB connection via {name}(). "
            "Mock the database dependency or use the db_session fixture."
        )

    return _raise


@pytest.fixture(autouse=True)
def _isolate_db(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(_storage_mod, "_engine", None)
    monkeypatch.setattr(_storage_mod, "_session_factory", None)
    monkeypatch.setattr(_storage_mod, "get_engine", _guarded("get_engine"))
    monkeypatch.setattr(_storage_mod, "get_session_factory", _guarded("get_session_factory"))
