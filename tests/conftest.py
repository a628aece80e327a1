"""
Pytest configuration and fixtures for TypeArena tests
"""
import asyncio

import pytest

import typearena.storage as storage
import typearena.storage.json_store as json_store
from typearena.broadcast import channel
from typearena.rate_limit import get_rate_limiter


@pytest.fixture
def store(tmp_path, monkeypatch):
    """Point the process-wide store (and the users file) at a temp directory."""
    monkeypatch.setattr(json_store, "STORAGE_DIR", str(tmp_path))
    fresh = json_store.JsonStore(tmp_path)
    storage.set_store(fresh)
    yield fresh
    storage.set_store(None)


@pytest.fixture(autouse=True)
def reset_runtime_state():
    get_rate_limiter().reset_all()
    asyncio.run(channel.reset())
    yield
    get_rate_limiter().reset_all()
    asyncio.run(channel.reset())


@pytest.fixture
def seeded(store):
    """One active event with two bound codes and one unbound code."""

    async def _seed():
        event = await store.create_event(
            {
                "name": "Spring Cup",
                "status": "active",
                "typing_text": "cat dog\n",
                "timer_duration": 60,
            }
        )
        codes = await store.create_invite_codes(
            event["id"],
            [
                {"name": "Ana", "class_name": "9A"},
                {"name": "Bo", "class_name": "9B"},
                {"name": "", "class_name": ""},
            ],
        )
        return event, codes

    event, codes = asyncio.run(_seed())
    return {"event": event, "codes": codes, "store": store}
