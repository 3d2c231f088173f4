"""
Unit tests for the local session snapshot.
"""

import json
from unittest.mock import MagicMock

import pytest

from thesisvault.errors import NotAuthenticatedError, UpstreamError
from thesisvault.session import ROLE_KEY, USER_KEY, SessionStore

pytestmark = pytest.mark.asyncio


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "state" / "session.json")


async def test_save_and_load(store, container, seeded):
    profile = container.auth_gate.get_profile(seeded["student"])
    await store.save(profile)

    snapshot = await store.load()

    assert snapshot[ROLE_KEY] == "student"
    assert snapshot[USER_KEY]["username"] == "jdelacruz"


async def test_load_missing(store):
    assert await store.load() is None


async def test_load_corrupt(store):
    store.path.write_text("{not json")
    assert await store.load() is None


async def test_load_wrong_shape(store):
    store.path.write_text(json.dumps({USER_KEY: "jdelacruz"}))
    assert await store.load() is None


async def test_clear(store):
    await store.save({"user_id": 1, "role": "user"})
    await store.clear()
    assert not store.path.exists()
    await store.clear()


async def test_restore_refreshes_profile(store, container, seeded):
    await store.save({"user_id": seeded["student"], "username": "old-name", "role": "user"})

    profile = await store.restore(container.auth_gate)

    assert profile.username == "jdelacruz"
    snapshot = await store.load()
    assert snapshot[ROLE_KEY] == "student"


async def test_restore_deleted_account_clears(store, container, seeded):
    await store.save({"user_id": 9999, "role": "student"})

    assert await store.restore(container.auth_gate) is None
    assert not store.path.exists()


async def test_restore_with_store_down_keeps_snapshot(store):
    gate = MagicMock()
    gate.validate_session.side_effect = UpstreamError("Account service", detail="down")
    await store.save({"user_id": 5, "role": "student"})

    assert await store.restore(gate) is None
    assert store.path.exists()


async def test_restore_rejected_session(store):
    gate = MagicMock()
    gate.validate_session.side_effect = NotAuthenticatedError("Session expired or user not found")
    await store.save({"user_id": 5, "role": "student"})

    assert await store.restore(gate) is None
    assert await store.load() is None


async def test_restore_without_snapshot(store):
    gate = MagicMock()
    assert await store.restore(gate) is None
    gate.validate_session.assert_not_called()

