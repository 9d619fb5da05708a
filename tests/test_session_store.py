from datetime import timedelta

import pytest

from gatehouse.auth.models import SessionSnapshot
from gatehouse.infra.session_store import SessionStore


@pytest.fixture()
def sessions(store, clock):
    return SessionStore(store, clock=clock)


SNAP = SessionSnapshot(username="alice", email="a@x.com")


@pytest.mark.asyncio
async def test_create_and_find(sessions, clock):
    session = await sessions.create("identity-1", SNAP, timedelta(hours=12))

    assert len(session.id) == 64
    assert session.expires_at == clock.now + timedelta(hours=12)
    found = await sessions.find_by_id(session.id)
    assert found.snapshot == SNAP
    assert found.identity_id == "identity-1"
    assert found.is_active(clock.now)
    assert not found.is_active(session.expires_at)


@pytest.mark.asyncio
async def test_ids_are_unique(sessions):
    ids = {(await sessions.create("identity-1", SNAP, timedelta(minutes=1))).id for _ in range(20)}
    assert len(ids) == 20


@pytest.mark.asyncio
async def test_delete_is_idempotent(sessions):
    session = await sessions.create("identity-1", SNAP, timedelta(hours=1))

    await sessions.delete_by_id(session.id)
    await sessions.delete_by_id(session.id)
    await sessions.delete_by_id("")

    assert await sessions.find_by_id(session.id) is None


@pytest.mark.asyncio
async def test_purge_expired(sessions, clock):
    old = await sessions.create("identity-1", SNAP, timedelta(minutes=5))
    fresh = await sessions.create("identity-1", SNAP, timedelta(hours=5))
    clock.advance(minutes=5)

    assert await sessions.purge_expired() == 1
    assert await sessions.find_by_id(old.id) is None
    assert await sessions.find_by_id(fresh.id) is not None


@pytest.mark.asyncio
async def test_non_positive_ttl_rejected(sessions):
    with pytest.raises(ValueError):
        await sessions.create("identity-1", SNAP, timedelta(0))
