from datetime import timedelta

import pytest

from gatehouse.errors import AlreadyExists, IdentityNotFound
from gatehouse.infra.credential_store import CredentialStore


@pytest.fixture()
def credentials(store):
    return CredentialStore(store)


async def _pending(credentials, clock, token="t1", email="a@x.com"):
    return await credentials.upsert_unverified(
        email=email,
        username="alice",
        password_hash="$argon2id$fake",
        token=token,
        token_expires_at=clock.now + timedelta(hours=1),
    )


@pytest.mark.asyncio
async def test_lookups(credentials, clock):
    identity = await _pending(credentials, clock, email=" A@X.com ")

    assert identity.email == "a@x.com"
    assert (await credentials.find_by_email("a@x.com")).id == identity.id
    assert (await credentials.find_by_verification_token("t1")).id == identity.id
    assert await credentials.find_verified_by_email("a@x.com") is None
    assert await credentials.find_by_verification_token("") is None
    assert await credentials.find_by_email("b@x.com") is None


@pytest.mark.asyncio
async def test_mark_verified_clears_token(credentials, clock):
    identity = await _pending(credentials, clock)

    verified = await credentials.mark_verified(identity.id, verified_at=clock.now, token="t1")

    assert verified.is_verified
    assert verified.verification_token is None
    assert (await credentials.find_verified_by_email("a@x.com")).id == identity.id
    assert await credentials.find_by_verification_token("t1") is None


@pytest.mark.asyncio
async def test_mark_verified_misses(credentials, clock):
    identity = await _pending(credentials, clock)

    with pytest.raises(IdentityNotFound):
        await credentials.mark_verified("missing", verified_at=clock.now)
    # superseded token
    with pytest.raises(IdentityNotFound):
        await credentials.mark_verified(identity.id, verified_at=clock.now, token="old")

    await credentials.mark_verified(identity.id, verified_at=clock.now)
    # already verified
    with pytest.raises(IdentityNotFound):
        await credentials.mark_verified(identity.id, verified_at=clock.now)


@pytest.mark.asyncio
async def test_upsert_never_overwrites_verified_identity(credentials, clock):
    identity = await _pending(credentials, clock)
    await credentials.mark_verified(identity.id, verified_at=clock.now)

    with pytest.raises(AlreadyExists):
        await _pending(credentials, clock, token="t2")

    current = await credentials.find_by_email("a@x.com")
    assert current.is_verified
    assert current.verification_token is None
