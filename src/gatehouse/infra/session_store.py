# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from gatehouse.auth.models import Session, SessionSnapshot
from gatehouse.core.utils import Clock, generate_token, utc_now
from gatehouse.infra.document_store import DocumentStore

logger = logging.getLogger(__name__)

COLLECTION = "sessions"


class SessionStore:
    """Server-side sessions keyed by an opaque random id.

    Sessions are immutable once created; the only mutation is deletion.
    Expiry is checked by readers, expired records may linger until purged.
    """

    def __init__(self, store: DocumentStore, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def create(self, identity_id: str, snapshot: SessionSnapshot, ttl: timedelta) -> Session:
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        doc = await self._store.insert_one(
            COLLECTION,
            {
                "_id": generate_token(),
                "identity_id": identity_id,
                "data": snapshot.to_document(),
                "expires_at": self._clock() + ttl,
            },
        )
        return Session.from_document(doc)

    async def find_by_id(self, session_id: str) -> Optional[Session]:
        if not session_id:
            return None
        doc = await self._store.find_one(COLLECTION, {"_id": session_id})
        return Session.from_document(doc) if doc else None

    async def delete_by_id(self, session_id: str) -> None:
        if not session_id:
            return
        await self._store.delete_one(COLLECTION, {"_id": session_id})

    async def purge_expired(self) -> int:
        n = await self._store.delete_many(COLLECTION, {"expires_at": {"$lte": self._clock()}})
        if n:
            logger.info("Purged %d expired sessions", n)
        return n
