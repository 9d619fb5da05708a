# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from datetime import datetime
from typing import Optional

from gatehouse.auth.models import Identity
from gatehouse.core.utils import canon_email
from gatehouse.errors import AlreadyExists, IdentityNotFound
from gatehouse.infra.document_store import DocumentStore, DuplicateKeyError

COLLECTION = "identities"


class CredentialStore:
    """Identity records, one per email address.

    Only unverified records are ever overwritten; a verified identity is
    immutable from the point of view of registration.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._store.declare_unique(COLLECTION, "email")

    async def find_by_email(self, email: str) -> Optional[Identity]:
        doc = await self._store.find_one(COLLECTION, {"email": canon_email(email)})
        return Identity.from_document(doc) if doc else None

    async def find_verified_by_email(self, email: str) -> Optional[Identity]:
        doc = await self._store.find_one(
            COLLECTION, {"email": canon_email(email), "email_verified_at": {"$ne": None}}
        )
        return Identity.from_document(doc) if doc else None

    async def find_by_verification_token(self, token: str) -> Optional[Identity]:
        if not token:
            return None
        doc = await self._store.find_one(COLLECTION, {"verification_token": token})
        return Identity.from_document(doc) if doc else None

    async def upsert_unverified(
        self,
        email: str,
        username: str,
        password_hash: str,
        token: str,
        token_expires_at: datetime,
    ) -> Identity:
        email = canon_email(email)
        try:
            doc = await self._store.upsert_one(
                COLLECTION,
                # a verified record with this email makes the insert collide on email
                {"email": email, "email_verified_at": None},
                {
                    "username": username,
                    "email": email,
                    "password_hash": password_hash,
                    "email_verified_at": None,
                    "verification_token": token,
                    "verification_expires_at": token_expires_at,
                },
            )
        except DuplicateKeyError as e:
            raise AlreadyExists() from e
        return Identity.from_document(doc)

    async def mark_verified(
        self,
        identity_id: str,
        *,
        verified_at: datetime,
        token: Optional[str] = None,
    ) -> Identity:
        query = {"_id": identity_id, "email_verified_at": None}
        if token is not None:
            query["verification_token"] = token
        doc = await self._store.update_one(
            COLLECTION,
            query,
            {
                "email_verified_at": verified_at,
                "verification_token": None,
                "verification_expires_at": None,
            },
        )
        if doc is None:
            raise IdentityNotFound()
        return Identity.from_document(doc)
