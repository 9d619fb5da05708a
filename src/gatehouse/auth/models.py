# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from gatehouse.core.utils import as_utc


def _dt(v: Any) -> Optional[datetime]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return as_utc(v)
    return as_utc(datetime.fromisoformat(str(v)))


@dataclass(frozen=True)
class Identity:
    id: str
    username: str
    email: str
    password_hash: str
    email_verified_at: Optional[datetime] = None
    verification_token: Optional[str] = None
    verification_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    def verification_pending(self, now: datetime) -> bool:
        return (
            self.verification_token is not None
            and self.verification_expires_at is not None
            and now < self.verification_expires_at
        )

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Identity":
        return cls(
            id=str(doc["_id"]),
            username=str(doc.get("username") or ""),
            email=str(doc.get("email") or ""),
            password_hash=str(doc.get("password_hash") or ""),
            email_verified_at=_dt(doc.get("email_verified_at")),
            verification_token=doc.get("verification_token") or None,
            verification_expires_at=_dt(doc.get("verification_expires_at")),
            created_at=_dt(doc.get("created_at")),
            updated_at=_dt(doc.get("updated_at")),
        )

    def __repr__(self) -> str:
        # password_hash and verification_token stay out of reprs (and logs)
        return (
            f"Identity(id={self.id!r}, username={self.username!r}, email={self.email!r}, "
            f"verified={self.is_verified})"
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Identity display data copied into a session at login. Not kept in sync."""

    username: str
    email: str

    def to_document(self) -> Dict[str, str]:
        return {"username": self.username, "email": self.email}

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> "SessionSnapshot":
        doc = doc or {}
        return cls(username=str(doc.get("username") or ""), email=str(doc.get("email") or ""))


@dataclass(frozen=True)
class Session:
    id: str
    identity_id: str
    snapshot: SessionSnapshot
    expires_at: datetime
    created_at: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Session":
        expires_at = _dt(doc.get("expires_at"))
        if expires_at is None:
            raise ValueError(f"Session {doc.get('_id')!r} has no expires_at")
        return cls(
            id=str(doc["_id"]),
            identity_id=str(doc.get("identity_id") or ""),
            snapshot=SessionSnapshot.from_document(doc.get("data")),
            expires_at=expires_at,
            created_at=_dt(doc.get("created_at")),
        )

    def __repr__(self) -> str:
        return (
            f"Session(identity_id={self.identity_id!r}, username={self.snapshot.username!r}, "
            f"expires_at={self.expires_at.isoformat()})"
        )


@dataclass(frozen=True)
class CurrentUser:
    identity_id: str
    username: str
    email: str
    session_id: str
    expires_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "CurrentUser":
        return cls(
            identity_id=session.identity_id,
            username=session.snapshot.username,
            email=session.snapshot.email,
            session_id=session.id,
            expires_at=session.expires_at,
        )
