# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]

TOKEN_BYTES = 32


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """Hex-encoded random token (2 * nbytes chars) from the OS CSPRNG."""
    return secrets.token_hex(nbytes)


def canon_email(s: str) -> str:
    """Canonicalise an email address for lookups (trim + lower)."""
    return (s or "").strip().lower()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from storage."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
