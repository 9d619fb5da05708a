# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from gatehouse.core.utils import Clock, generate_token, utc_now

DEFAULT_VERIFICATION_TTL = timedelta(hours=1)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"IssuedToken(expires_at={self.expires_at.isoformat()})"


class VerificationTokenIssuer:
    """Mints single-use email verification tokens.

    Single use is enforced by the credential store: redeeming a token clears it
    from the identity, so a replay no longer matches any record.
    """

    def __init__(self, ttl: timedelta = DEFAULT_VERIFICATION_TTL, *, clock: Clock = utc_now) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Verification TTL must be positive")
        self.ttl = ttl
        self._clock = clock

    def issue(self) -> IssuedToken:
        return IssuedToken(token=generate_token(), expires_at=self._clock() + self.ttl)
