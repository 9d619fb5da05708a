# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

DEFAULT_COOKIE_NAME = "session_id"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class CookieDirective:
    name: str
    value: str
    expires: datetime
    secure: bool = False
    http_only: bool = True
    path: str = "/"
    same_site: str = "lax"

    def as_cookie_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``starlette.responses.Response.set_cookie``."""
        return {
            "key": self.name,
            "value": self.value,
            "expires": self.expires,
            "path": self.path,
            "secure": self.secure,
            "httponly": self.http_only,
            "samesite": self.same_site,
        }

    @property
    def is_expired(self) -> bool:
        return self.expires <= _EPOCH

    def __repr__(self) -> str:
        return f"CookieDirective(name={self.name!r}, expires={self.expires.isoformat()})"


class SessionCookieCodec:
    """Maps a session id to/from the session cookie.

    The cookie lives exactly as long as the session it carries.
    """

    def __init__(self, name: str = DEFAULT_COOKIE_NAME, *, secure: bool = False) -> None:
        if not name:
            raise ValueError("Cookie name must not be empty")
        self.name = name
        self.secure = secure

    def encode(self, session_id: str, expires_at: datetime) -> CookieDirective:
        return CookieDirective(name=self.name, value=session_id, expires=expires_at, secure=self.secure)

    def encode_expired(self) -> CookieDirective:
        return CookieDirective(name=self.name, value="", expires=_EPOCH, secure=self.secure)

    def decode(self, cookies: Optional[Mapping[str, str]]) -> Optional[str]:
        if not cookies:
            return None
        value = (cookies.get(self.name) or "").strip()
        return value or None
