# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Register -> verify -> login -> authenticated request -> sign-out.

``AuthFlow`` holds no state of its own. Identities live in the credential
store, sessions in the session store; everything else is passed in at
construction time.

Identity states: unregistered -> pending verification -> verified.
Client states: anonymous -> authenticated -> expired / signed out.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from gatehouse.auth.models import CurrentUser, Identity, Session, SessionSnapshot
from gatehouse.auth.passwords import dummy_verify, hash_password, verify_password
from gatehouse.auth.schemas import parse_login, parse_register
from gatehouse.auth.session import CookieDirective, SessionCookieCodec
from gatehouse.auth.tokens import VerificationTokenIssuer
from gatehouse.core.utils import Clock, utc_now
from gatehouse.errors import (
    AlreadyExists,
    DispatchFailure,
    IdentityNotFound,
    InvalidCredentials,
    TokenExpired,
    TokenNotFound,
    VerificationFailed,
)
from gatehouse.infra.credential_store import CredentialStore
from gatehouse.infra.session_store import SessionStore
from gatehouse.services.email_service import EmailDispatcher, VerificationEmailRenderer

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=12)

MSG_VERIFICATION_SENT = "Verification email sent"
MSG_VERIFIED = "Verification succeeded"
MSG_LOGIN = "Login success"
MSG_SIGNED_OUT = "Sign out success"
MSG_NOT_SIGNED_IN = "Not Signed In"


@dataclass(frozen=True)
class RegisterResult:
    identity: Identity
    message: str = MSG_VERIFICATION_SENT


@dataclass(frozen=True)
class VerifyResult:
    identity: Identity
    message: str = MSG_VERIFIED


@dataclass(frozen=True)
class LoginResult:
    session: Session
    cookie: CookieDirective
    message: str = MSG_LOGIN


@dataclass(frozen=True)
class SignOutResult:
    message: str
    cookie: Optional[CookieDirective] = None
    signed_out: bool = False


class AuthFlow:
    def __init__(
        self,
        *,
        credentials: CredentialStore,
        sessions: SessionStore,
        tokens: VerificationTokenIssuer,
        cookies: SessionCookieCodec,
        mailer: EmailDispatcher,
        emails: VerificationEmailRenderer,
        clock: Clock = utc_now,
        session_ttl: timedelta = SESSION_TTL,
    ) -> None:
        self.credentials = credentials
        self.sessions = sessions
        self.tokens = tokens
        self.cookies = cookies
        self.mailer = mailer
        self.emails = emails
        self._clock = clock
        self.session_ttl = session_ttl

    # ------------------ register / verify ------------------

    async def register(self, username: str, email: str, password: str) -> RegisterResult:
        """Create or refresh a pending identity and mail it a verification link.

        The identity write is not rolled back when the email cannot be sent:
        the caller gets ``DispatchFailure`` and can simply register again for a
        fresh token.
        """
        data = parse_register({"username": username, "email": email, "password": password})

        if await self.credentials.find_verified_by_email(data.email) is not None:
            logger.info("Registration refused for %s: already verified", data.email)
            raise AlreadyExists()

        # The upsert also refuses to touch a verified identity, which covers one
        # verified while we were hashing.
        password_hash = await asyncio.to_thread(hash_password, data.password)
        issued = self.tokens.issue()
        identity = await self.credentials.upsert_unverified(
            email=data.email,
            username=data.username,
            password_hash=password_hash,
            token=issued.token,
            token_expires_at=issued.expires_at,
        )
        logger.info("Registration pending verification for %s", identity.email)

        content = self.emails.render(issued.token, ttl=self.tokens.ttl, username=identity.username)
        result = await self.mailer.send(identity.email, content.subject, content.text, content.html)
        if not result.ok:
            logger.error("Verification email to %s not sent: %s", identity.email, result.error)
            raise DispatchFailure(result.error or "unknown error")
        return RegisterResult(identity=identity)

    async def verify_email(self, token: str) -> VerifyResult:
        token = (token or "").strip()
        identity = await self.credentials.find_by_verification_token(token) if token else None
        if identity is None:
            raise TokenNotFound()

        now = self._clock()
        if not identity.verification_pending(now):
            logger.info("Expired verification token used for %s", identity.email)
            raise TokenExpired()

        try:
            verified = await self.credentials.mark_verified(identity.id, verified_at=now, token=token)
        except IdentityNotFound as e:
            # token was consumed or replaced between lookup and update
            raise VerificationFailed() from e
        logger.info("Email verified: %s", verified.email)
        return VerifyResult(identity=verified)

    # ------------------ login / session ------------------

    async def login(self, email: str, password: str) -> LoginResult:
        data = parse_login({"email": email, "password": password})

        identity = await self.credentials.find_verified_by_email(data.email)
        if identity is None:
            await asyncio.to_thread(dummy_verify, data.password)
            logger.debug("Login refused for %s: no verified identity", data.email)
            raise InvalidCredentials(InvalidCredentials.UNKNOWN_USER)

        ok = await asyncio.to_thread(verify_password, identity.password_hash, data.password)
        if not ok:
            logger.debug("Login refused for %s: wrong password", data.email)
            raise InvalidCredentials(InvalidCredentials.WRONG_PASSWORD)

        session = await self.sessions.create(
            identity.id,
            SessionSnapshot(username=identity.username, email=identity.email),
            self.session_ttl,
        )
        logger.info("Login: %s", identity.email)
        return LoginResult(session=session, cookie=self.cookies.encode(session.id, session.expires_at))

    async def _active_session(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        session = await self.sessions.find_by_id(session_id)
        if session is None or not session.is_active(self._clock()):
            return None
        return session

    async def check_session(self, session_id: Optional[str]) -> Optional[CurrentUser]:
        """The signed-in user for ``session_id``, or ``None`` when anonymous."""
        session = await self._active_session(session_id)
        return CurrentUser.from_session(session) if session else None

    async def sign_out(self, session_id: Optional[str]) -> SignOutResult:
        """Idempotent: no session, an expired one or an already deleted one all succeed."""
        if not session_id:
            return SignOutResult(message=MSG_NOT_SIGNED_IN)

        session = await self._active_session(session_id)
        if session is None:
            # nothing to delete, but still tell the client to drop a stale cookie
            return SignOutResult(message=MSG_NOT_SIGNED_IN, cookie=self.cookies.encode_expired())

        await self.sessions.delete_by_id(session.id)
        logger.info("Sign out: %s", session.snapshot.email)
        return SignOutResult(message=MSG_SIGNED_OUT, cookie=self.cookies.encode_expired(), signed_out=True)

    # ------------------ cookie-jar helpers ------------------

    async def current_user(self, cookies: Optional[Mapping[str, str]]) -> Optional[CurrentUser]:
        return await self.check_session(self.cookies.decode(cookies))

    async def sign_out_cookies(self, cookies: Optional[Mapping[str, str]]) -> SignOutResult:
        return await self.sign_out(self.cookies.decode(cookies))
