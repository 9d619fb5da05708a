import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from gatehouse.auth.flow import AuthFlow
from gatehouse.auth.passwords import configure_hasher
from gatehouse.auth.session import SessionCookieCodec
from gatehouse.auth.tokens import VerificationTokenIssuer
from gatehouse.infra.credential_store import CredentialStore
from gatehouse.infra.document_store import MemoryDocumentStore
from gatehouse.infra.session_store import SessionStore
from gatehouse.services.email_service import SendResult, VerificationEmailRenderer

SITE_URL = "http://auth.test"
_TOKEN_RE = re.compile(r"/auth/verify-email/([0-9a-f]{64})")


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        # real wall-clock start so cookies set through TestClient are not already stale
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: List[dict] = []
        self.fail_with: Optional[str] = None

    async def send(self, to, subject, text, html):
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        if self.fail_with:
            return SendResult(error=self.fail_with)
        return SendResult(message_id=f"<{len(self.sent)}@test>")

    def last_token(self) -> str:
        m = _TOKEN_RE.search(self.sent[-1]["text"])
        assert m, "no verification link in last email"
        return m.group(1)


@pytest.fixture(scope="session", autouse=True)
def fast_hasher():
    # keep argon2 cheap in tests
    configure_hasher(time_cost=1, memory_cost=8, parallelism=1)
    yield
    configure_hasher()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def store(clock) -> MemoryDocumentStore:
    return MemoryDocumentStore(clock=clock)


@pytest.fixture()
def flow(store, clock, mailer) -> AuthFlow:
    return AuthFlow(
        credentials=CredentialStore(store),
        sessions=SessionStore(store, clock=clock),
        tokens=VerificationTokenIssuer(timedelta(hours=1), clock=clock),
        cookies=SessionCookieCodec("session_id", secure=False),
        mailer=mailer,
        emails=VerificationEmailRenderer(SITE_URL),
        clock=clock,
        session_ttl=timedelta(hours=12),
    )
